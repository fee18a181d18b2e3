from fastapi import Depends, HTTPException
from fastapi.security import OAuth2PasswordBearer
from jose import JWTError
from pydantic import BaseModel
from typing import Optional

from app.utils import decode_token

STAFF_ROLES = ("admin", "supervisor")

oauth2_scheme = OAuth2PasswordBearer(tokenUrl="/auth/login", auto_error=False)


class Principal(BaseModel):
    user_id: str
    role: str = "user"

    @property
    def is_staff(self) -> bool:
        return self.role in STAFF_ROLES

    def owns(self, item: dict) -> bool:
        author = item.get("author")
        return author is not None and str(author) == self.user_id


def _principal_from_token(token: str) -> Principal:
    try:
        payload = decode_token(token)
    except JWTError:
        raise HTTPException(status_code=401, detail="Invalid token")
    if "sub" not in payload:
        raise HTTPException(401, "Invalid token payload")
    return Principal(user_id=str(payload["sub"]), role=payload.get("role") or "user")


def get_current_user(token: Optional[str] = Depends(oauth2_scheme)) -> Principal:
    if not token:
        raise HTTPException(status_code=401, detail="Not authenticated",
                            headers={"WWW-Authenticate": "Bearer"})
    return _principal_from_token(token)


def get_current_user_optional(token: Optional[str] = Depends(oauth2_scheme)) -> Optional[Principal]:
    if not token:
        return None
    try:
        return _principal_from_token(token)
    except HTTPException:
        return None


def require_staff(user: Principal = Depends(get_current_user)) -> Principal:
    if not user.is_staff:
        raise HTTPException(status_code=403, detail="You are not authorized to access this page.")
    return user
