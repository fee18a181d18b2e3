from datetime import datetime, timedelta, timezone

from jose import jwt

from .config import settings

# Archive sessions are issued by the identity provider; these helpers only
# mint and read bearer tokens carrying the user id and role.
STAFF_TOKEN_MINUTES = 60


def create_access_token(user_id: str, role: str = "user", minutes: int = STAFF_TOKEN_MINUTES) -> str:
    """Signed bearer token for ``user_id`` acting as ``role``."""
    expire = datetime.now(timezone.utc) + timedelta(minutes=minutes)
    payload = {"sub": user_id, "role": role, "exp": int(expire.timestamp())}
    return jwt.encode(payload, settings.SECRET_KEY, algorithm=settings.ALGORITHM)


def decode_token(token: str) -> dict:
    """Claims of a bearer token; raises JWTError when the signature or expiry is bad."""
    return jwt.decode(token, settings.SECRET_KEY, algorithms=[settings.ALGORITHM])
