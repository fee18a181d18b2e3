from typing import Optional

from fastapi import APIRouter, Depends
from pymongo.collection import Collection

from ..db import get_items_collection
from ..models.archive_model import ArchiveItemOut
from ..services.auth_service import Principal, get_current_user_optional
from ..services.entries import get_entry

router = APIRouter(prefix="/entry", tags=["Entry"])


@router.get("/{slug}", response_model=ArchiveItemOut)
def show_entry(
    slug: str,
    user: Optional[Principal] = Depends(get_current_user_optional),
    col: Collection = Depends(get_items_collection),
):
    return get_entry(col, slug, user)
