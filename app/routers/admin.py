from fastapi import APIRouter, Depends, status
from pymongo.collection import Collection

from ..db import get_items_collection
from ..models.archive_model import ArchiveItemIn, SavedItemOut
from ..services import lifecycle
from ..services.auth_service import Principal, require_staff

router = APIRouter(prefix="/admin/items", tags=["Admin"])


@router.get("/{item_id}", response_model=dict)
def edit_view(
    item_id: str,
    user: Principal = Depends(require_staff),
    col: Collection = Depends(get_items_collection),
):
    return lifecycle.get_edit_view(col, item_id)


@router.post("/", response_model=SavedItemOut, status_code=status.HTTP_201_CREATED)
def create_item(
    data: ArchiveItemIn,
    user: Principal = Depends(require_staff),
    col: Collection = Depends(get_items_collection),
):
    item, warnings = lifecycle.create_item(col, data.model_dump(exclude_unset=True), user.user_id)
    return {"item": item, "warnings": warnings}


@router.put("/{item_id}", response_model=SavedItemOut)
def update_item(
    item_id: str,
    data: ArchiveItemIn,
    user: Principal = Depends(require_staff),
    col: Collection = Depends(get_items_collection),
):
    item, warnings = lifecycle.update_item(col, item_id, data.model_dump(exclude_unset=True))
    return {"item": item, "warnings": warnings}


@router.delete("/{item_id}", response_model=dict)
def delete_item(
    item_id: str,
    user: Principal = Depends(require_staff),
    col: Collection = Depends(get_items_collection),
):
    lifecycle.delete_item(col, item_id)
    return {"success": True, "id": item_id}
