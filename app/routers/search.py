from fastapi import APIRouter, Depends, Query
from pymongo.collection import Collection

from ..db import get_items_collection
from ..services.ranking import SearchPage
from ..services.search import search_items

router = APIRouter(prefix="/search", tags=["Search"])


@router.get("", response_model=SearchPage)
def search(
    q: str | None = Query(default=None),
    page: int = Query(1, ge=1),
    col: Collection = Depends(get_items_collection),
):
    return search_items(col, q, page)
