from fastapi import APIRouter

from ..models.registry import all_variants

router = APIRouter()

@router.get("/", tags=["health"])
def root():
    return {"status": "ok", "categories": len(all_variants())}
