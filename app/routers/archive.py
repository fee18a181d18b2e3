from fastapi import APIRouter, Depends
from pymongo.collection import Collection

from ..db import get_items_collection
from ..models.registry import all_variants, find_variant
from ..services.taxonomy import Mode, ensure_known_category, list_items, list_sub_categories

router = APIRouter(prefix="/archive", tags=["Archive"])


@router.get("/", response_model=list[dict])
def list_categories():
    """Every registered category with its sub-type field and enum values."""
    return [
        {
            "category": v.category,
            "label": v.label,
            "subTypeField": v.sub_type_field,
            "subTypes": list(v.sub_type_values),
        }
        for v in all_variants()
    ]


@router.get("/{category}", response_model=dict)
def show_category(category: str, col: Collection = Depends(get_items_collection)):
    """
    Sub-menu of sub-types when the category has them, otherwise the flat list
    of its published items.
    """
    listing = list_sub_categories(col, category)
    if listing.mode is Mode.SUBMENU:
        return {
            "mode": listing.mode.value,
            "category": listing.category,
            "field": listing.field,
            "subTypes": listing.values,
            "title": listing.title,
        }
    return {
        "mode": listing.mode.value,
        "items": listing.items,
        "title": listing.title,
        "category": listing.category,
    }


@router.get("/{category}/{sub_type}", response_model=dict)
def show_sub_type(category: str, sub_type: str, col: Collection = Depends(get_items_collection)):
    ensure_known_category(col, category)
    variant = find_variant(category)
    label = variant.label if variant else category
    return {
        "items": list_items(col, category, sub_type),
        "title": f"{sub_type} {label}",
        "category": variant.category if variant else category,
        "subType": sub_type,
    }
