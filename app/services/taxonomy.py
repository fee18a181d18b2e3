"""Decides how a category is browsed: as a sub-menu of sub-types or as a flat list."""
import logging
import re
from enum import Enum

from pydantic import BaseModel
from pymongo import ASCENDING, DESCENDING
from pymongo.collection import Collection

from ..errors import UnknownCategory
from ..models.archive_model import serialize_item
from ..models.registry import SUBTYPE_FIELDS, category_pattern, find_variant

logger = logging.getLogger(__name__)

# Fields needed to render an item card in a listing
LIST_PROJECTION = dict.fromkeys(
    ("title", "slug", "thumbnail", "category", "status", "createdAt", *SUBTYPE_FIELDS), 1)


class Mode(str, Enum):
    FLAT = "flat"
    SUBMENU = "submenu"


class SubCategoryListing(BaseModel):
    mode: Mode
    category: str
    title: str
    field: str | None = None
    values: list[str] = []
    items: list[dict] = []


def _clean_values(values) -> list[str]:
    cleaned = {str(v).strip() for v in values if v is not None and str(v).strip()}
    return sorted(cleaned, key=str.lower)


def discover_sub_types(collection: Collection, category: str) -> tuple[str | None, list[str]]:
    """Look for sub-type values in stored items of ``category``.

    Tolerates categories (or sub-type fields) that exist in the data but are
    not yet described in the registry. The first field in SUBTYPE_FIELDS that
    yields a non-empty value wins.
    """
    query = {"category": category_pattern(category)}
    for field in SUBTYPE_FIELDS:
        values = _clean_values(collection.distinct(field, query))
        if values:
            logger.debug("Discovered sub-types for %s on %s: %s", category, field, values)
            return field, values
    return None, []


def list_items(collection: Collection, category: str, sub_type: str | None = None) -> list[dict]:
    """Published items of ``category``, newest first.

    With ``sub_type`` the filter is a disjunction over every known sub-type
    field, since the caller does not always know which one the category uses.
    """
    query = {"category": category_pattern(category), "status": "published"}
    if sub_type:
        value = re.compile(f"^{re.escape(sub_type.strip())}$", re.IGNORECASE)
        query["$or"] = [{field: value} for field in SUBTYPE_FIELDS]
    cursor = collection.find(query, LIST_PROJECTION).sort(
        [("createdAt", DESCENDING), ("title", ASCENDING)])
    return [serialize_item(doc) for doc in cursor]


def ensure_known_category(collection: Collection, category: str) -> None:
    """Raise UnknownCategory when the category is neither registered nor present in the data."""
    if find_variant(category) is not None:
        return
    query = {"category": category_pattern(category), "status": "published"}
    if collection.find_one(query, {"_id": 1}) is None:
        raise UnknownCategory(category)


def list_sub_categories(collection: Collection, category: str) -> SubCategoryListing:
    variant = find_variant(category)
    label = variant.label if variant else category
    canonical = variant.category if variant else category

    # Registry first: enum values are offered even before any item exists
    if variant and variant.sub_type_values:
        return SubCategoryListing(
            mode=Mode.SUBMENU, category=canonical, title=f"Explore {label}",
            field=variant.sub_type_field, values=list(variant.sub_type_values))

    field, values = discover_sub_types(collection, category)
    if field:
        return SubCategoryListing(
            mode=Mode.SUBMENU, category=canonical, title=f"Explore {label}",
            field=field, values=values)

    items = list_items(collection, category)
    if variant is None and not items:
        # Neither registered nor present in the data
        raise UnknownCategory(category)
    return SubCategoryListing(mode=Mode.FLAT, category=canonical, title=label, items=items)
