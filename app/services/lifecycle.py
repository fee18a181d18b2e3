"""Create/update/delete of archive items.

All writes go through ``normalize_submission`` so that the generic form input
is mapped onto the category-specific storage fields the registry describes.
"""
import json
import logging
import math
import re
from datetime import date, datetime, timezone
from typing import Any

from bson import ObjectId
from bson.errors import InvalidId
from pydantic import BaseModel
from pymongo.collection import Collection
from pymongo.errors import DuplicateKeyError, PyMongoError

from ..config import settings
from ..errors import DuplicateSlug, NotFound, ParseDegraded, UnknownCategory, ValidationError
from ..models.archive_model import serialize_item
from ..models.registry import (
    ALL_VARIANT_FIELDS, BLOCK_TYPES, BOOL, DATE, GEO, LIST, SUBTYPE_FIELDS,
    VariantDescriptor, VariantField, find_variant,
)

logger = logging.getLogger(__name__)

STATUSES = ("draft", "published")
_TRUTHY = {"true", "on", "yes", "1"}
_FALSY = {"false", "off", "no", "0"}
_SLUG_FORBIDDEN = re.compile(r"[\s/?#%\\]")


class NormalizedItem(BaseModel):
    variant: VariantDescriptor
    fields: dict[str, Any]
    warnings: list[str] = []


def _clean(value) -> str | None:
    if value is None:
        return None
    text = str(value).strip()
    return text or None


def _as_list(value) -> list[str] | None:
    if value is None:
        return None
    if isinstance(value, str):
        value = value.split(",")
    if not isinstance(value, (list, tuple)):
        value = [value]
    return [s for s in (_clean(v) for v in value) if s]


def make_slug(value: str) -> str:
    """URL-safe slug derived from a title: characters a path can't carry become word breaks."""
    return "-".join(_SLUG_FORBIDDEN.sub(" ", value).lower().split())


def _parse_date(field: VariantField, value) -> datetime:
    if isinstance(value, datetime):
        return value
    if isinstance(value, date):
        return datetime(value.year, value.month, value.day)
    text = str(value).strip()
    if text.endswith("Z"):
        text = text[:-1] + "+00:00"
    try:
        return datetime.fromisoformat(text)
    except ValueError:
        raise ValidationError(f"{field.name} must be a date (YYYY-MM-DD), got '{value}'",
                              field=field.name)


def _match_choice(field: VariantField, value: str) -> str:
    for choice in field.choices:
        if choice.lower() == value.lower():
            return choice
    raise ValidationError(
        f"{field.name} must be one of {', '.join(field.choices)}, got '{value}'", field=field.name)


def _coerce(field: VariantField, value):
    """Convert raw form input for one variant field, None means "not provided"."""
    if field.kind == LIST:
        items = _as_list(value)
        return items or None
    if isinstance(value, str) and not value.strip():
        return None
    if value is None:
        return None
    if field.kind == DATE:
        return _parse_date(field, value)
    if field.kind == BOOL:
        if isinstance(value, bool):
            return value
        text = str(value).strip().lower()
        if text in _TRUTHY:
            return True
        if text in _FALSY:
            return False
        raise ValidationError(f"{field.name} must be true or false, got '{value}'", field=field.name)
    text = _clean(value)
    if field.choices:
        return _match_choice(field, text)
    return text


def _to_float(value) -> float | None:
    try:
        number = float(value)
    except (TypeError, ValueError):
        return None
    return number if math.isfinite(number) else None


def normalize_coordinates(lat, lng) -> dict | None:
    """{"lat", "lng"} only when both parse as finite numbers."""
    lat_f, lng_f = _to_float(lat), _to_float(lng)
    if lat_f is None or lng_f is None:
        return None
    return {"lat": lat_f, "lng": lng_f}


def parse_body_content(raw) -> tuple[list[dict], list[str]]:
    """Parse the block editor payload into ordered content blocks.

    Never fails: an unparsable payload gives an empty body, and malformed
    blocks are skipped. Both cases are reported as ParseDegraded warnings.
    """
    if raw is None or (isinstance(raw, str) and not raw.strip()):
        return [], []
    data = raw
    if isinstance(raw, str):
        try:
            data = json.loads(raw)
        except ValueError as exc:
            logger.warning("Body content JSON could not be parsed: %s", exc)
            degraded = ParseDegraded("Body content could not be parsed and was left empty.")
            return [], [degraded.message]
    if not isinstance(data, list):
        logger.warning("Body content is a %s, expected a list of blocks", type(data).__name__)
        return [], [ParseDegraded("Body content was not a list of blocks and was left empty.").message]

    blocks, warnings = [], []
    for position, block in enumerate(data):
        if not isinstance(block, dict) or block.get("type") not in BLOCK_TYPES:
            logger.warning("Dropping malformed body block at position %d: %r", position, block)
            warnings.append(ParseDegraded(f"Block {position} was malformed and was dropped.").message)
            continue
        try:
            order = int(block.get("order", position))
        except (TypeError, ValueError):
            order = position
        blocks.append({"type": block["type"], "content": block.get("content"), "order": order})
    return blocks, warnings


def normalize_submission(raw_fields: dict, category: str | None = None,
                         stored_slug: str | None = None) -> NormalizedItem:
    raw = dict(raw_fields)
    category = category if category is not None else raw.get("category")
    variant = find_variant(category)
    if variant is None:
        raise UnknownCategory(str(category), status_code=400)

    title = _clean(raw.get("title"))
    if not title:
        raise ValidationError("Title is required", field="title")
    typed_slug = _clean(raw.get("slug"))
    if typed_slug:
        slug = "-".join(typed_slug.lower().split())
        if _SLUG_FORBIDDEN.search(slug):
            raise ValidationError(f"Slug '{slug}' is not URL-safe", field="slug")
    elif stored_slug:
        # Renaming an item never moves its URL
        slug = stored_slug
    else:
        slug = make_slug(title)
        if not slug:
            raise ValidationError(f"Cannot derive a slug from title '{title}'", field="slug")

    fields: dict[str, Any] = {"title": title, "slug": slug, "category": variant.category}

    status = _clean(raw.get("status"))
    if status is not None:
        if status.lower() not in STATUSES:
            raise ValidationError(f"Status must be draft or published, got '{status}'", field="status")
        fields["status"] = status.lower()
    if "thumbnail" in raw:
        fields["thumbnail"] = _clean(raw.get("thumbnail"))
    if raw.get("tags") is not None:
        fields["tags"] = _as_list(raw["tags"])

    warnings: list[str] = []
    body_key = "bodyContentJSON" if "bodyContentJSON" in raw else "bodyContent"
    if body_key in raw:
        fields["bodyContent"], warnings = parse_body_content(raw[body_key])

    # The form sends a generic subType, storage wants the variant's own field
    if variant.sub_type_field:
        sub_type = _clean(raw.get(variant.sub_type_field)) or _clean(raw.get("subType"))
        raw[variant.sub_type_field] = sub_type

    for alias, canonical in variant.date_aliases:
        if _clean(raw.get(canonical)) is None and _clean(raw.get(alias)) is not None:
            raw[canonical] = raw[alias]

    for field in variant.fields:
        if field.kind == GEO:
            coords = raw.get("coordinates") if isinstance(raw.get("coordinates"), dict) else {}
            lat = raw.get("lat") if raw.get("lat") is not None else coords.get("lat")
            lng = raw.get("lng") if raw.get("lng") is not None else coords.get("lng")
            value = normalize_coordinates(lat, lng)
        else:
            value = _coerce(field, raw.get(field.name))
        if value is not None:
            fields[field.name] = value

    return NormalizedItem(variant=variant, fields=fields, warnings=warnings)


def _object_id(item_id: str) -> ObjectId:
    try:
        return ObjectId(item_id)
    except (InvalidId, TypeError):
        raise NotFound("Item not found")


def create_item(collection: Collection, raw_fields: dict, author_id: str) -> tuple[dict, list[str]]:
    normalized = normalize_submission(raw_fields)
    now = datetime.now(timezone.utc)
    doc = {
        "tags": [],
        "bodyContent": [],
        "status": settings.DEFAULT_ITEM_STATUS,
        **normalized.fields,
        "author": author_id,
        "createdAt": now,
        "updatedAt": now,
    }
    try:
        doc["_id"] = collection.insert_one(doc).inserted_id
    except DuplicateKeyError:
        logger.info("Rejected create, slug already taken: %s", doc["slug"])
        raise DuplicateSlug(doc["slug"])

    logger.info("Created %s entry %s (%s)", doc["category"], doc["slug"], doc["_id"])
    return serialize_item(doc), normalized.warnings


def update_item(collection: Collection, item_id: str, raw_fields: dict) -> tuple[dict, list[str]]:
    oid = _object_id(item_id)
    current = collection.find_one({"_id": oid}, {"category": 1, "slug": 1})
    if not current:
        raise NotFound("Item not found")

    normalized = normalize_submission(raw_fields, stored_slug=current.get("slug"))
    fields = normalized.fields
    new_category = fields["category"]
    old_category = current.get("category")

    # The variant tag goes first, on its own, before any variant field changes
    category_changed = old_category != new_category
    if category_changed:
        logger.info("Category change for %s: %s -> %s", item_id, old_category, new_category)
        collection.update_one({"_id": oid}, {"$set": {"category": new_category}})

    # Fields of any other variant must not survive the switch
    keep = set(normalized.variant.field_names)
    stale = [f for f in dict.fromkeys(ALL_VARIANT_FIELDS + SUBTYPE_FIELDS) if f not in keep]
    update = {"$set": {**fields, "updatedAt": datetime.now(timezone.utc)}}
    if stale:
        update["$unset"] = dict.fromkeys(stale, "")
    try:
        collection.update_one({"_id": oid}, update)
    except DuplicateKeyError:
        if category_changed:
            collection.update_one({"_id": oid}, {"$set": {"category": old_category}})
        logger.info("Rejected update of %s, slug already taken: %s", item_id, fields["slug"])
        raise DuplicateSlug(fields["slug"])
    except PyMongoError:
        if category_changed:
            logger.warning("Update of %s failed, restoring category %s", item_id, old_category)
            collection.update_one({"_id": oid}, {"$set": {"category": old_category}})
        raise

    logger.info("Updated %s entry %s (%s)", new_category, fields["slug"], item_id)
    return serialize_item(collection.find_one({"_id": oid})), normalized.warnings


def delete_item(collection: Collection, item_id: str) -> None:
    result = collection.delete_one({"_id": _object_id(item_id)})
    if result.deleted_count == 0:
        raise NotFound("Item not found")
    logger.info("Deleted entry %s", item_id)


def get_edit_view(collection: Collection, item_id: str) -> dict:
    """Stored item with the generic subType filled in for the edit form."""
    doc = collection.find_one({"_id": _object_id(item_id)})
    if not doc:
        raise NotFound("Item not found")
    item = serialize_item(doc)
    variant = find_variant(item.get("category"))
    candidates = ([variant.sub_type_field] if variant and variant.sub_type_field else []) + list(SUBTYPE_FIELDS)
    item["subType"] = next((item[f] for f in candidates if item.get(f)), "")
    return item
