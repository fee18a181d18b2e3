from pymongo.collection import Collection

from ..errors import NotFound
from ..models.archive_model import serialize_item
from .auth_service import Principal


def can_view(item: dict, user: Principal | None) -> bool:
    """Drafts are only visible to their author and to staff."""
    if item.get("status") != "draft":
        return True
    return user is not None and (user.is_staff or user.owns(item))


def ordered_body(blocks: list[dict] | None) -> list[dict]:
    # blocks without an order (legacy data) go last, in stored sequence
    return sorted(blocks or [], key=lambda b: (b.get("order") is None, b.get("order") or 0))


def get_entry(collection: Collection, slug: str, user: Principal | None) -> dict:
    doc = collection.find_one({"slug": slug})
    # a hidden draft looks exactly like a missing entry
    if not doc or not can_view(doc, user):
        raise NotFound("Archive entry not found")
    item = serialize_item(doc)
    item["bodyContent"] = ordered_body(item.get("bodyContent"))
    return item
