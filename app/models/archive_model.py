from datetime import datetime
from typing import Any, List, Optional

from bson import ObjectId
from pydantic import BaseModel, ConfigDict


class ContentBlock(BaseModel):
    type: str  # paragraph | heading | image | list | table | pdf | video | quote | link
    content: Any = None  # string, or an object for images/tables
    order: Optional[int] = None


class Coordinates(BaseModel):
    lat: float
    lng: float


class ArchiveItemIn(BaseModel):
    """Category-agnostic submission coming from the add/edit form.

    Variant fields ride along as extras; the lifecycle manager decides which
    of them belong to the selected category.
    """
    model_config = ConfigDict(extra="allow")

    title: Optional[str] = None
    slug: Optional[str] = None
    category: Optional[str] = None
    subType: Optional[str] = None
    status: Optional[str] = None
    thumbnail: Optional[str] = None
    tags: Optional[List[str] | str] = None
    bodyContentJSON: Optional[str | List[Any]] = None
    lat: Optional[str | float] = None
    lng: Optional[str | float] = None


class ArchiveItemOut(BaseModel):
    model_config = ConfigDict(extra="allow")

    id: str
    title: str
    slug: str
    category: str
    status: str
    author: Optional[str] = None
    thumbnail: Optional[str] = None
    tags: List[str] = []
    bodyContent: List[ContentBlock] = []
    createdAt: Optional[datetime] = None
    updatedAt: Optional[datetime] = None


class SavedItemOut(BaseModel):
    item: ArchiveItemOut
    warnings: List[str] = []


def serialize_item(doc: dict) -> dict:
    """Turn a stored document into a JSON-friendly dict (``_id`` -> ``id``)."""
    out = {k: v for k, v in doc.items() if k != "_id"}
    if "_id" in doc:
        out["id"] = str(doc["_id"])
    if isinstance(out.get("author"), ObjectId):
        out["author"] = str(out["author"])
    return out
