import math
from datetime import datetime, timezone

from pydantic import BaseModel

_EPOCH = datetime.min.replace(tzinfo=timezone.utc)


class SearchPage(BaseModel):
    title: str
    results: list[dict]
    query: str
    currentPage: int
    totalPages: int
    totalResults: int


def _created_at(item: dict) -> datetime:
    value = item.get("createdAt")
    if not isinstance(value, datetime):
        return _EPOCH
    # pymongo hands back naive UTC datetimes unless the client is tz_aware
    return value if value.tzinfo else value.replace(tzinfo=timezone.utc)


def title_tier(item: dict, query: str) -> int:
    """0 = title starts with query, 1 = title contains it, 2 = matched elsewhere."""
    title = str(item.get("title") or "").lower()
    needle = query.lower()
    if title.startswith(needle):
        return 0
    if needle in title:
        return 1
    return 2


def rank(items: list[dict], query: str) -> list[dict]:
    """Order search candidates: title prefix, then title substring, then newest first."""
    newest_first = sorted(items, key=_created_at, reverse=True)
    # sort is stable, so recency survives inside each tier
    return sorted(newest_first, key=lambda item: title_tier(item, query))


def paginate(ranked: list[dict], page: int, page_size: int, title: str, query: str) -> SearchPage:
    total = len(ranked)
    page = max(page, 1)
    start = (page - 1) * page_size
    return SearchPage(
        title=title,
        results=ranked[start:start + page_size],
        query=query,
        currentPage=page,
        totalPages=math.ceil(total / page_size),
        totalResults=total,
    )
