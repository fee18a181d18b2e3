import logging
import re

from pymongo.collection import Collection

from ..config import settings
from ..models.archive_model import serialize_item
from ..models.registry import SEARCHABLE_FIELDS, TEXT_BLOCK_TYPES
from .ranking import SearchPage, paginate, rank

logger = logging.getLogger(__name__)

ENVELOPE_SEARCH_FIELDS = ("title", "slug", "tags", "category")


def build_search_predicate(query_text: str | None) -> dict | None:
    """Mongo filter for a free-text query, or None when there is nothing to search.

    Plain case-insensitive substring matching: no tokenizing, no stemming.
    Array fields (tags, achievements, ...) match when any element matches.
    """
    text = (query_text or "").strip()
    if not text:
        return None
    pattern = re.compile(re.escape(text), re.IGNORECASE)
    clauses = [{field: pattern} for field in ENVELOPE_SEARCH_FIELDS]
    clauses.append({"bodyContent": {"$elemMatch": {
        "type": {"$in": list(TEXT_BLOCK_TYPES)},
        "content": pattern,
    }}})
    clauses.extend({field: pattern} for field in SEARCHABLE_FIELDS)
    return {"status": "published", "$or": clauses}


def search_items(collection: Collection, query_text: str | None, page: int = 1) -> SearchPage:
    query = (query_text or "").strip()
    predicate = build_search_predicate(query)
    if predicate is None:
        return SearchPage(title="Search Results", results=[], query="",
                          currentPage=1, totalPages=0, totalResults=0)

    # Ranking needs the whole candidate set before a page can be cut from it
    candidates = [serialize_item(doc) for doc in collection.find(predicate)]
    ranked = rank(candidates, query)
    logger.debug("Search %r matched %d items", query, len(ranked))
    return paginate(ranked, page, settings.SEARCH_PAGE_SIZE,
                    title=f"Search: {query}", query=query)
