import logging

from pymongo import ASCENDING, MongoClient
from pymongo.collection import Collection

from .config import settings

logger = logging.getLogger(__name__)

# MongoClient connects lazily, nothing is contacted until the first query
client = MongoClient(settings.MONGO_URI, serverSelectionTimeoutMS=settings.MONGO_TIMEOUT_MS)

# Every category variant lives in this one collection, tagged by "category"
db = client[settings.MONGO_DB_NAME]
archive_items = db["archive_items"]


def ensure_indexes(collection: Collection) -> None:
    """Create the indexes the archive relies on.

    The unique slug index is what makes concurrent creations with the same
    slug fail with a duplicate key error instead of both succeeding.
    """
    collection.create_index([("slug", ASCENDING)], unique=True, name="slug_unique")
    collection.create_index([("title", ASCENDING)], name="title")
    collection.create_index([("category", ASCENDING), ("status", ASCENDING)], name="category_status")
    logger.info("Indexes ensured on %s", collection.name)


def get_items_collection() -> Collection:
    return archive_items
