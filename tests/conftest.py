from datetime import datetime, timedelta, timezone

import mongomock
import pytest
from fastapi.testclient import TestClient

from app.db import ensure_indexes, get_items_collection
from app.main import app
from app.utils import create_access_token

BASE_TIME = datetime(2024, 1, 1, tzinfo=timezone.utc)


@pytest.fixture
def collection():
    col = mongomock.MongoClient().db.archive_items
    ensure_indexes(col)
    return col


@pytest.fixture
def client(collection):
    # no context manager: the lifespan would try to reach a real MongoDB
    app.dependency_overrides[get_items_collection] = lambda: collection
    yield TestClient(app)
    app.dependency_overrides.clear()


def auth_header(user_id: str, role: str = "user") -> dict:
    token = create_access_token(user_id, role)
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture
def staff_headers():
    return auth_header("staff-1", "admin")


@pytest.fixture
def add_item(collection):
    """Insert a stored document directly, bypassing the lifecycle manager."""
    counter = {"n": 0}

    def _add(title, category, status="published", age_days=0, **fields):
        counter["n"] += 1
        doc = {
            "title": title,
            "slug": fields.pop("slug", f"{title.lower().replace(' ', '-')}-{counter['n']}"),
            "category": category,
            "status": status,
            "tags": fields.pop("tags", []),
            "bodyContent": fields.pop("bodyContent", []),
            "author": fields.pop("author", "author-1"),
            "createdAt": BASE_TIME - timedelta(days=age_days),
            **fields,
        }
        collection.insert_one(doc)
        return doc

    return _add
