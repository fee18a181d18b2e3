"""Load archive entries from a JSON file into a fresh database.

    python -m app.seed_archive_data [path/to/archive_data.json]

Each entry is a submission as the add-content form would send it and goes
through the same normalization as a staff create.
"""
import json
import os
import sys

from pymongo.collection import Collection

from app.errors import ArchiveError, DuplicateSlug
from app.services.lifecycle import create_item

SEED_AUTHOR = os.getenv("SEED_AUTHOR_ID", "seed")
DATA_FILE = os.path.join(os.path.dirname(__file__), "archive_data.json")


def seed_items(collection: Collection, entries: list[dict], author_id: str = SEED_AUTHOR) -> dict:
    counts = {"inserted": 0, "duplicates": 0, "rejected": 0}
    for entry in entries:
        try:
            create_item(collection, entry, author_id)
        except DuplicateSlug:
            counts["duplicates"] += 1
            print(f"⚠️ Slug already present, skipped: {entry.get('slug') or entry.get('title')}")
        except ArchiveError as e:
            counts["rejected"] += 1
            print(f"⚠️ Rejected {entry.get('title', 'Unknown')}: {e.message}")
        else:
            counts["inserted"] += 1
    return counts


if __name__ == "__main__":
    from app.db import archive_items, ensure_indexes

    path = sys.argv[1] if len(sys.argv) > 1 else DATA_FILE
    print("🚀 Starting archive data seeding...")
    with open(path, "r") as f:
        archive_data = json.load(f)

    ensure_indexes(archive_items)
    counts = seed_items(archive_items, archive_data)
    print("✅ Finished seeding!")
    print(f"✅ Inserted {counts['inserted']} documents, "
          f"{counts['duplicates']} duplicates, {counts['rejected']} rejected.")
