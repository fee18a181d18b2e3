import json
import threading
from datetime import datetime

import pytest
from bson import ObjectId
from pymongo.errors import OperationFailure

from app.errors import DuplicateSlug, NotFound, UnknownCategory, ValidationError
from app.services import lifecycle
from app.services.lifecycle import normalize_coordinates, normalize_submission, parse_body_content


def submission(**fields):
    base = {"title": "Central Bus Stand", "category": "transport"}
    base.update(fields)
    return base


class RecordingCollection:
    """Passes everything through to the wrapped collection, remembering update_one calls."""

    def __init__(self, inner):
        self.inner = inner
        self.updates = []

    def update_one(self, flt, update, *args, **kwargs):
        self.updates.append(update)
        return self.inner.update_one(flt, update, *args, **kwargs)

    def __getattr__(self, name):
        return getattr(self.inner, name)


# normalize_submission

def test_generic_sub_type_is_stored_on_category_field():
    fields = normalize_submission(submission(subType="Bus")).fields
    assert fields["transportType"] == "Bus"
    assert "subType" not in fields


def test_sub_type_mapping_for_emergency_services_alias():
    fields = normalize_submission(submission(category="Emergency services", subType="police")).fields
    assert fields["category"] == "emergency-services"
    assert fields["serviceType"] == "Police"
    assert "subType" not in fields


def test_institution_keeps_sub_type_field_name():
    fields = normalize_submission(submission(category="institution", subType="Educational")).fields
    assert fields["subType"] == "Educational"


def test_specific_field_wins_over_generic_sub_type():
    fields = normalize_submission(submission(subType="Bus", transportType="Train")).fields
    assert fields["transportType"] == "Train"


def test_sub_type_outside_enum_is_rejected():
    with pytest.raises(ValidationError) as exc:
        normalize_submission(submission(subType="Boat"))
    assert exc.value.field == "transportType"


def test_free_sub_type_without_enum():
    fields = normalize_submission(
        submission(category="notable-people", title="Poet", subType="Poet")).fields
    assert fields["subType"] == "Poet"


def test_sub_type_ignored_for_flat_category():
    fields = normalize_submission(submission(category="tourist-spots", subType="Lake")).fields
    assert "subType" not in fields


def test_unknown_category_is_rejected():
    with pytest.raises(UnknownCategory) as exc:
        normalize_submission(submission(category="sports"))
    assert exc.value.status_code == 400
    with pytest.raises(UnknownCategory):
        normalize_submission(submission(category=None))


def test_explicit_category_argument_overrides_payload():
    normalized = normalize_submission(submission(category="sports"), "culture")
    assert normalized.variant.category == "culture"


def test_title_required():
    with pytest.raises(ValidationError) as exc:
        normalize_submission(submission(title="   "))
    assert exc.value.field == "title"


def test_slug_defaults_to_title_and_is_checked():
    assert normalize_submission(submission()).fields["slug"] == "central-bus-stand"
    assert normalize_submission(submission(slug="Bus Stand 2")).fields["slug"] == "bus-stand-2"
    with pytest.raises(ValidationError):
        normalize_submission(submission(slug="bus/stand"))


def test_slug_derived_from_title_drops_unsafe_characters():
    assert normalize_submission(submission(title="Who Built the Station?")).fields["slug"] == \
        "who-built-the-station"
    assert normalize_submission(submission(title="Bus/Train Junction")).fields["slug"] == \
        "bus-train-junction"
    assert normalize_submission(submission(title="50% #1 Stop")).fields["slug"] == "50-1-stop"
    with pytest.raises(ValidationError) as exc:
        normalize_submission(submission(title="???"))
    assert exc.value.field == "slug"


def test_status_is_validated():
    assert normalize_submission(submission(status="Draft")).fields["status"] == "draft"
    assert "status" not in normalize_submission(submission()).fields
    with pytest.raises(ValidationError):
        normalize_submission(submission(status="archived"))


def test_list_fields_accept_comma_separated_text():
    fields = normalize_submission(submission(
        tags="bus, travel ,", destinations="Saidpur,Nilphamari")).fields
    assert fields["tags"] == ["bus", "travel"]
    assert fields["destinations"] == ["Saidpur", "Nilphamari"]


def test_unknown_and_foreign_fields_are_dropped():
    fields = normalize_submission(submission(
        favouriteColour="blue", sectorNo="7", entryFee="Free")).fields
    assert "favouriteColour" not in fields
    assert "sectorNo" not in fields
    assert "entryFee" not in fields


def test_bool_and_enum_fields():
    fields = normalize_submission(submission(category="emergency-services", is24Hours="on")).fields
    assert fields["is24Hours"] is True
    fields = normalize_submission(submission(
        category="occupation", title="Weaving", occupationStatus="declining")).fields
    assert fields["occupationStatus"] == "Declining"
    with pytest.raises(ValidationError):
        normalize_submission(submission(category="emergency-services", is24Hours="sometimes"))


@pytest.mark.parametrize("lat, lng, expected", [
    ("26.1", "89.0", {"lat": 26.1, "lng": 89.0}),
    (26.1, 89, {"lat": 26.1, "lng": 89.0}),
    ("26.1", "", None),
    ("abc", "89.0", None),
    ("nan", "89.0", None),
    ("26.1", "inf", None),
    (None, None, None),
])
def test_normalize_coordinates(lat, lng, expected):
    assert normalize_coordinates(lat, lng) == expected


def test_coordinates_only_stored_when_both_valid():
    assert normalize_submission(submission(lat="26.1", lng="89.0")).fields["coordinates"] == \
        {"lat": 26.1, "lng": 89.0}
    assert "coordinates" not in normalize_submission(submission(lat="26.1", lng="x")).fields
    assert "coordinates" not in normalize_submission(submission(lat="26.1")).fields


def test_date_aliases_map_to_variant_field():
    fields = normalize_submission(submission(
        category="heartbreaking-stories", title="Flood", eventDate="1988-09-01")).fields
    assert fields["dateOfIncident"] == datetime(1988, 9, 1)
    assert "eventDate" not in fields

    fields = normalize_submission(submission(
        category="history", title="Railway", eventDate="1874-01-15")).fields
    assert fields["eventDate"] == datetime(1874, 1, 15)

    fields = normalize_submission(submission(
        category="institution", title="School", date="1950-03-01")).fields
    assert fields["establishedDate"] == datetime(1950, 3, 1)


def test_bad_date_is_a_validation_error():
    with pytest.raises(ValidationError) as exc:
        normalize_submission(submission(category="institution", establishedDate="last year"))
    assert exc.value.field == "establishedDate"


# body content

def test_body_content_parses_blocks_and_keeps_order():
    raw = json.dumps([
        {"type": "paragraph", "content": "c", "order": 2},
        {"type": "heading", "content": "a", "order": 0},
        {"type": "image", "content": {"url": "x.jpg"}, "order": 1},
    ])
    blocks, warnings = parse_body_content(raw)
    assert warnings == []
    assert [b["order"] for b in blocks] == [2, 0, 1]
    assert blocks[2]["content"] == {"url": "x.jpg"}


def test_body_content_parse_failure_degrades_to_empty():
    blocks, warnings = parse_body_content("[{not json")
    assert blocks == []
    assert len(warnings) == 1

    blocks, warnings = parse_body_content('{"type": "paragraph"}')
    assert blocks == []
    assert len(warnings) == 1


def test_body_content_drops_malformed_blocks_and_defaults_order():
    blocks, warnings = parse_body_content([
        {"type": "paragraph", "content": "kept"},
        "loose text",
        {"type": "hologram", "content": "?"},
        {"type": "quote", "content": "also kept", "order": "x"},
    ])
    assert [(b["content"], b["order"]) for b in blocks] == [("kept", 0), ("also kept", 3)]
    assert len(warnings) == 2


def test_empty_body_is_not_a_warning():
    assert parse_body_content("") == ([], [])
    assert parse_body_content(None) == ([], [])


# create / update / delete

def test_create_sets_system_fields(collection):
    item, warnings = lifecycle.create_item(collection, submission(subType="Bus"), "author-1")
    stored = collection.find_one({"slug": "central-bus-stand"})
    assert warnings == []
    assert item["id"] == str(stored["_id"])
    assert stored["author"] == "author-1"
    assert stored["status"] == "published"
    assert stored["transportType"] == "Bus"
    assert "subType" not in stored
    assert stored["bodyContent"] == []
    assert stored["tags"] == []
    assert stored["createdAt"] is not None


def test_create_with_broken_body_still_succeeds(collection):
    item, warnings = lifecycle.create_item(
        collection, submission(bodyContentJSON="{{broken"), "author-1")
    assert item["bodyContent"] == []
    assert warnings
    assert collection.count_documents({}) == 1


def test_duplicate_slug_on_create(collection):
    lifecycle.create_item(collection, submission(), "author-1")
    with pytest.raises(DuplicateSlug) as exc:
        lifecycle.create_item(collection, submission(category="culture"), "author-2")
    assert exc.value.slug == "central-bus-stand"
    assert collection.count_documents({"slug": "central-bus-stand"}) == 1


def test_body_order_survives_update(collection):
    item, _ = lifecycle.create_item(collection, submission(), "author-1")
    blocks = [
        {"type": "paragraph", "content": "third", "order": 2},
        {"type": "paragraph", "content": "first", "order": 0},
        {"type": "paragraph", "content": "second", "order": 1},
    ]
    updated, _ = lifecycle.update_item(collection, item["id"], submission(bodyContentJSON=json.dumps(blocks)))
    stored = sorted(updated["bodyContent"], key=lambda b: b["order"])
    assert [b["order"] for b in stored] == [0, 1, 2]
    assert [b["content"] for b in stored] == ["first", "second", "third"]


def test_update_keeps_author_and_creation_time(collection):
    item, _ = lifecycle.create_item(collection, submission(), "author-1")
    before = collection.find_one({"slug": "central-bus-stand"})
    updated, _ = lifecycle.update_item(collection, item["id"], submission(title="Renamed", slug="central-bus-stand"))
    after = collection.find_one({"slug": "central-bus-stand"})
    assert updated["title"] == "Renamed"
    assert after["author"] == "author-1"
    assert after["createdAt"] == before["createdAt"]


def test_category_change_writes_tag_first_and_drops_old_variant(collection):
    item, _ = lifecycle.create_item(
        collection, submission(subType="Bus", destinations="Saidpur", address="Station Road"), "author-1")
    recording = RecordingCollection(collection)

    updated, _ = lifecycle.update_item(recording, item["id"], submission(
        category="emergency-services", subType="Ambulance", address="Station Road"))

    assert recording.updates[0] == {"$set": {"category": "emergency-services"}}
    assert len(recording.updates) == 2
    assert updated["category"] == "emergency-services"
    assert updated["serviceType"] == "Ambulance"
    assert updated["address"] == "Station Road"
    assert "transportType" not in updated
    assert "destinations" not in updated


def test_update_without_category_change_is_a_single_write(collection):
    item, _ = lifecycle.create_item(collection, submission(subType="Bus"), "author-1")
    recording = RecordingCollection(collection)
    lifecycle.update_item(recording, item["id"], submission(subType="Train"))
    assert len(recording.updates) == 1


def test_duplicate_slug_on_update_restores_category(collection):
    lifecycle.create_item(collection, submission(title="Taken"), "author-1")
    item, _ = lifecycle.create_item(collection, submission(), "author-1")

    with pytest.raises(DuplicateSlug):
        lifecycle.update_item(collection, item["id"], submission(category="culture", slug="taken"))
    stored = collection.find_one({"_id": ObjectId(item["id"])})
    assert stored["category"] == "transport"
    assert stored["slug"] == "central-bus-stand"


def test_update_missing_item(collection):
    with pytest.raises(NotFound):
        lifecycle.update_item(collection, str(ObjectId()), submission())
    with pytest.raises(NotFound):
        lifecycle.update_item(collection, "not-an-id", submission())


def test_delete(collection):
    item, _ = lifecycle.create_item(collection, submission(), "author-1")
    lifecycle.delete_item(collection, item["id"])
    assert collection.count_documents({}) == 0
    with pytest.raises(NotFound):
        lifecycle.delete_item(collection, item["id"])


def test_edit_view_fills_generic_sub_type(collection, add_item):
    item, _ = lifecycle.create_item(collection, submission(subType="Train"), "author-1")
    assert lifecycle.get_edit_view(collection, item["id"])["subType"] == "Train"

    legacy = add_item("Old Entry", "Emergency services", serviceType="Fire")
    assert lifecycle.get_edit_view(collection, str(legacy["_id"]))["subType"] == "Fire"

    flat, _ = lifecycle.create_item(collection, submission(category="tourist-spots", title="Lake"), "a")
    assert lifecycle.get_edit_view(collection, flat["id"])["subType"] == ""


def test_rename_without_slug_keeps_stored_slug(collection):
    item, _ = lifecycle.create_item(collection, submission(), "author-1")
    updated, _ = lifecycle.update_item(collection, item["id"], submission(title="Central Bus Terminal"))
    assert updated["title"] == "Central Bus Terminal"
    assert updated["slug"] == "central-bus-stand"
    assert collection.count_documents({"slug": "central-bus-terminal"}) == 0


class AtomicInserts:
    """Applies each insert_one atomically, as the server does for a single-document write."""

    def __init__(self, inner):
        self.inner = inner
        self.lock = threading.Lock()

    def insert_one(self, *args, **kwargs):
        with self.lock:
            return self.inner.insert_one(*args, **kwargs)

    def __getattr__(self, name):
        return getattr(self.inner, name)


def test_concurrent_creates_with_same_slug(collection):
    workers = 8
    barrier = threading.Barrier(workers)
    shared = AtomicInserts(collection)
    outcomes = []
    lock = threading.Lock()

    def create():
        barrier.wait()
        try:
            lifecycle.create_item(shared, submission(), "author-1")
            outcome = "ok"
        except DuplicateSlug:
            outcome = "duplicate"
        with lock:
            outcomes.append(outcome)

    threads = [threading.Thread(target=create) for _ in range(workers)]
    for t in threads:
        t.start()
    for t in threads:
        t.join()

    assert sorted(outcomes) == ["duplicate"] * (workers - 1) + ["ok"]
    assert collection.count_documents({"slug": "central-bus-stand"}) == 1


class FailingSecondWrite(RecordingCollection):
    """Fails the field write that follows the category write."""

    def update_one(self, flt, update, *args, **kwargs):
        if len(self.updates) == 1:
            self.updates.append(update)
            raise OperationFailure("write failed")
        return super().update_one(flt, update, *args, **kwargs)


def test_storage_failure_on_update_restores_category(collection):
    item, _ = lifecycle.create_item(collection, submission(subType="Bus"), "author-1")
    failing = FailingSecondWrite(collection)

    with pytest.raises(OperationFailure):
        lifecycle.update_item(failing, item["id"], submission(category="culture"))

    assert failing.updates[-1] == {"$set": {"category": "transport"}}
    stored = collection.find_one({"_id": ObjectId(item["id"])})
    assert stored["category"] == "transport"
    assert stored["transportType"] == "Bus"
