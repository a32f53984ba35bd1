import uuid
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from decimal import Decimal

import pytest
from pydantic import BaseModel

from models.note import Note
from services.revision_errors import SnapshotSerializationError
from services.snapshot_codec import (
    as_utc,
    canonicalize,
    entity_payload,
    json_equal,
    parse_snapshot,
    to_camel,
)


def test_canonicalize_is_independent_of_key_order():
    first = canonicalize({"b": 1, "a": {"y": 2, "x": 1}})
    second = canonicalize({"a": {"x": 1, "y": 2}, "b": 1})

    assert first == second == '{"a":{"x":1,"y":2},"b":1}'


def test_canonicalize_normalizes_datetimes_to_utc():
    aware = datetime(2024, 5, 1, 14, 0, tzinfo=timezone(timedelta(hours=2)))
    naive = datetime(2024, 5, 1, 12, 0)

    assert canonicalize({"at": aware}) == canonicalize({"at": naive})
    assert '"2024-05-01T12:00:00+00:00"' in canonicalize({"at": aware})


def test_canonicalize_handles_uuid_and_decimal():
    identifier = uuid.UUID("7c0c7d3e-3f4b-4a86-9a49-2f0b5d1b6a11")

    payload = parse_snapshot(canonicalize({"id": identifier, "amount": Decimal("1.50")}))

    assert payload == {"id": str(identifier), "amount": "1.50"}


def test_canonicalize_rejects_unserializable_values():
    with pytest.raises(SnapshotSerializationError):
        canonicalize({"value": object()})


def test_parse_snapshot_rejects_garbage():
    with pytest.raises(SnapshotSerializationError):
        parse_snapshot("{not json")
    with pytest.raises(SnapshotSerializationError):
        parse_snapshot(None)


def test_json_equal_keeps_booleans_apart_from_numbers():
    assert json_equal({"a": [1, 2]}, {"a": [1, 2]})
    assert json_equal(1, 1.0)
    assert not json_equal(True, 1)
    assert not json_equal({"a": 0}, {"a": False})
    assert not json_equal([1, 2], [2, 1])
    assert not json_equal({"a": 1}, {"a": 1, "b": None})


def test_entity_payload_camel_cases_mapped_columns():
    created = datetime(2024, 1, 2, 3, 4, 5, tzinfo=timezone.utc)
    note = Note(id="n-1", municipality_id="2281", case_id="c-1", created=created)

    payload = entity_payload(note)

    assert payload["id"] == "n-1"
    assert payload["municipalityId"] == "2281"
    assert payload["caseId"] == "c-1"
    assert payload["externalCaseId"] is None
    assert payload["created"] == created


def test_entity_payload_accepts_common_shapes():
    @dataclass
    class Item:
        id: str
        title: str

    class ItemModel(BaseModel):
        id: str
        title: str

    class Snapshotting:
        def to_snapshot(self):
            return {"id": "s-1"}

    assert entity_payload(Item(id="d-1", title="x")) == {"id": "d-1", "title": "x"}
    assert entity_payload(ItemModel(id="m-1", title="y")) == {"id": "m-1", "title": "y"}
    assert entity_payload({"id": "map-1"}) == {"id": "map-1"}
    assert entity_payload(Snapshotting()) == {"id": "s-1"}


def test_entity_payload_rejects_opaque_objects():
    with pytest.raises(SnapshotSerializationError):
        entity_payload(42)


def test_helpers():
    assert to_camel("external_case_id") == "externalCaseId"
    assert as_utc(datetime(2024, 1, 1)).tzinfo == timezone.utc


@pytest.mark.parametrize("value", [float("nan"), float("inf"), float("-inf")])
def test_canonicalize_rejects_non_finite_numbers(value):
    with pytest.raises(SnapshotSerializationError):
        canonicalize({"score": value})


def test_decimal_keeps_full_precision():
    serialized = canonicalize({"amount": Decimal("0.1000000000000000055511151231257827")})

    assert parse_snapshot(serialized) == {"amount": "0.1000000000000000055511151231257827"}
