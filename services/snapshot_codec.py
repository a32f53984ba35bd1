"""Canonical JSON serialization for revision snapshots."""

from __future__ import annotations

import dataclasses
import json
import re
import uuid
from datetime import date, datetime, timezone
from decimal import Decimal
from typing import Any, Dict, Mapping, Optional

from pydantic import BaseModel
from sqlalchemy import inspect as sa_inspect
from sqlalchemy.exc import NoInspectionAvailable

from services.revision_errors import SnapshotSerializationError

_CAMEL_BOUNDARY = re.compile(r"_([a-z0-9])")


def to_camel(name: str) -> str:
    return _CAMEL_BOUNDARY.sub(lambda match: match.group(1).upper(), name)


def as_utc(value: datetime) -> datetime:
    """Return ``value`` as an aware UTC datetime (naive values are taken as UTC)."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def _json_default(value: Any) -> Any:
    if isinstance(value, datetime):
        return as_utc(value).isoformat()
    if isinstance(value, date):
        return value.isoformat()
    if isinstance(value, uuid.UUID):
        return str(value)
    if isinstance(value, Decimal):
        return str(value)
    if isinstance(value, (set, frozenset)):
        return sorted(value, key=str)
    raise TypeError(f"Object of type {type(value).__name__} is not snapshot serializable")


def _mapped_columns(entity: Any) -> Optional[Dict[str, Any]]:
    try:
        state = sa_inspect(entity)
    except NoInspectionAvailable:
        return None
    mapper = getattr(state, "mapper", None)
    if mapper is None:
        return None
    return {to_camel(attr.key): getattr(entity, attr.key) for attr in mapper.column_attrs}


def entity_payload(entity: Any) -> Dict[str, Any]:
    """Extract the observable field set of ``entity`` as a plain mapping.

    Supported shapes, in order: objects exposing ``to_snapshot()``, mappings,
    pydantic models, dataclasses and SQLAlchemy mapped instances (column keys are
    camel-cased so snapshots read like the public API).
    """
    to_snapshot = getattr(entity, "to_snapshot", None)
    if callable(to_snapshot):
        payload = to_snapshot()
    elif isinstance(entity, Mapping):
        payload = dict(entity)
    elif isinstance(entity, BaseModel):
        payload = entity.model_dump(mode="json", by_alias=True)
    elif dataclasses.is_dataclass(entity) and not isinstance(entity, type):
        payload = dataclasses.asdict(entity)
    else:
        payload = _mapped_columns(entity)
    if not isinstance(payload, Mapping):
        raise SnapshotSerializationError(f"Cannot snapshot entity of type {type(entity).__name__}.")
    return dict(payload)


def canonicalize(payload: Mapping[str, Any]) -> str:
    """Serialize ``payload`` deterministically, independent of key insertion order."""
    try:
        return json.dumps(
            payload,
            sort_keys=True,
            separators=(",", ":"),
            ensure_ascii=False,
            allow_nan=False,
            default=_json_default,
        )
    except (TypeError, ValueError) as exc:
        raise SnapshotSerializationError(f"Snapshot payload is not serializable: {exc}") from exc


def parse_snapshot(serialized: Optional[str]) -> Any:
    """Parse a stored snapshot back into a JSON tree."""
    if serialized is None:
        raise SnapshotSerializationError("Snapshot is empty.")
    try:
        return json.loads(serialized)
    except (TypeError, ValueError) as exc:
        raise SnapshotSerializationError(f"Snapshot is not valid JSON: {exc}") from exc


def json_equal(left: Any, right: Any) -> bool:
    """Structural equality of two JSON trees.

    Booleans never equal numbers, and objects compare regardless of key order.
    """
    if isinstance(left, bool) or isinstance(right, bool):
        return isinstance(left, bool) and isinstance(right, bool) and left == right
    if isinstance(left, dict) and isinstance(right, dict):
        if left.keys() != right.keys():
            return False
        return all(json_equal(left[key], right[key]) for key in left)
    if isinstance(left, list) and isinstance(right, list):
        return len(left) == len(right) and all(json_equal(a, b) for a, b in zip(left, right))
    if isinstance(left, (int, float)) and isinstance(right, (int, float)):
        return left == right
    if type(left) is not type(right):
        return False
    return left == right


__all__ = [
    "as_utc",
    "canonicalize",
    "entity_payload",
    "json_equal",
    "parse_snapshot",
    "to_camel",
]
