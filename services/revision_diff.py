"""Structural, patch-style differences between two revision snapshots."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, List

from core.logging import get_logger
from services.revision_errors import RevisionDataCorruptionError, SnapshotSerializationError
from services.revision_store import RevisionStore
from services.snapshot_codec import json_equal, parse_snapshot

logger = get_logger(__name__)

_MISSING = object()

OP_ADD = "add"
OP_REMOVE = "remove"
OP_REPLACE = "replace"


@dataclass(frozen=True)
class Operation:
    """One change between two snapshots.

    ``value`` is unset for ``remove``; ``from_value`` is unset for ``add``. Unset
    is distinct from a JSON ``null`` value, hence the ``has_*`` flags.
    """

    op: str
    path: str
    value: Any = None
    from_value: Any = None
    has_value: bool = False
    has_from_value: bool = False

    def to_dict(self) -> Dict[str, Any]:
        payload: Dict[str, Any] = {"op": self.op, "path": self.path}
        if self.has_value:
            payload["value"] = self.value
        if self.has_from_value:
            payload["fromValue"] = self.from_value
        return payload

    def inverse(self) -> "Operation":
        if self.op == OP_ADD:
            return Operation(OP_REMOVE, self.path, from_value=self.value, has_from_value=True)
        if self.op == OP_REMOVE:
            return Operation(OP_ADD, self.path, value=self.from_value, has_value=True)
        return Operation(
            OP_REPLACE,
            self.path,
            value=self.from_value,
            from_value=self.value,
            has_value=True,
            has_from_value=True,
        )


def _escape(segment: str) -> str:
    return segment.replace("~", "~0").replace("/", "~1")


def _walk(source: Any, target: Any, path: str, out: List[Operation]) -> None:
    if isinstance(source, dict) and isinstance(target, dict):
        for key in set(source) | set(target):
            child = f"{path}/{_escape(str(key))}"
            _walk(source.get(key, _MISSING), target.get(key, _MISSING), child, out)
        return
    if source is _MISSING:
        out.append(Operation(OP_ADD, path, value=target, has_value=True))
    elif target is _MISSING:
        out.append(Operation(OP_REMOVE, path, from_value=source, has_from_value=True))
    elif not json_equal(source, target):
        out.append(
            Operation(
                OP_REPLACE,
                path,
                value=target,
                from_value=source,
                has_value=True,
                has_from_value=True,
            )
        )


def diff_trees(source: Any, target: Any) -> List[Operation]:
    """Diff two parsed snapshots, sorted by path.

    Objects are walked key by key; arrays and scalars are compared as whole
    values. A root-level type change is a single ``replace`` at path ``""``.
    """
    operations: List[Operation] = []
    _walk(source, target, "", operations)
    operations.sort(key=lambda operation: operation.path)
    return operations


class DiffEngine:
    """Loads two revisions of one entity from a store and diffs them."""

    def __init__(self, store: RevisionStore) -> None:
        self._store = store

    def diff(self, entity_id: str, source_version: int, target_version: int) -> List[Operation]:
        source = self._store.get(entity_id, source_version)
        target = self._store.get(entity_id, target_version)
        if source_version == target_version:
            return []
        try:
            source_tree = parse_snapshot(source.serialized_snapshot)
            target_tree = parse_snapshot(target.serialized_snapshot)
        except SnapshotSerializationError as exc:
            logger.error("Error occured during diff of entity %s: %s", entity_id, exc)
            raise RevisionDataCorruptionError(entity_id, source_version, target_version) from exc
        return diff_trees(source_tree, target_tree)


def operations_to_dicts(operations: List[Operation]) -> List[Dict[str, Any]]:
    return [operation.to_dict() for operation in operations]


__all__ = [
    "DiffEngine",
    "OP_ADD",
    "OP_REMOVE",
    "OP_REPLACE",
    "Operation",
    "diff_trees",
    "operations_to_dicts",
]
