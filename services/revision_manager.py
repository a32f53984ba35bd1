"""Change detection and version allocation for entity revisions."""

from __future__ import annotations

import threading
from contextlib import contextmanager
from datetime import datetime, timezone
from typing import Any, Callable, Dict, Iterator, List, Optional

from core.env import get_settings
from core.logging import get_logger
from services.revision_errors import (
    RevisionConcurrencyError,
    SnapshotSerializationError,
    VersionConflictError,
)
from services.revision_store import RevisionRecord, RevisionStore, new_revision_id
from services.snapshot_codec import as_utc, canonicalize, entity_payload, json_equal, parse_snapshot

logger = get_logger(__name__)

DEFAULT_MAX_ATTEMPTS = get_settings().revision_max_attempts


def _now() -> datetime:
    return datetime.now(timezone.utc)


class _EntityLocks:
    """Reference-counted registry of one lock per entity id."""

    def __init__(self) -> None:
        self._guard = threading.Lock()
        self._locks: Dict[str, List[Any]] = {}

    @contextmanager
    def hold(self, entity_id: str) -> Iterator[None]:
        with self._guard:
            entry = self._locks.setdefault(entity_id, [threading.Lock(), 0])
            entry[1] += 1
        lock = entry[0]
        try:
            with lock:
                yield
        finally:
            with self._guard:
                entry[1] -= 1
                if entry[1] == 0:
                    self._locks.pop(entity_id, None)

    def __len__(self) -> int:
        with self._guard:
            return len(self._locks)


_PROCESS_LOCKS = _EntityLocks()


def _entity_identity(entity: Any, payload: Dict[str, Any]) -> str:
    entity_id = getattr(entity, "id", None)
    if entity_id is None:
        entity_id = payload.get("id")
    if entity_id is None or str(entity_id).strip() == "":
        raise SnapshotSerializationError("Entity has no identifier; cannot record a revision.")
    return str(entity_id)


def _entity_type(entity: Any, explicit: Optional[str]) -> str:
    if explicit:
        return explicit
    declared = getattr(entity, "entity_type", None)
    if isinstance(declared, str) and declared:
        return declared
    return type(entity).__name__


class RevisionManager:
    """Decides whether an entity mutation needs a new revision and records it."""

    def __init__(
        self,
        store: RevisionStore,
        *,
        max_attempts: Optional[int] = None,
        clock: Callable[[], datetime] = _now,
        locks: Optional[_EntityLocks] = None,
    ) -> None:
        self._store = store
        self._max_attempts = max(1, max_attempts or DEFAULT_MAX_ATTEMPTS)
        self._clock = clock
        self._locks = locks or _PROCESS_LOCKS

    def create_revision(
        self,
        entity: Any,
        *,
        entity_type: Optional[str] = None,
        created: Optional[datetime] = None,
    ) -> Optional[str]:
        """Record a new revision of ``entity`` when its state changed.

        Returns the new revision id, or ``None`` when the entity is structurally
        equal to its latest revision.
        """
        payload = entity_payload(entity)
        serialized = canonicalize(payload)
        current_tree = parse_snapshot(serialized)
        entity_id = _entity_identity(entity, payload)
        resolved_type = _entity_type(entity, entity_type)
        municipality_id = payload.get("municipalityId", getattr(entity, "municipality_id", None))

        with self._locks.hold(entity_id):
            for attempt in range(1, self._max_attempts + 1):
                latest = self._store.get_latest(entity_id)
                if latest is not None and self._unchanged(latest, current_tree):
                    logger.debug("No changes since revision %s of entity %s.", latest.version, entity_id)
                    return None

                version = 0 if latest is None else latest.version + 1
                timestamp = as_utc(created or self._clock())
                if latest is not None and timestamp < latest.created:
                    timestamp = latest.created
                record = RevisionRecord(
                    id=new_revision_id(),
                    entity_id=entity_id,
                    entity_type=resolved_type,
                    version=version,
                    serialized_snapshot=serialized,
                    created=timestamp,
                    municipality_id=str(municipality_id) if municipality_id is not None else None,
                )
                try:
                    self._store.append(record)
                except VersionConflictError:
                    logger.warning(
                        "Version %s of entity %s was taken by a concurrent writer (attempt %d/%d).",
                        version,
                        entity_id,
                        attempt,
                        self._max_attempts,
                    )
                    continue
                logger.info("Created revision %s (version %s) for %s %s.", record.id, version, resolved_type, entity_id)
                return record.id

        raise RevisionConcurrencyError(entity_id, self._max_attempts)

    @staticmethod
    def _unchanged(latest: RevisionRecord, current_tree: Any) -> bool:
        try:
            previous_tree = parse_snapshot(latest.serialized_snapshot)
        except SnapshotSerializationError as exc:
            logger.error(
                "Stored snapshot of entity %s version %s is unreadable, treating as changed: %s",
                latest.entity_id,
                latest.version,
                exc,
            )
            return False
        return json_equal(previous_tree, current_tree)


__all__ = ["DEFAULT_MAX_ATTEMPTS", "RevisionManager"]
