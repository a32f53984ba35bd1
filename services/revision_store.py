"""Append-only snapshot stores for entity revisions."""

from __future__ import annotations

import threading
import uuid
from abc import ABC, abstractmethod
from dataclasses import dataclass
from datetime import datetime
from typing import Dict, List, Optional

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from core.logging import get_logger
from models.revision import Revision
from services.revision_errors import RevisionNotFoundError, VersionConflictError
from services.snapshot_codec import as_utc

logger = get_logger(__name__)


@dataclass(frozen=True)
class RevisionRecord:
    id: str
    entity_id: str
    entity_type: str
    version: int
    serialized_snapshot: str
    created: datetime
    municipality_id: Optional[str] = None


def new_revision_id() -> str:
    return str(uuid.uuid4())


class RevisionStore(ABC):
    """Keyed ``(entity_id, version) -> snapshot`` storage that never rewrites a record."""

    @abstractmethod
    def get_latest(self, entity_id: str) -> Optional[RevisionRecord]:
        """Return the highest version stored for ``entity_id`` or ``None``."""

    @abstractmethod
    def find(self, entity_id: str, version: int) -> Optional[RevisionRecord]:
        """Return the revision at ``version`` or ``None``."""

    @abstractmethod
    def append(self, revision: RevisionRecord) -> RevisionRecord:
        """Persist ``revision``; raise :class:`VersionConflictError` if its version is taken."""

    @abstractmethod
    def list_all(self, entity_id: str) -> List[RevisionRecord]:
        """Return every revision of ``entity_id``, newest version first."""

    def get(self, entity_id: str, version: int) -> RevisionRecord:
        record = self.find(entity_id, version)
        if record is None:
            raise RevisionNotFoundError(entity_id, version)
        return record


def _row_to_record(row: Revision) -> RevisionRecord:
    return RevisionRecord(
        id=row.id,
        entity_id=row.entity_id,
        entity_type=row.entity_type,
        version=int(row.version),
        serialized_snapshot=row.serialized_snapshot,
        created=as_utc(row.created),
        municipality_id=row.municipality_id,
    )


class SqlRevisionStore(RevisionStore):
    """Revision store backed by the ``revision`` table.

    The ``uq_revision_entity_version`` constraint is the conflict check: a
    concurrent writer that lost the race gets an ``IntegrityError`` on commit,
    which surfaces as :class:`VersionConflictError`.
    """

    def __init__(self, session: Session) -> None:
        self._session = session

    def get_latest(self, entity_id: str) -> Optional[RevisionRecord]:
        row = (
            self._session.query(Revision)
            .filter(Revision.entity_id == entity_id)
            .order_by(Revision.version.desc())
            .first()
        )
        return _row_to_record(row) if row else None

    def find(self, entity_id: str, version: int) -> Optional[RevisionRecord]:
        row = (
            self._session.query(Revision)
            .filter(Revision.entity_id == entity_id, Revision.version == version)
            .first()
        )
        return _row_to_record(row) if row else None

    def append(self, revision: RevisionRecord) -> RevisionRecord:
        row = Revision(
            id=revision.id,
            entity_id=revision.entity_id,
            entity_type=revision.entity_type,
            version=revision.version,
            serialized_snapshot=revision.serialized_snapshot,
            municipality_id=revision.municipality_id,
            created=revision.created,
        )
        self._session.add(row)
        try:
            self._session.commit()
        except IntegrityError as exc:
            self._session.rollback()
            logger.info(
                "Revision append conflict entity_id=%s version=%s: %s",
                revision.entity_id,
                revision.version,
                exc.orig,
            )
            raise VersionConflictError(revision.entity_id, revision.version) from exc
        return revision

    def list_all(self, entity_id: str) -> List[RevisionRecord]:
        rows = (
            self._session.query(Revision)
            .filter(Revision.entity_id == entity_id)
            .order_by(Revision.version.desc())
            .all()
        )
        return [_row_to_record(row) for row in rows]


class InMemoryRevisionStore(RevisionStore):
    """Process-local revision store guarded by a single lock."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._revisions: Dict[str, Dict[int, RevisionRecord]] = {}

    def get_latest(self, entity_id: str) -> Optional[RevisionRecord]:
        with self._lock:
            versions = self._revisions.get(entity_id)
            if not versions:
                return None
            return versions[max(versions)]

    def find(self, entity_id: str, version: int) -> Optional[RevisionRecord]:
        with self._lock:
            return self._revisions.get(entity_id, {}).get(version)

    def append(self, revision: RevisionRecord) -> RevisionRecord:
        with self._lock:
            versions = self._revisions.setdefault(revision.entity_id, {})
            if revision.version in versions:
                raise VersionConflictError(revision.entity_id, revision.version)
            versions[revision.version] = revision
        return revision

    def list_all(self, entity_id: str) -> List[RevisionRecord]:
        with self._lock:
            versions = dict(self._revisions.get(entity_id, {}))
        return [versions[version] for version in sorted(versions, reverse=True)]


__all__ = [
    "InMemoryRevisionStore",
    "RevisionRecord",
    "RevisionStore",
    "SqlRevisionStore",
    "new_revision_id",
]
