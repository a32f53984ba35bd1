"""Public revisioning contract consumed by the note service and the HTTP layer."""

from __future__ import annotations

from datetime import datetime
from typing import Any, Dict, List, Optional

from sqlalchemy.orm import Session

from services.revision_diff import DiffEngine, Operation
from services.revision_manager import RevisionManager
from services.revision_store import RevisionRecord, RevisionStore, SqlRevisionStore

KEY_CURRENT_REVISION = "x-current-revision"
KEY_CURRENT_VERSION = "x-current-version"
KEY_PREVIOUS_REVISION = "x-previous-revision"
KEY_PREVIOUS_VERSION = "x-previous-version"


class RevisionService:
    """Thin composition of a store, a manager and a diff engine."""

    def __init__(self, store: RevisionStore, *, manager: Optional[RevisionManager] = None) -> None:
        self._store = store
        self._manager = manager or RevisionManager(store)
        self._diff = DiffEngine(store)

    def create_revision(
        self,
        entity: Any,
        *,
        entity_type: Optional[str] = None,
        created: Optional[datetime] = None,
    ) -> Optional[str]:
        return self._manager.create_revision(entity, entity_type=entity_type, created=created)

    def list_revisions(self, entity_id: str) -> List[RevisionRecord]:
        return self._store.list_all(entity_id)

    def diff(self, entity_id: str, source: int, target: int) -> List[Operation]:
        return self._diff.diff(entity_id, source, target)

    def get_latest_revision(self, entity_id: str) -> Optional[RevisionRecord]:
        return self._store.get_latest(entity_id)

    def get_revision(self, entity_id: str, version: int) -> Optional[RevisionRecord]:
        if version < 0:
            return None
        return self._store.find(entity_id, version)

    def revision_headers(self, entity_id: str, *, include_previous: bool = False) -> Dict[str, str]:
        """Headers describing the latest (and optionally the previous) revision.

        The previous revision is only looked up for updates; creates and deletes
        report the current revision alone.
        """
        headers: Dict[str, str] = {}
        latest = self.get_latest_revision(entity_id)
        if latest is None:
            return headers
        headers[KEY_CURRENT_REVISION] = latest.id
        headers[KEY_CURRENT_VERSION] = str(latest.version)
        if include_previous:
            previous = self.get_revision(entity_id, latest.version - 1)
            if previous is not None:
                headers[KEY_PREVIOUS_REVISION] = previous.id
                headers[KEY_PREVIOUS_VERSION] = str(previous.version)
        return headers


def revision_service_for(session: Session) -> RevisionService:
    return RevisionService(SqlRevisionStore(session))


__all__ = [
    "KEY_CURRENT_REVISION",
    "KEY_CURRENT_VERSION",
    "KEY_PREVIOUS_REVISION",
    "KEY_PREVIOUS_VERSION",
    "RevisionService",
    "revision_service_for",
]
