"""Exception types raised by the revisioning subsystem."""

from __future__ import annotations

from typing import Optional

REVISION_NOT_FOUND_FOR_ID_AND_VERSION = "No revision with entityId '{entity_id}' and version '{version}' was found!"
PROBLEM_DURING_DIFF = (
    "An error occured during diff of entityId '{entity_id}' looking at version '{source}' and version '{target}'!"
)


class RevisionServiceError(RuntimeError):
    """Base class for revision store, manager and diff failures."""


class RevisionNotFoundError(RevisionServiceError):
    """Raised when ``(entity_id, version)`` has no stored revision."""

    def __init__(self, entity_id: str, version: Optional[int]) -> None:
        super().__init__(REVISION_NOT_FOUND_FOR_ID_AND_VERSION.format(entity_id=entity_id, version=version))
        self.entity_id = entity_id
        self.version = version


class VersionConflictError(RevisionServiceError):
    """Raised by a store when another writer already holds ``(entity_id, version)``."""

    def __init__(self, entity_id: str, version: int) -> None:
        super().__init__(f"Revision version {version} already exists for entityId '{entity_id}'.")
        self.entity_id = entity_id
        self.version = version


class RevisionConcurrencyError(RevisionServiceError):
    """Raised when version allocation kept conflicting past the retry budget."""

    def __init__(self, entity_id: str, attempts: int) -> None:
        super().__init__(
            f"Could not allocate a revision version for entityId '{entity_id}' after {attempts} attempts."
        )
        self.entity_id = entity_id
        self.attempts = attempts


class SnapshotSerializationError(RevisionServiceError):
    """Raised when an entity or a stored snapshot cannot be (de)serialized."""


class RevisionDataCorruptionError(RevisionServiceError):
    """Raised when a diff touches a stored snapshot that no longer parses."""

    def __init__(self, entity_id: str, source: int, target: int) -> None:
        super().__init__(PROBLEM_DURING_DIFF.format(entity_id=entity_id, source=source, target=target))
        self.entity_id = entity_id
        self.source = source
        self.target = target


__all__ = [
    "PROBLEM_DURING_DIFF",
    "REVISION_NOT_FOUND_FOR_ID_AND_VERSION",
    "RevisionConcurrencyError",
    "RevisionDataCorruptionError",
    "RevisionNotFoundError",
    "RevisionServiceError",
    "SnapshotSerializationError",
    "VersionConflictError",
]
