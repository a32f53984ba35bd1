"""Persistence helpers for case notes."""

from __future__ import annotations

import math
import uuid
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from sqlalchemy.orm import Session

from core.env import get_settings
from core.logging import get_logger
from models.note import Note
from services import eventlog_client
from services.revision_service import RevisionService, revision_service_for
from services.revision_store import RevisionRecord

logger = get_logger(__name__)

UNKNOWN = "UNKNOWN"
NOTE_ENTITY_TYPE = "Note"
DEFAULT_PAGE = 1
DEFAULT_LIMIT = get_settings().notes_default_limit
MAX_LIMIT = get_settings().notes_max_limit

ERROR_NOTE_NOT_FOUND = "Note with id '{note_id}' not found"
EVENT_LOG_CREATE_NOTE = "Notering har skapats."
EVENT_LOG_UPDATE_NOTE = "Noteringen har uppdaterats."
EVENT_LOG_DELETE_NOTE = "Notering har raderats."

_UPDATABLE_FIELDS = (
    "subject",
    "body",
    "case_id",
    "case_type",
    "case_link",
    "external_case_id",
    "modified_by",
)


def _now() -> datetime:
    value = datetime.now(timezone.utc)
    return value.replace(microsecond=(value.microsecond // 1000) * 1000)


@dataclass(frozen=True)
class NoteRecord:
    id: str
    municipality_id: str
    party_id: Optional[str]
    context: Optional[str]
    client_id: Optional[str]
    role: Optional[str]
    subject: Optional[str]
    body: Optional[str]
    case_id: Optional[str]
    case_type: Optional[str]
    case_link: Optional[str]
    external_case_id: Optional[str]
    created_by: Optional[str]
    created: datetime
    modified_by: Optional[str]
    modified: Optional[datetime]


@dataclass(frozen=True)
class NotePage:
    notes: List[NoteRecord]
    page: int
    limit: int
    total_records: int
    total_pages: int


@dataclass(frozen=True)
class NoteUpdateResult:
    note: NoteRecord
    revision_id: Optional[str]


class NoteServiceError(RuntimeError):
    """Raised when note persistence fails."""


class NoteNotFoundError(NoteServiceError):
    """Raised when a note cannot be found within the municipality."""


def resolve_executing_user(sent_by_user: Optional[str], fallback: Optional[str] = None) -> str:
    """Prefer the ``sentbyuser`` header, then the request's author, then ``UNKNOWN``."""
    candidate = (sent_by_user or "").strip()
    if candidate and candidate != UNKNOWN:
        return candidate
    fallback_value = (fallback or "").strip()
    return fallback_value or UNKNOWN


def _row_to_note(row: Note) -> NoteRecord:
    return NoteRecord(
        id=row.id,
        municipality_id=row.municipality_id,
        party_id=row.party_id,
        context=row.context,
        client_id=row.client_id,
        role=row.role,
        subject=row.subject,
        body=row.body,
        case_id=row.case_id,
        case_type=row.case_type,
        case_link=row.case_link,
        external_case_id=row.external_case_id,
        created_by=row.created_by,
        created=row.created,
        modified_by=row.modified_by,
        modified=row.modified,
    )


def _load_note(session: Session, note_id: str, municipality_id: str) -> Note:
    row = (
        session.query(Note)
        .filter(Note.id == note_id, Note.municipality_id == municipality_id)
        .first()
    )
    if row is None:
        raise NoteNotFoundError(ERROR_NOTE_NOT_FOUND.format(note_id=note_id))
    return row


def _forward_event(
    event_type: str,
    message: str,
    note: Note,
    current: Optional[RevisionRecord],
    previous: Optional[RevisionRecord],
    executed_by: str,
) -> None:
    event = eventlog_client.build_event(
        event_type,
        message,
        history_reference=current.id if current else None,
        metadata=eventlog_client.to_metadata_map(note, current, previous),
        executed_by=executed_by,
    )
    eventlog_client.create_event(note.id, event)


def create_note(
    session: Session,
    *,
    municipality_id: str,
    context: str,
    role: str,
    client_id: str,
    subject: str,
    body: str,
    created_by: str,
    party_id: Optional[str] = None,
    case_id: Optional[str] = None,
    case_type: Optional[str] = None,
    case_link: Optional[str] = None,
    external_case_id: Optional[str] = None,
    executed_by: Optional[str] = None,
    revisions: Optional[RevisionService] = None,
) -> NoteRecord:
    note = Note(
        id=str(uuid.uuid4()),
        municipality_id=municipality_id,
        context=context,
        role=role,
        client_id=client_id,
        party_id=party_id,
        subject=subject,
        body=body,
        case_id=case_id,
        case_type=case_type,
        case_link=case_link,
        external_case_id=external_case_id,
        created_by=created_by,
        created=_now(),
    )
    session.add(note)
    session.commit()

    revisions = revisions or revision_service_for(session)
    revisions.create_revision(note, entity_type=NOTE_ENTITY_TYPE)
    current = revisions.get_latest_revision(note.id)
    _forward_event(
        eventlog_client.EVENT_TYPE_CREATE,
        EVENT_LOG_CREATE_NOTE,
        note,
        current,
        None,
        resolve_executing_user(executed_by, created_by),
    )
    logger.info("Created note %s in municipality %s.", note.id, municipality_id)
    return _row_to_note(note)


def get_note(session: Session, *, note_id: str, municipality_id: str) -> NoteRecord:
    return _row_to_note(_load_note(session, note_id, municipality_id))


def find_notes(
    session: Session,
    *,
    municipality_id: str,
    context: Optional[str] = None,
    role: Optional[str] = None,
    client_id: Optional[str] = None,
    party_id: Optional[str] = None,
    case_id: Optional[str] = None,
    page: Optional[int] = None,
    limit: Optional[int] = None,
) -> NotePage:
    safe_page = page if isinstance(page, int) and page >= 1 else DEFAULT_PAGE
    safe_limit = max(1, min(limit, MAX_LIMIT)) if isinstance(limit, int) else DEFAULT_LIMIT

    query = session.query(Note).filter(Note.municipality_id == municipality_id)
    filters: Dict[str, Any] = {
        "context": context,
        "role": role,
        "client_id": client_id,
        "party_id": party_id,
        "case_id": case_id,
    }
    for column, value in filters.items():
        if value is not None:
            query = query.filter(getattr(Note, column) == value)

    total_records = query.count()
    total_pages = math.ceil(total_records / safe_limit) if total_records else 0
    if safe_page > total_pages:
        rows: List[Note] = []
    else:
        rows = (
            query.order_by(Note.created.desc(), Note.id.asc())
            .offset((safe_page - 1) * safe_limit)
            .limit(safe_limit)
            .all()
        )
    return NotePage(
        notes=[_row_to_note(row) for row in rows],
        page=safe_page,
        limit=safe_limit,
        total_records=total_records,
        total_pages=total_pages,
    )


def update_note(
    session: Session,
    *,
    note_id: str,
    municipality_id: str,
    modified_by: str,
    subject: Optional[str] = None,
    body: Optional[str] = None,
    case_id: Optional[str] = None,
    case_type: Optional[str] = None,
    case_link: Optional[str] = None,
    external_case_id: Optional[str] = None,
    executed_by: Optional[str] = None,
    revisions: Optional[RevisionService] = None,
) -> NoteUpdateResult:
    note = _load_note(session, note_id, municipality_id)
    updates = {
        "subject": subject,
        "body": body,
        "case_id": case_id,
        "case_type": case_type,
        "case_link": case_link,
        "external_case_id": external_case_id,
        "modified_by": modified_by,
    }
    changed = False
    for field in _UPDATABLE_FIELDS:
        value = updates[field]
        if value is not None and getattr(note, field) != value:
            setattr(note, field, value)
            changed = True
    if changed:
        note.modified = _now()
        session.commit()

    revisions = revisions or revision_service_for(session)
    revision_id = revisions.create_revision(note, entity_type=NOTE_ENTITY_TYPE)
    if revision_id is not None:
        current = revisions.get_latest_revision(note.id)
        previous = revisions.get_revision(note.id, current.version - 1) if current else None
        _forward_event(
            eventlog_client.EVENT_TYPE_UPDATE,
            EVENT_LOG_UPDATE_NOTE,
            note,
            current,
            previous,
            resolve_executing_user(executed_by, modified_by),
        )
    else:
        logger.debug("Update of note %s changed nothing; no revision recorded.", note_id)
    return NoteUpdateResult(note=_row_to_note(note), revision_id=revision_id)


def delete_note(
    session: Session,
    *,
    note_id: str,
    municipality_id: str,
    executed_by: Optional[str] = None,
    revisions: Optional[RevisionService] = None,
) -> None:
    note = _load_note(session, note_id, municipality_id)
    session.delete(note)
    session.commit()

    revisions = revisions or revision_service_for(session)
    current = revisions.get_latest_revision(note_id)
    _forward_event(
        eventlog_client.EVENT_TYPE_DELETE,
        EVENT_LOG_DELETE_NOTE,
        note,
        current,
        None,
        resolve_executing_user(executed_by),
    )
    logger.info("Deleted note %s; %s revision(s) kept.", note_id, "no" if current is None else current.version + 1)


__all__ = [
    "NoteNotFoundError",
    "NotePage",
    "NoteRecord",
    "NoteServiceError",
    "NoteUpdateResult",
    "create_note",
    "delete_note",
    "find_notes",
    "get_note",
    "resolve_executing_user",
    "update_note",
]
