"""Client for forwarding note lifecycle events to the event log service."""

from __future__ import annotations

import time
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

import httpx

from core.env import get_settings
from core.logging import get_logger
from services.revision_store import RevisionRecord

logger = get_logger(__name__)

_settings = get_settings()
EVENTLOG_URL = _settings.eventlog_url or ""
EVENTLOG_TIMEOUT = _settings.eventlog_timeout
EVENTLOG_RETRIES = _settings.eventlog_retries

EVENT_TYPE_CREATE = "CREATE"
EVENT_TYPE_UPDATE = "UPDATE"
EVENT_TYPE_DELETE = "DELETE"

OWNER = "Notes"
SOURCE_TYPE = "Note"
KEY_CREATED_BY = "CreatedBy"
KEY_MODIFIED_BY = "ModifiedBy"
KEY_EXECUTED_BY = "ExecutedBy"
KEY_CASE_ID = "CaseId"
KEY_PREVIOUS_REVISION = "PreviousRevision"
KEY_PREVIOUS_VERSION = "PreviousVersion"
KEY_CURRENT_REVISION = "CurrentRevision"
KEY_CURRENT_VERSION = "CurrentVersion"


@dataclass
class EventDeliveryResult:
    status: str
    attempts: int = 0
    error: Optional[str] = None


def to_metadata_map(
    note: Any,
    current: Optional[RevisionRecord],
    previous: Optional[RevisionRecord],
) -> Dict[str, str]:
    metadata: Dict[str, str] = {}
    if note is not None:
        if getattr(note, "case_id", None):
            metadata[KEY_CASE_ID] = note.case_id
        if getattr(note, "created_by", None):
            metadata[KEY_CREATED_BY] = note.created_by
        if getattr(note, "modified_by", None):
            metadata[KEY_MODIFIED_BY] = note.modified_by
    if current is not None:
        metadata[KEY_CURRENT_REVISION] = current.id
        metadata[KEY_CURRENT_VERSION] = str(current.version)
    if previous is not None:
        metadata[KEY_PREVIOUS_REVISION] = previous.id
        metadata[KEY_PREVIOUS_VERSION] = str(previous.version)
    return metadata


def build_event(
    event_type: str,
    message: str,
    *,
    history_reference: Optional[str],
    metadata: Optional[Dict[str, str]],
    executed_by: Optional[str],
    created: Optional[datetime] = None,
) -> Dict[str, Any]:
    entries: List[Dict[str, str]] = [{"key": key, "value": value} for key, value in (metadata or {}).items()]
    if executed_by:
        entries.append({"key": KEY_EXECUTED_BY, "value": executed_by})
    return {
        "created": (created or datetime.now(timezone.utc)).isoformat(),
        "historyReference": history_reference,
        "message": message,
        "owner": OWNER,
        "sourceType": SOURCE_TYPE,
        "type": event_type,
        "metadata": entries,
    }


def _post_with_backoff(
    url: str,
    payload: dict,
    *,
    timeout: float = EVENTLOG_TIMEOUT,
    max_attempts: int = EVENTLOG_RETRIES,
) -> EventDeliveryResult:
    delay = 0.5
    attempts = max(1, max_attempts)
    error_message: Optional[str] = None
    for attempt in range(1, attempts + 1):
        try:
            with httpx.Client(timeout=timeout) as client:
                response = client.post(url, json=payload)
                response.raise_for_status()
            return EventDeliveryResult(status="delivered", attempts=attempt)
        except httpx.HTTPStatusError as exc:
            logger.warning("Eventlog HTTP error (attempt %s/%s): %s", attempt, attempts, exc.response.text)
            error_message = exc.response.text
        except httpx.RequestError as exc:
            logger.warning("Eventlog request error (attempt %s/%s): %s", attempt, attempts, exc)
            error_message = str(exc)
        if attempt < attempts:
            time.sleep(delay)
            delay *= 2
    return EventDeliveryResult(status="failed", attempts=attempts, error=error_message)


def create_event(log_key: str, event: Dict[str, Any], *, base_url: Optional[str] = None) -> EventDeliveryResult:
    """POST ``event`` to ``{EVENTLOG_URL}/{log_key}``; a no-op when forwarding is disabled."""
    target_base = (base_url if base_url is not None else EVENTLOG_URL).rstrip("/")
    if not target_base:
        logger.debug("EVENTLOG_URL not configured; skipping %s event for %s.", event.get("type"), log_key)
        return EventDeliveryResult(status="skipped")
    result = _post_with_backoff(f"{target_base}/{log_key}", event)
    if result.status != "delivered":
        logger.error("Failed to forward %s event for %s: %s", event.get("type"), log_key, result.error)
    return result


__all__ = [
    "EVENT_TYPE_CREATE",
    "EVENT_TYPE_DELETE",
    "EVENT_TYPE_UPDATE",
    "EventDeliveryResult",
    "build_event",
    "create_event",
    "to_metadata_map",
]
