"""Tests for event log forwarding."""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Any, Dict, List

import httpx
import pytest

from services import eventlog_client
from services.revision_store import RevisionRecord


def _revision(version: int) -> RevisionRecord:
    return RevisionRecord(
        id=f"rev-{version}",
        entity_id="note-1",
        entity_type="Note",
        version=version,
        serialized_snapshot="{}",
        created=datetime(2024, 1, 1, tzinfo=timezone.utc),
    )


@pytest.fixture()
def mock_transport(monkeypatch: pytest.MonkeyPatch):
    def _install(handler):
        real_client = httpx.Client

        def client_factory(*args: Any, **kwargs: Any) -> httpx.Client:
            kwargs["transport"] = httpx.MockTransport(handler)
            return real_client(*args, **kwargs)

        monkeypatch.setattr(eventlog_client.httpx, "Client", client_factory)
        monkeypatch.setattr(eventlog_client.time, "sleep", lambda _seconds: None)

    return _install


def test_build_event_shape() -> None:
    class NoteStub:
        case_id = "case-9"
        created_by = "agent01"
        modified_by = None

    metadata = eventlog_client.to_metadata_map(NoteStub(), _revision(1), _revision(0))
    created = datetime(2024, 2, 3, 4, 5, tzinfo=timezone.utc)
    event = eventlog_client.build_event(
        eventlog_client.EVENT_TYPE_UPDATE,
        "Noteringen har uppdaterats.",
        history_reference="rev-1",
        metadata=metadata,
        executed_by="operator",
        created=created,
    )

    assert event["created"] == created.isoformat()
    assert event["owner"] == "Notes"
    assert event["sourceType"] == "Note"
    assert event["type"] == "UPDATE"
    assert event["historyReference"] == "rev-1"
    assert {entry["key"]: entry["value"] for entry in event["metadata"]} == {
        "CaseId": "case-9",
        "CreatedBy": "agent01",
        "CurrentRevision": "rev-1",
        "CurrentVersion": "1",
        "PreviousRevision": "rev-0",
        "PreviousVersion": "0",
        "ExecutedBy": "operator",
    }


def test_create_event_is_skipped_without_url(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setattr(eventlog_client, "EVENTLOG_URL", "")

    def fail_post(*_args: Any, **_kwargs: Any) -> eventlog_client.EventDeliveryResult:
        raise AssertionError("no request expected")

    monkeypatch.setattr(eventlog_client, "_post_with_backoff", fail_post)

    result = eventlog_client.create_event("note-1", {"type": "CREATE"})

    assert result.status == "skipped"


def test_create_event_posts_to_log_key(mock_transport) -> None:
    requests: List[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        requests.append(request)
        return httpx.Response(200)

    mock_transport(handler)

    result = eventlog_client.create_event("note-1", {"type": "CREATE"}, base_url="http://eventlog.test/2281/")

    assert result.status == "delivered"
    assert result.attempts == 1
    assert str(requests[0].url) == "http://eventlog.test/2281/note-1"
    assert requests[0].method == "POST"


def test_create_event_retries_then_reports_failure(mock_transport) -> None:
    calls: Dict[str, int] = {"count": 0}

    def handler(request: httpx.Request) -> httpx.Response:
        calls["count"] += 1
        return httpx.Response(502, text="bad gateway")

    mock_transport(handler)

    result = eventlog_client.create_event("note-1", {"type": "DELETE"}, base_url="http://eventlog.test")

    assert result.status == "failed"
    assert result.attempts == eventlog_client.EVENTLOG_RETRIES
    assert calls["count"] == eventlog_client.EVENTLOG_RETRIES
    assert result.error == "bad gateway"


def test_transient_error_recovers(mock_transport) -> None:
    calls: Dict[str, int] = {"count": 0}

    def handler(request: httpx.Request) -> httpx.Response:
        calls["count"] += 1
        if calls["count"] == 1:
            raise httpx.ConnectError("refused", request=request)
        return httpx.Response(204)

    mock_transport(handler)

    result = eventlog_client._post_with_backoff("http://eventlog.test/note-1", {}, max_attempts=3)

    assert result.status == "delivered"
    assert result.attempts == 2
