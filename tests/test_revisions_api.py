from typing import Generator

import pytest
from fastapi.testclient import TestClient

from database import get_db
from models.revision import Revision
from web.main import app

BASE = "/api/v1/2281/notes"
UNKNOWN_ID = "8b0e4bd5-27f7-4b4f-a3a4-0f9f3d5b2c61"


@pytest.fixture()
def client(db_session, captured_events) -> Generator[TestClient, None, None]:
    def override_get_db():
        yield db_session

    app.dependency_overrides[get_db] = override_get_db
    try:
        yield TestClient(app)
    finally:
        app.dependency_overrides.pop(get_db, None)


def _note_with_two_versions(client: TestClient) -> str:
    created = client.post(
        BASE,
        json={
            "context": "SUPPORT",
            "role": "ROLE",
            "clientId": "client",
            "subject": "Old",
            "body": "Body",
            "createdBy": "agent01",
        },
    )
    note_id = created.headers["location"].rsplit("/", 1)[-1]
    client.patch(f"{BASE}/{note_id}", json={"subject": "New", "modifiedBy": "agent02"})
    return note_id


def test_list_revisions_newest_first(client):
    note_id = _note_with_two_versions(client)

    response = client.get(f"{BASE}/{note_id}/revisions")

    assert response.status_code == 200
    body = response.json()
    assert [revision["version"] for revision in body] == [1, 0]
    assert all(revision["entityId"] == note_id for revision in body)
    assert body[0]["entityType"] == "Note"


def test_list_revisions_of_unknown_note_is_empty(client):
    response = client.get(f"{BASE}/{UNKNOWN_ID}/revisions")

    assert response.status_code == 200
    assert response.json() == []


def test_difference_between_versions(client):
    note_id = _note_with_two_versions(client)

    response = client.get(f"{BASE}/{note_id}/difference", params={"source": 0, "target": 1})

    assert response.status_code == 200
    operations = {operation["path"]: operation for operation in response.json()["operations"]}
    assert operations["/subject"] == {"op": "replace", "path": "/subject", "value": "New", "fromValue": "Old"}
    assert operations["/modifiedBy"] == {"op": "replace", "path": "/modifiedBy", "value": "agent02", "fromValue": None}
    assert set(operations) == {"/modified", "/modifiedBy", "/subject"}


def test_difference_with_itself_is_empty(client):
    note_id = _note_with_two_versions(client)

    response = client.get(f"{BASE}/{note_id}/difference", params={"source": 1, "target": 1})

    assert response.json() == {"operations": []}


def test_difference_with_missing_version_is_404(client):
    note_id = _note_with_two_versions(client)

    response = client.get(f"{BASE}/{note_id}/difference", params={"source": 0, "target": 5})

    assert response.status_code == 404
    assert response.json()["detail"]["message"] == (
        f"No revision with entityId '{note_id}' and version '5' was found!"
    )


def test_difference_with_corrupt_snapshot_is_500(client, db_session):
    note_id = _note_with_two_versions(client)
    row = db_session.query(Revision).filter(Revision.entity_id == note_id, Revision.version == 1).one()
    row.serialized_snapshot = "{corrupt"
    db_session.commit()

    response = client.get(f"{BASE}/{note_id}/difference", params={"source": 0, "target": 1})

    assert response.status_code == 500
    assert response.json()["detail"]["code"] == "revision.corrupt"


def test_difference_requires_both_versions(client):
    assert client.get(f"{BASE}/{UNKNOWN_ID}/difference", params={"source": 0}).status_code == 422


def test_revision_routes_reject_malformed_note_id(client):
    assert client.get(f"{BASE}/not-a-uuid/revisions").status_code == 422
    response = client.get(f"{BASE}/not-a-uuid/difference", params={"source": 0, "target": 1})
    assert response.status_code == 422


@pytest.mark.parametrize("params", [{"source": -1, "target": 2}, {"source": 0, "target": -2}])
def test_difference_rejects_negative_versions(client, params):
    note_id = _note_with_two_versions(client)

    response = client.get(f"{BASE}/{note_id}/difference", params=params)

    assert response.status_code == 422
