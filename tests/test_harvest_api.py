"""
Field API driving a HarvestSession end to end (FastAPI TestClient).
"""

import pytest
from fastapi.testclient import TestClient

from harvest_tracker.app import create_app

FIELDS = {"cropType": "Tulsi", "quantityKg": "2.5", "operatorId": "F-100"}
FIX = {"latitude": 12.97, "longitude": 77.59}


@pytest.fixture
def client(test_config, ledger):
    return TestClient(create_app(config=test_config, ledger=ledger))


def _new_session(client):
    res = client.post("/api/v1/harvest/sessions")
    assert res.status_code == 200
    return res.json()["sessionId"]


def _ready_session(client):
    sid = _new_session(client)
    client.patch(f"/api/v1/harvest/sessions/{sid}/fields", json=FIELDS)
    client.post(f"/api/v1/harvest/sessions/{sid}/location", json=FIX)
    return sid


def test_health(client):
    assert client.get("/api/v1/harvest/_health").json()["ok"] is True


def test_new_session_is_editing(client):
    body = client.post("/api/v1/harvest/sessions").json()
    assert body["state"] == "editing"
    assert body["canSubmit"] is False
    assert body["location"]["state"] == "idle"
    assert body["result"] is None


def test_full_submission_flow(client, ledger):
    sid = _new_session(client)

    body = client.patch(f"/api/v1/harvest/sessions/{sid}/fields", json=FIELDS).json()
    assert body["form"]["quantityKg"] == 2.5
    assert body["canSubmit"] is False

    body = client.post(f"/api/v1/harvest/sessions/{sid}/location", json=FIX).json()
    assert body["location"]["state"] == "acquired"
    assert body["form"]["location"]["latitude"] == 12.97
    assert body["canSubmit"] is True

    res = client.post(f"/api/v1/harvest/sessions/{sid}/submit")
    assert res.status_code == 200
    body = res.json()
    assert body["state"] == "confirmed"
    batch_id = body["result"]["batchIdentifier"]
    assert batch_id.startswith("BATCH-")
    assert body["result"]["success"] is True
    assert body["links"]["verificationUrl"] == f"https://blockchain-verify.com/batch/{batch_id}"
    assert body["links"]["scanImageUrl"].startswith("https://api.qrserver.com/v1/create-qr-code/?size=200x200&data=")
    assert body["form"]["operatorId"] == "F-100"
    assert len(ledger.records) == 1

    qr = client.get(f"/api/v1/harvest/sessions/{sid}/qr.png")
    assert qr.status_code == 200
    assert qr.headers["content-type"] == "image/png"
    assert qr.content[:4] == b"\x89PNG"


def test_submit_without_location_is_422(client, ledger):
    sid = _new_session(client)
    client.patch(f"/api/v1/harvest/sessions/{sid}/fields", json=FIELDS)

    res = client.post(f"/api/v1/harvest/sessions/{sid}/submit")

    assert res.status_code == 422
    assert "location" in res.json()["detail"]
    assert client.get(f"/api/v1/harvest/sessions/{sid}").json()["state"] == "editing"
    assert ledger.records == []


def test_ledger_rejection_is_502_and_keeps_form(client, ledger):
    ledger.reject = "ledger offline"
    sid = _ready_session(client)

    res = client.post(f"/api/v1/harvest/sessions/{sid}/submit")

    assert res.status_code == 502
    body = client.get(f"/api/v1/harvest/sessions/{sid}").json()
    assert body["state"] == "editing"
    assert body["form"]["cropType"] == "Tulsi"
    assert body["lastError"]["type"] == "SubmissionRejected"
    assert body["result"] is None


def test_device_without_gps(client):
    sid = _new_session(client)
    body = client.post(f"/api/v1/harvest/sessions/{sid}/location", json={"unavailable": True}).json()
    assert body["location"]["state"] == "failed"
    assert body["location"]["capabilityAbsent"] is True


def test_location_error_reported_by_device(client):
    sid = _new_session(client)
    body = client.post(f"/api/v1/harvest/sessions/{sid}/location", json={"error": "User denied Geolocation"}).json()
    assert body["location"]["state"] == "failed"
    assert body["location"]["error"] == "User denied Geolocation"
    assert body["location"]["capabilityAbsent"] is False


def test_reset_after_confirmation(client):
    sid = _ready_session(client)
    client.post(f"/api/v1/harvest/sessions/{sid}/submit")

    body = client.post(f"/api/v1/harvest/sessions/{sid}/reset").json()

    assert body["state"] == "editing"
    assert body["form"]["cropType"] == ""
    assert body["form"]["location"] is None
    assert body["location"]["state"] == "idle"
    assert body["result"] is None


def test_conflicting_operations_are_409(client):
    sid = _new_session(client)
    assert client.post(f"/api/v1/harvest/sessions/{sid}/reset").status_code == 409
    assert client.get(f"/api/v1/harvest/sessions/{sid}/qr.png").status_code == 409

    sid = _ready_session(client)
    client.post(f"/api/v1/harvest/sessions/{sid}/submit")
    assert client.patch(f"/api/v1/harvest/sessions/{sid}/fields", json={"operatorId": "X"}).status_code == 409
    assert client.post(f"/api/v1/harvest/sessions/{sid}/submit").status_code == 409


def test_unknown_session_is_404(client):
    assert client.get("/api/v1/harvest/sessions/nope").status_code == 404
    assert client.post("/api/v1/harvest/sessions/nope/submit").status_code == 404


def test_delete_session(client):
    sid = _new_session(client)

    assert client.delete(f"/api/v1/harvest/sessions/{sid}").json() == {"ok": True, "sessionId": sid}
    assert client.get(f"/api/v1/harvest/sessions/{sid}").status_code == 404
    assert client.delete(f"/api/v1/harvest/sessions/{sid}").status_code == 404


def test_oldest_idle_session_is_evicted(test_config, ledger):
    client = TestClient(create_app(config={**test_config, "MAX_SESSIONS": 2}, ledger=ledger))
    first = _new_session(client)
    second = _new_session(client)
    client.get(f"/api/v1/harvest/sessions/{first}")

    third = _new_session(client)

    assert client.app.state.sessions.max_sessions == 2
    assert len(client.app.state.sessions) == 2
    assert client.get(f"/api/v1/harvest/sessions/{second}").status_code == 404
    assert client.get(f"/api/v1/harvest/sessions/{first}").status_code == 200
    assert client.get(f"/api/v1/harvest/sessions/{third}").status_code == 200
