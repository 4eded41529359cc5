# tests/integration/test_api_contract.py
from __future__ import annotations

from fastapi.testclient import TestClient

from apps.api.app_factory import create_app
from services.verification.errors import CaptureError
from services.verification.state_machine import VerificationService
from tests.fakes import PASSPORT_TEXT, BrokenImageStore, FakeOCR, FakeSink


def make_client(ocr=None, sink=None, intake_fn=None) -> TestClient:
    service = VerificationService(ocr=ocr or FakeOCR(), sink=sink or FakeSink())
    return TestClient(create_app(service=service, intake_fn=intake_fn))


def upload(client: TestClient):
    return client.post("/sessions", files={"file": ("cnic.jpg", b"fake-jpeg", "image/jpeg")})


def test_health():
    client = make_client()
    r = client.get("/health")
    assert r.status_code == 200
    assert r.json() == {"status": "healthy"}


def test_full_flow_to_submitted():
    sink = FakeSink()
    client = make_client(sink=sink)

    r = upload(client)
    assert r.status_code == 201
    j = r.json()
    sid = j["session_id"]
    assert j["state"]["status"] == "REVIEWING"
    assert j["state"]["extracted"]["document_number"] == "42101-1234567-8"

    r = client.put(f"/sessions/{sid}/fields/city", json={"value": "Karachi"})
    assert r.status_code == 200
    assert r.json()["user_input"]["city"] == "Karachi"

    r = client.post(f"/sessions/{sid}/validate")
    assert r.status_code == 200
    assert r.json()["decision"]["overall"] is True

    r = client.post(f"/sessions/{sid}/submit")
    assert r.status_code == 200
    assert r.json()["record"]["persisted_id"] == "rec-1"
    assert client.get(f"/sessions/{sid}").json()["status"] == "SUBMITTED"
    assert len(sink.records) == 1


def test_mismatch_returns_422_with_field_reasons():
    client = make_client()
    sid = upload(client).json()["session_id"]
    client.put(f"/sessions/{sid}/fields/document_number", json={"value": "42101-1234567-9"})

    r = client.post(f"/sessions/{sid}/submit")
    assert r.status_code == 422
    j = r.json()
    assert j["error"] == "field_mismatch"
    assert list(j["fields"]) == ["document_number"]
    assert j["state"]["status"] == "REVIEWING"


def test_rejected_document_returns_422_and_idle_session():
    client = make_client(ocr=FakeOCR(PASSPORT_TEXT))
    r = upload(client)
    assert r.status_code == 422
    j = r.json()
    assert j["error"] == "authenticity_rejected"
    assert j["session_id"]
    assert j["state"]["status"] == "IDLE"

    # the rejected session takes a new image (still a passport here)
    r2 = client.post(
        f"/sessions/{j['session_id']}/image",
        files={"file": ("again.jpg", b"again", "image/jpeg")},
    )
    assert r2.status_code == 422


def test_bad_image_returns_400_before_session_is_opened():
    def reject(_blob: bytes):
        raise CaptureError("Could not decode image.")

    client = make_client(intake_fn=reject)
    r = upload(client)
    assert r.status_code == 400
    assert r.json()["error"] == "capture_error"
    assert r.json()["session_id"] is None


def test_invalid_field_value_returns_400():
    client = make_client()
    sid = upload(client).json()["session_id"]
    r = client.put(f"/sessions/{sid}/fields/phone", json={"value": "12"})
    assert r.status_code == 400
    assert r.json()["error"] == "user_input_error"


def test_reset_then_edit_is_a_conflict():
    client = make_client()
    sid = upload(client).json()["session_id"]
    r = client.post(f"/sessions/{sid}/reset")
    assert r.status_code == 200
    assert r.json()["status"] == "IDLE"
    assert r.json()["extracted"] is None

    r = client.put(f"/sessions/{sid}/fields/city", json={"value": "Lahore"})
    assert r.status_code == 409


def test_unknown_session_is_404():
    client = make_client()
    assert client.get("/sessions/does-not-exist").status_code == 404


def test_sink_outage_returns_502_and_keeps_review():
    client = make_client(sink=FakeSink(failures=1))
    sid = upload(client).json()["session_id"]

    r = client.post(f"/sessions/{sid}/submit")
    assert r.status_code == 502
    assert r.json()["state"]["status"] == "REVIEWING"

    r = client.post(f"/sessions/{sid}/submit")
    assert r.status_code == 200


def test_delete_releases_session():
    service = VerificationService(ocr=FakeOCR(), sink=FakeSink())
    client = TestClient(create_app(service=service, intake_fn=None))
    sid = upload(client).json()["session_id"]
    assert client.post(f"/sessions/{sid}/submit").status_code == 200

    r = client.delete(f"/sessions/{sid}")
    assert r.status_code == 200
    assert r.json() == {"session_id": sid, "closed": True}
    assert len(service.sessions) == 0
    assert client.get(f"/sessions/{sid}").status_code == 404
    assert client.delete(f"/sessions/{sid}").status_code == 404


def test_image_store_failure_is_400_and_session_recovers():
    service = VerificationService(ocr=FakeOCR(), sink=FakeSink(), image_store=BrokenImageStore())
    client = TestClient(create_app(service=service, intake_fn=None))
    r = upload(client)
    assert r.status_code == 400
    assert r.json()["error"] == "capture_error"
    assert r.json()["state"]["status"] == "IDLE"
