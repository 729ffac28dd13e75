"""HTTP surface: auth, error mapping and a decision round trip"""
import pytest
from fastapi.testclient import TestClient

from gatepass.main import fastapi_app
from gatepass.api.deps import (
    get_directory_service, get_engine, get_report_service, get_request_service
)
from gatepass.services import directory_service
from gatepass.services.report_service import ReportService
from gatepass.domain.enums import UserRole
from gatepass.domain.models import UserRecord
from gatepass.utils.jwt import JWTValidator
from tests.conftest import make_draft


def bearer(service_no, role, branches=None):
    token = JWTValidator().issue_token({"service_no": service_no, "role": role, "branches": branches or []})
    return {"Authorization": f"Bearer {token}"}


REQUESTER = bearer("SV00001", "User", ["Colombo"])
EXECUTIVE = bearer("SV11111", "Executive", ["Colombo"])
ADMIN = bearer("SV90000", "Admin", ["Colombo"])


@pytest.fixture
def client(engine, request_service, directory):
    fastapi_app.dependency_overrides[get_engine] = lambda: engine
    fastapi_app.dependency_overrides[get_request_service] = lambda: request_service
    fastapi_app.dependency_overrides[get_report_service] = lambda: ReportService(ledger=engine.ledger)
    fastapi_app.dependency_overrides[get_directory_service] = lambda: directory
    # No context manager: lifespan would connect to a real MongoDB
    yield TestClient(fastapi_app)
    fastapi_app.dependency_overrides.clear()


def submit_via_api(client):
    body = make_draft().model_dump(mode="json")
    response = client.post("/api/v1/requests", json=body, headers=REQUESTER)
    assert response.status_code == 201
    return response.json()["reference_number"]


def test_missing_token_is_401(client):
    response = client.get("/api/v1/stages/executive/pending")
    assert response.status_code == 401
    assert response.json()["detail"]["error"]["code"] == "AUTHENTICATION_ERROR"


def test_bad_token_is_401(client):
    response = client.get("/api/v1/stages/executive/pending", headers={"Authorization": "Bearer nope"})
    assert response.status_code == 401


def test_unknown_stage_is_400(client):
    response = client.get("/api/v1/stages/gatekeeper/pending", headers=EXECUTIVE)
    assert response.status_code == 400


def test_submit_and_approve(client):
    ref = submit_via_api(client)

    pending = client.get("/api/v1/stages/executive/pending", headers=EXECUTIVE).json()
    assert [item["reference_number"] for item in pending["items"]] == [ref]

    response = client.post(f"/api/v1/stages/executive/{ref}/approve", json={"comment": "ok"}, headers=EXECUTIVE)
    assert response.status_code == 200
    body = response.json()
    assert body["stages"]["EXECUTIVE"]["state"] == "APPROVED"
    assert body["stages"]["VERIFIER"]["service_no"] == "SV22222"
    assert body["request"]["status"] == 2
    assert response.headers["X-Correlation-Id"]


def test_blank_reject_comment_is_400(client):
    ref = submit_via_api(client)

    response = client.post(f"/api/v1/stages/executive/{ref}/reject", json={"comment": "  "}, headers=EXECUTIVE)

    assert response.status_code == 400
    assert response.json()["detail"]["error"]["code"] == "COMMENT_REQUIRED"


def test_unknown_reference_is_404(client):
    response = client.post("/api/v1/stages/executive/REQ-NOPE/approve", json={}, headers=EXECUTIVE)
    assert response.status_code == 404
    assert response.json()["detail"]["error"]["code"] == "STATUS_NOT_FOUND"


def test_wrong_role_is_403(client):
    response = client.get("/api/v1/stages/verifier/pending", headers=REQUESTER)
    assert response.status_code == 403


def test_foreign_queue_is_403(client):
    response = client.get("/api/v1/stages/executive/pending?service_no=SV11112", headers=EXECUTIVE)
    assert response.status_code == 403


def test_admin_routes_need_admin(client):
    assert client.get("/api/v1/admin/requests", headers=REQUESTER).status_code == 403

    ref = submit_via_api(client)
    report = client.get("/api/v1/admin/requests", headers=ADMIN).json()
    assert report["total"] == 1
    assert [r["stage"] for r in report["rows"] if r["status_label"]] == ["Executive"]
    assert len(report["rows"]) == 4

    timeline = client.get(f"/api/v1/admin/requests/{ref}", headers=ADMIN).json()
    assert [t["action"] for t in timeline["transitions"]] == ["SUBMIT"]


def test_invalid_body_is_400(client):
    response = client.post("/api/v1/requests", json={"out_location": "Colombo"}, headers=REQUESTER)
    assert response.status_code == 400
    assert response.json()["error"]["code"] == "VALIDATION_ERROR"


def test_my_requests_and_cancel(client):
    ref = submit_via_api(client)

    mine = client.get("/api/v1/requests/mine", headers=REQUESTER).json()
    assert mine["total"] == 1

    assert client.post(f"/api/v1/requests/{ref}/cancel", headers=EXECUTIVE).status_code == 403
    response = client.post(f"/api/v1/requests/{ref}/cancel", headers=REQUESTER)
    assert response.status_code == 200
    assert response.json()["status"] == 13


def test_directory_lookup(client):
    assert client.get("/api/v1/directory/users/SV22222", headers=REQUESTER).json()["role"] == "Verifier"
    assert client.get("/api/v1/directory/users/SV00000", headers=REQUESTER).status_code == 404

    found = client.get("/api/v1/directory/users?role=Receiver&branch=kandy", headers=REQUESTER).json()
    assert [u["service_no"] for u in found["items"]] == ["SV44444", "SV45555"]


def test_admin_maintains_directory(client):
    body = {"name": "New Receiver", "email": "sv47777@example.com", "role": "Receiver", "branches": ["Kandy"]}
    assert client.put("/api/v1/admin/users/SV47777", json=body, headers=REQUESTER).status_code == 403

    created = client.put("/api/v1/admin/users/SV47777", json=body, headers=ADMIN).json()
    assert created["role"] == "Receiver"

    found = client.get("/api/v1/directory/users?role=Receiver&branch=Kandy", headers=REQUESTER).json()
    assert "SV47777" in [u["service_no"] for u in found["items"]]

    client.post("/api/v1/admin/users/SV47777/deactivate", headers=ADMIN)
    found = client.get("/api/v1/directory/users?role=Receiver&branch=Kandy", headers=REQUESTER).json()
    assert "SV47777" not in [u["service_no"] for u in found["items"]]

    assert client.post("/api/v1/admin/users/SV00404/deactivate", headers=ADMIN).status_code == 404


def test_admin_report_date_filters(client):
    submit_via_api(client)

    today = client.get("/api/v1/admin/requests", headers=ADMIN).json()["rows"][0]["updated_at"][:10]
    assert client.get(f"/api/v1/admin/requests?date_to={today}", headers=ADMIN).json()["total"] == 1
    assert client.get("/api/v1/admin/requests?date_to=2000-01-01", headers=ADMIN).json()["total"] == 0

    response = client.get("/api/v1/admin/requests?date_from=yesterday", headers=ADMIN)
    assert response.status_code == 400
    assert response.json()["detail"]["error"]["code"] == "VALIDATION_ERROR"


def test_factories_share_one_directory(monkeypatch, users):
    monkeypatch.setattr(directory_service, "_directory", None)

    engine_directory = get_engine().directory
    assert get_engine().directory is engine_directory
    assert get_request_service().directory is engine_directory
    assert get_directory_service() is engine_directory

    assert engine_directory.find_by_service_no("SV22222").name == "User SV22222"
    get_directory_service().save_user(UserRecord(
        service_no="SV22222", name="Renamed Verifier", email="sv22222@example.com",
        role=UserRole.VERIFIER, branches=["Colombo"]
    ))
    assert get_engine().directory.find_by_service_no("SV22222").name == "Renamed Verifier"
