"""
HTTP-level tests: status codes, the error envelope and header conventions.
"""

from __future__ import annotations

import pytest

from conftest import ADMIN_ID, OWNER_ID


@pytest.fixture
def section_id(api) -> str:
    assert api.post("/api/organization", json={"name": "Acme Industries", "createdBy": ADMIN_ID}).status_code == 201
    assert api.post("/api/organizational-units", json={"name": "HQ", "createdBy": ADMIN_ID}).status_code == 201
    resp = api.post(
        "/api/periods",
        json={
            "name": "FY 2024",
            "startDate": "2024-01-01",
            "endDate": "2024-12-31",
            "reportingMode": "simplified",
            "ownerId": OWNER_ID,
            "ownerName": "Sarah Chen",
        },
    )
    assert resp.status_code == 201
    return next(s["id"] for s in resp.json()["sections"] if s["catalogCode"] == "ENV-001")


def _data_point(section_id: str, **overrides) -> dict:
    body = {
        "sectionId": section_id,
        "type": "metric",
        "title": "Scope 1 emissions",
        "content": "Direct emissions",
        "value": "1250",
        "unit": "tCO2e",
        "ownerId": OWNER_ID,
        "source": "Fuel invoices",
        "informationType": "fact",
    }
    body.update(overrides)
    return body


def test_health(api):
    resp = api.get("/api/health")
    assert resp.json() == {"ok": True}
    assert resp.headers["Cache-Control"] == "no-store"
    assert resp.headers["X-Request-ID"]


def test_request_id_is_echoed(api):
    resp = api.get("/api/health", headers={"X-Request-ID": "req-42"})
    assert resp.headers["X-Request-ID"] == "req-42"


def test_security_headers(api):
    resp = api.get("/api/health")
    assert resp.headers["X-Content-Type-Options"] == "nosniff"
    assert resp.headers["X-Frame-Options"] == "DENY"


def test_oversized_body_is_rejected(api, monkeypatch):
    from reportstudio.config import settings

    monkeypatch.setattr(settings, "max_request_bytes", 64)
    resp = api.post("/api/evidence", json={"fileContent": "A" * 200})
    assert resp.status_code == 413
    assert resp.json()["code"] == "validation_error"


def test_sensitive_query_values_are_redacted():
    from reportstudio.api.observability import sanitize_query_params

    assert sanitize_query_params("periodId=p1&token=abc&flag") == "periodId=p1&token=***REDACTED***&flag"


def test_reporting_data_snapshot(api, section_id):
    resp = api.get("/api/reporting-data")
    assert resp.status_code == 200
    assert resp.headers["Cache-Control"] == "no-store"
    body = resp.json()
    assert body["organization"]["name"] == "Acme Industries"
    assert len(body["sections"]) == 6
    assert {"periods", "sectionSummaries", "organizationalUnits"} <= set(body)


def test_validation_error_envelope(api, section_id):
    resp = api.post("/api/data-points", json=_data_point(section_id, title=""))
    assert resp.status_code == 400
    assert resp.json() == {"error": "Title is required.", "code": "validation_error"}


def test_malformed_body_is_400(api):
    resp = api.put("/api/users/user-3/status", json={"isActive": "definitely"})
    assert resp.status_code == 400
    assert resp.json()["code"] == "validation_error"


def test_not_found_envelope(api):
    resp = api.get("/api/data-points/missing")
    assert resp.status_code == 404
    assert resp.json()["code"] == "not_found"


def test_conflict_envelope(api, section_id):
    dp = api.post("/api/data-points", json=_data_point(section_id)).json()
    resp = api.post(f"/api/data-points/{dp['id']}/approve", json={"reviewedBy": ADMIN_ID})
    assert resp.status_code == 409
    assert "ready-for-review" in resp.json()["error"]


def test_permission_denied_envelope(api, section_id):
    period_id = api.get("/api/periods").json()[0]["id"]
    api.post(f"/api/periods/{period_id}/lock", json={"lockedBy": OWNER_ID, "reason": "Year end"})
    resp = api.post(f"/api/periods/{period_id}/unlock", json={"unlockedBy": "user-3", "reason": "Fix"})
    assert resp.status_code == 403
    assert resp.json()["code"] == "permission_denied"


def test_create_and_delete_data_point(api, section_id):
    created = api.post("/api/data-points", json=_data_point(section_id))
    assert created.status_code == 201
    dp_id = created.json()["id"]

    listed = api.get("/api/data-points", params={"sectionId": section_id}).json()
    assert [d["id"] for d in listed] == [dp_id]

    deleted = api.delete(f"/api/data-points/{dp_id}", headers={"X-User-ID": ADMIN_ID})
    assert deleted.status_code == 204
    assert deleted.content == b""

    [entry] = api.get("/api/audit-log", params={"entityId": dp_id, "userId": ADMIN_ID}).json()
    assert entry["action"] == "delete"


def test_gaps_dashboard_route(api, section_id):
    api.post("/api/gaps", json={"sectionId": section_id, "title": "No Scope 3 data", "impact": "high"})
    resp = api.get("/api/gaps/dashboard", params={"impact": "high"})
    assert resp.status_code == 200
    assert resp.json()["summary"]["totalGaps"] == 1


def test_audit_chain_verifies(api, section_id):
    api.post("/api/data-points", json=_data_point(section_id))
    body = api.get("/api/audit-log/verify").json()
    assert body["valid"] is True
    assert body["entriesChecked"] >= 1


def test_reminder_run_rejects_bad_date(api, section_id):
    period_id = api.get("/api/periods").json()[0]["id"]
    resp = api.post("/api/reminders/run", json={"periodId": period_id, "today": "someday"})
    assert resp.status_code == 400


def test_permission_check(api):
    resp = api.post(
        "/api/permissions/check", json={"userId": ADMIN_ID, "resourceType": "users", "action": "manage"}
    )
    assert resp.status_code == 200
    assert resp.json()["allowed"] is True


def test_standards_catalog_routes(api, section_id):
    resp = api.post(
        "/api/standards-catalog",
        json={"identifier": "ESRS-E1", "title": "Climate change", "version": "2023", "createdBy": ADMIN_ID},
    )
    assert resp.status_code == 201
    standard_id = resp.json()["id"]

    resp = api.post(
        "/api/standards-catalog/mappings",
        json={"standardId": standard_id, "standardReference": "ESRS E1-6", "sectionId": section_id},
    )
    assert resp.status_code == 201
    assert [m["standardReference"] for m in api.get(f"/api/standards-catalog/{standard_id}/mappings").json()] == [
        "ESRS E1-6"
    ]
    assert api.delete(f"/api/standards-catalog/mappings/{resp.json()['id']}").status_code == 204

    resp = api.post(f"/api/standards-catalog/{standard_id}/deprecate", json={"deprecatedBy": ADMIN_ID})
    assert resp.json() == {"message": "Standard has been deprecated successfully."}
    assert api.get("/api/standards-catalog").json() == []
    assert len(api.get("/api/standards-catalog", params={"includeDeprecated": "true"}).json()) == 1

    assert api.get("/api/standards-catalog/missing").json()["error"] == "Standard not found."


def test_maturity_model_routes(api):
    assert api.get("/api/maturity-models/active").json()["error"] == "No active maturity model found."
    body = {"name": "ESG maturity", "levels": [{"name": "Initial", "order": 1}], "createdBy": ADMIN_ID}
    resp = api.post("/api/maturity-models", json=body)
    assert resp.status_code == 201
    first = resp.json()

    resp = api.put(f"/api/maturity-models/{first['id']}", json={**body, "name": "ESG maturity v2"})
    assert resp.json()["version"] == 2
    assert api.get("/api/maturity-models/active").json()["name"] == "ESG maturity v2"
    assert [m["version"] for m in api.get(f"/api/maturity-models/{first['id']}/versions").json()] == [2, 1]

    resp = api.delete(f"/api/maturity-models/{first['id']}")
    assert resp.json() == {"message": "Maturity model deleted successfully."}
    assert api.get("/api/maturity-models", params={"includeInactive": "true"}).json() == []


def test_readiness_route(api, section_id):
    api.post("/api/data-points", json=_data_point(section_id))
    period_id = api.get("/api/periods").json()[0]["id"]
    resp = api.get("/api/readiness/report", params={"periodId": period_id, "category": "environmental"})
    assert resp.status_code == 200
    body = resp.json()
    assert body["metrics"]["totalItems"] == len(body["items"])
    assert {i["type"] for i in body["items"]} == {"section", "datapoint"}
    assert api.get("/api/readiness/report", params={"category": "fiscal"}).status_code == 400
