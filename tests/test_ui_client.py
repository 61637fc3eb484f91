from __future__ import annotations

import json

import pytest
import requests

from reportstudio.ui.client import ApiError, ReportStudioClient


class FakeResponse:
    def __init__(self, status_code: int, body=None):
        self.status_code = status_code
        self.content = b"" if body is None else json.dumps(body).encode()

    def json(self):
        if not self.content:
            raise ValueError("no body")
        return json.loads(self.content)


class FakeSession:
    def __init__(self, response=None, error: Exception | None = None):
        self.response = response
        self.error = error
        self.calls: list[dict] = []

    def request(self, method, url, **kwargs):
        self.calls.append({"method": method, "url": url, **kwargs})
        if self.error is not None:
            raise self.error
        return self.response


def _client(session: FakeSession, user_id: str | None = "user-2") -> ReportStudioClient:
    return ReportStudioClient("http://api.test/", user_id=user_id, timeout=5, session=session)


def test_sends_user_header_and_drops_empty_params():
    session = FakeSession(FakeResponse(200, []))
    _client(session).list_data_points(section_id=None)

    [call] = session.calls
    assert call["url"] == "http://api.test/api/data-points"
    assert call["headers"] == {"X-User-ID": "user-2"}
    assert call["params"] is None
    assert call["timeout"] == 5


def test_query_params_are_camel_case():
    session = FakeSession(FakeResponse(200, {"gaps": [], "summary": {}}))
    _client(session).gaps_dashboard(periodId="p1", impact="")
    assert session.calls[0]["params"] == {"periodId": "p1"}


def test_remove_role_passes_acting_user():
    session = FakeSession(FakeResponse(200, {"id": "user-3"}))
    _client(session).remove_role("user-3", "role-reviewer")
    call = session.calls[0]
    assert call["method"] == "DELETE"
    assert call["params"] == {"removedBy": "user-2"}


def test_error_body_becomes_api_error():
    session = FakeSession(FakeResponse(409, {"error": "Period is already locked.", "code": "conflict"}))
    with pytest.raises(ApiError) as excinfo:
        _client(session).lock_period("p1", {"lockedBy": "user-2"})
    assert excinfo.value.status_code == 409
    assert str(excinfo.value) == "Period is already locked."


def test_error_without_body():
    session = FakeSession(FakeResponse(502))
    with pytest.raises(ApiError, match="Request failed with status 502"):
        _client(session).list_users()


def test_unreachable_api():
    session = FakeSession(error=requests.ConnectionError("refused"))
    with pytest.raises(ApiError) as excinfo:
        _client(session, user_id=None).reporting_data()
    assert excinfo.value.status_code == 0
    assert "http://api.test" in excinfo.value.message
    assert session.calls[0]["headers"] == {}


def test_no_content():
    session = FakeSession(FakeResponse(204))
    assert _client(session).delete_unit("u1") is None


def test_post_without_body_sends_empty_object():
    session = FakeSession(FakeResponse(200, {"valid": True}))
    _client(session)._post("/api/anything")
    assert session.calls[0]["json"] == {}


def test_unit_and_role_calls_hit_their_routes():
    session = FakeSession(FakeResponse(200, []))
    client = _client(session)
    client.list_units()
    client.create_role({"name": "Auditor", "permissions": ["run-audits"]})
    client.create_gap({"sectionId": "s1", "title": "No Scope 3 data"})
    assert [(c["method"], c["url"]) for c in session.calls] == [
        ("GET", "http://api.test/api/organizational-units"),
        ("POST", "http://api.test/api/roles"),
        ("POST", "http://api.test/api/gaps"),
    ]
    assert session.calls[2]["json"] == {"sectionId": "s1", "title": "No Scope 3 data"}
