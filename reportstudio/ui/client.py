"""
HTTP client the admin console uses to talk to the REST backend.

Every call goes through ``ReportStudioClient._request``; non-2xx responses
become ``ApiError`` carrying the backend's ``error`` message so pages can
show it as a banner.
"""

from __future__ import annotations

import json
import logging
from typing import Any

import requests

from reportstudio.config import settings

logger = logging.getLogger(__name__)


class ApiError(Exception):
    def __init__(self, status_code: int, message: str):
        super().__init__(message)
        self.status_code = status_code
        self.message = message

    def __str__(self) -> str:
        return self.message


def _error_message(response: requests.Response) -> str:
    try:
        body = response.json()
    except (ValueError, json.JSONDecodeError):
        body = None
    if isinstance(body, dict) and body.get("error"):
        return str(body["error"])
    return f"Request failed with status {response.status_code}"


class ReportStudioClient:
    def __init__(
        self,
        base_url: str | None = None,
        *,
        user_id: str | None = None,
        timeout: int | None = None,
        session: requests.Session | None = None,
    ):
        self.base_url = (base_url or settings.api_base_url).rstrip("/")
        self.timeout = timeout or settings.api_timeout_seconds
        self.session = session or requests.Session()
        self.user_id = user_id

    def _request(self, method: str, path: str, *, json_body: Any = None, params: dict | None = None) -> Any:
        headers = {"X-User-ID": self.user_id} if self.user_id else {}
        query = {k: v for k, v in (params or {}).items() if v not in (None, "")}
        try:
            response = self.session.request(
                method,
                f"{self.base_url}{path}",
                json=json_body,
                params=query or None,
                headers=headers,
                timeout=self.timeout,
            )
        except requests.RequestException as e:
            logger.warning("API request failed: %s %s: %s", method, path, e)
            raise ApiError(0, f"Could not reach the API at {self.base_url}.") from e

        if not 200 <= response.status_code < 300:
            message = _error_message(response)
            logger.info("API error %s on %s %s: %s", response.status_code, method, path, message)
            raise ApiError(response.status_code, message)
        if response.status_code == 204 or not response.content:
            return None
        return response.json()

    def _get(self, path: str, **params: Any) -> Any:
        return self._request("GET", path, params=params)

    def _post(self, path: str, body: Any = None) -> Any:
        return self._request("POST", path, json_body=body if body is not None else {})

    def _put(self, path: str, body: Any) -> Any:
        return self._request("PUT", path, json_body=body)

    def _delete(self, path: str, **params: Any) -> Any:
        return self._request("DELETE", path, params=params)

    # Snapshot / organization
    def reporting_data(self) -> dict:
        return self._get("/api/reporting-data")

    def create_organization(self, body: dict) -> dict:
        return self._post("/api/organization", body)

    def update_organization(self, org_id: str, body: dict) -> dict:
        return self._put(f"/api/organization/{org_id}", body)

    def list_units(self) -> list[dict]:
        return self._get("/api/organizational-units")

    def create_unit(self, body: dict) -> dict:
        return self._post("/api/organizational-units", body)

    def delete_unit(self, unit_id: str) -> None:
        self._delete(f"/api/organizational-units/{unit_id}")

    # Periods / sections
    def create_period(self, body: dict) -> dict:
        return self._post("/api/periods", body)

    def lock_period(self, period_id: str, body: dict) -> dict:
        return self._post(f"/api/periods/{period_id}/lock", body)

    def unlock_period(self, period_id: str, body: dict) -> dict:
        return self._post(f"/api/periods/{period_id}/unlock", body)

    def section_summaries(self, period_id: str | None = None) -> list[dict]:
        return self._get("/api/section-summaries", periodId=period_id)

    def update_section_owner(self, section_id: str, body: dict) -> dict:
        return self._put(f"/api/sections/{section_id}/owner", body)

    # Data points
    def list_data_points(self, section_id: str | None = None) -> list[dict]:
        return self._get("/api/data-points", sectionId=section_id)

    def create_data_point(self, body: dict) -> dict:
        return self._post("/api/data-points", body)

    def approve_data_point(self, data_point_id: str, body: dict) -> dict:
        return self._post(f"/api/data-points/{data_point_id}/approve", body)

    def request_changes(self, data_point_id: str, body: dict) -> dict:
        return self._post(f"/api/data-points/{data_point_id}/request-changes", body)

    # Gaps / assumptions
    def gaps_dashboard(self, **filters: Any) -> dict:
        return self._get("/api/gaps/dashboard", **filters)

    def create_gap(self, body: dict) -> dict:
        return self._post("/api/gaps", body)

    def list_assumptions(self, section_id: str | None = None) -> list[dict]:
        return self._get("/api/assumptions", sectionId=section_id)

    def create_assumption(self, body: dict) -> dict:
        return self._post("/api/assumptions", body)

    def deprecate_assumption(self, assumption_id: str, body: dict) -> dict:
        return self._post(f"/api/assumptions/{assumption_id}/deprecate", body)

    # Rollover
    def rollover(self, body: dict) -> dict:
        return self._post("/api/rollover", body)

    def list_rollover_rules(self) -> list[dict]:
        return self._get("/api/rollover-rules")

    def save_rollover_rule(self, body: dict) -> dict:
        return self._post("/api/rollover-rules", body)

    # Users / roles
    def list_users(self) -> list[dict]:
        return self._get("/api/users")

    def list_roles(self) -> list[dict]:
        return self._get("/api/roles")

    def create_role(self, body: dict) -> dict:
        return self._post("/api/roles", body)

    def user_roles(self, user_id: str) -> list[dict]:
        return self._get(f"/api/users/{user_id}/roles")

    def assign_roles(self, user_id: str, body: dict) -> dict:
        return self._post(f"/api/users/{user_id}/roles", body)

    def remove_role(self, user_id: str, role_id: str) -> dict:
        return self._delete(f"/api/users/{user_id}/roles/{role_id}", removedBy=self.user_id)

    def effective_permissions(self, user_id: str) -> dict:
        return self._get(f"/api/users/{user_id}/effective-permissions")

    # Audit
    def audit_log(self, **filters: Any) -> list[dict]:
        return self._get("/api/audit-log", **filters)

    def verify_audit_chain(self) -> dict:
        return self._get("/api/audit-log/verify")

    # Completion exceptions / readiness
    def list_exceptions(self, **filters: Any) -> list[dict]:
        return self._get("/api/completion-exceptions", **filters)

    def create_exception(self, body: dict) -> dict:
        return self._post("/api/completion-exceptions", body)

    def approve_exception(self, exception_id: str, body: dict) -> dict:
        return self._post(f"/api/completion-exceptions/{exception_id}/approve", body)

    def reject_exception(self, exception_id: str, body: dict) -> dict:
        return self._post(f"/api/completion-exceptions/{exception_id}/reject", body)

    def validation_report(self, period_id: str) -> dict:
        return self._get("/api/completion-exceptions/validation-report", periodId=period_id)

    def readiness_report(self, **filters: Any) -> dict:
        return self._get("/api/readiness/report", **filters)

    # Standards / maturity models
    def list_standards(self, include_deprecated: bool = False) -> list[dict]:
        return self._get("/api/standards-catalog", includeDeprecated=str(include_deprecated).lower())

    def create_standard(self, body: dict) -> dict:
        return self._post("/api/standards-catalog", body)

    def deprecate_standard(self, standard_id: str) -> dict:
        return self._post(f"/api/standards-catalog/{standard_id}/deprecate", {"deprecatedBy": self.user_id})

    def standard_mappings(self, standard_id: str) -> list[dict]:
        return self._get(f"/api/standards-catalog/{standard_id}/mappings")

    def create_mapping(self, body: dict) -> dict:
        return self._post("/api/standards-catalog/mappings", body)

    def list_maturity_models(self, include_inactive: bool = False) -> list[dict]:
        return self._get("/api/maturity-models", includeInactive=str(include_inactive).lower())

    def create_maturity_model(self, body: dict) -> dict:
        return self._post("/api/maturity-models", body)

    def maturity_versions(self, model_id: str) -> list[dict]:
        return self._get(f"/api/maturity-models/{model_id}/versions")
