"""
Period rollover and rollover rule routes.
"""

from __future__ import annotations

from fastapi import APIRouter, Query, Request, Response

from reportstudio.api.dependencies import acting_user, get_services
from reportstudio.models import RolloverRequest, RolloverRuleRequest

router = APIRouter(prefix="/api", tags=["rollover"])


@router.post("/rollover")
def rollover(payload: RolloverRequest, request: Request) -> dict:
    return get_services(request).rollover.rollover(payload)


@router.get("/rollover/audit-logs")
def audit_logs(request: Request, target_period_id: str | None = Query(None, alias="targetPeriodId")) -> list[dict]:
    return get_services(request).rollover.audit_logs(target_period_id)


@router.get("/rollover-rules")
def list_rules(request: Request) -> list[dict]:
    return get_services(request).rollover.list_rules()


@router.post("/rollover-rules")
def save_rule(payload: RolloverRuleRequest, request: Request) -> dict:
    return get_services(request).rollover.save_rule(payload)


@router.get("/rollover-rules/{data_type}")
def get_rule(data_type: str, request: Request) -> dict:
    return get_services(request).rollover.get_rule(data_type)


@router.get("/rollover-rules/{data_type}/history")
def rule_history(data_type: str, request: Request) -> list[dict]:
    return get_services(request).rollover.rule_history(data_type)


@router.delete("/rollover-rules/{data_type}", status_code=204)
def delete_rule(
    data_type: str, request: Request, deleted_by: str | None = Query(None, alias="deletedBy")
) -> Response:
    get_services(request).rollover.delete_rule(data_type, acting_user(request, deleted_by) or "")
    return Response(status_code=204)
