from __future__ import annotations

from fastapi import APIRouter, Query, Request, Response

from reportstudio.api.dependencies import get_services
from reportstudio.models import ValidationRuleRequest

router = APIRouter(prefix="/api/validation-rules", tags=["validation-rules"])


@router.get("")
def list_rules(request: Request, section_id: str | None = Query(None, alias="sectionId")) -> list[dict]:
    return get_services(request).validation_rules.list_rules(section_id)


@router.get("/{rule_id}")
def get_rule(rule_id: str, request: Request) -> dict:
    return get_services(request).validation_rules.get_rule(rule_id)


@router.post("", status_code=201)
def create_rule(payload: ValidationRuleRequest, request: Request) -> dict:
    return get_services(request).validation_rules.create_rule(payload)


@router.put("/{rule_id}")
def update_rule(rule_id: str, payload: ValidationRuleRequest, request: Request) -> dict:
    return get_services(request).validation_rules.update_rule(rule_id, payload)


@router.delete("/{rule_id}", status_code=204)
def delete_rule(rule_id: str, request: Request) -> Response:
    get_services(request).validation_rules.delete_rule(rule_id)
    return Response(status_code=204)
