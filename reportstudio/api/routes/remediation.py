from __future__ import annotations

from fastapi import APIRouter, Query, Request, Response

from reportstudio.api.dependencies import acting_user, get_services
from reportstudio.models import (
    CompleteActionRequest,
    CompletePlanRequest,
    RemediationActionRequest,
    RemediationPlanRequest,
)

router = APIRouter(prefix="/api/remediation-plans", tags=["remediation"])


@router.get("")
def list_plans(request: Request, section_id: str | None = Query(None, alias="sectionId")) -> list[dict]:
    return get_services(request).remediation.list_plans(section_id)


@router.get("/{plan_id}")
def get_plan(plan_id: str, request: Request) -> dict:
    return get_services(request).remediation.get_plan(plan_id)


@router.post("", status_code=201)
def create_plan(payload: RemediationPlanRequest, request: Request) -> dict:
    return get_services(request).remediation.create_plan(payload)


@router.put("/{plan_id}")
def update_plan(plan_id: str, payload: RemediationPlanRequest, request: Request) -> dict:
    return get_services(request).remediation.update_plan(plan_id, payload)


@router.post("/{plan_id}/complete")
def complete_plan(plan_id: str, payload: CompletePlanRequest, request: Request) -> dict:
    return get_services(request).remediation.complete_plan(plan_id, payload)


@router.delete("/{plan_id}", status_code=204)
def delete_plan(plan_id: str, request: Request, deleted_by: str | None = Query(None, alias="deletedBy")) -> Response:
    get_services(request).remediation.delete_plan(plan_id, acting_user(request, deleted_by))
    return Response(status_code=204)


@router.get("/{plan_id}/actions")
def list_actions(plan_id: str, request: Request) -> list[dict]:
    services = get_services(request)
    services.remediation.get_plan(plan_id)
    return services.remediation.list_actions(plan_id)


@router.post("/{plan_id}/actions", status_code=201)
def create_action(plan_id: str, payload: RemediationActionRequest, request: Request) -> dict:
    return get_services(request).remediation.create_action(plan_id, payload)


@router.get("/actions/{action_id}")
def get_action(action_id: str, request: Request) -> dict:
    return get_services(request).remediation.get_action(action_id)


@router.put("/actions/{action_id}")
def update_action(action_id: str, payload: RemediationActionRequest, request: Request) -> dict:
    return get_services(request).remediation.update_action(action_id, payload)


@router.post("/actions/{action_id}/complete")
def complete_action(action_id: str, payload: CompleteActionRequest, request: Request) -> dict:
    return get_services(request).remediation.complete_action(action_id, payload)


@router.delete("/actions/{action_id}", status_code=204)
def delete_action(
    action_id: str, request: Request, deleted_by: str | None = Query(None, alias="deletedBy")
) -> Response:
    get_services(request).remediation.delete_action(action_id, acting_user(request, deleted_by))
    return Response(status_code=204)
