from __future__ import annotations

from fastapi import APIRouter, Query, Request, Response

from reportstudio.api.dependencies import acting_user, get_services
from reportstudio.models import DecisionRequest, DeprecateDecisionRequest, FragmentLinkRequest

router = APIRouter(prefix="/api/decisions", tags=["decisions"])


@router.get("")
def list_decisions(
    request: Request,
    section_id: str | None = Query(None, alias="sectionId"),
    fragment_id: str | None = Query(None, alias="fragmentId"),
) -> list[dict]:
    decisions = get_services(request).decisions
    if fragment_id:
        return decisions.list_by_fragment(fragment_id)
    return decisions.list_decisions(section_id)


@router.get("/{decision_id}")
def get_decision(decision_id: str, request: Request) -> dict:
    return get_services(request).decisions.get_decision(decision_id)


@router.get("/{decision_id}/versions")
def versions(decision_id: str, request: Request) -> list[dict]:
    return get_services(request).decisions.versions(decision_id)


@router.post("", status_code=201)
def create_decision(payload: DecisionRequest, request: Request) -> dict:
    return get_services(request).decisions.create_decision(payload)


@router.put("/{decision_id}")
def update_decision(decision_id: str, payload: DecisionRequest, request: Request) -> dict:
    return get_services(request).decisions.update_decision(decision_id, payload)


@router.post("/{decision_id}/deprecate")
def deprecate(decision_id: str, payload: DeprecateDecisionRequest, request: Request) -> dict:
    return get_services(request).decisions.deprecate(decision_id, payload)


@router.post("/{decision_id}/link")
def link(decision_id: str, payload: FragmentLinkRequest, request: Request) -> dict:
    return get_services(request).decisions.link(decision_id, payload.fragment_id)


@router.post("/{decision_id}/unlink")
def unlink(decision_id: str, payload: FragmentLinkRequest, request: Request) -> dict:
    return get_services(request).decisions.unlink(decision_id, payload.fragment_id)


@router.delete("/{decision_id}", status_code=204)
def delete_decision(
    decision_id: str, request: Request, deleted_by: str | None = Query(None, alias="deletedBy")
) -> Response:
    get_services(request).decisions.delete_decision(decision_id, acting_user(request, deleted_by))
    return Response(status_code=204)
