from __future__ import annotations

from fastapi import APIRouter, Query, Request, Response

from reportstudio.api.dependencies import acting_user, get_services
from reportstudio.models import AssumptionRequest, DeprecateAssumptionRequest, LinkDataPointRequest

router = APIRouter(prefix="/api/assumptions", tags=["assumptions"])


@router.get("")
def list_assumptions(request: Request, section_id: str | None = Query(None, alias="sectionId")) -> list[dict]:
    return get_services(request).assumptions.list_assumptions(section_id)


@router.get("/{assumption_id}")
def get_assumption(assumption_id: str, request: Request) -> dict:
    return get_services(request).assumptions.get_assumption(assumption_id)


@router.post("", status_code=201)
def create_assumption(payload: AssumptionRequest, request: Request) -> dict:
    return get_services(request).assumptions.create_assumption(payload)


@router.put("/{assumption_id}")
def update_assumption(assumption_id: str, payload: AssumptionRequest, request: Request) -> dict:
    return get_services(request).assumptions.update_assumption(assumption_id, payload)


@router.post("/{assumption_id}/deprecate")
def deprecate(assumption_id: str, payload: DeprecateAssumptionRequest, request: Request) -> dict:
    return get_services(request).assumptions.deprecate(assumption_id, payload)


@router.post("/{assumption_id}/link")
def link(assumption_id: str, payload: LinkDataPointRequest, request: Request) -> dict:
    return get_services(request).assumptions.link(assumption_id, payload.data_point_id)


@router.post("/{assumption_id}/unlink")
def unlink(assumption_id: str, payload: LinkDataPointRequest, request: Request) -> dict:
    return get_services(request).assumptions.unlink(assumption_id, payload.data_point_id)


@router.delete("/{assumption_id}", status_code=204)
def delete_assumption(
    assumption_id: str, request: Request, deleted_by: str | None = Query(None, alias="deletedBy")
) -> Response:
    get_services(request).assumptions.delete_assumption(assumption_id, acting_user(request, deleted_by))
    return Response(status_code=204)
