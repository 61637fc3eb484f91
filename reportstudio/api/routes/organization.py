"""
Organization profile and organizational unit routes.
"""

from __future__ import annotations

from fastapi import APIRouter, Request, Response

from reportstudio.api.dependencies import get_services
from reportstudio.exceptions import NotFoundError
from reportstudio.models import OrganizationalUnitRequest, OrganizationRequest

router = APIRouter(prefix="/api", tags=["organization"])


@router.get("/organization")
def get_organization(request: Request) -> dict:
    org = get_services(request).organization.get_organization()
    if org is None:
        raise NotFoundError("Organization not configured.", resource_type="organization")
    return org


@router.post("/organization", status_code=201)
def create_organization(payload: OrganizationRequest, request: Request) -> dict:
    return get_services(request).organization.create_organization(payload)


@router.put("/organization/{org_id}")
def update_organization(org_id: str, payload: OrganizationRequest, request: Request) -> dict:
    return get_services(request).organization.update_organization(org_id, payload)


@router.get("/organizational-units")
def list_units(request: Request) -> list[dict]:
    return get_services(request).organization.list_units()


@router.get("/organizational-units/{unit_id}")
def get_unit(unit_id: str, request: Request) -> dict:
    return get_services(request).organization.get_unit(unit_id)


@router.post("/organizational-units", status_code=201)
def create_unit(payload: OrganizationalUnitRequest, request: Request) -> dict:
    return get_services(request).organization.create_unit(payload)


@router.put("/organizational-units/{unit_id}")
def update_unit(unit_id: str, payload: OrganizationalUnitRequest, request: Request) -> dict:
    return get_services(request).organization.update_unit(unit_id, payload)


@router.delete("/organizational-units/{unit_id}", status_code=204)
def delete_unit(unit_id: str, request: Request) -> Response:
    get_services(request).organization.delete_unit(unit_id)
    return Response(status_code=204)
