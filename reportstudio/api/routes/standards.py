from __future__ import annotations

from fastapi import APIRouter, Query, Request, Response

from reportstudio.api.dependencies import acting_user, get_services
from reportstudio.models import DeprecateStandardRequest, StandardMappingRequest, StandardRequest

router = APIRouter(prefix="/api/standards-catalog", tags=["standards"])


@router.get("")
def list_standards(request: Request, include_deprecated: bool = Query(False, alias="includeDeprecated")) -> list[dict]:
    return get_services(request).standards.list_standards(include_deprecated)


# Mapping routes are declared before "/{standard_id}" so the literal path wins.
@router.get("/mappings")
def list_mappings(request: Request, section_id: str | None = Query(None, alias="sectionId")) -> list[dict]:
    return get_services(request).standards.list_mappings(section_id=section_id)


@router.post("/mappings", status_code=201)
def create_mapping(payload: StandardMappingRequest, request: Request) -> dict:
    return get_services(request).standards.create_mapping(payload)


@router.delete("/mappings/{mapping_id}", status_code=204)
def delete_mapping(
    mapping_id: str, request: Request, deleted_by: str | None = Query(None, alias="deletedBy")
) -> Response:
    get_services(request).standards.delete_mapping(mapping_id, acting_user(request, deleted_by))
    return Response(status_code=204)


@router.get("/{standard_id}")
def get_standard(standard_id: str, request: Request) -> dict:
    return get_services(request).standards.get_standard(standard_id)


@router.post("", status_code=201)
def create_standard(payload: StandardRequest, request: Request) -> dict:
    return get_services(request).standards.create_standard(payload)


@router.put("/{standard_id}")
def update_standard(standard_id: str, payload: StandardRequest, request: Request) -> dict:
    return get_services(request).standards.update_standard(standard_id, payload)


@router.post("/{standard_id}/deprecate")
def deprecate(standard_id: str, payload: DeprecateStandardRequest, request: Request) -> dict:
    return get_services(request).standards.deprecate(standard_id, payload)


@router.get("/{standard_id}/mappings")
def standard_mappings(standard_id: str, request: Request) -> list[dict]:
    return get_services(request).standards.mappings_for_standard(standard_id)
