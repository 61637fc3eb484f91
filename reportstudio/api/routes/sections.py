from __future__ import annotations

from fastapi import APIRouter, Query, Request

from reportstudio.api.dependencies import get_services
from reportstudio.models import BulkUpdateSectionOwnerRequest, UpdateSectionOwnerRequest

router = APIRouter(prefix="/api", tags=["sections"])


@router.get("/sections")
def list_sections(request: Request, period_id: str | None = Query(None, alias="periodId")) -> list[dict]:
    return get_services(request).sections.list_sections(period_id)


@router.get("/sections/{section_id}")
def get_section(section_id: str, request: Request) -> dict:
    return get_services(request).sections.get_section(section_id)


@router.get("/section-summaries")
def section_summaries(request: Request, period_id: str | None = Query(None, alias="periodId")) -> list[dict]:
    summaries = get_services(request).sections.summaries(period_id)
    request.state.result_count = len(summaries)
    return summaries


@router.put("/sections/{section_id}/owner")
def update_owner(section_id: str, payload: UpdateSectionOwnerRequest, request: Request) -> dict:
    return get_services(request).sections.update_owner(section_id, payload)


@router.post("/sections/bulk-owner")
def bulk_update_owner(payload: BulkUpdateSectionOwnerRequest, request: Request) -> dict:
    return get_services(request).sections.bulk_update_owner(payload)


@router.get("/responsibility-matrix")
def responsibility_matrix(
    request: Request,
    period_id: str | None = Query(None, alias="periodId"),
    owner_filter: str | None = Query(None, alias="ownerFilter"),
) -> dict:
    return get_services(request).sections.responsibility_matrix(period_id, owner_filter)
