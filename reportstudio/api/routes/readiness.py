from __future__ import annotations

from fastapi import APIRouter, Query, Request

from reportstudio.api.dependencies import get_services

router = APIRouter(prefix="/api/readiness", tags=["readiness"])


@router.get("/report")
def readiness_report(
    request: Request,
    period_id: str | None = Query(None, alias="periodId"),
    section_id: str | None = Query(None, alias="sectionId"),
    owner_id: str | None = Query(None, alias="ownerId"),
    category: str | None = Query(None, pattern="^(environmental|social|governance)$"),
) -> dict:
    report = get_services(request).dashboard.readiness_report(period_id, section_id, owner_id, category)
    request.state.result_count = len(report["items"])
    return report
