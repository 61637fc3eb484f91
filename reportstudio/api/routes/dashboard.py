from __future__ import annotations

from fastapi import APIRouter, Query, Request

from reportstudio.api.dependencies import get_services

router = APIRouter(prefix="/api/dashboard", tags=["dashboard"])


@router.get("/completeness")
def completeness_stats(
    request: Request,
    period_id: str | None = Query(None, alias="periodId"),
    category: str | None = Query(None),
    organizational_unit_id: str | None = Query(None, alias="organizationalUnitId"),
) -> dict:
    return get_services(request).dashboard.completeness_stats(period_id, category, organizational_unit_id)


@router.get("/progress-trends")
def progress_trends(
    request: Request,
    period_id: str | None = Query(None, alias="periodId"),
    category: str | None = Query(None),
) -> dict:
    return get_services(request).dashboard.progress_trends(period_id, category)


@router.get("/outstanding-actions")
def outstanding_actions(
    request: Request,
    period_id: str | None = Query(None, alias="periodId"),
    priority: str | None = Query(None, pattern="^(low|medium|high)$"),
) -> dict:
    return get_services(request).dashboard.outstanding_actions(period_id, priority)
