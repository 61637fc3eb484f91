"""
Audit trail query, chain verification and signed export routes.
"""

from __future__ import annotations

from fastapi import APIRouter, Query, Request, Response

from reportstudio.api.dependencies import get_services
from reportstudio.models import AuditExportRequest

router = APIRouter(prefix="/api/audit-log", tags=["audit"])


@router.get("")
def query(
    request: Request,
    response: Response,
    entity_type: str | None = Query(None, alias="entityType"),
    entity_id: str | None = Query(None, alias="entityId"),
    user_id: str | None = Query(None, alias="userId"),
    start_date: str | None = Query(None, alias="startDate"),
    end_date: str | None = Query(None, alias="endDate"),
) -> list[dict]:
    entries = get_services(request).audit.query(
        entity_type=entity_type, entity_id=entity_id, user_id=user_id, start_date=start_date, end_date=end_date
    )
    request.state.result_count = len(entries)
    response.headers["Cache-Control"] = "no-store"
    return entries


@router.get("/verify")
def verify_chain(request: Request) -> dict:
    return get_services(request).audit.verify_chain()


@router.post("/export")
def export(payload: AuditExportRequest, request: Request, response: Response) -> dict:
    services = get_services(request)
    response.headers["Cache-Control"] = "no-store"
    return services.audit.export(
        exported_by=payload.exported_by,
        exported_by_name=services.users.user_name(payload.exported_by),
        entity_type=payload.entity_type,
        entity_id=payload.entity_id,
        user_id=payload.user_id,
        start_date=payload.start_date,
        end_date=payload.end_date,
    )
