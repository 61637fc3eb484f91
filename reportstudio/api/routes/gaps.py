from __future__ import annotations

from fastapi import APIRouter, Query, Request

from reportstudio.api.dependencies import get_services
from reportstudio.models import GapRequest, ReopenGapRequest, ResolveGapRequest

router = APIRouter(prefix="/api/gaps", tags=["gaps"])


@router.get("")
def list_gaps(request: Request, section_id: str | None = Query(None, alias="sectionId")) -> list[dict]:
    return get_services(request).gaps.list_gaps(section_id)


# Declared before "/{gap_id}" so the literal path wins.
@router.get("/dashboard")
def dashboard(
    request: Request,
    period_id: str | None = Query(None, alias="periodId"),
    status: str | None = Query(None, pattern="^(open|resolved)$"),
    impact: str | None = Query(None, pattern="^(low|medium|high)$"),
    section_id: str | None = Query(None, alias="sectionId"),
) -> dict:
    return get_services(request).gaps.dashboard(
        period_id=period_id, status=status, impact=impact, section_id=section_id
    )


@router.get("/{gap_id}")
def get_gap(gap_id: str, request: Request) -> dict:
    return get_services(request).gaps.get_gap(gap_id)


@router.post("", status_code=201)
def create_gap(payload: GapRequest, request: Request) -> dict:
    return get_services(request).gaps.create_gap(payload)


@router.put("/{gap_id}")
def update_gap(gap_id: str, payload: GapRequest, request: Request) -> dict:
    return get_services(request).gaps.update_gap(gap_id, payload)


@router.post("/{gap_id}/resolve")
def resolve(gap_id: str, payload: ResolveGapRequest, request: Request) -> dict:
    return get_services(request).gaps.resolve(gap_id, payload)


@router.post("/{gap_id}/reopen")
def reopen(gap_id: str, payload: ReopenGapRequest, request: Request) -> dict:
    return get_services(request).gaps.reopen(gap_id, payload)
