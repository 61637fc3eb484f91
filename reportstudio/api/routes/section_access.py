from __future__ import annotations

from fastapi import APIRouter, Query, Request

from reportstudio.api.dependencies import get_services
from reportstudio.models import GrantAccessRequest, RevokeAccessRequest

router = APIRouter(prefix="/api/section-access", tags=["section-access"])


@router.post("/grant")
def grant(payload: GrantAccessRequest, request: Request) -> dict:
    return get_services(request).section_access.grant(payload)


@router.post("/revoke")
def revoke(payload: RevokeAccessRequest, request: Request) -> dict:
    return get_services(request).section_access.revoke(payload)


@router.get("/check")
def has_access(
    request: Request,
    section_id: str = Query(..., alias="sectionId"),
    user_id: str = Query(..., alias="userId"),
) -> dict:
    return {
        "sectionId": section_id,
        "userId": user_id,
        "hasAccess": get_services(request).section_access.has_access(section_id, user_id),
    }


@router.get("/users/{user_id}")
def user_grants(user_id: str, request: Request) -> list[dict]:
    return get_services(request).section_access.user_grants(user_id)


@router.get("/sections/{section_id}")
def section_summary(section_id: str, request: Request) -> dict:
    return get_services(request).section_access.section_summary(section_id)
