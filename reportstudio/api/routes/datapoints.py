"""
Data point routes: CRUD, review workflow, missing-data flags, gap status and blockers.
"""

from __future__ import annotations

from fastapi import APIRouter, Query, Request, Response

from reportstudio.api.dependencies import acting_user, get_services
from reportstudio.models import (
    BlockerRequest,
    DataPointRequest,
    FlagMissingRequest,
    GapStatusRequest,
    ReviewRequest,
    UnflagMissingRequest,
)

router = APIRouter(prefix="/api/data-points", tags=["data-points"])


@router.get("")
def list_data_points(
    request: Request,
    section_id: str | None = Query(None, alias="sectionId"),
    assigned_user_id: str | None = Query(None, alias="assignedUserId"),
) -> list[dict]:
    points = get_services(request).data_points.list_data_points(section_id, assigned_user_id)
    request.state.result_count = len(points)
    return points


@router.get("/{data_point_id}")
def get_data_point(data_point_id: str, request: Request) -> dict:
    return get_services(request).data_points.get_data_point(data_point_id)


@router.post("", status_code=201)
def create_data_point(payload: DataPointRequest, request: Request) -> dict:
    return get_services(request).data_points.create_data_point(payload)


@router.put("/{data_point_id}")
def update_data_point(data_point_id: str, payload: DataPointRequest, request: Request) -> dict:
    return get_services(request).data_points.update_data_point(data_point_id, payload)


@router.delete("/{data_point_id}", status_code=204)
def delete_data_point(
    data_point_id: str, request: Request, deleted_by: str | None = Query(None, alias="deletedBy")
) -> Response:
    get_services(request).data_points.delete_data_point(data_point_id, acting_user(request, deleted_by))
    return Response(status_code=204)


@router.post("/{data_point_id}/approve")
def approve(data_point_id: str, payload: ReviewRequest, request: Request) -> dict:
    return get_services(request).data_points.approve(data_point_id, payload)


@router.post("/{data_point_id}/request-changes")
def request_changes(data_point_id: str, payload: ReviewRequest, request: Request) -> dict:
    return get_services(request).data_points.request_changes(data_point_id, payload)


@router.post("/{data_point_id}/flag-missing")
def flag_missing(data_point_id: str, payload: FlagMissingRequest, request: Request) -> dict:
    return get_services(request).data_points.flag_missing(data_point_id, payload)


@router.post("/{data_point_id}/unflag-missing")
def unflag_missing(data_point_id: str, payload: UnflagMissingRequest, request: Request) -> dict:
    return get_services(request).data_points.unflag_missing(data_point_id, payload)


@router.post("/{data_point_id}/gap-status")
def transition_gap_status(data_point_id: str, payload: GapStatusRequest, request: Request) -> dict:
    return get_services(request).data_points.transition_gap_status(data_point_id, payload)


@router.put("/{data_point_id}/blocker")
def set_blocker(data_point_id: str, payload: BlockerRequest, request: Request) -> dict:
    return get_services(request).data_points.set_blocker(data_point_id, payload)
