from __future__ import annotations

from fastapi import APIRouter, Query, Request, Response

from reportstudio.api.dependencies import acting_user, get_services
from reportstudio.models import ApproveExceptionRequest, CompletionExceptionRequest, RejectExceptionRequest

router = APIRouter(prefix="/api/completion-exceptions", tags=["completion-exceptions"])


@router.get("")
def list_exceptions(
    request: Request,
    section_id: str | None = Query(None, alias="sectionId"),
    status: str | None = Query(None),
) -> list[dict]:
    return get_services(request).completion_exceptions.list_exceptions(section_id, status)


# Declared before "/{exception_id}" so the literal path wins.
@router.get("/validation-report")
def validation_report(request: Request, period_id: str | None = Query(None, alias="periodId")) -> dict:
    return get_services(request).completion_exceptions.validation_report(period_id or "")


@router.get("/{exception_id}")
def get_exception(exception_id: str, request: Request) -> dict:
    return get_services(request).completion_exceptions.get_exception(exception_id)


@router.post("", status_code=201)
def create_exception(payload: CompletionExceptionRequest, request: Request) -> dict:
    return get_services(request).completion_exceptions.create_exception(payload)


@router.post("/{exception_id}/approve")
def approve(exception_id: str, payload: ApproveExceptionRequest, request: Request) -> dict:
    return get_services(request).completion_exceptions.approve(exception_id, payload)


@router.post("/{exception_id}/reject")
def reject(exception_id: str, payload: RejectExceptionRequest, request: Request) -> dict:
    return get_services(request).completion_exceptions.reject(exception_id, payload)


@router.delete("/{exception_id}", status_code=204)
def delete_exception(
    exception_id: str, request: Request, deleted_by: str | None = Query(None, alias="deletedBy")
) -> Response:
    get_services(request).completion_exceptions.delete_exception(exception_id, acting_user(request, deleted_by))
    return Response(status_code=204)
