from __future__ import annotations

from fastapi import APIRouter, Query, Request

from reportstudio.api.dependencies import get_services
from reportstudio.models import ApprovalDecisionRequest, CreateApprovalRequest

router = APIRouter(prefix="/api/approvals", tags=["approvals"])


@router.get("")
def list_requests(
    request: Request,
    period_id: str | None = Query(None, alias="periodId"),
    approver_id: str | None = Query(None, alias="approverId"),
) -> list[dict]:
    return get_services(request).approvals.list_requests(period_id, approver_id)


@router.get("/{request_id}")
def get_request(request_id: str, request: Request) -> dict:
    return get_services(request).approvals.get_request(request_id)


@router.post("", status_code=201)
def create_request(payload: CreateApprovalRequest, request: Request) -> dict:
    return get_services(request).approvals.create_request(payload)


@router.post("/decisions")
def submit_decision(payload: ApprovalDecisionRequest, request: Request) -> dict:
    return get_services(request).approvals.submit_decision(payload)
