from __future__ import annotations

import pytest

from conftest import ADMIN_ID, CONTRIBUTOR_ID, OWNER_ID
from reportstudio.exceptions import ConflictError, NotFoundError, PermissionDeniedError, ValidationError
from reportstudio.models import ApprovalDecisionRequest, CreateApprovalRequest
from reportstudio.services.approvals import aggregate_status


@pytest.mark.parametrize(
    "statuses,expected",
    [
        (["approved", "approved"], "approved"),
        (["approved", "pending"], "pending"),
        (["approved", "rejected", "pending"], "rejected"),
        ([], "pending"),
    ],
)
def test_aggregate_status(statuses, expected):
    assert aggregate_status([{"status": s} for s in statuses]) == expected


@pytest.fixture
def request_(services, period):
    return services.approvals.create_request(
        CreateApprovalRequest(
            period_id=period["id"],
            requested_by=OWNER_ID,
            approver_ids=[ADMIN_ID, CONTRIBUTOR_ID, ADMIN_ID],
            request_message="Please sign off FY 2024",
        )
    )


def _record(request, approver_id):
    return next(a for a in request["approvals"] if a["approverId"] == approver_id)


def test_create_dedupes_approvers(request_):
    assert [a["approverId"] for a in request_["approvals"]] == [ADMIN_ID, CONTRIBUTOR_ID]
    assert request_["status"] == "pending"
    assert request_["requestedByName"] == "Sarah Chen"


def test_create_validation(services, period):
    with pytest.raises(ValidationError, match="At least one approver"):
        services.approvals.create_request(CreateApprovalRequest(period_id=period["id"], requested_by=OWNER_ID))
    with pytest.raises(ValidationError, match="Approver with ID 'ghost' not found."):
        services.approvals.create_request(
            CreateApprovalRequest(period_id=period["id"], requested_by=OWNER_ID, approver_ids=["ghost"])
        )
    with pytest.raises(NotFoundError):
        services.approvals.create_request(
            CreateApprovalRequest(period_id="nope", requested_by=OWNER_ID, approver_ids=[ADMIN_ID])
        )


def test_all_approve(services, request_):
    for approver in (ADMIN_ID, CONTRIBUTOR_ID):
        result = services.approvals.submit_decision(
            ApprovalDecisionRequest(
                approval_record_id=_record(request_, approver)["id"], decision="approve", decided_by=approver
            )
        )
    assert result["status"] == "approved"
    assert services.approvals.list_requests(approver_id=CONTRIBUTOR_ID)[0]["status"] == "approved"


def test_reject_needs_comment_and_rejects_request(services, request_):
    record_id = _record(request_, ADMIN_ID)["id"]
    with pytest.raises(ValidationError, match="comment is required"):
        services.approvals.submit_decision(
            ApprovalDecisionRequest(approval_record_id=record_id, decision="reject", decided_by=ADMIN_ID)
        )
    result = services.approvals.submit_decision(
        ApprovalDecisionRequest(
            approval_record_id=record_id, decision="reject", comment="Missing Scope 3", decided_by=ADMIN_ID
        )
    )
    assert result["status"] == "rejected"

    with pytest.raises(ConflictError):
        services.approvals.submit_decision(
            ApprovalDecisionRequest(approval_record_id=record_id, decision="approve", decided_by=ADMIN_ID)
        )


def test_only_assigned_approver_decides(services, request_):
    with pytest.raises(PermissionDeniedError):
        services.approvals.submit_decision(
            ApprovalDecisionRequest(
                approval_record_id=_record(request_, ADMIN_ID)["id"], decision="approve", decided_by=OWNER_ID
            )
        )


def test_invalid_decision(services, request_):
    with pytest.raises(ValidationError, match="Decision must be one of"):
        services.approvals.submit_decision(
            ApprovalDecisionRequest(approval_record_id="x", decision="maybe", decided_by=ADMIN_ID)
        )
