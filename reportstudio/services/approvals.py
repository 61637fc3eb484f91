from __future__ import annotations

from typing import Any

from reportstudio.config import APPROVAL_DECISIONS
from reportstudio.exceptions import ConflictError, NotFoundError, PermissionDeniedError, ValidationError
from reportstudio.logging_config import log_event
from reportstudio.models import ApprovalDecisionRequest, CreateApprovalRequest
from reportstudio.services.base import ServiceBase, change, is_blank, new_id, require, utc_now


def aggregate_status(records: list[dict[str, Any]]) -> str:
    """Any rejection rejects the request; it is approved once every approver approved."""
    statuses = [r["status"] for r in records]
    if "rejected" in statuses:
        return "rejected"
    if statuses and all(s == "approved" for s in statuses):
        return "approved"
    return "pending"


class ApprovalService(ServiceBase):
    def list_requests(self, period_id: str | None = None, approver_id: str | None = None) -> list[dict[str, Any]]:
        requests = self.repo.list("approval_request", period_id=period_id or None)
        if approver_id:
            requests = [r for r in requests if any(a["approverId"] == approver_id for a in r["approvals"])]
        return requests

    def get_request(self, request_id: str) -> dict[str, Any]:
        return self._get_or_404("approval_request", request_id, "Approval request not found.")

    def create_request(self, req: CreateApprovalRequest) -> dict[str, Any]:
        require(req.period_id, "periodId", "PeriodId is required.")
        require(req.requested_by, "requestedBy", "RequestedBy is required.")
        if self.repo.get("period", req.period_id) is None:
            raise NotFoundError("Reporting period not found.", resource_type="period", resource_id=req.period_id)
        if self.find_user(req.requested_by) is None:
            raise ValidationError(f"Requester with ID '{req.requested_by}' not found.", field="requestedBy")
        approver_ids = list(dict.fromkeys(a for a in req.approver_ids if a))
        if not approver_ids:
            raise ValidationError("At least one approver is required.", field="approverIds")
        for approver_id in approver_ids:
            if self.find_user(approver_id) is None:
                raise ValidationError(f"Approver with ID '{approver_id}' not found.", field="approverIds")

        request_id = new_id()
        request = {
            "id": request_id,
            "periodId": req.period_id,
            "requestedBy": req.requested_by,
            "requestedByName": self.user_name(req.requested_by),
            "requestedAt": utc_now(),
            "requestMessage": req.request_message,
            "approvalDeadline": req.approval_deadline,
            "status": "pending",
            "approvals": [
                {
                    "id": new_id(),
                    "approvalRequestId": request_id,
                    "approverId": approver_id,
                    "approverName": self.user_name(approver_id),
                    "status": "pending",
                    "decision": None,
                    "decidedAt": None,
                    "comment": None,
                }
                for approver_id in approver_ids
            ],
        }
        self.repo.upsert("approval_request", request)
        self.record(
            user_id=req.requested_by,
            action="request-approval",
            entity_type="ApprovalRequest",
            entity_id=request_id,
            change_note=req.request_message,
            changes=[change("Approvers", None, ", ".join(approver_ids))],
        )
        log_event("approval_requested", approval_request_id=request_id, approver_count=len(approver_ids))
        return request

    def _find_record(self, record_id: str) -> tuple[dict[str, Any], dict[str, Any]]:
        for request in self.repo.list("approval_request"):
            for record in request["approvals"]:
                if record["id"] == record_id:
                    return request, record
        raise NotFoundError("Approval record not found.", resource_type="approval_record", resource_id=record_id)

    def submit_decision(self, req: ApprovalDecisionRequest) -> dict[str, Any]:
        if req.decision not in APPROVAL_DECISIONS:
            raise ValidationError("Decision must be one of: approve, reject.", field="decision")
        require(req.approval_record_id, "approvalRecordId", "ApprovalRecordId is required.")
        with self.lock:
            request, record = self._find_record(req.approval_record_id)
            if record["approverId"] != req.decided_by:
                raise PermissionDeniedError(
                    "Only the assigned approver can submit a decision for this approval.", user_id=req.decided_by
                )
            if record["status"] != "pending":
                raise ConflictError("A decision has already been submitted for this approval.")
            if req.decision == "reject" and is_blank(req.comment):
                raise ValidationError("A comment is required when rejecting.", field="comment")

            record.update(
                {
                    "status": "approved" if req.decision == "approve" else "rejected",
                    "decision": req.decision,
                    "decidedAt": utc_now(),
                    "comment": req.comment,
                }
            )
            old_status = request["status"]
            request["status"] = aggregate_status(request["approvals"])
            self.repo.upsert("approval_request", request)

        changes = [change("Decision", None, req.decision)]
        if request["status"] != old_status:
            changes.append(change("RequestStatus", old_status, request["status"]))
        self.record(
            user_id=req.decided_by,
            action="approval-decision",
            entity_type="ApprovalRequest",
            entity_id=request["id"],
            change_note=req.comment,
            changes=changes,
        )
        log_event(
            "approval_decided",
            approval_request_id=request["id"],
            decision=req.decision,
            request_status=request["status"],
        )
        return request
