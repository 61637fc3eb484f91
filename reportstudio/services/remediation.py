from __future__ import annotations

from typing import Any

from reportstudio.config import ACTION_STATUSES, PLAN_STATUSES, PRIORITIES
from reportstudio.exceptions import ConflictError, ValidationError
from reportstudio.models import (
    CompleteActionRequest,
    CompletePlanRequest,
    RemediationActionRequest,
    RemediationPlanRequest,
)
from reportstudio.services.base import ServiceBase, change, diff, is_blank, new_id, require, utc_now

PLAN_FIELDS = {
    "title": "Title",
    "description": "Description",
    "priority": "Priority",
    "status": "Status",
    "ownerId": "OwnerId",
    "targetPeriod": "TargetPeriod",
}

ACTION_FIELDS = {
    "title": "Title",
    "description": "Description",
    "status": "Status",
    "ownerId": "OwnerId",
    "dueDate": "DueDate",
}


def _check(value: str, allowed, label: str) -> None:
    if value not in allowed:
        raise ValidationError(f"{label} must be one of: {', '.join(sorted(allowed))}.", field=label)


class RemediationService(ServiceBase):
    """Remediation plans for gaps and estimates, and the actions that carry them out."""

    # -- plans -------------------------------------------------------------

    def list_plans(self, section_id: str | None = None) -> list[dict[str, Any]]:
        return self.repo.list("remediation_plan", section_id=section_id or None)

    def get_plan(self, plan_id: str) -> dict[str, Any]:
        return self._get_or_404("remediation_plan", plan_id, "Remediation plan not found.")

    def _owner_name(self, owner_id: str | None, owner_name: str | None) -> str | None:
        if owner_id:
            user = self.find_user(owner_id)
            if user:
                return user["name"]
        return owner_name

    def create_plan(self, req: RemediationPlanRequest) -> dict[str, Any]:
        require(req.title, "title", "Title is required.")
        require(req.section_id, "sectionId", "SectionId is required.")
        if self.repo.get("section", req.section_id) is None:
            raise ValidationError(f"Section with ID '{req.section_id}' not found.", field="sectionId")
        _check(req.priority, PRIORITIES, "Priority")
        status = req.status or "planned"
        _check(status, PLAN_STATUSES, "Status")

        plan = {
            "id": new_id(),
            "sectionId": req.section_id,
            "title": req.title.strip(),
            "description": req.description,
            "targetPeriod": req.target_period,
            "ownerId": req.owner_id,
            "ownerName": self._owner_name(req.owner_id, req.owner_name),
            "priority": req.priority,
            "status": status,
            "gapId": req.gap_id,
            "assumptionId": req.assumption_id,
            "dataPointId": req.data_point_id,
            "completedAt": None,
            "completedBy": None,
            "createdBy": req.created_by,
            "createdAt": utc_now(),
            "updatedBy": None,
            "updatedAt": None,
        }
        self.repo.upsert("remediation_plan", plan)
        self.record(
            user_id=req.created_by,
            action="create",
            entity_type="RemediationPlan",
            entity_id=plan["id"],
            changes=[change("Title", None, plan["title"]), change("Priority", None, plan["priority"])],
        )
        return plan

    def update_plan(self, plan_id: str, req: RemediationPlanRequest) -> dict[str, Any]:
        require(req.title, "title", "Title is required.")
        _check(req.priority, PRIORITIES, "Priority")
        with self.lock:
            plan = self.get_plan(plan_id)
            status = req.status or plan["status"]
            _check(status, PLAN_STATUSES, "Status")
            before = dict(plan)
            plan.update(
                {
                    "title": req.title.strip(),
                    "description": req.description,
                    "targetPeriod": req.target_period,
                    "ownerId": req.owner_id,
                    "ownerName": self._owner_name(req.owner_id, req.owner_name),
                    "priority": req.priority,
                    "status": status,
                    "gapId": req.gap_id if req.gap_id is not None else plan.get("gapId"),
                    "assumptionId": req.assumption_id if req.assumption_id is not None else plan.get("assumptionId"),
                    "dataPointId": req.data_point_id if req.data_point_id is not None else plan.get("dataPointId"),
                    "updatedBy": req.updated_by,
                    "updatedAt": utc_now(),
                }
            )
            self.repo.upsert("remediation_plan", plan)
        changes = diff(before, plan, PLAN_FIELDS)
        if changes:
            self.record(
                user_id=req.updated_by,
                action="update",
                entity_type="RemediationPlan",
                entity_id=plan_id,
                changes=changes,
            )
        return plan

    def complete_plan(self, plan_id: str, req: CompletePlanRequest) -> dict[str, Any]:
        with self.lock:
            plan = self.get_plan(plan_id)
            if plan["status"] == "completed":
                raise ConflictError("Remediation plan is already completed.")
            old_status = plan["status"]
            plan.update({"status": "completed", "completedAt": utc_now(), "completedBy": req.completed_by})
            self.repo.upsert("remediation_plan", plan)
        self.record(
            user_id=req.completed_by,
            action="complete",
            entity_type="RemediationPlan",
            entity_id=plan_id,
            changes=[change("Status", old_status, "completed")],
        )
        return plan

    def delete_plan(self, plan_id: str, deleted_by: str | None = None) -> None:
        with self.lock:
            plan = self.get_plan(plan_id)
            action_ids = [a["id"] for a in self.list_actions(plan_id)]
            self.repo.delete_many("remediation_action", action_ids)
            self.repo.delete("remediation_plan", plan_id)
        self.record(
            user_id=deleted_by,
            action="delete",
            entity_type="RemediationPlan",
            entity_id=plan_id,
            changes=[change("Title", plan["title"], None)],
        )

    # -- actions -----------------------------------------------------------

    def list_actions(self, plan_id: str) -> list[dict[str, Any]]:
        return [a for a in self.repo.list("remediation_action") if a.get("remediationPlanId") == plan_id]

    def get_action(self, action_id: str) -> dict[str, Any]:
        return self._get_or_404("remediation_action", action_id, "Remediation action not found.")

    def create_action(self, plan_id: str, req: RemediationActionRequest) -> dict[str, Any]:
        self.get_plan(plan_id)
        require(req.title, "title", "Title is required.")
        require(req.due_date, "dueDate", "DueDate is required.")
        status = req.status or "pending"
        _check(status, ACTION_STATUSES, "Status")
        action = {
            "id": new_id(),
            "remediationPlanId": plan_id,
            "title": req.title.strip(),
            "description": req.description,
            "ownerId": req.owner_id,
            "ownerName": self._owner_name(req.owner_id, req.owner_name),
            "dueDate": req.due_date,
            "status": status,
            "completedAt": None,
            "completedBy": None,
            "evidenceIds": [],
            "completionNotes": None,
            "createdBy": req.created_by,
            "createdAt": utc_now(),
        }
        self.repo.upsert("remediation_action", action)
        self.record(
            user_id=req.created_by,
            action="create",
            entity_type="RemediationAction",
            entity_id=action["id"],
            changes=[change("Title", None, action["title"]), change("DueDate", None, action["dueDate"])],
        )
        return action

    def update_action(self, action_id: str, req: RemediationActionRequest) -> dict[str, Any]:
        require(req.title, "title", "Title is required.")
        require(req.due_date, "dueDate", "DueDate is required.")
        with self.lock:
            action = self.get_action(action_id)
            status = req.status or action["status"]
            _check(status, ACTION_STATUSES, "Status")
            before = dict(action)
            action.update(
                {
                    "title": req.title.strip(),
                    "description": req.description,
                    "ownerId": req.owner_id,
                    "ownerName": self._owner_name(req.owner_id, req.owner_name),
                    "dueDate": req.due_date,
                    "status": status,
                    "updatedBy": req.updated_by,
                    "updatedAt": utc_now(),
                }
            )
            self.repo.upsert("remediation_action", action)
        changes = diff(before, action, ACTION_FIELDS)
        if changes:
            self.record(
                user_id=req.updated_by,
                action="update",
                entity_type="RemediationAction",
                entity_id=action_id,
                changes=changes,
            )
        return action

    def complete_action(self, action_id: str, req: CompleteActionRequest) -> dict[str, Any]:
        with self.lock:
            action = self.get_action(action_id)
            if action["status"] == "completed":
                raise ConflictError("Remediation action is already completed.")
            for evidence_id in req.evidence_ids:
                if self.repo.get("evidence", evidence_id) is None:
                    raise ValidationError(f"Evidence with ID '{evidence_id}' not found.", field="evidenceIds")
            old_status = action["status"]
            action.update(
                {
                    "status": "completed",
                    "completedAt": utc_now(),
                    "completedBy": req.completed_by,
                    "completionNotes": None if is_blank(req.completion_notes) else req.completion_notes,
                    "evidenceIds": list(req.evidence_ids),
                }
            )
            self.repo.upsert("remediation_action", action)
        self.record(
            user_id=req.completed_by,
            action="complete",
            entity_type="RemediationAction",
            entity_id=action_id,
            change_note=req.completion_notes,
            changes=[change("Status", old_status, "completed")],
        )
        return action

    def delete_action(self, action_id: str, deleted_by: str | None = None) -> None:
        with self.lock:
            action = self.get_action(action_id)
            self.repo.delete("remediation_action", action_id)
        self.record(
            user_id=deleted_by,
            action="delete",
            entity_type="RemediationAction",
            entity_id=action_id,
            changes=[change("Title", action["title"], None)],
        )
