"""
Known disclosure gaps, their resolve/reopen lifecycle and the gaps dashboard.
"""

from __future__ import annotations

from typing import Any

from reportstudio.config import IMPACT_LEVELS
from reportstudio.exceptions import ConflictError, ValidationError
from reportstudio.models import GapRequest, ReopenGapRequest, ResolveGapRequest
from reportstudio.services.base import ServiceBase, change, diff, new_id, require, utc_now

TRACKED_FIELDS = {
    "title": "Title",
    "description": "Description",
    "impact": "Impact",
    "improvementPlan": "ImprovementPlan",
    "targetDate": "TargetDate",
}

_IMPACT_RANK = {"high": 0, "medium": 1, "low": 2}


class GapService(ServiceBase):
    def list_gaps(self, section_id: str | None = None) -> list[dict[str, Any]]:
        return self.repo.list("gap", section_id=section_id or None)

    def get_gap(self, gap_id: str) -> dict[str, Any]:
        return self._get_or_404("gap", gap_id, "Gap not found.")

    @staticmethod
    def _validate(req: GapRequest) -> None:
        require(req.title, "title", "Title is required.")
        if req.impact not in IMPACT_LEVELS:
            raise ValidationError("Impact must be one of: low, medium, high.", field="impact")

    def create_gap(self, req: GapRequest) -> dict[str, Any]:
        require(req.section_id, "sectionId", "SectionId is required.")
        self._validate(req)
        if self.repo.get("section", req.section_id) is None:
            raise ValidationError(f"Section with ID '{req.section_id}' not found.", field="sectionId")
        gap = {
            "id": new_id(),
            "sectionId": req.section_id,
            "title": req.title.strip(),
            "description": req.description,
            "impact": req.impact,
            "improvementPlan": req.improvement_plan,
            "targetDate": req.target_date,
            "createdBy": req.created_by,
            "createdAt": utc_now(),
            "resolved": False,
            "resolvedBy": None,
            "resolvedAt": None,
            "resolutionNote": None,
        }
        self.repo.upsert("gap", gap)
        self.record(
            user_id=req.created_by,
            action="create",
            entity_type="Gap",
            entity_id=gap["id"],
            changes=[change("Title", None, gap["title"]), change("Impact", None, gap["impact"])],
        )
        return gap

    def update_gap(self, gap_id: str, req: GapRequest) -> dict[str, Any]:
        with self.lock:
            gap = self.get_gap(gap_id)
            self._validate(req)
            before = dict(gap)
            gap.update(
                {
                    "title": req.title.strip(),
                    "description": req.description,
                    "impact": req.impact,
                    "improvementPlan": req.improvement_plan,
                    "targetDate": req.target_date,
                    "updatedBy": req.updated_by,
                    "updatedAt": utc_now(),
                }
            )
            self.repo.upsert("gap", gap)
        changes = diff(before, gap, TRACKED_FIELDS)
        if changes:
            self.record(
                user_id=req.updated_by,
                action="update",
                entity_type="Gap",
                entity_id=gap_id,
                change_note=req.change_note,
                changes=changes,
            )
        return gap

    def resolve(self, gap_id: str, req: ResolveGapRequest) -> dict[str, Any]:
        with self.lock:
            gap = self.get_gap(gap_id)
            if gap.get("resolved"):
                raise ConflictError("Gap is already resolved.")
            gap.update(
                {
                    "resolved": True,
                    "resolvedBy": req.resolved_by,
                    "resolvedAt": utc_now(),
                    "resolutionNote": req.resolution_note,
                }
            )
            self.repo.upsert("gap", gap)
        self.record(
            user_id=req.resolved_by,
            action="resolve",
            entity_type="Gap",
            entity_id=gap_id,
            change_note=req.resolution_note,
            changes=[change("Resolved", "false", "true")],
        )
        return gap

    def reopen(self, gap_id: str, req: ReopenGapRequest) -> dict[str, Any]:
        with self.lock:
            gap = self.get_gap(gap_id)
            if not gap.get("resolved"):
                raise ConflictError("Gap is not resolved.")
            gap.update({"resolved": False, "resolvedBy": None, "resolvedAt": None, "resolutionNote": None})
            self.repo.upsert("gap", gap)
        self.record(
            user_id=req.reopened_by,
            action="reopen",
            entity_type="Gap",
            entity_id=gap_id,
            change_note=req.reason,
            changes=[change("Resolved", "true", "false")],
        )
        return gap

    def dashboard(
        self,
        *,
        period_id: str | None = None,
        status: str | None = None,
        impact: str | None = None,
        section_id: str | None = None,
    ) -> dict[str, Any]:
        """Gaps joined with their section, owner, period and remediation plan."""
        sections = {s["id"]: s for s in self.repo.list("section", period_id=period_id or None)}
        periods = {p["id"]: p for p in self.repo.list("period")}
        plans_by_gap: dict[str, dict[str, Any]] = {}
        for plan in self.repo.list("remediation_plan"):
            if plan.get("gapId"):
                plans_by_gap.setdefault(plan["gapId"], plan)

        items = []
        for gap in self.repo.list("gap"):
            section = sections.get(gap.get("sectionId"))
            if section is None:
                continue
            if section_id and gap["sectionId"] != section_id:
                continue
            gap_status = "resolved" if gap.get("resolved") else "open"
            if status and status != gap_status:
                continue
            if impact and gap.get("impact") != impact:
                continue
            plan = plans_by_gap.get(gap["id"])
            period = periods.get(section.get("periodId")) or {}
            items.append(
                {
                    "gap": gap,
                    "sectionTitle": section["title"],
                    "category": section["category"],
                    "ownerId": section.get("ownerId"),
                    "ownerName": self.user_name(section.get("ownerId"), default=section.get("ownerName") or "Unassigned"),
                    "duePeriod": period.get("name"),
                    "status": gap_status,
                    "remediationPlanId": plan["id"] if plan else None,
                    "remediationPlanStatus": plan["status"] if plan else None,
                }
            )

        items.sort(key=lambda i: (_IMPACT_RANK.get(i["gap"].get("impact"), 3), i["gap"].get("createdAt") or ""))
        with_plan = sum(1 for i in items if i["remediationPlanId"])
        summary = {
            "totalGaps": len(items),
            "openGaps": sum(1 for i in items if i["status"] == "open"),
            "resolvedGaps": sum(1 for i in items if i["status"] == "resolved"),
            "highImpact": sum(1 for i in items if i["gap"].get("impact") == "high"),
            "mediumImpact": sum(1 for i in items if i["gap"].get("impact") == "medium"),
            "lowImpact": sum(1 for i in items if i["gap"].get("impact") == "low"),
            "withRemediationPlan": with_plan,
            "withoutRemediationPlan": len(items) - with_plan,
        }
        return {"gaps": items, "summary": summary}
