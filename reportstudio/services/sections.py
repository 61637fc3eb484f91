from __future__ import annotations

from typing import Any

from reportstudio.exceptions import ReportStudioError, ValidationError
from reportstudio.models import BulkUpdateSectionOwnerRequest, UpdateSectionOwnerRequest
from reportstudio.services.base import ServiceBase, change, new_id, require, utc_now

_DONE = frozenset({"complete", "not applicable"})


def progress_status(points: list[dict[str, Any]]) -> str:
    if not points:
        return "not-started"
    if any(dp.get("isBlocked") for dp in points):
        return "blocked"
    if all(dp.get("completenessStatus") in _DONE for dp in points):
        return "completed"
    return "in-progress"


class SectionService(ServiceBase):
    """Report sections: listing, progress summaries and ownership."""

    @staticmethod
    def build_section(
        period_id: str,
        item: dict[str, Any],
        order: int,
        owner_id: str | None,
        owner_name: str | None,
    ) -> dict[str, Any]:
        return {
            "id": new_id(),
            "periodId": period_id,
            "title": item["title"],
            "category": item["category"],
            "description": item.get("description", ""),
            "catalogCode": item["code"],
            "ownerId": owner_id or None,
            "ownerName": owner_name or None,
            "status": "draft",
            "completeness": "empty",
            "order": order,
            "createdAt": utc_now(),
        }

    def list_sections(self, period_id: str | None = None) -> list[dict[str, Any]]:
        return self.repo.list("section", period_id=period_id or None)

    def get_section(self, section_id: str) -> dict[str, Any]:
        return self._get_or_404("section", section_id, "Section not found.")

    def summaries(self, period_id: str | None = None) -> list[dict[str, Any]]:
        sections = self.list_sections(period_id)
        section_ids = {s["id"] for s in sections}

        def by_section(kind: str) -> dict[str, list[dict[str, Any]]]:
            grouped: dict[str, list[dict[str, Any]]] = {}
            for doc in self.repo.list(kind):
                if doc.get("sectionId") in section_ids:
                    grouped.setdefault(doc["sectionId"], []).append(doc)
            return grouped

        data_points = by_section("data_point")
        evidence = by_section("evidence")
        gaps = by_section("gap")
        assumptions = by_section("assumption")

        out = []
        for section in sections:
            points = data_points.get(section["id"], [])
            complete = sum(1 for dp in points if dp.get("completenessStatus") == "complete")
            out.append(
                {
                    **section,
                    "dataPointCount": len(points),
                    "evidenceCount": len(evidence.get(section["id"], [])),
                    "gapCount": len(gaps.get(section["id"], [])),
                    "assumptionCount": len(assumptions.get(section["id"], [])),
                    "completenessPercentage": round(100 * complete / len(points)) if points else 0,
                    "ownerName": self._owner_name(section),
                    "progressStatus": progress_status(points),
                }
            )
        return out

    def _owner_name(self, section: dict[str, Any]) -> str:
        if section.get("ownerId"):
            user = self.find_user(section["ownerId"])
            if user:
                return user["name"]
        return section.get("ownerName") or "Unassigned"

    def update_owner(self, section_id: str, req: UpdateSectionOwnerRequest) -> dict[str, Any]:
        require(req.owner_id, "ownerId", "OwnerId is required.")
        with self.lock:
            section = self.get_section(section_id)
            owner = self.find_user(req.owner_id)
            if owner is None:
                raise ValidationError(f"Owner with ID '{req.owner_id}' not found.", field="ownerId")
            self.ensure_section_unlocked(section_id)
            old_owner = section.get("ownerId")
            section["ownerId"] = owner["id"]
            section["ownerName"] = owner["name"]
            self.repo.upsert("section", section)
        self.record(
            user_id=req.updated_by,
            action="UpdateSectionOwner",
            entity_type="ReportSection",
            entity_id=section_id,
            change_note=req.change_note,
            changes=[change("OwnerId", old_owner, owner["id"])],
        )
        return section

    def bulk_update_owner(self, req: BulkUpdateSectionOwnerRequest) -> dict[str, Any]:
        require(req.owner_id, "ownerId", "OwnerId is required.")
        if self.find_user(req.owner_id) is None:
            raise ValidationError(f"Owner with ID '{req.owner_id}' not found.", field="ownerId")

        updated, skipped = [], []
        for section_id in req.section_ids:
            single = UpdateSectionOwnerRequest(
                owner_id=req.owner_id, updated_by=req.updated_by, change_note=req.change_note
            )
            try:
                updated.append(self.update_owner(section_id, single))
            except ReportStudioError as exc:
                skipped.append({"sectionId": section_id, "reason": exc.message})
        return {"updatedSections": updated, "skippedSections": skipped}

    def responsibility_matrix(self, period_id: str | None = None, owner_filter: str | None = None) -> dict[str, Any]:
        sections = self.list_sections(period_id)
        counts: dict[str, int] = {}
        for dp in self.repo.list("data_point"):
            counts[dp.get("sectionId")] = counts.get(dp.get("sectionId"), 0) + 1

        groups: dict[str | None, dict[str, Any]] = {}
        for section in sections:
            owner_id = section.get("ownerId") or None
            group = groups.get(owner_id)
            if group is None:
                user = self.find_user(owner_id) if owner_id else None
                group = {
                    "ownerId": owner_id,
                    "ownerName": (user or {}).get("name") or section.get("ownerName") or "Unassigned",
                    "ownerEmail": (user or {}).get("email"),
                    "sections": [],
                    "totalDataPoints": 0,
                }
                groups[owner_id] = group
            group["sections"].append(section)
            group["totalDataPoints"] += counts.get(section["id"], 0)

        assignments = list(groups.values())
        if owner_filter == "unassigned":
            assignments = [a for a in assignments if a["ownerId"] is None]
        elif owner_filter:
            assignments = [a for a in assignments if a["ownerId"] == owner_filter]

        return {
            "periodId": period_id,
            "totalSections": len(sections),
            "unassignedSections": sum(1 for s in sections if not s.get("ownerId")),
            "assignments": assignments,
        }
