"""
Assumptions: documented estimation bases with a validity window, versioning
and a deprecate/invalidate lifecycle.
"""

from __future__ import annotations

from typing import Any

from reportstudio.exceptions import ConflictError, NotFoundError, ValidationError
from reportstudio.models import AssumptionRequest, DeprecateAssumptionRequest
from reportstudio.services.base import ServiceBase, change, diff, is_blank, new_id, parse_date, require, utc_now

TRACKED_FIELDS = {
    "title": "Title",
    "description": "Description",
    "scope": "Scope",
    "validityStartDate": "ValidityStartDate",
    "validityEndDate": "ValidityEndDate",
    "methodology": "Methodology",
    "limitations": "Limitations",
    "rationale": "Rationale",
}


class AssumptionService(ServiceBase):
    def list_assumptions(self, section_id: str | None = None) -> list[dict[str, Any]]:
        return self.repo.list("assumption", section_id=section_id or None)

    def get_assumption(self, assumption_id: str) -> dict[str, Any]:
        return self._get_or_404("assumption", assumption_id, "Assumption not found.")

    @staticmethod
    def _validate(req: AssumptionRequest) -> None:
        require(req.title, "title", "Title is required.")
        require(req.description, "description", "Description is required.")
        require(req.scope, "scope", "Scope is required.")
        require(req.methodology, "methodology", "Methodology is required.")
        start, end = parse_date(req.validity_start_date), parse_date(req.validity_end_date)
        if start is None or end is None:
            raise ValidationError("Validity start and end dates must be valid dates.")
        if end <= start:
            raise ValidationError("Validity end date must be after start date.", field="validityEndDate")

    @staticmethod
    def _fields(req: AssumptionRequest) -> dict[str, Any]:
        return {
            "title": req.title.strip(),
            "description": req.description,
            "scope": req.scope,
            "validityStartDate": req.validity_start_date,
            "validityEndDate": req.validity_end_date,
            "methodology": req.methodology,
            "limitations": req.limitations,
            "rationale": req.rationale,
            "sources": [s.model_dump(by_alias=True) for s in req.sources],
        }

    def create_assumption(self, req: AssumptionRequest) -> dict[str, Any]:
        require(req.section_id, "sectionId", "SectionId is required.")
        self._validate(req)
        if self.repo.get("section", req.section_id) is None:
            raise ValidationError(f"Section with ID '{req.section_id}' not found.", field="sectionId")
        assumption = {
            "id": new_id(),
            "sectionId": req.section_id,
            **self._fields(req),
            "status": "active",
            "replacementAssumptionId": None,
            "deprecationJustification": None,
            "version": 1,
            "createdBy": req.created_by,
            "createdAt": utc_now(),
            "updatedBy": None,
            "updatedAt": None,
            "linkedDataPointIds": [],
        }
        self.repo.upsert("assumption", assumption)
        self.record(
            user_id=req.created_by,
            action="create",
            entity_type="Assumption",
            entity_id=assumption["id"],
            changes=[change("Title", None, assumption["title"])],
        )
        return assumption

    def update_assumption(self, assumption_id: str, req: AssumptionRequest) -> dict[str, Any]:
        with self.lock:
            assumption = self.get_assumption(assumption_id)
            if assumption.get("status") != "active":
                raise ConflictError("Cannot update a deprecated or invalid assumption.")
            self._validate(req)
            before = dict(assumption)
            assumption.update(self._fields(req))
            assumption["version"] = before.get("version", 1) + 1
            assumption["updatedBy"] = req.updated_by
            assumption["updatedAt"] = utc_now()
            self.repo.upsert("assumption", assumption)
        changes = diff(before, assumption, TRACKED_FIELDS)
        changes.append(change("Version", before.get("version", 1), assumption["version"]))
        self.record(
            user_id=req.updated_by,
            action="update",
            entity_type="Assumption",
            entity_id=assumption_id,
            changes=changes,
        )
        return assumption

    def deprecate(self, assumption_id: str, req: DeprecateAssumptionRequest) -> dict[str, Any]:
        with self.lock:
            assumption = self.get_assumption(assumption_id)
            if assumption.get("status") != "active":
                raise ConflictError("Assumption is already deprecated or invalid.")

            if not is_blank(req.replacement_assumption_id):
                replacement_id = req.replacement_assumption_id
                if replacement_id == assumption_id:
                    raise ValidationError("An assumption cannot replace itself.", field="replacementAssumptionId")
                replacement = self.repo.get("assumption", replacement_id)
                if replacement is None:
                    raise ValidationError(
                        f"Replacement assumption with ID '{replacement_id}' not found.",
                        field="replacementAssumptionId",
                    )
                if replacement.get("status") != "active":
                    raise ValidationError("Replacement assumption must be active.", field="replacementAssumptionId")
                assumption["status"] = "deprecated"
                assumption["replacementAssumptionId"] = replacement_id
            else:
                require(
                    req.justification,
                    "justification",
                    "Justification is required when no replacement assumption is provided.",
                )
                assumption["status"] = "invalid"
            assumption["deprecationJustification"] = req.justification
            assumption["updatedBy"] = req.deprecated_by
            assumption["updatedAt"] = utc_now()
            self.repo.upsert("assumption", assumption)

        self.record(
            user_id=req.deprecated_by,
            action="deprecate",
            entity_type="Assumption",
            entity_id=assumption_id,
            change_note=req.justification,
            changes=[change("Status", "active", assumption["status"])],
        )
        return assumption

    def _linked_data_point(self, data_point_id: str) -> None:
        require(data_point_id, "dataPointId", "DataPointId is required.")
        if self.repo.get("data_point", data_point_id) is None:
            raise NotFoundError("DataPoint not found.", resource_type="data_point", resource_id=data_point_id)

    def link(self, assumption_id: str, data_point_id: str) -> dict[str, Any]:
        with self.lock:
            assumption = self.get_assumption(assumption_id)
            self._linked_data_point(data_point_id)
            linked = assumption.setdefault("linkedDataPointIds", [])
            if data_point_id in linked:
                raise ConflictError("Assumption is already linked to this data point.")
            linked.append(data_point_id)
            self.repo.upsert("assumption", assumption)
        return assumption

    def unlink(self, assumption_id: str, data_point_id: str) -> dict[str, Any]:
        with self.lock:
            assumption = self.get_assumption(assumption_id)
            linked = assumption.get("linkedDataPointIds") or []
            if data_point_id not in linked:
                raise NotFoundError("Assumption is not linked to this data point.")
            assumption["linkedDataPointIds"] = [i for i in linked if i != data_point_id]
            self.repo.upsert("assumption", assumption)
        return assumption

    def delete_assumption(self, assumption_id: str, deleted_by: str | None = None) -> None:
        with self.lock:
            assumption = self.get_assumption(assumption_id)
            if assumption.get("linkedDataPointIds"):
                raise ConflictError(
                    "Cannot delete an assumption that is linked to data points. Unlink them or deprecate it instead."
                )
            self.repo.delete("assumption", assumption_id)
        self.record(
            user_id=deleted_by,
            action="delete",
            entity_type="Assumption",
            entity_id=assumption_id,
            changes=[change("Title", assumption["title"], None)],
        )
