"""
Versioned maturity models for assessing reporting practice.

Every version of a model is its own document sharing ``modelId``. Updating
a model writes a new version and deactivates the previous one, so each
model has exactly one active version and a readable history.
"""

from __future__ import annotations

from typing import Any

from reportstudio.config import CRITERION_TYPES
from reportstudio.exceptions import NotFoundError, ValidationError
from reportstudio.models import MaturityLevelRequest, MaturityModelRequest
from reportstudio.services.base import ServiceBase, change, new_id, require, utc_now


def _levels(levels: list[MaturityLevelRequest]) -> list[dict[str, Any]]:
    if not levels:
        raise ValidationError("At least one maturity level is required.", field="levels")
    orders = [level.order for level in levels]
    if len(set(orders)) != len(orders):
        raise ValidationError("Maturity level orders must be unique.", field="levels")

    out = []
    for level in sorted(levels, key=lambda lv: lv.order):
        require(level.name, "levels.name", "Maturity level name is required.")
        criteria = []
        for criterion in level.criteria:
            require(criterion.name, "levels.criteria.name", "Criterion name is required.")
            if criterion.criterion_type not in CRITERION_TYPES:
                raise ValidationError(
                    f"CriterionType must be one of: {', '.join(CRITERION_TYPES)}.", field="levels.criteria.criterionType"
                )
            for label, value in (
                ("MinCompletionPercentage", criterion.min_completion_percentage),
                ("MinEvidencePercentage", criterion.min_evidence_percentage),
            ):
                if value is not None and not 0 <= value <= 100:
                    raise ValidationError(f"{label} must be between 0 and 100.", field="levels.criteria")
            criteria.append(
                {
                    "id": new_id(),
                    "name": criterion.name.strip(),
                    "description": criterion.description,
                    "criterionType": criterion.criterion_type,
                    "targetValue": criterion.target_value,
                    "unit": criterion.unit,
                    "minCompletionPercentage": criterion.min_completion_percentage,
                    "minEvidencePercentage": criterion.min_evidence_percentage,
                    "requiredControls": list(criterion.required_controls),
                    "isMandatory": criterion.is_mandatory,
                }
            )
        out.append(
            {
                "id": new_id(),
                "name": level.name.strip(),
                "description": level.description,
                "order": level.order,
                "criteria": criteria,
            }
        )
    return out


class MaturityModelService(ServiceBase):
    def list_models(self, include_inactive: bool = False) -> list[dict[str, Any]]:
        models = self.repo.list("maturity_model")
        if not include_inactive:
            models = [m for m in models if m.get("isActive")]
        return models

    def get_model(self, model_id: str) -> dict[str, Any]:
        return self._get_or_404("maturity_model", model_id, "Maturity model not found.")

    def get_active(self) -> dict[str, Any]:
        """The most recently written active version across all models."""
        active = [m for m in self.repo.list("maturity_model") if m.get("isActive")]
        if not active:
            raise NotFoundError("No active maturity model found.", resource_type="maturity_model")
        return max(active, key=lambda m: m.get("updatedAt") or m["createdAt"])

    def _versions(self, model_id: str) -> list[dict[str, Any]]:
        root = self.get_model(model_id)["modelId"]
        versions = [m for m in self.repo.list("maturity_model") if m["modelId"] == root]
        return sorted(versions, key=lambda m: m["version"], reverse=True)

    def version_history(self, model_id: str) -> list[dict[str, Any]]:
        """All versions of the model ``model_id`` belongs to, latest first."""
        return self._versions(model_id)

    def create_model(self, req: MaturityModelRequest) -> dict[str, Any]:
        require(req.name, "name", "Name is required.")
        levels = _levels(req.levels)
        doc_id = new_id()
        model = {
            "id": doc_id,
            "modelId": doc_id,
            "name": req.name.strip(),
            "description": req.description,
            "version": 1,
            "isActive": True,
            "levels": levels,
            "createdBy": req.created_by,
            "createdByName": self.user_name(req.created_by),
            "createdAt": utc_now(),
            "updatedBy": None,
            "updatedByName": None,
            "updatedAt": None,
        }
        self.repo.upsert("maturity_model", model)
        self.record(
            user_id=req.created_by,
            action="create",
            entity_type="MaturityModel",
            entity_id=doc_id,
            changes=[change("Name", None, model["name"]), change("Levels", None, len(levels))],
        )
        return model

    def update_model(self, model_id: str, req: MaturityModelRequest) -> dict[str, Any]:
        require(req.name, "name", "Name is required.")
        levels = _levels(req.levels)
        with self.lock:
            versions = self._versions(model_id)
            latest = versions[0]
            superseded = [{**v, "isActive": False} for v in versions if v.get("isActive")]
            model = {
                **latest,
                "id": new_id(),
                "name": req.name.strip(),
                "description": req.description,
                "version": latest["version"] + 1,
                "isActive": True,
                "levels": levels,
                "updatedBy": req.updated_by,
                "updatedByName": self.user_name(req.updated_by),
                "updatedAt": utc_now(),
            }
            self.repo.upsert_many([("maturity_model", v) for v in superseded] + [("maturity_model", model)])
        self.record(
            user_id=req.updated_by,
            action="new-version",
            entity_type="MaturityModel",
            entity_id=model["modelId"],
            changes=[change("Version", latest["version"], model["version"]), change("Name", latest["name"], model["name"])],
        )
        return model

    def delete_model(self, model_id: str, deleted_by: str | None = None) -> dict[str, str]:
        """Delete every version of the model."""
        with self.lock:
            versions = self._versions(model_id)
            self.repo.delete_many("maturity_model", [v["id"] for v in versions])
        self.record(
            user_id=deleted_by,
            action="delete",
            entity_type="MaturityModel",
            entity_id=versions[0]["modelId"],
            changes=[change("Versions", len(versions), None)],
        )
        return {"message": "Maturity model deleted successfully."}
