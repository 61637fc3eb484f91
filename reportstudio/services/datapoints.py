"""
Data points: the individual disclosed facts, metrics and narratives of a
section, with their review workflow, missing-data flags and the
missing -> estimated -> provided gap lifecycle.
"""

from __future__ import annotations

import json
from typing import Any

from reportstudio.config import (
    COMPLETENESS_STATUSES,
    CONFIDENCE_LEVELS,
    ESTIMATE_TYPES,
    GAP_STATUSES,
    INFORMATION_TYPES,
    MISSING_REASON_CATEGORIES,
    REVIEW_STATUSES,
)
from reportstudio.exceptions import ConflictError, PermissionDeniedError, ValidationError
from reportstudio.logging_config import log_event
from reportstudio.models import (
    BlockerRequest,
    DataPointRequest,
    FlagMissingRequest,
    GapStatusRequest,
    ReviewRequest,
    UnflagMissingRequest,
)
from reportstudio.services.base import ServiceBase, change, diff, is_blank, new_id, require, utc_now
from reportstudio.services.validation import ValidationRuleService

# doc key -> audit field name
TRACKED_FIELDS = {
    "type": "Type",
    "classification": "Classification",
    "title": "Title",
    "content": "Content",
    "value": "Value",
    "unit": "Unit",
    "ownerId": "OwnerId",
    "source": "Source",
    "informationType": "InformationType",
    "assumptions": "Assumptions",
    "completenessStatus": "CompletenessStatus",
    "reviewStatus": "ReviewStatus",
    "deadline": "Deadline",
}

# Fields that must be unchanged for an update of an approved data point to be allowed.
_REVIEW_ONLY_FIELDS = (
    "type",
    "classification",
    "title",
    "content",
    "value",
    "unit",
    "ownerId",
    "source",
    "informationType",
    "assumptions",
    "completenessStatus",
)


def auto_completeness(doc: dict[str, Any]) -> str:
    """Complete when the core fields are filled and at least one evidence is linked."""
    filled = all(not is_blank(doc.get(k)) for k in ("title", "content", "source", "informationType"))
    return "complete" if filled and doc.get("evidenceIds") else "incomplete"


def _one_of(value: str, allowed, label: str) -> None:
    if value not in allowed:
        raise ValidationError(f"{label} must be one of: {', '.join(allowed)}.", field=label)


class DataPointService(ServiceBase):
    def __init__(self, repo, audit, *, rules: ValidationRuleService) -> None:
        super().__init__(repo, audit)
        self.rules = rules

    # -- queries -----------------------------------------------------------

    def list_data_points(
        self, section_id: str | None = None, assigned_user_id: str | None = None
    ) -> list[dict[str, Any]]:
        points = self.repo.list("data_point", section_id=section_id or None)
        if assigned_user_id:
            points = [
                dp
                for dp in points
                if dp.get("ownerId") == assigned_user_id or assigned_user_id in (dp.get("contributorIds") or [])
            ]
        return points

    def get_data_point(self, data_point_id: str) -> dict[str, Any]:
        return self._get_or_404("data_point", data_point_id, "DataPoint not found.")

    # -- validation --------------------------------------------------------

    def _validate(self, req: DataPointRequest, *, section_id: str, evidence_ids: list[str]) -> dict[str, Any]:
        """Apply the create/update rules in order; returns the normalised field values."""
        require(req.title, "title", "Title is required.")
        require(req.content, "content", "Content is required.")
        require(section_id, "sectionId", "SectionId is required.")
        require(req.owner_id, "ownerId", "OwnerId is required.")
        if self.find_user(req.owner_id) is None:
            raise ValidationError(f"Owner with ID '{req.owner_id}' not found.", field="ownerId")

        contributor_ids = [c for c in req.contributor_ids if c]
        if req.owner_id in contributor_ids:
            raise ValidationError("Owner cannot also be listed as a contributor.", field="contributorIds")
        for contributor_id in contributor_ids:
            if self.find_user(contributor_id) is None:
                raise ValidationError(f"Contributor with ID '{contributor_id}' not found.", field="contributorIds")

        require(req.source, "source", "Source is required.")
        require(req.information_type, "informationType", "InformationType is required.")
        _one_of(req.information_type, INFORMATION_TYPES, "InformationType")
        if req.information_type == "estimate" and is_blank(req.assumptions):
            raise ValidationError(
                "Assumptions field is required when InformationType is 'estimate'.", field="assumptions"
            )

        fields = {
            "sectionId": section_id,
            "type": req.type or "narrative",
            "classification": req.classification,
            "title": req.title.strip(),
            "content": req.content,
            "value": req.value,
            "unit": req.unit,
            "ownerId": req.owner_id,
            "contributorIds": contributor_ids,
            "source": req.source,
            "informationType": req.information_type,
            "assumptions": req.assumptions,
            "deadline": req.deadline,
            "evidenceIds": evidence_ids,
        }

        if is_blank(req.completeness_status):
            fields["completenessStatus"] = auto_completeness(fields)
        else:
            _one_of(req.completeness_status, COMPLETENESS_STATUSES, "CompletenessStatus")
            fields["completenessStatus"] = req.completeness_status

        if self.repo.get("section", section_id) is None:
            raise ValidationError(f"Section with ID '{section_id}' not found.", field="sectionId")
        self.ensure_section_unlocked(section_id)

        review_status = req.review_status or "draft"
        _one_of(review_status, REVIEW_STATUSES, "ReviewStatus")
        fields["reviewStatus"] = review_status

        failure = self.rules.first_failure(section_id, req.value, req.unit)
        if failure:
            raise ValidationError(failure, field="value")
        return fields

    # -- commands ----------------------------------------------------------

    def create_data_point(self, req: DataPointRequest) -> dict[str, Any]:
        with self.lock:
            fields = self._validate(req, section_id=req.section_id, evidence_ids=[])
            now = utc_now()
            dp = {
                "id": new_id(),
                **fields,
                "reviewedBy": None,
                "reviewedAt": None,
                "reviewComments": None,
                "createdAt": now,
                "updatedAt": now,
                "isBlocked": False,
                "blockerReason": None,
                "blockerDueDate": None,
                "isMissing": False,
                "missingReasonCategory": None,
                "missingReason": None,
                "missingFlaggedBy": None,
                "missingFlaggedAt": None,
                "gapStatus": None,
                "estimateType": None,
                "estimateMethod": None,
                "confidenceLevel": None,
                "previousEstimateSnapshot": None,
                "rolloverSourceId": None,
            }
            self.repo.upsert("data_point", dp)
        self.record(
            user_id=req.updated_by or req.owner_id,
            action="create",
            entity_type="DataPoint",
            entity_id=dp["id"],
            changes=[change("Title", None, dp["title"])],
        )
        return dp

    def update_data_point(self, data_point_id: str, req: DataPointRequest) -> dict[str, Any]:
        with self.lock:
            dp = self.get_data_point(data_point_id)
            if dp.get("reviewStatus") == "approved":
                requested = {
                    "type": req.type,
                    "classification": req.classification,
                    "title": req.title,
                    "content": req.content,
                    "value": req.value,
                    "unit": req.unit,
                    "ownerId": req.owner_id,
                    "source": req.source,
                    "informationType": req.information_type,
                    "assumptions": req.assumptions,
                    "completenessStatus": req.completeness_status,
                }
                review_only = not is_blank(req.review_status) and all(
                    (requested[k] or None) == (dp.get(k) or None) for k in _REVIEW_ONLY_FIELDS
                )
                if not review_only:
                    raise ConflictError(
                        "Cannot modify approved data points. Only admins can make changes to approved entries."
                    )

            fields = self._validate(req, section_id=dp["sectionId"], evidence_ids=list(dp.get("evidenceIds") or []))
            before = dict(dp)
            dp.update(fields)
            dp["updatedAt"] = utc_now()
            changes = diff(before, dp, TRACKED_FIELDS)
            self.repo.upsert("data_point", dp)

        if changes:
            self.record(
                user_id=req.updated_by,
                action="update",
                entity_type="DataPoint",
                entity_id=data_point_id,
                change_note=req.change_note,
                changes=changes,
            )
        return dp

    def delete_data_point(self, data_point_id: str, deleted_by: str | None = None) -> None:
        with self.lock:
            dp = self.get_data_point(data_point_id)
            self.ensure_section_unlocked(dp["sectionId"])
            touched: list[tuple[str, dict[str, Any]]] = []
            for evidence in self.repo.list("evidence"):
                if data_point_id in (evidence.get("linkedDataPoints") or []):
                    evidence["linkedDataPoints"] = [i for i in evidence["linkedDataPoints"] if i != data_point_id]
                    touched.append(("evidence", evidence))
            for assumption in self.repo.list("assumption"):
                if data_point_id in (assumption.get("linkedDataPointIds") or []):
                    assumption["linkedDataPointIds"] = [
                        i for i in assumption["linkedDataPointIds"] if i != data_point_id
                    ]
                    touched.append(("assumption", assumption))
            self.repo.upsert_many(touched)
            self.repo.delete("data_point", data_point_id)
        self.record(
            user_id=deleted_by,
            action="delete",
            entity_type="DataPoint",
            entity_id=data_point_id,
            changes=[change("Title", dp.get("title"), None)],
        )

    # -- review ------------------------------------------------------------

    def _review(self, data_point_id: str, req: ReviewRequest, *, status: str, action: str) -> dict[str, Any]:
        with self.lock:
            dp = self.get_data_point(data_point_id)
            if dp.get("reviewStatus") != "ready-for-review":
                verb = "approved" if status == "approved" else "reviewed"
                raise ConflictError(f"Data point must be in 'ready-for-review' status to be {verb}.")
            if self.find_user(req.reviewed_by) is None:
                raise ValidationError(f"Reviewer with ID '{req.reviewed_by}' not found.", field="reviewedBy")
            if status == "changes-requested" and is_blank(req.review_comments):
                raise ValidationError(
                    "Review comments are required when requesting changes.", field="reviewComments"
                )
            old_status = dp["reviewStatus"]
            dp.update(
                {
                    "reviewStatus": status,
                    "reviewedBy": req.reviewed_by,
                    "reviewedAt": utc_now(),
                    "reviewComments": req.review_comments,
                    "updatedAt": utc_now(),
                }
            )
            self.repo.upsert("data_point", dp)
        self.record(
            user_id=req.reviewed_by,
            action=action,
            entity_type="DataPoint",
            entity_id=data_point_id,
            change_note=req.review_comments,
            changes=[change("ReviewStatus", old_status, status)],
        )
        return dp

    def approve(self, data_point_id: str, req: ReviewRequest) -> dict[str, Any]:
        return self._review(data_point_id, req, status="approved", action="approve")

    def request_changes(self, data_point_id: str, req: ReviewRequest) -> dict[str, Any]:
        return self._review(data_point_id, req, status="changes-requested", action="request-changes")

    # -- missing data --------------------------------------------------------

    def flag_missing(self, data_point_id: str, req: FlagMissingRequest) -> dict[str, Any]:
        with self.lock:
            dp = self.get_data_point(data_point_id)
            self.ensure_section_unlocked(dp["sectionId"])
            _one_of(req.missing_reason_category, MISSING_REASON_CATEGORIES, "MissingReasonCategory")
            require(req.missing_reason, "missingReason", "MissingReason cannot be empty.")
            if dp.get("isMissing"):
                raise ConflictError("Data point is already flagged as missing.")
            old_completeness = dp.get("completenessStatus")
            dp.update(
                {
                    "isMissing": True,
                    "missingReasonCategory": req.missing_reason_category,
                    "missingReason": req.missing_reason.strip(),
                    "missingFlaggedBy": req.flagged_by,
                    "missingFlaggedAt": utc_now(),
                    "completenessStatus": "missing",
                    "updatedAt": utc_now(),
                }
            )
            self.repo.upsert("data_point", dp)
        self.record(
            user_id=req.flagged_by,
            action="flag-missing",
            entity_type="DataPoint",
            entity_id=data_point_id,
            change_note=f"Flagged as missing ({req.missing_reason_category}): {req.missing_reason.strip()}",
            changes=[
                change("IsMissing", "false", "true"),
                change("CompletenessStatus", old_completeness, "missing"),
            ],
        )
        return dp

    def unflag_missing(self, data_point_id: str, req: UnflagMissingRequest) -> dict[str, Any]:
        with self.lock:
            dp = self.get_data_point(data_point_id)
            self.ensure_section_unlocked(dp["sectionId"])
            if not dp.get("isMissing"):
                raise ConflictError("Data point is not currently flagged as missing.")
            category = dp.get("missingReasonCategory")
            dp.update(
                {
                    "isMissing": False,
                    "missingReasonCategory": None,
                    "missingReason": None,
                    "missingFlaggedBy": None,
                    "missingFlaggedAt": None,
                    "updatedAt": utc_now(),
                }
            )
            dp["completenessStatus"] = auto_completeness(dp)
            self.repo.upsert("data_point", dp)
        self.record(
            user_id=req.unflagged_by,
            action="unflag-missing",
            entity_type="DataPoint",
            entity_id=data_point_id,
            change_note=req.change_note or f"Missing flag removed (was: {category})",
            changes=[change("IsMissing", "true", "false")],
        )
        return dp

    # -- gap lifecycle -------------------------------------------------------

    @staticmethod
    def _check_transition(current: str | None, target: str) -> None:
        if target not in GAP_STATUSES:
            raise ValidationError("TargetStatus must be one of: missing, estimated, provided.", field="targetStatus")
        if current == target:
            raise ConflictError(f"Data point is already in '{target}' status.")
        if current == "provided":
            raise ConflictError("Cannot transition from 'provided' back to earlier states.")
        if current == "estimated" and target == "missing":
            raise ConflictError("Cannot transition from 'estimated' back to 'missing'.")
        if target == "estimated" and current != "missing":
            raise ConflictError("Cannot skip 'missing' state. Data point must be flagged as missing first.")
        if target == "provided" and current != "estimated":
            raise ConflictError("Cannot skip 'estimated' state. Provide an estimate before the final value.")

    def transition_gap_status(self, data_point_id: str, req: GapStatusRequest) -> dict[str, Any]:
        with self.lock:
            dp = self.get_data_point(data_point_id)
            self.ensure_section_unlocked(dp["sectionId"])

            actor = req.transitioned_by
            if actor and actor != dp.get("ownerId") and not self.is_admin(actor):
                self.record(
                    user_id=actor,
                    action="transition-gap-status-denied",
                    entity_type="DataPoint",
                    entity_id=data_point_id,
                    change_note=f"Attempted transition to '{req.target_status}'",
                )
                raise PermissionDeniedError(
                    "Permission denied: only the data point owner or an administrator can change its gap status.",
                    user_id=actor,
                )

            current = dp.get("gapStatus")
            self._check_transition(current, req.target_status)

            if req.target_status == "missing":
                dp.update({"isMissing": True, "completenessStatus": "missing"})
            elif req.target_status == "estimated":
                require(req.estimate_type, "estimateType", "EstimateType is required when transitioning to 'estimated'.")
                require(
                    req.estimate_method, "estimateMethod", "EstimateMethod is required when transitioning to 'estimated'."
                )
                require(
                    req.confidence_level,
                    "confidenceLevel",
                    "ConfidenceLevel is required when transitioning to 'estimated'.",
                )
                _one_of(req.estimate_type, ESTIMATE_TYPES, "EstimateType")
                _one_of(req.confidence_level, sorted(CONFIDENCE_LEVELS), "ConfidenceLevel")
                dp.update(
                    {
                        "isMissing": False,
                        "informationType": "estimate",
                        "estimateType": req.estimate_type,
                        "estimateMethod": req.estimate_method,
                        "confidenceLevel": req.confidence_level,
                        "completenessStatus": "incomplete",
                    }
                )
            else:
                dp["previousEstimateSnapshot"] = json.dumps(
                    {
                        "estimateType": dp.get("estimateType"),
                        "estimateMethod": dp.get("estimateMethod"),
                        "confidenceLevel": dp.get("confidenceLevel"),
                        "value": dp.get("value"),
                        "unit": dp.get("unit"),
                    }
                )
                dp.update({"isMissing": False, "completenessStatus": "complete"})

            dp["gapStatus"] = req.target_status
            dp["updatedAt"] = utc_now()
            self.repo.upsert("data_point", dp)

        self.record(
            user_id=actor,
            action="transition-gap-status",
            entity_type="DataPoint",
            entity_id=data_point_id,
            change_note=req.change_note,
            changes=[change("GapStatus", current, req.target_status)],
        )
        log_event("gap_status_transitioned", data_point_id=data_point_id, from_status=current, to_status=req.target_status)
        return dp

    def set_blocker(self, data_point_id: str, req: BlockerRequest) -> dict[str, Any]:
        with self.lock:
            dp = self.get_data_point(data_point_id)
            if req.is_blocked and is_blank(req.blocker_reason):
                raise ValidationError("Blocker reason is required when marking a data point as blocked.")
            dp.update(
                {
                    "isBlocked": req.is_blocked,
                    "blockerReason": req.blocker_reason if req.is_blocked else None,
                    "blockerDueDate": req.blocker_due_date if req.is_blocked else None,
                    "updatedAt": utc_now(),
                }
            )
            self.repo.upsert("data_point", dp)
        self.record(
            user_id=req.updated_by,
            action="block" if req.is_blocked else "unblock",
            entity_type="DataPoint",
            entity_id=data_point_id,
            change_note=req.blocker_reason,
            changes=[change("IsBlocked", None, str(req.is_blocked).lower())],
        )
        return dp

