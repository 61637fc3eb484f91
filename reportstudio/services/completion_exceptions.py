"""
Completion exceptions: approved, justified gaps in a section's data.

An exception is requested as ``pending`` and is then accepted or rejected
once. Accepted exceptions that have not expired count towards the
completeness validation report's "with exceptions" percentage.
"""

from __future__ import annotations

from datetime import date
from typing import Any

from reportstudio.config import EXCEPTION_STATUSES, EXCEPTION_TYPES
from reportstudio.exceptions import ConflictError, NotFoundError, ValidationError
from reportstudio.models import ApproveExceptionRequest, CompletionExceptionRequest, RejectExceptionRequest
from reportstudio.services.base import ServiceBase, change, new_id, now_utc, parse_date, require, utc_now


def _summary(dp: dict[str, Any]) -> dict[str, Any]:
    return {
        "id": dp["id"],
        "title": dp["title"],
        "completenessStatus": dp.get("completenessStatus"),
        "missingReason": dp.get("missingReason"),
        "estimateType": dp.get("estimateType"),
        "confidenceLevel": dp.get("confidenceLevel"),
    }


def _is_missing(dp: dict[str, Any]) -> bool:
    return dp.get("completenessStatus") == "missing" or bool(dp.get("isMissing")) or dp.get("gapStatus") == "missing"


def _is_estimated(dp: dict[str, Any]) -> bool:
    return dp.get("gapStatus") == "estimated" or dp.get("informationType") == "estimate"


def _percentage(part: int, total: int) -> float:
    return round(100 * part / total, 1) if total else 0.0


class CompletionExceptionService(ServiceBase):
    def list_exceptions(self, section_id: str | None = None, status: str | None = None) -> list[dict[str, Any]]:
        items = self.repo.list("completion_exception", section_id=section_id or None)
        if status:
            if status not in EXCEPTION_STATUSES:
                raise ValidationError(f"Status must be one of: {', '.join(EXCEPTION_STATUSES)}.", field="status")
            items = [e for e in items if e["status"] == status]
        return items

    def get_exception(self, exception_id: str) -> dict[str, Any]:
        return self._get_or_404(
            "completion_exception", exception_id, f"Completion exception with ID '{exception_id}' not found."
        )

    def create_exception(self, req: CompletionExceptionRequest) -> dict[str, Any]:
        require(req.section_id, "sectionId", "SectionId is required.")
        require(req.title, "title", "Title is required.")
        require(req.justification, "justification", "Justification is required.")
        require(req.requested_by, "requestedBy", "RequestedBy is required.")
        if req.exception_type not in EXCEPTION_TYPES:
            raise ValidationError(
                f"ExceptionType must be one of: {', '.join(EXCEPTION_TYPES)}.", field="exceptionType"
            )
        if req.expires_at and parse_date(req.expires_at) is None:
            raise ValidationError("ExpiresAt must be a valid date.", field="expiresAt")

        with self.lock:
            if self.repo.get("section", req.section_id) is None:
                raise ValidationError(f"Section with ID '{req.section_id}' not found.", field="sectionId")
            if req.data_point_id:
                dp = self.repo.get("data_point", req.data_point_id)
                if dp is None or dp.get("sectionId") != req.section_id:
                    raise ValidationError(
                        f"Data point with ID '{req.data_point_id}' not found in this section.", field="dataPointId"
                    )
            self.ensure_section_unlocked(req.section_id)
            exception = {
                "id": new_id(),
                "sectionId": req.section_id,
                "dataPointId": req.data_point_id or None,
                "title": req.title.strip(),
                "exceptionType": req.exception_type,
                "justification": req.justification.strip(),
                "status": "pending",
                "requestedBy": req.requested_by,
                "requestedAt": utc_now(),
                "approvedBy": None,
                "approvedAt": None,
                "rejectedBy": None,
                "rejectedAt": None,
                "reviewComments": None,
                "expiresAt": req.expires_at,
            }
            self.repo.upsert("completion_exception", exception)
        self.record(
            user_id=req.requested_by,
            action="create",
            entity_type="CompletionException",
            entity_id=exception["id"],
            changes=[
                change("Title", None, exception["title"]),
                change("ExceptionType", None, exception["exceptionType"]),
            ],
        )
        return exception

    def _review(self, exception_id: str, *, status: str, user_id: str, comments: str | None) -> dict[str, Any]:
        with self.lock:
            exception = self.get_exception(exception_id)
            if exception["status"] != "pending":
                raise ConflictError(
                    f"Cannot review exception with status '{exception['status']}'. Only pending exceptions can be reviewed."
                )
            prefix = "approved" if status == "accepted" else "rejected"
            if self.find_user(user_id) is None:
                raise ValidationError(f"User with ID '{user_id}' not found.", field=f"{prefix}By")
            exception.update(
                {
                    "status": status,
                    f"{prefix}By": user_id,
                    f"{prefix}At": utc_now(),
                    "reviewComments": comments,
                }
            )
            self.repo.upsert("completion_exception", exception)
        self.record(
            user_id=user_id,
            action="approve" if status == "accepted" else "reject",
            entity_type="CompletionException",
            entity_id=exception_id,
            change_note=comments,
            changes=[change("Status", "pending", status)],
        )
        return exception

    def approve(self, exception_id: str, req: ApproveExceptionRequest) -> dict[str, Any]:
        require(req.approved_by, "approvedBy", "ApprovedBy is required.")
        return self._review(exception_id, status="accepted", user_id=req.approved_by, comments=req.review_comments)

    def reject(self, exception_id: str, req: RejectExceptionRequest) -> dict[str, Any]:
        require(req.rejected_by, "rejectedBy", "RejectedBy is required.")
        require(req.review_comments, "reviewComments", "Review comments are required when rejecting an exception.")
        return self._review(exception_id, status="rejected", user_id=req.rejected_by, comments=req.review_comments)

    def delete_exception(self, exception_id: str, deleted_by: str | None) -> None:
        require(deleted_by, "deletedBy", "DeletedBy user ID is required.")
        with self.lock:
            exception = self.get_exception(exception_id)
            if exception["status"] != "pending":
                raise ConflictError(
                    f"Cannot delete exception with status '{exception['status']}'. "
                    "Only pending exceptions can be deleted."
                )
            self.repo.delete("completion_exception", exception_id)
        self.record(
            user_id=deleted_by,
            action="delete",
            entity_type="CompletionException",
            entity_id=exception_id,
            changes=[change("Title", exception["title"], None)],
        )

    @staticmethod
    def is_in_force(exception: dict[str, Any], today: date) -> bool:
        if exception["status"] != "accepted":
            return False
        expires = parse_date(exception.get("expiresAt"))
        return expires is None or expires >= today

    def validation_report(self, period_id: str, today: date | None = None) -> dict[str, Any]:
        """
        Missing, estimated and simplified data points per section, with the
        accepted exceptions that cover them.

        A section-level exception (no data point) covers every incomplete data
        point of its section. Simplified items are data points marked
        ``not applicable``.
        """
        require(period_id, "periodId", "Period ID is required.")
        if self.repo.get("period", period_id) is None:
            raise NotFoundError("Reporting period not found.", resource_type="period", resource_id=period_id)
        today = today or now_utc().date()

        sections_out = []
        total = complete = missing = estimated = simplified = covered = accepted_count = pending_count = 0
        for section in self.repo.list("section", period_id=period_id):
            points = self.repo.list("data_point", section_id=section["id"])
            exceptions = self.repo.list("completion_exception", section_id=section["id"])
            accepted = [e for e in exceptions if self.is_in_force(e, today)]
            pending_count += sum(1 for e in exceptions if e["status"] == "pending")
            accepted_count += len(accepted)

            section_wide = any(not e.get("dataPointId") for e in accepted)
            excepted_ids = {e["dataPointId"] for e in accepted if e.get("dataPointId")}

            missing_items = [_summary(dp) for dp in points if _is_missing(dp)]
            estimated_items = [_summary(dp) for dp in points if _is_estimated(dp)]
            simplified_items = [_summary(dp) for dp in points if dp.get("completenessStatus") == "not applicable"]

            done = sum(1 for dp in points if dp.get("completenessStatus") == "complete")
            total += len(points)
            complete += done
            covered += sum(
                1
                for dp in points
                if dp.get("completenessStatus") != "complete" and (section_wide or dp["id"] in excepted_ids)
            )
            missing += len(missing_items)
            estimated += len(estimated_items)
            simplified += len(simplified_items)

            if missing_items or estimated_items or simplified_items or accepted:
                sections_out.append(
                    {
                        "sectionId": section["id"],
                        "sectionTitle": section["title"],
                        "category": section.get("category"),
                        "missingItems": missing_items,
                        "estimatedItems": estimated_items,
                        "simplifiedItems": simplified_items,
                        "acceptedExceptions": accepted,
                    }
                )

        return {
            "periodId": period_id,
            "sections": sections_out,
            "summary": {
                "totalSections": len(sections_out),
                "totalDataPoints": total,
                "missingCount": missing,
                "estimatedCount": estimated,
                "simplifiedCount": simplified,
                "acceptedExceptionsCount": accepted_count,
                "pendingExceptionsCount": pending_count,
                "completenessPercentage": _percentage(complete, total),
                "completenessWithExceptionsPercentage": _percentage(complete + covered, total),
            },
        }


__all__ = ["CompletionExceptionService"]
