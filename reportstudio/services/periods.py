"""
Reporting periods: creation from the section catalog, configuration updates,
locking, and the aggregate snapshot the console loads on start.
"""

from __future__ import annotations

from datetime import date
from typing import Any

from reportstudio.config import PERIOD_STATUSES, REPORT_SCOPES, REPORTING_MODES
from reportstudio.exceptions import ConflictError, PermissionDeniedError, ValidationError
from reportstudio.logging_config import log_event
from reportstudio.models import CreatePeriodRequest, LockPeriodRequest, UnlockPeriodRequest, UpdatePeriodRequest
from reportstudio.services.base import ServiceBase, change, new_id, parse_date, require, utc_now
from reportstudio.services.carryforward import CarryForwardService
from reportstudio.services.catalog import CatalogService
from reportstudio.services.organization import OrganizationService
from reportstudio.services.sections import SectionService


class PeriodService(ServiceBase):
    def __init__(
        self,
        repo,
        audit,
        *,
        organization: OrganizationService,
        catalog: CatalogService,
        sections: SectionService,
        carry_forward: CarryForwardService,
    ) -> None:
        super().__init__(repo, audit)
        self.organization = organization
        self.catalog = catalog
        self.sections = sections
        self.carry_forward = carry_forward

    # -- queries -----------------------------------------------------------

    def list_periods(self) -> list[dict[str, Any]]:
        return self.repo.list("period")

    def get_period(self, period_id: str) -> dict[str, Any]:
        return self._get_or_404("period", period_id, "Reporting period not found.")

    def has_started(self, period_id: str) -> bool:
        """Reporting has started once any section of the period holds a data point."""
        section_ids = {s["id"] for s in self.repo.list("section", period_id=period_id)}
        return any(dp.get("sectionId") in section_ids for dp in self.repo.list("data_point"))

    def snapshot(self) -> dict[str, Any]:
        return {
            "organization": self.organization.get_organization(),
            "periods": self.list_periods(),
            "sections": self.sections.list_sections(),
            "sectionSummaries": self.sections.summaries(),
            "organizationalUnits": self.organization.list_units(),
        }

    # -- validation --------------------------------------------------------

    def validate_dates(self, start_text: str, end_text: str, *, exclude_id: str | None = None) -> tuple[date, date]:
        start, end = parse_date(start_text), parse_date(end_text)
        if start is None or end is None:
            raise ValidationError("Invalid date format. Please provide valid dates.")
        if start >= end:
            raise ValidationError("Start date must be before end date.")
        for existing in self.list_periods():
            if existing["id"] == exclude_id:
                continue
            existing_start = parse_date(existing.get("startDate"))
            existing_end = parse_date(existing.get("endDate"))
            if existing_start is None or existing_end is None:
                continue
            if start < existing_end and existing_start < end:
                raise ValidationError(
                    f"Reporting period overlaps with existing period '{existing['name']}' "
                    f"({existing['startDate']} - {existing['endDate']})."
                )
        return start, end

    @staticmethod
    def validate_mode(reporting_mode: str, report_scope: str) -> None:
        if reporting_mode not in REPORTING_MODES:
            raise ValidationError("ReportingMode must be one of: simplified, extended.", field="reportingMode")
        if report_scope not in REPORT_SCOPES:
            raise ValidationError("ReportScope must be one of: single-company, group.", field="reportScope")

    # -- commands ----------------------------------------------------------

    def create_period(self, req: CreatePeriodRequest) -> dict[str, Any]:
        with self.lock:
            org = self.organization.get_organization()
            if org is None:
                raise ValidationError("Organization must be configured before creating reporting periods.")
            if not self.organization.list_units():
                raise ValidationError(
                    "Organizational structure must be defined before creating reporting periods. "
                    "Please add at least one organizational unit."
                )
            require(req.name, "name", "Period name is required.")
            start, _ = self.validate_dates(req.start_date, req.end_date)
            self.validate_mode(req.reporting_mode, req.report_scope)

            existing = self.list_periods()
            previous = None
            if req.copy_ownership_from_period_id:
                previous = self.repo.get("period", req.copy_ownership_from_period_id)
            if previous is None and existing:
                previous = existing[-1]

            period = self.build_period(
                name=req.name,
                start_date=req.start_date,
                end_date=req.end_date,
                reporting_mode=req.reporting_mode,
                report_scope=req.report_scope,
                owner_id=req.owner_id,
                owner_name=req.owner_name,
                organization_id=req.organization_id or org["id"],
            )
            self.activate(period)

            ownership_source = {}
            if req.copy_ownership_from_period_id:
                ownership_source = {
                    s.get("catalogCode"): s for s in self.repo.list("section", period_id=req.copy_ownership_from_period_id)
                }

            new_sections = []
            for order, item in enumerate(self.catalog.items_for_mode(req.reporting_mode)):
                section = self.sections.build_section(period["id"], item, order, req.owner_id, req.owner_name)
                source = ownership_source.get(item["code"])
                if source:
                    section["ownerId"] = source.get("ownerId")
                    section["ownerName"] = source.get("ownerName")
                new_sections.append(section)
            self.repo.upsert_many(("section", s) for s in new_sections)

            gaps_copied = assumptions_copied = 0
            if req.carry_forward_gaps_and_assumptions and previous is not None:
                by_code = {s["catalogCode"]: s for s in new_sections}
                for source_section in self.repo.list("section", period_id=previous["id"]):
                    target = by_code.get(source_section.get("catalogCode"))
                    if target is None:
                        continue
                    g, a = self.carry_forward.carry_section(
                        source_section["id"], target["id"], target_start=start, performed_by=req.owner_id
                    )
                    gaps_copied += g
                    assumptions_copied += a

        log_event(
            "period_created",
            period_id=period["id"],
            reporting_mode=period["reportingMode"],
            section_count=len(new_sections),
            gaps_carried=gaps_copied,
            assumptions_carried=assumptions_copied,
        )
        return self.snapshot()

    def build_period(
        self,
        *,
        name: str,
        start_date: str,
        end_date: str,
        reporting_mode: str,
        report_scope: str,
        owner_id: str,
        owner_name: str,
        organization_id: str | None,
    ) -> dict[str, Any]:
        return {
            "id": new_id(),
            "name": name.strip(),
            "startDate": start_date,
            "endDate": end_date,
            "reportingMode": reporting_mode,
            "reportScope": report_scope,
            "status": "active",
            "ownerId": owner_id,
            "ownerName": owner_name,
            "organizationId": organization_id,
            "createdAt": utc_now(),
            "isLocked": False,
            "lockedAt": None,
            "lockedBy": None,
            "lockedByName": None,
        }

    def activate(self, period: dict[str, Any]) -> None:
        """Store ``period`` as the active period; every other period is closed."""
        docs = []
        for existing in self.list_periods():
            if existing["id"] != period["id"] and existing.get("status") != "closed":
                existing["status"] = "closed"
                docs.append(("period", existing))
        period["status"] = "active"
        docs.append(("period", period))
        self.repo.upsert_many(docs)

    def update_period(self, period_id: str, req: UpdatePeriodRequest) -> dict[str, Any]:
        with self.lock:
            period = self.get_period(period_id)
            if self.has_started(period_id):
                raise ConflictError(
                    "Cannot edit configuration after reporting has started. "
                    "Reporting is considered started when data points have been added to sections."
                )
            require(req.name, "name", "Period name is required.")
            self.validate_dates(req.start_date, req.end_date, exclude_id=period_id)
            self.validate_mode(req.reporting_mode, req.report_scope)
            if req.status is not None and req.status not in PERIOD_STATUSES:
                raise ValidationError("Status must be one of: draft, active, closed.", field="status")

            period.update(
                {
                    "name": req.name.strip(),
                    "startDate": req.start_date,
                    "endDate": req.end_date,
                    "reportingMode": req.reporting_mode,
                    "reportScope": req.report_scope,
                    "updatedAt": utc_now(),
                }
            )
            if req.status is not None:
                period["status"] = req.status
            self.repo.upsert("period", period)
        return period

    def lock_period(self, period_id: str, req: LockPeriodRequest) -> dict[str, Any]:
        with self.lock:
            period = self.get_period(period_id)
            if period.get("isLocked"):
                raise ConflictError("Period is already locked.")
            require(req.locked_by, "lockedBy", "LockedBy is required.")
            period.update(
                {
                    "isLocked": True,
                    "lockedAt": utc_now(),
                    "lockedBy": req.locked_by,
                    "lockedByName": self.user_name(req.locked_by),
                }
            )
            self.repo.upsert("period", period)
        self.record(
            user_id=req.locked_by,
            action="lock",
            entity_type="ReportingPeriod",
            entity_id=period_id,
            change_note=req.reason or None,
            changes=[change("IsLocked", "false", "true")],
        )
        log_event("period_locked", period_id=period_id, locked_by=req.locked_by)
        return period

    def unlock_period(self, period_id: str, req: UnlockPeriodRequest) -> dict[str, Any]:
        with self.lock:
            period = self.get_period(period_id)
            if not self.is_admin(req.unlocked_by):
                raise PermissionDeniedError("Only administrators can unlock reporting periods.", user_id=req.unlocked_by)
            require(req.reason, "reason", "Unlock reason is required.")
            if not period.get("isLocked"):
                raise ConflictError("Period is not locked.")
            period.update({"isLocked": False, "lockedAt": None, "lockedBy": None, "lockedByName": None})
            self.repo.upsert("period", period)
        self.record(
            user_id=req.unlocked_by,
            action="unlock",
            entity_type="ReportingPeriod",
            entity_id=period_id,
            change_note=req.reason,
            changes=[change("IsLocked", "true", "false")],
        )
        log_event("period_unlocked", period_id=period_id, unlocked_by=req.unlocked_by)
        return period
