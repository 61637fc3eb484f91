from __future__ import annotations

import pytest

from conftest import ADMIN_ID, OWNER_ID
from reportstudio.exceptions import ConflictError, PermissionDeniedError, ValidationError
from reportstudio.models import (
    AssumptionRequest,
    CreatePeriodRequest,
    GapRequest,
    LockPeriodRequest,
    OrganizationalUnitRequest,
    OrganizationRequest,
    UnlockPeriodRequest,
    UpdatePeriodRequest,
)
from reportstudio.reference import SECTION_CATALOG, SIMPLIFIED_CODES
from reportstudio.services.carryforward import CARRY_FORWARD_PREFIX, EXPIRED_LIMITATION_PREFIX


def _period_request(**overrides) -> CreatePeriodRequest:
    fields = {
        "name": "FY 2024",
        "start_date": "2024-01-01",
        "end_date": "2024-12-31",
        "reporting_mode": "simplified",
        "report_scope": "single-company",
        "owner_id": OWNER_ID,
        "owner_name": "Sarah Chen",
    }
    fields.update(overrides)
    return CreatePeriodRequest(**fields)


class TestPrerequisites:
    def test_requires_organization(self, services):
        with pytest.raises(ValidationError, match="Organization must be configured"):
            services.periods.create_period(_period_request())

    def test_requires_organizational_unit(self, services):
        services.organization.create_organization(OrganizationRequest(name="Acme", created_by=ADMIN_ID))
        with pytest.raises(ValidationError, match="Organizational structure must be defined"):
            services.periods.create_period(_period_request())

    def test_limited_coverage_needs_justification(self, services):
        with pytest.raises(ValidationError, match="justification"):
            services.organization.create_organization(
                OrganizationRequest(name="Acme", coverage_type="limited", created_by=ADMIN_ID)
            )

    def test_recreating_organization_keeps_its_id(self, services, repo, organization, period):
        replaced = services.organization.create_organization(
            OrganizationRequest(name="Acme Group", country="AT", created_by=ADMIN_ID)
        )
        assert replaced["id"] == organization["id"]
        assert [o["name"] for o in repo.list("organization")] == ["Acme Group"]
        assert repo.get("period", period["id"])["organizationId"] == services.organization.get_organization()["id"]

    def test_unit_cycle_rejected(self, services, organization):
        parent = services.organization.list_units()[0]
        child = services.organization.create_unit(OrganizationalUnitRequest(name="Plant", parent_id=parent["id"]))
        with pytest.raises(ValidationError, match="circular"):
            services.organization.update_unit(
                parent["id"], OrganizationalUnitRequest(name=parent["name"], parent_id=child["id"])
            )


class TestCreatePeriod:
    def test_simplified_mode_creates_subset_of_catalog(self, services, organization):
        snapshot = services.periods.create_period(_period_request())
        period = snapshot["periods"][0]
        codes = [s["catalogCode"] for s in services.sections.list_sections(period["id"])]
        assert codes == list(SIMPLIFIED_CODES)
        assert period["status"] == "active"
        assert period["isLocked"] is False
        assert snapshot["organization"]["name"] == "Acme Industries"

    def test_extended_mode_creates_full_catalog(self, services, period):
        sections = services.sections.list_sections(period["id"])
        assert len(sections) == len(SECTION_CATALOG)
        assert all(s["ownerId"] == OWNER_ID for s in sections)

    def test_new_period_closes_previous(self, services, make_period):
        first = make_period()
        make_period(name="FY 2025", start="2025-01-01", end="2025-12-31")
        assert services.periods.get_period(first["id"])["status"] == "closed"

    @pytest.mark.parametrize(
        "start,end,message",
        [
            ("2024-12-31", "2024-01-01", "Start date must be before end date."),
            ("not-a-date", "2024-12-31", "Invalid date format"),
        ],
    )
    def test_invalid_dates(self, services, organization, start, end, message):
        with pytest.raises(ValidationError, match=message):
            services.periods.create_period(_period_request(start_date=start, end_date=end))

    def test_overlap_rejected(self, services, period):
        with pytest.raises(ValidationError, match="overlaps with existing period 'FY 2024'"):
            services.periods.create_period(_period_request(name="Overlap", start_date="2024-06-01", end_date="2025-05-31"))

    def test_invalid_mode(self, services, organization):
        with pytest.raises(ValidationError, match="ReportingMode"):
            services.periods.create_period(_period_request(reporting_mode="full"))

    def test_copy_ownership_from_previous_period(self, services, period, section):
        services.repo.upsert("section", {**section, "ownerId": "user-4", "ownerName": "Emily Johnson"})
        snapshot = services.periods.create_period(
            _period_request(
                name="FY 2025",
                start_date="2025-01-01",
                end_date="2025-12-31",
                reporting_mode="extended",
                copy_ownership_from_period_id=period["id"],
            )
        )
        new_period = next(p for p in snapshot["periods"] if p["name"] == "FY 2025")
        env = next(s for s in services.sections.list_sections(new_period["id"]) if s["catalogCode"] == "ENV-001")
        assert env["ownerId"] == "user-4"


class TestCarryForward:
    def test_open_gaps_and_active_assumptions_are_carried(self, services, period, section):
        services.gaps.create_gap(GapRequest(section_id=section["id"], title="No Scope 3 data", created_by=OWNER_ID))
        resolved = services.gaps.create_gap(GapRequest(section_id=section["id"], title="Old gap", created_by=OWNER_ID))
        services.gaps.resolve(resolved["id"], _resolve())
        services.assumptions.create_assumption(
            AssumptionRequest(
                section_id=section["id"],
                title="Grid factor",
                description="National grid average",
                scope="Electricity",
                validity_start_date="2024-01-01",
                validity_end_date="2024-06-30",
                methodology="IEA factors",
                limitations="Annual average",
                created_by=OWNER_ID,
            )
        )

        snapshot = services.periods.create_period(
            _period_request(
                name="FY 2025",
                start_date="2025-01-01",
                end_date="2025-12-31",
                reporting_mode="extended",
                carry_forward_gaps_and_assumptions=True,
            )
        )
        new_period = next(p for p in snapshot["periods"] if p["name"] == "FY 2025")
        target = next(s for s in services.sections.list_sections(new_period["id"]) if s["catalogCode"] == "ENV-001")

        gaps = services.gaps.list_gaps(target["id"])
        assert [g["title"] for g in gaps] == ["No Scope 3 data"]
        assert gaps[0]["description"].startswith(CARRY_FORWARD_PREFIX)

        [assumption] = services.assumptions.list_assumptions(target["id"])
        assert assumption["version"] == 1
        assert assumption["description"].startswith("WARNING: This assumption expired on 2024-06-30")
        assert assumption["limitations"].startswith(EXPIRED_LIMITATION_PREFIX)


def _resolve():
    from reportstudio.models import ResolveGapRequest

    return ResolveGapRequest(resolved_by=OWNER_ID, resolution_note="Fixed")


class TestUpdateAndLock:
    def test_update_blocked_once_reporting_started(self, services, period, make_data_point):
        assert services.periods.has_started(period["id"]) is False
        make_data_point()
        assert services.periods.has_started(period["id"]) is True
        with pytest.raises(ConflictError, match="after reporting has started"):
            services.periods.update_period(
                period["id"],
                UpdatePeriodRequest(name="FY24", start_date="2024-01-01", end_date="2024-12-31", reporting_mode="extended"),
            )

    def test_update_before_start(self, services, period):
        updated = services.periods.update_period(
            period["id"],
            UpdatePeriodRequest(
                name="FY 2024 restated", start_date="2024-01-01", end_date="2024-12-31", reporting_mode="extended"
            ),
        )
        assert updated["name"] == "FY 2024 restated"

    def test_lock_blocks_writes_and_only_admin_unlocks(self, services, period, make_data_point):
        locked = services.periods.lock_period(period["id"], LockPeriodRequest(locked_by=OWNER_ID, reason="Final"))
        assert locked["isLocked"] is True
        assert locked["lockedByName"] == "Sarah Chen"

        with pytest.raises(ConflictError, match="is locked"):
            make_data_point()
        with pytest.raises(ConflictError, match="already locked"):
            services.periods.lock_period(period["id"], LockPeriodRequest(locked_by=OWNER_ID))

        with pytest.raises(PermissionDeniedError):
            services.periods.unlock_period(period["id"], UnlockPeriodRequest(unlocked_by=OWNER_ID, reason="Fix"))
        with pytest.raises(ValidationError, match="Unlock reason is required."):
            services.periods.unlock_period(period["id"], UnlockPeriodRequest(unlocked_by=ADMIN_ID, reason=" "))

        unlocked = services.periods.unlock_period(
            period["id"], UnlockPeriodRequest(unlocked_by=ADMIN_ID, reason="Correction")
        )
        assert unlocked["isLocked"] is False

        actions = [e["action"] for e in services.audit.query(entity_type="ReportingPeriod")]
        assert actions == ["unlock", "lock"]
