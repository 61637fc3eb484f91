from __future__ import annotations

import pytest

from conftest import ADMIN_ID, OWNER_ID
from reportstudio.exceptions import ConflictError, ValidationError
from reportstudio.models import (
    CompleteActionRequest,
    CompletePlanRequest,
    GapRequest,
    RemediationActionRequest,
    RemediationPlanRequest,
    ReopenGapRequest,
    ResolveGapRequest,
)


@pytest.fixture
def gap(services, section):
    return services.gaps.create_gap(
        GapRequest(section_id=section["id"], title="No Scope 3 data", impact="high", created_by=OWNER_ID)
    )


class TestGaps:
    def test_invalid_impact(self, services, section):
        with pytest.raises(ValidationError, match="Impact must be one of"):
            services.gaps.create_gap(GapRequest(section_id=section["id"], title="x", impact="severe"))

    def test_resolve_and_reopen(self, services, gap):
        resolved = services.gaps.resolve(gap["id"], ResolveGapRequest(resolved_by=OWNER_ID, resolution_note="Done"))
        assert resolved["resolved"] is True
        with pytest.raises(ConflictError, match="Gap is already resolved."):
            services.gaps.resolve(gap["id"], ResolveGapRequest(resolved_by=OWNER_ID))

        reopened = services.gaps.reopen(gap["id"], ReopenGapRequest(reopened_by=OWNER_ID, reason="Data was wrong"))
        assert reopened["resolved"] is False
        assert reopened["resolutionNote"] is None

    def test_update_tracks_changes(self, services, section, gap):
        services.gaps.update_gap(
            gap["id"],
            GapRequest(section_id=section["id"], title=gap["title"], impact="low", updated_by=OWNER_ID),
        )
        [entry] = services.audit.query(entity_id=gap["id"])[:1]
        assert entry["changes"] == [{"field": "Impact", "oldValue": "high", "newValue": "low"}]

    def test_dashboard(self, services, period, section, gap):
        services.gaps.create_gap(GapRequest(section_id=section["id"], title="Minor", impact="low"))
        services.remediation.create_plan(
            RemediationPlanRequest(section_id=section["id"], title="Supplier survey", gap_id=gap["id"])
        )

        data = services.gaps.dashboard(period_id=period["id"])
        assert [i["gap"]["title"] for i in data["gaps"]] == ["No Scope 3 data", "Minor"]
        assert data["gaps"][0]["remediationPlanStatus"] == "planned"
        assert data["gaps"][0]["duePeriod"] == "FY 2024"
        assert data["summary"]["totalGaps"] == 2
        assert data["summary"]["highImpact"] == 1
        assert data["summary"]["withRemediationPlan"] == 1

        assert services.gaps.dashboard(impact="low")["summary"]["totalGaps"] == 1
        assert services.gaps.dashboard(status="resolved")["gaps"] == []


class TestRemediation:
    @pytest.fixture
    def plan(self, services, section, gap):
        return services.remediation.create_plan(
            RemediationPlanRequest(
                section_id=section["id"],
                title="Supplier survey",
                priority="high",
                owner_id="user-4",
                gap_id=gap["id"],
                created_by=OWNER_ID,
            )
        )

    def test_plan_defaults(self, plan):
        assert plan["status"] == "planned"
        assert plan["ownerName"] == "Emily Johnson"

    def test_action_requires_due_date(self, services, plan):
        with pytest.raises(ValidationError, match="DueDate is required."):
            services.remediation.create_action(plan["id"], RemediationActionRequest(title="Send survey"))

    def test_action_lifecycle(self, services, plan):
        action = services.remediation.create_action(
            plan["id"], RemediationActionRequest(title="Send survey", due_date="2024-09-30", created_by=OWNER_ID)
        )
        assert action["status"] == "pending"

        with pytest.raises(ValidationError, match="Evidence with ID 'nope' not found."):
            services.remediation.complete_action(
                action["id"], CompleteActionRequest(completed_by=OWNER_ID, evidence_ids=["nope"])
            )

        done = services.remediation.complete_action(
            action["id"], CompleteActionRequest(completed_by=OWNER_ID, completion_notes="12 of 15 replied")
        )
        assert done["status"] == "completed"
        with pytest.raises(ConflictError):
            services.remediation.complete_action(action["id"], CompleteActionRequest(completed_by=OWNER_ID))

    def test_complete_and_delete_plan(self, services, plan):
        services.remediation.create_action(plan["id"], RemediationActionRequest(title="Call", due_date="2024-10-01"))
        completed = services.remediation.complete_plan(plan["id"], CompletePlanRequest(completed_by=ADMIN_ID))
        assert completed["status"] == "completed"

        services.remediation.delete_plan(plan["id"], deleted_by=ADMIN_ID)
        assert services.remediation.list_plans() == []
        assert services.remediation.list_actions(plan["id"]) == []
