"""
Pydantic request models.

Bodies are camelCase on the wire (the admin console contract) and snake_case
in Python; both spellings are accepted. Required-ness is enforced by the
services so that every rule violation surfaces with its domain message.
"""

from __future__ import annotations

from pydantic import BaseModel, Field
from pydantic.alias_generators import to_camel
from pydantic.config import ConfigDict


class CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra="ignore")


# =============================================================================
# Organization / users / catalog
# =============================================================================


class OrganizationRequest(CamelModel):
    model_config = ConfigDict(
        json_schema_extra={
            "examples": [
                {
                    "name": "Acme Industries",
                    "legalForm": "GmbH",
                    "country": "DE",
                    "identifier": "HRB 12345",
                    "createdBy": "user-2",
                    "coverageType": "full",
                }
            ]
        }
    )

    name: str = ""
    legal_form: str = ""
    country: str = ""
    identifier: str = ""
    created_by: str = ""
    coverage_type: str = "full"
    coverage_justification: str | None = None


class OrganizationalUnitRequest(CamelModel):
    name: str = ""
    parent_id: str | None = None
    description: str = ""
    created_by: str = ""


class UserStatusRequest(CamelModel):
    is_active: bool
    updated_by: str = ""


class CatalogItemRequest(CamelModel):
    title: str = ""
    code: str = ""
    category: str = ""
    description: str = ""


# =============================================================================
# Periods / sections
# =============================================================================


class CreatePeriodRequest(CamelModel):
    model_config = ConfigDict(
        json_schema_extra={
            "examples": [
                {
                    "name": "FY 2025",
                    "startDate": "2025-01-01",
                    "endDate": "2025-12-31",
                    "reportingMode": "simplified",
                    "reportScope": "single-company",
                    "ownerId": "user-1",
                    "ownerName": "Sarah Chen",
                    "carryForwardGapsAndAssumptions": True,
                }
            ]
        }
    )

    name: str = ""
    start_date: str = ""
    end_date: str = ""
    reporting_mode: str = "simplified"
    report_scope: str = "single-company"
    owner_id: str = ""
    owner_name: str = ""
    organization_id: str | None = None
    copy_ownership_from_period_id: str | None = None
    carry_forward_gaps_and_assumptions: bool = False


class UpdatePeriodRequest(CamelModel):
    name: str = ""
    start_date: str = ""
    end_date: str = ""
    reporting_mode: str = "simplified"
    report_scope: str = "single-company"
    status: str | None = None


class LockPeriodRequest(CamelModel):
    locked_by: str = ""
    reason: str = ""


class UnlockPeriodRequest(CamelModel):
    unlocked_by: str = ""
    reason: str = ""


class UpdateSectionOwnerRequest(CamelModel):
    owner_id: str = ""
    updated_by: str = ""
    change_note: str | None = None


class BulkUpdateSectionOwnerRequest(CamelModel):
    section_ids: list[str] = Field(default_factory=list)
    owner_id: str = ""
    updated_by: str = ""
    change_note: str | None = None


# =============================================================================
# Data points
# =============================================================================


class DataPointRequest(CamelModel):
    model_config = ConfigDict(
        json_schema_extra={
            "examples": [
                {
                    "sectionId": "<section id>",
                    "type": "metric",
                    "title": "Scope 1 emissions",
                    "content": "Direct emissions from owned sources",
                    "value": "1250",
                    "unit": "tCO2e",
                    "ownerId": "user-3",
                    "source": "Fuel invoices",
                    "informationType": "fact",
                }
            ]
        }
    )

    section_id: str = ""
    type: str = "narrative"
    classification: str | None = None
    title: str = ""
    content: str = ""
    value: str | None = None
    unit: str | None = None
    owner_id: str = ""
    contributor_ids: list[str] = Field(default_factory=list)
    source: str = ""
    information_type: str = ""
    assumptions: str | None = None
    completeness_status: str | None = None
    review_status: str | None = None
    deadline: str | None = None
    updated_by: str | None = None
    change_note: str | None = None


class ReviewRequest(CamelModel):
    reviewed_by: str = ""
    review_comments: str | None = None


class FlagMissingRequest(CamelModel):
    flagged_by: str = ""
    missing_reason_category: str = ""
    missing_reason: str = ""


class UnflagMissingRequest(CamelModel):
    unflagged_by: str = ""
    change_note: str | None = None


class GapStatusRequest(CamelModel):
    target_status: str = ""
    transitioned_by: str | None = None
    estimate_type: str | None = None
    estimate_method: str | None = None
    confidence_level: str | None = None
    change_note: str | None = None


class BlockerRequest(CamelModel):
    is_blocked: bool
    blocker_reason: str | None = None
    blocker_due_date: str | None = None
    updated_by: str = ""


class ValidationRuleRequest(CamelModel):
    section_id: str = ""
    rule_type: str = ""
    target_field: str = "value"
    parameters: str | None = None
    error_message: str = ""
    is_active: bool = True
    created_by: str = ""


# =============================================================================
# Evidence / assumptions / decisions / gaps
# =============================================================================


class EvidenceRequest(CamelModel):
    section_id: str = ""
    title: str = ""
    description: str | None = None
    file_name: str | None = None
    file_url: str | None = None
    source_url: str | None = None
    uploaded_by: str = ""
    file_size: int | None = None
    content_type: str | None = None
    checksum: str | None = None
    file_content: str | None = Field(default=None, description="Base64 file body used to compute the checksum")


class EvidenceLinkRequest(CamelModel):
    data_point_id: str = ""


class IntegrityCheckRequest(CamelModel):
    file_content: str = ""


class AssumptionSource(CamelModel):
    source_type: str = ""
    source_reference: str = ""
    description: str = ""


class AssumptionRequest(CamelModel):
    section_id: str = ""
    title: str = ""
    description: str = ""
    scope: str = ""
    validity_start_date: str = ""
    validity_end_date: str = ""
    methodology: str = ""
    limitations: str = ""
    rationale: str | None = None
    sources: list[AssumptionSource] = Field(default_factory=list)
    created_by: str = ""
    updated_by: str = ""


class DeprecateAssumptionRequest(CamelModel):
    replacement_assumption_id: str | None = None
    justification: str | None = None
    deprecated_by: str = ""


class LinkDataPointRequest(CamelModel):
    data_point_id: str = ""


class DecisionRequest(CamelModel):
    section_id: str | None = None
    title: str = ""
    context: str = ""
    decision_text: str = ""
    alternatives: str = ""
    consequences: str = ""
    created_by: str = ""
    updated_by: str = ""
    change_note: str = ""


class DeprecateDecisionRequest(CamelModel):
    reason: str = ""
    deprecated_by: str = ""


class FragmentLinkRequest(CamelModel):
    fragment_id: str = ""


class GapRequest(CamelModel):
    section_id: str = ""
    title: str = ""
    description: str = ""
    impact: str = "medium"
    improvement_plan: str | None = None
    target_date: str | None = None
    created_by: str = ""
    updated_by: str = ""
    change_note: str | None = None


class ResolveGapRequest(CamelModel):
    resolved_by: str = ""
    resolution_note: str | None = None


class ReopenGapRequest(CamelModel):
    reopened_by: str = ""
    reason: str | None = None


# =============================================================================
# Remediation / approvals
# =============================================================================


class RemediationPlanRequest(CamelModel):
    section_id: str = ""
    title: str = ""
    description: str = ""
    target_period: str | None = None
    owner_id: str | None = None
    owner_name: str | None = None
    priority: str = "medium"
    status: str | None = None
    gap_id: str | None = None
    assumption_id: str | None = None
    data_point_id: str | None = None
    created_by: str = ""
    updated_by: str = ""


class CompletePlanRequest(CamelModel):
    completed_by: str = ""


class RemediationActionRequest(CamelModel):
    title: str = ""
    description: str = ""
    owner_id: str | None = None
    owner_name: str | None = None
    due_date: str = ""
    status: str | None = None
    created_by: str = ""
    updated_by: str = ""


class CompleteActionRequest(CamelModel):
    completed_by: str = ""
    completion_notes: str | None = None
    evidence_ids: list[str] = Field(default_factory=list)


class CreateApprovalRequest(CamelModel):
    period_id: str = ""
    requested_by: str = ""
    approver_ids: list[str] = Field(default_factory=list)
    request_message: str | None = None
    approval_deadline: str | None = None


class ApprovalDecisionRequest(CamelModel):
    approval_record_id: str = ""
    decision: str = ""
    comment: str | None = None
    decided_by: str = ""


# =============================================================================
# Rollover
# =============================================================================


class RolloverOptions(CamelModel):
    copy_structure: bool = True
    copy_disclosures: bool = False
    copy_data_values: bool = False
    copy_attachments: bool = False
    due_date_adjustment_days: int | None = None


class RuleOverride(CamelModel):
    data_type: str = ""
    rule_type: str = ""


class ManualMapping(CamelModel):
    source_catalog_code: str = ""
    target_catalog_code: str = ""


class RolloverRequest(CamelModel):
    model_config = ConfigDict(
        json_schema_extra={
            "examples": [
                {
                    "sourcePeriodId": "<period id>",
                    "targetPeriodName": "FY 2026",
                    "targetPeriodStartDate": "2026-01-01",
                    "targetPeriodEndDate": "2026-12-31",
                    "performedBy": "user-1",
                    "options": {"copyStructure": True, "copyDisclosures": True, "copyDataValues": True},
                    "ruleOverrides": [{"dataType": "narrative", "ruleType": "copy-as-draft"}],
                }
            ]
        }
    )

    source_period_id: str = ""
    target_period_name: str = ""
    target_period_start_date: str = ""
    target_period_end_date: str = ""
    target_reporting_mode: str | None = None
    target_report_scope: str | None = None
    performed_by: str = ""
    options: RolloverOptions = Field(default_factory=RolloverOptions)
    rule_overrides: list[RuleOverride] = Field(default_factory=list)
    manual_mappings: list[ManualMapping] = Field(default_factory=list)


class RolloverRuleRequest(CamelModel):
    data_type: str = ""
    rule_type: str = ""
    description: str | None = None
    saved_by: str = ""


# =============================================================================
# Roles / access / audit / reminders
# =============================================================================


class CreateRoleRequest(CamelModel):
    name: str = ""
    description: str = ""
    permissions: list[str] = Field(default_factory=list)
    created_by: str = ""


class UpdateRoleDescriptionRequest(CamelModel):
    description: str = ""
    updated_by: str = ""


class AssignRolesRequest(CamelModel):
    role_ids: list[str] = Field(default_factory=list)
    assigned_by: str = ""


class PermissionCheckRequest(CamelModel):
    user_id: str = ""
    resource_type: str = ""
    action: str = ""


class GrantAccessRequest(CamelModel):
    section_ids: list[str] = Field(default_factory=list)
    user_ids: list[str] = Field(default_factory=list)
    granted_by: str = ""
    reason: str | None = None
    expires_at: str | None = None


class RevokeAccessRequest(CamelModel):
    section_ids: list[str] = Field(default_factory=list)
    user_ids: list[str] = Field(default_factory=list)
    revoked_by: str = ""
    reason: str | None = None


class AuditExportRequest(CamelModel):
    exported_by: str = ""
    entity_type: str | None = None
    entity_id: str | None = None
    user_id: str | None = None
    start_date: str | None = None
    end_date: str | None = None


class ReminderConfigRequest(CamelModel):
    period_id: str = ""
    enabled: bool = True
    days_before_deadline: list[int] = Field(default_factory=lambda: [7, 3, 1])
    check_frequency_hours: int = 24


class RunRemindersRequest(CamelModel):
    period_id: str = ""
    today: str | None = None


class EscalationConfigRequest(CamelModel):
    enabled: bool = True
    days_after_deadline: list[int] = Field(default_factory=lambda: [3, 7])


class RunEscalationsRequest(CamelModel):
    period_id: str = ""
    today: str | None = None


# =============================================================================
# Completion exceptions
# =============================================================================


class CompletionExceptionRequest(CamelModel):
    section_id: str = ""
    data_point_id: str | None = None
    title: str = ""
    exception_type: str = ""
    justification: str = ""
    requested_by: str = ""
    expires_at: str | None = None


class ApproveExceptionRequest(CamelModel):
    approved_by: str = ""
    review_comments: str | None = None


class RejectExceptionRequest(CamelModel):
    rejected_by: str = ""
    review_comments: str = ""


# =============================================================================
# Standards catalog / maturity models
# =============================================================================


class StandardRequest(CamelModel):
    model_config = ConfigDict(
        json_schema_extra={
            "examples": [
                {
                    "identifier": "ESRS-E1",
                    "title": "Climate change",
                    "version": "2023",
                    "effectiveStartDate": "2024-01-01",
                    "createdBy": "user-2",
                }
            ]
        }
    )

    identifier: str = ""
    title: str = ""
    description: str = ""
    version: str = ""
    effective_start_date: str | None = None
    effective_end_date: str | None = None
    created_by: str = ""
    updated_by: str = ""


class DeprecateStandardRequest(CamelModel):
    deprecated_by: str = ""


class StandardMappingRequest(CamelModel):
    standard_id: str = ""
    standard_reference: str = ""
    section_id: str = ""
    created_by: str = ""


class MaturityCriterionRequest(CamelModel):
    name: str = ""
    description: str = ""
    criterion_type: str = "custom"
    target_value: str = ""
    unit: str = ""
    min_completion_percentage: float | None = None
    min_evidence_percentage: float | None = None
    required_controls: list[str] = Field(default_factory=list)
    is_mandatory: bool = True


class MaturityLevelRequest(CamelModel):
    name: str = ""
    description: str = ""
    order: int = 0
    criteria: list[MaturityCriterionRequest] = Field(default_factory=list)


class MaturityModelRequest(CamelModel):
    name: str = ""
    description: str = ""
    levels: list[MaturityLevelRequest] = Field(default_factory=list)
    created_by: str = ""
    updated_by: str = ""
