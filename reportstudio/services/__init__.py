"""
Domain services for ESG Report Studio.

``build_services`` wires every service onto one repository and one audit
trail; ``seed_reference_data`` fills an empty database with the section
catalog, the sample users and the predefined roles.
"""

from __future__ import annotations

from dataclasses import dataclass

from reportstudio.logging_config import get_logger
from reportstudio.reference import ADMIN_ROLE_ID, PREDEFINED_ROLES, SAMPLE_USERS, SECTION_CATALOG
from reportstudio.repository import DocumentRepo
from reportstudio.services.access import SectionAccessService
from reportstudio.services.approvals import ApprovalService
from reportstudio.services.assumptions import AssumptionService
from reportstudio.services.audit import AuditTrail
from reportstudio.services.base import utc_now
from reportstudio.services.carryforward import CarryForwardService
from reportstudio.services.catalog import CatalogService
from reportstudio.services.completion_exceptions import CompletionExceptionService
from reportstudio.services.dashboard import DashboardService
from reportstudio.services.datapoints import DataPointService
from reportstudio.services.decisions import DecisionService
from reportstudio.services.escalations import EscalationService
from reportstudio.services.evidence import EvidenceService
from reportstudio.services.gaps import GapService
from reportstudio.services.maturity import MaturityModelService
from reportstudio.services.organization import OrganizationService
from reportstudio.services.periods import PeriodService
from reportstudio.services.reminders import ReminderService
from reportstudio.services.remediation import RemediationService
from reportstudio.services.roles import RoleService
from reportstudio.services.rollover import RolloverService
from reportstudio.services.sections import SectionService
from reportstudio.services.standards import StandardsCatalogService
from reportstudio.services.users import UserService
from reportstudio.services.validation import ValidationRuleService

logger = get_logger(__name__)


@dataclass
class Services:
    repo: DocumentRepo
    audit: AuditTrail
    organization: OrganizationService
    users: UserService
    catalog: CatalogService
    sections: SectionService
    periods: PeriodService
    validation_rules: ValidationRuleService
    data_points: DataPointService
    evidence: EvidenceService
    assumptions: AssumptionService
    decisions: DecisionService
    gaps: GapService
    remediation: RemediationService
    approvals: ApprovalService
    rollover: RolloverService
    roles: RoleService
    section_access: SectionAccessService
    dashboard: DashboardService
    reminders: ReminderService
    escalations: EscalationService
    completion_exceptions: CompletionExceptionService
    standards: StandardsCatalogService
    maturity_models: MaturityModelService


def build_services(repo: DocumentRepo) -> Services:
    audit = AuditTrail(repo)
    organization = OrganizationService(repo, audit)
    catalog = CatalogService(repo, audit)
    sections = SectionService(repo, audit)
    carry_forward = CarryForwardService(repo, audit)
    periods = PeriodService(
        repo, audit, organization=organization, catalog=catalog, sections=sections, carry_forward=carry_forward
    )
    validation_rules = ValidationRuleService(repo, audit)
    return Services(
        repo=repo,
        audit=audit,
        organization=organization,
        users=UserService(repo, audit),
        catalog=catalog,
        sections=sections,
        periods=periods,
        validation_rules=validation_rules,
        data_points=DataPointService(repo, audit, rules=validation_rules),
        evidence=EvidenceService(repo, audit),
        assumptions=AssumptionService(repo, audit),
        decisions=DecisionService(repo, audit),
        gaps=GapService(repo, audit),
        remediation=RemediationService(repo, audit),
        approvals=ApprovalService(repo, audit),
        rollover=RolloverService(
            repo, audit, periods=periods, catalog=catalog, sections=sections, carry_forward=carry_forward
        ),
        roles=RoleService(repo, audit),
        section_access=SectionAccessService(repo, audit),
        dashboard=DashboardService(repo, audit),
        reminders=ReminderService(repo, audit),
        escalations=EscalationService(repo, audit),
        completion_exceptions=CompletionExceptionService(repo, audit),
        standards=StandardsCatalogService(repo, audit),
        maturity_models=MaturityModelService(repo, audit),
    )


def seed_reference_data(repo: DocumentRepo) -> dict[str, int]:
    """Insert reference data into empty kinds; returns the number of documents added per kind."""
    now = utc_now()
    added = {"catalog_item": CatalogService(repo).seed(SECTION_CATALOG), "user": 0, "role": 0}

    if not repo.count("user"):
        repo.upsert_many(
            (
                "user",
                {
                    **user,
                    "isActive": True,
                    "roleIds": [ADMIN_ROLE_ID] if user["role"] == "admin" else [],
                    "createdAt": now,
                },
            )
            for user in SAMPLE_USERS
        )
        added["user"] = len(SAMPLE_USERS)

    if not repo.count("role"):
        repo.upsert_many(
            (
                "role",
                {
                    **role,
                    "permissions": list(role["permissions"]),
                    "isPredefined": True,
                    "version": 1,
                    "createdBy": "system",
                    "createdAt": now,
                    "updatedBy": None,
                    "updatedAt": None,
                },
            )
            for role in PREDEFINED_ROLES
        )
        added["role"] = len(PREDEFINED_ROLES)

    if any(added.values()):
        logger.info("reference_data_seeded", extra=added)
    return added


__all__ = ["Services", "build_services", "seed_reference_data"]
