"""
Reference data seeded into a fresh database: the section catalog, sample
users, predefined roles and the permission -> resource/action grants.
"""

from __future__ import annotations

from typing import Any

SECTION_CATALOG: list[dict[str, str]] = [
    {"code": "ENV-001", "title": "Energy & Emissions", "category": "environmental",
     "description": "Energy consumption, GHG emissions, carbon footprint"},
    {"code": "ENV-002", "title": "Waste & Recycling", "category": "environmental",
     "description": "Waste generation, recycling rates, circular economy initiatives"},
    {"code": "ENV-003", "title": "Water & Biodiversity", "category": "environmental",
     "description": "Water usage, water quality, biodiversity impact"},
    {"code": "ENV-004", "title": "Supply Chain Environmental Impact", "category": "environmental",
     "description": "Supplier environmental performance, sustainable sourcing"},
    {"code": "SOC-001", "title": "Employee Health & Safety", "category": "social",
     "description": "Workplace safety metrics, injury rates, wellness programs"},
    {"code": "SOC-002", "title": "Diversity & Inclusion", "category": "social",
     "description": "Workforce diversity, equal opportunity, inclusion initiatives"},
    {"code": "SOC-003", "title": "Employee Development", "category": "social",
     "description": "Training hours, skill development, career progression"},
    {"code": "SOC-004", "title": "Community Engagement", "category": "social",
     "description": "Social investment, local employment, community programs"},
    {"code": "SOC-005", "title": "Human Rights", "category": "social",
     "description": "Human rights policy, supply chain labor practices"},
    {"code": "GOV-001", "title": "Board Composition", "category": "governance",
     "description": "Board structure, independence, diversity, expertise"},
    {"code": "GOV-002", "title": "Ethics & Compliance", "category": "governance",
     "description": "Code of conduct, anti-corruption, compliance training"},
    {"code": "GOV-003", "title": "Risk Management", "category": "governance",
     "description": "Risk framework, ESG risk integration, climate risk"},
    {"code": "GOV-004", "title": "Stakeholder Engagement", "category": "governance",
     "description": "Stakeholder dialogue, materiality assessment"},
]

# Catalog codes included in a simplified-mode report.
SIMPLIFIED_CODES = ("ENV-001", "ENV-002", "SOC-001", "SOC-002", "GOV-001", "GOV-002")

SAMPLE_USERS: list[dict[str, Any]] = [
    {"id": "user-1", "name": "Sarah Chen", "email": "sarah.chen@company.com", "role": "report-owner"},
    {"id": "user-2", "name": "Admin User", "email": "admin@company.com", "role": "admin"},
    {"id": "user-3", "name": "John Smith", "email": "john.smith@company.com", "role": "contributor"},
    {"id": "user-4", "name": "Emily Johnson", "email": "emily.johnson@company.com", "role": "contributor"},
    {"id": "user-5", "name": "Michael Brown", "email": "michael.brown@company.com", "role": "contributor"},
    {"id": "user-6", "name": "Lisa Anderson", "email": "lisa.anderson@company.com", "role": "auditor"},
]

ADMIN_ROLE_ID = "role-admin"

PREDEFINED_ROLES: list[dict[str, Any]] = [
    {"id": ADMIN_ROLE_ID, "name": "Admin",
     "description": "Full system access including user management and configuration",
     "permissions": ["all"]},
    {"id": "role-management", "name": "Management",
     "description": "Read access to all reports with approval and export rights",
     "permissions": ["view-all-reports", "approve-reports", "export-reports"]},
    {"id": "role-compliance-officer", "name": "Compliance Officer",
     "description": "Manages validation rules, runs audits and exports audit packages",
     "permissions": ["view-all-reports", "manage-validation-rules", "run-audits",
                     "export-audit-packages", "view-compliance-reports"]},
    {"id": "role-reviewer", "name": "Reviewer",
     "description": "Reviews submitted content and provides feedback",
     "permissions": ["view-reports", "review-submissions", "comment"]},
    {"id": "role-contributor", "name": "Contributor",
     "description": "Edits assigned report sections and data points",
     "permissions": ["view-reports", "edit-assigned-sections", "comment"]},
    {"id": "role-data-owner", "name": "Data Owner",
     "description": "Owns ESG data items and their supporting attachments",
     "permissions": ["view-reports", "manage-data-items", "edit-assigned-sections"]},
    {"id": "role-approver", "name": "Approver",
     "description": "Approves or rejects reports for publication",
     "permissions": ["view-reports", "approve-reports"]},
    {"id": "role-external-advisor-read", "name": "External Advisor (Read)",
     "description": "Read-only access for external advisors",
     "permissions": ["view-reports", "view-public-sections"]},
    {"id": "role-external-advisor-edit", "name": "External Advisor (Edit - Limited)",
     "description": "Limited editing rights for external advisors",
     "permissions": ["view-reports", "edit-limited-sections", "comment"]},
]

RESOURCE_TYPES = ("report-structure", "section-content", "esg-data-items", "attachments", "exports", "users")

ACTIONS = ("view", "edit", "comment", "submit", "approve", "reject", "export", "manage")

_CONTENT = ("report-structure", "section-content", "esg-data-items", "attachments")


def _grant(resources, actions) -> dict[str, set[str]]:
    return {r: set(actions) for r in resources}


PERMISSION_GRANTS: dict[str, dict[str, set[str]]] = {
    "all": _grant(RESOURCE_TYPES, ACTIONS),
    "view-reports": _grant(_CONTENT, ["view"]),
    "view-public-sections": _grant(["section-content"], ["view"]),
    "view-all-reports": _grant(_CONTENT + ("exports",), ["view"]),
    "manage-validation-rules": _grant(["esg-data-items"], ["manage"]),
    "run-audits": _grant(["esg-data-items", "attachments"], ["view"]),
    "export-audit-packages": _grant(["exports"], ["view", "export"]),
    "view-compliance-reports": _grant(["exports"], ["view"]),
    "edit-assigned-sections": {
        **_grant(["section-content", "esg-data-items"], ["view", "edit", "comment", "submit"]),
        **_grant(["attachments"], ["view", "edit"]),
    },
    "comment": _grant(["section-content"], ["comment"]),
    "review-submissions": _grant(["section-content", "esg-data-items"], ["view", "comment", "approve", "reject"]),
    "approve-reports": _grant(["report-structure", "section-content"], ["approve", "reject"]),
    "manage-data-items": _grant(["esg-data-items", "attachments"], ["view", "edit", "submit"]),
    "export-reports": _grant(["exports"], ["view", "export"]),
    "edit-limited-sections": _grant(["section-content"], ["view", "edit", "comment"]),
    "manage-users": _grant(["users"], ["view", "manage"]),
    "manage-report-structure": _grant(["report-structure"], ["view", "edit", "manage"]),
}


def resolve_permission(permission: str) -> dict[str, set[str]]:
    """
    Expand a permission name to resource -> actions.

    Custom permissions written as ``resource:action`` grant exactly that pair.
    """
    if permission in PERMISSION_GRANTS:
        return PERMISSION_GRANTS[permission]
    if ":" in permission:
        resource, action = permission.split(":", 1)
        if resource in RESOURCE_TYPES and action in ACTIONS:
            return {resource: {action}}
    return {}
