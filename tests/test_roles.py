from __future__ import annotations

import pytest

from conftest import ADMIN_ID, CONTRIBUTOR_ID, OWNER_ID
from reportstudio.exceptions import ConflictError, NotFoundError, ValidationError
from reportstudio.models import (
    AssignRolesRequest,
    CreateRoleRequest,
    PermissionCheckRequest,
    UpdateRoleDescriptionRequest,
    UserStatusRequest,
)
from reportstudio.reference import ACTIONS, RESOURCE_TYPES
from reportstudio.services.roles import resource_actions


def test_resource_actions_merges_permissions():
    merged = resource_actions(["view-reports", "exports:export", "unknown-permission"])
    assert merged["exports"] == ["export"]
    assert merged["section-content"] == ["view"]
    assert list(merged) == [r for r in RESOURCE_TYPES if r in merged]


def test_admin_has_everything(services):
    result = services.roles.effective_permissions(ADMIN_ID)
    assert [r["name"] for r in result["roles"]] == ["Admin"]
    assert result["resourceActions"] == {r: list(ACTIONS) for r in RESOURCE_TYPES}


def test_user_without_roles(services):
    assert services.roles.effective_permissions(OWNER_ID)["permissions"] == []


class TestRoleCatalog:
    def test_create_validation(self, services):
        with pytest.raises(ValidationError, match="At least one permission is required."):
            services.roles.create_role(CreateRoleRequest(name="Empty"))
        with pytest.raises(ValidationError, match="A role named 'admin' already exists."):
            services.roles.create_role(CreateRoleRequest(name="admin", permissions=["view-reports"]))

    def test_update_description_bumps_version(self, services):
        role = services.roles.update_description(
            "role-reviewer", UpdateRoleDescriptionRequest(description="Reviews content", updated_by=ADMIN_ID)
        )
        assert role["version"] == 2
        with pytest.raises(ValidationError):
            services.roles.update_description("role-reviewer", UpdateRoleDescriptionRequest(description=" "))

    def test_predefined_roles_cannot_be_deleted(self, services):
        with pytest.raises(ConflictError, match="Cannot delete predefined role 'Admin'"):
            services.roles.delete_role("role-admin", deleted_by=ADMIN_ID)

    def test_delete_custom_role_unassigns_users(self, services):
        role = services.roles.create_role(
            CreateRoleRequest(name="Exporter", permissions=["exports:export"], created_by=ADMIN_ID)
        )
        services.roles.assign_roles(OWNER_ID, AssignRolesRequest(role_ids=[role["id"]], assigned_by=ADMIN_ID))
        services.roles.delete_role(role["id"], deleted_by=ADMIN_ID)
        assert services.users.get_user(OWNER_ID)["roleIds"] == []


class TestAssignments:
    def test_assign_and_remove(self, services):
        user = services.roles.assign_roles(
            CONTRIBUTOR_ID,
            AssignRolesRequest(role_ids=["role-contributor", "role-reviewer", "role-contributor"], assigned_by=ADMIN_ID),
        )
        assert user["roleIds"] == ["role-contributor", "role-reviewer"]

        perms = services.roles.effective_permissions(CONTRIBUTOR_ID)["resourceActions"]
        assert "approve" in perms["section-content"]

        services.roles.remove_role(CONTRIBUTOR_ID, "role-reviewer", removed_by=ADMIN_ID)
        assert [r["id"] for r in services.roles.user_roles(CONTRIBUTOR_ID)] == ["role-contributor"]
        with pytest.raises(NotFoundError):
            services.roles.remove_role(CONTRIBUTOR_ID, "role-reviewer", removed_by=ADMIN_ID)

    def test_unknown_role(self, services):
        with pytest.raises(NotFoundError):
            services.roles.assign_roles(CONTRIBUTOR_ID, AssignRolesRequest(role_ids=["role-ghost"]))


class TestPermissionCheck:
    @pytest.fixture(autouse=True)
    def contributor(self, services):
        services.roles.assign_roles(CONTRIBUTOR_ID, AssignRolesRequest(role_ids=["role-contributor"]))

    def test_allowed(self, services):
        result = services.roles.check_permission(
            PermissionCheckRequest(user_id=CONTRIBUTOR_ID, resource_type="section-content", action="edit")
        )
        assert result == {"allowed": True, "denialReason": None, "evaluatedRoles": ["Contributor"]}

    def test_denied_is_audited(self, services):
        result = services.roles.check_permission(
            PermissionCheckRequest(user_id=CONTRIBUTOR_ID, resource_type="users", action="manage")
        )
        assert result["allowed"] is False
        [entry] = services.audit.query(entity_id="users:manage")
        assert entry["action"] == "permission-denied"
        assert entry["userId"] == CONTRIBUTOR_ID

    def test_inactive_user_denied(self, services):
        services.users.set_active(CONTRIBUTOR_ID, UserStatusRequest(is_active=False, updated_by=ADMIN_ID))
        result = services.roles.check_permission(
            PermissionCheckRequest(user_id=CONTRIBUTOR_ID, resource_type="section-content", action="view")
        )
        assert result["denialReason"] == "User account is inactive."

    def test_invalid_action(self, services):
        with pytest.raises(ValidationError, match="Action must be one of"):
            services.roles.check_permission(
                PermissionCheckRequest(user_id=CONTRIBUTOR_ID, resource_type="users", action="destroy")
            )

    def test_matrix(self, services):
        matrix = services.roles.permission_matrix()
        assert matrix["resourceTypes"] == list(RESOURCE_TYPES)
        names = {e["roleName"] for e in matrix["entries"]}
        assert {"Admin", "Contributor", "Approver"} <= names
