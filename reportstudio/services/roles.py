"""
System roles, user role assignments and permission resolution.

A role carries a list of permission names; each name expands to a set of
(resource type, action) pairs through ``reference.resolve_permission``.
A user's effective permissions are the union over every assigned role.
"""

from __future__ import annotations

from typing import Any

from reportstudio.exceptions import ConflictError, NotFoundError, ValidationError
from reportstudio.logging_config import log_event
from reportstudio.models import (
    AssignRolesRequest,
    CreateRoleRequest,
    PermissionCheckRequest,
    UpdateRoleDescriptionRequest,
)
from reportstudio.reference import ACTIONS, RESOURCE_TYPES, resolve_permission
from reportstudio.services.base import ServiceBase, change, is_blank, new_id, require, utc_now


def resource_actions(permissions: list[str]) -> dict[str, list[str]]:
    merged: dict[str, set[str]] = {}
    for permission in permissions:
        for resource, actions in resolve_permission(permission).items():
            merged.setdefault(resource, set()).update(actions)
    return {r: sorted(merged[r], key=ACTIONS.index) for r in RESOURCE_TYPES if r in merged}


class RoleService(ServiceBase):
    def list_roles(self) -> list[dict[str, Any]]:
        return self.repo.list("role")

    def get_role(self, role_id: str) -> dict[str, Any]:
        return self._get_or_404("role", role_id, f"Role '{role_id}' not found.")

    def create_role(self, req: CreateRoleRequest) -> dict[str, Any]:
        require(req.name, "name", "Role name is required.")
        permissions = [p for p in req.permissions if not is_blank(p)]
        if not permissions:
            raise ValidationError("At least one permission is required.", field="permissions")
        name = req.name.strip()
        with self.lock:
            if any(r["name"].lower() == name.lower() for r in self.list_roles()):
                raise ValidationError(f"A role named '{name}' already exists.", field="name")
            role = {
                "id": new_id(),
                "name": name,
                "description": req.description,
                "permissions": permissions,
                "isPredefined": False,
                "version": 1,
                "createdBy": req.created_by,
                "createdAt": utc_now(),
                "updatedBy": None,
                "updatedAt": None,
            }
            self.repo.upsert("role", role)
        self.record(
            user_id=req.created_by,
            action="create-role",
            entity_type="SystemRole",
            entity_id=role["id"],
            changes=[change("Name", None, name), change("Permissions", None, ", ".join(permissions))],
        )
        return role

    def update_description(self, role_id: str, req: UpdateRoleDescriptionRequest) -> dict[str, Any]:
        require(req.description, "description", "Role description cannot be empty.")
        with self.lock:
            role = self.get_role(role_id)
            old_description, old_version = role.get("description"), role.get("version", 1)
            role.update(
                {
                    "description": req.description.strip(),
                    "version": old_version + 1,
                    "updatedBy": req.updated_by,
                    "updatedAt": utc_now(),
                }
            )
            self.repo.upsert("role", role)
        self.record(
            user_id=req.updated_by,
            action="update-role-description",
            entity_type="SystemRole",
            entity_id=role_id,
            changes=[
                change("Description", old_description, role["description"]),
                change("Version", old_version, role["version"]),
            ],
        )
        return role

    def delete_role(self, role_id: str, deleted_by: str | None = None) -> None:
        with self.lock:
            role = self.get_role(role_id)
            if role.get("isPredefined"):
                raise ConflictError(
                    f"Cannot delete predefined role '{role['name']}'. "
                    "Predefined roles are essential for system access control."
                )
            users = []
            for user in self.repo.list("user"):
                if role_id in (user.get("roleIds") or []):
                    user["roleIds"] = [r for r in user["roleIds"] if r != role_id]
                    users.append(("user", user))
            self.repo.upsert_many(users)
            self.repo.delete("role", role_id)
        self.record(
            user_id=deleted_by,
            action="delete-role",
            entity_type="SystemRole",
            entity_id=role_id,
            changes=[change("Status", "active", "deleted")],
        )

    # -- assignments -------------------------------------------------------

    def _user(self, user_id: str) -> dict[str, Any]:
        return self._get_or_404("user", user_id, f"User '{user_id}' not found.")

    def user_roles(self, user_id: str) -> list[dict[str, Any]]:
        user = self._user(user_id)
        roles = (self.repo.get("role", r) for r in user.get("roleIds") or [])
        return [r for r in roles if r is not None]

    def assign_roles(self, user_id: str, req: AssignRolesRequest) -> dict[str, Any]:
        if not req.role_ids:
            raise ValidationError("At least one role is required.", field="roleIds")
        with self.lock:
            user = self._user(user_id)
            for role_id in req.role_ids:
                self.get_role(role_id)
            before = list(user.get("roleIds") or [])
            user["roleIds"] = list(dict.fromkeys(before + list(req.role_ids)))
            self.repo.upsert("user", user)
        self.record(
            user_id=req.assigned_by,
            action="assign-user-roles",
            entity_type="User",
            entity_id=user_id,
            changes=[change("RoleIds", ", ".join(before), ", ".join(user["roleIds"]))],
        )
        return user

    def remove_role(self, user_id: str, role_id: str, removed_by: str | None = None) -> dict[str, Any]:
        with self.lock:
            user = self._user(user_id)
            before = list(user.get("roleIds") or [])
            if role_id not in before:
                raise NotFoundError(f"Role '{role_id}' is not assigned to this user.")
            user["roleIds"] = [r for r in before if r != role_id]
            self.repo.upsert("user", user)
        self.record(
            user_id=removed_by,
            action="remove-user-role",
            entity_type="User",
            entity_id=user_id,
            changes=[change("RoleIds", ", ".join(before), ", ".join(user["roleIds"]))],
        )
        return user

    # -- resolution --------------------------------------------------------

    def effective_permissions(self, user_id: str) -> dict[str, Any]:
        roles = self.user_roles(user_id)
        permissions = sorted({p for role in roles for p in role.get("permissions") or []})
        return {
            "userId": user_id,
            "roles": [{"id": r["id"], "name": r["name"]} for r in roles],
            "permissions": permissions,
            "resourceActions": resource_actions(permissions),
        }

    def permission_matrix(self) -> dict[str, Any]:
        return {
            "resourceTypes": list(RESOURCE_TYPES),
            "allActions": list(ACTIONS),
            "entries": [
                {
                    "roleId": role["id"],
                    "roleName": role["name"],
                    "isPredefined": bool(role.get("isPredefined")),
                    "resourceActions": resource_actions(role.get("permissions") or []),
                }
                for role in self.list_roles()
            ],
        }

    def check_permission(self, req: PermissionCheckRequest) -> dict[str, Any]:
        if req.resource_type not in RESOURCE_TYPES:
            raise ValidationError(
                f"ResourceType must be one of: {', '.join(RESOURCE_TYPES)}.", field="resourceType"
            )
        if req.action not in ACTIONS:
            raise ValidationError(f"Action must be one of: {', '.join(ACTIONS)}.", field="action")

        user = self.find_user(req.user_id)
        evaluated: list[str] = []
        if user is None:
            reason = f"User '{req.user_id}' not found."
        elif not user.get("isActive", True):
            reason = "User account is inactive."
        else:
            reason = None
            allowed = False
            for role in self.user_roles(req.user_id):
                evaluated.append(role["name"])
                grants = resource_actions(role.get("permissions") or [])
                if req.action in grants.get(req.resource_type, []):
                    allowed = True
            if not allowed:
                reason = f"None of the user's roles grant '{req.action}' on '{req.resource_type}'."

        if reason is not None:
            self.record(
                user_id=req.user_id,
                action="permission-denied",
                entity_type="Permission",
                entity_id=f"{req.resource_type}:{req.action}",
                change_note=reason,
            )
            log_event("permission_denied", user_id=req.user_id, resource_type=req.resource_type, action=req.action)
        return {"allowed": reason is None, "denialReason": reason, "evaluatedRoles": evaluated}
