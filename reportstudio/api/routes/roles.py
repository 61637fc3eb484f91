"""
Users, system roles, role assignment and permission resolution routes.
"""

from __future__ import annotations

from fastapi import APIRouter, Query, Request, Response

from reportstudio.api.dependencies import acting_user, get_services
from reportstudio.models import (
    AssignRolesRequest,
    CreateRoleRequest,
    PermissionCheckRequest,
    UpdateRoleDescriptionRequest,
    UserStatusRequest,
)

router = APIRouter(prefix="/api", tags=["roles"])


@router.get("/users")
def list_users(request: Request) -> list[dict]:
    return get_services(request).users.list_users()


@router.get("/users/{user_id}")
def get_user(user_id: str, request: Request) -> dict:
    return get_services(request).users.get_user(user_id)


@router.put("/users/{user_id}/status")
def set_user_status(user_id: str, payload: UserStatusRequest, request: Request) -> dict:
    return get_services(request).users.set_active(user_id, payload)


@router.get("/users/{user_id}/roles")
def user_roles(user_id: str, request: Request) -> list[dict]:
    return get_services(request).roles.user_roles(user_id)


@router.post("/users/{user_id}/roles")
def assign_roles(user_id: str, payload: AssignRolesRequest, request: Request) -> dict:
    return get_services(request).roles.assign_roles(user_id, payload)


@router.delete("/users/{user_id}/roles/{role_id}")
def remove_role(
    user_id: str, role_id: str, request: Request, removed_by: str | None = Query(None, alias="removedBy")
) -> dict:
    return get_services(request).roles.remove_role(user_id, role_id, acting_user(request, removed_by))


@router.get("/users/{user_id}/effective-permissions")
def effective_permissions(user_id: str, request: Request) -> dict:
    return get_services(request).roles.effective_permissions(user_id)


@router.get("/roles")
def list_roles(request: Request) -> list[dict]:
    return get_services(request).roles.list_roles()


@router.get("/roles/{role_id}")
def get_role(role_id: str, request: Request) -> dict:
    return get_services(request).roles.get_role(role_id)


@router.post("/roles", status_code=201)
def create_role(payload: CreateRoleRequest, request: Request) -> dict:
    return get_services(request).roles.create_role(payload)


@router.put("/roles/{role_id}/description")
def update_role_description(role_id: str, payload: UpdateRoleDescriptionRequest, request: Request) -> dict:
    return get_services(request).roles.update_description(role_id, payload)


@router.delete("/roles/{role_id}", status_code=204)
def delete_role(role_id: str, request: Request, deleted_by: str | None = Query(None, alias="deletedBy")) -> Response:
    get_services(request).roles.delete_role(role_id, acting_user(request, deleted_by))
    return Response(status_code=204)


@router.get("/permissions/matrix")
def permission_matrix(request: Request) -> dict:
    return get_services(request).roles.permission_matrix()


@router.post("/permissions/check")
def check_permission(payload: PermissionCheckRequest, request: Request) -> dict:
    return get_services(request).roles.check_permission(payload)
