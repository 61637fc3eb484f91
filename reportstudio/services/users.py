from __future__ import annotations

from typing import Any

from reportstudio.logging_config import log_event
from reportstudio.models import UserStatusRequest
from reportstudio.services.base import ServiceBase, change, utc_now


class UserService(ServiceBase):
    def list_users(self) -> list[dict[str, Any]]:
        return self.repo.list("user")

    def get_user(self, user_id: str) -> dict[str, Any]:
        return self._get_or_404("user", user_id, f"User '{user_id}' not found.")

    def set_active(self, user_id: str, req: UserStatusRequest) -> dict[str, Any]:
        with self.lock:
            user = self.get_user(user_id)
            was_active = bool(user.get("isActive", True))
            user["isActive"] = req.is_active
            user["updatedAt"] = utc_now()
            self.repo.upsert("user", user)
        if was_active != req.is_active:
            self.record(
                user_id=req.updated_by,
                action="update-user-status",
                entity_type="User",
                entity_id=user_id,
                changes=[change("IsActive", str(was_active).lower(), str(req.is_active).lower())],
            )
            log_event("user_status_changed", user_id=user_id, is_active=req.is_active)
        return user
