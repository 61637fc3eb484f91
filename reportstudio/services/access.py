from __future__ import annotations

from datetime import datetime, timezone
from typing import Any

from reportstudio.exceptions import ValidationError
from reportstudio.models import GrantAccessRequest, RevokeAccessRequest
from reportstudio.services.base import ServiceBase, change, new_id, utc_now


def _expired(grant: dict[str, Any], now: datetime) -> bool:
    expires = grant.get("expiresAt")
    if not expires:
        return False
    try:
        when = datetime.fromisoformat(str(expires).replace("Z", "+00:00"))
    except ValueError:
        return False
    if when.tzinfo is None:
        when = when.replace(tzinfo=timezone.utc)
    return when <= now


class SectionAccessService(ServiceBase):
    """Explicit per-section access grants on top of section ownership."""

    def _grants(self, section_id: str | None = None) -> list[dict[str, Any]]:
        return self.repo.list("section_access", section_id=section_id or None)

    def _find(self, section_id: str, user_id: str) -> dict[str, Any] | None:
        for grant in self._grants(section_id):
            if grant["userId"] == user_id:
                return grant
        return None

    def grant(self, req: GrantAccessRequest) -> dict[str, Any]:
        if not req.section_ids or not req.user_ids:
            raise ValidationError("At least one section and one user are required.")
        granted, failures = [], []
        now = datetime.now(timezone.utc)
        with self.lock:
            for section_id in req.section_ids:
                section = self.repo.get("section", section_id)
                for user_id in req.user_ids:
                    if section is None:
                        failures.append(
                            {"sectionId": section_id, "userId": user_id, "reason": f"Section '{section_id}' not found"}
                        )
                        continue
                    user = self.find_user(user_id)
                    if user is None:
                        failures.append({"sectionId": section_id, "userId": user_id, "reason": "User not found"})
                        continue
                    existing = self._find(section_id, user_id)
                    if existing is not None and not _expired(existing, now):
                        failures.append(
                            {"sectionId": section_id, "userId": user_id, "reason": "User already has access to this section"}
                        )
                        continue
                    if existing is not None:
                        self.repo.delete("section_access", existing["id"])
                    grant = {
                        "id": new_id(),
                        "sectionId": section_id,
                        "sectionTitle": section["title"],
                        "userId": user_id,
                        "userName": user["name"],
                        "grantedBy": req.granted_by,
                        "grantedByName": self.user_name(req.granted_by),
                        "grantedAt": utc_now(),
                        "reason": req.reason,
                        "expiresAt": req.expires_at,
                    }
                    self.repo.upsert("section_access", grant)
                    granted.append(grant)

        for grant in granted:
            self.record(
                user_id=req.granted_by,
                action="grant-section-access",
                entity_type="ReportSection",
                entity_id=grant["sectionId"],
                change_note=req.reason,
                changes=[change("AccessGrantedTo", None, grant["userId"])],
            )
        return {"grantedAccess": granted, "failures": failures}

    def revoke(self, req: RevokeAccessRequest) -> dict[str, Any]:
        revoked: list[tuple[str, str]] = []
        failures = []
        with self.lock:
            for section_id in req.section_ids:
                for user_id in req.user_ids:
                    grant = self._find(section_id, user_id)
                    if grant is None:
                        failures.append(
                            {
                                "sectionId": section_id,
                                "userId": user_id,
                                "reason": "User does not have explicit access to this section",
                            }
                        )
                        continue
                    self.repo.delete("section_access", grant["id"])
                    revoked.append((section_id, user_id))

        for section_id, user_id in revoked:
            self.record(
                user_id=req.revoked_by,
                action="revoke-section-access",
                entity_type="ReportSection",
                entity_id=section_id,
                change_note=req.reason,
                changes=[change("AccessGrantedTo", user_id, None)],
            )
        return {"revokedUserIds": list(dict.fromkeys(u for _, u in revoked)), "failures": failures}

    def has_access(self, section_id: str, user_id: str) -> bool:
        section = self.repo.get("section", section_id)
        if section is None:
            return False
        if section.get("ownerId") == user_id or self.is_admin(user_id):
            return True
        grant = self._find(section_id, user_id)
        return grant is not None and not _expired(grant, datetime.now(timezone.utc))

    def user_grants(self, user_id: str) -> list[dict[str, Any]]:
        return [g for g in self._grants() if g["userId"] == user_id]

    def section_summary(self, section_id: str) -> dict[str, Any]:
        section = self._get_or_404("section", section_id, "Section not found.")
        owner = self.find_user(section.get("ownerId")) if section.get("ownerId") else None
        return {
            "sectionId": section_id,
            "sectionTitle": section["title"],
            "owner": {"id": owner["id"], "name": owner["name"], "email": owner.get("email")} if owner else None,
            "accessGrants": self._grants(section_id),
        }
