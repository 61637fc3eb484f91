"""
Shared plumbing for the domain services.
"""

from __future__ import annotations

import threading
import uuid
from datetime import date, datetime, timezone
from typing import TYPE_CHECKING, Any

from reportstudio.exceptions import MissingRequiredFieldError, NotFoundError, PeriodLockedError
from reportstudio.reference import ADMIN_ROLE_ID
from reportstudio.repository import DocumentRepo

if TYPE_CHECKING:
    from reportstudio.services.audit import AuditTrail

# Every service shares one lock so that validate-then-write sequences spanning
# several documents stay atomic across the API threadpool.
_write_lock = threading.RLock()


def now_utc() -> datetime:
    return datetime.now(timezone.utc)


def utc_now() -> str:
    return now_utc().isoformat()


def new_id() -> str:
    return str(uuid.uuid4())


def parse_date(value: Any) -> date | None:
    """Parse ``YYYY-MM-DD`` or a full ISO-8601 timestamp; None when unparsable."""
    if value is None:
        return None
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    text = str(value).strip()
    if not text:
        return None
    try:
        return date.fromisoformat(text[:10])
    except ValueError:
        pass
    try:
        return datetime.fromisoformat(text.replace("Z", "+00:00")).date()
    except ValueError:
        return None


def is_blank(value: Any) -> bool:
    return value is None or (isinstance(value, str) and not value.strip())


def require(value: Any, field_name: str, message: str | None = None) -> None:
    if is_blank(value):
        raise MissingRequiredFieldError(field_name, message=message)


class ServiceBase:
    """Repository access, user lookups and audit recording shared by services."""

    lock = _write_lock

    def __init__(self, repo: DocumentRepo, audit: AuditTrail | None = None) -> None:
        self.repo = repo
        self._audit = audit

    # -- users -------------------------------------------------------------

    def find_user(self, user_id: str | None) -> dict[str, Any] | None:
        return self.repo.get("user", user_id)

    def user_name(self, user_id: str | None, default: str = "Unknown User") -> str:
        user = self.find_user(user_id)
        return user["name"] if user else default

    def is_admin(self, user_id: str | None) -> bool:
        user = self.find_user(user_id)
        if not user:
            return False
        return user.get("role") == "admin" or ADMIN_ROLE_ID in (user.get("roleIds") or [])

    # -- lookups -----------------------------------------------------------

    def _get_or_404(self, kind: str, doc_id: str, message: str) -> dict[str, Any]:
        doc = self.repo.get(kind, doc_id)
        if doc is None:
            raise NotFoundError(message, resource_type=kind, resource_id=doc_id)
        return doc

    def period_for_section(self, section_id: str | None) -> dict[str, Any] | None:
        section = self.repo.get("section", section_id)
        if not section:
            return None
        return self.repo.get("period", section.get("periodId"))

    def ensure_section_unlocked(self, section_id: str | None) -> None:
        period = self.period_for_section(section_id)
        if period and period.get("isLocked"):
            raise PeriodLockedError(period.get("name"))

    # -- audit -------------------------------------------------------------

    def record(
        self,
        *,
        user_id: str | None,
        action: str,
        entity_type: str,
        entity_id: str,
        change_note: str | None = None,
        changes: list[dict[str, Any]] | None = None,
    ) -> dict[str, Any] | None:
        if self._audit is None:
            return None
        return self._audit.append(
            user_id=user_id or "unknown",
            user_name=self.user_name(user_id),
            action=action,
            entity_type=entity_type,
            entity_id=entity_id,
            change_note=change_note,
            changes=changes or [],
        )


def change(field_name: str, old: Any, new: Any) -> dict[str, Any]:
    return {
        "field": field_name,
        "oldValue": "" if old is None else str(old),
        "newValue": "" if new is None else str(new),
    }


def diff(before: dict[str, Any], after: dict[str, Any], fields: dict[str, str]) -> list[dict[str, Any]]:
    """FieldChange entries for ``fields`` (doc key -> display name) that differ."""
    changes = []
    for key, label in fields.items():
        old, new = before.get(key), after.get(key)
        if (old or None) != (new or None):
            changes.append(change(label, old, new))
    return changes
