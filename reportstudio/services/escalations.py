"""
Escalation of overdue data points to the period owner.

Runs after the deadline the way reminders run before it: on each configured
number of days past the deadline the data point owner is notified and, when
someone else owns the period, the period owner too. Delivery is a logged
event; the history records who was told.
"""

from __future__ import annotations

from datetime import date
from typing import Any

from reportstudio.config import settings
from reportstudio.exceptions import NotFoundError, ValidationError
from reportstudio.logging_config import get_logger, log_event, log_execution
from reportstudio.models import EscalationConfigRequest
from reportstudio.services.base import ServiceBase, new_id, now_utc, parse_date, utc_now

logger = get_logger(__name__)


class EscalationService(ServiceBase):
    def _stored_config(self, period_id: str) -> dict[str, Any] | None:
        configs = self.repo.list("escalation_config", period_id=period_id)
        return configs[0] if configs else None

    def get_config(self, period_id: str) -> dict[str, Any]:
        stored = self._stored_config(period_id)
        if stored is not None:
            return stored
        return {
            "id": None,
            "periodId": period_id,
            "enabled": True,
            "daysAfterDeadline": list(settings.default_escalation_days),
            "createdAt": None,
            "updatedAt": None,
        }

    def save_config(self, period_id: str, req: EscalationConfigRequest) -> dict[str, Any]:
        if self.repo.get("period", period_id) is None:
            raise NotFoundError("Reporting period not found.", resource_type="period", resource_id=period_id)
        if not req.days_after_deadline:
            raise ValidationError("DaysAfterDeadline must contain at least one value.", field="daysAfterDeadline")
        if any(d <= 0 for d in req.days_after_deadline):
            raise ValidationError(
                "DaysAfterDeadline values must be positive (days after deadline).", field="daysAfterDeadline"
            )

        with self.lock:
            config = self._stored_config(period_id)
            now = utc_now()
            if config is None:
                config = {"id": new_id(), "periodId": period_id, "createdAt": now}
            config.update(
                {
                    "enabled": req.enabled,
                    "daysAfterDeadline": sorted(set(req.days_after_deadline)),
                    "updatedAt": now,
                }
            )
            self.repo.upsert("escalation_config", config)
        return config

    @log_execution()
    def run(self, period_id: str, today: date | None = None) -> list[dict[str, Any]]:
        """
        Escalate the data points that are overdue by a configured number of days.

        ``today`` defaults to the current UTC date. Each (data point, days
        overdue) pair escalates at most once per day.
        """
        period = self.repo.get("period", period_id)
        if period is None:
            raise NotFoundError("Reporting period not found.", resource_type="period", resource_id=period_id)
        config = self.get_config(period_id)
        if not config["enabled"]:
            return []
        now = now_utc()
        today = today or now.date()
        sent_at = now.isoformat() if today == now.date() else f"{today.isoformat()}T00:00:00+00:00"
        days = set(config["daysAfterDeadline"])

        sent = []
        with self.lock:
            admin = self.find_user(period.get("ownerId"))
            if admin is None:
                logger.warning("escalation_period_owner_not_found", extra={"period_id": period_id})
                return []
            already_sent = {
                (h["dataPointId"], h["daysOverdue"])
                for h in self.repo.list("escalation_history")
                if parse_date(h.get("sentAt")) == today
            }
            for section in self.repo.list("section", period_id=period_id):
                for dp in self.repo.list("data_point", section_id=section["id"]):
                    if dp.get("completenessStatus") == "complete":
                        continue
                    deadline = parse_date(dp.get("deadline"))
                    if deadline is None:
                        continue
                    days_overdue = (today - deadline).days
                    if days_overdue <= 0 or days_overdue not in days or (dp["id"], days_overdue) in already_sent:
                        continue
                    owner = self.find_user(dp.get("ownerId"))
                    if owner is None:
                        logger.warning("escalation_owner_not_found", extra={"data_point_id": dp["id"]})
                        continue
                    owner_is_admin = owner["id"] == admin["id"]
                    entry = {
                        "id": new_id(),
                        "dataPointId": dp["id"],
                        "dataPointTitle": dp["title"],
                        "ownerUserId": owner["id"],
                        "ownerEmail": owner.get("email"),
                        "escalatedToUserId": None if owner_is_admin else admin["id"],
                        "escalatedToEmail": None if owner_is_admin else admin.get("email"),
                        "sentAt": sent_at,
                        "daysOverdue": days_overdue,
                        "deadlineDate": dp["deadline"],
                    }
                    self.repo.upsert("escalation_history", entry)
                    already_sent.add((dp["id"], days_overdue))
                    sent.append(entry)
                    log_event(
                        "escalation_sent",
                        level="WARNING",
                        data_point_id=dp["id"],
                        owner_user_id=owner["id"],
                        escalated_to_user_id=entry["escalatedToUserId"],
                        days_overdue=days_overdue,
                    )
        return sent

    def history(self, data_point_id: str | None = None, user_id: str | None = None) -> list[dict[str, Any]]:
        """Newest first; ``user_id`` matches either the owner or the escalation target."""
        entries = self.repo.list("escalation_history")
        if data_point_id:
            entries = [e for e in entries if e["dataPointId"] == data_point_id]
        if user_id:
            entries = [e for e in entries if user_id in (e["ownerUserId"], e["escalatedToUserId"])]
        return list(reversed(entries))
