from __future__ import annotations

from datetime import date
from typing import Any

from reportstudio.config import settings
from reportstudio.exceptions import NotFoundError, ValidationError
from reportstudio.logging_config import get_logger, log_event, log_execution
from reportstudio.models import ReminderConfigRequest
from reportstudio.services.base import ServiceBase, new_id, now_utc, parse_date, utc_now

logger = get_logger(__name__)


class ReminderService(ServiceBase):
    """Deadline reminders for data point owners. Delivery is a logged event."""

    def _stored_config(self, period_id: str) -> dict[str, Any] | None:
        configs = self.repo.list("reminder_config", period_id=period_id)
        return configs[0] if configs else None

    def get_config(self, period_id: str) -> dict[str, Any]:
        stored = self._stored_config(period_id)
        if stored is not None:
            return stored
        return {
            "id": None,
            "periodId": period_id,
            "enabled": True,
            "daysBeforeDeadline": list(settings.default_reminder_days),
            "checkFrequencyHours": settings.default_reminder_frequency_hours,
            "createdAt": None,
            "updatedAt": None,
        }

    def save_config(self, req: ReminderConfigRequest) -> dict[str, Any]:
        if self.repo.get("period", req.period_id) is None:
            raise NotFoundError("Reporting period not found.", resource_type="period", resource_id=req.period_id)
        if not req.days_before_deadline or any(d <= 0 for d in req.days_before_deadline):
            raise ValidationError("DaysBeforeDeadline must contain positive integers.", field="daysBeforeDeadline")
        if req.check_frequency_hours < 1:
            raise ValidationError("CheckFrequencyHours must be at least 1.", field="checkFrequencyHours")

        with self.lock:
            config = self._stored_config(req.period_id)
            now = utc_now()
            if config is None:
                config = {"id": new_id(), "periodId": req.period_id, "createdAt": now}
            config.update(
                {
                    "enabled": req.enabled,
                    "daysBeforeDeadline": sorted(set(req.days_before_deadline), reverse=True),
                    "checkFrequencyHours": req.check_frequency_hours,
                    "updatedAt": now,
                }
            )
            self.repo.upsert("reminder_config", config)
        return config

    def _period_data_points(self, period_id: str) -> list[dict[str, Any]]:
        points = []
        for section in self.repo.list("section", period_id=period_id):
            points.extend(self.repo.list("data_point", section_id=section["id"]))
        return points

    @log_execution()
    def run(self, period_id: str, today: date | None = None) -> list[dict[str, Any]]:
        """
        Send the reminders due on ``today`` (the current UTC date by default).

        A data point gets at most one reminder per day for a given number of
        days until its deadline. Complete, approved and overdue points are
        skipped, as are points whose owner no longer resolves to a user.
        """
        if self.repo.get("period", period_id) is None:
            raise NotFoundError("Reporting period not found.", resource_type="period", resource_id=period_id)
        config = self.get_config(period_id)
        if not config["enabled"]:
            return []
        now = now_utc()
        today = today or now.date()
        sent_at = now.isoformat() if today == now.date() else f"{today.isoformat()}T00:00:00+00:00"
        days = set(config["daysBeforeDeadline"])

        sent = []
        with self.lock:
            already_sent = {
                (h["dataPointId"], h["daysUntilDeadline"])
                for h in self.repo.list("reminder_history")
                if parse_date(h.get("sentAt")) == today
            }
            for dp in self._period_data_points(period_id):
                if dp.get("completenessStatus") == "complete" or dp.get("reviewStatus") == "approved":
                    continue
                deadline = parse_date(dp.get("deadline"))
                if deadline is None:
                    continue
                days_until = (deadline - today).days
                if days_until < 0 or days_until not in days or (dp["id"], days_until) in already_sent:
                    continue
                owner = self.find_user(dp.get("ownerId"))
                if owner is None:
                    logger.warning("reminder_owner_not_found", extra={"data_point_id": dp["id"]})
                    continue
                reminder = {
                    "id": new_id(),
                    "dataPointId": dp["id"],
                    "dataPointTitle": dp["title"],
                    "recipientUserId": owner["id"],
                    "recipientEmail": owner.get("email"),
                    "daysUntilDeadline": days_until,
                    "deadlineDate": dp["deadline"],
                    "sentAt": sent_at,
                    "reminderType": dp.get("completenessStatus") or "deadline",
                }
                self.repo.upsert("reminder_history", reminder)
                already_sent.add((dp["id"], days_until))
                sent.append(reminder)
                log_event(
                    "reminder_sent",
                    data_point_id=dp["id"],
                    recipient_user_id=owner["id"],
                    days_until_deadline=days_until,
                )
        return sent

    def history(self, data_point_id: str | None = None, user_id: str | None = None) -> list[dict[str, Any]]:
        entries = self.repo.list("reminder_history")
        if data_point_id:
            entries = [e for e in entries if e["dataPointId"] == data_point_id]
        if user_id:
            entries = [e for e in entries if e["recipientUserId"] == user_id]
        return list(reversed(entries))
