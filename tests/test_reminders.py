from __future__ import annotations

import time
from concurrent.futures import ThreadPoolExecutor
from datetime import date, datetime, timedelta, timezone

import pytest

from conftest import ADMIN_ID
from reportstudio.exceptions import NotFoundError, ValidationError
from reportstudio.models import ReminderConfigRequest, ReviewRequest

TODAY = date(2024, 6, 1)


def test_default_config(services, period):
    config = services.reminders.get_config(period["id"])
    assert config["id"] is None
    assert config["daysBeforeDeadline"] == [7, 3, 1]


def test_save_config(services, period):
    saved = services.reminders.save_config(
        ReminderConfigRequest(period_id=period["id"], days_before_deadline=[1, 14, 7, 7], check_frequency_hours=12)
    )
    assert saved["daysBeforeDeadline"] == [14, 7, 1]
    again = services.reminders.save_config(ReminderConfigRequest(period_id=period["id"], enabled=False))
    assert again["id"] == saved["id"]
    assert services.reminders.get_config(period["id"])["enabled"] is False


@pytest.mark.parametrize(
    "overrides,message",
    [
        ({"days_before_deadline": []}, "DaysBeforeDeadline"),
        ({"days_before_deadline": [3, 0]}, "DaysBeforeDeadline"),
        ({"check_frequency_hours": 0}, "CheckFrequencyHours"),
    ],
)
def test_save_config_validation(services, period, overrides, message):
    with pytest.raises(ValidationError, match=message):
        services.reminders.save_config(ReminderConfigRequest(period_id=period["id"], **overrides))


def test_unknown_period(services):
    with pytest.raises(NotFoundError):
        services.reminders.run("missing", today=TODAY)


def test_run_sends_once_per_day(services, period, make_data_point):
    due = make_data_point(title="Scope 1", deadline="2024-06-08")
    make_data_point(title="Scope 2", deadline="2024-06-10")

    [reminder] = services.reminders.run(period["id"], today=TODAY)
    assert reminder["dataPointId"] == due["id"]
    assert reminder["daysUntilDeadline"] == 7
    assert reminder["recipientEmail"] == "sarah.chen@company.com"
    assert reminder["sentAt"].startswith("2024-06-01")

    assert services.reminders.run(period["id"], today=TODAY) == []
    assert len(services.reminders.history(data_point_id=due["id"])) == 1


def test_run_skips_approved(services, period, make_data_point):
    dp = make_data_point(deadline="2024-06-04", review_status="ready-for-review")
    services.data_points.approve(dp["id"], ReviewRequest(reviewed_by=ADMIN_ID))
    assert services.reminders.run(period["id"], today=TODAY) == []


def test_run_disabled(services, period, make_data_point):
    make_data_point(deadline="2024-06-04")
    services.reminders.save_config(ReminderConfigRequest(period_id=period["id"], enabled=False))
    assert services.reminders.run(period["id"], today=TODAY) == []


def test_run_skips_complete(services, period, make_data_point):
    make_data_point(deadline="2024-06-04", completeness_status="complete")
    assert services.reminders.run(period["id"], today=TODAY) == []


def test_run_skips_past_deadline(services, period, make_data_point):
    services.reminders.save_config(ReminderConfigRequest(period_id=period["id"], days_before_deadline=[3]))
    make_data_point(deadline="2024-05-29")
    assert services.reminders.run(period["id"], today=TODAY) == []


def test_run_skips_unresolvable_owner(services, repo, period, make_data_point):
    dp = make_data_point(deadline="2024-06-04")
    stored = repo.get("data_point", dp["id"])
    stored["ownerId"] = "user-gone"
    repo.upsert("data_point", stored)
    assert services.reminders.run(period["id"], today=TODAY) == []


def test_default_day_follows_utc_clock(services, period, make_data_point, monkeypatch):
    from reportstudio.services import reminders as reminders_module

    late_evening = datetime(2024, 6, 1, 23, 30, tzinfo=timezone.utc)
    monkeypatch.setattr(reminders_module, "now_utc", lambda: late_evening)
    dp = make_data_point(deadline="2024-06-04")

    [reminder] = services.reminders.run(period["id"])
    assert reminder["sentAt"].startswith("2024-06-01T23:30")
    assert services.reminders.run(period["id"]) == []
    assert services.reminders.run(period["id"], today=TODAY) == []
    assert len(services.reminders.history(data_point_id=dp["id"])) == 1


@pytest.mark.skipif(not hasattr(time, "tzset"), reason="needs time.tzset")
def test_once_per_day_when_local_date_lags_utc(services, period, make_data_point, monkeypatch):
    monkeypatch.setenv("TZ", "Etc/GMT+12")
    time.tzset()
    try:
        utc_today = datetime.now(timezone.utc).date()
        make_data_point(deadline=(utc_today + timedelta(days=3)).isoformat())
        assert len(services.reminders.run(period["id"])) == 1
        assert services.reminders.run(period["id"]) == []
    finally:
        monkeypatch.undo()
        time.tzset()


def test_concurrent_runs_send_once(services, period, make_data_point):
    make_data_point(deadline="2024-06-04")
    make_data_point(title="Scope 2", deadline="2024-06-08")

    with ThreadPoolExecutor(max_workers=4) as pool:
        results = list(pool.map(lambda _: services.reminders.run(period["id"], today=TODAY), range(4)))

    assert sum(len(r) for r in results) == 2
    assert len(services.reminders.history()) == 2
