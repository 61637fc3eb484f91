from __future__ import annotations

from datetime import date, datetime, timezone

import pytest

from conftest import CONTRIBUTOR_ID, OWNER_ID
from reportstudio.exceptions import NotFoundError, ValidationError
from reportstudio.models import EscalationConfigRequest
from reportstudio.services import escalations as escalations_module

TODAY = date(2024, 6, 10)


def test_default_config(services, period):
    config = services.escalations.get_config(period["id"])
    assert config["id"] is None
    assert config["enabled"] is True
    assert config["daysAfterDeadline"] == [3, 7]


@pytest.mark.parametrize(
    "days,message",
    [
        ([], "DaysAfterDeadline must contain at least one value."),
        ([3, -1], r"DaysAfterDeadline values must be positive \(days after deadline\)."),
    ],
)
def test_save_config_validation(services, period, days, message):
    with pytest.raises(ValidationError, match=message):
        services.escalations.save_config(period["id"], EscalationConfigRequest(days_after_deadline=days))


def test_save_config_unknown_period(services):
    with pytest.raises(NotFoundError):
        services.escalations.save_config("missing", EscalationConfigRequest())


def test_escalates_to_period_owner_once_per_day(services, period, make_data_point):
    overdue = make_data_point(title="Scope 3", owner_id=CONTRIBUTOR_ID, deadline="2024-06-07")
    make_data_point(title="Water", owner_id=CONTRIBUTOR_ID, deadline="2024-06-08")

    [entry] = services.escalations.run(period["id"], today=TODAY)
    assert entry["dataPointId"] == overdue["id"]
    assert entry["daysOverdue"] == 3
    assert entry["ownerUserId"] == CONTRIBUTOR_ID
    assert entry["escalatedToUserId"] == OWNER_ID
    assert entry["escalatedToEmail"] == "sarah.chen@company.com"
    assert entry["sentAt"].startswith("2024-06-10")

    assert services.escalations.run(period["id"], today=TODAY) == []
    assert [e["id"] for e in services.escalations.history(user_id=OWNER_ID)] == [entry["id"]]


def test_owner_who_owns_the_period_is_not_escalated_to_themselves(services, period, make_data_point):
    make_data_point(deadline="2024-06-03")
    [entry] = services.escalations.run(period["id"], today=TODAY)
    assert entry["daysOverdue"] == 7
    assert entry["escalatedToUserId"] is None
    assert entry["escalatedToEmail"] is None


def test_skips_complete_undated_and_not_yet_due(services, period, make_data_point):
    make_data_point(deadline="2024-06-07", completeness_status="complete")
    make_data_point(title="No deadline")
    make_data_point(title="Due today", deadline="2024-06-10")
    make_data_point(title="Due soon", deadline="2024-06-13")
    assert services.escalations.run(period["id"], today=TODAY) == []


def test_skips_unresolvable_owner(services, repo, period, make_data_point):
    dp = make_data_point(deadline="2024-06-07")
    repo.upsert("data_point", {**repo.get("data_point", dp["id"]), "ownerId": "user-gone"})
    assert services.escalations.run(period["id"], today=TODAY) == []


def test_unknown_period_owner_stops_the_run(services, repo, period, make_data_point):
    make_data_point(owner_id=CONTRIBUTOR_ID, deadline="2024-06-07")
    repo.upsert("period", {**repo.get("period", period["id"]), "ownerId": "user-gone"})
    assert services.escalations.run(period["id"], today=TODAY) == []


def test_disabled(services, period, make_data_point):
    make_data_point(deadline="2024-06-07")
    services.escalations.save_config(period["id"], EscalationConfigRequest(enabled=False))
    assert services.escalations.run(period["id"], today=TODAY) == []


def test_default_day_follows_utc_clock(services, period, make_data_point, monkeypatch):
    make_data_point(deadline="2024-06-07")
    monkeypatch.setattr(
        escalations_module, "now_utc", lambda: datetime(2024, 6, 10, 23, 30, tzinfo=timezone.utc)
    )
    [entry] = services.escalations.run(period["id"])
    assert entry["sentAt"] == "2024-06-10T23:30:00+00:00"


def test_run_route(api):
    resp = api.post("/api/escalations/run", json={"periodId": "missing"})
    assert resp.status_code == 404
    resp = api.post("/api/escalations/config/missing", json={"daysAfterDeadline": [3]})
    assert resp.status_code == 404
