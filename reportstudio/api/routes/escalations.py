from __future__ import annotations

from fastapi import APIRouter, Query, Request

from reportstudio.api.dependencies import get_services
from reportstudio.exceptions import ValidationError
from reportstudio.models import EscalationConfigRequest, RunEscalationsRequest
from reportstudio.services.base import parse_date

router = APIRouter(prefix="/api/escalations", tags=["escalations"])


@router.get("/config/{period_id}")
def get_config(period_id: str, request: Request) -> dict:
    return get_services(request).escalations.get_config(period_id)


@router.post("/config/{period_id}")
def save_config(period_id: str, payload: EscalationConfigRequest, request: Request) -> dict:
    return get_services(request).escalations.save_config(period_id, payload)


@router.post("/run")
def run(payload: RunEscalationsRequest, request: Request) -> list[dict]:
    today = None
    if payload.today:
        today = parse_date(payload.today)
        if today is None:
            raise ValidationError("Today must be a valid date.", field="today")
    return get_services(request).escalations.run(payload.period_id, today)


@router.get("/history")
def history(
    request: Request,
    data_point_id: str | None = Query(None, alias="dataPointId"),
    user_id: str | None = Query(None, alias="userId"),
) -> list[dict]:
    return get_services(request).escalations.history(data_point_id, user_id)
