"""
Reporting period routes, including the aggregate snapshot the console loads.
"""

from __future__ import annotations

from fastapi import APIRouter, Request, Response

from reportstudio.api.dependencies import get_services
from reportstudio.models import CreatePeriodRequest, LockPeriodRequest, UnlockPeriodRequest, UpdatePeriodRequest

router = APIRouter(prefix="/api", tags=["periods"])


@router.get("/reporting-data")
def reporting_data(request: Request, response: Response) -> dict:
    response.headers["Cache-Control"] = "no-store"
    return get_services(request).periods.snapshot()


@router.get("/periods")
def list_periods(request: Request) -> list[dict]:
    return get_services(request).periods.list_periods()


@router.get("/periods/{period_id}")
def get_period(period_id: str, request: Request) -> dict:
    return get_services(request).periods.get_period(period_id)


@router.post("/periods", status_code=201)
def create_period(payload: CreatePeriodRequest, request: Request) -> dict:
    return get_services(request).periods.create_period(payload)


@router.put("/periods/{period_id}")
def update_period(period_id: str, payload: UpdatePeriodRequest, request: Request) -> dict:
    return get_services(request).periods.update_period(period_id, payload)


@router.get("/periods/{period_id}/has-started")
def has_started(period_id: str, request: Request) -> dict:
    services = get_services(request)
    services.periods.get_period(period_id)
    return {"hasStarted": services.periods.has_started(period_id)}


@router.post("/periods/{period_id}/lock")
def lock_period(period_id: str, payload: LockPeriodRequest, request: Request) -> dict:
    return get_services(request).periods.lock_period(period_id, payload)


@router.post("/periods/{period_id}/unlock")
def unlock_period(period_id: str, payload: UnlockPeriodRequest, request: Request) -> dict:
    return get_services(request).periods.unlock_period(period_id, payload)
