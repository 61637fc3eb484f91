from __future__ import annotations

from fastapi import APIRouter, Query, Request

from reportstudio.api.dependencies import acting_user, get_services
from reportstudio.models import MaturityModelRequest

router = APIRouter(prefix="/api/maturity-models", tags=["maturity-models"])


@router.get("")
def list_models(request: Request, include_inactive: bool = Query(False, alias="includeInactive")) -> list[dict]:
    return get_services(request).maturity_models.list_models(include_inactive)


# Declared before "/{model_id}" so the literal path wins.
@router.get("/active")
def active_model(request: Request) -> dict:
    return get_services(request).maturity_models.get_active()


@router.get("/{model_id}")
def get_model(model_id: str, request: Request) -> dict:
    return get_services(request).maturity_models.get_model(model_id)


@router.get("/{model_id}/versions")
def version_history(model_id: str, request: Request) -> list[dict]:
    return get_services(request).maturity_models.version_history(model_id)


@router.post("", status_code=201)
def create_model(payload: MaturityModelRequest, request: Request) -> dict:
    return get_services(request).maturity_models.create_model(payload)


@router.put("/{model_id}")
def update_model(model_id: str, payload: MaturityModelRequest, request: Request) -> dict:
    return get_services(request).maturity_models.update_model(model_id, payload)


@router.delete("/{model_id}")
def delete_model(model_id: str, request: Request, deleted_by: str | None = Query(None, alias="deletedBy")) -> dict:
    return get_services(request).maturity_models.delete_model(model_id, acting_user(request, deleted_by))
