from __future__ import annotations

from fastapi import APIRouter, Query, Request

from reportstudio.api.dependencies import get_services
from reportstudio.models import CatalogItemRequest

router = APIRouter(prefix="/api/section-catalog", tags=["catalog"])


@router.get("")
def list_items(request: Request, include_deprecated: bool = Query(False, alias="includeDeprecated")) -> list[dict]:
    return get_services(request).catalog.list_items(include_deprecated)


@router.get("/{item_id}")
def get_item(item_id: str, request: Request) -> dict:
    return get_services(request).catalog.get_item(item_id)


@router.post("", status_code=201)
def create_item(payload: CatalogItemRequest, request: Request) -> dict:
    return get_services(request).catalog.create_item(payload)


@router.put("/{item_id}")
def update_item(item_id: str, payload: CatalogItemRequest, request: Request) -> dict:
    return get_services(request).catalog.update_item(item_id, payload)


@router.post("/{item_id}/deprecate")
def deprecate_item(item_id: str, request: Request) -> dict:
    return get_services(request).catalog.deprecate_item(item_id)
