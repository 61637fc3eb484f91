"""
Dependency helpers for API routes.

Plain functions over ``request.app.state`` rather than a FastAPI ``Depends``
graph; the lifespan hook builds the state once per process.
"""

from __future__ import annotations

from fastapi import Request

from reportstudio.api.state import AppState
from reportstudio.config import settings
from reportstudio.repository import DocumentRepo
from reportstudio.services import Services, build_services, seed_reference_data


def get_state(request: Request) -> AppState:
    state = getattr(request.app.state, "state", None)
    if state is None:
        repo = DocumentRepo(str(settings.db_path))
        if settings.seed_reference_data:
            seed_reference_data(repo)
        state = AppState(repo=repo, services=build_services(repo))
        request.app.state.state = state
    return state


def get_services(request: Request) -> Services:
    return get_state(request).services


def acting_user(request: Request, explicit: str | None = None) -> str | None:
    """User id for audit entries on bodiless requests: explicit query value, else ``X-User-ID``."""
    return explicit or request.headers.get("x-user-id") or None
