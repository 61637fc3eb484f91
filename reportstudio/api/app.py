"""
FastAPI application factory.
"""

from __future__ import annotations

from contextlib import asynccontextmanager
from pathlib import Path

from fastapi import FastAPI, Request, Response
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from reportstudio.api.middleware import install_middleware
from reportstudio.api.observability import ObservabilityMiddleware, generate_request_id, get_request_id
from reportstudio.api.routes import (
    approvals,
    assumptions,
    audit,
    catalog,
    completion_exceptions,
    dashboard,
    datapoints,
    decisions,
    escalations,
    evidence,
    gaps,
    maturity,
    organization,
    periods,
    readiness,
    reminders,
    remediation,
    roles,
    rollover,
    section_access,
    sections,
    standards,
    validation_rules,
)
from reportstudio.api.state import AppState
from reportstudio.config import settings
from reportstudio.exceptions import ReportStudioError, exception_to_http_status
from reportstudio.logging_config import get_logger
from reportstudio.repository import DocumentRepo
from reportstudio.services import build_services, seed_reference_data

logger = get_logger(__name__)

ROUTERS = (
    organization.router,
    periods.router,
    sections.router,
    catalog.router,
    datapoints.router,
    validation_rules.router,
    evidence.router,
    assumptions.router,
    decisions.router,
    gaps.router,
    remediation.router,
    approvals.router,
    rollover.router,
    roles.router,
    section_access.router,
    audit.router,
    dashboard.router,
    reminders.router,
    escalations.router,
    completion_exceptions.router,
    readiness.router,
    standards.router,
    maturity.router,
)


def _validation_message(exc: RequestValidationError) -> str:
    errors = exc.errors()
    if not errors:
        return "Invalid request."
    first = errors[0]
    location = [str(part) for part in first.get("loc", ()) if part not in ("body", "query", "path")]
    message = first.get("msg", "Invalid value")
    return f"{'.'.join(location)}: {message}" if location else message


def create_app(*, db_path: Path | None = None, seed: bool | None = None) -> FastAPI:
    @asynccontextmanager
    async def lifespan(app: FastAPI):
        repo = DocumentRepo(str(db_path or settings.db_path))
        if settings.seed_reference_data if seed is None else seed:
            seed_reference_data(repo)
        app.state.state = AppState(repo=repo, services=build_services(repo))
        logger.info("app_started", extra={"db_path": str(repo.db_path)})
        yield

    app = FastAPI(
        title="ESG Report Studio API",
        version="1.0.0",
        docs_url="/docs",
        redoc_url="/redoc",
        lifespan=lifespan,
    )

    install_middleware(app)

    # Added last so it wraps every other middleware.
    app.add_middleware(ObservabilityMiddleware)

    @app.get("/api/health")
    def health(response: Response) -> dict:
        response.headers["Cache-Control"] = "no-store"
        return {"ok": True}

    for router in ROUTERS:
        app.include_router(router)

    def _error_headers(request: Request) -> dict[str, str]:
        rid = request.headers.get("x-request-id") or get_request_id() or generate_request_id()
        return {"X-Request-ID": rid, "Cache-Control": "no-store"}

    @app.exception_handler(ReportStudioError)
    def _domain_error(request: Request, exc: ReportStudioError) -> JSONResponse:
        status = exception_to_http_status(exc)
        headers = _error_headers(request)
        exc.request_id = headers["X-Request-ID"]
        exc.log()
        return JSONResponse(status_code=status, content={"error": exc.message, "code": exc.error_code}, headers=headers)

    @app.exception_handler(RequestValidationError)
    def _request_validation(request: Request, exc: RequestValidationError) -> JSONResponse:
        return JSONResponse(
            status_code=400,
            content={"error": _validation_message(exc), "code": "validation_error"},
            headers=_error_headers(request),
        )

    @app.exception_handler(Exception)
    def _unhandled(request: Request, exc: Exception) -> JSONResponse:
        # ObservabilityMiddleware logs the exception with its traceback.
        _ = exc
        return JSONResponse(status_code=500, content={"error": "internal_error"}, headers=_error_headers(request))

    return app


app = create_app()
