"""
Request observability for the API.

Each request gets an ``X-Request-ID`` (the client's, or a fresh uuid4), is
timed, and is logged as ``request_started`` followed by ``request_completed``
(``request_completed_slow`` past the configured threshold) or ``request_failed``.
"""

from __future__ import annotations

import time
import uuid
from collections.abc import Callable
from typing import Any

from fastapi import Request, Response
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.types import ASGIApp

from reportstudio.api.middleware import get_client_ip
from reportstudio.config import settings
from reportstudio.exceptions import ReportStudioError
from reportstudio.logging_config import bind_request_context, current_request_context, get_logger, reset_request_context

# Query parameter names whose values are never written to the logs.
SENSITIVE_QUERY_PARAMS = frozenset({"key", "signing_key", "signingkey", "token", "password", "secret"})

logger = get_logger(__name__)


def generate_request_id() -> str:
    return str(uuid.uuid4())


def get_request_id() -> str | None:
    return current_request_context().get("request_id")


def sanitize_query_params(query: str) -> str:
    """Redact values of sensitive query parameters before they reach the logs."""
    parts = []
    for part in query.split("&"):
        key, sep, _ = part.partition("=")
        parts.append(f"{key}=***REDACTED***" if sep and key.lower() in SENSITIVE_QUERY_PARAMS else part)
    return "&".join(parts)


class ObservabilityMiddleware(BaseHTTPMiddleware):
    def __init__(self, app: ASGIApp, *, slow_request_threshold_ms: float | None = None) -> None:
        super().__init__(app)
        if slow_request_threshold_ms is None:
            slow_request_threshold_ms = settings.slow_request_threshold_ms
        self.slow_request_threshold_ms = slow_request_threshold_ms

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        request_id = request.headers.get("x-request-id") or generate_request_id()
        token = bind_request_context(
            request_id=request_id,
            user_id=request.headers.get("x-user-id") or None,
            client_ip=get_client_ip(request),
            method=request.method,
            path=request.url.path,
        )
        start = time.perf_counter()
        try:
            start_meta: dict[str, Any] = {"user_agent": request.headers.get("user-agent")}
            if request.url.query:
                start_meta["query_params"] = sanitize_query_params(str(request.url.query))
            logger.info("request_started", extra=start_meta)

            try:
                response = await call_next(request)
            except Exception as exc:
                error_meta: dict[str, Any] = {
                    "error_type": type(exc).__name__,
                    "duration_ms": round((time.perf_counter() - start) * 1000, 2),
                }
                if isinstance(exc, ReportStudioError):
                    error_meta["error_code"] = exc.error_code
                logger.error("request_failed", extra=error_meta, exc_info=not isinstance(exc, ReportStudioError))
                raise

            duration_ms = (time.perf_counter() - start) * 1000
            response.headers["X-Request-ID"] = request_id
            done_meta: dict[str, Any] = {"status_code": response.status_code, "duration_ms": round(duration_ms, 2)}
            # List routes report how many items they returned.
            if hasattr(request.state, "result_count"):
                done_meta["result_count"] = request.state.result_count
            if duration_ms >= self.slow_request_threshold_ms:
                logger.warning("request_completed_slow", extra=done_meta)
            else:
                logger.info("request_completed", extra=done_meta)
            return response
        finally:
            reset_request_context(token)


__all__ = [
    "ObservabilityMiddleware",
    "generate_request_id",
    "get_request_id",
    "sanitize_query_params",
]
