"""
HTTP middleware stack shared by every Report Studio route.
"""

from __future__ import annotations

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.middleware.gzip import GZipMiddleware

from reportstudio.config import settings

# Evidence uploads arrive as base64 inside JSON, so the size limit applies to the body.
PAYLOAD_TOO_LARGE = {"error": "Request body is too large.", "code": "validation_error"}

SECURITY_HEADERS = {
    "X-Content-Type-Options": "nosniff",
    "X-Frame-Options": "DENY",
    "Referrer-Policy": "no-referrer",
}


def get_client_ip(request: Request) -> str:
    """Peer address, or the first X-Forwarded-For hop when the peer is a trusted proxy."""
    peer = (request.client.host if request.client else "") or ""
    if not settings.trust_proxy_headers:
        return peer
    trusted = settings.trusted_proxy_ips
    if "*" not in trusted and peer not in trusted:
        return peer
    forwarded = (request.headers.get("x-forwarded-for") or "").split(",")[0].strip()
    return forwarded or (request.headers.get("x-real-ip") or "").strip() or peer


def install_middleware(app: FastAPI) -> None:
    """
    Register compression, CORS for the admin console, security headers and
    the body size limit. Request observability is added separately so that
    it wraps all of these.
    """
    app.add_middleware(GZipMiddleware, minimum_size=800)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=list(settings.cors_allow_origins),
        allow_credentials=settings.cors_allow_credentials,
        allow_methods=["GET", "POST", "PUT", "DELETE", "OPTIONS"],
        allow_headers=["Content-Type", "X-Request-ID", "X-User-ID"],
        max_age=settings.cors_max_age,
    )

    @app.middleware("http")
    async def security_headers(request: Request, call_next):
        response = await call_next(request)
        for name, value in SECURITY_HEADERS.items():
            response.headers.setdefault(name, value)
        return response

    @app.middleware("http")
    async def limit_body_size(request: Request, call_next):
        length = request.headers.get("content-length")
        if length and length.isdigit() and int(length) > settings.max_request_bytes:
            return JSONResponse(status_code=413, content=PAYLOAD_TOO_LARGE, headers={"Cache-Control": "no-store"})
        return await call_next(request)
