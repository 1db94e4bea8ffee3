"""
Response hardening.

Adds security headers to every API response. The service returns
JSON only, so the content policy forbids loading anything.
"""
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import Response
from core.config import settings


class SecurityHeadersMiddleware(BaseHTTPMiddleware):
    """nosniff, frame deny and no-referrer always; no-store on /v1/ results; HSTS and CSP outside DEBUG."""

    async def dispatch(self, request: Request, call_next) -> Response:
        response = await call_next(request)

        response.headers["X-Content-Type-Options"] = "nosniff"
        response.headers["X-Frame-Options"] = "DENY"
        response.headers["Referrer-Policy"] = "no-referrer"

        if request.url.path.startswith("/v1/"):
            response.headers["Cache-Control"] = "no-store"

        if not settings.DEBUG:
            response.headers["Strict-Transport-Security"] = (
                "max-age=31536000; includeSubDomains"
            )
            # Docs pages need inline scripts; everything else is JSON
            if not request.url.path.startswith(("/docs", "/redoc")):
                response.headers["Content-Security-Policy"] = (
                    "default-src 'none'; frame-ancestors 'none'"
                )

        return response
