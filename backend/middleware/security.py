"""Security headers middleware for FastAPI.

Adds Content-Security-Policy, HSTS, X-Frame-Options, X-Content-Type-Options,
Referrer-Policy, Permissions-Policy, and X-XSS-Protection headers to all
responses.

Configurable via SECURITY_HEADERS_ENABLED env var (default: true).
"""

import logging
import os

from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request

logger = logging.getLogger(__name__)


def is_security_headers_enabled() -> bool:
    """Check if security headers middleware is enabled via env var."""
    return os.getenv("SECURITY_HEADERS_ENABLED", "true").lower() in ("true", "1", "yes")


class SecurityHeadersMiddleware(BaseHTTPMiddleware):
    """Middleware to add security headers to all responses.

    The API serves JSON only, so the CSP denies everything except the
    interactive docs page (served from the jsdelivr CDN outside production).
    """

    CSP_POLICY = (
        "default-src 'none'; "
        "script-src 'self' 'unsafe-inline' https://cdn.jsdelivr.net; "
        "style-src 'self' 'unsafe-inline' https://cdn.jsdelivr.net; "
        "img-src 'self' data: https://fastapi.tiangolo.com; "
        "connect-src 'self'; "
        "frame-ancestors 'none'; "
        "form-action 'self'; "
        "base-uri 'self'"
    )

    def __init__(self, app, enabled: bool = True) -> None:
        super().__init__(app)
        self.enabled = enabled and is_security_headers_enabled()
        if not self.enabled:
            logger.info("SecurityHeadersMiddleware is DISABLED via SECURITY_HEADERS_ENABLED=false")

    async def dispatch(self, request: Request, call_next):
        response = await call_next(request)

        if not self.enabled:
            return response

        response.headers["X-Content-Type-Options"] = "nosniff"
        response.headers["X-Frame-Options"] = "DENY"
        response.headers["X-XSS-Protection"] = "1; mode=block"
        response.headers["Referrer-Policy"] = "strict-origin-when-cross-origin"
        response.headers["Permissions-Policy"] = "camera=(), microphone=(), geolocation=()"
        response.headers["Content-Security-Policy"] = self.CSP_POLICY

        # HSTS only over HTTPS (directly or behind a proxy)
        forwarded_proto = request.headers.get("X-Forwarded-Proto", "")
        if forwarded_proto == "https" or request.url.scheme == "https":
            response.headers["Strict-Transport-Security"] = "max-age=31536000; includeSubDomains"

        return response
