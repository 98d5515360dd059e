"""Security, logging, and metrics middleware for the Startup Dashboard backend."""

from middleware.security import SecurityHeadersMiddleware  # noqa: F401
from middleware.metrics import MetricsMiddleware  # noqa: F401
from middleware.request_log import RequestLogMiddleware  # noqa: F401

__all__ = ["SecurityHeadersMiddleware", "MetricsMiddleware", "RequestLogMiddleware"]
