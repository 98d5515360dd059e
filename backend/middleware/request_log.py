"""
Request logging middleware for the Startup Dashboard.

One record per request on the "http" logger with method, path, status,
client ip and latency in microseconds.
"""

import time
import logging

from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request

logger = logging.getLogger("http")


class RequestLogMiddleware(BaseHTTPMiddleware):

    async def dispatch(self, request: Request, call_next):
        start = time.perf_counter()
        response = await call_next(request)
        latency_us = int((time.perf_counter() - start) * 1_000_000)
        logger.info(
            "%s %s %s", request.method, request.url.path, response.status_code,
            extra={
                "type": "http",
                "method": request.method,
                "path": request.url.path,
                "status": response.status_code,
                "ip": request.client.host if request.client else "",
                "latency_us": latency_us,
            },
        )
        return response
