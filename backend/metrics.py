"""
Startup Dashboard - Prometheus Metrics Module

Application metrics backed by prometheus_client. All metrics default to OFF
(METRICS_ENABLED=false); disabled metrics are no-op stubs.

Usage:
    from metrics import track_request, track_cache, track_version_write
    track_request("GET", "/api/company/{id}", 200, 0.045)
    track_cache("company", hit=True)
    track_version_write("finance")
"""

import os
import time
import logging
from typing import Dict, Any

from prometheus_client import Counter, Histogram, generate_latest, CONTENT_TYPE_LATEST  # noqa: F401

logger = logging.getLogger(__name__)

METRICS_ENABLED = os.environ.get("METRICS_ENABLED", "false").lower() == "true"


class _NoOpMetric:
    """No-op metric that silently discards all operations."""

    def labels(self, *args, **kwargs):
        return self

    def inc(self, amount=1):
        pass

    def observe(self, amount):
        pass


if METRICS_ENABLED:
    logger.info("Prometheus metrics enabled")

    http_requests_total = Counter(
        "http_requests_total",
        "Total HTTP requests",
        ["method", "path", "status"]
    )
    http_request_duration = Histogram(
        "http_request_duration_seconds",
        "HTTP request duration in seconds",
        ["method", "path"],
        buckets=(0.005, 0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0)
    )
    cache_operations = Counter(
        "cache_operations_total",
        "Cache lookups",
        ["namespace", "result"]
    )
    section_versions_total = Counter(
        "section_versions_total",
        "Section versions appended",
        ["section"]
    )
else:
    http_requests_total = _NoOpMetric()
    http_request_duration = _NoOpMetric()
    cache_operations = _NoOpMetric()
    section_versions_total = _NoOpMetric()


# --- Convenience functions ---

_internal_counters: Dict[str, Any] = {
    "http_requests": 0,
    "cache_hits": 0,
    "cache_misses": 0,
    "section_versions": 0,
    "started_at": time.time(),
}


def track_request(method: str, path: str, status: int, duration: float) -> None:
    """Track an HTTP request."""
    http_requests_total.labels(method=method, path=path, status=str(status)).inc()
    http_request_duration.labels(method=method, path=path).observe(duration)
    _internal_counters["http_requests"] += 1


def track_cache(namespace: str, hit: bool = True) -> None:
    """Track a cache lookup."""
    cache_operations.labels(namespace=namespace, result="hit" if hit else "miss").inc()
    if hit:
        _internal_counters["cache_hits"] += 1
    else:
        _internal_counters["cache_misses"] += 1


def track_version_write(section: str) -> None:
    """Track a committed section version."""
    section_versions_total.labels(section=section).inc()
    _internal_counters["section_versions"] += 1


def get_metrics_summary() -> Dict[str, Any]:
    """Return a JSON summary of metrics."""
    uptime = time.time() - _internal_counters["started_at"]
    return {
        "metrics_enabled": METRICS_ENABLED,
        "uptime_seconds": round(uptime, 1),
        "http_requests_total": _internal_counters["http_requests"],
        "cache_hits": _internal_counters["cache_hits"],
        "cache_misses": _internal_counters["cache_misses"],
        "section_versions_total": _internal_counters["section_versions"],
    }
