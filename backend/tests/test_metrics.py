"""
Tests for the metrics module and MetricsMiddleware.

CI-safe: No external dependencies required.
"""

import importlib
import os
import sys
from unittest.mock import patch, MagicMock

import pytest

sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

def _reload_metrics(env_overrides=None):
    """Reload the metrics module with optional env var overrides."""
    env = env_overrides or {}
    with patch.dict(os.environ, env, clear=False):
        import metrics
        importlib.reload(metrics)
        return metrics


# ---------------------------------------------------------------------------
# Unit tests: metrics module
# ---------------------------------------------------------------------------

class TestMetricsModule:
    """Tests for backend/metrics.py"""

    def test_metrics_disabled_by_default(self):
        m = _reload_metrics({"METRICS_ENABLED": "false"})
        assert m.METRICS_ENABLED is False

    def test_noop_metric_labels(self):
        """NoOp metrics should silently accept any labels."""
        m = _reload_metrics({"METRICS_ENABLED": "false"})
        m.http_requests_total.labels(method="GET", path="/test", status="200").inc()
        m.http_request_duration.labels(method="GET", path="/test").observe(0.5)
        m.cache_operations.labels(namespace="company", result="hit").inc()
        m.section_versions_total.labels(section="finance").inc()

    def test_track_request(self):
        m = _reload_metrics({"METRICS_ENABLED": "false"})
        initial = m._internal_counters["http_requests"]
        m.track_request("GET", "/api/company/{id}", 200, 0.05)
        assert m._internal_counters["http_requests"] == initial + 1

    def test_track_cache_hit_and_miss(self):
        m = _reload_metrics({"METRICS_ENABLED": "false"})
        hits = m._internal_counters["cache_hits"]
        misses = m._internal_counters["cache_misses"]
        m.track_cache("quarter", hit=True)
        m.track_cache("quarter", hit=False)
        assert m._internal_counters["cache_hits"] == hits + 1
        assert m._internal_counters["cache_misses"] == misses + 1

    def test_track_version_write(self):
        m = _reload_metrics({"METRICS_ENABLED": "false"})
        initial = m._internal_counters["section_versions"]
        m.track_version_write("finance")
        assert m._internal_counters["section_versions"] == initial + 1

    def test_get_metrics_summary(self):
        m = _reload_metrics({"METRICS_ENABLED": "false"})
        m.track_request("POST", "/api/company/edit", 200, 0.1)
        summary = m.get_metrics_summary()
        assert summary["metrics_enabled"] is False
        assert summary["uptime_seconds"] >= 0
        assert summary["http_requests_total"] >= 1
        for key in ("cache_hits", "cache_misses", "section_versions_total"):
            assert key in summary


# ---------------------------------------------------------------------------
# MetricsMiddleware tests
# ---------------------------------------------------------------------------

class TestMetricsMiddleware:
    """Tests for middleware/metrics.py"""

    def test_normalize_path_with_id(self):
        """Numeric segments collapse to {id}."""
        from middleware.metrics import MetricsMiddleware
        mw = MetricsMiddleware(app=MagicMock())
        assert mw._normalize_path("/api/company/42") == "/api/company/{id}"
        assert mw._normalize_path("/api/manage/vc/7/approve") == "/api/manage/vc/{id}/approve"

    def test_normalize_path_no_match(self):
        from middleware.metrics import MetricsMiddleware
        mw = MetricsMiddleware(app=MagicMock())
        assert mw._normalize_path("/api/version") == "/api/version"
        assert mw._normalize_path("/api/company/list") == "/api/company/list"

    def test_skip_paths(self):
        """Probe and metrics paths are excluded from tracking."""
        from middleware.metrics import MetricsMiddleware
        mw = MetricsMiddleware(app=MagicMock())
        assert "/api/ping" in mw._SKIP_PATHS
        assert "/api/healthcheck" in mw._SKIP_PATHS
        assert "/api/metrics" in mw._SKIP_PATHS
