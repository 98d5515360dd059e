"""
Startup Dashboard - Health & Version Router

Endpoints:
- GET /api/ping - Liveness probe
- GET /api/healthcheck - Readiness probe (database round trip)
- GET /api/version - Application version info
- GET /api/metrics - Prometheus metrics, or a JSON summary when disabled
"""

import logging
from datetime import datetime
from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session
from starlette.responses import Response

from database import get_db
from constants import __version__, APP_NAME
from metrics import METRICS_ENABLED, CONTENT_TYPE_LATEST, generate_latest, get_metrics_summary

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api", tags=["Health"])


@router.get("/ping")
def ping():
    return {"msg": "pong"}


@router.get("/healthcheck")
def health_check(db: Session = Depends(get_db)):
    """Database ping; 503 when the store is unreachable."""
    try:
        db.execute(text("SELECT 1"))
    except SQLAlchemyError as e:
        logger.error("Health check failed: %s", e)
        return JSONResponse(status_code=503, content={"status": "unhealthy"})
    return {"status": "healthy", "version": __version__, "timestamp": datetime.utcnow().isoformat()}


@router.get("/version")
def get_version():
    """Return application version information."""
    return {"version": __version__, "name": APP_NAME}


@router.get("/metrics")
def metrics_endpoint():
    """Prometheus metrics endpoint.

    Returns Prometheus text format when METRICS_ENABLED=true, otherwise a
    JSON summary.
    """
    if METRICS_ENABLED:
        return Response(generate_latest(), media_type=CONTENT_TYPE_LATEST)
    return get_metrics_summary()
