"""
Startup Dashboard - Backend API

A FastAPI backend where startup teams record quarterly reports in
versioned sections, and venture-capital reviewers and administrators read
them through per-field visibility masks.
"""
import os
import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from pythonjsonlogger import jsonlogger
from slowapi import _rate_limit_exceeded_handler
from slowapi.errors import RateLimitExceeded
from slowapi.middleware import SlowAPIMiddleware
from starlette.middleware.gzip import GZipMiddleware

from config import get_settings
from constants import __version__, APP_NAME

settings = get_settings()

logger = logging.getLogger(__name__)


def configure_logging(json_output: bool) -> None:
    """JSON lines at INFO for production, readable text at DEBUG otherwise.

    LOG_LEVEL overrides the level in both modes.
    """
    if json_output:
        handler = logging.StreamHandler()
        handler.setFormatter(jsonlogger.JsonFormatter(
            '%(asctime)s %(name)s %(levelname)s %(message)s',
            rename_fields={"asctime": "timestamp", "levelname": "level"}
        ))
        logging.root.handlers = [handler]
        logging.root.setLevel(os.getenv("LOG_LEVEL", "INFO"))
        logger.info("JSON logging enabled")
    else:
        logging.basicConfig(format="%(asctime)s %(levelname)-8s %(name)s: %(message)s")
        logging.root.setLevel(os.getenv("LOG_LEVEL", "DEBUG"))


configure_logging(settings.production or os.getenv("JSON_LOGGING", "false").lower() == "true")

from database import SessionLocal, init_db  # noqa: E402
from auth import auth_manager  # noqa: E402
from errors import DashboardError  # noqa: E402
from middleware import (  # noqa: E402
    MetricsMiddleware, RequestLogMiddleware, SecurityHeadersMiddleware,
)
from rate_limit import limiter  # noqa: E402
from scheduler import shutdown_scheduler, start_scheduler  # noqa: E402
from routers import (  # noqa: E402
    auth as auth_router,
    company as company_router,
    health as health_router,
    manage as manage_router,
    users as users_router,
)


# ============== FastAPI App ==============

@asynccontextmanager
async def lifespan(app: FastAPI):
    logger.info("%s backend starting (version %s)", APP_NAME, __version__)
    logger.info("Production mode: %s", settings.production)

    init_db()
    db = SessionLocal()
    try:
        auth_manager.ensure_default_admin(db)
    finally:
        db.close()

    start_scheduler()
    yield

    logger.info("%s backend shutting down", APP_NAME)
    shutdown_scheduler()


app = FastAPI(
    title="Startup Dashboard API",
    description="Quarterly startup reporting with versioned, access-masked sections",
    version=__version__,
    lifespan=lifespan,
    docs_url=None if settings.production else "/api/docs",
    redoc_url=None,
    openapi_url=None if settings.production else "/api/openapi.json",
)

app.add_middleware(GZipMiddleware, minimum_size=1000)

app.state.limiter = limiter
app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)
app.add_middleware(SlowAPIMiddleware)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Configurable via SECURITY_HEADERS_ENABLED
app.add_middleware(SecurityHeadersMiddleware)
# Zero overhead when METRICS_ENABLED=false
app.add_middleware(MetricsMiddleware)
app.add_middleware(RequestLogMiddleware)


# ============== Error Handlers ==============

@app.exception_handler(DashboardError)
async def dashboard_error_handler(request: Request, exc: DashboardError):
    return JSONResponse(status_code=exc.status_code, content=exc.to_dict())


@app.exception_handler(RequestValidationError)
async def validation_error_handler(request: Request, exc: RequestValidationError):
    details = [
        {"field": ".".join(str(p) for p in err["loc"]), "message": err["msg"]}
        for err in exc.errors()
    ]
    return JSONResponse(
        status_code=400,
        content={"error": "invalid request", "kind": "invalid_input", "details": details},
    )


@app.exception_handler(Exception)
async def unhandled_error_handler(request: Request, exc: Exception):
    logger.exception("Unhandled error on %s %s", request.method, request.url.path)
    return JSONResponse(status_code=500, content={"error": "internal server error", "kind": "internal"})


app.include_router(auth_router.router)  # Signup, login, password recovery
app.include_router(company_router.router)  # Companies, quarters, sections, metrics
app.include_router(manage_router.router)  # Admin / moderator operations
app.include_router(users_router.router)  # Own account
app.include_router(health_router.router)  # Ping, healthcheck, version, metrics


# ============== Start Server ==============
if __name__ == "__main__":
    import uvicorn
    logger.info("Listening on %s:%s", settings.host, settings.port)
    uvicorn.run(app, host=settings.host, port=settings.port, reload=False)
