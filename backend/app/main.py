"""
FanForge Review API - FastAPI Application Entry Point.

Creates the FastAPI application for the submission review backend:

- Lifespan: logging setup, MongoDB (required) and Redis (optional) connections
- CORS and request timing middleware
- Exception handlers rendering workflow errors as ``{"error", "status_code"}``
- /health (liveness) and /ready (MongoDB and Redis reachability)
- Review endpoints under /api/v1/submissions

Usage:
    uvicorn app.main:app --host 0.0.0.0 --port 8000 --reload
"""

import logging
import time

from contextlib import asynccontextmanager
from datetime import UTC, datetime
from typing import Any

import uvicorn

from fastapi import FastAPI, HTTPException, Request, Response, status
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from app import __version__
from app.api.v1 import api_router
from app.config import get_settings
from app.core.database import close_db, get_db_client, init_db
from app.core.exceptions import ReviewWorkflowError
from app.core.redis_client import close_redis, get_redis_client, init_redis
from app.utils.logger import setup_logging


logger = logging.getLogger(__name__)

HTTP_ERROR_THRESHOLD = 400


# =============================================================================
# Application Lifespan Management
# =============================================================================


@asynccontextmanager
async def lifespan(_app: FastAPI):
    """
    Startup: configure logging, connect MongoDB (fatal on failure) and Redis
    (caching disabled on failure). Shutdown: close both.
    """
    settings = get_settings()
    setup_logging(log_level=settings.log_level, json_logs=settings.use_json_logs)

    logger.info(
        "%s starting (env=%s, story_network=%s)",
        settings.app_name,
        settings.app_env,
        settings.story_network,
    )

    try:
        await init_db(settings)
    except Exception as e:
        logger.exception("Failed to initialize MongoDB")
        raise RuntimeError(f"MongoDB initialization failed: {e}") from e

    try:
        await init_redis(settings)
    except Exception:
        logger.exception("Failed to initialize Redis")
        logger.warning("Continuing without Redis; role and user caches are disabled")

    logger.info("%s ready to accept requests", settings.app_name)

    yield

    await close_redis()
    await close_db()
    logger.info("%s shutdown complete", settings.app_name)


# =============================================================================
# FastAPI Application Instance
# =============================================================================

_settings = get_settings()

app = FastAPI(
    title="FanForge Review API",
    description=(
        "Submission review workflow for FanForge: brand reviewers approve or reject fan "
        "submissions, and approved work is registered on Story Protocol as derivative IP."
    ),
    version=__version__,
    docs_url="/docs",
    redoc_url="/redoc",
    openapi_url="/openapi.json",
    lifespan=lifespan,
    debug=_settings.debug,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=_settings.cors_origins,
    allow_credentials=True,
    allow_methods=["GET", "POST", "DELETE", "OPTIONS"],
    allow_headers=["*"],
    expose_headers=["X-Request-ID", "X-Process-Time"],
)


@app.middleware("http")
async def request_logging_middleware(request: Request, call_next) -> Response:
    """Time each request and tag the response with X-Request-ID / X-Process-Time."""
    request_id = f"{time.time_ns()}"
    start_time = time.perf_counter()

    response = await call_next(request)

    process_time_ms = round((time.perf_counter() - start_time) * 1000, 2)
    response.headers["X-Process-Time"] = f"{process_time_ms}ms"
    response.headers["X-Request-ID"] = request_id

    logger.log(
        logging.DEBUG if response.status_code < HTTP_ERROR_THRESHOLD else logging.WARNING,
        "%s %s -> %s in %sms [Request-ID: %s]",
        request.method,
        request.url.path,
        response.status_code,
        process_time_ms,
        request_id,
    )
    return response


# =============================================================================
# Exception Handlers
# =============================================================================


@app.exception_handler(ReviewWorkflowError)
async def review_workflow_error_handler(
    _request: Request, exc: ReviewWorkflowError
) -> JSONResponse:
    if exc.status_code >= status.HTTP_500_INTERNAL_SERVER_ERROR:
        logger.error("Workflow error %s: %s %s", exc.status_code, exc.message, exc.context)
    return JSONResponse(status_code=exc.status_code, content=exc.to_dict())


@app.exception_handler(RequestValidationError)
async def validation_error_handler(_request: Request, exc: RequestValidationError) -> JSONResponse:
    details = [
        {"loc": list(error.get("loc", ())), "msg": error.get("msg"), "type": error.get("type")}
        for error in exc.errors()
    ]
    return JSONResponse(
        status_code=status.HTTP_400_BAD_REQUEST,
        content={
            "error": "Validation failed",
            "status_code": status.HTTP_400_BAD_REQUEST,
            "details": details,
        },
    )


@app.exception_handler(HTTPException)
async def http_exception_handler(_request: Request, exc: HTTPException) -> JSONResponse:
    return JSONResponse(
        status_code=exc.status_code,
        content={"error": exc.detail, "status_code": exc.status_code},
        headers=exc.headers,
    )


@app.exception_handler(Exception)
async def unhandled_exception_handler(request: Request, _exc: Exception) -> JSONResponse:
    logger.exception("Unhandled error on %s %s", request.method, request.url.path)
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={"error": "Internal server error", "status_code": 500},
    )


# =============================================================================
# Routers and Core Endpoints
# =============================================================================

app.include_router(api_router, prefix="/api/v1")


@app.get("/health", tags=["health"])
async def health_check() -> dict[str, Any]:
    """Liveness probe; does not touch dependencies."""
    return {
        "status": "healthy",
        "timestamp": datetime.now(UTC).isoformat(),
        "service": "FanForge Review API",
    }


@app.get("/ready", tags=["health"])
async def readiness_check() -> JSONResponse:
    """
    Readiness probe.

    MongoDB is required; Redis is reported but only degrades the service.
    """
    try:
        mongodb_ok = await get_db_client().ping()
    except RuntimeError:
        mongodb_ok = False

    redis_client = get_redis_client()
    redis_ok = await redis_client.ping() if redis_client else False

    return JSONResponse(
        status_code=status.HTTP_200_OK if mongodb_ok else status.HTTP_503_SERVICE_UNAVAILABLE,
        content={
            "status": "ready" if mongodb_ok else "unavailable",
            "mongodb": mongodb_ok,
            "redis": redis_ok,
        },
    )


if __name__ == "__main__":
    uvicorn.run(
        "app.main:app",
        host=_settings.host,
        port=_settings.port,
        reload=_settings.debug,
        log_level=_settings.log_level,
    )
