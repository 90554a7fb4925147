"""Insight API - FastAPI Application Entry Point."""

import logging
import os
import time
import uuid

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from insight_api import __version__
from insight_api.config.env import get_cors_origins
from insight_api.context import org_id_var, request_id_var, user_id_var
from insight_api.routers import dashboard, events, health, kpis, orgs, projects
from insight_api.schemas import ProblemDetail
from insight_api.tenancy.errors import InsightError, StorageFailure, Unauthenticated
from insight_api.utils import configure_json_logging

app = FastAPI(
    title="Insight API",
    description="Multi-tenant product analytics: organizations, projects, events and KPI snapshots.",
    version=__version__,
)

# Set INSIGHT_JSON_LOGS=false to disable (defaults to true)
if os.getenv("INSIGHT_JSON_LOGS", "true").lower() != "false":
    configure_json_logging(log_level=os.getenv("LOG_LEVEL", "INFO"))

logger = logging.getLogger(__name__)

# Credentials mode cannot use wildcard origins
app.add_middleware(
    CORSMiddleware,
    allow_origins=get_cors_origins(),
    allow_credentials=True,
    allow_methods=["GET", "POST", "PUT", "DELETE", "OPTIONS"],
    allow_headers=["Authorization", "Content-Type", "X-Org-Id", "X-Request-ID"],
    expose_headers=["X-Request-ID"],
)


# ============================================================================
# HTTP Request Completion Logging Middleware
# ============================================================================


@app.middleware("http")
async def http_completion_logging_middleware(request: Request, call_next):
    """Log every HTTP request completion.

    - Every request emits "http.request.completed"
    - Fields: method, path, status_code, duration_ms
    - request_id/org_id/user_id come from contextvars via JSONFormatter
    - Per-request contextvars are cleared before and after
    """
    org_id_var.set("")
    user_id_var.set("")

    start_time = time.perf_counter()
    status_code = 500

    try:
        response = await call_next(request)
        status_code = response.status_code
        return response
    finally:
        duration_ms = (time.perf_counter() - start_time) * 1000
        logger.info(
            "http.request.completed",
            extra={
                "method": request.method,
                "path": request.url.path,
                "status_code": status_code,
                "duration_ms": round(duration_ms, 2),
            },
        )
        org_id_var.set("")
        user_id_var.set("")


# ============================================================================
# Request ID Middleware (MUST BE OUTERMOST)
# ============================================================================


@app.middleware("http")
async def request_id_middleware(request: Request, call_next):
    """Accept or generate X-Request-ID and echo it on the response.

    Registered last so it is the outermost middleware and request_id is set
    before inner middlewares run.
    """
    request_id = request.headers.get("X-Request-ID") or str(uuid.uuid4())
    request_id_var.set(request_id)

    response = await call_next(request)
    response.headers["X-Request-ID"] = request_id
    return response


# ============================================================================
# RFC 9457 Global Exception Handlers
# ============================================================================


def _instance() -> str:
    # Opaque instance using request_id from context
    request_id = request_id_var.get()
    return f"urn:insight:trace:{request_id}" if request_id else f"urn:insight:trace:{uuid.uuid4()}"


def _problem_response(status_code: int, problem: ProblemDetail, headers: dict | None = None) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content=problem.model_dump(exclude_none=True),
        media_type="application/problem+json",
        headers=headers,
    )


@app.exception_handler(InsightError)
async def insight_error_handler(request: Request, exc: InsightError) -> JSONResponse:
    """Map the tenancy error taxonomy to problem+json.

    StorageFailure details are internal and never reach the client.
    """
    if isinstance(exc, StorageFailure):
        logger.error(
            "http.storage_failure",
            extra={"path": request.url.path, "error": exc.detail},
        )
        detail = "An unexpected error occurred. Please try again later."
    else:
        detail = exc.detail

    problem = ProblemDetail(
        type=f"https://insight.dev/problems/{exc.problem_type}",
        title=exc.title,
        status=exc.status_code,
        detail=detail,
        instance=_instance(),
    )

    headers = {}
    if isinstance(exc, Unauthenticated):
        headers["WWW-Authenticate"] = "Bearer"

    return _problem_response(exc.status_code, problem, headers)


@app.exception_handler(StarletteHTTPException)
async def http_exception_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    """Handle HTTP exceptions (404 on unknown routes, 405, ...) as problem+json."""
    problem = ProblemDetail(
        type=f"https://insight.dev/problems/http-{exc.status_code}",
        title=_get_title_for_status(exc.status_code),
        status=exc.status_code,
        detail=str(exc.detail) if exc.detail is not None else _get_title_for_status(exc.status_code),
        instance=_instance(),
    )
    return _problem_response(exc.status_code, problem, getattr(exc, "headers", None))


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    """Malformed input is a 400 Bad Request problem."""
    errors = exc.errors()
    first_error = errors[0] if errors else {}
    field = ".".join(str(loc) for loc in first_error.get("loc", []))
    msg = first_error.get("msg", "Validation error")

    problem = ProblemDetail(
        type="https://insight.dev/problems/invalid-input",
        title="Bad Request",
        status=status.HTTP_400_BAD_REQUEST,
        detail=f"Invalid field '{field}': {msg}",
        instance=_instance(),
    )
    return _problem_response(status.HTTP_400_BAD_REQUEST, problem)


@app.exception_handler(Exception)
async def general_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Uncaught exceptions become a generic 500."""
    logger.error(f"Unhandled exception: {type(exc).__name__}", exc_info=True)

    problem = ProblemDetail(
        type="https://insight.dev/problems/internal-error",
        title="Internal Server Error",
        status=status.HTTP_500_INTERNAL_SERVER_ERROR,
        detail="An unexpected error occurred. Please try again later.",
        instance=_instance(),
    )
    return _problem_response(status.HTTP_500_INTERNAL_SERVER_ERROR, problem)


def _get_title_for_status(status_code: int) -> str:
    """Get human-readable title for HTTP status code."""
    titles = {
        400: "Bad Request",
        401: "Unauthorized",
        403: "Forbidden",
        404: "Not Found",
        405: "Method Not Allowed",
        409: "Conflict",
        500: "Internal Server Error",
        503: "Service Unavailable",
    }
    return titles.get(status_code, f"HTTP {status_code}")


# Include routers
app.include_router(health.router, tags=["health"])
app.include_router(orgs.router)
app.include_router(projects.router)
app.include_router(events.router)
app.include_router(kpis.router)
app.include_router(dashboard.router)
