"""
api/main.py -- FastAPI application entry point for TaskGuard.

Run with:  python main.py serve
           uvicorn asgi:app --reload

Middleware stack (outermost to innermost):
  1. log_requests      -- one access-log line per request, with latency
  2. resolve_caller    -- identity resolution; sets request.state.identity
  3. CORSMiddleware    -- adds CORS headers for allowed browser origins

Lifespan opens the user and task stores on app.state at startup and closes
them on shutdown.
"""

from __future__ import annotations

import logging
import time
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.concurrency import run_in_threadpool
from starlette.exceptions import HTTPException

from api.models import ErrorResponse, HealthResponse
from api.routes.auth import router as auth_router
from api.routes.tasks import router as tasks_router
from auth.dependencies import get_current_identity, get_identity, resolve_identity
from auth.store import UserStore
from core.config import get_settings
from core.errors import AuthenticationFailure, AuthorizationDenied, NotFound, ValidationConflict
from tasks.store import TaskStore

VERSION = "1.0.0"

# ---------------------------------------------------------------------------
# Logging
# ---------------------------------------------------------------------------

logging.basicConfig(
    level=logging.DEBUG if get_settings().debug else logging.INFO,
    format="%(asctime)s %(levelname)-5s %(name)s %(message)s",
    datefmt="%Y-%m-%d %H:%M:%S",
)
logger = logging.getLogger("taskguard.api")

# ---------------------------------------------------------------------------
# Lifespan
# ---------------------------------------------------------------------------


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """Open both stores for the lifetime of the server.

    Both stores share one database; the user store is opened first because
    the tasks table carries foreign keys to users.
    """
    logger.info("TaskGuard API starting up")
    app.state.user_store = UserStore()
    app.state.task_store = TaskStore()
    logger.info("Stores initialized")

    yield

    app.state.task_store.close()
    app.state.user_store.close()
    logger.info("TaskGuard API shutdown complete")


# ---------------------------------------------------------------------------
# App instantiation
# ---------------------------------------------------------------------------

app = FastAPI(
    title="TaskGuard API",
    description="Multi-tenant task tracking with role-based and ownership-based authorization.",
    version=VERSION,
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=get_settings().cors_origins,
    allow_methods=["GET", "POST", "PUT", "PATCH", "DELETE"],
    allow_headers=["Content-Type", "Authorization"],
    max_age=3600,
)

# ---------------------------------------------------------------------------
# Identity resolution middleware
#
# Runs once per request before any route. It never rejects a request: a bad
# or missing bearer token leaves the caller anonymous and the service-layer
# guards decide what an anonymous caller may do. The user lookup is blocking
# SQL, so it runs in the threadpool rather than on the event loop.
# ---------------------------------------------------------------------------


@app.middleware("http")
async def resolve_caller(request: Request, call_next):
    request.state.identity = await run_in_threadpool(
        resolve_identity,
        request.headers.get("Authorization"),
        request.app.state.user_store,
        getattr(request.state, "identity", None),
    )
    return await call_next(request)


# ---------------------------------------------------------------------------
# Request logging middleware
#
# Registered after resolve_caller, so it wraps it and the latency it reports
# includes identity resolution.
# ---------------------------------------------------------------------------


@app.middleware("http")
async def log_requests(request: Request, call_next):
    start = time.perf_counter()
    response = await call_next(request)
    ms = (time.perf_counter() - start) * 1000
    logger.info(
        "%s %s %d %.1fms %s",
        request.method,
        request.url.path,
        response.status_code,
        ms,
        request.client.host if request.client else "unknown",
    )
    return response


# ---------------------------------------------------------------------------
# Router registration
# ---------------------------------------------------------------------------

app.include_router(auth_router, prefix="/api", tags=["Auth"])
app.include_router(tasks_router, prefix="/api", tags=["Tasks"])


# ---------------------------------------------------------------------------
# Exception handlers
#
# Every handler returns the same {"error": "..."} envelope so API clients can
# parse errors without choosing a schema by status code.
# ---------------------------------------------------------------------------


def _error(status_code: int, message: str, detail: str | None = None) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content=ErrorResponse(error=message, detail=detail).model_dump(exclude_none=True),
    )


@app.exception_handler(AuthenticationFailure)
async def authentication_failure_handler(request: Request, exc: AuthenticationFailure) -> JSONResponse:
    response = _error(401, str(exc))
    response.headers["Cache-Control"] = "no-store"
    return response


@app.exception_handler(AuthorizationDenied)
async def authorization_denied_handler(request: Request, exc: AuthorizationDenied) -> JSONResponse:
    """403 with the denial reason. Covers AssignmentNotPermitted too."""
    return _error(403, str(exc))


@app.exception_handler(NotFound)
async def not_found_handler(request: Request, exc: NotFound) -> JSONResponse:
    """A missing task is reported like a denial: 403 with the reason."""
    return _error(403, f"Access denied: {exc}")


@app.exception_handler(ValidationConflict)
async def validation_conflict_handler(request: Request, exc: ValidationConflict) -> JSONResponse:
    return _error(400, str(exc))


def _requires_identity(request: Request) -> bool:
    route = request.scope.get("route")
    return any(d.dependency is get_current_identity for d in getattr(route, "dependencies", ()))


@app.exception_handler(RequestValidationError)
async def validation_error_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    """Return 422 when request body or path params fail validation.

    An anonymous caller on a route that needs an identity gets the 403 it
    would have got with a valid body. Dependencies already run before body
    validation; this covers a body that is not parseable JSON at all, which
    FastAPI rejects before any dependency runs.
    """
    if _requires_identity(request) and not get_identity(request).authenticated:
        return _error(403, "Access denied: authentication required")
    return _error(422, "Request validation failed", detail=str(exc.errors()))


@app.exception_handler(HTTPException)
async def http_exception_handler(request: Request, exc: HTTPException) -> JSONResponse:
    return _error(exc.status_code, str(exc.detail))


@app.exception_handler(Exception)
async def generic_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Catch-all for unexpected server errors.

    The traceback goes to the log only, never to the response body.
    """
    logger.exception("Unhandled exception on %s %s", request.method, request.url.path)
    return _error(500, "An unexpected error occurred")


# ---------------------------------------------------------------------------
# Health endpoint
# ---------------------------------------------------------------------------


@app.get("/api/health", tags=["Health"])
async def health() -> HealthResponse:
    """Return API liveness and current version."""
    return HealthResponse(version=VERSION)
