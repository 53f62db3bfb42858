"""
FastAPI Application: Entry Point

Document extraction API

Architecture:
  - All routes live under /api/ (extractions, auth, users)
  - Session auth: HS256 token in an HTTP-only cookie or a Bearer header
  - One DB session per request, committed by the dependency on success
  - Extraction runs after the response, on the configured task runner
  - Structured JSON error responses on all 4xx/5xx

Middleware stack (innermost → outermost):
  1. Request ID + logging: X-Request-ID on every response, latency log line
  2. CORS: restrict to configured origins
  3. Gzip: compress responses > 1 KB
  4. Trusted host: reject unexpected Host headers in production
"""

from __future__ import annotations

import logging
import time
import uuid
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.middleware.gzip import GZipMiddleware
from fastapi.middleware.trustedhost import TrustedHostMiddleware
from fastapi.responses import JSONResponse

from docextract.api.v1.auth import router as auth_router
from docextract.api.v1.extractions import router as extractions_router
from docextract.api.v1.users import router as users_router
from docextract.core.config import settings
from docextract.core.exceptions import DocExtractError
from docextract.db.session import AsyncSessionLocal, check_db_health, create_schema, get_system_db
from docextract.db.seed import ensure_superadmin
from docextract.schemas.extractions import ErrorDetail, ErrorResponse
from docextract.workers.runner import InProcessTaskRunner, build_task_runner

logger = logging.getLogger(__name__)

logging.basicConfig(
    level=logging.DEBUG if settings.debug else logging.INFO,
    format="%(asctime)s %(levelname)s %(name)s %(message)s",
)


# ---------------------------------------------------------------------------
# Application lifespan: startup / shutdown hooks
# ---------------------------------------------------------------------------

@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Startup: verify DB connectivity, create missing tables, seed the
    superadmin, build the task runner.
    Shutdown: wait for in-process extractions, dispose the pool.
    """
    logger.info(
        "Starting DocExtract | env=%s task_backend=%s pdf_backend=%s",
        settings.app_env, settings.task_backend, settings.pdf_backend,
    )

    database = await check_db_health()
    if database["status"] != "ok":
        logger.critical("Startup aborted, database unreachable | detail=%s", database.get("detail"))
        raise RuntimeError(f"Database unreachable at startup: {database.get('detail')}")

    await create_schema()
    async with get_system_db() as db:
        superadmin = await ensure_superadmin(db, settings)

    app.state.task_runner = build_task_runner(settings, AsyncSessionLocal)
    logger.info(
        "DocExtract ready | superadmin=%s runner=%s",
        superadmin.email if superadmin else "-", type(app.state.task_runner).__name__,
    )

    yield

    logger.info("Shutting down DocExtract")
    await app.state.task_runner.drain()
    from docextract.db.session import engine
    await engine.dispose()


# ---------------------------------------------------------------------------
# Error envelope helpers
# ---------------------------------------------------------------------------

_PROBE_PATHS = frozenset({"/health", "/ready"})


def _error_field(loc: tuple) -> str | None:
    """("body", "fileName") -> "fileName"; ("query", "status") -> "status"."""
    parts = [str(p) for p in loc if p not in ("body", "query", "path", "header", "cookie")]
    return ".".join(parts) or None


def _request_id(request: Request) -> str:
    return getattr(request.state, "request_id", None) or request.headers.get("X-Request-ID") or str(uuid.uuid4())


def _error_response(request: Request, status_code: int, body: ErrorResponse) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content=body.model_dump(mode="json", by_alias=True),
        headers={"X-Request-ID": body.request_id or _request_id(request)},
    )


# ---------------------------------------------------------------------------
# Application factory
# ---------------------------------------------------------------------------

def create_app() -> FastAPI:
    app = FastAPI(
        title="DocExtract",
        description=(
            "Document upload, text extraction and sharing API. "
            "Uploads are acknowledged immediately and processed in the background."
        ),
        version="1.0.0",
        docs_url="/api/docs" if not settings.is_production else None,
        redoc_url="/api/redoc" if not settings.is_production else None,
        openapi_url="/api/openapi.json" if not settings.is_production else None,
        lifespan=lifespan,
    )

    # ----------------------------------------------------------------
    # Middleware (applied in reverse order: last added = outermost)
    # ----------------------------------------------------------------

    if settings.is_production:
        app.add_middleware(TrustedHostMiddleware, allowed_hosts=["*.docextract.io"])

    app.add_middleware(GZipMiddleware, minimum_size=1024)

    allowed_origins = ["*"] if settings.app_env == "development" else ["https://app.docextract.io"]
    app.add_middleware(
        CORSMiddleware,
        allow_origins=allowed_origins,
        # Browsers reject credentialed requests against a wildcard origin
        allow_credentials=allowed_origins != ["*"],
        allow_methods=["GET", "POST", "PUT", "DELETE"],
        allow_headers=["Authorization", "Content-Type", "X-Request-ID"],
        expose_headers=["X-Request-ID"],
    )

    # ----------------------------------------------------------------
    # Request ID + structured logging middleware
    # ----------------------------------------------------------------

    @app.middleware("http")
    async def request_id_and_logging(request: Request, call_next):
        rid = request.headers.get("X-Request-ID") or str(uuid.uuid4())
        request.state.request_id = rid
        t0 = time.perf_counter()

        response = await call_next(request)
        response.headers["X-Request-ID"] = rid

        # Probes are polled constantly; keep them out of the INFO stream
        level = logging.DEBUG if request.url.path in _PROBE_PATHS else logging.INFO
        logger.log(
            level,
            "HTTP %s %s %d %.1fms | request_id=%s",
            request.method, request.url.path, response.status_code,
            (time.perf_counter() - t0) * 1000, rid,
        )
        return response

    # ----------------------------------------------------------------
    # Exception handlers: uniform structured error responses
    # ----------------------------------------------------------------

    @app.exception_handler(DocExtractError)
    async def domain_exception_handler(request: Request, exc: DocExtractError):
        details = []
        if exc.field:
            details.append(ErrorDetail(field=exc.field, message=exc.message, code=exc.error_code))
        body = ErrorResponse(
            error_code=exc.error_code,
            message=exc.message,
            details=details,
            request_id=_request_id(request),
        )
        return _error_response(request, exc.status_code, body)

    @app.exception_handler(RequestValidationError)
    async def validation_exception_handler(request: Request, exc: RequestValidationError):
        """Body, query and path validation failures all answer 400 with per-field details."""
        details = [
            ErrorDetail(field=_error_field(err["loc"]), message=err["msg"], code="VALIDATION_ERROR")
            for err in exc.errors()
        ]
        body = ErrorResponse(
            error_code="VALIDATION_ERROR",
            message=details[0].message if len(details) == 1 else "Invalid request.",
            details=details,
            request_id=_request_id(request),
        )
        return _error_response(request, status.HTTP_400_BAD_REQUEST, body)

    @app.exception_handler(Exception)
    async def generic_exception_handler(request: Request, exc: Exception):
        """Catch-all for unhandled exceptions: never expose stack traces."""
        request_id = _request_id(request)
        logger.exception(
            "Unhandled exception | path=%s request_id=%s",
            request.url.path, request_id,
        )
        body = ErrorResponse(
            error_code="INTERNAL_ERROR",
            message="An unexpected error occurred.",
            request_id=request_id,
        )
        return _error_response(request, status.HTTP_500_INTERNAL_SERVER_ERROR, body)

    # ----------------------------------------------------------------
    # Routers
    # ----------------------------------------------------------------

    app.include_router(extractions_router, prefix="/api")
    app.include_router(auth_router,        prefix="/api")
    app.include_router(users_router,       prefix="/api")

    # ----------------------------------------------------------------
    # Health & readiness endpoints (no auth: used by load balancer)
    # ----------------------------------------------------------------

    @app.get("/health", tags=["Operations"], summary="Liveness probe")
    async def health() -> dict:
        return {"status": "ok", "service": "docextract"}

    @app.get(
        "/ready",
        tags=["Operations"],
        summary="Readiness probe",
        description="503 while the database is unreachable. Also reports the task backend.",
    )
    async def readiness(request: Request) -> JSONResponse:
        database = await check_db_health()
        ready = database["status"] == "ok"

        runner = getattr(request.app.state, "task_runner", None)
        tasks = {"backend": settings.task_backend}
        if isinstance(runner, InProcessTaskRunner):
            tasks["pending"] = runner.pending

        return JSONResponse(
            status_code=status.HTTP_200_OK if ready else status.HTTP_503_SERVICE_UNAVAILABLE,
            content={"status": "ready" if ready else "not_ready", "database": database, "tasks": tasks},
        )

    return app


# ---------------------------------------------------------------------------
# Application instance (imported by uvicorn)
# ---------------------------------------------------------------------------

app = create_app()


# ---------------------------------------------------------------------------
# Local development entry point
# ---------------------------------------------------------------------------

if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "docextract.main:app",
        host="0.0.0.0",
        port=8000,
        reload=settings.app_env == "development",
        log_level="debug" if settings.debug else "info",
        access_log=True,
    )
