from __future__ import annotations

from contextlib import asynccontextmanager
import logging
from typing import Callable, Optional

from fastapi import FastAPI, Request, Response
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from slowapi.errors import RateLimitExceeded

from api.observability import (
    configure_logging,
    monotonic_ms,
    new_request_id,
    request_log_fields,
    reset_request_id,
    set_request_id,
)
from api.ratelimit import limiter, limiter_enabled, rate_limit_exceeded_handler
from api.routes import router
from core.config import Settings, get_settings
from core.db import Database
from core.errors import (
    CoachError,
    ConflictError,
    FormatError,
    GenerationError,
    NotFoundError,
    PrerequisiteError,
    SchemaViolation,
)
from core.services.generator import ChatCompletionGenerator, PlanGenerator
from core.services.preview_cache import PreviewCache

logger = logging.getLogger(__name__)

# Most specific first; OrderError is covered by SchemaViolation.
ERROR_STATUS: list[tuple[type[CoachError], int]] = [
    (FormatError, 422),
    (SchemaViolation, 502),
    (PrerequisiteError, 409),
    (ConflictError, 409),
    (NotFoundError, 404),
    (GenerationError, 502),
]


def status_for(exc: CoachError) -> int:
    for error_type, status_code in ERROR_STATUS:
        if isinstance(exc, error_type):
            return status_code
    return 400


def coach_error_handler(request: Request, exc: CoachError) -> JSONResponse:
    status_code = status_for(exc)
    log = logger.warning if status_code >= 500 else logger.info
    log("coach_error", extra={"code": exc.kind, "path": request.url.path, "status_code": status_code})
    return JSONResponse(status_code=status_code, content={"detail": exc.to_dict()})


def create_app(
    settings: Optional[Settings] = None,
    database: Optional[Database] = None,
    generator: Optional[PlanGenerator] = None,
    preview_cache: Optional[PreviewCache] = None,
) -> FastAPI:
    settings = settings or get_settings()
    configure_logging(settings.log_level)
    limiter.enabled = limiter_enabled(settings)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        app.state.settings = settings
        app.state.db = database or Database(settings.database_url)
        app.state.preview_cache = preview_cache or PreviewCache.from_settings(settings)
        app.state.generator = generator or ChatCompletionGenerator.from_settings(settings)
        logger.info("app_started", extra={"app_env": settings.app_env, "cache_backend": app.state.preview_cache.backend})
        try:
            yield
        finally:
            if generator is None:
                app.state.generator.close()
            if preview_cache is None:
                app.state.preview_cache.close()
            if database is None:
                app.state.db.dispose()

    app = FastAPI(title="GoFast Coach API", version="1.0.0", lifespan=lifespan)
    app.state.limiter = limiter
    app.add_exception_handler(RateLimitExceeded, rate_limit_exceeded_handler)
    app.add_exception_handler(CoachError, coach_error_handler)
    app.include_router(router)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.middleware("http")
    async def request_context_and_logging(request: Request, call_next: Callable) -> Response:
        header_name = settings.request_id_header_name or "X-Request-ID"
        request_id = (request.headers.get(header_name) or "").strip() or new_request_id()
        token = set_request_id(request_id)
        started_ms = monotonic_ms()
        client_ip = getattr(request.client, "host", None)
        try:
            response = await call_next(request)
        except Exception:
            duration_ms = monotonic_ms() - started_ms
            logger.exception(
                "http_request_error",
                extra=request_log_fields(
                    method=request.method,
                    path=request.url.path,
                    status_code=500,
                    duration_ms=duration_ms,
                    client_ip=client_ip,
                ),
            )
            raise
        else:
            response.headers[header_name] = request_id
            duration_ms = monotonic_ms() - started_ms
            logger.info(
                "http_request",
                extra=request_log_fields(
                    method=request.method,
                    path=request.url.path,
                    status_code=response.status_code,
                    duration_ms=duration_ms,
                    client_ip=client_ip,
                ),
            )
            return response
        finally:
            reset_request_id(token)

    return app


app = create_app()
