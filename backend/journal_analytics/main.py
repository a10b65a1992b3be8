"""FastAPI application entrypoint."""

from __future__ import annotations

import logging
from datetime import datetime

from fastapi import FastAPI, Request, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from opentelemetry import trace
from opentelemetry.baggage import get_baggage
from sqlalchemy.ext.asyncio import AsyncEngine

from journal_analytics.api.routes import api_router
from journal_analytics.config import AnalyticsSettings, get_settings
from journal_analytics.core.logging import setup_logging
from journal_analytics.core.telemetry import setup_telemetry
from journal_analytics.db.init import init_database
from journal_analytics.db.session import create_engine, create_session_factory
from journal_analytics.services.analytics import AnalyticsService
from journal_analytics.services.cache import (
    CacheBackend,
    InMemoryCacheBackend,
    RedisCacheBackend,
    ResultCache,
)
from journal_analytics.services.errors import InvalidInputError, LedgerUnavailableError
from journal_analytics.services.ledger import (
    HttpLedgerStore,
    InMemoryLedgerStore,
    LedgerStore,
    SqlLedgerStore,
)

logger = logging.getLogger(__name__)


def build_ledger(settings: AnalyticsSettings, engine: AsyncEngine | None = None) -> LedgerStore:
    if settings.ledger_backend == "sql":
        if engine is None:
            raise ValueError("the sql ledger backend needs a database engine")
        return SqlLedgerStore(create_session_factory(engine))
    if settings.ledger_backend == "memory":
        return InMemoryLedgerStore()
    return HttpLedgerStore.from_settings(settings)


def build_cache(settings: AnalyticsSettings) -> ResultCache:
    backend: CacheBackend
    if settings.cache_backend == "redis":
        backend = RedisCacheBackend.from_url(settings.redis_url)
    else:
        backend = InMemoryCacheBackend()
    return ResultCache(
        backend,
        prefix=settings.cache_key_prefix,
        default_ttl=settings.metrics_cache_ttl_seconds,
    )


async def _invalid_input_handler(request: Request, exc: InvalidInputError) -> JSONResponse:
    return JSONResponse(status_code=status.HTTP_422_UNPROCESSABLE_ENTITY, content={"detail": str(exc)})


async def _ledger_unavailable_handler(request: Request, exc: LedgerUnavailableError) -> JSONResponse:
    logger.error("Ledger unavailable while serving %s: %s", request.url.path, exc)
    return JSONResponse(
        status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
        content={"detail": "Trade ledger is temporarily unavailable"},
    )


def create_app(
    settings: AnalyticsSettings | None = None,
    *,
    service: AnalyticsService | None = None,
) -> FastAPI:
    """Build the application; ``service`` replaces the settings-driven wiring when given."""

    settings = settings or get_settings()
    app = FastAPI(title=settings.app_name, version="0.1.0")

    engine: AsyncEngine | None = None
    if service is None:
        if settings.ledger_backend == "sql":
            engine = create_engine(settings)
        service = AnalyticsService(build_ledger(settings, engine), build_cache(settings), settings)
    app.state.settings = settings
    app.state.analytics_service = service
    setup_telemetry(app, settings, engine=engine)

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_allow_origins,
        allow_origin_regex=r"^https?://(localhost|127\.0\.0\.1)(:\d+)?$",
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
        expose_headers=["traceparent", "tracestate", "baggage", "x-trace-id", "x-request-id"],
    )
    app.add_exception_handler(InvalidInputError, _invalid_input_handler)
    app.add_exception_handler(LedgerUnavailableError, _ledger_unavailable_handler)

    @app.on_event("startup")
    async def startup() -> None:
        logger.info("Starting %s with %s", settings.app_name, settings.dict_for_logging())
        if engine is not None:
            await init_database(engine)

    @app.on_event("shutdown")
    async def shutdown() -> None:
        backend = service.cache.backend
        if isinstance(backend, RedisCacheBackend):
            await backend.close()
        if engine is not None:
            await engine.dispose()

    @app.get("/health", tags=["health"])
    async def health() -> dict[str, str]:
        """Return service readiness metadata."""

        return {
            "status": "ok",
            "timestamp": datetime.now().isoformat(),
            "timezone": settings.timezone,
            "ledger": settings.ledger_backend,
            "cache": settings.cache_backend,
        }

    # Attach end-user attributes from W3C Baggage to the active server span
    @app.middleware("http")
    async def _attach_user_baggage(request: Request, call_next):
        span = trace.get_current_span()
        for key in ("enduser.id", "enduser.role"):
            value = get_baggage(key)
            if value:
                span.set_attribute(key, str(value))
        user_id = request.headers.get("x-user-id")
        if user_id:
            span.set_attribute("enduser.id", user_id)
        return await call_next(request)

    app.include_router(api_router, prefix=settings.api_prefix)
    return app


setup_logging(get_settings().log_level)
app = create_app()

__all__ = ["app", "create_app", "build_ledger", "build_cache"]
