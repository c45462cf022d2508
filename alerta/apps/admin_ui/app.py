"""FastAPI application wiring for the admin UI."""

import asyncio
import logging
import time
from contextlib import asynccontextmanager
from datetime import timedelta
from typing import Optional

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from starlette.middleware.gzip import GZipMiddleware

from alerta.apps.admin_ui.background_tasks import (
    periodic_cache_maintenance,
    periodic_rate_limit_sweep,
)
from alerta.apps.admin_ui.middleware import EdgeMiddleware, RequestIDMiddleware
from alerta.apps.admin_ui.perf.cache.persistence import (
    FileCachePersister,
    RedisCachePersister,
)
from alerta.apps.admin_ui.perf.cache.query_cache import QueryCache
from alerta.apps.admin_ui.perf.limits.rate_limiter import FixedWindowRateLimiter
from alerta.apps.admin_ui.routers import (
    admin,
    assignments,
    auth,
    catalogs,
    dashboard,
    grades,
    incidents,
    permissions,
    profiles,
    records,
    settings as settings_router,
    students,
    system,
)
from alerta.apps.admin_ui.security import (
    RateLimitExceeded,
    _rate_limit_exceeded_handler,
    limiter,
)
from alerta.core.bootstrap import ensure_database_ready
from alerta.core.cache import CacheClient, CacheConfig
from alerta.core.error_handler import GracefulShutdown, setup_global_exception_handler
from alerta.core.logging import configure_logging
from alerta.core.settings import get_settings
from alerta.domain.catalogs import CatalogRegistry
from alerta.domain.errors import DomainError

configure_logging()
request_logger = logging.getLogger("alerta.requests")
logger = logging.getLogger(__name__)


def _toast_response(status_code: int, title: str, message: str) -> JSONResponse:
    return JSONResponse(
        {
            "detail": message,
            "toast": {"variant": "destructive", "title": title, "description": message},
        },
        status_code=status_code,
    )


async def domain_error_handler(request: Request, exc: DomainError) -> JSONResponse:
    if exc.status_code >= 500:
        logger.error("Domain error on %s: %s", request.url.path, exc.message)
    return _toast_response(exc.status_code, exc.title, exc.message)


async def value_error_handler(request: Request, exc: ValueError) -> JSONResponse:
    logger.info("Rejected invalid input on %s: %s", request.url.path, exc)
    return _toast_response(422, "Datos inválidos", str(exc))


def _build_query_cache(settings, cache_client: Optional[CacheClient]) -> QueryCache:
    if cache_client is not None:
        persister = RedisCachePersister(
            cache_client, max_age=timedelta(seconds=settings.query_cache_max_age_seconds)
        )
    else:
        persister = FileCachePersister(settings.query_cache_persist_path)
    return QueryCache(
        persister=persister,
        buster=settings.query_cache_buster,
        max_age_seconds=settings.query_cache_max_age_seconds,
    )


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan manager with graceful startup and shutdown."""
    setup_global_exception_handler()
    logger.info("Starting Alerta Educativa admin UI...")

    settings = get_settings()
    shutdown_manager = GracefulShutdown(timeout=15.0)

    await ensure_database_ready()

    cache_client: Optional[CacheClient] = app.state.cache_client
    if cache_client is not None:
        try:
            await cache_client.connect()
        except Exception as exc:
            logger.error("Redis connection failed: %s", exc, exc_info=True)

    query_cache: QueryCache = app.state.query_cache
    try:
        await query_cache.restore()
    except Exception as exc:
        logger.error("Failed to restore query cache: %s", exc, exc_info=True)

    maintenance_task = asyncio.create_task(
        periodic_cache_maintenance(query_cache), name="query_cache_maintenance"
    )
    shutdown_manager.add_task(maintenance_task)
    sweep_task = asyncio.create_task(
        periodic_rate_limit_sweep(
            app.state.rate_limiter, interval_seconds=settings.rate_limit_sweep_seconds
        ),
        name="rate_limit_sweeper",
    )
    shutdown_manager.add_task(sweep_task)

    routes = [r.path for r in app.routes if hasattr(r, "path")]
    logger.info("Application started with %d routes", len(routes))

    try:
        yield
    finally:
        logger.info("Shutting down application...")
        await shutdown_manager.shutdown()

        try:
            await query_cache.persist()
        except Exception as exc:
            logger.error("Error persisting query cache: %s", exc)

        if cache_client is not None:
            try:
                await cache_client.disconnect()
            except Exception as exc:
                logger.error("Error disconnecting cache: %s", exc)

        logger.info("Application shut down complete")


def create_app() -> FastAPI:
    settings = get_settings()
    docs_url = "/docs" if settings.docs_enabled else None
    redoc_url = "/redoc" if settings.docs_enabled else None
    openapi_url = "/openapi.json" if settings.docs_enabled else None

    app = FastAPI(
        title="Alerta Educativa",
        lifespan=lifespan,
        docs_url=docs_url,
        redoc_url=redoc_url,
        openapi_url=openapi_url,
    )

    cache_client = (
        CacheClient(CacheConfig.from_url(settings.redis_url)) if settings.redis_url else None
    )
    rate_limiter = FixedWindowRateLimiter(
        max_requests=settings.rate_limit_max_requests,
        window_seconds=settings.rate_limit_window_seconds,
    )
    app.state.cache_client = cache_client
    app.state.query_cache = _build_query_cache(settings, cache_client)
    app.state.rate_limiter = rate_limiter
    app.state.catalogs = CatalogRegistry()
    app.state.limiter = limiter

    app.add_exception_handler(DomainError, domain_error_handler)
    app.add_exception_handler(ValueError, value_error_handler)
    app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)

    app.add_middleware(GZipMiddleware, minimum_size=1024)
    app.add_middleware(
        EdgeMiddleware,
        rate_limiter=rate_limiter,
        rate_limit_enabled=settings.rate_limit_enabled,
    )

    app.include_router(system.router)
    app.include_router(auth.router)
    app.include_router(dashboard.router)
    app.include_router(students.router)
    app.include_router(grades.router)
    app.include_router(incidents.router)
    app.include_router(permissions.router)
    app.include_router(records.router)
    app.include_router(assignments.router)
    app.include_router(profiles.router)
    app.include_router(settings_router.router)
    app.include_router(catalogs.router)
    app.include_router(admin.router)

    @app.middleware("http")
    async def log_requests(request: Request, call_next):
        start = time.perf_counter()
        try:
            response = await call_next(request)
        except Exception:
            duration = (time.perf_counter() - start) * 1000
            request_logger.exception(
                "HTTP %s %s failed",
                request.method,
                request.url.path,
                extra={"path": request.url.path, "method": request.method, "duration_ms": duration},
            )
            raise
        duration = (time.perf_counter() - start) * 1000
        request_logger.info(
            "HTTP %s %s -> %s (%.1f ms)",
            request.method,
            request.url.path,
            response.status_code,
            duration,
            extra={
                "path": request.url.path,
                "method": request.method,
                "status_code": response.status_code,
                "duration_ms": round(duration, 1),
            },
        )
        return response

    app.add_middleware(RequestIDMiddleware)

    return app


app = create_app()

__all__ = ["app", "create_app", "lifespan"]
