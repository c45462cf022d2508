"""FastAPI dependencies exposing app-scoped objects to routers."""

from __future__ import annotations

from fastapi import Request

from alerta.apps.admin_ui.perf.cache.query_cache import QueryCache
from alerta.apps.admin_ui.perf.limits.rate_limiter import FixedWindowRateLimiter
from alerta.domain.catalogs import CatalogRegistry


def get_query_cache(request: Request) -> QueryCache:
    return request.app.state.query_cache


def get_rate_limiter(request: Request) -> FixedWindowRateLimiter:
    return request.app.state.rate_limiter


def get_catalogs(request: Request) -> CatalogRegistry:
    return request.app.state.catalogs


__all__ = ["get_catalogs", "get_query_cache", "get_rate_limiter"]
