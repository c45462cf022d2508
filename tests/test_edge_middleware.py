from datetime import timedelta

import httpx
import pytest
from fastapi import FastAPI, Request
from fastapi.responses import PlainTextResponse

from alerta.apps.admin_ui.middleware import EdgeMiddleware, RequestIDMiddleware
from alerta.apps.admin_ui.perf.limits.rate_limiter import FixedWindowRateLimiter
from alerta.core.auth import create_access_token
from alerta.core.settings import get_settings

pytestmark = pytest.mark.no_db_cleanup


class _BrokenLimiter(FixedWindowRateLimiter):
    def check(self, key):
        raise RuntimeError("limiter state corrupted")


def _edge_app(limiter=None, enabled=True) -> FastAPI:
    app = FastAPI()

    @app.get("/dashboard")
    async def dashboard(request: Request):
        principal = getattr(request.state, "principal", None)
        return {"user": principal.id if principal else None}

    @app.get("/about")
    async def about():
        return PlainTextResponse("about")

    @app.get("/static/app.css")
    async def stylesheet():
        return PlainTextResponse("body{}")

    @app.get("/api/auth/session")
    async def session():
        return {"ok": True}

    app.add_middleware(
        EdgeMiddleware,
        rate_limiter=limiter or FixedWindowRateLimiter(max_requests=100),
        rate_limit_enabled=enabled,
        debug_log=False,
    )
    app.add_middleware(RequestIDMiddleware)
    return app


def _client(app) -> httpx.AsyncClient:
    return httpx.AsyncClient(transport=httpx.ASGITransport(app=app), base_url="http://test")


def _token(profile_id="p-1", role="Docente"):
    return create_access_token({"sub": profile_id, "role": role, "email": "d@colegio.edu"})


async def test_unauthenticated_protected_request_redirects_to_login():
    async with _client(_edge_app()) as client:
        response = await client.get("/dashboard?tab=alerts")

    assert response.status_code == 303
    assert response.headers["location"] == "/login?redirect=%2Fdashboard%3Ftab%3Dalerts"


async def test_expired_token_redirects_to_login():
    token = create_access_token({"sub": "p-1"}, expires_delta=timedelta(seconds=-5))
    async with _client(_edge_app()) as client:
        client.cookies.set(get_settings().auth_cookie_name, token)
        response = await client.get("/dashboard")

    assert response.status_code == 303
    assert response.headers["location"].startswith("/login?redirect=")


async def test_authenticated_request_gets_identity_and_security_headers():
    async with _client(_edge_app()) as client:
        client.cookies.set(get_settings().auth_cookie_name, _token("p-7", "Director"))
        response = await client.get("/dashboard")

    assert response.status_code == 200
    assert response.json() == {"user": "p-7"}
    assert response.headers["X-User-ID"] == "p-7"
    assert response.headers["X-User-Role"] == "Director"
    assert response.headers["X-Frame-Options"] == "DENY"
    assert response.headers["X-Content-Type-Options"] == "nosniff"
    assert response.headers["X-Middleware-Cache"] == "dynamic"
    assert response.headers["X-DNS-Prefetch-Control"] == "on"
    assert response.headers["X-Request-ID"]


async def test_root_redirects_to_dashboard():
    async with _client(_edge_app()) as client:
        response = await client.get("/")

    assert response.status_code == 303
    assert response.headers["location"] == "/dashboard"


async def test_api_preflight_gets_cors_headers():
    async with _client(_edge_app()) as client:
        response = await client.options("/api/auth/session")

    assert response.status_code == 200
    assert response.headers["Access-Control-Allow-Origin"] == "*"
    assert "PATCH" in response.headers["Access-Control-Allow-Methods"]


async def test_api_responses_carry_version():
    async with _client(_edge_app()) as client:
        response = await client.get("/api/auth/session")

    assert response.headers["X-API-Version"] == "1.0"
    assert response.headers["X-Middleware-Cache"] == "api"


async def test_assets_are_immutable_and_skip_cache_marker():
    async with _client(_edge_app()) as client:
        response = await client.get("/static/app.css")

    assert response.headers["Cache-Control"] == "public, max-age=31536000, immutable"
    assert "X-Middleware-Cache" not in response.headers


async def test_rate_limit_returns_429_with_retry_headers():
    limiter = FixedWindowRateLimiter(max_requests=2, window_seconds=60)
    async with _client(_edge_app(limiter)) as client:
        statuses = [(await client.get("/about")).status_code for _ in range(2)]
        blocked = await client.get("/about")

    assert statuses == [200, 200]
    assert blocked.status_code == 429
    assert blocked.text == "Too Many Requests"
    assert blocked.headers["Retry-After"] == "60"
    assert blocked.headers["X-RateLimit-Limit"] == "2"
    assert blocked.headers["X-RateLimit-Remaining"] == "0"


async def test_disabled_rate_limit_never_blocks():
    limiter = FixedWindowRateLimiter(max_requests=1)
    async with _client(_edge_app(limiter, enabled=False)) as client:
        responses = [await client.get("/about") for _ in range(3)]

    assert all(response.status_code == 200 for response in responses)
    assert len(limiter) == 0


async def test_internal_failure_fails_open():
    async with _client(_edge_app(_BrokenLimiter())) as client:
        response = await client.get("/about")

    assert response.status_code == 200
    assert response.text == "about"
    assert "X-Frame-Options" not in response.headers
