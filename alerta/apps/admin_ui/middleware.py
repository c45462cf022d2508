"""Edge middleware: rate limiting, security and cache headers, cookie auth."""

from __future__ import annotations

import logging
import time
import uuid
from dataclasses import dataclass, field
from typing import Dict, Optional, Union
from urllib.parse import urlencode

from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import PlainTextResponse, RedirectResponse, Response

from alerta.apps.admin_ui.perf.limits.rate_limiter import (
    FixedWindowRateLimiter,
    RateLimitDecision,
)
from alerta.apps.admin_ui.route_policy import (
    IMMUTABLE_CACHE_CONTROL,
    cache_headers,
    is_asset,
    is_protected,
    match_cache_rule,
)
from alerta.apps.admin_ui.security import get_client_ip, principal_from_token
from alerta.core.auth import InvalidTokenError
from alerta.core.logging import reset_request_id, set_request_id
from alerta.core.settings import get_settings

logger = logging.getLogger(__name__)

SECURITY_HEADERS: Dict[str, str] = {
    "X-Frame-Options": "DENY",
    "X-Content-Type-Options": "nosniff",
    "Referrer-Policy": "origin-when-cross-origin",
    "X-XSS-Protection": "1; mode=block",
}

CORS_HEADERS: Dict[str, str] = {
    "Access-Control-Allow-Origin": "*",
    "Access-Control-Allow-Methods": "GET, POST, PUT, PATCH, DELETE, OPTIONS",
    "Access-Control-Allow-Headers": "Content-Type, Authorization",
}

API_VERSION = "1.0"
LOGIN_PATH = "/login"
HOME_PATH = "/dashboard"


@dataclass
class _EdgePlan:
    """Headers decided before the request reaches the application."""

    headers: Dict[str, str] = field(default_factory=dict)
    cache_type: Optional[str] = None
    finalize: bool = True


class EdgeMiddleware(BaseHTTPMiddleware):
    """Sequential per-request pipeline in front of every route.

    Errors in the pipeline's own logic let the request through without the
    extra headers; authentication failures always redirect to the login page.
    """

    def __init__(
        self,
        app,
        *,
        rate_limiter: Optional[FixedWindowRateLimiter] = None,
        rate_limit_enabled: bool = True,
        debug_log: Optional[bool] = None,
    ):
        super().__init__(app)
        self.rate_limiter = rate_limiter or FixedWindowRateLimiter()
        self.rate_limit_enabled = rate_limit_enabled
        if debug_log is None:
            debug_log = get_settings().environment == "development"
        self.debug_log = debug_log

    async def dispatch(self, request: Request, call_next):
        try:
            outcome = self._plan(request)
        except Exception:
            logger.exception("Edge middleware failed, passing request through")
            return await call_next(request)

        if isinstance(outcome, Response):
            return outcome

        response: Response = await call_next(request)
        try:
            response.headers.update(outcome.headers)
            if outcome.finalize:
                response.headers["X-DNS-Prefetch-Control"] = "on"
                response.headers["X-Middleware-Cache"] = outcome.cache_type or "none"
        except Exception:
            logger.exception("Edge middleware failed to decorate response")
        return response

    def _plan(self, request: Request) -> Union[_EdgePlan, Response]:
        path = request.url.path

        if self.rate_limit_enabled:
            decision = self.rate_limiter.check(get_client_ip(request))
            if not decision.allowed:
                return self._too_many_requests(decision)

        plan = _EdgePlan(headers=dict(SECURITY_HEADERS))

        rule = match_cache_rule(path)
        if rule is not None:
            plan.cache_type = rule.type
            plan.headers.update(cache_headers(rule, int(time.time() * 1000)))

        if is_asset(path):
            plan.headers["Cache-Control"] = IMMUTABLE_CACHE_CONTROL
            plan.finalize = False
            return plan

        if is_protected(path):
            token = request.cookies.get(get_settings().auth_cookie_name)
            try:
                principal = principal_from_token(token)
            except InvalidTokenError as exc:
                logger.info("Unauthenticated request to %s: %s", path, exc)
                return self._login_redirect(request)
            except Exception:
                logger.exception("Auth error in edge middleware")
                return RedirectResponse(url=LOGIN_PATH, status_code=303)
            request.state.principal = principal
            plan.headers["X-User-ID"] = principal.id
            plan.headers["X-User-Role"] = principal.role

        if path == "/":
            return RedirectResponse(url=HOME_PATH, status_code=303)

        if path.startswith("/api/"):
            plan.headers["X-API-Version"] = API_VERSION
            if request.method == "OPTIONS":
                return Response(status_code=200, headers=CORS_HEADERS)

        if self.debug_log:
            logger.debug(
                "[Edge] %s %s - Cache: %s", request.method, path, plan.cache_type or "none"
            )
        return plan

    def _too_many_requests(self, decision: RateLimitDecision) -> Response:
        return PlainTextResponse(
            "Too Many Requests",
            status_code=429,
            headers={
                "Retry-After": str(int(self.rate_limiter.window_seconds)),
                "X-RateLimit-Limit": str(decision.limit),
                "X-RateLimit-Remaining": "0",
            },
        )

    @staticmethod
    def _login_redirect(request: Request) -> Response:
        target = request.url.path
        if request.url.query:
            target = f"{target}?{request.url.query}"
        return RedirectResponse(
            url=f"{LOGIN_PATH}?{urlencode({'redirect': target})}",
            status_code=303,
        )


class RequestIDMiddleware(BaseHTTPMiddleware):
    """Add X-Request-ID header for request tracing and correlation."""

    HEADER_NAME = "X-Request-ID"

    async def dispatch(self, request: Request, call_next):
        request_id = request.headers.get(self.HEADER_NAME) or str(uuid.uuid4())
        request.state.request_id = request_id

        token = set_request_id(request_id)
        try:
            response: Response = await call_next(request)
            response.headers[self.HEADER_NAME] = request_id
            return response
        finally:
            reset_request_id(token)


__all__ = ["EdgeMiddleware", "RequestIDMiddleware", "SECURITY_HEADERS"]
