"""Admin UI security helpers: client identity, principals and role checks."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Callable, Optional

from fastapi import HTTPException, Request, status
from fastapi.responses import Response
from slowapi import Limiter, _rate_limit_exceeded_handler
from slowapi.errors import RateLimitExceeded

from alerta.apps.admin_ui.services import profiles as profiles_service
from alerta.core.audit import AuditContext, bind_audit_context
from alerta.core.auth import InvalidTokenError, decode_access_token
from alerta.core.settings import get_settings
from alerta.domain.errors import ForbiddenError
from alerta.domain.models import Role

logger = logging.getLogger(__name__)

CREDENTIALS_LIMIT = "5/minute"


def get_client_ip(request: Request) -> str:
    """
    Extract the client address used as the rate-limit key.

    Forwarding headers (``X-Forwarded-For`` then ``X-Real-IP``) are honoured
    only when TRUST_PROXY_HEADERS is enabled.
    """
    settings = get_settings()

    if settings.trust_proxy_headers:
        forwarded_for = request.headers.get("x-forwarded-for")
        if forwarded_for:
            # "client, proxy1, proxy2": the leftmost entry is the client.
            client_ip = forwarded_for.split(",")[0].strip()
            if client_ip:
                return client_ip
        real_ip = (request.headers.get("x-real-ip") or "").strip()
        if real_ip:
            return real_ip

    return request.client.host if request and request.client else "unknown"


def _build_limiter() -> Limiter:
    """Route-level limiter for credential endpoints; disabled under tests."""
    settings = get_settings()
    enabled = settings.rate_limit_enabled and settings.environment != "test"
    if enabled and settings.is_production:
        logger.info("Credential rate limiter using in-memory storage")
    return Limiter(key_func=get_client_ip, default_limits=[], enabled=enabled)


limiter = _build_limiter()


@dataclass(frozen=True)
class Principal:
    id: str
    role: str
    email: Optional[str] = None

    @property
    def is_admin(self) -> bool:
        return self.role == Role.ADMIN


def principal_from_token(token: Optional[str]) -> Principal:
    """Decode an access-token cookie into a principal.

    Raises:
        InvalidTokenError: missing, malformed or expired token.
    """
    claims = decode_access_token(token or "")
    return Principal(
        id=str(claims["sub"]),
        role=str(claims.get("role") or Role.DOCENTE),
        email=claims.get("email"),
    )


def set_auth_cookie(response: Response, token: str) -> None:
    settings = get_settings()
    response.set_cookie(
        settings.auth_cookie_name,
        token,
        max_age=settings.access_token_ttl_hours * 3600,
        httponly=True,
        secure=settings.auth_cookie_secure,
        samesite="lax",
        path="/",
    )


def clear_auth_cookie(response: Response) -> None:
    response.delete_cookie(get_settings().auth_cookie_name, path="/")


def _unauthenticated() -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail="Authentication required",
    )


async def current_principal(request: Request) -> Principal:
    """Principal for the request, checked against the stored profile.

    The token only proves identity; role and activity come from the database
    so demoted, deactivated or deleted profiles lose access immediately.
    """

    verified: Optional[Principal] = getattr(request.state, "verified_principal", None)
    if verified is not None:
        return verified

    claimed: Optional[Principal] = getattr(request.state, "principal", None)
    if claimed is None:
        token = request.cookies.get(get_settings().auth_cookie_name)
        try:
            claimed = principal_from_token(token)
        except InvalidTokenError:
            raise _unauthenticated() from None

    profile = await profiles_service.find_active_profile(claimed.id)
    if profile is None:
        logger.info("Rejected token for missing or inactive profile %s", claimed.id)
        raise _unauthenticated()

    principal = Principal(id=profile.id, role=profile.role, email=profile.email)
    request.state.principal = principal
    request.state.verified_principal = principal

    bind_audit_context(
        AuditContext.from_request(
            request,
            username=principal.email or principal.id,
            ip_address=get_client_ip(request),
        )
    )
    return principal


def require_roles(*roles: str) -> Callable:
    """Dependency factory rejecting principals outside ``roles``."""

    allowed = frozenset(roles)

    async def _dependency(request: Request) -> Principal:
        principal = await current_principal(request)
        if principal.role not in allowed:
            logger.warning(
                "Role %s denied for %s %s", principal.role, request.method, request.url.path
            )
            raise ForbiddenError("You do not have permission to perform this action")
        return principal

    return _dependency


require_admin = require_roles(Role.ADMIN)
require_staff_manager = require_roles(Role.ADMIN, Role.DIRECTOR, Role.SUBDIRECTOR)


__all__ = [
    "CREDENTIALS_LIMIT",
    "Principal",
    "RateLimitExceeded",
    "_rate_limit_exceeded_handler",
    "clear_auth_cookie",
    "current_principal",
    "get_client_ip",
    "limiter",
    "principal_from_token",
    "require_admin",
    "require_roles",
    "require_staff_manager",
    "set_auth_cookie",
]
