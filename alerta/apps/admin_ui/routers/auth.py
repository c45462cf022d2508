import logging
from datetime import timedelta

from fastapi import APIRouter, Depends, HTTPException, Request, status
from fastapi.responses import JSONResponse

from alerta.apps.admin_ui.dependencies import get_query_cache
from alerta.apps.admin_ui.perf.cache.invalidation import invalidate_related
from alerta.apps.admin_ui.perf.cache.query_cache import QueryCache
from alerta.apps.admin_ui.schemas import LoginPayload, SignupPayload
from alerta.apps.admin_ui.security import (
    CREDENTIALS_LIMIT,
    clear_auth_cookie,
    get_client_ip,
    limiter,
    set_auth_cookie,
)
from alerta.apps.admin_ui.services import profiles as profiles_service
from alerta.apps.admin_ui.services.app_settings import registration_allowed
from alerta.core.audit import AuditContext, log_audit_action
from alerta.core.auth import create_access_token
from alerta.core.settings import get_settings
from alerta.domain.errors import RegistrationDisabledError

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/auth", tags=["auth"])


def _get_audit_context(request: Request, username: str) -> AuditContext:
    return AuditContext.from_request(
        request, username=username, ip_address=get_client_ip(request)
    )


def _issue_token(profile_id: str, role: str, email: str) -> str:
    settings = get_settings()
    return create_access_token(
        data={"sub": profile_id, "role": role, "email": email},
        expires_delta=timedelta(hours=settings.access_token_ttl_hours),
    )


@router.post("/login")
@limiter.limit(CREDENTIALS_LIMIT)
async def login(request: Request, payload: LoginPayload) -> JSONResponse:
    audit_ctx = _get_audit_context(request, payload.email)
    profile = await profiles_service.authenticate(payload.email, payload.password)
    if profile is None:
        await log_audit_action(
            "login_failed",
            "auth",
            None,
            ctx=audit_ctx,
            changes={"reason": "invalid_credentials"},
        )
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid credentials"
        )

    await log_audit_action(
        "login_success", "auth", profile.id, ctx=audit_ctx, changes={"role": profile.role}
    )
    response = JSONResponse(
        {"user": profiles_service.serialize_profile(profile)}, status_code=status.HTTP_200_OK
    )
    set_auth_cookie(response, _issue_token(profile.id, profile.role, profile.email))
    return response


@router.post("/logout")
async def logout(request: Request) -> JSONResponse:
    response = JSONResponse({"ok": True})
    clear_auth_cookie(response)
    return response


@router.post("/signup")
@limiter.limit(CREDENTIALS_LIMIT)
async def signup(
    request: Request,
    payload: SignupPayload,
    cache: QueryCache = Depends(get_query_cache),
) -> JSONResponse:
    if not await registration_allowed():
        raise RegistrationDisabledError()

    profile = await profiles_service.create_profile(
        name=payload.name,
        email=payload.email,
        password=payload.password,
        role=payload.role,
        dni=payload.dni,
    )
    invalidate_related(cache, "user", profile["id"])
    await log_audit_action(
        "signup",
        "profile",
        profile["id"],
        ctx=_get_audit_context(request, profile["email"]),
        changes={"role": profile["role"]},
    )
    response = JSONResponse({"user": profile}, status_code=status.HTTP_201_CREATED)
    set_auth_cookie(response, _issue_token(profile["id"], profile["role"], profile["email"]))
    return response
