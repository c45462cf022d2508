from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, Depends, Query, Response, status

from alerta.apps.admin_ui.dependencies import get_query_cache
from alerta.apps.admin_ui.perf.cache import keys
from alerta.apps.admin_ui.perf.cache.invalidation import invalidate_related
from alerta.apps.admin_ui.perf.cache.query_cache import QueryCache
from alerta.apps.admin_ui.schemas import ProfileUpdate, RoleName, changes_of
from alerta.apps.admin_ui.security import Principal, current_principal, require_admin
from alerta.apps.admin_ui.services import profiles as profiles_service
from alerta.core.audit import log_audit_action
from alerta.domain.errors import ForbiddenError

router = APIRouter(prefix="/api/profiles", tags=["profiles"])

_ADMIN_ONLY_FIELDS = {"role", "is_active"}


@router.get("")
async def api_list_profiles(
    role: Optional[RoleName] = Query(None),
    _: Principal = Depends(current_principal),
):
    return await profiles_service.list_profiles(role=role)


@router.get("/me")
async def api_my_profile(
    cache: QueryCache = Depends(get_query_cache),
    principal: Principal = Depends(current_principal),
):
    return await cache.fetch_query(
        keys.user_profile(principal.id),
        lambda: profiles_service.get_profile(principal.id),
    )


@router.patch("/{profile_id}")
async def api_update_profile(
    profile_id: str,
    payload: ProfileUpdate,
    cache: QueryCache = Depends(get_query_cache),
    principal: Principal = Depends(current_principal),
):
    changes = changes_of(payload)
    if not principal.is_admin:
        if profile_id != principal.id or _ADMIN_ONLY_FIELDS & changes.keys():
            raise ForbiddenError("You can only edit your own profile details")

    profile = await cache.run_mutation(lambda: profiles_service.update_profile(profile_id, changes))
    invalidate_related(cache, "user", profile_id)
    changes.pop("password", None)
    await log_audit_action("profile_updated", "profile", profile_id, changes=changes)
    return profile


@router.delete("/{profile_id}", status_code=status.HTTP_204_NO_CONTENT)
async def api_delete_profile(
    profile_id: str,
    cache: QueryCache = Depends(get_query_cache),
    principal: Principal = Depends(require_admin),
) -> Response:
    if profile_id == principal.id:
        raise ForbiddenError("You cannot delete your own profile")
    await cache.run_mutation(lambda: profiles_service.delete_profile(profile_id))
    invalidate_related(cache, "user", profile_id)
    invalidate_related(cache, "assignment")
    await log_audit_action("profile_deleted", "profile", profile_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)
