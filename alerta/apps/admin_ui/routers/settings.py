from __future__ import annotations

from fastapi import APIRouter, Depends

from alerta.apps.admin_ui.dependencies import get_query_cache
from alerta.apps.admin_ui.perf.cache import keys
from alerta.apps.admin_ui.perf.cache.invalidation import invalidate_related
from alerta.apps.admin_ui.perf.cache.query_cache import QueryCache
from alerta.apps.admin_ui.schemas import SettingsUpdate, changes_of
from alerta.apps.admin_ui.security import Principal, current_principal, require_admin
from alerta.apps.admin_ui.services import app_settings
from alerta.core.audit import log_audit_action

router = APIRouter(prefix="/api/settings", tags=["settings"])


@router.get("")
async def api_get_settings(
    cache: QueryCache = Depends(get_query_cache),
    _: Principal = Depends(current_principal),
):
    return await cache.fetch_query(keys.app_settings(), app_settings.get_app_settings)


@router.put("")
async def api_update_settings(
    payload: SettingsUpdate,
    cache: QueryCache = Depends(get_query_cache),
    _: Principal = Depends(require_admin),
):
    changes = changes_of(payload)
    updated = await cache.run_mutation(lambda: app_settings.update_app_settings(changes))
    invalidate_related(cache, "settings")
    await log_audit_action("settings_updated", "settings", 1, changes=changes)
    return updated
