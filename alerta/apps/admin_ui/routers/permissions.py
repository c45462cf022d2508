from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, Depends, Query, status

from alerta.apps.admin_ui.dependencies import get_query_cache
from alerta.apps.admin_ui.perf.cache import keys
from alerta.apps.admin_ui.perf.cache.invalidation import invalidate_related
from alerta.apps.admin_ui.perf.cache.query_cache import QueryCache
from alerta.apps.admin_ui.schemas import (
    PermissionCreate,
    PermissionStatusName,
    PermissionStatusUpdate,
)
from alerta.apps.admin_ui.security import Principal, current_principal
from alerta.apps.admin_ui.services import permissions as permissions_service
from alerta.core.audit import log_audit_action

router = APIRouter(prefix="/api/permissions", tags=["permissions"])


@router.get("")
async def api_list_permissions(
    status_filter: Optional[PermissionStatusName] = Query(None, alias="status"),
    cache: QueryCache = Depends(get_query_cache),
    _: Principal = Depends(current_principal),
):
    return await cache.fetch_query(
        keys.permissions_list(status=status_filter),
        lambda: permissions_service.list_permissions(status=status_filter),
    )


@router.post("", status_code=status.HTTP_201_CREATED)
async def api_create_permission(
    payload: PermissionCreate,
    cache: QueryCache = Depends(get_query_cache),
    _: Principal = Depends(current_principal),
):
    permission = await cache.run_mutation(
        lambda: permissions_service.create_permission(
            student_id=payload.student_id,
            request_date=payload.request_date,
            permission_types=payload.permission_types,
        )
    )
    invalidate_related(cache, "permission", permission["id"])
    await log_audit_action(
        "permission_created",
        "permission",
        permission["id"],
        changes={"student_id": payload.student_id},
    )
    return permission


@router.patch("/{permission_id}/status")
async def api_update_permission_status(
    permission_id: str,
    payload: PermissionStatusUpdate,
    cache: QueryCache = Depends(get_query_cache),
    _: Principal = Depends(current_principal),
):
    permission = await cache.run_mutation(
        lambda: permissions_service.update_permission_status(permission_id, payload.status)
    )
    invalidate_related(cache, "permission", permission_id)
    await log_audit_action(
        "permission_status_changed",
        "permission",
        permission_id,
        changes={"status": payload.status},
    )
    return permission
