from __future__ import annotations

from datetime import date

from fastapi import APIRouter, Depends

from alerta.apps.admin_ui.dependencies import get_query_cache
from alerta.apps.admin_ui.perf.cache import keys
from alerta.apps.admin_ui.perf.cache.query_cache import QueryCache
from alerta.apps.admin_ui.security import Principal, current_principal
from alerta.apps.admin_ui.services import dashboard as dashboard_service
from alerta.domain.errors import ForbiddenError
from alerta.domain.models import Role

router = APIRouter(prefix="/api/dashboard", tags=["dashboard"])


@router.get("/stats")
async def api_dashboard_stats(
    cache: QueryCache = Depends(get_query_cache),
    _: Principal = Depends(current_principal),
):
    return await cache.fetch_query(keys.dashboard_stats(), dashboard_service.dashboard_stats)


@router.get("/desertion-trend")
async def api_desertion_trend(
    cache: QueryCache = Depends(get_query_cache),
    _: Principal = Depends(current_principal),
):
    today = date.today()
    return await cache.fetch_query(
        keys.desertion_trend(today),
        lambda: dashboard_service.desertion_trend(today),
    )


@router.get("/teacher/{teacher_id}")
async def api_teacher_data(
    teacher_id: str,
    cache: QueryCache = Depends(get_query_cache),
    principal: Principal = Depends(current_principal),
):
    # Teachers and assistants only see their own sections.
    if principal.role in Role.PERSONNEL and principal.id != teacher_id:
        raise ForbiddenError("You can only view your own dashboard")
    return await cache.fetch_query(
        keys.teacher_data(teacher_id),
        lambda: dashboard_service.teacher_data(teacher_id),
    )
