from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, Depends, Query, Response, status

from alerta.apps.admin_ui.dependencies import get_query_cache
from alerta.apps.admin_ui.perf.cache import keys
from alerta.apps.admin_ui.perf.cache.invalidation import invalidate_related
from alerta.apps.admin_ui.perf.cache.query_cache import QueryCache
from alerta.apps.admin_ui.schemas import AssignmentBatch
from alerta.apps.admin_ui.security import Principal, current_principal, require_staff_manager
from alerta.apps.admin_ui.services import assignments as assignments_service
from alerta.core.audit import log_audit_action

router = APIRouter(prefix="/api/assignments", tags=["assignments"])


@router.get("")
async def api_list_assignments(
    teacher_id: Optional[str] = Query(None),
    cache: QueryCache = Depends(get_query_cache),
    _: Principal = Depends(current_principal),
):
    return await cache.fetch_query(
        keys.assignments_list(teacher_id=teacher_id),
        lambda: assignments_service.list_assignments(teacher_id=teacher_id),
    )


@router.post("", status_code=status.HTTP_201_CREATED)
async def api_add_assignments(
    payload: AssignmentBatch,
    cache: QueryCache = Depends(get_query_cache),
    _: Principal = Depends(require_staff_manager),
):
    items = [item.model_dump() for item in payload.assignments]
    created = await cache.run_mutation(lambda: assignments_service.add_assignments(items))
    invalidate_related(cache, "assignment")
    for item in created:
        await log_audit_action("assignment_created", "assignment", item["id"], changes=item)
    return created


@router.delete("/{assignment_id}", status_code=status.HTTP_204_NO_CONTENT)
async def api_remove_assignment(
    assignment_id: str,
    cache: QueryCache = Depends(get_query_cache),
    _: Principal = Depends(require_staff_manager),
) -> Response:
    await cache.run_mutation(lambda: assignments_service.remove_assignment(assignment_id))
    invalidate_related(cache, "assignment", assignment_id)
    await log_audit_action("assignment_removed", "assignment", assignment_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)
