from __future__ import annotations

from fastapi import APIRouter, Depends, Response, status

from alerta.apps.admin_ui.dependencies import get_query_cache
from alerta.apps.admin_ui.perf.cache import keys
from alerta.apps.admin_ui.perf.cache.invalidation import invalidate_related
from alerta.apps.admin_ui.perf.cache.query_cache import QueryCache
from alerta.apps.admin_ui.schemas import GradeCreate, GradeUpdate, SectionCreate, SectionUpdate
from alerta.apps.admin_ui.security import (
    Principal,
    current_principal,
    require_admin,
    require_staff_manager,
)
from alerta.apps.admin_ui.services import grades as grades_service
from alerta.core.audit import log_audit_action

router = APIRouter(prefix="/api", tags=["grades"])


@router.get("/grades")
async def api_list_grades(
    cache: QueryCache = Depends(get_query_cache),
    _: Principal = Depends(current_principal),
):
    return await cache.fetch_query(keys.grades(), grades_service.list_grades)


@router.post("/grades", status_code=status.HTTP_201_CREATED)
async def api_create_grade(
    payload: GradeCreate,
    cache: QueryCache = Depends(get_query_cache),
    _: Principal = Depends(require_staff_manager),
):
    grade = await cache.run_mutation(
        lambda: grades_service.create_grade(payload.name, payload.sections)
    )
    invalidate_related(cache, "grade", grade["id"])
    await log_audit_action("grade_created", "grade", grade["id"], changes=payload.model_dump())
    return grade


@router.patch("/grades/{grade_id}")
async def api_rename_grade(
    grade_id: str,
    payload: GradeUpdate,
    cache: QueryCache = Depends(get_query_cache),
    _: Principal = Depends(require_staff_manager),
):
    grade = await cache.run_mutation(lambda: grades_service.rename_grade(grade_id, payload.name))
    invalidate_related(cache, "grade", grade_id)
    await log_audit_action("grade_renamed", "grade", grade_id, changes={"name": payload.name})
    return grade


@router.delete("/grades/{grade_id}", status_code=status.HTTP_204_NO_CONTENT)
async def api_delete_grade(
    grade_id: str,
    cache: QueryCache = Depends(get_query_cache),
    _: Principal = Depends(require_admin),
) -> Response:
    await cache.run_mutation(lambda: grades_service.delete_grade(grade_id))
    invalidate_related(cache, "grade", grade_id)
    await log_audit_action("grade_deleted", "grade", grade_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.post("/grades/{grade_id}/sections", status_code=status.HTTP_201_CREATED)
async def api_add_sections(
    grade_id: str,
    payload: SectionCreate,
    cache: QueryCache = Depends(get_query_cache),
    _: Principal = Depends(require_staff_manager),
):
    sections = await cache.run_mutation(
        lambda: grades_service.add_sections(grade_id, payload.names)
    )
    invalidate_related(cache, "section", grade_id)
    invalidate_related(cache, "grade", grade_id)
    await log_audit_action(
        "sections_created", "grade", grade_id, changes={"names": payload.names}
    )
    return sections


@router.get("/sections")
async def api_list_sections(
    cache: QueryCache = Depends(get_query_cache),
    _: Principal = Depends(current_principal),
):
    return await cache.fetch_query(keys.sections(), grades_service.list_sections)


@router.patch("/sections/{section_id}")
async def api_rename_section(
    section_id: str,
    payload: SectionUpdate,
    cache: QueryCache = Depends(get_query_cache),
    _: Principal = Depends(require_staff_manager),
):
    section = await cache.run_mutation(
        lambda: grades_service.rename_section(section_id, payload.name)
    )
    invalidate_related(cache, "section", section_id)
    invalidate_related(cache, "grade", section["grade_id"])
    await log_audit_action("section_renamed", "section", section_id, changes={"name": payload.name})
    return section


@router.delete("/sections/{section_id}", status_code=status.HTTP_204_NO_CONTENT)
async def api_delete_section(
    section_id: str,
    cache: QueryCache = Depends(get_query_cache),
    _: Principal = Depends(require_admin),
) -> Response:
    await cache.run_mutation(lambda: grades_service.delete_section(section_id))
    invalidate_related(cache, "section", section_id)
    invalidate_related(cache, "grade")
    await log_audit_action("section_deleted", "section", section_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)
