from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, Depends, Query, Response, status

from alerta.apps.admin_ui.dependencies import get_query_cache
from alerta.apps.admin_ui.perf.cache import keys
from alerta.apps.admin_ui.perf.cache.invalidation import invalidate_related, optimistic_student_edit
from alerta.apps.admin_ui.perf.cache.query_cache import QueryCache
from alerta.apps.admin_ui.schemas import (
    StudentCreate,
    StudentImportPayload,
    StudentUpdate,
    changes_of,
)
from alerta.apps.admin_ui.security import (
    Principal,
    current_principal,
    require_admin,
    require_staff_manager,
)
from alerta.apps.admin_ui.services import students as students_service
from alerta.core.audit import log_audit_action

router = APIRouter(prefix="/api/students", tags=["students"])


@router.get("")
async def api_list_students(
    page: int = Query(0, ge=0),
    page_size: int = Query(20, ge=1, le=students_service.MAX_PAGE_SIZE),
    section_id: Optional[str] = Query(None),
    search: Optional[str] = Query(None, max_length=120),
    cache: QueryCache = Depends(get_query_cache),
    _: Principal = Depends(current_principal),
):
    key = keys.students_paginated(
        page=page, page_size=page_size, section_id=section_id, search=search
    )
    return await cache.fetch_query(
        key,
        lambda: students_service.list_students_page(
            page=page, page_size=page_size, section_id=key[4], search=key[5]
        ),
    )


@router.post("", status_code=status.HTTP_201_CREATED)
async def api_create_student(
    payload: StudentCreate,
    cache: QueryCache = Depends(get_query_cache),
    _: Principal = Depends(current_principal),
):
    data = payload.model_dump()
    student = await cache.run_mutation(lambda: students_service.create_student(data))
    invalidate_related(cache, "student", student["id"])
    await log_audit_action("student_created", "student", student["id"], changes=data)
    return student


@router.post("/import")
async def api_import_students(
    payload: StudentImportPayload,
    cache: QueryCache = Depends(get_query_cache),
    _: Principal = Depends(require_staff_manager),
):
    rows = [row.model_dump() for row in payload.students]
    result = await cache.run_mutation(
        lambda: students_service.import_students(payload.grade_id, payload.section_id, rows)
    )
    invalidate_related(cache, "student")
    await log_audit_action(
        "students_imported",
        "section",
        payload.section_id,
        changes={"imported": result["imported"], "skipped": result["skipped"]},
    )
    return result


@router.patch("/{student_id}")
async def api_update_student(
    student_id: str,
    payload: StudentUpdate,
    cache: QueryCache = Depends(get_query_cache),
    _: Principal = Depends(current_principal),
):
    changes = changes_of(payload)
    student = await optimistic_student_edit(
        cache,
        student_id,
        changes,
        lambda: students_service.update_student(student_id, changes),
    )
    invalidate_related(cache, "student", student_id)
    await log_audit_action("student_updated", "student", student_id, changes=changes)
    return student


@router.delete("/{student_id}", status_code=status.HTTP_204_NO_CONTENT)
async def api_delete_student(
    student_id: str,
    cache: QueryCache = Depends(get_query_cache),
    _: Principal = Depends(require_admin),
) -> Response:
    await cache.run_mutation(lambda: students_service.delete_student(student_id))
    invalidate_related(cache, "student", student_id)
    await log_audit_action("student_deleted", "student", student_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)
