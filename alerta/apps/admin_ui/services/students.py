from __future__ import annotations

import logging
from typing import Any, Dict, Iterable, List, Mapping, Optional

from sqlalchemy import func, or_, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from alerta.core.db import async_session
from alerta.core.sanitizers import normalize_dni
from alerta.domain.errors import (
    DuplicateDniError,
    InvalidReferenceError,
    NotFoundError,
    StudentNotFoundError,
)
from alerta.domain.models import UNKNOWN_STUDENT_NAME, Grade, Section, Student

__all__ = [
    "create_student",
    "delete_student",
    "display_name",
    "get_student",
    "import_students",
    "list_students_page",
    "require_student",
    "serialize_student",
    "student_names",
    "update_student",
]

logger = logging.getLogger(__name__)

MAX_PAGE_SIZE = 100


def serialize_student(student: Student) -> Dict[str, Any]:
    return {
        "id": student.id,
        "first_name": student.first_name,
        "last_name": student.last_name,
        "name": student.full_name,
        "dni": student.dni,
        "grade_id": student.grade_id,
        "section_id": student.section_id,
        "grade": student.grade.name if student.grade else None,
        "section": student.section.name if student.section else None,
    }


def _with_placement(query):
    return query.options(selectinload(Student.grade), selectinload(Student.section))


async def require_student(session: AsyncSession, student_id: str) -> Student:
    student = await session.get(Student, student_id)
    if student is None:
        raise StudentNotFoundError(student_id)
    return student


async def student_names(session: AsyncSession, student_ids: Iterable[str]) -> Dict[str, str]:
    ids = {sid for sid in student_ids if sid}
    if not ids:
        return {}
    rows = await session.execute(
        select(Student.id, Student.first_name, Student.last_name).where(Student.id.in_(ids))
    )
    return {row.id: f"{row.first_name} {row.last_name}" for row in rows}


def display_name(names: Mapping[str, str], student_id: Optional[str]) -> str:
    return names.get(student_id or "", UNKNOWN_STUDENT_NAME)


async def _resolve_placement(
    session: AsyncSession, grade_id: Optional[str], section_id: Optional[str]
) -> tuple[Optional[str], Optional[str]]:
    """Validate that the section exists and belongs to the grade."""

    if section_id:
        section = await session.get(Section, section_id)
        if section is None:
            raise InvalidReferenceError(f"Section '{section_id}' does not exist")
        if grade_id and section.grade_id != grade_id:
            raise InvalidReferenceError("The section does not belong to the selected grade")
        return section.grade_id, section.id
    if grade_id:
        if await session.get(Grade, grade_id) is None:
            raise InvalidReferenceError(f"Grade '{grade_id}' does not exist")
    return grade_id, None


async def _ensure_unique_dni(
    session: AsyncSession, dni: str, *, exclude_id: Optional[str] = None
) -> None:
    query = select(Student.id).where(Student.dni == dni)
    if exclude_id:
        query = query.where(Student.id != exclude_id)
    if await session.scalar(query) is not None:
        raise DuplicateDniError(dni)


async def list_students_page(
    *,
    page: int = 0,
    page_size: int = 20,
    section_id: Optional[str] = None,
    search: Optional[str] = None,
) -> Dict[str, Any]:
    page = max(int(page), 0)
    page_size = min(max(int(page_size), 1), MAX_PAGE_SIZE)

    filters = []
    if section_id:
        filters.append(Student.section_id == section_id)
    term = (search or "").strip()
    if term:
        pattern = f"%{term}%"
        filters.append(
            or_(
                Student.first_name.ilike(pattern),
                Student.last_name.ilike(pattern),
                Student.dni.ilike(pattern),
            )
        )

    async with async_session() as session:
        total = await session.scalar(select(func.count(Student.id)).where(*filters))
        query = (
            _with_placement(select(Student))
            .where(*filters)
            .order_by(Student.last_name.asc(), Student.first_name.asc())
            .offset(page * page_size)
            .limit(page_size)
        )
        students = (await session.scalars(query)).all()

    return {
        "students": [serialize_student(student) for student in students],
        "total": int(total or 0),
        "page": page,
        "page_size": page_size,
    }


async def get_student(student_id: str) -> Dict[str, Any]:
    async with async_session() as session:
        student = await session.scalar(
            _with_placement(select(Student)).where(Student.id == student_id)
        )
        if student is None:
            raise StudentNotFoundError(student_id)
        return serialize_student(student)


async def create_student(data: Mapping[str, Any]) -> Dict[str, Any]:
    dni = normalize_dni(data.get("dni"))
    async with async_session() as session:
        grade_id, section_id = await _resolve_placement(
            session, data.get("grade_id"), data.get("section_id")
        )
        await _ensure_unique_dni(session, dni)
        student = Student(
            first_name=data.get("first_name"),
            last_name=data.get("last_name"),
            dni=dni,
            grade_id=grade_id,
            section_id=section_id,
        )
        session.add(student)
        try:
            await session.commit()
        except IntegrityError as exc:
            raise DuplicateDniError(dni) from exc
        student_id = student.id

    logger.info("Student %s created", student_id)
    return await get_student(student_id)


async def update_student(student_id: str, changes: Mapping[str, Any]) -> Dict[str, Any]:
    async with async_session() as session:
        student = await require_student(session, student_id)
        if "first_name" in changes and changes["first_name"] is not None:
            student.first_name = changes["first_name"]
        if "last_name" in changes and changes["last_name"] is not None:
            student.last_name = changes["last_name"]
        if changes.get("dni"):
            dni = normalize_dni(changes["dni"])
            await _ensure_unique_dni(session, dni, exclude_id=student.id)
            student.dni = dni
        if "grade_id" in changes or "section_id" in changes:
            new_grade = changes.get("grade_id", student.grade_id)
            if "section_id" in changes:
                new_section = changes["section_id"]
            else:
                # Moving to another grade drops the old section.
                new_section = student.section_id if new_grade == student.grade_id else None
            grade_id, section_id = await _resolve_placement(session, new_grade, new_section)
            student.grade_id, student.section_id = grade_id, section_id
        try:
            await session.commit()
        except IntegrityError as exc:
            raise DuplicateDniError(student.dni) from exc

    return await get_student(student_id)


async def delete_student(student_id: str) -> None:
    async with async_session() as session:
        student = await require_student(session, student_id)
        await session.delete(student)
        await session.commit()
    logger.info("Student %s deleted", student_id)


async def import_students(
    grade_id: str, section_id: str, rows: Iterable[Mapping[str, Any]]
) -> Dict[str, Any]:
    """Insert rows into one section, skipping DNIs that already exist."""

    async with async_session() as session:
        section = await session.get(Section, section_id)
        if section is None or section.grade_id != grade_id:
            raise NotFoundError("Section", section_id)

        existing = set((await session.scalars(select(Student.dni))).all())
        to_insert: List[Student] = []
        skipped = 0
        for row in rows:
            dni = normalize_dni(row.get("dni"))
            if not dni or dni in existing:
                skipped += 1
                continue
            existing.add(dni)
            to_insert.append(
                Student(
                    first_name=row.get("first_name"),
                    last_name=row.get("last_name"),
                    dni=dni,
                    grade_id=grade_id,
                    section_id=section_id,
                )
            )

        if to_insert:
            session.add_all(to_insert)
            await session.commit()
        inserted_ids = [student.id for student in to_insert]

        imported: List[Dict[str, Any]] = []
        if inserted_ids:
            students = (
                await session.scalars(
                    _with_placement(select(Student))
                    .where(Student.id.in_(inserted_ids))
                    .execution_options(populate_existing=True)
                )
            ).all()
            imported = [serialize_student(student) for student in students]

    logger.info("Imported %d students (%d skipped)", len(imported), skipped)
    return {"imported": len(imported), "skipped": skipped, "students": imported}
