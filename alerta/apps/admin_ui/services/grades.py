from __future__ import annotations

import logging
from typing import Any, Dict, Iterable, List

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import selectinload

from alerta.core.db import async_session
from alerta.core.sanitizers import clean_text
from alerta.domain.errors import ConflictError, NotFoundError
from alerta.domain.models import Grade, Section

__all__ = [
    "add_sections",
    "create_grade",
    "delete_grade",
    "delete_section",
    "list_grades",
    "list_sections",
    "rename_grade",
    "rename_section",
    "serialize_grade",
]

logger = logging.getLogger(__name__)


def serialize_section(section: Section) -> Dict[str, Any]:
    return {"id": section.id, "name": section.name, "grade_id": section.grade_id}


def serialize_grade(grade: Grade) -> Dict[str, Any]:
    return {
        "id": grade.id,
        "name": grade.name,
        "sections": [serialize_section(section) for section in grade.sections],
    }


def _unique_names(names: Iterable[str], max_length: int) -> List[str]:
    seen: List[str] = []
    for raw in names:
        name = clean_text(raw, max_length=max_length)
        if name and name not in seen:
            seen.append(name)
    return seen


async def list_grades() -> List[Dict[str, Any]]:
    async with async_session() as session:
        grades = (
            await session.scalars(
                select(Grade).options(selectinload(Grade.sections)).order_by(Grade.name.asc())
            )
        ).all()
        return [serialize_grade(grade) for grade in grades]


async def list_sections() -> List[Dict[str, Any]]:
    async with async_session() as session:
        rows = await session.execute(
            select(Section, Grade.name)
            .join(Grade, Grade.id == Section.grade_id)
            .order_by(Grade.name.asc(), Section.name.asc())
        )
        return [
            {**serialize_section(section), "grade": grade_name}
            for section, grade_name in rows
        ]


async def create_grade(name: str, section_names: Iterable[str] = ()) -> Dict[str, Any]:
    async with async_session() as session:
        grade = Grade(name=name)
        grade.sections = [Section(name=item) for item in _unique_names(section_names, 40)]
        session.add(grade)
        try:
            await session.commit()
        except IntegrityError as exc:
            raise ConflictError(f"Grade '{grade.name}' already exists") from exc
        grade_id = grade.id

    logger.info("Grade %s created", grade_id)
    return await _get_grade(grade_id)


async def _get_grade(grade_id: str) -> Dict[str, Any]:
    async with async_session() as session:
        grade = await session.scalar(
            select(Grade).options(selectinload(Grade.sections)).where(Grade.id == grade_id)
        )
        if grade is None:
            raise NotFoundError("Grade", grade_id)
        return serialize_grade(grade)


async def rename_grade(grade_id: str, name: str) -> Dict[str, Any]:
    async with async_session() as session:
        grade = await session.get(Grade, grade_id)
        if grade is None:
            raise NotFoundError("Grade", grade_id)
        grade.name = name
        try:
            await session.commit()
        except IntegrityError as exc:
            raise ConflictError(f"Grade '{name}' already exists") from exc
    return await _get_grade(grade_id)


async def delete_grade(grade_id: str) -> None:
    async with async_session() as session:
        grade = await session.scalar(
            select(Grade).options(selectinload(Grade.sections)).where(Grade.id == grade_id)
        )
        if grade is None:
            raise NotFoundError("Grade", grade_id)
        await session.delete(grade)
        await session.commit()
    logger.info("Grade %s deleted", grade_id)


async def add_sections(grade_id: str, names: Iterable[str]) -> List[Dict[str, Any]]:
    """Add the given sections to a grade; names already present are ignored."""

    async with async_session() as session:
        grade = await session.scalar(
            select(Grade).options(selectinload(Grade.sections)).where(Grade.id == grade_id)
        )
        if grade is None:
            raise NotFoundError("Grade", grade_id)
        existing = {section.name for section in grade.sections}
        created = [
            Section(name=name, grade_id=grade.id)
            for name in _unique_names(names, 40)
            if name not in existing
        ]
        session.add_all(created)
        await session.commit()
        return [serialize_section(section) for section in created]


async def rename_section(section_id: str, name: str) -> Dict[str, Any]:
    async with async_session() as session:
        section = await session.get(Section, section_id)
        if section is None:
            raise NotFoundError("Section", section_id)
        section.name = name
        try:
            await session.commit()
        except IntegrityError as exc:
            raise ConflictError(f"Section '{name}' already exists in this grade") from exc
        return serialize_section(section)


async def delete_section(section_id: str) -> None:
    async with async_session() as session:
        section = await session.get(Section, section_id)
        if section is None:
            raise NotFoundError("Section", section_id)
        await session.delete(section)
        await session.commit()
