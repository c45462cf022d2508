from __future__ import annotations

import logging
from typing import Any, Dict, Iterable, List, Mapping, Optional

from sqlalchemy import select

from alerta.core.db import async_session
from alerta.domain.errors import InvalidReferenceError, NotFoundError
from alerta.domain.models import Assignment, Profile, Role, Section

__all__ = ["add_assignments", "list_assignments", "remove_assignment", "serialize_assignment"]

logger = logging.getLogger(__name__)


def serialize_assignment(assignment: Assignment) -> Dict[str, Any]:
    return {
        "id": assignment.id,
        "teacher_id": assignment.teacher_id,
        "grade_id": assignment.grade_id,
        "section_id": assignment.section_id,
    }


async def list_assignments(*, teacher_id: Optional[str] = None) -> List[Dict[str, Any]]:
    query = select(Assignment)
    if teacher_id:
        query = query.where(Assignment.teacher_id == teacher_id)
    async with async_session() as session:
        return [serialize_assignment(item) for item in (await session.scalars(query)).all()]


async def add_assignments(items: Iterable[Mapping[str, Any]]) -> List[Dict[str, Any]]:
    """Create the given assignments; triples that already exist are skipped."""

    async with async_session() as session:
        existing = {
            (row.teacher_id, row.grade_id, row.section_id)
            for row in (await session.execute(
                select(Assignment.teacher_id, Assignment.grade_id, Assignment.section_id)
            ))
        }
        created: List[Assignment] = []
        for item in items:
            triple = (item["teacher_id"], item["grade_id"], item["section_id"])
            if triple in existing:
                continue
            teacher = await session.get(Profile, triple[0])
            if teacher is None or teacher.role not in Role.PERSONNEL:
                raise InvalidReferenceError(f"Profile '{triple[0]}' is not teaching personnel")
            section = await session.get(Section, triple[2])
            if section is None or section.grade_id != triple[1]:
                raise InvalidReferenceError("The section does not belong to the selected grade")
            existing.add(triple)
            created.append(Assignment(teacher_id=triple[0], grade_id=triple[1], section_id=triple[2]))

        if created:
            session.add_all(created)
            await session.commit()
        logger.info("Created %d assignments", len(created))
        return [serialize_assignment(item) for item in created]


async def remove_assignment(assignment_id: str) -> None:
    async with async_session() as session:
        assignment = await session.get(Assignment, assignment_id)
        if assignment is None:
            raise NotFoundError("Assignment", assignment_id)
        await session.delete(assignment)
        await session.commit()
