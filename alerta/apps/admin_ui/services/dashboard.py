from __future__ import annotations

import logging
from collections import Counter
from datetime import date, timedelta
from typing import Any, Dict, List, Optional

from sqlalchemy import func, select, text
from sqlalchemy.exc import DBAPIError, SQLAlchemyError

from alerta.core.db import async_session, is_postgres
from alerta.domain.models import (
    Assignment,
    Dropout,
    Grade,
    Incident,
    IncidentStatus,
    Permission,
    PermissionStatus,
    RiskFactor,
    RiskLevel,
    Section,
    Student,
)

__all__ = ["dashboard_stats", "desertion_trend", "teacher_data"]

logger = logging.getLogger(__name__)

TREND_WINDOW_DAYS = 6 * 30


async def _call_procedure(name: str) -> Optional[Any]:
    """Call a reporting function when the database provides one.

    Only PostgreSQL deployments may define these functions; any failure falls
    back to the portable queries.
    """
    if not is_postgres():
        return None
    try:
        async with async_session() as session:
            return await session.scalar(text(f"SELECT {name}()"))
    except (DBAPIError, SQLAlchemyError) as exc:
        logger.info("Stored procedure %s unavailable, using fallback: %s", name, exc)
        return None


async def _count(session, model_column, *filters) -> int:
    return int(await session.scalar(select(func.count(model_column)).where(*filters)) or 0)


async def dashboard_stats() -> Dict[str, int]:
    data = await _call_procedure("get_dashboard_stats")
    if isinstance(data, dict):
        return data

    async with async_session() as session:
        return {
            "total_students": await _count(session, Student.id),
            "pending_incidents": await _count(
                session, Incident.id, Incident.status == IncidentStatus.PENDING
            ),
            "pending_permissions": await _count(
                session, Permission.id, Permission.status == PermissionStatus.PENDING
            ),
            "high_risk_students": await _count(
                session, func.distinct(RiskFactor.student_id), RiskFactor.level == RiskLevel.HIGH
            ),
            "total_desertions": await _count(session, Dropout.id),
        }


async def desertion_trend(today: Optional[date] = None) -> List[Dict[str, Any]]:
    """Monthly dropout counts over roughly the last six months, oldest first."""

    data = await _call_procedure("get_desertion_trend_data")
    if isinstance(data, list):
        return data

    since = (today or date.today()) - timedelta(days=TREND_WINDOW_DAYS)
    async with async_session() as session:
        dates = (
            await session.scalars(select(Dropout.dropout_date).where(Dropout.dropout_date >= since))
        ).all()
    monthly = Counter(value.strftime("%Y-%m") for value in dates)
    return [{"month": month, "desertions": monthly[month]} for month in sorted(monthly)]


async def teacher_data(teacher_id: str) -> Dict[str, Any]:
    async with async_session() as session:
        rows = (
            await session.execute(
                select(Section.id, Section.name, Section.grade_id, Grade.name)
                .join(Assignment, Assignment.section_id == Section.id)
                .join(Grade, Grade.id == Section.grade_id)
                .where(Assignment.teacher_id == teacher_id)
                .order_by(Grade.name, Section.name)
            )
        ).all()
        if not rows:
            return {"sections": [], "total_students": 0, "total_incidents": 0}

        section_ids = [row[0] for row in rows]
        per_section = dict(
            (
                await session.execute(
                    select(Student.section_id, func.count(Student.id))
                    .where(Student.section_id.in_(section_ids))
                    .group_by(Student.section_id)
                )
            ).all()
        )
        total_incidents = await _count(
            session,
            Incident.id,
            Incident.student_id.in_(
                select(Student.id).where(Student.section_id.in_(section_ids))
            ),
        )

    sections = [
        {
            "id": section_id,
            "name": name,
            "grade_id": grade_id,
            "grade": grade_name,
            "students": int(per_section.get(section_id, 0)),
        }
        for section_id, name, grade_id, grade_name in rows
    ]
    return {
        "sections": sections,
        "total_students": sum(section["students"] for section in sections),
        "total_incidents": total_incidents,
    }
