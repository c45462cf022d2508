"""NEE records, dropouts and risk factors: append-mostly student records."""

from __future__ import annotations

import logging
from datetime import date
from typing import Any, Dict, List, Mapping, Optional

from sqlalchemy import select

from alerta.core.db import async_session
from alerta.core.sanitizers import clean_optional_text, clean_text
from alerta.domain.errors import NotFoundError
from alerta.domain.models import Dropout, NeeRecord, RiskFactor

from .students import display_name, require_student, student_names

__all__ = [
    "create_dropout",
    "create_nee",
    "create_risk",
    "list_dropouts",
    "list_nee",
    "list_risks",
    "update_risk",
]

logger = logging.getLogger(__name__)


def serialize_nee(record: NeeRecord, student_name: str) -> Dict[str, Any]:
    return {
        "id": record.id,
        "student_id": record.student_id,
        "student_name": student_name,
        "diagnosis": record.diagnosis,
        "evaluation_date": record.evaluation_date.isoformat(),
        "support_plan": record.support_plan,
    }


def serialize_dropout(record: Dropout, student_name: str) -> Dict[str, Any]:
    return {
        "id": record.id,
        "student_id": record.student_id,
        "student_name": student_name,
        "dropout_date": record.dropout_date.isoformat(),
        "reason": record.reason,
        "notes": record.notes or "",
    }


def serialize_risk(record: RiskFactor, student_name: str) -> Dict[str, Any]:
    return {
        "id": record.id,
        "student_id": record.student_id,
        "student_name": student_name,
        "category": record.category,
        "level": record.level,
        "notes": record.notes or "",
        "created_at": record.created_at.isoformat() if record.created_at else None,
    }


async def _list(model, order_by, serializer, *filters) -> List[Dict[str, Any]]:
    async with async_session() as session:
        records = (await session.scalars(select(model).where(*filters).order_by(order_by))).all()
        names = await student_names(session, (record.student_id for record in records))
        return [serializer(record, display_name(names, record.student_id)) for record in records]


async def list_nee() -> List[Dict[str, Any]]:
    return await _list(NeeRecord, NeeRecord.evaluation_date.desc(), serialize_nee)


async def list_dropouts() -> List[Dict[str, Any]]:
    return await _list(Dropout, Dropout.dropout_date.desc(), serialize_dropout)


async def list_risks(*, level: Optional[str] = None) -> List[Dict[str, Any]]:
    filters = [RiskFactor.level == level] if level else []
    return await _list(RiskFactor, RiskFactor.created_at.desc(), serialize_risk, *filters)


async def create_nee(
    *, student_id: str, diagnosis: str, evaluation_date: date, support_plan: Optional[str]
) -> Dict[str, Any]:
    async with async_session() as session:
        student = await require_student(session, student_id)
        record = NeeRecord(
            student_id=student_id,
            diagnosis=clean_text(diagnosis, max_length=160),
            evaluation_date=evaluation_date,
            support_plan=clean_optional_text(support_plan, max_length=4000),
        )
        session.add(record)
        await session.commit()
        return serialize_nee(record, student.full_name)


async def create_dropout(
    *, student_id: str, dropout_date: date, reason: str, notes: Optional[str]
) -> Dict[str, Any]:
    async with async_session() as session:
        student = await require_student(session, student_id)
        record = Dropout(
            student_id=student_id,
            dropout_date=dropout_date,
            reason=clean_text(reason, max_length=160),
            notes=clean_optional_text(notes, max_length=4000),
        )
        session.add(record)
        await session.commit()
        logger.info("Dropout %s recorded for student %s", record.id, student_id)
        return serialize_dropout(record, student.full_name)


async def create_risk(
    *, student_id: str, category: str, level: str, notes: Optional[str]
) -> Dict[str, Any]:
    async with async_session() as session:
        student = await require_student(session, student_id)
        record = RiskFactor(
            student_id=student_id,
            category=category,
            level=level,
            notes=clean_optional_text(notes, max_length=4000) or "",
        )
        session.add(record)
        await session.commit()
        return serialize_risk(record, student.full_name)


async def update_risk(risk_id: str, changes: Mapping[str, Any]) -> Dict[str, Any]:
    async with async_session() as session:
        record = await session.get(RiskFactor, risk_id)
        if record is None:
            raise NotFoundError("Risk factor", risk_id)
        if changes.get("category"):
            record.category = changes["category"]
        if changes.get("level"):
            record.level = changes["level"]
        if "notes" in changes:
            record.notes = clean_optional_text(changes["notes"], max_length=4000) or ""
        await session.commit()
        names = await student_names(session, [record.student_id])
        return serialize_risk(record, display_name(names, record.student_id))
