from __future__ import annotations

import logging
from datetime import date, datetime, timezone
from typing import Any, Dict, Iterable, List, Optional

from sqlalchemy import select

from alerta.core.db import async_session
from alerta.core.sanitizers import clean_labels, clean_optional_text
from alerta.domain.errors import InvalidStatusTransition, NotFoundError
from alerta.domain.models import Incident, IncidentStatus, Profile

from .students import display_name, require_student, student_names

__all__ = [
    "create_incident",
    "list_incidents",
    "list_recent_incidents",
    "serialize_incident",
    "update_incident_status",
]

logger = logging.getLogger(__name__)


def serialize_incident(
    incident: Incident,
    student_name: str,
    *,
    registered_by_name: Optional[str] = None,
    attended_by_name: Optional[str] = None,
) -> Dict[str, Any]:
    return {
        "id": incident.id,
        "student_id": incident.student_id,
        "student_name": student_name,
        "date": incident.date.isoformat(),
        "incident_types": list(incident.incident_types or []),
        "status": incident.status,
        "follow_up_notes": incident.follow_up_notes,
        "registered_by": registered_by_name,
        "registered_by_id": incident.registered_by,
        "attended_by": attended_by_name,
        "attended_by_id": incident.attended_by,
        "attended_date": incident.attended_date.isoformat() if incident.attended_date else None,
        "created_at": incident.created_at.isoformat() if incident.created_at else None,
    }


async def _serialize_many(session, incidents: List[Incident]) -> List[Dict[str, Any]]:
    names = await student_names(session, (incident.student_id for incident in incidents))
    profile_ids = {
        pid
        for incident in incidents
        for pid in (incident.registered_by, incident.attended_by)
        if pid
    }
    profiles: Dict[str, str] = {}
    if profile_ids:
        rows = await session.execute(
            select(Profile.id, Profile.name).where(Profile.id.in_(profile_ids))
        )
        profiles = {row.id: row.name for row in rows}
    return [
        serialize_incident(
            incident,
            display_name(names, incident.student_id),
            registered_by_name=profiles.get(incident.registered_by or ""),
            attended_by_name=profiles.get(incident.attended_by or ""),
        )
        for incident in incidents
    ]


async def list_incidents(
    *, status: Optional[str] = None, student_id: Optional[str] = None
) -> List[Dict[str, Any]]:
    query = select(Incident).order_by(Incident.date.desc(), Incident.created_at.desc())
    if status:
        query = query.where(Incident.status == status)
    if student_id:
        query = query.where(Incident.student_id == student_id)
    async with async_session() as session:
        incidents = list((await session.scalars(query)).all())
        return await _serialize_many(session, incidents)


async def list_recent_incidents(limit: int = 5) -> List[Dict[str, Any]]:
    query = select(Incident).order_by(Incident.created_at.desc()).limit(max(int(limit), 1))
    async with async_session() as session:
        incidents = list((await session.scalars(query)).all())
        return await _serialize_many(session, incidents)


async def create_incident(
    *,
    student_id: str,
    incident_date: date,
    incident_types: Iterable[str],
    follow_up_notes: Optional[str],
    registered_by: Optional[str],
) -> Dict[str, Any]:
    """Register a new incident; it always starts as Pendiente."""

    async with async_session() as session:
        await require_student(session, student_id)
        incident = Incident(
            student_id=student_id,
            date=incident_date,
            incident_types=clean_labels(incident_types),
            status=IncidentStatus.PENDING,
            follow_up_notes=clean_optional_text(follow_up_notes, max_length=4000),
            registered_by=registered_by,
        )
        session.add(incident)
        await session.commit()
        (payload,) = await _serialize_many(session, [incident])

    logger.info("Incident %s registered for student %s", payload["id"], student_id)
    return payload


async def update_incident_status(
    incident_id: str,
    *,
    status: str,
    follow_up_notes: Optional[str],
    attended_by: Optional[str],
) -> Dict[str, Any]:
    """Move a Pendiente incident to Atendido, stamping who attended it and when."""

    async with async_session() as session:
        incident = await session.get(Incident, incident_id)
        if incident is None:
            raise NotFoundError("Incident", incident_id)
        if status != IncidentStatus.ATTENDED or incident.status != IncidentStatus.PENDING:
            raise InvalidStatusTransition("Incident", incident.status, status)

        incident.status = IncidentStatus.ATTENDED
        notes = clean_optional_text(follow_up_notes, max_length=4000)
        if notes is not None:
            incident.follow_up_notes = notes
        incident.attended_by = attended_by
        incident.attended_date = datetime.now(timezone.utc)
        await session.commit()
        (payload,) = await _serialize_many(session, [incident])
        return payload
