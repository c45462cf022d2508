from __future__ import annotations

import logging
from datetime import date
from typing import Any, Dict, Iterable, List, Optional

from sqlalchemy import select

from alerta.core.db import async_session
from alerta.core.sanitizers import clean_labels
from alerta.domain.errors import InvalidStatusTransition, NotFoundError
from alerta.domain.models import Permission, PermissionStatus

from .students import display_name, require_student, student_names

__all__ = [
    "create_permission",
    "list_permissions",
    "serialize_permission",
    "update_permission_status",
]

logger = logging.getLogger(__name__)


def serialize_permission(permission: Permission, student_name: str) -> Dict[str, Any]:
    return {
        "id": permission.id,
        "student_id": permission.student_id,
        "student_name": student_name,
        "request_date": permission.request_date.isoformat(),
        "permission_types": list(permission.permission_types or []),
        "status": permission.status,
    }


async def list_permissions(*, status: Optional[str] = None) -> List[Dict[str, Any]]:
    query = select(Permission).order_by(Permission.request_date.desc())
    if status:
        query = query.where(Permission.status == status)
    async with async_session() as session:
        permissions = (await session.scalars(query)).all()
        names = await student_names(session, (p.student_id for p in permissions))
        return [serialize_permission(p, display_name(names, p.student_id)) for p in permissions]


async def create_permission(
    *, student_id: str, request_date: date, permission_types: Iterable[str]
) -> Dict[str, Any]:
    async with async_session() as session:
        student = await require_student(session, student_id)
        permission = Permission(
            student_id=student_id,
            request_date=request_date,
            permission_types=clean_labels(permission_types),
            status=PermissionStatus.PENDING,
        )
        session.add(permission)
        await session.commit()
        logger.info("Permission %s requested for student %s", permission.id, student_id)
        return serialize_permission(permission, student.full_name)


async def update_permission_status(permission_id: str, status: str) -> Dict[str, Any]:
    """Resolve a pending permission as Aprobado or Rechazado."""

    async with async_session() as session:
        permission = await session.get(Permission, permission_id)
        if permission is None:
            raise NotFoundError("Permission", permission_id)
        if status not in PermissionStatus.RESOLUTIONS or permission.status != PermissionStatus.PENDING:
            raise InvalidStatusTransition("Permission", permission.status, status)
        permission.status = status
        await session.commit()
        names = await student_names(session, [permission.student_id])
        return serialize_permission(permission, display_name(names, permission.student_id))
