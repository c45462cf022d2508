"""Audit trail of mutations performed through the API."""

from __future__ import annotations

import json
import logging
from contextvars import ContextVar
from dataclasses import dataclass
from typing import Any, Mapping, Optional

from fastapi import Request

from alerta.core.db import async_session
from alerta.domain.models import AuditLog

logger = logging.getLogger(__name__)

_USER_AGENT_MAX = 255


@dataclass(frozen=True)
class AuditContext:
    username: Optional[str] = None
    ip_address: Optional[str] = None
    user_agent: Optional[str] = None

    @classmethod
    def from_request(
        cls,
        request: Request,
        *,
        username: Optional[str] = None,
        ip_address: Optional[str] = None,
    ) -> "AuditContext":
        if ip_address is None and request.client:
            ip_address = request.client.host
        user_agent = (request.headers.get("user-agent") or "")[:_USER_AGENT_MAX]
        return cls(username=username, ip_address=ip_address, user_agent=user_agent or None)


_current: ContextVar[AuditContext] = ContextVar("alerta_audit_context", default=AuditContext())


def bind_audit_context(ctx: AuditContext) -> None:
    """Attribute audit rows written later in this request to ``ctx``."""
    _current.set(ctx)


def current_audit_context() -> AuditContext:
    return _current.get()


def _jsonable(changes: Optional[Mapping[str, Any]]) -> Optional[dict]:
    if not changes:
        return None
    # Dates and UUIDs are stored as strings.
    return json.loads(json.dumps(dict(changes), default=str))


async def log_audit_action(
    action: str,
    entity_type: Optional[str],
    entity_id: Optional[str | int],
    *,
    changes: Optional[Mapping[str, Any]] = None,
    ctx: Optional[AuditContext] = None,
) -> None:
    """Store one audit row; a failed write is logged and swallowed."""

    context = ctx or current_audit_context()
    try:
        payload = _jsonable(changes)
    except (TypeError, ValueError):
        logger.warning("Audit changes for %s are not serialisable", action)
        payload = {"_unserializable": repr(changes)}

    try:
        async with async_session() as session:
            session.add(
                AuditLog(
                    action=action,
                    entity_type=entity_type,
                    entity_id=None if entity_id is None else str(entity_id),
                    username=context.username,
                    ip_address=context.ip_address,
                    user_agent=context.user_agent,
                    changes=payload,
                )
            )
            await session.commit()
    except Exception:
        logger.warning("Failed to write audit log for %s", action, exc_info=True)


__all__ = [
    "AuditContext",
    "bind_audit_context",
    "current_audit_context",
    "log_audit_action",
]
