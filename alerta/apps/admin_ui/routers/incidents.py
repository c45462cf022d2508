from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, Depends, Query, status

from alerta.apps.admin_ui.dependencies import get_query_cache
from alerta.apps.admin_ui.perf.cache import keys
from alerta.apps.admin_ui.perf.cache.invalidation import invalidate_related, record_incident_created
from alerta.apps.admin_ui.perf.cache.query_cache import QueryCache
from alerta.apps.admin_ui.schemas import IncidentCreate, IncidentStatusName, IncidentStatusUpdate
from alerta.apps.admin_ui.security import Principal, current_principal
from alerta.apps.admin_ui.services import incidents as incidents_service
from alerta.core.audit import log_audit_action

router = APIRouter(prefix="/api/incidents", tags=["incidents"])


@router.get("")
async def api_list_incidents(
    status_filter: Optional[IncidentStatusName] = Query(None, alias="status"),
    student_id: Optional[str] = Query(None),
    cache: QueryCache = Depends(get_query_cache),
    _: Principal = Depends(current_principal),
):
    return await cache.fetch_query(
        keys.incidents_list(status=status_filter, student_id=student_id),
        lambda: incidents_service.list_incidents(status=status_filter, student_id=student_id),
    )


@router.get("/recent")
async def api_recent_incidents(
    limit: int = Query(keys.RECENT_INCIDENTS_LIMIT, ge=1, le=50),
    cache: QueryCache = Depends(get_query_cache),
    _: Principal = Depends(current_principal),
):
    return await cache.fetch_query(
        keys.recent_incidents(limit),
        lambda: incidents_service.list_recent_incidents(limit),
    )


@router.post("", status_code=status.HTTP_201_CREATED)
async def api_create_incident(
    payload: IncidentCreate,
    cache: QueryCache = Depends(get_query_cache),
    principal: Principal = Depends(current_principal),
):
    incident = await cache.run_mutation(
        lambda: incidents_service.create_incident(
            student_id=payload.student_id,
            incident_date=payload.date,
            incident_types=payload.incident_types,
            follow_up_notes=payload.follow_up_notes,
            registered_by=principal.id,
        )
    )
    record_incident_created(cache, incident)
    await log_audit_action(
        "incident_created",
        "incident",
        incident["id"],
        changes={"student_id": payload.student_id, "incident_types": incident["incident_types"]},
    )
    return incident


@router.patch("/{incident_id}/status")
async def api_update_incident_status(
    incident_id: str,
    payload: IncidentStatusUpdate,
    cache: QueryCache = Depends(get_query_cache),
    principal: Principal = Depends(current_principal),
):
    incident = await cache.run_mutation(
        lambda: incidents_service.update_incident_status(
            incident_id,
            status=payload.status,
            follow_up_notes=payload.follow_up_notes,
            attended_by=principal.id,
        )
    )
    invalidate_related(cache, "incident", incident_id)
    await log_audit_action(
        "incident_status_changed", "incident", incident_id, changes={"status": payload.status}
    )
    return incident
