from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, Depends, Query, status

from alerta.apps.admin_ui.dependencies import get_query_cache
from alerta.apps.admin_ui.perf.cache import keys
from alerta.apps.admin_ui.perf.cache.invalidation import invalidate_related
from alerta.apps.admin_ui.perf.cache.query_cache import QueryCache
from alerta.apps.admin_ui.schemas import (
    DropoutCreate,
    NeeCreate,
    RiskCreate,
    RiskLevelName,
    RiskUpdate,
    changes_of,
)
from alerta.apps.admin_ui.security import Principal, current_principal
from alerta.apps.admin_ui.services import records as records_service
from alerta.core.audit import log_audit_action

router = APIRouter(prefix="/api", tags=["records"])


@router.get("/nee")
async def api_list_nee(
    cache: QueryCache = Depends(get_query_cache),
    _: Principal = Depends(current_principal),
):
    return await cache.fetch_query(keys.nee_list(), records_service.list_nee)


@router.post("/nee", status_code=status.HTTP_201_CREATED)
async def api_create_nee(
    payload: NeeCreate,
    cache: QueryCache = Depends(get_query_cache),
    _: Principal = Depends(current_principal),
):
    record = await cache.run_mutation(lambda: records_service.create_nee(**payload.model_dump()))
    invalidate_related(cache, "nee", record["id"])
    await log_audit_action(
        "nee_created", "nee", record["id"], changes={"student_id": payload.student_id}
    )
    return record


@router.get("/dropouts")
async def api_list_dropouts(
    cache: QueryCache = Depends(get_query_cache),
    _: Principal = Depends(current_principal),
):
    return await cache.fetch_query(keys.dropouts_list(), records_service.list_dropouts)


@router.post("/dropouts", status_code=status.HTTP_201_CREATED)
async def api_create_dropout(
    payload: DropoutCreate,
    cache: QueryCache = Depends(get_query_cache),
    _: Principal = Depends(current_principal),
):
    record = await cache.run_mutation(
        lambda: records_service.create_dropout(**payload.model_dump())
    )
    invalidate_related(cache, "dropout", record["id"])
    await log_audit_action(
        "dropout_created",
        "dropout",
        record["id"],
        changes={"student_id": payload.student_id, "reason": record["reason"]},
    )
    return record


@router.get("/risks")
async def api_list_risks(
    level: Optional[RiskLevelName] = Query(None),
    cache: QueryCache = Depends(get_query_cache),
    _: Principal = Depends(current_principal),
):
    return await cache.fetch_query(
        keys.risk_assessments(level=level),
        lambda: records_service.list_risks(level=level),
    )


@router.post("/risks", status_code=status.HTTP_201_CREATED)
async def api_create_risk(
    payload: RiskCreate,
    cache: QueryCache = Depends(get_query_cache),
    _: Principal = Depends(current_principal),
):
    record = await cache.run_mutation(lambda: records_service.create_risk(**payload.model_dump()))
    invalidate_related(cache, "risk", record["id"])
    await log_audit_action(
        "risk_created",
        "risk",
        record["id"],
        changes={"student_id": payload.student_id, "level": payload.level},
    )
    return record


@router.patch("/risks/{risk_id}")
async def api_update_risk(
    risk_id: str,
    payload: RiskUpdate,
    cache: QueryCache = Depends(get_query_cache),
    _: Principal = Depends(current_principal),
):
    changes = changes_of(payload)
    record = await cache.run_mutation(lambda: records_service.update_risk(risk_id, changes))
    invalidate_related(cache, "risk", risk_id)
    await log_audit_action("risk_updated", "risk", risk_id, changes=changes)
    return record
