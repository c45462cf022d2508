from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException, Query, status

from alerta.apps.admin_ui.dependencies import get_catalogs
from alerta.apps.admin_ui.schemas import CatalogEntry
from alerta.apps.admin_ui.security import Principal, current_principal, require_staff_manager
from alerta.domain.catalogs import CatalogRegistry, UnknownCatalogError

router = APIRouter(prefix="/api/catalogs", tags=["catalogs"])


def _unknown(kind: str) -> HTTPException:
    return HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=f"Unknown catalog '{kind}'")


@router.get("")
async def api_list_catalogs(
    catalogs: CatalogRegistry = Depends(get_catalogs),
    _: Principal = Depends(current_principal),
):
    return catalogs.snapshot()


@router.get("/{kind}")
async def api_get_catalog(
    kind: str,
    catalogs: CatalogRegistry = Depends(get_catalogs),
    _: Principal = Depends(current_principal),
):
    try:
        return {"kind": kind, "values": catalogs.get(kind)}
    except UnknownCatalogError:
        raise _unknown(kind) from None


@router.post("/{kind}")
async def api_add_catalog_entry(
    kind: str,
    payload: CatalogEntry,
    catalogs: CatalogRegistry = Depends(get_catalogs),
    _: Principal = Depends(require_staff_manager),
):
    try:
        return {"kind": kind, "values": catalogs.add(kind, payload.value)}
    except UnknownCatalogError:
        raise _unknown(kind) from None


@router.delete("/{kind}")
async def api_delete_catalog_entry(
    kind: str,
    value: str = Query(..., max_length=160),
    catalogs: CatalogRegistry = Depends(get_catalogs),
    _: Principal = Depends(require_staff_manager),
):
    try:
        return {"kind": kind, "values": catalogs.delete(kind, value)}
    except UnknownCatalogError:
        raise _unknown(kind) from None
