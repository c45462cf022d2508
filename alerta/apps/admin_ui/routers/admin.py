import logging

from fastapi import APIRouter, Depends, Request
from fastapi.responses import JSONResponse

from alerta.apps.admin_ui.dependencies import get_query_cache
from alerta.apps.admin_ui.perf.cache.invalidation import invalidate_related
from alerta.apps.admin_ui.perf.cache.query_cache import QueryCache
from alerta.apps.admin_ui.security import Principal, require_admin
from alerta.apps.admin_ui.services.bulk_import import bulk_import_users
from alerta.core.audit import log_audit_action

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/admin", tags=["admin"])


@router.post("/bulk-import-users")
async def api_bulk_import_users(
    request: Request,
    cache: QueryCache = Depends(get_query_cache),
    _: Principal = Depends(require_admin),
) -> JSONResponse:
    try:
        body = await request.json()
    except ValueError:
        return JSONResponse({"error": "Users array is required"}, status_code=400)

    users = body.get("users") if isinstance(body, dict) else None
    if not isinstance(users, list):
        return JSONResponse({"error": "Users array is required"}, status_code=400)

    try:
        results = await bulk_import_users(users)
    except Exception:
        logger.exception("Bulk import API error")
        return JSONResponse({"error": "Internal server error"}, status_code=500)

    if results["imported"]:
        invalidate_related(cache, "user")
    await log_audit_action(
        "users_bulk_imported",
        "profile",
        None,
        changes={
            "imported": results["imported"],
            "skipped": results["skipped"],
            "errors": len(results["errors"]),
        },
    )
    return JSONResponse({"success": True, "results": results})
