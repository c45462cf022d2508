import logging

from fastapi import APIRouter, Request
from fastapi.responses import HTMLResponse, JSONResponse
from sqlalchemy import text

from alerta.core.db import async_session

logger = logging.getLogger(__name__)

router = APIRouter()

_LOGIN_PAGE = """<!doctype html>
<html lang="es">
<head><meta charset="utf-8"><title>Alerta Educativa</title></head>
<body>
<form id="login">
  <input name="email" type="email" placeholder="Correo" required>
  <input name="password" type="password" placeholder="Contraseña" required>
  <button type="submit">Ingresar</button>
  <p id="error" role="alert"></p>
</form>
<script>
document.getElementById("login").addEventListener("submit", async (event) => {
  event.preventDefault();
  const form = new FormData(event.target);
  const response = await fetch("/api/auth/login", {
    method: "POST",
    headers: {"Content-Type": "application/json"},
    body: JSON.stringify({email: form.get("email"), password: form.get("password")}),
  });
  if (response.ok) {
    const target = new URLSearchParams(window.location.search).get("redirect") || "/dashboard";
    window.location.assign(target.startsWith("/") && !target.startsWith("//") ? target : "/dashboard");
  } else {
    document.getElementById("error").textContent = "Credenciales inválidas";
  }
});
</script>
</body>
</html>
"""


@router.get("/login", include_in_schema=False)
async def login_page() -> HTMLResponse:
    return HTMLResponse(_LOGIN_PAGE)


@router.get("/health", include_in_schema=False)
async def health_check(request: Request) -> JSONResponse:
    checks = {
        "database": "ok",
        "query_cache": "ok" if getattr(request.app.state, "query_cache", None) else "missing",
    }
    status_code = 200
    if checks["query_cache"] == "missing":
        status_code = 503

    try:
        async with async_session() as session:
            await session.execute(text("SELECT 1"))
    except Exception:
        logger.exception("Health check database probe failed")
        checks["database"] = "error"
        status_code = 503

    cache_client = getattr(request.app.state, "cache_client", None)
    if cache_client is not None:
        # Redis only backs cache persistence; an outage degrades, it does not fail.
        checks["redis"] = "ok" if await cache_client.ping() else "degraded"

    return JSONResponse(
        {"status": "ok" if status_code == 200 else "error", "checks": checks},
        status_code=status_code,
    )


@router.get("/api/health/middleware")
async def middleware_health(request: Request) -> JSONResponse:
    limits = request.app.state.rate_limiter.stats()
    return JSONResponse(
        {
            "rate_limit_entries": limits["entries"],
            "timestamp": limits["timestamp"],
            "query_cache": request.app.state.query_cache.stats(),
        }
    )
