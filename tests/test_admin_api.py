from sqlalchemy import select

from alerta.apps.admin_ui.perf.cache import keys
from alerta.core.db import async_session
from alerta.domain.models import AuditLog


async def test_profiles_list_filters_by_role(admin_client, make_profile):
    await make_profile("Docente", name="Beto Docente")
    await make_profile("Auxiliar", name="Carla Auxiliar")

    teachers = (await admin_client.get("/api/profiles", params={"role": "Docente"})).json()

    assert [profile["name"] for profile in teachers] == ["Beto Docente"]
    assert "password_hash" not in teachers[0]


async def test_user_can_edit_own_details_but_not_role(client, make_profile, login_as):
    teacher = await make_profile("Docente")
    login_as(client, teacher)

    renamed = await client.patch(f"/api/profiles/{teacher['id']}", json={"name": "Nombre Nuevo"})
    assert renamed.status_code == 200
    assert renamed.json()["name"] == "Nombre Nuevo"

    promote = await client.patch(f"/api/profiles/{teacher['id']}", json={"role": "Admin"})
    assert promote.status_code == 403

    other = await make_profile("Docente")
    foreign = await client.patch(f"/api/profiles/{other['id']}", json={"name": "X"})
    assert foreign.status_code == 403


async def test_profile_update_invalidates_cached_me(app, client, make_profile, login_as):
    teacher = await make_profile("Docente", name="Antes")
    login_as(client, teacher)
    assert (await client.get("/api/profiles/me")).json()["name"] == "Antes"
    assert keys.user_profile(teacher["id"]) in app.state.query_cache

    await client.patch(f"/api/profiles/{teacher['id']}", json={"name": "Después"})

    assert (await client.get("/api/profiles/me")).json()["name"] == "Después"


async def test_admin_changes_role_and_deletes_profile(admin_client, admin, make_profile):
    teacher = await make_profile("Docente")

    promoted = await admin_client.patch(f"/api/profiles/{teacher['id']}", json={"role": "Coordinador"})
    assert promoted.json()["role"] == "Coordinador"

    duplicate = await admin_client.patch(
        f"/api/profiles/{teacher['id']}", json={"email": admin["email"]}
    )
    assert duplicate.status_code == 409

    assert (await admin_client.delete(f"/api/profiles/{admin['id']}")).status_code == 403
    assert (await admin_client.delete(f"/api/profiles/{teacher['id']}")).status_code == 204
    assert (await admin_client.delete(f"/api/profiles/{teacher['id']}")).status_code == 404


async def test_settings_defaults_and_update(admin_client):
    defaults = (await admin_client.get("/api/settings")).json()
    assert defaults == {
        "allow_registration": False,
        "app_name": "Alerta Educativa",
        "institution_name": "Mi Institución",
        "logo_url": "",
        "primary_color": "#1F618D",
    }

    updated = await admin_client.put(
        "/api/settings", json={"institution_name": "I.E. San Martín", "primary_color": "#112233"}
    )
    assert updated.status_code == 200

    current = (await admin_client.get("/api/settings")).json()
    assert current["institution_name"] == "I.E. San Martín"
    assert current["primary_color"] == "#112233"


async def test_settings_reject_invalid_color(admin_client):
    response = await admin_client.put("/api/settings", json={"primary_color": "blue"})

    assert response.status_code == 422


async def test_settings_update_requires_admin(client, make_profile, login_as):
    login_as(client, await make_profile("Director"))

    response = await client.put("/api/settings", json={"app_name": "Otra"})

    assert response.status_code == 403


async def test_catalogs_add_and_delete(admin_client):
    catalogs = (await admin_client.get("/api/catalogs")).json()
    assert set(catalogs) == {
        "incident-types",
        "permission-types",
        "nee-diagnosis-types",
        "dropout-reasons",
    }
    assert "Vandalismo" in catalogs["incident-types"]

    added = await admin_client.post("/api/catalogs/dropout-reasons", json={"value": "  Trabajo  "})
    assert "Trabajo" in added.json()["values"]
    assert added.json()["values"] == sorted(added.json()["values"])

    removed = await admin_client.delete(
        "/api/catalogs/dropout-reasons", params={"value": "Trabajo"}
    )
    assert "Trabajo" not in removed.json()["values"]


async def test_unknown_catalog_is_not_found(admin_client):
    response = await admin_client.post("/api/catalogs/colores", json={"value": "Rojo"})

    assert response.status_code == 404
    assert (await admin_client.get("/api/catalogs/colores")).status_code == 404
    single = await admin_client.get("/api/catalogs/permission-types")
    assert single.json()["values"][0] == "Excursión"


async def test_catalog_changes_require_staff_manager(client, make_profile, login_as):
    login_as(client, await make_profile("Docente"))

    response = await client.post("/api/catalogs/incident-types", json={"value": "Otro"})

    assert response.status_code == 403


async def test_bulk_import_counts_imported_skipped_and_errors(admin_client, admin):
    response = await admin_client.post(
        "/api/admin/bulk-import-users",
        json={
            "users": [
                {"name": "Nueva Docente", "email": "nueva@colegio.edu", "password": "secreto1"},
                {"name": "Repetido", "email": admin["email"], "password": "secreto1"},
                {"name": "Sin Correo", "email": "no-es-correo", "password": "secreto1"},
                {"name": "Sin Clave", "email": "sinclave@colegio.edu"},
                "texto",
            ]
        },
    )

    assert response.status_code == 200
    body = response.json()
    assert body["success"] is True
    results = body["results"]
    assert results["imported"] == 1
    assert results["skipped"] == 1
    assert len(results["errors"]) == 3
    assert results["errors"][0].startswith("no-es-correo: ")
    assert results["errors"][1] == "sinclave@colegio.edu: Password is required"

    teachers = (await admin_client.get("/api/profiles", params={"role": "Docente"})).json()
    assert [profile["email"] for profile in teachers] == ["nueva@colegio.edu"]


async def test_bulk_import_requires_users_array(admin_client):
    missing = await admin_client.post("/api/admin/bulk-import-users", json={"users": "nope"})
    malformed = await admin_client.post(
        "/api/admin/bulk-import-users",
        content=b"{not json",
        headers={"Content-Type": "application/json"},
    )

    assert missing.status_code == 400
    assert missing.json() == {"error": "Users array is required"}
    assert malformed.status_code == 400


async def test_bulk_import_requires_admin(client, make_profile, login_as):
    login_as(client, await make_profile("Director"))

    response = await client.post("/api/admin/bulk-import-users", json={"users": []})

    assert response.status_code == 403


async def test_health_endpoints(admin_client):
    health = await admin_client.get("/health")
    assert health.status_code == 200
    assert health.json()["checks"]["database"] == "ok"

    middleware = await admin_client.get("/api/health/middleware")
    body = middleware.json()
    assert body["rate_limit_entries"] == 0
    assert "timestamp" in body
    assert body["query_cache"]["entries"] >= 0


async def test_mutations_are_audited_with_the_acting_user(admin_client, admin):
    await admin_client.put(
        "/api/settings",
        json={"app_name": "Alerta"},
        headers={"User-Agent": "pytest-agent"},
    )

    async with async_session() as session:
        rows = (
            await session.scalars(select(AuditLog).where(AuditLog.action == "settings_updated"))
        ).all()

    assert len(rows) == 1
    assert rows[0].username == admin["email"]
    assert rows[0].user_agent == "pytest-agent"
    assert rows[0].changes == {"app_name": "Alerta"}


async def test_bulk_import_reports_non_text_fields_and_keeps_going(admin_client):
    response = await admin_client.post(
        "/api/admin/bulk-import-users",
        json={
            "users": [
                {"name": "Uno", "email": "uno@colegio.edu", "password": "secreto1"},
                {"name": "Número", "email": 12345, "password": "secreto1"},
                {"name": "Clave", "email": "clave@colegio.edu", "password": 999999},
                {"name": "Dos", "email": "dos@colegio.edu", "password": "secreto1"},
            ]
        },
    )

    assert response.status_code == 200
    results = response.json()["results"]
    assert results["imported"] == 2
    assert results["errors"] == [
        "12345: email must be text",
        "clave@colegio.edu: password must be text",
    ]


async def test_middleware_health_reports_rate_limiter_stats(app, admin_client):
    app.state.rate_limiter.check("10.0.0.7")
    app.state.rate_limiter.check("10.0.0.8")

    body = (await admin_client.get("/api/health/middleware")).json()

    assert body["rate_limit_entries"] == 2
    assert body["timestamp"].endswith("+00:00")
