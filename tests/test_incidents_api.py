from alerta.apps.admin_ui.perf.cache import keys


async def _student(client, dni="12345678"):
    response = await client.post(
        "/api/students", json={"first_name": "Ana", "last_name": "Quispe", "dni": dni}
    )
    assert response.status_code == 201
    return response.json()


async def _incident(client, student_id, **overrides):
    payload = {
        "student_id": student_id,
        "date": "2024-04-10",
        "incident_types": ["Vandalismo", " Vandalismo ", "Conflicto con compañero"],
    }
    payload.update(overrides)
    response = await client.post("/api/incidents", json=payload)
    assert response.status_code == 201, response.text
    return response.json()


async def test_create_incident_starts_pending(admin_client, admin):
    student = await _student(admin_client)

    incident = await _incident(admin_client, student["id"], follow_up_notes="Llamar a casa")

    assert incident["status"] == "Pendiente"
    assert incident["student_name"] == "Ana Quispe"
    assert incident["incident_types"] == ["Vandalismo", "Conflicto con compañero"]
    assert incident["registered_by_id"] == admin["id"]
    assert incident["registered_by"] == "Ada Admin"


async def test_incident_for_unknown_student_is_not_found(admin_client):
    response = await admin_client.post(
        "/api/incidents",
        json={"student_id": "missing", "date": "2024-04-10", "incident_types": ["Vandalismo"]},
    )

    assert response.status_code == 404


async def test_new_incident_is_prepended_to_cached_recent_list(app, admin_client):
    student = await _student(admin_client)
    first = await _incident(admin_client, student["id"])
    recent = (await admin_client.get("/api/incidents/recent")).json()
    assert [item["id"] for item in recent] == [first["id"]]

    second = await _incident(admin_client, student["id"])

    cached = app.state.query_cache.get_query_data(keys.recent_incidents())
    assert [item["id"] for item in cached] == [second["id"], first["id"]]
    served = (await admin_client.get("/api/incidents/recent")).json()
    assert [item["id"] for item in served] == [second["id"], first["id"]]


async def test_filter_incidents_by_status(admin_client):
    student = await _student(admin_client)
    pending = await _incident(admin_client, student["id"])
    attended = await _incident(admin_client, student["id"])
    await admin_client.patch(f"/api/incidents/{attended['id']}/status", json={"status": "Atendido"})

    only_pending = (await admin_client.get("/api/incidents", params={"status": "Pendiente"})).json()

    assert [item["id"] for item in only_pending] == [pending["id"]]


async def test_attend_incident_stamps_attendant(admin_client, admin):
    student = await _student(admin_client)
    incident = await _incident(admin_client, student["id"])

    response = await admin_client.patch(
        f"/api/incidents/{incident['id']}/status",
        json={"status": "Atendido", "follow_up_notes": "Reunión con apoderado"},
    )

    body = response.json()
    assert response.status_code == 200
    assert body["status"] == "Atendido"
    assert body["attended_by_id"] == admin["id"]
    assert body["attended_date"] is not None
    assert body["follow_up_notes"] == "Reunión con apoderado"


async def test_attended_incident_cannot_be_reopened(admin_client):
    student = await _student(admin_client)
    incident = await _incident(admin_client, student["id"])
    await admin_client.patch(f"/api/incidents/{incident['id']}/status", json={"status": "Atendido"})

    response = await admin_client.patch(
        f"/api/incidents/{incident['id']}/status", json={"status": "Pendiente"}
    )

    assert response.status_code == 422
    assert response.json()["toast"]["title"] == "Cambio de estado no permitido"


async def test_permission_lifecycle(admin_client):
    student = await _student(admin_client)
    created = await admin_client.post(
        "/api/permissions",
        json={
            "student_id": student["id"],
            "request_date": "2024-05-02",
            "permission_types": ["Excursión"],
        },
    )
    assert created.status_code == 201
    permission = created.json()
    assert permission["status"] == "Pendiente"

    approved = await admin_client.patch(
        f"/api/permissions/{permission['id']}/status", json={"status": "Aprobado"}
    )
    assert approved.json()["status"] == "Aprobado"

    again = await admin_client.patch(
        f"/api/permissions/{permission['id']}/status", json={"status": "Rechazado"}
    )
    assert again.status_code == 422

    listed = (await admin_client.get("/api/permissions", params={"status": "Aprobado"})).json()
    assert [item["id"] for item in listed] == [permission["id"]]


async def test_nee_and_dropout_records(admin_client):
    student = await _student(admin_client)

    nee = await admin_client.post(
        "/api/nee",
        json={
            "student_id": student["id"],
            "diagnosis": "Dislexia",
            "evaluation_date": "2024-03-01",
            "support_plan": "Lectura guiada",
        },
    )
    dropout = await admin_client.post(
        "/api/dropouts",
        json={
            "student_id": student["id"],
            "dropout_date": "2024-06-15",
            "reason": "Reubicación",
        },
    )

    assert nee.status_code == 201
    assert dropout.status_code == 201
    assert dropout.json()["notes"] == ""
    assert [item["diagnosis"] for item in (await admin_client.get("/api/nee")).json()] == ["Dislexia"]
    assert len((await admin_client.get("/api/dropouts")).json()) == 1


async def test_risk_factor_update_and_level_filter(admin_client):
    student = await _student(admin_client)
    created = await admin_client.post(
        "/api/risks",
        json={"student_id": student["id"], "category": "Attendance", "level": "Low"},
    )
    risk = created.json()

    updated = await admin_client.patch(f"/api/risks/{risk['id']}", json={"level": "High"})

    assert updated.json()["level"] == "High"
    high = (await admin_client.get("/api/risks", params={"level": "High"})).json()
    low = (await admin_client.get("/api/risks", params={"level": "Low"})).json()
    assert [item["id"] for item in high] == [risk["id"]]
    assert low == []


async def test_invalid_risk_level_is_rejected(admin_client):
    student = await _student(admin_client)

    response = await admin_client.post(
        "/api/risks",
        json={"student_id": student["id"], "category": "Attendance", "level": "Extreme"},
    )

    assert response.status_code == 422
