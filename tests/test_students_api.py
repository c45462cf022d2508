from alerta.apps.admin_ui.perf.cache import keys


async def _grade_with_sections(client, name="1ro", sections=("A", "B")):
    response = await client.post("/api/grades", json={"name": name, "sections": list(sections)})
    assert response.status_code == 201
    return response.json()


async def _create_student(client, **overrides):
    payload = {"first_name": "Ana", "last_name": "Quispe", "dni": "12345678"}
    payload.update(overrides)
    response = await client.post("/api/students", json=payload)
    assert response.status_code == 201, response.text
    return response.json()


async def test_students_api_requires_login(client):
    response = await client.get("/api/students", follow_redirects=False)

    assert response.status_code == 303
    assert response.headers["location"] == "/login?redirect=%2Fapi%2Fstudents"


async def test_create_and_list_students(admin_client):
    grade = await _grade_with_sections(admin_client)
    section = grade["sections"][0]

    created = await _create_student(
        admin_client, grade_id=grade["id"], section_id=section["id"], dni="87.654.321"
    )
    assert created["dni"] == "87654321"
    assert created["name"] == "Ana Quispe"
    assert created["grade"] == "1ro"
    assert created["section"] == "A"

    listing = (await admin_client.get("/api/students")).json()
    assert listing["total"] == 1
    assert listing["students"][0]["id"] == created["id"]


async def test_list_is_cached_until_a_student_changes(app, admin_client):
    first = (await admin_client.get("/api/students")).json()
    assert first["total"] == 0

    cache = app.state.query_cache
    page_key = keys.students_paginated(page=0, page_size=20, section_id=None, search=None)
    assert page_key in cache

    await _create_student(admin_client)
    assert cache._entries[page_key].invalidated is True

    second = (await admin_client.get("/api/students")).json()
    assert second["total"] == 1


async def test_search_filters_by_name_and_dni(admin_client):
    await _create_student(admin_client, first_name="Ana", last_name="Quispe", dni="111")
    await _create_student(admin_client, first_name="Luis", last_name="Mamani", dni="222")

    by_name = (await admin_client.get("/api/students", params={"search": "mam"})).json()
    by_dni = (await admin_client.get("/api/students", params={"search": "111"})).json()

    assert [s["first_name"] for s in by_name["students"]] == ["Luis"]
    assert [s["first_name"] for s in by_dni["students"]] == ["Ana"]


async def test_duplicate_dni_returns_conflict_toast(admin_client):
    await _create_student(admin_client, dni="555")

    response = await admin_client.post(
        "/api/students", json={"first_name": "Otra", "last_name": "Persona", "dni": "555"}
    )

    assert response.status_code == 409
    body = response.json()
    assert body["toast"]["variant"] == "destructive"
    assert body["toast"]["title"] == "Conflicto"
    assert "555" in body["detail"]


async def test_section_must_belong_to_grade(admin_client):
    first = await _grade_with_sections(admin_client, "1ro", ["A"])
    second = await _grade_with_sections(admin_client, "2do", ["A"])

    response = await admin_client.post(
        "/api/students",
        json={
            "first_name": "Ana",
            "last_name": "Quispe",
            "dni": "1",
            "grade_id": first["id"],
            "section_id": second["sections"][0]["id"],
        },
    )

    assert response.status_code == 422
    assert response.json()["toast"]["title"] == "Referencia inválida"


async def test_update_student_refreshes_cached_list(admin_client):
    student = await _create_student(admin_client)
    await admin_client.get("/api/students")

    response = await admin_client.patch(
        f"/api/students/{student['id']}", json={"first_name": "Anita"}
    )

    assert response.status_code == 200
    assert response.json()["first_name"] == "Anita"
    listing = (await admin_client.get("/api/students")).json()
    assert listing["students"][0]["first_name"] == "Anita"


async def test_failed_update_restores_cached_list(app, admin_client):
    student = await _create_student(admin_client)
    await _create_student(admin_client, first_name="Luis", dni="999")
    await admin_client.get("/api/students")
    page_key = keys.students_paginated(page=0, page_size=20, section_id=None, search=None)
    before = app.state.query_cache.get_query_data(page_key)

    response = await admin_client.patch(f"/api/students/{student['id']}", json={"dni": "999"})

    assert response.status_code == 409
    assert app.state.query_cache.get_query_data(page_key) == before


async def test_moving_student_to_another_grade_drops_section(admin_client):
    first = await _grade_with_sections(admin_client, "1ro", ["A"])
    second = await _grade_with_sections(admin_client, "2do", ["B"])
    student = await _create_student(
        admin_client, grade_id=first["id"], section_id=first["sections"][0]["id"]
    )

    response = await admin_client.patch(
        f"/api/students/{student['id']}", json={"grade_id": second["id"]}
    )

    body = response.json()
    assert body["grade"] == "2do"
    assert body["section_id"] is None


async def test_delete_requires_admin(client, make_profile, login_as):
    teacher = await make_profile("Docente")
    login_as(client, teacher)
    student = await _create_student(client)

    forbidden = await client.delete(f"/api/students/{student['id']}")
    assert forbidden.status_code == 403
    assert forbidden.json()["toast"]["title"] == "Acceso denegado"

    admin = await make_profile("Admin")
    login_as(client, admin)
    deleted = await client.delete(f"/api/students/{student['id']}")
    assert deleted.status_code == 204
    assert (await client.get("/api/students")).json()["total"] == 0


async def test_import_students_skips_known_dni(admin_client):
    grade = await _grade_with_sections(admin_client, "3ro", ["C"])
    await _create_student(admin_client, dni="100")

    response = await admin_client.post(
        "/api/students/import",
        json={
            "grade_id": grade["id"],
            "section_id": grade["sections"][0]["id"],
            "students": [
                {"first_name": "Rosa", "last_name": "Huamán", "dni": "100"},
                {"first_name": "Pedro", "last_name": "Cruz", "dni": "200"},
                {"first_name": "Pedro", "last_name": "Cruz", "dni": "200"},
            ],
        },
    )

    assert response.status_code == 200
    body = response.json()
    assert body["imported"] == 1
    assert body["skipped"] == 2
    assert body["students"][0]["section"] == "C"


async def test_unknown_student_returns_not_found(admin_client):
    response = await admin_client.patch("/api/students/missing", json={"first_name": "X"})

    assert response.status_code == 404
    assert response.json()["toast"]["title"] == "No encontrado"
