from app.models.learning import LearningUnit
from conftest import OTHER_USER_HEADERS, USER_HEADERS

MODULES_URL = "/api/v1/learning/modules"


def create_module(client, topic, headers=USER_HEADERS, **extra):
    response = client.post(MODULES_URL, json={"topic": topic, **extra}, headers=headers)
    assert response.status_code in (200, 201), response.text
    return response.json()


def add_units(client, module_id, titles, headers=USER_HEADERS):
    response = client.post(
        f"{MODULES_URL}/{module_id}/units",
        json={"units": [{"title": title} for title in titles]},
        headers=headers,
    )
    assert response.status_code == 201, response.text
    return response.json()


def complete_unit(client, module_id, unit_id, completed=True, headers=USER_HEADERS):
    return client.patch(
        f"{MODULES_URL}/{module_id}/units",
        json={"unitId": unit_id, "completed": completed},
        headers=headers,
    )


class TestPrincipal:

    def test_missing_user_header_is_unauthorized(self, client):
        response = client.get(MODULES_URL)
        assert response.status_code == 401
        assert response.json()["detail"]["code"] == "UNAUTHORIZED"


class TestModuleCreation:

    def test_create_module_with_default_title(self, client):
        response = client.post(MODULES_URL, json={"topic": "Flux LoRA training"}, headers=USER_HEADERS)

        assert response.status_code == 201
        body = response.json()
        assert body["isExisting"] is False
        module = body["module"]
        assert module["title"] == "Aprendiendo: Flux LoRA training"
        assert module["status"] == "ACTIVE"
        assert module["progress"] == 0
        assert module["units"] == []

    def test_blank_topic_is_invalid(self, client):
        response = client.post(MODULES_URL, json={"topic": "   "}, headers=USER_HEADERS)
        assert response.status_code == 400
        assert response.json()["detail"]["code"] == "TOPIC_REQUIRED"

    def test_similar_topic_reuses_active_module(self, client):
        first = create_module(client, "Aprende ComfyUI")
        create_module(client, "Docker para desarrolladores")

        response = client.post(MODULES_URL, json={"topic": "comfyui para principiantes"}, headers=USER_HEADERS)

        assert response.status_code == 200
        body = response.json()
        assert body["isExisting"] is True
        assert body["module"]["id"] == first["module"]["id"]

        # The reused module moves to the top of the list.
        listed = client.get(MODULES_URL, headers=USER_HEADERS).json()
        assert listed[0]["id"] == first["module"]["id"]

    def test_completed_modules_are_not_reused(self, client):
        first = create_module(client, "Aprende ComfyUI")["module"]
        unit = add_units(client, first["id"], ["Instalar"])["module"]["units"][0]
        complete_unit(client, first["id"], unit["id"])

        second = create_module(client, "Aprende ComfyUI")
        assert second["isExisting"] is False
        assert second["module"]["id"] != first["id"]

    def test_modules_are_scoped_to_their_owner(self, client):
        mine = create_module(client, "Aprende ComfyUI")["module"]

        theirs = create_module(client, "Aprende ComfyUI", headers=OTHER_USER_HEADERS)
        assert theirs["isExisting"] is False

        response = client.get(f"{MODULES_URL}/{mine['id']}", headers=OTHER_USER_HEADERS)
        assert response.status_code == 404
        assert [m["id"] for m in client.get(MODULES_URL, headers=OTHER_USER_HEADERS).json()] == [theirs["module"]["id"]]


class TestUnitsAndProgress:

    def test_progress_follows_completed_units(self, client):
        module = create_module(client, "Entrenar LoRA")["module"]
        units = add_units(client, module["id"], ["Preparar dataset", "Entrenar", "Probar"])["module"]["units"]
        assert [u["order"] for u in units] == [0, 1, 2]

        progress = []
        for unit in units:
            response = complete_unit(client, module["id"], unit["id"])
            assert response.status_code == 200
            progress.append(response.json()["progress"])
        assert progress == [33, 67, 100]

        module = client.get(f"{MODULES_URL}/{module['id']}", headers=USER_HEADERS).json()
        assert module["status"] == "COMPLETED"

        response = complete_unit(client, module["id"], units[0]["id"], completed=False)
        assert response.json()["module"]["status"] == "ACTIVE"
        assert response.json()["progress"] == 67

    def test_adding_units_to_completed_module_reopens_it(self, client):
        module = create_module(client, "Entrenar LoRA")["module"]
        unit = add_units(client, module["id"], ["Unico paso"])["module"]["units"][0]
        complete_unit(client, module["id"], unit["id"])

        body = add_units(client, module["id"], ["Paso extra"])

        assert body["unitsAdded"] == 1
        assert body["module"]["progress"] == 50
        assert body["module"]["status"] == "ACTIVE"
        assert [u["order"] for u in body["module"]["units"]] == [0, 1]

    def test_progress_is_recounted_from_stored_units(self, client, db_session):
        module = create_module(client, "Entrenar LoRA")["module"]
        first, second = add_units(client, module["id"], ["Preparar dataset", "Entrenar"])["module"]["units"]

        # Another transaction completes a unit without touching the module row.
        db_session.query(LearningUnit).filter(LearningUnit.id == first["id"]).update({"completed": True})
        db_session.commit()
        assert client.get(f"{MODULES_URL}/{module['id']}", headers=USER_HEADERS).json()["progress"] == 0

        response = complete_unit(client, module["id"], second["id"])

        assert response.json()["progress"] == 100
        assert response.json()["module"]["status"] == "COMPLETED"

    def test_one_of_eight_rounds_up(self, client):
        module = create_module(client, "Entrenar LoRA")["module"]
        units = add_units(client, module["id"], [f"Paso {i}" for i in range(8)])["module"]["units"]

        response = complete_unit(client, module["id"], units[0]["id"])

        assert response.json()["progress"] == 13

    def test_empty_unit_list_is_invalid(self, client):
        module = create_module(client, "Entrenar LoRA")["module"]
        response = client.post(f"{MODULES_URL}/{module['id']}/units", json={"units": []}, headers=USER_HEADERS)
        assert response.status_code == 400

    def test_unknown_module_and_unit(self, client):
        response = client.post(f"{MODULES_URL}/module_missing/units", json={"units": [{"title": "x"}]}, headers=USER_HEADERS)
        assert response.status_code == 404

        module = create_module(client, "Entrenar LoRA")["module"]
        response = complete_unit(client, module["id"], "unit_missing")
        assert response.status_code == 404
        assert response.json()["detail"]["code"] == "UNIT_NOT_FOUND"

    def test_unit_of_another_module_is_not_found(self, client):
        first = create_module(client, "Entrenar LoRA")["module"]
        second = create_module(client, "Docker compose avanzado")["module"]
        unit = add_units(client, first["id"], ["Paso"])["module"]["units"][0]

        response = complete_unit(client, second["id"], unit["id"])

        assert response.status_code == 404

    def test_units_from_chat_text(self, client):
        module = create_module(client, "Entrenar LoRA")["module"]
        content = (
            "Vamos a hacerlo así:\n\n"
            "- [x] Instalar kohya\n"
            "- [ ] Preparar el dataset\n"
            "- [ ] Lanzar el entrenamiento\n"
            "- [ ] Probar el LoRA en ComfyUI\n"
        )
        response = client.post(f"{MODULES_URL}/{module['id']}/units/from-text", json={"content": content}, headers=USER_HEADERS)

        assert response.status_code == 201
        body = response.json()
        assert body["unitsAdded"] == 4
        assert body["module"]["progress"] == 25
        assert body["module"]["units"][0]["completed"] is True

    def test_text_without_task_list_is_invalid(self, client):
        module = create_module(client, "Entrenar LoRA")["module"]
        response = client.post(
            f"{MODULES_URL}/{module['id']}/units/from-text",
            json={"content": "Solo una explicación sin pasos."},
            headers=USER_HEADERS,
        )
        assert response.status_code == 400
        assert response.json()["detail"]["code"] == "NO_TASKS_FOUND"


class TestModuleEditing:

    def test_update_title_and_description(self, client):
        module = create_module(client, "Entrenar LoRA")["module"]
        response = client.patch(
            f"{MODULES_URL}/{module['id']}",
            json={"title": "LoRA en serio", "description": "Mi plan"},
            headers=USER_HEADERS,
        )
        assert response.status_code == 200
        assert response.json()["title"] == "LoRA en serio"
        assert response.json()["description"] == "Mi plan"

    def test_update_without_fields_is_invalid(self, client):
        module = create_module(client, "Entrenar LoRA")["module"]
        response = client.patch(f"{MODULES_URL}/{module['id']}", json={}, headers=USER_HEADERS)
        assert response.status_code == 400

    def test_delete_removes_units(self, client, db_session):
        module = create_module(client, "Entrenar LoRA")["module"]
        add_units(client, module["id"], ["Uno", "Dos"])

        response = client.delete(f"{MODULES_URL}/{module['id']}", headers=USER_HEADERS)

        assert response.status_code == 204
        assert client.get(f"{MODULES_URL}/{module['id']}", headers=USER_HEADERS).status_code == 404
        db_session.expire_all()
        assert db_session.query(LearningUnit).filter(LearningUnit.moduleId == module["id"]).count() == 0
