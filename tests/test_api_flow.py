from __future__ import annotations

from dataclasses import replace

from fastapi.testclient import TestClient

from app import create_app
from housing.utils.config import get_settings


def _build_test_settings(tmp_path, filename: str):
    base = get_settings()
    return replace(
        base,
        database_path=tmp_path / filename,
        backup_directory=tmp_path / "backups",
        password_hash_rounds=4,
        seed_building_layout=True,
        seed_default_manager=True,
    )


def _manager_id(app) -> str:
    repository = app.state.repository
    with repository.snapshot() as conn:
        users = repository.list_users(conn)
    assert len(users) == 1
    return users[0].user_id


def _student_body(registration_number: str) -> dict:
    return {
        "registrationNumber": registration_number,
        "nationalId": f"NID-{registration_number}",
        "nameAr": "طالب",
        "nameEn": f"Student {registration_number}",
        "email": f"{registration_number}@uni.edu",
        "academicYear": 3,
        "university": "GOVERNMENT",
    }


def test_startup_seeds_building_and_manager(tmp_path):
    settings = _build_test_settings(tmp_path, "api_seed.db")
    app = create_app(settings)

    with TestClient(app) as client:
        health = client.get("/health")
        stats = client.get("/dashboard/stats")
        rooms = client.get("/rooms")
        operations = client.get("/operations")
        manager_id = _manager_id(app)

    assert health.status_code == 200
    assert health.json()["status"] == "ok"
    assert stats.status_code == 200
    assert stats.json()["data"]["totalRooms"] == 132
    assert stats.json()["data"]["totalCapacity"] == 396
    assert len(rooms.json()["data"]) == 156
    assert "assignStudentToRoom" in operations.json()["operations"]
    assert manager_id


def test_clearance_flow_over_http(tmp_path):
    settings = _build_test_settings(tmp_path, "api_clearance.db")
    app = create_app(settings)

    with TestClient(app) as client:
        manager_id = _manager_id(app)

        created = client.post("/students", json=_student_body("2028001"))
        assert created.status_code == 201
        student_id = created.json()["data"]["id"]

        assigned = client.post("/rooms/101/occupants", json={"studentId": student_id})
        assert assigned.status_code == 200
        assert assigned.json()["data"]["student"]["roomNumber"] == "101"

        storage = client.post("/rooms/107/occupants", json={"studentId": student_id})
        assert storage.status_code == 400
        assert storage.json()["code"] == "INVALID_INPUT"

        supervisor = client.post(
            "/users",
            json={"requesterId": manager_id, "name": "Floor Supervisor", "email": "floor@housing.local"},
        )
        assert supervisor.status_code == 201
        supervisor_id = supervisor.json()["data"]["user"]["id"]

        request = client.post(
            "/requests",
            json={
                "type": "CLEARANCE",
                "requesterId": supervisor_id,
                "studentId": student_id,
                "description": "Moving out at term end",
            },
        )
        assert request.status_code == 201
        request_id = request.json()["data"]["id"]

        denied = client.post(
            f"/requests/{request_id}/resolution",
            json={"status": "APPROVED", "resolverId": supervisor_id},
        )
        assert denied.status_code == 403

        approved = client.post(
            f"/requests/{request_id}/resolution",
            json={"status": "APPROVED", "resolverId": manager_id},
        )
        assert approved.status_code == 200
        assert approved.json()["data"]["status"] == "APPROVED"

        repeated = client.post(
            f"/requests/{request_id}/resolution",
            json={"status": "REJECTED", "resolverId": manager_id},
        )
        assert repeated.status_code == 409
        assert repeated.json()["code"] == "ALREADY_RESOLVED"

        student = client.get(f"/students/{student_id}")
        room = client.get("/rooms", params={"status": "AVAILABLE"})
        manager_inbox = client.get(f"/users/{manager_id}/notifications")
        supervisor_inbox = client.get(f"/users/{supervisor_id}/notifications")
        logs = client.get("/logs", params={"action": "APPROVE_REQUEST"})

    assert student.json()["data"]["roomNumber"] is None
    room_101 = next(item for item in room.json()["data"] if item["roomNumber"] == "101")
    assert room_101["currentCount"] == 0
    assert len(manager_inbox.json()["data"]) == 1
    assert len(supervisor_inbox.json()["data"]) == 1
    assert logs.json()["data"]["total"] == 1


def test_last_manager_delete_is_conflict(tmp_path):
    settings = _build_test_settings(tmp_path, "api_last_manager.db")
    app = create_app(settings)

    with TestClient(app) as client:
        manager_id = _manager_id(app)
        response = client.delete(f"/users/{manager_id}", params={"requesterId": manager_id})
        users = client.get("/users", params={"requesterId": manager_id})

    assert response.status_code == 409
    assert response.json() == {
        "success": False,
        "error": response.json()["error"],
        "code": "LAST_MANAGER",
    }
    assert len(users.json()["data"]) == 1


def test_unknown_operation_route_is_bad_request(tmp_path):
    settings = _build_test_settings(tmp_path, "api_unknown.db")

    with TestClient(create_app(settings)) as client:
        response = client.post("/operations/teleportStudent", json={})
        stats = client.post("/operations/getDashboardStats")

    assert response.status_code == 400
    assert response.json()["code"] == "INVALID_INPUT"
    assert stats.status_code == 200
    assert stats.json()["data"]["occupiedRooms"] == 0


def test_login_checks_seeded_manager_credentials(tmp_path):
    settings = _build_test_settings(tmp_path, "api_login.db")

    with TestClient(create_app(settings)) as client:
        accepted = client.post(
            "/login",
            json={"email": settings.default_manager_email, "password": settings.default_manager_password},
        )
        rejected = client.post(
            "/login",
            json={"email": settings.default_manager_email, "password": "wrong-password"},
        )
        missing = client.post("/login", json={"email": settings.default_manager_email})
        dispatched = client.post(
            "/operations/login",
            json={"email": "nobody@housing.local", "password": "admin123"},
        )

    assert accepted.status_code == 200
    assert accepted.json()["data"]["role"] == "MANAGER"
    assert "passwordHash" not in accepted.json()["data"]
    assert rejected.status_code == 403
    assert rejected.json()["code"] == "UNAUTHORIZED"
    assert missing.status_code == 400
    assert missing.json()["code"] == "INVALID_INPUT"
    assert dispatched.status_code == 403


def test_malformed_bodies_share_the_invalid_input_envelope(tmp_path):
    settings = _build_test_settings(tmp_path, "api_bodies.db")
    app = create_app(settings)

    with TestClient(app) as client:
        manager_id = _manager_id(app)
        no_student = client.post("/rooms/101/occupants", json={})
        bad_year = client.post("/students", json={**_student_body("2028002"), "academicYear": 0})
        bad_status = client.post(
            "/requests/anything/resolution",
            json={"status": "MAYBE", "resolverId": manager_id},
        )

    for response in (no_student, bad_year, bad_status):
        assert response.status_code == 400
        assert response.json()["success"] is False
        assert response.json()["code"] == "INVALID_INPUT"
    assert "studentId" in no_student.json()["error"]


def test_request_listing_embeds_people(tmp_path):
    settings = _build_test_settings(tmp_path, "api_request_people.db")
    app = create_app(settings)

    with TestClient(app) as client:
        manager_id = _manager_id(app)
        student_id = client.post("/students", json=_student_body("2028003")).json()["data"]["id"]
        client.post(
            "/requests",
            json={
                "type": "CLEARANCE",
                "requesterId": manager_id,
                "studentId": student_id,
                "description": "Graduated",
            },
        )
        listed = client.get("/requests", params={"status": "PENDING"})

    item = listed.json()["data"]["data"][0]
    assert item["requester"]["email"] == settings.default_manager_email
    assert item["student"]["registrationNumber"] == "2028003"
    assert item["resolver"] is None
