from __future__ import annotations

import sqlite3
from dataclasses import replace

from housing.domain.models import UserRole
from housing.repository.data_repository import DataRepository
from housing.services.audit_service import AuditLogger
from housing.services.auth_service import AuthorizationGuard
from housing.services.notification_service import NotificationService
from housing.services.occupancy_service import RoomOccupancyManager
from housing.services.operation_service import OperationDispatcher
from housing.services.request_service import RequestWorkflowEngine
from housing.services.student_service import StudentService
from housing.services.user_service import UserService
from housing.utils.config import get_settings


def _build_test_settings(tmp_path, filename: str):
    base = get_settings()
    return replace(
        base,
        database_path=tmp_path / filename,
        backup_directory=tmp_path / "backups",
        password_hash_rounds=4,
        seed_building_layout=False,
        seed_default_manager=False,
    )


def _build_dispatcher(tmp_path, filename: str) -> tuple[DataRepository, OperationDispatcher]:
    settings = _build_test_settings(tmp_path, filename)
    repository = DataRepository(settings)
    repository.initialize_database()
    audit_logger = AuditLogger(repository=repository, settings=settings)
    guard = AuthorizationGuard(repository=repository, settings=settings)
    notifications = NotificationService(repository=repository, settings=settings)
    occupancy = RoomOccupancyManager(
        repository=repository,
        audit_logger=audit_logger,
        guard=guard,
        settings=settings,
    )
    dispatcher = OperationDispatcher(
        occupancy_manager=occupancy,
        workflow_engine=RequestWorkflowEngine(
            repository=repository,
            occupancy_manager=occupancy,
            guard=guard,
            audit_logger=audit_logger,
            notification_service=notifications,
            settings=settings,
        ),
        user_service=UserService(
            repository=repository,
            guard=guard,
            audit_logger=audit_logger,
            settings=settings,
        ),
        student_service=StudentService(
            repository=repository,
            occupancy_manager=occupancy,
            guard=guard,
            audit_logger=audit_logger,
            settings=settings,
        ),
        audit_logger=audit_logger,
        notification_service=notifications,
    )
    return repository, dispatcher


def _seed_manager(repository: DataRepository) -> str:
    with repository.unit_of_work() as conn:
        user = repository.insert_user(
            conn,
            name="Head Manager",
            email="manager@housing.local",
            password_hash="seed",
            role=UserRole.MANAGER,
        )
    return user.user_id


def _student_payload(registration_number: str, **overrides) -> dict:
    payload = {
        "registrationNumber": registration_number,
        "nationalId": f"NID-{registration_number}",
        "nameAr": "طالب",
        "nameEn": f"Student {registration_number}",
        "email": f"{registration_number}@uni.edu",
        "academicYear": 2,
        "university": "GOVERNMENT",
    }
    payload.update(overrides)
    return payload


def test_unknown_operation_is_invalid_input(tmp_path):
    _, dispatcher = _build_dispatcher(tmp_path, "unknown_op.db")

    envelope = dispatcher.execute("launchRocket", {})

    assert envelope == {
        "success": False,
        "error": "Unknown operation 'launchRocket'",
        "code": "INVALID_INPUT",
    }


def test_payload_validation_failure_is_invalid_input(tmp_path):
    _, dispatcher = _build_dispatcher(tmp_path, "bad_payload.db")

    missing = dispatcher.execute("assignStudentToRoom", {"roomId": "101"})
    bad_enum = dispatcher.execute("addStudent", _student_payload("1", university="ABROAD"))

    assert missing["success"] is False
    assert missing["code"] == "INVALID_INPUT"
    assert "studentId" in missing["error"]
    assert bad_enum["code"] == "INVALID_INPUT"


def test_assignment_round_trip_through_envelopes(tmp_path):
    _, dispatcher = _build_dispatcher(tmp_path, "assign_envelopes.db")
    room = dispatcher.execute("createRoom", {"roomNumber": "101", "floor": 1, "capacity": 1})
    first = dispatcher.execute("addStudent", _student_payload("2027001"))
    second = dispatcher.execute("addStudent", _student_payload("2027002"))
    assert room["success"] and first["success"] and second["success"]

    assigned = dispatcher.execute(
        "assignStudentToRoom",
        {"studentId": first["data"]["id"], "roomId": "101"},
    )
    full = dispatcher.execute(
        "assignStudentToRoom",
        {"studentId": second["data"]["id"], "roomId": room["data"]["id"]},
    )
    stats = dispatcher.execute("getDashboardStats")
    released = dispatcher.execute("unassignStudentFromRoom", {"studentId": first["data"]["id"]})
    again = dispatcher.execute("unassignStudentFromRoom", {"studentId": first["data"]["id"]})

    assert assigned["success"] is True
    assert assigned["data"]["student"]["roomNumber"] == "101"
    assert assigned["data"]["room"]["isOccupied"] is True
    assert full == {"success": False, "error": "Room 101 is at full capacity", "code": "ROOM_FULL"}
    assert stats["data"]["occupiedRooms"] == 1
    assert stats["data"]["totalStudents"] == 2
    assert released["data"]["room"]["currentCount"] == 0
    assert again["code"] == "STUDENT_NOT_ASSIGNED"


def test_request_lifecycle_through_envelopes(tmp_path):
    repository, dispatcher = _build_dispatcher(tmp_path, "request_envelopes.db")
    manager_id = _seed_manager(repository)
    created_user = dispatcher.execute(
        "createUser",
        {"requesterId": manager_id, "name": "Sup", "email": "sup@housing.local"},
    )
    supervisor_id = created_user["data"]["user"]["id"]
    student = dispatcher.execute("addStudent", _student_payload("2027003"))

    request = dispatcher.execute(
        "createRequest",
        {
            "type": "CLEARANCE",
            "requesterId": supervisor_id,
            "studentId": student["data"]["id"],
            "description": "Graduating",
        },
    )
    pending = dispatcher.execute("updateRequestStatus", {
        "requestId": request["data"]["id"],
        "status": "PENDING",
        "resolverId": manager_id,
    })
    denied = dispatcher.execute("updateRequestStatus", {
        "requestId": request["data"]["id"],
        "status": "APPROVED",
        "resolverId": supervisor_id,
    })
    approved = dispatcher.execute("updateRequestStatus", {
        "requestId": request["data"]["id"],
        "status": "APPROVED",
        "resolverId": manager_id,
    })
    repeated = dispatcher.execute("updateRequestStatus", {
        "requestId": request["data"]["id"],
        "status": "REJECTED",
        "resolverId": manager_id,
    })
    listing = dispatcher.execute("getRequests", {"status": "APPROVED"})
    logs = dispatcher.execute("getLogs", {"action": "APPROVE_REQUEST"})
    notifications = dispatcher.execute("getNotifications", {"userId": manager_id})

    assert created_user["success"] is True
    assert len(created_user["data"]["tempPassword"]) == 8
    assert request["data"]["status"] == "PENDING"
    assert request["data"]["details"]["kind"] == "CLEARANCE"
    assert pending["code"] == "INVALID_INPUT"
    assert denied["code"] == "UNAUTHORIZED"
    assert approved["data"]["status"] == "APPROVED"
    assert repeated["code"] == "ALREADY_RESOLVED"
    assert listing["data"]["total"] == 1
    assert logs["data"]["total"] == 1
    assert len(notifications["data"]) == 1

    marked = dispatcher.execute(
        "markNotificationRead",
        {"notificationId": notifications["data"][0]["id"]},
    )
    missing = dispatcher.execute("markNotificationRead", {"notificationId": "missing"})
    assert marked["success"] is True
    assert missing["code"] == "NOT_FOUND"


def test_last_manager_protection_through_envelopes(tmp_path):
    repository, dispatcher = _build_dispatcher(tmp_path, "last_manager_envelope.db")
    manager_id = _seed_manager(repository)

    envelope = dispatcher.execute("deleteUser", {"requesterId": manager_id, "userId": manager_id})
    users = dispatcher.execute("getUsers", {"requesterId": manager_id})

    assert envelope["success"] is False
    assert envelope["code"] == "LAST_MANAGER"
    assert [user["id"] for user in users["data"]] == [manager_id]


def test_storage_failures_hide_details(tmp_path, monkeypatch):
    repository, dispatcher = _build_dispatcher(tmp_path, "storage_failure.db")

    def broken_list_rooms(*args, **kwargs):
        raise sqlite3.OperationalError("no such table: Rooms")

    monkeypatch.setattr(repository, "list_rooms", broken_list_rooms)

    envelope = dispatcher.execute("getRooms", {})

    assert envelope == {
        "success": False,
        "error": "Storage operation failed",
        "code": "STORAGE_ERROR",
    }
