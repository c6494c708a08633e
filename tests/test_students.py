from __future__ import annotations

from dataclasses import replace

import pytest

from housing.domain.errors import (
    InvalidInputError,
    NotFoundError,
    TierMismatchError,
    UnauthorizedError,
)
from housing.domain.models import (
    LogFilters,
    RequestStatus,
    RequestType,
    RoomTier,
    StudentStatus,
    University,
    UserRole,
)
from housing.repository.data_repository import DataRepository
from housing.services.audit_service import AuditLogger
from housing.services.auth_service import AuthorizationGuard
from housing.services.notification_service import NotificationService
from housing.services.occupancy_service import RoomOccupancyManager
from housing.services.request_service import RequestWorkflowEngine
from housing.services.student_service import StudentService
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


def _build_services(tmp_path, filename: str):
    settings = _build_test_settings(tmp_path, filename)
    repository = DataRepository(settings)
    repository.initialize_database()
    audit_logger = AuditLogger(repository=repository, settings=settings)
    guard = AuthorizationGuard(repository=repository, settings=settings)
    occupancy = RoomOccupancyManager(
        repository=repository,
        audit_logger=audit_logger,
        guard=guard,
        settings=settings,
    )
    students = StudentService(
        repository=repository,
        occupancy_manager=occupancy,
        guard=guard,
        audit_logger=audit_logger,
        settings=settings,
    )
    workflow = RequestWorkflowEngine(
        repository=repository,
        occupancy_manager=occupancy,
        guard=guard,
        audit_logger=audit_logger,
        notification_service=NotificationService(repository=repository, settings=settings),
        settings=settings,
    )
    return repository, occupancy, students, workflow, audit_logger


def _add_user(repository: DataRepository, email: str, role: UserRole):
    with repository.unit_of_work() as conn:
        return repository.insert_user(
            conn,
            name=email.split("@")[0],
            email=email,
            password_hash="seed",
            role=role,
        )


def _register(students: StudentService, registration_number: str, **overrides):
    fields = {
        "registration_number": registration_number,
        "national_id": f"NID-{registration_number}",
        "name_ar": "طالب",
        "name_en": f"Student {registration_number}",
        "email": f"{registration_number}@uni.edu",
        "academic_year": 1,
        "university": University.GOVERNMENT,
    }
    fields.update(overrides)
    return students.add_student(**fields)


def test_private_students_default_to_premium(tmp_path):
    _, _, students, _, _ = _build_services(tmp_path, "private_default.db")

    student = _register(students, "2025001", university=University.PRIVATE)

    assert student.room_type is RoomTier.PREMIUM
    assert student.room_number is None
    assert student.status is StudentStatus.ACTIVE


def test_private_standard_registration_is_rejected(tmp_path):
    _, _, students, _, _ = _build_services(tmp_path, "private_standard.db")

    with pytest.raises(TierMismatchError):
        _register(students, "2025002", university=University.PRIVATE, room_type=RoomTier.STANDARD)


def test_registration_numbers_are_unique(tmp_path):
    _, _, students, _, audit_logger = _build_services(tmp_path, "unique_registration.db")
    _register(students, "2025003")

    with pytest.raises(InvalidInputError):
        _register(students, "2025003")
    assert audit_logger.list_logs(LogFilters(action="CREATE_STUDENT")).total == 1


def test_update_rechecks_tier_rules(tmp_path):
    _, occupancy, students, _, _ = _build_services(tmp_path, "update_tier.db")
    occupancy.create_room(room_number="101", floor=1, capacity=3)
    student = _register(students, "2025004")
    occupancy.assign(student.student_id, "101")

    with pytest.raises(TierMismatchError):
        students.update_student(student.student_id, university=University.PRIVATE)
    with pytest.raises(TierMismatchError):
        students.update_student(
            student.student_id,
            university=University.PRIVATE,
            room_type=RoomTier.PREMIUM,
        )

    updated = students.update_student(student.student_id, phone="0100000000", academic_year=2)
    assert updated.phone == "0100000000"
    assert updated.academic_year == 2
    assert updated.room_number == "101"


def test_list_students_pages_and_filters(tmp_path):
    _, _, students, _, _ = _build_services(tmp_path, "list_students.db")
    for index in range(5):
        _register(students, f"2025{index:03d}")
    graduate = _register(students, "2025999")
    students.update_student(graduate.student_id, status=StudentStatus.GRADUATED)

    page = students.list_students(limit=2, skip=0)
    graduates = students.list_students(status=StudentStatus.GRADUATED)

    assert page.total == 6
    assert len(page.items) == 2
    assert graduates.total == 1
    assert graduates.items[0].student_id == graduate.student_id
    with pytest.raises(NotFoundError):
        students.get_student("missing")


def test_delete_student_requires_approved_request(tmp_path):
    repository, occupancy, students, workflow, audit_logger = _build_services(
        tmp_path, "delete_student.db"
    )
    manager = _add_user(repository, "manager@housing.local", UserRole.MANAGER)
    supervisor = _add_user(repository, "supervisor@housing.local", UserRole.SUPERVISOR)
    occupancy.create_room(room_number="101", floor=1, capacity=3)
    student = _register(students, "2025010")
    occupancy.assign(student.student_id, "101")

    request = workflow.request_student_deletion(student.student_id, supervisor.user_id)
    assert request.request_type is RequestType.DELETE_STUDENT

    with pytest.raises(UnauthorizedError):
        students.delete_student(student.student_id, request.request_id, supervisor.user_id)

    workflow.resolve(request.request_id, RequestStatus.APPROVED, manager.user_id)
    assert students.get_student(student.student_id).room_number == "101"

    students.delete_student(student.student_id, request.request_id, supervisor.user_id)

    with pytest.raises(NotFoundError):
        students.get_student(student.student_id)
    assert occupancy.get_room("101").current_count == 0
    kept = workflow.get_request(request.request_id)
    assert kept.status is RequestStatus.APPROVED
    assert kept.student_id is None
    deletions = audit_logger.list_logs(LogFilters(action="DELETE_STUDENT")).items
    assert len(deletions) == 1
    assert deletions[0].metadata["roomNumber"] == "101"


def test_delete_student_rejects_mismatched_request(tmp_path):
    repository, _, students, workflow, _ = _build_services(tmp_path, "delete_mismatch.db")
    manager = _add_user(repository, "manager@housing.local", UserRole.MANAGER)
    first = _register(students, "2025020")
    second = _register(students, "2025021")
    request = workflow.request_student_deletion(first.student_id, manager.user_id)
    workflow.resolve(request.request_id, RequestStatus.APPROVED, manager.user_id)

    with pytest.raises(InvalidInputError):
        students.delete_student(second.student_id, request.request_id, manager.user_id)
    with pytest.raises(NotFoundError):
        students.delete_student(first.student_id, "missing", manager.user_id)
