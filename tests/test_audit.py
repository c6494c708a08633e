from __future__ import annotations

import logging
import sqlite3
from dataclasses import replace

from housing.domain.models import LogAction, LogFilters, RoomTier, University
from housing.repository.data_repository import DataRepository
from housing.services.audit_service import AuditLogger
from housing.services.auth_service import AuthorizationGuard
from housing.services.occupancy_service import RoomOccupancyManager
from housing.utils.config import get_settings
from housing.utils.logger import AUDIT_CHANNEL


def _build_test_settings(tmp_path, filename: str):
    base = get_settings()
    return replace(
        base,
        database_path=tmp_path / filename,
        backup_directory=tmp_path / "backups",
        seed_building_layout=False,
        seed_default_manager=False,
    )


def _build(tmp_path, filename: str):
    settings = _build_test_settings(tmp_path, filename)
    repository = DataRepository(settings)
    repository.initialize_database()
    audit_logger = AuditLogger(repository=repository, settings=settings)
    occupancy = RoomOccupancyManager(
        repository=repository,
        audit_logger=audit_logger,
        guard=AuthorizationGuard(repository=repository, settings=settings),
        settings=settings,
    )
    return repository, audit_logger, occupancy


def _add_student(repository: DataRepository, registration_number: str):
    with repository.unit_of_work() as conn:
        return repository.insert_student(
            conn,
            registration_number=registration_number,
            national_id=f"NID-{registration_number}",
            name_ar="طالب",
            name_en="Student",
            email=f"{registration_number}@uni.edu",
            phone=None,
            academic_year=1,
            university=University.GOVERNMENT,
            room_type=RoomTier.STANDARD,
        )


def test_audit_failure_does_not_roll_back_assignment(tmp_path, monkeypatch, caplog):
    repository, audit_logger, occupancy = _build(tmp_path, "audit_failure.db")
    occupancy.create_room(room_number="101", floor=1, capacity=3)
    student = _add_student(repository, "2026001")

    def failing_insert(*args, **kwargs):
        raise sqlite3.OperationalError("database disk image is malformed")

    monkeypatch.setattr(repository, "insert_log", failing_insert)
    with caplog.at_level(logging.WARNING, logger=AUDIT_CHANNEL):
        result = occupancy.assign(student.student_id, "101")
    monkeypatch.undo()

    assert result.room is not None
    assert result.room.current_count == 1
    with repository.snapshot() as conn:
        assert repository.get_room_by_number(conn, "101").current_count == 1
        assert repository.get_student(conn, student.student_id).room_number == "101"
    assert audit_logger.failed_writes == 1
    assert audit_logger.list_logs(LogFilters(action="ASSIGN_ROOM")).total == 0
    assert "Audit write dropped" in caplog.text


def test_standalone_record_and_filters(tmp_path):
    _, audit_logger, _ = _build(tmp_path, "audit_filters.db")

    first = audit_logger.record(LogAction.CREATE_ROOM, "user-a", "Created room 101", {"roomNumber": "101"})
    audit_logger.record(LogAction.CREATE_ROOM, "user-b", "Created room 102")
    audit_logger.record(LogAction.DELETE_ROOM, "user-a", "Deleted room 101")

    everything = audit_logger.list_logs(LogFilters())
    by_action = audit_logger.list_logs(LogFilters(action="CREATE_ROOM"))
    by_user = audit_logger.list_logs(LogFilters(user_id="user-a"))
    paged = audit_logger.list_logs(LogFilters(limit=1, skip=1))

    assert first is not None
    assert everything.total == 3
    assert everything.limit == 100
    assert [entry.action for entry in everything.items] == [
        "DELETE_ROOM",
        "CREATE_ROOM",
        "CREATE_ROOM",
    ]
    assert by_action.total == 2
    assert by_user.total == 2
    assert paged.total == 3
    assert len(paged.items) == 1
    assert paged.items[0].user_id == "user-b"
    assert everything.items[-1].metadata == {"roomNumber": "101"}


def test_standalone_record_failure_is_reported_not_raised(tmp_path, monkeypatch):
    repository, audit_logger, _ = _build(tmp_path, "audit_standalone_failure.db")

    def failing_insert(*args, **kwargs):
        raise sqlite3.OperationalError("locked")

    monkeypatch.setattr(repository, "insert_log", failing_insert)

    assert audit_logger.record(LogAction.BACKUP_DATABASE, "user-a", "Backup") is None
    assert audit_logger.failed_writes == 1
