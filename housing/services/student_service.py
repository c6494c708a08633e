"""Student registry: profiles, listing and approved deletions."""

from __future__ import annotations

import sqlite3
from typing import Optional

from housing.domain.constraints import required_tier, validate_student_tier
from housing.domain.errors import (
    InvalidInputError,
    NotFoundError,
    TierMismatchError,
    UnauthorizedError,
)
from housing.domain.models import (
    LogAction,
    Page,
    RequestStatus,
    RequestType,
    RoomTier,
    Student,
    StudentStatus,
    University,
)
from housing.repository.data_repository import DataRepository
from housing.services.audit_service import AuditLogger
from housing.services.auth_service import AuthorizationGuard
from housing.services.occupancy_service import RoomOccupancyManager
from housing.utils.config import Settings, get_settings
from housing.utils.logger import get_logger


logger = get_logger(__name__)


def _require_text(value: Optional[str], field: str) -> str:
    text = (value or "").strip()
    if not text:
        raise InvalidInputError(f"{field} must not be empty")
    return text


def _validate_academic_year(academic_year: int) -> int:
    if academic_year < 1:
        raise InvalidInputError("academic_year must be 1 or higher")
    return academic_year


class StudentService:
    """Registers students and enforces the private-university tier rule.

    Room placement is never written here; it belongs to the occupancy
    manager, which this service calls when an approved deletion vacates a bed.
    """

    def __init__(
        self,
        repository: Optional[DataRepository] = None,
        occupancy_manager: Optional[RoomOccupancyManager] = None,
        guard: Optional[AuthorizationGuard] = None,
        audit_logger: Optional[AuditLogger] = None,
        settings: Optional[Settings] = None,
    ) -> None:
        self._settings = settings or get_settings()
        self._repository = repository or DataRepository(self._settings)
        self._audit = audit_logger or AuditLogger(self._repository, self._settings)
        self._guard = guard or AuthorizationGuard(self._repository, self._settings)
        self._occupancy = occupancy_manager or RoomOccupancyManager(
            repository=self._repository,
            audit_logger=self._audit,
            guard=self._guard,
            settings=self._settings,
        )

    def _check_actor(self, conn: sqlite3.Connection, actor_id: Optional[str]) -> None:
        if actor_id is not None:
            self._guard.require_active_user(actor_id, conn=conn)

    def _load(self, conn: sqlite3.Connection, student_id: str) -> Student:
        student = self._repository.get_student(conn, student_id) if student_id else None
        if student is None:
            raise NotFoundError("Student", student_id)
        return student

    def add_student(
        self,
        *,
        registration_number: str,
        national_id: str,
        name_ar: str,
        name_en: str,
        email: str,
        academic_year: int,
        university: University,
        room_type: Optional[RoomTier] = None,
        phone: Optional[str] = None,
        actor_id: Optional[str] = None,
    ) -> Student:
        registration_number = _require_text(registration_number, "registration_number")
        tier = room_type or required_tier(university, RoomTier.STANDARD)
        validate_student_tier(university, tier)
        _validate_academic_year(academic_year)

        with self._repository.unit_of_work() as conn:
            self._check_actor(conn, actor_id)
            if self._repository.registration_number_in_use(conn, registration_number):
                raise InvalidInputError(
                    f"Registration number {registration_number} is already in use"
                )
            student = self._repository.insert_student(
                conn,
                registration_number=registration_number,
                national_id=_require_text(national_id, "national_id"),
                name_ar=_require_text(name_ar, "name_ar"),
                name_en=_require_text(name_en, "name_en"),
                email=_require_text(email, "email"),
                phone=(phone or "").strip() or None,
                academic_year=academic_year,
                university=university,
                room_type=tier,
            )
            self._audit.record(
                LogAction.CREATE_STUDENT,
                actor_id,
                f"Registered student {registration_number}",
                {"studentId": student.student_id, "roomType": tier.value},
                conn=conn,
            )
        return student

    def get_student(self, student_id: str) -> Student:
        with self._repository.snapshot() as conn:
            return self._load(conn, student_id)

    def update_student(
        self,
        student_id: str,
        *,
        name_ar: Optional[str] = None,
        name_en: Optional[str] = None,
        email: Optional[str] = None,
        phone: Optional[str] = None,
        academic_year: Optional[int] = None,
        university: Optional[University] = None,
        room_type: Optional[RoomTier] = None,
        status: Optional[StudentStatus] = None,
        actor_id: Optional[str] = None,
    ) -> Student:
        with self._repository.unit_of_work() as conn:
            self._check_actor(conn, actor_id)
            student = self._load(conn, student_id)
            next_university = university or student.university
            next_tier = room_type or student.room_type
            validate_student_tier(next_university, next_tier)

            if student.is_assigned and (
                next_university is not student.university or next_tier is not student.room_type
            ):
                room = self._repository.get_room_by_number(conn, student.room_number)
                if room is not None and room.room_type is not required_tier(
                    next_university, next_tier
                ):
                    raise TierMismatchError(
                        f"Student is housed in {room.room_type.value} room {room.room_number}; "
                        "unassign before changing tier"
                    )

            updated = self._repository.update_student_profile(
                conn,
                student.student_id,
                name_ar=_require_text(name_ar, "name_ar") if name_ar is not None else student.name_ar,
                name_en=_require_text(name_en, "name_en") if name_en is not None else student.name_en,
                email=_require_text(email, "email") if email is not None else student.email,
                phone=student.phone if phone is None else (phone.strip() or None),
                academic_year=(
                    _validate_academic_year(academic_year)
                    if academic_year is not None
                    else student.academic_year
                ),
                university=next_university,
                room_type=next_tier,
                status=status or student.status,
            )
            self._audit.record(
                LogAction.UPDATE_STUDENT,
                actor_id,
                f"Updated student {student.registration_number}",
                {"studentId": student.student_id},
                conn=conn,
            )
        return updated

    def list_students(
        self,
        *,
        status: Optional[StudentStatus] = None,
        limit: Optional[int] = None,
        skip: int = 0,
    ) -> Page:
        limit = limit or self._settings.students_page_size
        with self._repository.snapshot() as conn:
            items = self._repository.list_students(conn, status=status, limit=limit, skip=skip)
            total = self._repository.count_students(conn, status=status)
        return Page(items=items, total=total, limit=limit, skip=skip)

    def delete_student(self, student_id: str, request_id: str, requester_id: str) -> None:
        """Execute an APPROVED ``DELETE_STUDENT`` request for ``student_id``.

        A housed student's bed is released in the same unit of work.
        """
        with self._repository.unit_of_work() as conn:
            requester = self._guard.require_active_user(requester_id, conn=conn)
            student = self._load(conn, student_id)
            request = self._repository.get_request(conn, request_id) if request_id else None
            if request is None:
                raise NotFoundError("Request", request_id)
            if (
                request.request_type is not RequestType.DELETE_STUDENT
                or request.student_id != student.student_id
            ):
                raise InvalidInputError("Request does not authorize deleting this student")
            if request.status is not RequestStatus.APPROVED:
                raise UnauthorizedError("Deletion request has not been approved")

            vacated_room = student.room_number
            if student.is_assigned:
                self._occupancy.release(conn, student)
            self._repository.delete_student(conn, student.student_id)
            self._audit.record(
                LogAction.DELETE_STUDENT,
                requester.user_id,
                f"Deleted student {student.registration_number}",
                {
                    "studentId": student.student_id,
                    "requestId": request.request_id,
                    "roomNumber": vacated_room,
                },
                conn=conn,
            )
        logger.info("Student %s deleted under request %s", student_id, request_id)
