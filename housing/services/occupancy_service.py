"""Room occupancy manager: sole owner of room occupant counts."""

from __future__ import annotations

import sqlite3
from typing import Optional

from housing.domain.constraints import (
    is_tier_compatible,
    occupancy_after_release,
    validate_assignment,
    validate_room_definition,
)
from housing.domain.errors import (
    InvalidInputError,
    NotFoundError,
    RoomNotEmptyError,
    StudentNotAssignedError,
)
from housing.domain.models import (
    Assignment,
    LogAction,
    OccupancySummary,
    Room,
    RoomKind,
    RoomTier,
    Student,
)
from housing.repository.data_repository import DataRepository
from housing.services.audit_service import AuditLogger
from housing.services.auth_service import AuthorizationGuard
from housing.utils.config import Settings, get_settings
from housing.utils.logger import get_logger
from housing.utils.timeutils import utc_today_iso


logger = get_logger(__name__)


class RoomOccupancyManager:
    """Keeps ``0 <= current_count <= capacity`` for every room.

    Assignment and release update the room count and the student's room
    reference in one unit of work; nothing else in the system writes either.
    """

    def __init__(
        self,
        repository: Optional[DataRepository] = None,
        audit_logger: Optional[AuditLogger] = None,
        guard: Optional[AuthorizationGuard] = None,
        settings: Optional[Settings] = None,
    ) -> None:
        self._settings = settings or get_settings()
        self._repository = repository or DataRepository(self._settings)
        self._audit = audit_logger or AuditLogger(self._repository, self._settings)
        self._guard = guard or AuthorizationGuard(self._repository, self._settings)

    def _load_room(self, conn: sqlite3.Connection, room_ref: str) -> Room:
        room = self._repository.find_room(conn, room_ref) if room_ref else None
        if room is None:
            raise NotFoundError("Room", room_ref)
        return room

    def _load_student(self, conn: sqlite3.Connection, student_id: str) -> Student:
        student = self._repository.get_student(conn, student_id) if student_id else None
        if student is None:
            raise NotFoundError("Student", student_id)
        return student

    def _check_actor(self, conn: sqlite3.Connection, actor_id: Optional[str]) -> None:
        if actor_id is not None:
            self._guard.require_active_user(actor_id, conn=conn)

    # ------------------------------------------------------------------ #
    # Assignment
    # ------------------------------------------------------------------ #
    def assign(
        self,
        student_id: str,
        room_ref: str,
        *,
        actor_id: Optional[str] = None,
    ) -> Assignment:
        with self._repository.unit_of_work() as conn:
            self._check_actor(conn, actor_id)
            student = self._load_student(conn, student_id)
            room = self._load_room(conn, room_ref)
            validate_assignment(student, room)

            updated_room = self._repository.set_room_occupancy(
                conn,
                room.room_id,
                room.current_count + 1,
            )
            updated_student = self._repository.set_student_room(
                conn,
                student.student_id,
                room_number=updated_room.room_number,
                check_in_date=utc_today_iso(),
            )
            self._audit.record(
                LogAction.ASSIGN_ROOM,
                actor_id,
                f"Assigned student {student.registration_number} to room {room.room_number}",
                {
                    "studentId": student.student_id,
                    "roomId": room.room_id,
                    "roomNumber": room.room_number,
                    "currentCount": updated_room.current_count,
                },
                conn=conn,
            )
        logger.info(
            "Room %s now holds %s/%s",
            updated_room.room_number,
            updated_room.current_count,
            updated_room.capacity,
        )
        return Assignment(student=updated_student, room=updated_room)

    def release(self, conn: sqlite3.Connection, student: Student) -> Assignment:
        """Vacate ``student``'s bed inside the caller's unit of work, without auditing.

        A dangling room reference (room row gone) is cleared without touching
        any count.
        """
        if not student.is_assigned:
            raise StudentNotAssignedError("Student is not assigned to any room")
        room = self._repository.get_room_by_number(conn, student.room_number)
        updated_room: Optional[Room] = None
        if room is not None:
            updated_room = self._repository.set_room_occupancy(
                conn,
                room.room_id,
                occupancy_after_release(room),
            )
        else:
            logger.warning(
                "Student %s referenced missing room %s",
                student.student_id,
                student.room_number,
            )
        updated_student = self._repository.set_student_room(
            conn,
            student.student_id,
            room_number=None,
            check_in_date=None,
        )
        return Assignment(student=updated_student, room=updated_room)

    def unassign(self, student_id: str, *, actor_id: Optional[str] = None) -> Assignment:
        with self._repository.unit_of_work() as conn:
            self._check_actor(conn, actor_id)
            student = self._load_student(conn, student_id)
            vacated_room_number = student.room_number
            result = self.release(conn, student)
            self._audit.record(
                LogAction.UNASSIGN_ROOM,
                actor_id,
                f"Unassigned student {student.registration_number} from room {vacated_room_number}",
                {
                    "studentId": student.student_id,
                    "roomNumber": vacated_room_number,
                    "currentCount": result.room.current_count if result.room else None,
                },
                conn=conn,
            )
        return result

    # ------------------------------------------------------------------ #
    # Room lifecycle
    # ------------------------------------------------------------------ #
    def create_room(
        self,
        *,
        room_number: str,
        floor: int,
        capacity: int,
        room_type: RoomTier = RoomTier.STANDARD,
        kind: RoomKind = RoomKind.ROOM,
        wing: Optional[str] = None,
        actor_id: Optional[str] = None,
    ) -> Room:
        room_number = (room_number or "").strip()
        if not room_number:
            raise InvalidInputError("room_number is required")
        validate_room_definition(kind, capacity, floor)
        with self._repository.unit_of_work() as conn:
            self._check_actor(conn, actor_id)
            if self._repository.get_room_by_number(conn, room_number) is not None:
                raise InvalidInputError(f"Room {room_number} already exists")
            room = self._repository.insert_room(
                conn,
                room_number=room_number,
                floor=floor,
                wing=wing,
                kind=kind,
                capacity=capacity,
                room_type=room_type,
            )
            self._audit.record(
                LogAction.CREATE_ROOM,
                actor_id,
                f"Created room {room_number}",
                {"roomId": room.room_id, "capacity": capacity, "kind": kind.value},
                conn=conn,
            )
        return room

    def update_room(
        self,
        room_ref: str,
        *,
        room_number: Optional[str] = None,
        floor: Optional[int] = None,
        wing: Optional[str] = None,
        kind: Optional[RoomKind] = None,
        capacity: Optional[int] = None,
        room_type: Optional[RoomTier] = None,
        actor_id: Optional[str] = None,
    ) -> Room:
        with self._repository.unit_of_work() as conn:
            self._check_actor(conn, actor_id)
            room = self._load_room(conn, room_ref)
            new_number = (room_number or room.room_number).strip()
            new_floor = room.floor if floor is None else floor
            new_kind = kind or room.kind
            new_capacity = room.capacity if capacity is None else capacity
            new_type = room_type or room.room_type
            validate_room_definition(new_kind, new_capacity, new_floor)

            if new_capacity < room.current_count:
                raise InvalidInputError(
                    f"Capacity {new_capacity} is below the {room.current_count} current occupants"
                )
            if room.current_count > 0 and (
                new_number != room.room_number
                or new_type is not room.room_type
                or new_kind is not room.kind
            ):
                raise RoomNotEmptyError(
                    f"Room {room.room_number} must be empty to change its number, tier or kind"
                )
            if new_number != room.room_number and self._repository.get_room_by_number(
                conn, new_number
            ) is not None:
                raise InvalidInputError(f"Room {new_number} already exists")

            updated = self._repository.update_room(
                conn,
                room.room_id,
                room_number=new_number,
                floor=new_floor,
                wing=room.wing if wing is None else wing,
                kind=new_kind,
                capacity=new_capacity,
                room_type=new_type,
            )
            self._audit.record(
                LogAction.UPDATE_ROOM,
                actor_id,
                f"Updated room {updated.room_number}",
                {"roomId": room.room_id, "capacity": new_capacity, "roomType": new_type.value},
                conn=conn,
            )
        return updated

    def delete_room(self, room_ref: str, *, actor_id: Optional[str] = None) -> None:
        with self._repository.unit_of_work() as conn:
            self._check_actor(conn, actor_id)
            room = self._load_room(conn, room_ref)
            if room.current_count != 0:
                raise RoomNotEmptyError(
                    f"Room {room.room_number} still has {room.current_count} occupants"
                )
            self._repository.delete_room(conn, room.room_id)
            self._audit.record(
                LogAction.DELETE_ROOM,
                actor_id,
                f"Deleted room {room.room_number}",
                {"roomId": room.room_id, "roomNumber": room.room_number},
                conn=conn,
            )

    # ------------------------------------------------------------------ #
    # Queries
    # ------------------------------------------------------------------ #
    def get_room(self, room_ref: str) -> Room:
        with self._repository.snapshot() as conn:
            return self._load_room(conn, room_ref)

    def list_rooms(self, status: Optional[str] = None) -> list[Room]:
        occupied: Optional[bool] = None
        if status is not None:
            normalized = status.upper()
            if normalized not in {"AVAILABLE", "OCCUPIED"}:
                raise InvalidInputError("status must be AVAILABLE or OCCUPIED")
            occupied = normalized == "OCCUPIED"
        with self._repository.snapshot() as conn:
            return self._repository.list_rooms(conn, occupied=occupied)

    def list_available_rooms(self, room_type: Optional[RoomTier] = None) -> list[Room]:
        """Residential rooms with at least one free bed, optionally of one tier."""
        with self._repository.snapshot() as conn:
            return self._repository.list_rooms(
                conn,
                occupied=False,
                room_type=room_type,
                residential_only=True,
            )

    def list_rooms_for_student(self, student_id: str) -> list[Room]:
        with self._repository.snapshot() as conn:
            student = self._load_student(conn, student_id)
            rooms = self._repository.list_rooms(conn, occupied=False, residential_only=True)
        return [room for room in rooms if is_tier_compatible(student, room)]

    def get_occupancy_summary(self) -> OccupancySummary:
        with self._repository.snapshot() as conn:
            rooms = self._repository.list_rooms(conn, residential_only=True)
            total_students = self._repository.count_students(conn)
        occupied = sum(1 for room in rooms if room.is_occupied)
        return OccupancySummary(
            total_students=total_students,
            total_rooms=len(rooms),
            occupied_rooms=occupied,
            available_rooms=len(rooms) - occupied,
            total_capacity=sum(room.capacity for room in rooms),
            total_occupants=sum(room.current_count for room in rooms),
        )
