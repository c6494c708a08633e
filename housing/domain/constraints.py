"""Domain-level invariants for students, rooms and occupancy."""

from __future__ import annotations

from housing.domain.errors import (
    InvalidInputError,
    RoomFullError,
    StudentAlreadyAssignedError,
    TierMismatchError,
)
from housing.domain.models import Room, RoomKind, RoomTier, Student, University


def required_tier(university: University, room_type: RoomTier) -> RoomTier:
    """Private-university students are always housed in premium rooms."""
    if university is University.PRIVATE:
        return RoomTier.PREMIUM
    return room_type


def validate_student_tier(university: University, room_type: RoomTier) -> None:
    if university is University.PRIVATE and room_type is not RoomTier.PREMIUM:
        raise TierMismatchError(
            "Students from a private university must be registered for PREMIUM housing"
        )


def is_tier_compatible(student: Student, room: Room) -> bool:
    return room.room_type is required_tier(student.university, student.room_type)


def validate_room_definition(kind: RoomKind, capacity: int, floor: int) -> None:
    if floor < 0:
        raise InvalidInputError("floor must be 0 or higher")
    if kind is RoomKind.STORAGE and capacity != 0:
        raise InvalidInputError("storage rooms must have capacity 0")
    if kind is RoomKind.ROOM and capacity < 1:
        raise InvalidInputError("residential rooms must have capacity of at least 1")


def validate_assignment(student: Student, room: Room) -> None:
    """Check every precondition of placing ``student`` into ``room``.

    Order matters for callers relying on the reported code: a student who is
    already housed is rejected before capacity, and capacity before tier.
    """
    if room.is_storage:
        raise InvalidInputError(f"Room {room.room_number} is a storage room")
    if student.is_assigned:
        raise StudentAlreadyAssignedError(
            f"Student is already assigned to room {student.room_number}"
        )
    if room.current_count >= room.capacity:
        raise RoomFullError(f"Room {room.room_number} is at full capacity")
    if not is_tier_compatible(student, room):
        raise TierMismatchError(
            f"Room {room.room_number} is {room.room_type.value}; student requires "
            f"{required_tier(student.university, student.room_type).value}"
        )


def occupancy_after_release(room: Room) -> int:
    return max(0, room.current_count - 1)
