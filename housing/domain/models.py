"""Domain models for room occupancy, requests, users and the audit trail."""

from __future__ import annotations

from dataclasses import dataclass, fields
from enum import Enum
from typing import Any, ClassVar, Optional, Union


class University(str, Enum):
    GOVERNMENT = "GOVERNMENT"
    PRIVATE = "PRIVATE"


class RoomTier(str, Enum):
    STANDARD = "STANDARD"
    PREMIUM = "PREMIUM"


class StudentStatus(str, Enum):
    ACTIVE = "ACTIVE"
    INACTIVE = "INACTIVE"
    GRADUATED = "GRADUATED"
    SUSPENDED = "SUSPENDED"


class RoomKind(str, Enum):
    ROOM = "ROOM"
    STORAGE = "STORAGE"


class RequestType(str, Enum):
    DELETE_STUDENT = "DELETE_STUDENT"
    ROOM_CHANGE = "ROOM_CHANGE"
    MAINTENANCE = "MAINTENANCE"
    CLEARANCE = "CLEARANCE"
    OTHER = "OTHER"


class RequestStatus(str, Enum):
    PENDING = "PENDING"
    APPROVED = "APPROVED"
    REJECTED = "REJECTED"


class UserRole(str, Enum):
    MANAGER = "MANAGER"
    SUPERVISOR = "SUPERVISOR"


class LogAction(str, Enum):
    CREATE_USER = "CREATE_USER"
    UPDATE_USER = "UPDATE_USER"
    DELETE_USER = "DELETE_USER"
    RESET_PASSWORD = "RESET_PASSWORD"
    BACKUP_DATABASE = "BACKUP_DATABASE"
    CREATE_STUDENT = "CREATE_STUDENT"
    UPDATE_STUDENT = "UPDATE_STUDENT"
    DELETE_STUDENT = "DELETE_STUDENT"
    CREATE_ROOM = "CREATE_ROOM"
    UPDATE_ROOM = "UPDATE_ROOM"
    DELETE_ROOM = "DELETE_ROOM"
    ASSIGN_ROOM = "ASSIGN_ROOM"
    UNASSIGN_ROOM = "UNASSIGN_ROOM"
    CREATE_REQUEST = "CREATE_REQUEST"
    APPROVE_REQUEST = "APPROVE_REQUEST"
    REJECT_REQUEST = "REJECT_REQUEST"
    WORKFLOW_ERROR = "WORKFLOW_ERROR"


class GuardedOperation(str, Enum):
    DELETE = "DELETE"
    DEACTIVATE = "DEACTIVATE"
    DEMOTE = "DEMOTE"


# Request types that cannot be submitted without a student reference.
STUDENT_BOUND_REQUEST_TYPES = frozenset(
    {RequestType.ROOM_CHANGE, RequestType.CLEARANCE, RequestType.DELETE_STUDENT}
)


@dataclass(frozen=True)
class Student:
    student_id: str
    registration_number: str
    national_id: str
    name_ar: str
    name_en: str
    email: str
    phone: Optional[str]
    academic_year: int
    university: University
    room_type: RoomTier
    status: StudentStatus
    room_number: Optional[str]
    check_in_date: Optional[str]
    created_at: str
    updated_at: str

    @property
    def is_assigned(self) -> bool:
        return self.room_number is not None

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.student_id,
            "registrationNumber": self.registration_number,
            "nationalId": self.national_id,
            "nameAr": self.name_ar,
            "nameEn": self.name_en,
            "email": self.email,
            "phone": self.phone,
            "academicYear": self.academic_year,
            "university": self.university.value,
            "roomType": self.room_type.value,
            "status": self.status.value,
            "roomNumber": self.room_number,
            "checkInDate": self.check_in_date,
            "createdAt": self.created_at,
            "updatedAt": self.updated_at,
        }


@dataclass(frozen=True)
class Room:
    room_id: str
    room_number: str
    floor: int
    wing: Optional[str]
    kind: RoomKind
    capacity: int
    room_type: RoomTier
    current_count: int
    created_at: str
    updated_at: str

    @property
    def is_occupied(self) -> bool:
        return self.current_count >= self.capacity

    @property
    def is_storage(self) -> bool:
        return self.kind is RoomKind.STORAGE

    @property
    def available_beds(self) -> int:
        return max(0, self.capacity - self.current_count)

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.room_id,
            "roomNumber": self.room_number,
            "floor": self.floor,
            "wing": self.wing,
            "kind": self.kind.value,
            "capacity": self.capacity,
            "roomType": self.room_type.value,
            "currentCount": self.current_count,
            "isOccupied": self.is_occupied,
            "availableBeds": self.available_beds,
            "createdAt": self.created_at,
            "updatedAt": self.updated_at,
        }


@dataclass(frozen=True)
class User:
    user_id: str
    name: str
    email: str
    role: UserRole
    is_active: bool
    created_at: str
    updated_at: str

    @property
    def is_active_manager(self) -> bool:
        return self.is_active and self.role is UserRole.MANAGER

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.user_id,
            "name": self.name,
            "email": self.email,
            "role": self.role.value,
            "isActive": self.is_active,
            "createdAt": self.created_at,
            "updatedAt": self.updated_at,
        }


@dataclass(frozen=True)
class DeleteStudentDetails:
    kind: ClassVar[RequestType] = RequestType.DELETE_STUDENT
    description: str
    student_id: str


@dataclass(frozen=True)
class RoomChangeDetails:
    kind: ClassVar[RequestType] = RequestType.ROOM_CHANGE
    description: str
    student_id: str
    target_room_number: Optional[str] = None


@dataclass(frozen=True)
class MaintenanceDetails:
    kind: ClassVar[RequestType] = RequestType.MAINTENANCE
    description: str
    student_id: Optional[str] = None
    room_number: Optional[str] = None


@dataclass(frozen=True)
class ClearanceDetails:
    kind: ClassVar[RequestType] = RequestType.CLEARANCE
    description: str
    student_id: str


@dataclass(frozen=True)
class OtherDetails:
    kind: ClassVar[RequestType] = RequestType.OTHER
    description: str
    student_id: Optional[str] = None


RequestDetails = Union[
    DeleteStudentDetails,
    RoomChangeDetails,
    MaintenanceDetails,
    ClearanceDetails,
    OtherDetails,
]

_DETAILS_BY_TYPE: dict[RequestType, type] = {
    RequestType.DELETE_STUDENT: DeleteStudentDetails,
    RequestType.ROOM_CHANGE: RoomChangeDetails,
    RequestType.MAINTENANCE: MaintenanceDetails,
    RequestType.CLEARANCE: ClearanceDetails,
    RequestType.OTHER: OtherDetails,
}

_DETAIL_KEYS = {
    "student_id": "studentId",
    "target_room_number": "targetRoomNumber",
    "room_number": "roomNumber",
    "description": "description",
}


def build_request_details(
    request_type: RequestType,
    *,
    description: str,
    student_id: Optional[str],
    target_room_number: Optional[str] = None,
    room_number: Optional[str] = None,
) -> RequestDetails:
    """Build the typed payload for ``request_type``, dropping fields it does not carry."""
    details_cls = _DETAILS_BY_TYPE[request_type]
    candidates: dict[str, Any] = {
        "description": description,
        "student_id": student_id,
        "target_room_number": target_room_number,
        "room_number": room_number,
    }
    accepted = {item.name for item in fields(details_cls)}
    return details_cls(**{key: value for key, value in candidates.items() if key in accepted})


def details_to_dict(details: RequestDetails) -> dict[str, Any]:
    payload: dict[str, Any] = {"kind": details.kind.value}
    for item in fields(details):
        name = item.name
        payload[_DETAIL_KEYS[name]] = getattr(details, name)
    return payload


def details_from_dict(request_type: RequestType, payload: dict[str, Any]) -> RequestDetails:
    reverse = {wire: name for name, wire in _DETAIL_KEYS.items()}
    known = {reverse[key]: value for key, value in payload.items() if key in reverse}
    return build_request_details(
        request_type,
        description=str(known.get("description") or ""),
        student_id=known.get("student_id"),
        target_room_number=known.get("target_room_number"),
        room_number=known.get("room_number"),
    )


def _summary_dict(summary: Optional[Union[UserSummary, StudentSummary]]) -> Optional[dict[str, Any]]:
    return summary.to_dict() if summary is not None else None


@dataclass(frozen=True)
class UserSummary:
    user_id: str
    name: str
    email: str

    def to_dict(self) -> dict[str, Any]:
        return {"id": self.user_id, "name": self.name, "email": self.email}


@dataclass(frozen=True)
class StudentSummary:
    student_id: str
    registration_number: str
    name_ar: str
    name_en: str
    room_number: Optional[str]

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.student_id,
            "registrationNumber": self.registration_number,
            "nameAr": self.name_ar,
            "nameEn": self.name_en,
            "roomNumber": self.room_number,
        }


@dataclass(frozen=True)
class HousingRequest:
    """A request row together with summaries of the people it refers to.

    Summaries are None when the referenced user or student no longer exists.
    """

    request_id: str
    request_type: RequestType
    status: RequestStatus
    student_id: Optional[str]
    details: RequestDetails
    requester_id: str
    resolver_id: Optional[str]
    rejection_reason: Optional[str]
    created_at: str
    resolved_at: Optional[str]
    requester: Optional[UserSummary] = None
    resolver: Optional[UserSummary] = None
    student: Optional[StudentSummary] = None

    @property
    def is_pending(self) -> bool:
        return self.status is RequestStatus.PENDING

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.request_id,
            "type": self.request_type.value,
            "status": self.status.value,
            "studentId": self.student_id,
            "details": details_to_dict(self.details),
            "requesterId": self.requester_id,
            "resolverId": self.resolver_id,
            "rejectionReason": self.rejection_reason,
            "createdAt": self.created_at,
            "resolvedAt": self.resolved_at,
            "requester": _summary_dict(self.requester),
            "resolver": _summary_dict(self.resolver),
            "student": _summary_dict(self.student),
        }


@dataclass(frozen=True)
class LogEntry:
    log_id: int
    action: str
    user_id: Optional[str]
    metadata: dict[str, Any]
    description: str
    created_at: str

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.log_id,
            "action": self.action,
            "userId": self.user_id,
            "metadata": dict(self.metadata),
            "description": self.description,
            "createdAt": self.created_at,
        }


@dataclass(frozen=True)
class Notification:
    notification_id: str
    user_id: str
    title: str
    message: str
    related_id: Optional[str]
    is_read: bool
    created_at: str

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.notification_id,
            "userId": self.user_id,
            "title": self.title,
            "message": self.message,
            "relatedId": self.related_id,
            "isRead": self.is_read,
            "createdAt": self.created_at,
        }


@dataclass(frozen=True)
class Assignment:
    """Result of an assign/unassign: the student and room as committed."""

    student: Student
    room: Optional[Room]

    def to_dict(self) -> dict[str, Any]:
        return {
            "student": self.student.to_dict(),
            "room": self.room.to_dict() if self.room is not None else None,
        }


@dataclass(frozen=True)
class Page:
    items: list[Any]
    total: int
    limit: int
    skip: int

    def to_dict(self) -> dict[str, Any]:
        return {
            "data": [item.to_dict() for item in self.items],
            "total": self.total,
            "limit": self.limit,
            "skip": self.skip,
        }


@dataclass(frozen=True)
class OccupancySummary:
    total_students: int
    total_rooms: int
    occupied_rooms: int
    available_rooms: int
    total_capacity: int
    total_occupants: int

    def to_dict(self) -> dict[str, int]:
        return {
            "totalStudents": self.total_students,
            "totalRooms": self.total_rooms,
            "occupiedRooms": self.occupied_rooms,
            "availableRooms": self.available_rooms,
            "totalCapacity": self.total_capacity,
            "totalOccupants": self.total_occupants,
        }


@dataclass(frozen=True)
class RequestFilters:
    status: Optional[RequestStatus] = None
    request_type: Optional[RequestType] = None
    student_id: Optional[str] = None
    requester_id: Optional[str] = None
    limit: Optional[int] = None
    skip: int = 0


@dataclass(frozen=True)
class LogFilters:
    action: Optional[str] = None
    user_id: Optional[str] = None
    limit: Optional[int] = None
    skip: int = 0


@dataclass(frozen=True)
class RoomDefinition:
    """Seed-time description of a room in the building layout."""

    room_number: str
    floor: int
    wing: Optional[str]
    kind: RoomKind
    capacity: int
    room_type: RoomTier = RoomTier.STANDARD
