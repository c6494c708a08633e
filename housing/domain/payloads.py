"""Input DTOs for the named operations, validated before entering the service layer.

Payloads arrive as camelCase JSON; fields are also accepted by their
Python names so in-process callers and tests can use either form.
"""

from __future__ import annotations

from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel

from housing.domain.models import (
    RequestStatus,
    RequestType,
    RoomKind,
    RoomTier,
    StudentStatus,
    University,
    UserRole,
)


class OperationPayload(BaseModel):
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        str_strip_whitespace=True,
        extra="ignore",
    )


class PagedPayload(OperationPayload):
    limit: Optional[int] = Field(default=None, ge=1, le=500)
    skip: int = Field(default=0, ge=0)


# --------------------------------------------------------------------------- #
# Rooms and occupancy
# --------------------------------------------------------------------------- #
class OccupantBody(OperationPayload):
    student_id: str = Field(min_length=1)
    requester_id: Optional[str] = None


class AssignStudentPayload(OccupantBody):
    room_id: str = Field(min_length=1, description="Room id or room number")


class UnassignStudentPayload(OperationPayload):
    student_id: str = Field(min_length=1)
    requester_id: Optional[str] = None


class CreateRoomPayload(OperationPayload):
    room_number: str = Field(min_length=1)
    floor: int = Field(ge=0)
    capacity: int = Field(ge=0)
    room_type: RoomTier = RoomTier.STANDARD
    kind: RoomKind = RoomKind.ROOM
    wing: Optional[str] = None
    requester_id: Optional[str] = None


class RoomChanges(OperationPayload):
    room_number: Optional[str] = Field(default=None, min_length=1)
    floor: Optional[int] = Field(default=None, ge=0)
    wing: Optional[str] = None
    kind: Optional[RoomKind] = None
    capacity: Optional[int] = Field(default=None, ge=0)
    room_type: Optional[RoomTier] = None
    requester_id: Optional[str] = None


class UpdateRoomPayload(RoomChanges):
    room_id: str = Field(min_length=1)


class DeleteRoomPayload(OperationPayload):
    room_id: str = Field(min_length=1)
    requester_id: Optional[str] = None


class RoomQueryPayload(OperationPayload):
    status: Optional[str] = None

    @field_validator("status")
    @classmethod
    def validate_status(cls, value: Optional[str]) -> Optional[str]:
        if value is None or not value:
            return None
        normalized = value.upper()
        if normalized not in {"AVAILABLE", "OCCUPIED"}:
            raise ValueError("status must be AVAILABLE or OCCUPIED")
        return normalized


class AvailableRoomsPayload(OperationPayload):
    room_type: Optional[RoomTier] = None
    student_id: Optional[str] = None


# --------------------------------------------------------------------------- #
# Requests
# --------------------------------------------------------------------------- #
class CreateRequestPayload(OperationPayload):
    type: RequestType
    requester_id: str = Field(min_length=1)
    description: str = Field(min_length=1)
    student_id: Optional[str] = None
    target_room_number: Optional[str] = None
    room_number: Optional[str] = None


class DeletionRequestBody(OperationPayload):
    requester_id: str = Field(min_length=1)
    description: Optional[str] = None


class RequestDeleteStudentPayload(DeletionRequestBody):
    student_id: str = Field(min_length=1)


class ResolutionBody(OperationPayload):
    status: RequestStatus
    resolver_id: str = Field(min_length=1)
    rejection_reason: Optional[str] = None


class UpdateRequestStatusPayload(ResolutionBody):
    request_id: str = Field(min_length=1)


class RequestQueryPayload(PagedPayload):
    status: Optional[RequestStatus] = None
    type: Optional[RequestType] = None
    student_id: Optional[str] = None
    requester_id: Optional[str] = None


# --------------------------------------------------------------------------- #
# Users
# --------------------------------------------------------------------------- #
class RequesterPayload(OperationPayload):
    requester_id: str = Field(min_length=1)


class LoginPayload(OperationPayload):
    model_config = ConfigDict(str_strip_whitespace=False)

    email: Optional[str] = None
    password: Optional[str] = None


class CreateUserPayload(RequesterPayload):
    name: str = Field(min_length=1)
    email: str = Field(min_length=3)
    role: UserRole = UserRole.SUPERVISOR


class UserChanges(RequesterPayload):
    name: Optional[str] = Field(default=None, min_length=1)
    email: Optional[str] = Field(default=None, min_length=3)
    role: Optional[UserRole] = None
    is_active: Optional[bool] = None


class UpdateUserPayload(UserChanges):
    user_id: str = Field(min_length=1)


class TargetUserPayload(RequesterPayload):
    user_id: str = Field(min_length=1)


# --------------------------------------------------------------------------- #
# Students
# --------------------------------------------------------------------------- #
class AddStudentPayload(OperationPayload):
    registration_number: str = Field(min_length=1)
    national_id: str = Field(min_length=1)
    name_ar: str = Field(min_length=1)
    name_en: str = Field(min_length=1)
    email: str = Field(min_length=3)
    academic_year: int = Field(ge=1)
    university: University
    room_type: Optional[RoomTier] = None
    phone: Optional[str] = None
    requester_id: Optional[str] = None


class StudentIdPayload(OperationPayload):
    student_id: str = Field(min_length=1)


class StudentChanges(OperationPayload):
    name_ar: Optional[str] = Field(default=None, min_length=1)
    name_en: Optional[str] = Field(default=None, min_length=1)
    email: Optional[str] = Field(default=None, min_length=3)
    phone: Optional[str] = None
    academic_year: Optional[int] = Field(default=None, ge=1)
    university: Optional[University] = None
    room_type: Optional[RoomTier] = None
    status: Optional[StudentStatus] = None
    requester_id: Optional[str] = None


class UpdateStudentPayload(StudentChanges):
    student_id: str = Field(min_length=1)


class StudentQueryPayload(PagedPayload):
    status: Optional[StudentStatus] = None


class DeleteStudentPayload(StudentIdPayload):
    request_id: str = Field(min_length=1)
    requester_id: str = Field(min_length=1)


# --------------------------------------------------------------------------- #
# Audit trail and notifications
# --------------------------------------------------------------------------- #
class LogQueryPayload(PagedPayload):
    action: Optional[str] = None
    user_id: Optional[str] = None


class NotificationQueryPayload(OperationPayload):
    user_id: str = Field(min_length=1)
    limit: Optional[int] = Field(default=None, ge=1, le=200)


class MarkNotificationPayload(OperationPayload):
    notification_id: str = Field(min_length=1)
