"""Error taxonomy shared by every housing operation."""

from __future__ import annotations

from enum import Enum
from typing import Any, Optional


class ErrorCode(str, Enum):
    INVALID_INPUT = "INVALID_INPUT"
    NOT_FOUND = "NOT_FOUND"
    UNAUTHORIZED = "UNAUTHORIZED"
    ALREADY_RESOLVED = "ALREADY_RESOLVED"
    ROOM_FULL = "ROOM_FULL"
    ROOM_NOT_EMPTY = "ROOM_NOT_EMPTY"
    TIER_MISMATCH = "TIER_MISMATCH"
    STUDENT_ALREADY_ASSIGNED = "STUDENT_ALREADY_ASSIGNED"
    STUDENT_NOT_ASSIGNED = "STUDENT_NOT_ASSIGNED"
    LAST_MANAGER = "LAST_MANAGER"
    SELF_DEACTIVATION = "SELF_DEACTIVATION"
    EMAIL_EXISTS = "EMAIL_EXISTS"
    STORAGE_ERROR = "STORAGE_ERROR"


class HousingError(Exception):
    """Base failure carrying a stable code and a caller-safe message."""

    code: ErrorCode = ErrorCode.INVALID_INPUT

    def __init__(self, message: str, details: Optional[dict[str, Any]] = None) -> None:
        super().__init__(message)
        self.message = message
        self.details = details or {}


class InvalidInputError(HousingError):
    code = ErrorCode.INVALID_INPUT


class NotFoundError(HousingError):
    code = ErrorCode.NOT_FOUND

    def __init__(self, entity: str, identifier: object) -> None:
        super().__init__(
            f"{entity} '{identifier}' not found",
            details={"entity": entity, "id": str(identifier)},
        )
        self.entity = entity
        self.identifier = identifier


class UnauthorizedError(HousingError):
    code = ErrorCode.UNAUTHORIZED


class AlreadyResolvedError(HousingError):
    code = ErrorCode.ALREADY_RESOLVED


class RoomFullError(HousingError):
    code = ErrorCode.ROOM_FULL


class RoomNotEmptyError(HousingError):
    code = ErrorCode.ROOM_NOT_EMPTY


class TierMismatchError(HousingError):
    code = ErrorCode.TIER_MISMATCH


class StudentAlreadyAssignedError(HousingError):
    code = ErrorCode.STUDENT_ALREADY_ASSIGNED


class StudentNotAssignedError(HousingError):
    code = ErrorCode.STUDENT_NOT_ASSIGNED


class LastManagerError(HousingError):
    code = ErrorCode.LAST_MANAGER


class SelfDeactivationError(HousingError):
    code = ErrorCode.SELF_DEACTIVATION


class EmailExistsError(HousingError):
    code = ErrorCode.EMAIL_EXISTS


class StorageError(HousingError):
    """Raised when the entity store fails; the original cause stays chained."""

    code = ErrorCode.STORAGE_ERROR

    def __init__(self, message: str = "Storage operation failed") -> None:
        super().__init__(message)
