"""Transport-independent surface: named operations returning result envelopes."""

from __future__ import annotations

from typing import Any, Callable, Iterable, Mapping, Optional

from pydantic import ValidationError

from housing.domain.errors import ErrorCode, HousingError, StorageError
from housing.domain.models import LogFilters, RequestFilters
from housing.domain.payloads import (
    AddStudentPayload,
    AssignStudentPayload,
    AvailableRoomsPayload,
    CreateRequestPayload,
    CreateRoomPayload,
    CreateUserPayload,
    DeleteRoomPayload,
    DeleteStudentPayload,
    LogQueryPayload,
    LoginPayload,
    MarkNotificationPayload,
    NotificationQueryPayload,
    OperationPayload,
    RequestDeleteStudentPayload,
    RequesterPayload,
    RequestQueryPayload,
    RoomQueryPayload,
    StudentIdPayload,
    StudentQueryPayload,
    TargetUserPayload,
    UnassignStudentPayload,
    UpdateRequestStatusPayload,
    UpdateRoomPayload,
    UpdateStudentPayload,
    UpdateUserPayload,
)
from housing.services.audit_service import AuditLogger
from housing.services.notification_service import NotificationService
from housing.services.occupancy_service import RoomOccupancyManager
from housing.services.request_service import RequestWorkflowEngine
from housing.services.student_service import StudentService
from housing.services.user_service import UserService
from housing.utils.logger import get_logger


logger = get_logger(__name__)

Handler = Callable[[Any], Any]


def success(data: Any = None) -> dict[str, Any]:
    return {"success": True, "data": data}


def failure(code: ErrorCode, message: str) -> dict[str, Any]:
    return {"success": False, "error": message, "code": code.value}


def describe_validation_errors(errors: Iterable[Mapping[str, Any]]) -> str:
    parts: list[str] = []
    for error in errors:
        location = ".".join(str(item) for item in error.get("loc", ()))
        message = str(error.get("msg", "invalid value"))
        parts.append(f"{location}: {message}" if location else message)
    return "; ".join(parts) or "Invalid input"


class OperationDispatcher:
    """Maps operation names to validated payloads and service calls.

    ``execute`` never raises: every outcome is reported as
    ``{success, data?, error?, code?}``.
    """

    def __init__(
        self,
        occupancy_manager: RoomOccupancyManager,
        workflow_engine: RequestWorkflowEngine,
        user_service: UserService,
        student_service: StudentService,
        audit_logger: AuditLogger,
        notification_service: NotificationService,
    ) -> None:
        self._occupancy = occupancy_manager
        self._workflow = workflow_engine
        self._users = user_service
        self._students = student_service
        self._audit = audit_logger
        self._notifications = notification_service
        self._operations: dict[str, tuple[type[OperationPayload], Handler]] = {
            "assignStudentToRoom": (AssignStudentPayload, self._assign_student),
            "unassignStudentFromRoom": (UnassignStudentPayload, self._unassign_student),
            "createRoom": (CreateRoomPayload, self._create_room),
            "updateRoom": (UpdateRoomPayload, self._update_room),
            "deleteRoom": (DeleteRoomPayload, self._delete_room),
            "getRooms": (RoomQueryPayload, self._get_rooms),
            "getAvailableRooms": (AvailableRoomsPayload, self._get_available_rooms),
            "getDashboardStats": (OperationPayload, self._get_dashboard_stats),
            "createRequest": (CreateRequestPayload, self._create_request),
            "requestDeleteStudent": (RequestDeleteStudentPayload, self._request_delete_student),
            "updateRequestStatus": (UpdateRequestStatusPayload, self._update_request_status),
            "getRequests": (RequestQueryPayload, self._get_requests),
            "login": (LoginPayload, self._login),
            "createUser": (CreateUserPayload, self._create_user),
            "updateUser": (UpdateUserPayload, self._update_user),
            "deleteUser": (TargetUserPayload, self._delete_user),
            "getUsers": (RequesterPayload, self._get_users),
            "resetUserPassword": (TargetUserPayload, self._reset_password),
            "backupDatabase": (RequesterPayload, self._backup_database),
            "addStudent": (AddStudentPayload, self._add_student),
            "getStudent": (StudentIdPayload, self._get_student),
            "updateStudent": (UpdateStudentPayload, self._update_student),
            "getStudents": (StudentQueryPayload, self._get_students),
            "deleteStudent": (DeleteStudentPayload, self._delete_student),
            "getLogs": (LogQueryPayload, self._get_logs),
            "getNotifications": (NotificationQueryPayload, self._get_notifications),
            "markNotificationRead": (MarkNotificationPayload, self._mark_notification_read),
        }

    @property
    def operation_names(self) -> list[str]:
        return sorted(self._operations)

    def execute(self, name: str, payload: Optional[Mapping[str, Any]] = None) -> dict[str, Any]:
        binding = self._operations.get(name)
        if binding is None:
            return failure(ErrorCode.INVALID_INPUT, f"Unknown operation '{name}'")
        payload_model, handler = binding
        try:
            parsed = payload_model.model_validate(payload if payload is not None else {})
            return success(handler(parsed))
        except ValidationError as exc:
            return failure(ErrorCode.INVALID_INPUT, describe_validation_errors(exc.errors()))
        except StorageError as exc:
            logger.error("Operation %s failed in storage: %s", name, exc.message)
            return failure(exc.code, exc.message)
        except HousingError as exc:
            logger.info("Operation %s rejected with %s: %s", name, exc.code.value, exc.message)
            return failure(exc.code, exc.message)
        except Exception:  # pragma: no cover - defensive fallback
            logger.exception("Unexpected failure in operation %s", name)
            return failure(ErrorCode.STORAGE_ERROR, "Unexpected server error")

    # ------------------------------------------------------------------ #
    # Rooms and occupancy
    # ------------------------------------------------------------------ #
    def _assign_student(self, payload: AssignStudentPayload) -> dict[str, Any]:
        return self._occupancy.assign(
            payload.student_id,
            payload.room_id,
            actor_id=payload.requester_id,
        ).to_dict()

    def _unassign_student(self, payload: UnassignStudentPayload) -> dict[str, Any]:
        return self._occupancy.unassign(payload.student_id, actor_id=payload.requester_id).to_dict()

    def _create_room(self, payload: CreateRoomPayload) -> dict[str, Any]:
        return self._occupancy.create_room(
            room_number=payload.room_number,
            floor=payload.floor,
            capacity=payload.capacity,
            room_type=payload.room_type,
            kind=payload.kind,
            wing=payload.wing,
            actor_id=payload.requester_id,
        ).to_dict()

    def _update_room(self, payload: UpdateRoomPayload) -> dict[str, Any]:
        return self._occupancy.update_room(
            payload.room_id,
            room_number=payload.room_number,
            floor=payload.floor,
            wing=payload.wing,
            kind=payload.kind,
            capacity=payload.capacity,
            room_type=payload.room_type,
            actor_id=payload.requester_id,
        ).to_dict()

    def _delete_room(self, payload: DeleteRoomPayload) -> dict[str, str]:
        self._occupancy.delete_room(payload.room_id, actor_id=payload.requester_id)
        return {"id": payload.room_id}

    def _get_rooms(self, payload: RoomQueryPayload) -> list[dict[str, Any]]:
        return [room.to_dict() for room in self._occupancy.list_rooms(payload.status)]

    def _get_available_rooms(self, payload: AvailableRoomsPayload) -> list[dict[str, Any]]:
        if payload.student_id:
            rooms = self._occupancy.list_rooms_for_student(payload.student_id)
        else:
            rooms = self._occupancy.list_available_rooms(payload.room_type)
        return [room.to_dict() for room in rooms]

    def _get_dashboard_stats(self, payload: OperationPayload) -> dict[str, int]:
        return self._occupancy.get_occupancy_summary().to_dict()

    # ------------------------------------------------------------------ #
    # Requests
    # ------------------------------------------------------------------ #
    def _create_request(self, payload: CreateRequestPayload) -> dict[str, Any]:
        return self._workflow.submit(
            payload.type,
            payload.requester_id,
            payload.description,
            payload.student_id,
            target_room_number=payload.target_room_number,
            room_number=payload.room_number,
        ).to_dict()

    def _request_delete_student(self, payload: RequestDeleteStudentPayload) -> dict[str, Any]:
        return self._workflow.request_student_deletion(
            payload.student_id,
            payload.requester_id,
            payload.description,
        ).to_dict()

    def _update_request_status(self, payload: UpdateRequestStatusPayload) -> dict[str, Any]:
        return self._workflow.resolve(
            payload.request_id,
            payload.status,
            payload.resolver_id,
            payload.rejection_reason,
        ).to_dict()

    def _get_requests(self, payload: RequestQueryPayload) -> dict[str, Any]:
        filters = RequestFilters(
            status=payload.status,
            request_type=payload.type,
            student_id=payload.student_id,
            requester_id=payload.requester_id,
            limit=payload.limit,
            skip=payload.skip,
        )
        return self._workflow.list_requests(filters).to_dict()

    # ------------------------------------------------------------------ #
    # Users
    # ------------------------------------------------------------------ #
    def _login(self, payload: LoginPayload) -> dict[str, Any]:
        return self._users.authenticate(payload.email, payload.password).to_dict()

    def _create_user(self, payload: CreateUserPayload) -> dict[str, Any]:
        return self._users.create_user(
            payload.requester_id,
            name=payload.name,
            email=payload.email,
            role=payload.role,
        ).to_dict()

    def _update_user(self, payload: UpdateUserPayload) -> dict[str, Any]:
        return self._users.update_user(
            payload.requester_id,
            payload.user_id,
            name=payload.name,
            email=payload.email,
            role=payload.role,
            is_active=payload.is_active,
        ).to_dict()

    def _delete_user(self, payload: TargetUserPayload) -> dict[str, str]:
        self._users.delete_user(payload.requester_id, payload.user_id)
        return {"id": payload.user_id}

    def _get_users(self, payload: RequesterPayload) -> list[dict[str, Any]]:
        return [user.to_dict() for user in self._users.list_users(payload.requester_id)]

    def _reset_password(self, payload: TargetUserPayload) -> dict[str, Any]:
        return self._users.reset_password(payload.requester_id, payload.user_id).to_dict()

    def _backup_database(self, payload: RequesterPayload) -> dict[str, str]:
        return self._users.backup_database(payload.requester_id).to_dict()

    # ------------------------------------------------------------------ #
    # Students
    # ------------------------------------------------------------------ #
    def _add_student(self, payload: AddStudentPayload) -> dict[str, Any]:
        return self._students.add_student(
            registration_number=payload.registration_number,
            national_id=payload.national_id,
            name_ar=payload.name_ar,
            name_en=payload.name_en,
            email=payload.email,
            academic_year=payload.academic_year,
            university=payload.university,
            room_type=payload.room_type,
            phone=payload.phone,
            actor_id=payload.requester_id,
        ).to_dict()

    def _get_student(self, payload: StudentIdPayload) -> dict[str, Any]:
        return self._students.get_student(payload.student_id).to_dict()

    def _update_student(self, payload: UpdateStudentPayload) -> dict[str, Any]:
        return self._students.update_student(
            payload.student_id,
            name_ar=payload.name_ar,
            name_en=payload.name_en,
            email=payload.email,
            phone=payload.phone,
            academic_year=payload.academic_year,
            university=payload.university,
            room_type=payload.room_type,
            status=payload.status,
            actor_id=payload.requester_id,
        ).to_dict()

    def _get_students(self, payload: StudentQueryPayload) -> dict[str, Any]:
        return self._students.list_students(
            status=payload.status,
            limit=payload.limit,
            skip=payload.skip,
        ).to_dict()

    def _delete_student(self, payload: DeleteStudentPayload) -> dict[str, str]:
        self._students.delete_student(payload.student_id, payload.request_id, payload.requester_id)
        return {"id": payload.student_id}

    # ------------------------------------------------------------------ #
    # Audit trail and notifications
    # ------------------------------------------------------------------ #
    def _get_logs(self, payload: LogQueryPayload) -> dict[str, Any]:
        filters = LogFilters(
            action=payload.action,
            user_id=payload.user_id,
            limit=payload.limit,
            skip=payload.skip,
        )
        return self._audit.list_logs(filters).to_dict()

    def _get_notifications(self, payload: NotificationQueryPayload) -> list[dict[str, Any]]:
        return [
            item.to_dict()
            for item in self._notifications.list_notifications(payload.user_id, payload.limit)
        ]

    def _mark_notification_read(self, payload: MarkNotificationPayload) -> dict[str, str]:
        self._notifications.mark_read(payload.notification_id)
        return {"id": payload.notification_id}
