"""Request workflow engine: submit, validate and resolve approval requests."""

from __future__ import annotations

from typing import Any, Optional

from housing.domain.errors import (
    AlreadyResolvedError,
    InvalidInputError,
    NotFoundError,
    StorageError,
    UnauthorizedError,
)
from housing.domain.models import (
    STUDENT_BOUND_REQUEST_TYPES,
    HousingRequest,
    LogAction,
    Page,
    RequestDetails,
    RequestFilters,
    RequestStatus,
    RequestType,
    UserRole,
    build_request_details,
)
from housing.repository.data_repository import DataRepository
from housing.services.audit_service import AuditLogger
from housing.services.auth_service import AuthorizationGuard
from housing.services.notification_service import NotificationService
from housing.services.occupancy_service import RoomOccupancyManager
from housing.utils.config import Settings, get_settings
from housing.utils.logger import get_logger


logger = get_logger(__name__)

NO_REASON_GIVEN = "no reason given"


def _referenced_rooms(details: RequestDetails) -> list[str]:
    """Room numbers carried by the request's own details variant."""
    candidates = (
        getattr(details, "target_room_number", None),
        getattr(details, "room_number", None),
    )
    return [room_number for room_number in candidates if room_number]


class RequestWorkflowEngine:
    """Owns the PENDING -> APPROVED | REJECTED lifecycle of every request.

    Resolution re-checks the resolver's role and the request's state inside
    the same unit of work that applies the side effect, so two concurrent
    resolutions of one request cannot both succeed.
    """

    def __init__(
        self,
        repository: Optional[DataRepository] = None,
        occupancy_manager: Optional[RoomOccupancyManager] = None,
        guard: Optional[AuthorizationGuard] = None,
        audit_logger: Optional[AuditLogger] = None,
        notification_service: Optional[NotificationService] = None,
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
        self._notifications = notification_service or NotificationService(
            self._repository,
            self._settings,
        )

    def submit(
        self,
        request_type: RequestType,
        requester_id: str,
        description: str,
        student_id: Optional[str] = None,
        *,
        target_room_number: Optional[str] = None,
        room_number: Optional[str] = None,
    ) -> HousingRequest:
        description = (description or "").strip()
        if not description:
            raise InvalidInputError("description must not be empty")
        if request_type in STUDENT_BOUND_REQUEST_TYPES and not student_id:
            raise InvalidInputError(f"{request_type.value} requests require a student")

        details = build_request_details(
            request_type,
            description=description,
            student_id=student_id,
            target_room_number=target_room_number,
            room_number=room_number,
        )
        with self._repository.unit_of_work() as conn:
            requester = self._guard.require_active_user(requester_id, conn=conn)
            if student_id and self._repository.get_student(conn, student_id) is None:
                raise NotFoundError("Student", student_id)
            for referenced_room in _referenced_rooms(details):
                if self._repository.get_room_by_number(conn, referenced_room) is None:
                    raise NotFoundError("Room", referenced_room)

            request = self._repository.insert_request(
                conn,
                request_type=request_type,
                student_id=student_id,
                details=details,
                requester_id=requester.user_id,
            )
            self._audit.record(
                LogAction.CREATE_REQUEST,
                requester.user_id,
                f"Created {request_type.value} request",
                {
                    "requestId": request.request_id,
                    "type": request_type.value,
                    "studentId": student_id,
                },
                conn=conn,
            )
            self._notifications.notify_managers(
                conn,
                title=f"New {request_type.value} request",
                message=f"{requester.name}: {description}",
                related_id=request.request_id,
                exclude_user_id=requester.user_id,
            )
        logger.info("Request %s submitted by %s", request.request_id, requester.user_id)
        return request

    def request_student_deletion(
        self,
        student_id: str,
        requester_id: str,
        description: Optional[str] = None,
    ) -> HousingRequest:
        return self.submit(
            RequestType.DELETE_STUDENT,
            requester_id,
            description or "Student deletion requested",
            student_id,
        )

    def resolve(
        self,
        request_id: str,
        decision: RequestStatus,
        resolver_id: str,
        rejection_reason: Optional[str] = None,
    ) -> HousingRequest:
        if decision not in (RequestStatus.APPROVED, RequestStatus.REJECTED):
            raise InvalidInputError("decision must be APPROVED or REJECTED")
        reason = (rejection_reason or "").strip() or None
        if decision is RequestStatus.APPROVED:
            reason = None

        try:
            return self._resolve(request_id, decision, resolver_id, reason)
        except StorageError:
            self._audit.record(
                LogAction.WORKFLOW_ERROR,
                resolver_id,
                f"Failed to resolve request {request_id}; no change was applied",
                {"requestId": request_id, "decision": decision.value},
            )
            raise

    def _resolve(
        self,
        request_id: str,
        decision: RequestStatus,
        resolver_id: str,
        reason: Optional[str],
    ) -> HousingRequest:
        with self._repository.unit_of_work() as conn:
            resolver = self._guard.require_role(resolver_id, UserRole.MANAGER, conn=conn)
            request = self._repository.get_request(conn, request_id) if request_id else None
            if request is None:
                raise NotFoundError("Request", request_id)
            if not request.is_pending:
                raise AlreadyResolvedError(
                    f"Request has already been resolved as {request.status.value}"
                )
            if (
                not self._settings.allow_self_resolution
                and request.requester_id == resolver.user_id
            ):
                raise UnauthorizedError("A request cannot be resolved by its own requester")

            metadata: dict[str, Any] = {
                "requestId": request.request_id,
                "type": request.request_type.value,
                "studentId": request.student_id,
            }
            description = (
                f"{'Approved' if decision is RequestStatus.APPROVED else 'Rejected'} "
                f"{request.request_type.value} request"
            )

            if decision is RequestStatus.APPROVED and request.request_type is RequestType.CLEARANCE:
                student = (
                    self._repository.get_student(conn, request.student_id)
                    if request.student_id
                    else None
                )
                vacated_room: Optional[str] = None
                if student is not None and student.is_assigned:
                    vacated_room = student.room_number
                    self._occupancy.release(conn, student)
                    description += (
                        f" - student {student.registration_number}"
                        f" unassigned from room {vacated_room}"
                    )
                metadata["roomNumber"] = vacated_room
            elif decision is RequestStatus.REJECTED:
                metadata["rejectionReason"] = reason
                description += f": {reason or NO_REASON_GIVEN}"

            resolved = self._repository.mark_request_resolved(
                conn,
                request.request_id,
                status=decision,
                resolver_id=resolver.user_id,
                rejection_reason=reason,
            )
            if resolved is None:
                raise AlreadyResolvedError("Request has already been resolved")

            self._audit.record(
                LogAction.APPROVE_REQUEST
                if decision is RequestStatus.APPROVED
                else LogAction.REJECT_REQUEST,
                resolver.user_id,
                description,
                metadata,
                conn=conn,
            )
            if request.requester_id != resolver.user_id:
                self._notifications.notify_user(
                    conn,
                    request.requester_id,
                    title=f"Request {decision.value.lower()}",
                    message=description,
                    related_id=request.request_id,
                )
        logger.info("Request %s resolved as %s by %s", request_id, decision.value, resolver_id)
        return resolved

    def get_request(self, request_id: str) -> HousingRequest:
        with self._repository.snapshot() as conn:
            request = self._repository.get_request(conn, request_id)
        if request is None:
            raise NotFoundError("Request", request_id)
        return request

    def list_requests(self, filters: RequestFilters) -> Page:
        limit = filters.limit or self._settings.requests_page_size
        with self._repository.snapshot() as conn:
            items = self._repository.list_requests(conn, filters, limit=limit)
            total = self._repository.count_requests(conn, filters)
        return Page(items=items, total=total, limit=limit, skip=filters.skip)
