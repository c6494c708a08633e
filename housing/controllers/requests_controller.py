"""REST routes for the approval workflow, audit trail and notifications."""

from __future__ import annotations

from fastapi import APIRouter, Depends, Request, status
from fastapi.responses import JSONResponse

from housing.controllers.dependencies import dispatch, dispatch_body, get_dispatcher, query_payload
from housing.domain.payloads import CreateRequestPayload, ResolutionBody
from housing.services.operation_service import OperationDispatcher


router = APIRouter(tags=["requests"])


@router.post("/requests")
async def create_request(
    payload: CreateRequestPayload,
    dispatcher: OperationDispatcher = Depends(get_dispatcher),
) -> JSONResponse:
    return dispatch_body(dispatcher, "createRequest", payload, success_status=status.HTTP_201_CREATED)


@router.get("/requests")
async def get_requests(
    request: Request,
    dispatcher: OperationDispatcher = Depends(get_dispatcher),
) -> JSONResponse:
    return dispatch(dispatcher, "getRequests", query_payload(request))


@router.post("/requests/{request_id}/resolution")
async def resolve_request(
    request_id: str,
    payload: ResolutionBody,
    dispatcher: OperationDispatcher = Depends(get_dispatcher),
) -> JSONResponse:
    """Approve or reject a pending request; body carries ``status`` and ``resolverId``."""
    return dispatch_body(dispatcher, "updateRequestStatus", payload, requestId=request_id)


@router.get("/logs")
async def get_logs(
    request: Request,
    dispatcher: OperationDispatcher = Depends(get_dispatcher),
) -> JSONResponse:
    return dispatch(dispatcher, "getLogs", query_payload(request))


@router.get("/users/{user_id}/notifications")
async def get_notifications(
    user_id: str,
    request: Request,
    dispatcher: OperationDispatcher = Depends(get_dispatcher),
) -> JSONResponse:
    return dispatch(dispatcher, "getNotifications", query_payload(request, userId=user_id))


@router.post("/notifications/{notification_id}/read")
async def mark_notification_read(
    notification_id: str,
    dispatcher: OperationDispatcher = Depends(get_dispatcher),
) -> JSONResponse:
    return dispatch(dispatcher, "markNotificationRead", {"notificationId": notification_id})
