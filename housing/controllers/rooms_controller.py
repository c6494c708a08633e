"""REST routes for rooms, occupancy and dashboard counts."""

from __future__ import annotations

from fastapi import APIRouter, Depends, Request, status
from fastapi.responses import JSONResponse

from housing.controllers.dependencies import dispatch, dispatch_body, get_dispatcher, query_payload
from housing.domain.payloads import CreateRoomPayload, OccupantBody, RoomChanges
from housing.services.operation_service import OperationDispatcher


router = APIRouter(tags=["rooms"])


@router.get("/rooms")
async def get_rooms(
    request: Request,
    dispatcher: OperationDispatcher = Depends(get_dispatcher),
) -> JSONResponse:
    return dispatch(dispatcher, "getRooms", query_payload(request))


@router.get("/rooms/available")
async def get_available_rooms(
    request: Request,
    dispatcher: OperationDispatcher = Depends(get_dispatcher),
) -> JSONResponse:
    return dispatch(dispatcher, "getAvailableRooms", query_payload(request))


@router.post("/rooms")
async def create_room(
    payload: CreateRoomPayload,
    dispatcher: OperationDispatcher = Depends(get_dispatcher),
) -> JSONResponse:
    return dispatch_body(dispatcher, "createRoom", payload, success_status=status.HTTP_201_CREATED)


@router.patch("/rooms/{room_id}")
async def update_room(
    room_id: str,
    payload: RoomChanges,
    dispatcher: OperationDispatcher = Depends(get_dispatcher),
) -> JSONResponse:
    return dispatch_body(dispatcher, "updateRoom", payload, roomId=room_id)


@router.delete("/rooms/{room_id}")
async def delete_room(
    room_id: str,
    request: Request,
    dispatcher: OperationDispatcher = Depends(get_dispatcher),
) -> JSONResponse:
    return dispatch(dispatcher, "deleteRoom", query_payload(request, roomId=room_id))


@router.post("/rooms/{room_id}/occupants")
async def assign_student(
    room_id: str,
    payload: OccupantBody,
    dispatcher: OperationDispatcher = Depends(get_dispatcher),
) -> JSONResponse:
    """Place the student named in the body into ``room_id`` (id or room number)."""
    return dispatch_body(dispatcher, "assignStudentToRoom", payload, roomId=room_id)


@router.get("/dashboard/stats")
async def dashboard_stats(
    dispatcher: OperationDispatcher = Depends(get_dispatcher),
) -> JSONResponse:
    return dispatch(dispatcher, "getDashboardStats")
