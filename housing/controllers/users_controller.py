"""REST routes for sign-in and manager-only account administration."""

from __future__ import annotations

from fastapi import APIRouter, Depends, Request, status
from fastapi.responses import JSONResponse

from housing.controllers.dependencies import dispatch, dispatch_body, get_dispatcher, query_payload
from housing.domain.payloads import CreateUserPayload, LoginPayload, RequesterPayload, UserChanges
from housing.services.operation_service import OperationDispatcher


router = APIRouter(tags=["users"])


@router.post("/login")
async def login(
    payload: LoginPayload,
    dispatcher: OperationDispatcher = Depends(get_dispatcher),
) -> JSONResponse:
    """Verify credentials and return the user record; no session is issued."""
    return dispatch_body(dispatcher, "login", payload)


@router.get("/users")
async def get_users(
    request: Request,
    dispatcher: OperationDispatcher = Depends(get_dispatcher),
) -> JSONResponse:
    return dispatch(dispatcher, "getUsers", query_payload(request))


@router.post("/users")
async def create_user(
    payload: CreateUserPayload,
    dispatcher: OperationDispatcher = Depends(get_dispatcher),
) -> JSONResponse:
    return dispatch_body(dispatcher, "createUser", payload, success_status=status.HTTP_201_CREATED)


@router.patch("/users/{user_id}")
async def update_user(
    user_id: str,
    payload: UserChanges,
    dispatcher: OperationDispatcher = Depends(get_dispatcher),
) -> JSONResponse:
    return dispatch_body(dispatcher, "updateUser", payload, userId=user_id)


@router.delete("/users/{user_id}")
async def delete_user(
    user_id: str,
    request: Request,
    dispatcher: OperationDispatcher = Depends(get_dispatcher),
) -> JSONResponse:
    return dispatch(dispatcher, "deleteUser", query_payload(request, userId=user_id))


@router.post("/users/{user_id}/password-reset")
async def reset_password(
    user_id: str,
    payload: RequesterPayload,
    dispatcher: OperationDispatcher = Depends(get_dispatcher),
) -> JSONResponse:
    return dispatch_body(dispatcher, "resetUserPassword", payload, userId=user_id)


@router.post("/maintenance/backup")
async def backup_database(
    payload: RequesterPayload,
    dispatcher: OperationDispatcher = Depends(get_dispatcher),
) -> JSONResponse:
    return dispatch_body(
        dispatcher,
        "backupDatabase",
        payload,
        success_status=status.HTTP_201_CREATED,
    )
