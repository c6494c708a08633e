"""Shared FastAPI dependency providers and envelope-to-HTTP translation."""

from __future__ import annotations

from typing import Any, Mapping, Optional

from fastapi import HTTPException, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from housing.domain.errors import ErrorCode
from housing.domain.payloads import OperationPayload
from housing.services.operation_service import (
    OperationDispatcher,
    describe_validation_errors,
    failure,
)


ERROR_STATUS: dict[str, int] = {
    ErrorCode.INVALID_INPUT.value: status.HTTP_400_BAD_REQUEST,
    ErrorCode.NOT_FOUND.value: status.HTTP_404_NOT_FOUND,
    ErrorCode.UNAUTHORIZED.value: status.HTTP_403_FORBIDDEN,
    ErrorCode.ALREADY_RESOLVED.value: status.HTTP_409_CONFLICT,
    ErrorCode.ROOM_FULL.value: status.HTTP_409_CONFLICT,
    ErrorCode.ROOM_NOT_EMPTY.value: status.HTTP_409_CONFLICT,
    ErrorCode.TIER_MISMATCH.value: status.HTTP_409_CONFLICT,
    ErrorCode.STUDENT_ALREADY_ASSIGNED.value: status.HTTP_409_CONFLICT,
    ErrorCode.STUDENT_NOT_ASSIGNED.value: status.HTTP_409_CONFLICT,
    ErrorCode.LAST_MANAGER.value: status.HTTP_409_CONFLICT,
    ErrorCode.SELF_DEACTIVATION.value: status.HTTP_409_CONFLICT,
    ErrorCode.EMAIL_EXISTS.value: status.HTTP_409_CONFLICT,
    ErrorCode.STORAGE_ERROR.value: status.HTTP_500_INTERNAL_SERVER_ERROR,
}


def get_dispatcher(request: Request) -> OperationDispatcher:
    dispatcher = getattr(request.app.state, "dispatcher", None)
    if dispatcher is None:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Operation dispatcher is not initialized",
        )
    return dispatcher


def http_status_for(envelope: Mapping[str, Any], success_status: int = status.HTTP_200_OK) -> int:
    if envelope.get("success"):
        return success_status
    return ERROR_STATUS.get(str(envelope.get("code")), status.HTTP_500_INTERNAL_SERVER_ERROR)


def dispatch(
    dispatcher: OperationDispatcher,
    operation: str,
    payload: Optional[Mapping[str, Any]] = None,
    *,
    success_status: int = status.HTTP_200_OK,
) -> JSONResponse:
    """Run ``operation`` and return its envelope with the matching HTTP status."""
    envelope = dispatcher.execute(operation, payload)
    return JSONResponse(
        status_code=http_status_for(envelope, success_status),
        content=envelope,
    )


def query_payload(request: Request, **extra: Any) -> dict[str, Any]:
    payload: dict[str, Any] = dict(request.query_params)
    payload.update({key: value for key, value in extra.items() if value is not None})
    return payload


def dispatch_body(
    dispatcher: OperationDispatcher,
    operation: str,
    body: OperationPayload,
    *,
    success_status: int = status.HTTP_200_OK,
    **path_values: Any,
) -> JSONResponse:
    """Dispatch a typed request body, with path parameters filling the identifying fields."""
    payload = body.model_dump(mode="json", by_alias=True, exclude_unset=True)
    payload.update(path_values)
    return dispatch(dispatcher, operation, payload, success_status=success_status)


async def request_validation_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    """Report rejected request bodies in the same envelope the dispatcher uses."""
    return JSONResponse(
        status_code=status.HTTP_400_BAD_REQUEST,
        content=failure(ErrorCode.INVALID_INPUT, describe_validation_errors(exc.errors())),
    )
