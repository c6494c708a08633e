"""Generic HTTP entry point: one route per named operation."""

from __future__ import annotations

from typing import Any, Optional

from fastapi import APIRouter, Body, Depends, Request, status
from fastapi.responses import JSONResponse

from housing.controllers.dependencies import dispatch, get_dispatcher
from housing.services.operation_service import OperationDispatcher
from housing.utils.config import get_settings


router = APIRouter(tags=["operations"])


@router.get("/health", status_code=status.HTTP_200_OK)
async def health(request: Request) -> dict[str, Any]:
    settings = getattr(request.app.state, "settings", None) or get_settings()
    dispatcher: Optional[OperationDispatcher] = getattr(request.app.state, "dispatcher", None)
    return {
        "status": "ok" if dispatcher is not None else "starting",
        "app": settings.app_name,
        "version": settings.app_version,
    }


@router.get("/operations", status_code=status.HTTP_200_OK)
async def list_operations(
    dispatcher: OperationDispatcher = Depends(get_dispatcher),
) -> dict[str, list[str]]:
    return {"operations": dispatcher.operation_names}


@router.post("/operations/{name}")
async def execute_operation(
    name: str,
    payload: Optional[dict[str, Any]] = Body(default=None),
    dispatcher: OperationDispatcher = Depends(get_dispatcher),
) -> JSONResponse:
    """Execute ``name`` with a camelCase JSON payload and return its envelope."""
    return dispatch(dispatcher, name, payload)
