"""REST routes for the student registry."""

from __future__ import annotations

from fastapi import APIRouter, Depends, Request, status
from fastapi.responses import JSONResponse

from housing.controllers.dependencies import dispatch, dispatch_body, get_dispatcher, query_payload
from housing.domain.payloads import AddStudentPayload, DeletionRequestBody, StudentChanges
from housing.services.operation_service import OperationDispatcher


router = APIRouter(tags=["students"])


@router.get("/students")
async def get_students(
    request: Request,
    dispatcher: OperationDispatcher = Depends(get_dispatcher),
) -> JSONResponse:
    return dispatch(dispatcher, "getStudents", query_payload(request))


@router.post("/students")
async def add_student(
    payload: AddStudentPayload,
    dispatcher: OperationDispatcher = Depends(get_dispatcher),
) -> JSONResponse:
    return dispatch_body(dispatcher, "addStudent", payload, success_status=status.HTTP_201_CREATED)


@router.get("/students/{student_id}")
async def get_student(
    student_id: str,
    dispatcher: OperationDispatcher = Depends(get_dispatcher),
) -> JSONResponse:
    return dispatch(dispatcher, "getStudent", {"studentId": student_id})


@router.patch("/students/{student_id}")
async def update_student(
    student_id: str,
    payload: StudentChanges,
    dispatcher: OperationDispatcher = Depends(get_dispatcher),
) -> JSONResponse:
    return dispatch_body(dispatcher, "updateStudent", payload, studentId=student_id)


@router.delete("/students/{student_id}")
async def delete_student(
    student_id: str,
    request: Request,
    dispatcher: OperationDispatcher = Depends(get_dispatcher),
) -> JSONResponse:
    """Execute an approved deletion request (``requestId`` and ``requesterId`` query params)."""
    return dispatch(dispatcher, "deleteStudent", query_payload(request, studentId=student_id))


@router.delete("/students/{student_id}/room")
async def unassign_student(
    student_id: str,
    request: Request,
    dispatcher: OperationDispatcher = Depends(get_dispatcher),
) -> JSONResponse:
    return dispatch(
        dispatcher,
        "unassignStudentFromRoom",
        query_payload(request, studentId=student_id),
    )


@router.post("/students/{student_id}/deletion-requests")
async def request_student_deletion(
    student_id: str,
    payload: DeletionRequestBody,
    dispatcher: OperationDispatcher = Depends(get_dispatcher),
) -> JSONResponse:
    return dispatch_body(
        dispatcher,
        "requestDeleteStudent",
        payload,
        success_status=status.HTTP_201_CREATED,
        studentId=student_id,
    )
