"""
Response envelope shared by every route and exception handler.

Every body has the shape {status_code, status, message, data}; status is
"success" below 400 and "error" otherwise.
"""
from typing import Any, Optional

from fastapi import status
from fastapi.encoders import jsonable_encoder
from fastapi.responses import JSONResponse


def api_response(
    *,
    data: Optional[Any] = None,
    message: str = "Operation successful",
    status_code: int = status.HTTP_200_OK,
    headers: Optional[dict] = None,
) -> JSONResponse:
    status_str = "success" if status_code < 400 else "error"
    return JSONResponse(
        status_code=status_code,
        content={
            "status_code": status_code,
            "status": status_str,
            "message": message,
            "data": jsonable_encoder(data) if data is not None else {},
        },
        headers=headers,
    )


def created_response(data: Any, message: str, location: Optional[str] = None) -> JSONResponse:
    """201 with the new record; Location points at where it can be read back."""
    return api_response(
        data=data,
        message=message,
        status_code=status.HTTP_201_CREATED,
        headers={"Location": location} if location else None,
    )


def accepted_response(task_id: str, job_id: str) -> JSONResponse:
    """202 for a queued run. Its outcome is only visible through the task's results."""
    return api_response(
        data={"task": task_id, "job_id": job_id},
        message="Run accepted",
        status_code=status.HTTP_202_ACCEPTED,
    )


def error_response(
    message: str,
    status_code: int,
    error: Optional[str] = None,
    details: Optional[dict] = None,
) -> JSONResponse:
    """
    Error envelope. `error` names the failure class (e.g. "NotFoundError")
    so clients can tell a missing task from a store outage without parsing
    the message.
    """
    data = dict(details or {})
    if error:
        data["error"] = error
    return api_response(data=data, message=message or "Error", status_code=status_code)
