import logging

from fastapi import Request, status
from fastapi.exceptions import RequestValidationError
from starlette.exceptions import HTTPException as StarletteHTTPException

from a11y_service.platform.response import error_response


class ServiceError(Exception):
    """Base class for every error the service raises on purpose."""

    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR

    def __init__(self, message: str = ""):
        super().__init__(message)
        self.message = message


class NotFoundError(ServiceError):
    """A task, result or skip id does not exist."""

    status_code = status.HTTP_404_NOT_FOUND


class ValidationError(ServiceError):
    """Malformed id, malformed stored header JSON, invalid action."""

    status_code = status.HTTP_400_BAD_REQUEST


class StoreError(ServiceError):
    """A read or write against one of the collections failed."""


class ResolutionError(ServiceError):
    """The sitemap could not be fetched or parsed."""

    status_code = status.HTTP_502_BAD_GATEWAY


class CheckError(ServiceError):
    """A single page check failed."""

    status_code = status.HTTP_502_BAD_GATEWAY

    def __init__(self, message: str = "", url: str = None):
        super().__init__(message)
        self.url = url


class TaskAlreadyRunningError(ServiceError):
    """A run of the same task is already in flight."""

    status_code = status.HTTP_409_CONFLICT

    def __init__(self, task_id: str):
        super().__init__(f"Task {task_id} is already running")
        self.task_id = task_id


def add_exception_handlers(app):
    @app.exception_handler(ServiceError)
    async def service_exception_handler(request: Request, exc: ServiceError):
        if exc.status_code >= 500:
            logging.error(f"{type(exc).__name__} on {request.url.path}: {exc.message}")
        details = {"task": exc.task_id} if isinstance(exc, TaskAlreadyRunningError) else None
        return error_response(exc.message, exc.status_code, error=type(exc).__name__, details=details)

    @app.exception_handler(StarletteHTTPException)
    async def http_exception_handler(request: Request, exc: StarletteHTTPException):
        return error_response(str(exc.detail), exc.status_code)

    @app.exception_handler(RequestValidationError)
    async def validation_exception_handler(request: Request, exc: RequestValidationError):
        return error_response(
            "Validation failed",
            status.HTTP_422_UNPROCESSABLE_ENTITY,
            error="RequestValidationError",
            details={"errors": exc.errors()},
        )

    @app.exception_handler(Exception)
    async def general_exception_handler(request: Request, exc: Exception):
        logging.exception(f"Unhandled exception: {exc}")
        return error_response("Internal server error", status.HTTP_500_INTERNAL_SERVER_ERROR)
