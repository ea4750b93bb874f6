"""Workflow error taxonomy and the FastAPI handlers that render it.

Every domain failure raised by the data layer or the services derives from
`WorkflowError` and carries a short machine-readable `code`. Handlers render
them with the same body shape as framework errors::

    {"error": "<code>", "detail": "<message>"}
"""

from fastapi import Request
from fastapi.responses import JSONResponse
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from starlette import status
import logging

logger = logging.getLogger("approvalflow.errors")


class WorkflowError(Exception):
    code = "workflow_error"
    http_status = status.HTTP_400_BAD_REQUEST

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class NotFoundError(WorkflowError):
    code = "not_found"
    http_status = status.HTTP_404_NOT_FOUND


class ValidationError(WorkflowError):
    """Invalid input or a violated uniqueness constraint. Not retryable."""

    code = "validation_error"

    def __init__(self, message: str, conflict: bool = False):
        super().__init__(message)
        if conflict:
            self.http_status = status.HTTP_409_CONFLICT


class ForbiddenError(WorkflowError):
    code = "forbidden"
    http_status = status.HTTP_403_FORBIDDEN


class ConcurrencyConflictError(WorkflowError):
    """The expense changed underneath a decision; the caller may retry."""

    code = "concurrency_conflict"
    http_status = status.HTTP_409_CONFLICT


def workflow_error_handler(request: Request, exc: WorkflowError):  # type: ignore
    logger.info("%s on %s %s: %s", exc.code, request.method, request.url.path, exc.message)
    return JSONResponse(
        status_code=exc.http_status,
        content={"error": exc.code, "detail": exc.message},
    )


HTTP_ERROR_CODES = {
    status.HTTP_401_UNAUTHORIZED: "unauthorized",
    status.HTTP_403_FORBIDDEN: "forbidden",
    status.HTTP_404_NOT_FOUND: "not_found",
    status.HTTP_405_METHOD_NOT_ALLOWED: "method_not_allowed",
}


def http_error_handler(request: Request, exc):  # type: ignore
    if exc.status_code == status.HTTP_404_NOT_FOUND and exc.detail == "Not Found":
        detail = f"No route for {request.method} {request.url.path}"
    else:
        detail = exc.detail
    return JSONResponse(
        status_code=exc.status_code,
        content={
            "error": HTTP_ERROR_CODES.get(exc.status_code, "http_error"),
            "detail": detail,
        },
    )


def validation_error_handler(request: Request, exc: RequestValidationError):  # type: ignore
    return JSONResponse(
        status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
        content={
            "error": "validation_error",
            "detail": jsonable_encoder(exc.errors()),
        },
    )


def server_error_handler(request: Request, exc: Exception):  # type: ignore
    logger.exception("unhandled exception")
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={
            "error": "internal_error",
            "detail": "An unexpected error occurred.",
        },
    )
