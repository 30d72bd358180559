"""Custom exceptions and handlers for consistent error responses.

Caller mistakes (duplicate group id, unknown group, forbidden role
assignment) propagate as BizDeskException subclasses and are rendered by
the handlers below.  Environment failures (upstream unreachable, token
decode) are absorbed by the fallback chains and normally never reach here.
"""

import logging
from typing import Union

from fastapi import HTTPException, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from pydantic import ValidationError
from starlette.exceptions import HTTPException as StarletteHTTPException

logger = logging.getLogger(__name__)


class BizDeskException(Exception):
    """Base exception for BizDesk authorization errors."""

    def __init__(
        self,
        message: str,
        status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR,
        error_code: str = "INTERNAL_ERROR",
    ):
        self.message = message
        self.status_code = status_code
        self.error_code = error_code
        super().__init__(self.message)


class GroupNotFoundError(BizDeskException):
    """Permission group id is absent (update/remove/clone)."""

    def __init__(self, group_id: str):
        self.group_id = group_id
        super().__init__(
            message=f"Permission group not found: {group_id}",
            status_code=status.HTTP_404_NOT_FOUND,
            error_code="GROUP_NOT_FOUND",
        )


class DuplicateGroupError(BizDeskException):
    """Permission group id already exists (create/clone)."""

    def __init__(self, group_id: str):
        self.group_id = group_id
        super().__init__(
            message=f"Permission group with this id already exists: {group_id}",
            status_code=status.HTTP_409_CONFLICT,
            error_code="DUPLICATE_GROUP",
        )


class RemoteUnavailableError(BizDeskException):
    """Upstream service unreachable or answering with a server error."""

    def __init__(self, message: str = "Remote service unavailable"):
        super().__init__(
            message=message,
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            error_code="REMOTE_UNAVAILABLE",
        )


class PermissionDeniedError(BizDeskException):
    """Exception for permission denied."""

    def __init__(self, message: str = "Permission denied"):
        super().__init__(
            message=message,
            status_code=status.HTTP_403_FORBIDDEN,
            error_code="PERMISSION_DENIED",
        )


class RoleAssignmentError(BizDeskException):
    """Acting role may not grant the requested role."""

    def __init__(self, acting_role: str, target_role: str):
        super().__init__(
            message=f"Role '{acting_role}' cannot assign role '{target_role}'",
            status_code=status.HTTP_403_FORBIDDEN,
            error_code="ROLE_NOT_ASSIGNABLE",
        )


def create_error_response(
    status_code: int,
    message: str,
    error_code: str = "ERROR",
    details: Union[dict, list, None] = None,
) -> JSONResponse:
    """`{"error": {"code", "message", "details"?}}` with the given status."""
    error = {"code": error_code, "message": message}
    if details:
        error["details"] = details
    return JSONResponse(status_code=status_code, content={"error": error})


def _request_extra(request: Request, **fields) -> dict:
    return {"path": request.url.path, "method": request.method, **fields}


async def bizdesk_exception_handler(request: Request, exc: BizDeskException) -> JSONResponse:
    # Caller mistakes are warnings; only upstream trouble that escaped the
    # fallback chains is an error
    log = logger.error if exc.status_code >= 500 else logger.warning
    log(
        f"{exc.error_code} on {request.method} {request.url.path}: {exc.message}",
        extra=_request_extra(request, error_code=exc.error_code),
    )
    return create_error_response(exc.status_code, exc.message, exc.error_code)


async def http_exception_handler(
    request: Request,
    exc: Union[HTTPException, StarletteHTTPException],
) -> JSONResponse:
    if exc.status_code >= 500:
        logger.error(f"HTTP {exc.status_code}: {exc.detail}", extra=_request_extra(request))
    return create_error_response(exc.status_code, str(exc.detail), f"HTTP_{exc.status_code}")


async def validation_exception_handler(
    request: Request,
    exc: Union[RequestValidationError, ValidationError],
) -> JSONResponse:
    errors = [
        {
            "field": " -> ".join(str(loc) for loc in error["loc"]),
            "message": error["msg"],
            "type": error["type"],
        }
        for error in exc.errors()
    ]
    logger.warning(
        f"Validation error on {request.url.path}: {len(errors)} problem(s)",
        extra=_request_extra(request),
    )
    return create_error_response(
        status.HTTP_422_UNPROCESSABLE_ENTITY,
        "Validation error",
        "VALIDATION_ERROR",
        details={"errors": errors},
    )


async def general_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.error(
        f"Unhandled exception on {request.url.path}: {exc}",
        extra=_request_extra(request),
        exc_info=True,
    )
    return create_error_response(
        status.HTTP_500_INTERNAL_SERVER_ERROR,
        "An unexpected error occurred. Please try again later.",
        "INTERNAL_SERVER_ERROR",
    )


def register_exception_handlers(app):
    """Register all custom exception handlers with FastAPI app."""
    app.add_exception_handler(BizDeskException, bizdesk_exception_handler)
    app.add_exception_handler(HTTPException, http_exception_handler)
    app.add_exception_handler(StarletteHTTPException, http_exception_handler)
    app.add_exception_handler(RequestValidationError, validation_exception_handler)
    app.add_exception_handler(ValidationError, validation_exception_handler)
    app.add_exception_handler(Exception, general_exception_handler)
