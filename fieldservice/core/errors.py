"""
Central error handling for the Field Service backend

Services raise the typed errors defined here; the handlers below turn them
(and FastAPI's own exceptions) into one JSON envelope.
"""
import logging
import traceback
from typing import Dict, Optional

from fastapi import Request, status
from fastapi.responses import JSONResponse
from fastapi.exceptions import RequestValidationError
from fastapi import HTTPException

logger = logging.getLogger(__name__)

_CORS_HEADERS = {
    "Access-Control-Allow-Origin": "*",
    "Access-Control-Allow-Methods": "*",
    "Access-Control-Allow-Headers": "*",
}


class DomainError(Exception):
    """Base class for errors raised by the service layer."""

    status_code: int = status.HTTP_400_BAD_REQUEST
    default_detail: str = "Request could not be completed"

    def __init__(self, detail: Optional[str] = None):
        self.detail = detail or self.default_detail
        super().__init__(self.detail)

    @property
    def headers(self) -> Dict[str, str]:
        return {}


class Unauthenticated(DomainError):
    status_code = status.HTTP_401_UNAUTHORIZED
    default_detail = "Invalid authentication credentials"

    @property
    def headers(self) -> Dict[str, str]:
        return {"WWW-Authenticate": "Bearer"}


class Forbidden(DomainError):
    status_code = status.HTTP_403_FORBIDDEN
    default_detail = "Forbidden: Access to this resource is denied."


class NotFound(DomainError):
    status_code = status.HTTP_404_NOT_FOUND
    default_detail = "Resource not found or access denied"


class ValidationError(DomainError):
    status_code = status.HTTP_422_UNPROCESSABLE_ENTITY
    default_detail = "Invalid request data"


class InvalidStateTransition(DomainError):
    status_code = status.HTTP_409_CONFLICT

    def __init__(self, current: str, requested: str, detail: Optional[str] = None):
        self.current = current
        self.requested = requested
        super().__init__(detail or f"Cannot change status from '{current}' to '{requested}'")


class AlreadyClockedIn(DomainError):
    status_code = status.HTTP_409_CONFLICT
    default_detail = "User is already clocked in"


class NotClockedIn(DomainError):
    status_code = status.HTTP_400_BAD_REQUEST
    default_detail = "User is not clocked in"


class RoleInUse(DomainError):
    status_code = status.HTTP_409_CONFLICT
    default_detail = "Role is currently assigned to one or more users"


class SchedulingConflict(DomainError):
    status_code = status.HTTP_409_CONFLICT
    default_detail = "Technician is already booked for this time slot"


class WorkOrderClosed(DomainError):
    status_code = status.HTTP_409_CONFLICT
    default_detail = "Work order is closed"


def _envelope(request: Request, status_code: int, detail, **extra) -> dict:
    content = {
        "error": True,
        "status_code": status_code,
        "detail": detail,
        "path": str(request.url.path),
    }
    content.update(extra)
    return content


async def domain_exception_handler(request: Request, exc: DomainError) -> JSONResponse:
    """
    Map a DomainError raised by a service to the JSON error envelope.

    Args:
        request: FastAPI request object
        exc: DomainError instance

    Returns:
        JSONResponse with the error's status code and detail
    """
    extra = {}
    if isinstance(exc, InvalidStateTransition):
        extra = {"current_status": exc.current, "requested_status": exc.requested}
    return JSONResponse(
        status_code=exc.status_code,
        content=_envelope(request, exc.status_code, exc.detail, **extra),
        headers={**_CORS_HEADERS, **exc.headers},
    )


async def http_exception_handler(request: Request, exc: HTTPException) -> JSONResponse:
    """
    Handle HTTPException with consistent JSON response format

    Args:
        request: FastAPI request object
        exc: HTTPException instance

    Returns:
        JSONResponse with error details
    """
    return JSONResponse(
        status_code=exc.status_code,
        content=_envelope(request, exc.status_code, exc.detail),
        headers={**_CORS_HEADERS, **(exc.headers or {})},
    )


async def validation_exception_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    """
    Handle RequestValidationError with consistent JSON response format

    Does not leak internal validation details in production.
    """
    from fieldservice.core.config import settings

    if settings.APP_ENV == "prod":
        return JSONResponse(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            content=_envelope(request, 422, "Validation error: Invalid request data"),
        )

    # Sanitize for JSON: e.g. ctx.error ValueError -> str
    errors = []
    for e in exc.errors():
        err = dict(e)
        if "ctx" in err and isinstance(err["ctx"], dict):
            err["ctx"] = {
                k: (str(v) if not isinstance(v, (str, int, float, bool, type(None))) else v)
                for k, v in err["ctx"].items()
            }
        errors.append(err)
    return JSONResponse(
        status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
        content=_envelope(request, 422, "Validation error", errors=errors),
    )


async def generic_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """
    Handle unexpected exceptions with consistent JSON response format

    Does not leak internal error details in production.
    """
    from fieldservice.core.config import settings

    logger.error("Unhandled exception: %s", exc, exc_info=True)

    if settings.APP_ENV == "prod":
        return JSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content=_envelope(request, 500, "Internal server error"),
            headers=_CORS_HEADERS,
        )

    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content=_envelope(
            request,
            500,
            str(exc),
            traceback=traceback.format_exc() if settings.APP_ENV == "local" else None,
        ),
        headers=_CORS_HEADERS,
    )
