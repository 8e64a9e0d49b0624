"""
Domain exceptions and the FastAPI handlers that turn them into responses.

Services raise these instead of HTTPException so the same rules can run
from request handlers and from the background scheduler. Every handler
answers with a JSON body carrying at least a ``detail`` message.
"""

import logging
from typing import Any, Dict, List, Optional, Union

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from sqlalchemy.exc import IntegrityError, InterfaceError, OperationalError

from civic_issues.config import settings

logger = logging.getLogger(__name__)


class CivicIssuesError(Exception):
    """Base exception for all application errors."""

    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR
    code = "INTERNAL_ERROR"

    def __init__(self, message: str, details: Optional[Union[Dict[str, Any], List[Dict[str, Any]]]] = None):
        self.message = message
        self.details = details or {}
        super().__init__(message)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "detail": self.message,
            "error": self.code,
            "details": self.details,
        }


class ValidationFailedError(CivicIssuesError):
    """Request body failed schema validation or broke a business rule."""

    status_code = status.HTTP_400_BAD_REQUEST
    code = "VALIDATION_FAILED"


class InvalidTransitionError(ValidationFailedError):
    """Requested status change is not in the transition table."""

    code = "INVALID_TRANSITION"

    def __init__(self, from_status: str, to_status: str):
        super().__init__(
            f"Cannot change status from '{from_status}' to '{to_status}'",
            details={"from_status": from_status, "to_status": to_status},
        )


class AuthenticationRequiredError(CivicIssuesError):
    status_code = status.HTTP_401_UNAUTHORIZED
    code = "AUTHENTICATION_REQUIRED"

    def __init__(self, message: str = "Authentication required"):
        super().__init__(message)


class PermissionDeniedError(CivicIssuesError):
    status_code = status.HTTP_403_FORBIDDEN
    code = "PERMISSION_DENIED"

    def __init__(self, message: str = "You do not have permission to perform this action"):
        super().__init__(message)


class NotFoundError(CivicIssuesError):
    status_code = status.HTTP_404_NOT_FOUND
    code = "NOT_FOUND"

    def __init__(self, resource: str, identifier: Any = None):
        message = f"{resource} not found"
        details = {"resource": resource}
        if identifier is not None:
            details["id"] = str(identifier)
        super().__init__(message, details=details)


class ConflictError(CivicIssuesError):
    status_code = status.HTTP_409_CONFLICT
    code = "CONFLICT"


class ServiceUnavailableError(CivicIssuesError):
    status_code = status.HTTP_503_SERVICE_UNAVAILABLE
    code = "SERVICE_UNAVAILABLE"

    def __init__(self, message: str = "Service temporarily unavailable, please retry"):
        super().__init__(message)


def _field_errors(exc: RequestValidationError) -> List[Dict[str, str]]:
    """Flatten pydantic errors into ``{field, message}`` pairs."""
    errors = []
    for error in exc.errors():
        location = [str(part) for part in error.get("loc", ()) if part != "body"]
        errors.append({
            "field": ".".join(location) or "body",
            "message": error.get("msg", "Invalid value"),
        })
    return errors


async def civic_error_handler(request: Request, exc: CivicIssuesError) -> JSONResponse:
    if exc.status_code >= 500:
        logger.error(f"{exc.code} on {request.method} {request.url.path}: {exc.message}")
    return JSONResponse(status_code=exc.status_code, content=exc.to_dict())


async def validation_error_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    return JSONResponse(
        status_code=status.HTTP_400_BAD_REQUEST,
        content=ValidationFailedError("Validation failed", details=_field_errors(exc)).to_dict(),
    )


async def integrity_error_handler(request: Request, exc: IntegrityError) -> JSONResponse:
    logger.warning(f"Integrity error on {request.method} {request.url.path}: {exc.orig}")
    return JSONResponse(
        status_code=status.HTTP_409_CONFLICT,
        content={"detail": "Resource already exists", "error": ConflictError.code, "details": {}},
    )


async def database_unavailable_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.error(f"Database unavailable on {request.method} {request.url.path}: {exc}")
    return JSONResponse(
        status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
        content=ServiceUnavailableError().to_dict(),
    )


async def unhandled_error_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.error(
        f"Unhandled error on {request.method} {request.url.path}: {exc}",
        exc_info=exc,
    )
    content: Dict[str, Any] = {
        "detail": "Internal server error",
        "error": CivicIssuesError.code,
        "details": {},
    }
    if not settings.is_production:
        content["details"] = {"type": type(exc).__name__, "message": str(exc)}
    return JSONResponse(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, content=content)


def register_exception_handlers(app: FastAPI) -> None:
    """Attach all error handlers to the application."""
    app.add_exception_handler(CivicIssuesError, civic_error_handler)
    app.add_exception_handler(RequestValidationError, validation_error_handler)
    app.add_exception_handler(IntegrityError, integrity_error_handler)
    app.add_exception_handler(OperationalError, database_unavailable_handler)
    app.add_exception_handler(InterfaceError, database_unavailable_handler)
    app.add_exception_handler(Exception, unhandled_error_handler)
