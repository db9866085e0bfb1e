"""Custom exception classes and error handling."""
from typing import Optional
from fastapi import Request, status
from fastapi.responses import JSONResponse
from fastapi.exceptions import RequestValidationError
from fastapi.encoders import jsonable_encoder

from app.utils.logger import get_logger
from app.config.sentry import capture_exception, add_breadcrumb, settings

logger = get_logger(__name__)


class AppError(Exception):
    """Base application error."""

    def __init__(
        self,
        message: str,
        status_code: int = 500,
        code: Optional[str] = None,
        details: Optional[dict] = None,
    ):
        self.message = message
        self.status_code = status_code
        self.code = code or "APP_ERROR"
        self.details = details or {}
        super().__init__(self.message)


class ValidationError(AppError):
    """Malformed or missing input, rejected before any mutation."""

    def __init__(self, message: str, details: Optional[dict] = None):
        super().__init__(
            message=message,
            status_code=status.HTTP_400_BAD_REQUEST,
            code="VALIDATION_ERROR",
            details=details or {},
        )


class NotFoundError(AppError):
    """Resource not found error."""

    def __init__(self, resource: str, identifier: Optional[str] = None):
        message = f"{resource} not found"
        if identifier:
            message += f" (id: {identifier})"
        super().__init__(
            message=message,
            status_code=status.HTTP_404_NOT_FOUND,
            code="NOT_FOUND",
            details={"resource": resource, "identifier": identifier},
        )


class StateConflictError(AppError):
    """Operation is illegal for the entity's current state."""

    def __init__(self, message: str, details: Optional[dict] = None, code: str = "STATE_CONFLICT"):
        super().__init__(
            message=message,
            status_code=status.HTTP_409_CONFLICT,
            code=code,
            details=details or {},
        )


class ForbiddenRoleError(StateConflictError):
    """A user's role does not qualify them for the requested work."""

    def __init__(self, role: str, allowed: Optional[list] = None):
        super().__init__(
            message=f"Role {role} is not permitted for this operation",
            details={"role": role, "allowed_roles": allowed or []},
            code="FORBIDDEN_ROLE",
        )


class ExternalServiceError(AppError):
    """The clearinghouse (or another remote system) failed or timed out."""

    def __init__(self, service: str, message: str):
        super().__init__(
            message=f"{service} error: {message}",
            status_code=status.HTTP_502_BAD_GATEWAY,
            code="EXTERNAL_FAILURE",
            details={"service": service},
        )


class RemittanceParseError(AppError):
    """Remittance text is structurally malformed."""

    def __init__(self, message: str, line_number: Optional[int] = None, segment: Optional[str] = None):
        if line_number is not None:
            message = f"{message} (line {line_number})"
        super().__init__(
            message=message,
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            code="PARSE_FAILURE",
            details={"line_number": line_number, "segment": segment},
        )


class PersistenceError(AppError):
    """A storage transaction failed and was rolled back."""

    def __init__(self, message: str = "A database error occurred"):
        super().__init__(
            message=message,
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            code="PERSISTENCE_FAILURE",
        )


class UnauthorizedError(AppError):
    """Unauthorized access error."""

    def __init__(self, message: str = "Unauthorized"):
        super().__init__(
            message=message,
            status_code=status.HTTP_401_UNAUTHORIZED,
            code="UNAUTHORIZED",
        )


class ForbiddenError(AppError):
    """Forbidden access error."""

    def __init__(self, message: str = "Forbidden"):
        super().__init__(
            message=message,
            status_code=status.HTTP_403_FORBIDDEN,
            code="FORBIDDEN",
        )


async def app_error_handler(request: Request, exc: AppError) -> JSONResponse:
    """Handle application errors."""
    add_breadcrumb(
        message=f"Application error: {exc.code}",
        category="error",
        level="warning" if exc.status_code < 500 else "error",
        data={
            "path": request.url.path,
            "method": request.method,
            "status_code": exc.status_code,
        },
    )

    logger.warning(
        "Application error",
        error=exc.code,
        message=exc.message,
        path=request.url.path,
        status_code=exc.status_code,
    )

    # Server errors always alert; client errors only when opted in
    should_alert = settings.enable_alerts and (
        exc.status_code >= 500 or settings.alert_on_errors
    )
    if should_alert:
        capture_exception(
            exc,
            level="error" if exc.status_code >= 500 else "warning",
            context={
                "request": {"path": request.url.path, "method": request.method},
                "error": {"code": exc.code, "status_code": exc.status_code},
            },
            tags={
                "error_type": exc.code,
                "status_code": str(exc.status_code),
            },
        )

    return JSONResponse(
        status_code=exc.status_code,
        content={
            "error": exc.code,
            "message": exc.message,
            "details": jsonable_encoder(exc.details),
        },
    )


async def validation_error_handler(
    request: Request, exc: RequestValidationError
) -> JSONResponse:
    """Handle request validation errors."""
    errors = jsonable_encoder(exc.errors())
    add_breadcrumb(
        message="Request validation failed",
        category="validation",
        level="warning",
        data={"path": request.url.path, "method": request.method},
    )

    logger.warning(
        "Validation error",
        path=request.url.path,
        errors=errors,
    )

    if settings.enable_alerts and settings.alert_on_warnings:
        capture_exception(
            exc,
            level="warning",
            context={"request": {"path": request.url.path, "method": request.method}},
            tags={"error_type": "VALIDATION_ERROR"},
        )

    return JSONResponse(
        status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
        content={
            "error": "VALIDATION_ERROR",
            "message": "Request validation failed",
            "details": errors,
        },
    )


async def general_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Handle unexpected exceptions."""
    add_breadcrumb(
        message=f"Unexpected error: {type(exc).__name__}",
        category="exception",
        level="error",
        data={
            "path": request.url.path,
            "method": request.method,
            "error_type": type(exc).__name__,
        },
    )

    logger.error(
        "Unexpected error",
        error=str(exc),
        path=request.url.path,
        exc_info=True,
    )

    if settings.enable_alerts:
        capture_exception(
            exc,
            level="error",
            context={"request": {"path": request.url.path, "method": request.method}},
            tags={"error_type": type(exc).__name__},
        )

    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={
            "error": "INTERNAL_ERROR",
            "message": "An unexpected error occurred",
        },
    )
