"""Global exception handlers for the API."""

import logging
import traceback
from datetime import datetime, timezone
from typing import Any
from uuid import uuid4

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from src.shared.config import get_settings
from src.shared.exceptions import (
    AlreadyCompleteError,
    AssessmentException,
    ConfigurationError,
    ExternalServiceError,
    InvalidStateError,
    ProgressionError,
    SessionBusyError,
    StaleTurnError,
)

settings = get_settings()
logger = logging.getLogger(__name__)

# Shown to end users instead of generation or storage failure details
RETRY_MESSAGE = "We couldn't process your answer right now. Please try again."
# Shown instead of internal progression errors, which are operator-only signals
INTERNAL_MESSAGE = "Something went wrong with your assessment. Please try again."


class APIError(Exception):
    """Base API exception with structured error response."""

    def __init__(
        self,
        message: str,
        error_code: str = "API_ERROR",
        status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR,
        details: dict[str, Any] | None = None,
    ):
        self.message = message
        self.error_code = error_code
        self.status_code = status_code
        self.details = details or {}
        super().__init__(message)


class BadRequestError(APIError):
    """Bad request error."""

    def __init__(self, message: str, details: dict[str, Any] | None = None):
        super().__init__(
            message=message,
            error_code="BAD_REQUEST",
            status_code=status.HTTP_400_BAD_REQUEST,
            details=details,
        )


def create_error_response(
    request_id: str,
    error_code: str,
    message: str,
    details: dict[str, Any] | None = None,
) -> dict[str, Any]:
    """Create standardized error response.

    Args:
        request_id: Unique request identifier
        error_code: Error code string
        message: Human-readable error message
        details: Optional additional details

    Returns:
        Structured error response dict
    """
    return {
        "success": False,
        "error": {
            "code": error_code,
            "message": message,
            "details": details or {},
        },
        "request_id": request_id,
        "timestamp": datetime.now(timezone.utc).isoformat(),
    }


def map_domain_exception(exc: AssessmentException) -> tuple[int, str, str, dict[str, Any]]:
    """Map a domain exception to (status, error code, message, details).

    - InvalidStateError -> 409 Conflict, message passed through
    - ProgressionError -> 500, generic message, details withheld
    - ExternalServiceError -> 503, generic "please try again", details withheld
    - ConfigurationError -> 500
    """
    if isinstance(exc, InvalidStateError):
        if isinstance(exc, AlreadyCompleteError):
            error_code = "ASSESSMENT_COMPLETE"
        elif isinstance(exc, SessionBusyError):
            error_code = "SESSION_BUSY"
        elif isinstance(exc, StaleTurnError):
            error_code = "STALE_TURN"
        else:
            error_code = "CONFLICT"
        return status.HTTP_409_CONFLICT, error_code, exc.message, exc.details
    if isinstance(exc, ProgressionError):
        return status.HTTP_500_INTERNAL_SERVER_ERROR, "PROGRESSION_ERROR", INTERNAL_MESSAGE, {}
    if isinstance(exc, ExternalServiceError):
        return status.HTTP_503_SERVICE_UNAVAILABLE, "SERVICE_UNAVAILABLE", RETRY_MESSAGE, {}
    if isinstance(exc, ConfigurationError):
        return status.HTTP_500_INTERNAL_SERVER_ERROR, "CONFIGURATION_ERROR", INTERNAL_MESSAGE, {}
    return status.HTTP_500_INTERNAL_SERVER_ERROR, "DOMAIN_ERROR", INTERNAL_MESSAGE, {}


def setup_exception_handlers(app: FastAPI) -> None:
    """Setup global exception handlers for the application.

    Args:
        app: FastAPI application instance
    """

    @app.exception_handler(APIError)
    async def api_error_handler(request: Request, exc: APIError) -> JSONResponse:
        """Handle custom API errors."""
        request_id = getattr(request.state, "request_id", str(uuid4()))

        logger.warning(
            f"API Error: {exc.error_code} - {exc.message}",
            extra={
                "request_id": request_id,
                "error_code": exc.error_code,
                "status_code": exc.status_code,
                "path": request.url.path,
            },
        )

        return JSONResponse(
            status_code=exc.status_code,
            content=create_error_response(
                request_id=request_id,
                error_code=exc.error_code,
                message=exc.message,
                details=exc.details,
            ),
        )

    @app.exception_handler(RequestValidationError)
    async def validation_error_handler(
        request: Request, exc: RequestValidationError
    ) -> JSONResponse:
        """Handle request validation errors."""
        request_id = getattr(request.state, "request_id", str(uuid4()))

        errors = []
        for error in exc.errors():
            loc = " -> ".join(str(x) for x in error["loc"])
            errors.append({
                "field": loc,
                "message": error["msg"],
                "type": error["type"],
            })

        logger.warning(
            f"Validation Error: {len(errors)} errors",
            extra={
                "request_id": request_id,
                "path": request.url.path,
                "errors": errors,
            },
        )

        return JSONResponse(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            content=create_error_response(
                request_id=request_id,
                error_code="VALIDATION_ERROR",
                message="Request validation failed",
                details={"errors": errors},
            ),
        )

    @app.exception_handler(AssessmentException)
    async def assessment_exception_handler(
        request: Request, exc: AssessmentException
    ) -> JSONResponse:
        """Handle domain exceptions with proper HTTP status mapping."""
        request_id = getattr(request.state, "request_id", str(uuid4()))
        status_code, error_code, message, details = map_domain_exception(exc)

        log = logger.error if status_code >= 500 else logger.warning
        log(
            f"Domain Exception: {exc.__class__.__name__} - {exc.message}",
            extra={
                "request_id": request_id,
                "error_type": exc.__class__.__name__,
                "status_code": status_code,
                "path": request.url.path,
                "details": exc.details,
            },
        )

        return JSONResponse(
            status_code=status_code,
            content=create_error_response(
                request_id=request_id,
                error_code=error_code,
                message=message,
                details=details,
            ),
        )

    @app.exception_handler(Exception)
    async def generic_error_handler(request: Request, exc: Exception) -> JSONResponse:
        """Handle unexpected errors."""
        request_id = getattr(request.state, "request_id", str(uuid4()))

        # Log full traceback in development
        if settings.is_development:
            logger.error(
                f"Unhandled Exception: {type(exc).__name__}: {str(exc)}",
                extra={
                    "request_id": request_id,
                    "path": request.url.path,
                    "traceback": traceback.format_exc(),
                },
            )
        else:
            logger.error(
                f"Unhandled Exception: {type(exc).__name__}",
                extra={
                    "request_id": request_id,
                    "path": request.url.path,
                },
            )

        # Don't expose internal errors in production
        message = str(exc) if settings.is_development else "Internal server error"

        return JSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content=create_error_response(
                request_id=request_id,
                error_code="INTERNAL_ERROR",
                message=message,
            ),
        )
