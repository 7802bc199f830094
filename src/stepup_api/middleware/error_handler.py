"""Exception handlers mapping errors to sanitized JSON responses."""

import logging
from typing import Any

from fastapi import Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from sqlalchemy.exc import SQLAlchemyError
from starlette.exceptions import HTTPException as StarletteHTTPException

from stepup_api.config import get_settings
from stepup_api.exceptions import (
    InvalidCodeError,
    NoActiveSessionError,
    NotFoundError,
    PasswordTooLongError,
    SessionExpiredError,
    StepUpAPIError,
    StepUpRequiredError,
    StepUpUnavailableError,
    VerificationExpiredError,
    WeakPasswordError,
)

logger = logging.getLogger(__name__)

# Most specific class first; the first isinstance match wins
STEP_UP_STATUS_CODES: list[tuple[type[StepUpAPIError], int]] = [
    (NotFoundError, status.HTTP_404_NOT_FOUND),
    (NoActiveSessionError, status.HTTP_400_BAD_REQUEST),
    (SessionExpiredError, status.HTTP_400_BAD_REQUEST),
    (InvalidCodeError, status.HTTP_400_BAD_REQUEST),
    (VerificationExpiredError, status.HTTP_400_BAD_REQUEST),
    (WeakPasswordError, status.HTTP_400_BAD_REQUEST),
    (PasswordTooLongError, status.HTTP_400_BAD_REQUEST),
    (StepUpRequiredError, status.HTTP_403_FORBIDDEN),
    (StepUpUnavailableError, status.HTTP_503_SERVICE_UNAVAILABLE),
]

# Safe error messages that can be shown to users
SAFE_ERROR_MESSAGES = {
    400: "Invalid request",
    401: "Authentication required",
    403: "Access denied",
    404: "Resource not found",
    405: "Method not allowed",
    422: "Invalid input data",
    429: "Too many requests",
    500: "Internal server error",
    503: "Service temporarily unavailable",
}

# HTTPException details that do not reveal implementation details
ALLOWED_ERROR_PATTERNS = [
    "Authentication required",
    "Invalid or expired token",
    "Access denied",
    "Resource not found",
    "User not found",
]


def _get_cors_headers(request: Request) -> dict[str, str]:
    """Get CORS headers for error responses.

    Exception handlers run outside the CORS middleware, so error responses
    need the headers added explicitly.

    Args:
        request: The incoming request

    Returns:
        Dict of CORS headers to add to the response
    """
    origin = request.headers.get("origin")
    if not origin:
        return {}

    if origin in get_settings().cors_origins_list:
        return {
            "Access-Control-Allow-Origin": origin,
            "Access-Control-Allow-Credentials": "true",
        }

    return {}


def get_status_code(exc: StepUpAPIError) -> int:
    """Resolve the HTTP status for a domain exception."""
    for exc_type, status_code in STEP_UP_STATUS_CODES:
        if isinstance(exc, exc_type):
            return status_code
    return status.HTTP_400_BAD_REQUEST


def is_safe_error_message(message: str) -> bool:
    """Check if an error message is safe to expose to users."""
    message_lower = message.lower()
    return any(pattern.lower() in message_lower for pattern in ALLOWED_ERROR_PATTERNS)


def sanitize_error_detail(detail: Any, status_code: int) -> str:
    """Sanitize error detail to prevent information disclosure.

    Args:
        detail: Original error detail
        status_code: HTTP status code

    Returns:
        Safe error message
    """
    if isinstance(detail, str):
        if is_safe_error_message(detail):
            return detail
    elif isinstance(detail, list):
        # Validation errors - only field name and message
        safe_errors = []
        for error in detail:
            if isinstance(error, dict):
                loc = error.get("loc", [])
                msg = error.get("msg", "Invalid value")
                field = loc[-1] if loc else "field"
                if isinstance(field, str) and not field.startswith("_"):
                    safe_errors.append(f"{field}: {msg}")
        if safe_errors:
            return "; ".join(safe_errors[:3])

    return SAFE_ERROR_MESSAGES.get(status_code, "Request failed")


async def step_up_exception_handler(request: Request, exc: StepUpAPIError) -> JSONResponse:
    """Handle domain exceptions raised by the step-up service.

    Domain messages are written for end users, so they are returned as-is
    together with the stable error code.

    Args:
        request: FastAPI request
        exc: Domain exception

    Returns:
        JSONResponse with message and code
    """
    status_code = get_status_code(exc)
    content: dict[str, Any] = {"detail": exc.message, "code": exc.code}

    if get_settings().debug and exc.details:
        content["details"] = exc.details

    headers = _get_cors_headers(request)
    if isinstance(exc, StepUpUnavailableError):
        headers["Retry-After"] = "5"

    return JSONResponse(status_code=status_code, content=content, headers=headers)


async def http_exception_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    """Handle HTTP exceptions with sanitized messages.

    Args:
        request: FastAPI request
        exc: HTTP exception

    Returns:
        JSONResponse with sanitized error
    """
    headers = _get_cors_headers(request)
    if exc.headers:
        headers.update(exc.headers)

    if get_settings().debug:
        detail = exc.detail
    else:
        detail = sanitize_error_detail(exc.detail, exc.status_code)

    return JSONResponse(
        status_code=exc.status_code,
        content={"detail": detail},
        headers=headers,
    )


async def validation_exception_handler(
    request: Request, exc: RequestValidationError
) -> JSONResponse:
    """Handle validation exceptions with sanitized messages.

    Args:
        request: FastAPI request
        exc: Validation exception

    Returns:
        JSONResponse with sanitized error
    """
    cors_headers = _get_cors_headers(request)

    # Field locations only; submitted values may be passwords or codes
    logger.warning(
        f"Validation error for {request.url.path}: "
        f"{[error.get('loc') for error in exc.errors()]}"
    )

    if get_settings().debug:
        detail: Any = exc.errors()
    else:
        detail = sanitize_error_detail(exc.errors(), status.HTTP_422_UNPROCESSABLE_ENTITY)

    return JSONResponse(
        status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
        content={"detail": detail},
        headers=cors_headers,
    )


async def sqlalchemy_exception_handler(request: Request, exc: SQLAlchemyError) -> JSONResponse:
    """Handle SQLAlchemy exceptions without leaking database details.

    Args:
        request: FastAPI request
        exc: SQLAlchemy exception

    Returns:
        JSONResponse with safe error
    """
    logger.error(f"Database error for {request.url.path}: {type(exc).__name__}", exc_info=True)

    return JSONResponse(
        status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
        content={"detail": SAFE_ERROR_MESSAGES[503], "code": StepUpUnavailableError.code},
        headers=_get_cors_headers(request),
    )


async def generic_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Handle unexpected exceptions without leaking information.

    Args:
        request: FastAPI request
        exc: Unexpected exception

    Returns:
        JSONResponse with generic error
    """
    cors_headers = _get_cors_headers(request)

    logger.error(f"Unhandled exception for {request.url.path}: {exc}", exc_info=True)

    if get_settings().debug:
        return JSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content={"detail": str(exc), "type": type(exc).__name__},
            headers=cors_headers,
        )

    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={"detail": SAFE_ERROR_MESSAGES[500]},
        headers=cors_headers,
    )
