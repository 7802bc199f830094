"""Secure logging utilities to prevent information disclosure."""

import logging
import re
from functools import lru_cache
from typing import Any

from stepup_api.config import get_settings

_REDACTIONS: list[tuple[re.Pattern[str], str]] = [
    # File paths (Unix and Windows)
    (re.compile(r"['\"]?(/[a-zA-Z0-9_./\-]+|[A-Z]:\\[^\s'\"]+)['\"]?"), "[PATH]"),
    # Connection strings
    (re.compile(r"(postgresql|postgres|redis|http|https)(\+\w+)?://[^\s]+"), "[URL]"),
    # Email addresses
    (re.compile(r"[a-zA-Z0-9_.+-]+@[a-zA-Z0-9-]+\.[a-zA-Z0-9-.]+"), "[EMAIL]"),
    # Base32 TOTP secrets
    (re.compile(r"\b[A-Z2-7]{16,}\b"), "[SECRET]"),
    # API keys/tokens (long alphanumeric strings)
    (re.compile(r"[a-zA-Z0-9_\-]{32,}"), "[TOKEN]"),
    # One-time codes
    (re.compile(r"\b\d{6}\b"), "[CODE]"),
]

MAX_MESSAGE_LENGTH = 200


@lru_cache(maxsize=1)
def is_debug_mode() -> bool:
    """Check if application is running in debug mode."""
    return get_settings().debug


def sanitize_exception_message(error: Exception) -> str:
    """Sanitize exception message for logging in production.

    Args:
        error: The exception to sanitize

    Returns:
        Sanitized error message suitable for production logs
    """
    error_msg = str(error)
    for pattern, replacement in _REDACTIONS:
        error_msg = pattern.sub(replacement, error_msg)

    if len(error_msg) > MAX_MESSAGE_LENGTH:
        error_msg = error_msg[: MAX_MESSAGE_LENGTH - 3] + "..."

    return error_msg


def _log(
    logger: logging.Logger,
    level: int,
    message: str,
    error: Exception | None,
    context: dict[str, Any],
) -> None:
    if is_debug_mode():
        text = f"{message}: {error}" if error else message
        logger.log(level, text, exc_info=error is not None and level >= logging.ERROR, extra=context)
        return

    if error:
        logger.log(level, f"{message}: {type(error).__name__}: {sanitize_exception_message(error)}")
    else:
        logger.log(level, message)


def log_error(
    logger: logging.Logger,
    message: str,
    error: Exception | None = None,
    **kwargs: Any,
) -> None:
    """Log an error with appropriate detail level based on environment.

    In debug mode, logs full exception details. Otherwise logs a sanitized
    message and drops the extra context.

    Args:
        logger: The logger instance to use
        message: The log message (should be generic, no sensitive data)
        error: Optional exception to include
        **kwargs: Additional context, only attached in debug mode
    """
    _log(logger, logging.ERROR, message, error, kwargs)


def log_warning(
    logger: logging.Logger,
    message: str,
    error: Exception | None = None,
    **kwargs: Any,
) -> None:
    """Log a warning with appropriate detail level based on environment."""
    _log(logger, logging.WARNING, message, error, kwargs)
