"""Middleware package."""

from stepup_api.middleware.error_handler import (
    generic_exception_handler,
    http_exception_handler,
    sqlalchemy_exception_handler,
    step_up_exception_handler,
    validation_exception_handler,
)

__all__ = [
    "generic_exception_handler",
    "http_exception_handler",
    "sqlalchemy_exception_handler",
    "step_up_exception_handler",
    "validation_exception_handler",
]
