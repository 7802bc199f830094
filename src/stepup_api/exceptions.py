"""Domain-specific exceptions for the step-up API.

Services raise these instead of HTTP errors. Each carries a stable machine
code; ``middleware.error_handler`` maps them to HTTP status codes.
"""

from typing import Any


class StepUpAPIError(Exception):
    """Base exception for all step-up API errors."""

    code = "ERROR"

    def __init__(self, message: str = "An error occurred", details: dict[str, Any] | None = None) -> None:
        self.message = message
        self.details = details or {}
        super().__init__(self.message)


# =============================================================================
# Resource Not Found Errors (404)
# =============================================================================


class NotFoundError(StepUpAPIError):
    """Base class for resource not found errors."""

    code = "NOT_FOUND"


class UserNotFoundError(NotFoundError):
    """Raised when a user cannot be found."""

    code = "USER_NOT_FOUND"

    def __init__(self, user_id: str | None = None) -> None:
        details = {"user_id": str(user_id)} if user_id else {}
        super().__init__("User not found", details)


# =============================================================================
# Step-Up Flow Errors
# =============================================================================


class StepUpError(StepUpAPIError):
    """Base class for failures of the step-up flow itself."""


class NoActiveSessionError(StepUpError):
    """Raised when a code is submitted but no secret has been issued."""

    code = "NO_ACTIVE_SESSION"

    def __init__(self) -> None:
        super().__init__("No active OTP session. Please request a new secret.")


class SessionExpiredError(StepUpError):
    """Raised when the issued secret is too old to be verified against."""

    code = "SESSION_EXPIRED"

    def __init__(self) -> None:
        super().__init__("OTP session expired. Please request a new secret.")


class InvalidCodeError(StepUpError):
    """Raised when the submitted code is malformed or does not match."""

    code = "INVALID_CODE"

    def __init__(self, reason: str = "mismatch") -> None:
        super().__init__("Invalid OTP code", {"reason": reason})


class StepUpRequiredError(StepUpError):
    """Raised when a password change is attempted without a completed verification."""

    code = "STEP_UP_REQUIRED"

    def __init__(self) -> None:
        super().__init__("OTP verification is required before changing password")


class VerificationExpiredError(StepUpError):
    """Raised when the verified window closed before the password was changed."""

    code = "VERIFICATION_EXPIRED"

    def __init__(self, secret_retained: bool = False) -> None:
        super().__init__(
            "OTP verification expired. Please verify a new code.",
            {"secret_retained": secret_retained},
        )


class WeakPasswordError(StepUpError):
    """Raised when the new password does not meet the policy."""

    code = "WEAK_PASSWORD"

    def __init__(self, min_length: int) -> None:
        super().__init__(
            f"New password must be at least {min_length} characters long",
            {"min_length": min_length},
        )


class PasswordTooLongError(StepUpError):
    """Raised when the new password exceeds what bcrypt can hash."""

    code = "PASSWORD_TOO_LONG"

    def __init__(self, max_bytes: int) -> None:
        super().__init__(
            f"New password must be at most {max_bytes} bytes long",
            {"max_bytes": max_bytes},
        )


# =============================================================================
# Infrastructure Errors (503)
# =============================================================================


class StepUpUnavailableError(StepUpAPIError):
    """Raised when the credential store cannot be reached in time."""

    code = "UNAVAILABLE"

    def __init__(self, operation: str | None = None) -> None:
        details = {"operation": operation} if operation else {}
        super().__init__("Service temporarily unavailable", details)
