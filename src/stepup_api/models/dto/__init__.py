"""Data Transfer Objects package."""

from stepup_api.models.dto.step_up import (
    PasswordChangeRequest,
    PasswordChangeResponse,
    StepUpSecretResponse,
    StepUpStatusResponse,
    StepUpVerifyRequest,
    StepUpVerifyResponse,
)

__all__ = [
    "PasswordChangeRequest",
    "PasswordChangeResponse",
    "StepUpSecretResponse",
    "StepUpStatusResponse",
    "StepUpVerifyRequest",
    "StepUpVerifyResponse",
]
