"""Domain models package."""

from stepup_api.models.domain.step_up import StepUpCredential, StepUpState
from stepup_api.models.domain.user import User

__all__ = [
    "StepUpCredential",
    "StepUpState",
    "User",
]
