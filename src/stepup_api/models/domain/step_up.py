"""Step-up credential domain model."""

from datetime import datetime
from enum import StrEnum

from pydantic import BaseModel


class StepUpState(StrEnum):
    """Position of a user's credential in the step-up cycle."""

    IDLE = "idle"
    PROVISIONED = "provisioned"
    STEPPED_UP = "stepped_up"


class StepUpCredential(BaseModel):
    """Step-up fields attached to a user record.

    ``secret`` is the plain base32 value; it is only ever encrypted at the
    repository boundary.
    """

    secret: str | None = None
    requested_at: datetime | None = None
    verified: bool = False
    verified_at: datetime | None = None

    @property
    def state(self) -> StepUpState:
        """Derive the cycle state from the stored fields."""
        if self.secret is None or self.requested_at is None:
            return StepUpState.IDLE
        if self.verified and self.verified_at is not None:
            return StepUpState.STEPPED_UP
        return StepUpState.PROVISIONED

    @property
    def is_stepped_up(self) -> bool:
        """True when a completed verification is on file."""
        return self.verified and self.verified_at is not None and self.secret is not None
