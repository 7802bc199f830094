"""Step-up authentication DTOs."""

from datetime import datetime

from pydantic import BaseModel, Field, field_validator

from stepup_api.models.domain.step_up import StepUpState


class StepUpSecretResponse(BaseModel):
    """Issued (or reused) TOTP secret with its provisioning URI."""

    secret: str = Field(description="Base32-encoded TOTP secret for manual entry")
    provisioning_uri: str = Field(description="OTPAuth URI for authenticator apps")


class StepUpVerifyRequest(BaseModel):
    """TOTP verification request.

    The code is not shape-validated here: surrounding whitespace is allowed
    and malformed codes of any length are reported as INVALID_CODE. A JSON
    number is accepted and read as its decimal digits, so a code whose leading
    zeros were lost is reported as INVALID_CODE too.
    """

    code: str | int = Field(description="6-digit TOTP code from authenticator app")

    @field_validator("code")
    @classmethod
    def code_as_text(cls, v: str | int) -> str:
        """Read numeric codes as digit strings."""
        return str(v)


class StepUpVerifyResponse(BaseModel):
    """Response after a successful code verification."""

    verified: bool = True
    verified_at: datetime
    message: str = "OTP verified successfully"


class PasswordChangeRequest(BaseModel):
    """New password submitted inside the verified window."""

    new_password: str = Field(max_length=128, description="New account password")


class PasswordChangeResponse(BaseModel):
    """Response after a successful password change."""

    message: str = "Password changed successfully"


class StepUpStatusResponse(BaseModel):
    """Current step-up state for the authenticated user."""

    state: StepUpState
    requested_at: datetime | None = None
    verified_at: datetime | None = None
    secret_reusable_until: datetime | None = None
    verify_expires_at: datetime | None = None
    change_expires_at: datetime | None = None
