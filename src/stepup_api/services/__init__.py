"""Services package."""

from stepup_api.services.step_up_service import StepUpService
from stepup_api.services.totp_service import TotpService

__all__ = [
    "StepUpService",
    "TotpService",
]
