"""Step-up router - TOTP verification gate for password changes."""

from typing import Annotated

from fastapi import APIRouter, Depends, Header, Request

from stepup_api.dependencies import get_step_up_service
from stepup_api.models.domain.user import User
from stepup_api.models.dto.step_up import (
    PasswordChangeRequest,
    PasswordChangeResponse,
    StepUpSecretResponse,
    StepUpStatusResponse,
    StepUpVerifyRequest,
    StepUpVerifyResponse,
)
from stepup_api.security.auth import get_current_user
from stepup_api.security.rate_limit import (
    API_DEFAULT_LIMIT,
    AUTH_PASSWORD_CHANGE_LIMIT,
    STEP_UP_SECRET_LIMIT,
    STEP_UP_VERIFY_LIMIT,
    get_real_client_ip,
    limiter,
)
from stepup_api.services.step_up_service import StepUpService

router = APIRouter()


@router.post("/secret", response_model=StepUpSecretResponse)
@limiter.limit(STEP_UP_SECRET_LIMIT)
async def request_secret(
    request: Request,
    current_user: Annotated[User, Depends(get_current_user)],
    step_up_service: Annotated[StepUpService, Depends(get_step_up_service)],
    user_agent: str | None = Header(default=None),
) -> StepUpSecretResponse:
    """Issue a TOTP secret for the password change gate.

    A secret issued less than the reuse window ago is returned again, so
    retries do not invalidate an authenticator that was already set up.
    """
    return await step_up_service.request_secret(
        current_user.id,
        ip_address=get_real_client_ip(request),
        user_agent=user_agent,
    )


@router.post("/verify", response_model=StepUpVerifyResponse)
@limiter.limit(STEP_UP_VERIFY_LIMIT)
async def verify_code(
    request: Request,
    body: StepUpVerifyRequest,
    current_user: Annotated[User, Depends(get_current_user)],
    step_up_service: Annotated[StepUpService, Depends(get_step_up_service)],
    user_agent: str | None = Header(default=None),
) -> StepUpVerifyResponse:
    """Verify a TOTP code against the issued secret."""
    return await step_up_service.verify_code(
        current_user.id,
        body.code,
        ip_address=get_real_client_ip(request),
        user_agent=user_agent,
    )


@router.post("/change-password", response_model=PasswordChangeResponse)
@limiter.limit(AUTH_PASSWORD_CHANGE_LIMIT)
async def change_password(
    request: Request,
    body: PasswordChangeRequest,
    current_user: Annotated[User, Depends(get_current_user)],
    step_up_service: Annotated[StepUpService, Depends(get_step_up_service)],
    user_agent: str | None = Header(default=None),
) -> PasswordChangeResponse:
    """Change the password inside the verified window."""
    await step_up_service.change_password(
        current_user.id,
        body.new_password,
        ip_address=get_real_client_ip(request),
        user_agent=user_agent,
    )
    return PasswordChangeResponse()


@router.get("/status", response_model=StepUpStatusResponse)
@limiter.limit(API_DEFAULT_LIMIT)
async def get_status(
    request: Request,
    current_user: Annotated[User, Depends(get_current_user)],
    step_up_service: Annotated[StepUpService, Depends(get_step_up_service)],
) -> StepUpStatusResponse:
    """Get the current step-up state."""
    return await step_up_service.get_status(current_user.id)
