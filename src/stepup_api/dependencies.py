"""Centralized dependency injection factories for FastAPI."""

from fastapi import Depends
from sqlalchemy.ext.asyncio import AsyncSession

from stepup_api.database import get_db
from stepup_api.services.step_up_service import Clock, StepUpService, utc_now


def get_clock() -> Clock:
    """Get the clock the step-up windows are measured against."""
    return utc_now


def get_step_up_service(
    db: AsyncSession = Depends(get_db),
    clock: Clock = Depends(get_clock),
) -> StepUpService:
    """Get StepUpService instance."""
    return StepUpService(db, clock=clock)
