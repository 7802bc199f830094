"""API routers package."""

from stepup_api.routers import step_up

__all__ = [
    "step_up",
]
