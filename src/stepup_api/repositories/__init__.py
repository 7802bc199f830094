"""Repositories package."""

from stepup_api.repositories.base import BaseRepository
from stepup_api.repositories.user_repository import UserRepository

__all__ = [
    "BaseRepository",
    "UserRepository",
]
