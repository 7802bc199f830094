"""SQLAlchemy ORM models package."""

from stepup_api.models.orm.base import Base
from stepup_api.models.orm.user import UserORM

__all__ = [
    "Base",
    "UserORM",
]
