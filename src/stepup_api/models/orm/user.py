"""User ORM model."""

from datetime import datetime

from sqlalchemy import Boolean, DateTime, LargeBinary, String
from sqlalchemy.orm import Mapped, mapped_column

from stepup_api.models.orm.base import Base, TimestampMixin, UUIDMixin


class UserORM(Base, UUIDMixin, TimestampMixin):
    """User record carrying the login password and the step-up credential."""

    __tablename__ = "users"

    email: Mapped[str] = mapped_column(String(255), unique=True, nullable=False, index=True)
    name: Mapped[str | None] = mapped_column(String(255), nullable=True)

    # Authentication fields
    password_hash: Mapped[str | None] = mapped_column(String(255), nullable=True)
    password_changed_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)

    # Step-up credential (password change gate)
    step_up_secret_encrypted: Mapped[bytes | None] = mapped_column(LargeBinary, nullable=True)
    step_up_requested_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    step_up_verified: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    step_up_verified_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
