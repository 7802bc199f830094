"""User repository."""

from datetime import datetime, timezone

from sqlalchemy import select

from stepup_api.models.orm.user import UserORM
from stepup_api.repositories.base import BaseRepository


class UserRepository(BaseRepository[UserORM]):
    """Repository for user and step-up credential operations."""

    model = UserORM

    async def get_by_email(self, email: str) -> UserORM | None:
        """Get user by email.

        Args:
            email: User email address

        Returns:
            UserORM or None if not found
        """
        result = await self.session.execute(
            select(UserORM).where(UserORM.email == email.lower())
        )
        return result.scalar_one_or_none()

    async def create_user(
        self,
        email: str,
        password_hash: str | None = None,
        name: str | None = None,
    ) -> UserORM:
        """Create a new user.

        Args:
            email: User email
            password_hash: Hashed password
            name: Display name

        Returns:
            Created UserORM
        """
        return await self.create(
            email=email.lower(),
            password_hash=password_hash,
            name=name,
            password_changed_at=datetime.now(timezone.utc) if password_hash else None,
        )

    # Step-Up Credential Methods

    async def save_step_up(
        self,
        user: UserORM,
        secret_encrypted: bytes | None,
        requested_at: datetime | None,
        verified: bool,
        verified_at: datetime | None,
    ) -> UserORM:
        """Write all four step-up fields of a locked user row.

        Args:
            user: User loaded with ``get_for_update``
            secret_encrypted: Encrypted TOTP secret or None to clear
            requested_at: When the secret was issued
            verified: Whether a code has been verified in this cycle
            verified_at: When the code was verified

        Returns:
            Updated UserORM
        """
        user.step_up_secret_encrypted = secret_encrypted
        user.step_up_requested_at = requested_at
        user.step_up_verified = verified
        user.step_up_verified_at = verified_at
        await self.session.flush()
        return user

    async def clear_step_up_verification(self, user: UserORM) -> UserORM:
        """Close the verified window, keeping the secret.

        Args:
            user: User loaded with ``get_for_update``

        Returns:
            Updated UserORM
        """
        user.step_up_verified = False
        user.step_up_verified_at = None
        await self.session.flush()
        return user

    async def clear_step_up(self, user: UserORM) -> UserORM:
        """Reset every step-up field.

        Args:
            user: User loaded with ``get_for_update``

        Returns:
            Updated UserORM
        """
        return await self.save_step_up(user, None, None, False, None)

    async def update_password(
        self,
        user: UserORM,
        password_hash: str,
        changed_at: datetime,
    ) -> UserORM:
        """Store a new password hash.

        Args:
            user: User loaded with ``get_for_update``
            password_hash: New hashed password
            changed_at: Change instant

        Returns:
            Updated UserORM
        """
        user.password_hash = password_hash
        user.password_changed_at = changed_at
        await self.session.flush()
        return user
