"""Step-up authentication service.

Guards password changes behind a TOTP verification cycle:

    IDLE --request--> PROVISIONED --verify--> STEPPED_UP --change--> IDLE

Every operation is a single transaction on the caller's own user row. The row
is locked for the duration of the read-modify-write and the transaction is
committed before the outcome (success or failure) leaves the service, so the
clearing done on expiry paths is persisted even though the call fails.
"""

import asyncio
import logging
from collections.abc import AsyncIterator, Callable
from contextlib import asynccontextmanager
from datetime import datetime, timedelta, timezone
from uuid import UUID

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from stepup_api.config import get_settings
from stepup_api.exceptions import (
    InvalidCodeError,
    NoActiveSessionError,
    PasswordTooLongError,
    SessionExpiredError,
    StepUpAPIError,
    StepUpRequiredError,
    StepUpUnavailableError,
    UserNotFoundError,
    VerificationExpiredError,
    WeakPasswordError,
)
from stepup_api.models.domain.step_up import StepUpCredential
from stepup_api.models.dto.step_up import (
    StepUpSecretResponse,
    StepUpStatusResponse,
    StepUpVerifyResponse,
)
from stepup_api.models.orm.user import UserORM
from stepup_api.repositories.user_repository import UserRepository
from stepup_api.security.password import get_password_service
from stepup_api.services.totp_service import get_totp_service
from stepup_api.utils.secure_logging import log_error, log_warning
from stepup_api.utils.security_events import SecurityEventType, log_security_event

logger = logging.getLogger(__name__)

Clock = Callable[[], datetime]


def utc_now() -> datetime:
    """Current time in UTC."""
    return datetime.now(timezone.utc)


def _as_utc(value: datetime | None) -> datetime | None:
    # SQLite hands back naive datetimes; everything is stored in UTC
    if value is None or value.tzinfo is not None:
        return value
    return value.replace(tzinfo=timezone.utc)


class StepUpService:
    """Service for the password change step-up gate."""

    def __init__(self, session: AsyncSession, clock: Clock = utc_now) -> None:
        """Initialize service with database session.

        Args:
            session: Request-scoped database session
            clock: Source of the current time (UTC, timezone-aware)
        """
        self.session = session
        self.clock = clock
        self.settings = get_settings()
        self.user_repo = UserRepository(session)
        self.totp_service = get_totp_service()
        self.password_service = get_password_service()

    @property
    def reuse_window(self) -> timedelta:
        return timedelta(minutes=self.settings.step_up_reuse_window_minutes)

    @property
    def verify_window(self) -> timedelta:
        return timedelta(minutes=self.settings.step_up_verify_window_minutes)

    @property
    def change_window(self) -> timedelta:
        return timedelta(minutes=self.settings.step_up_change_window_minutes)

    @asynccontextmanager
    async def _unit_of_work(self, operation: str) -> AsyncIterator[None]:
        """Run one operation under the persistence deadline.

        Domain errors pass through untouched. Timeouts and database errors are
        rolled back and surface as ``StepUpUnavailableError``.
        """
        try:
            async with asyncio.timeout(self.settings.step_up_db_timeout_seconds):
                yield
        except StepUpAPIError:
            await self._rollback()
            raise
        except (TimeoutError, SQLAlchemyError) as e:
            await self._rollback()
            log_error(logger, f"Step-up {operation} could not reach the credential store", e)
            raise StepUpUnavailableError(operation) from e

    async def _rollback(self) -> None:
        try:
            await self.session.rollback()
        except SQLAlchemyError as e:
            log_warning(logger, "Rollback after step-up failure did not complete", e)

    async def _get_locked_user(self, user_id: UUID) -> UserORM:
        user = await self.user_repo.get_for_update(user_id)
        if user is None:
            raise UserNotFoundError(str(user_id))
        return user

    def _credential(self, user: UserORM) -> StepUpCredential:
        """Read the step-up fields of a user row into the domain model.

        A secret that no configured key can decrypt is treated as absent, which
        sends the user back to requesting a fresh one.
        """
        secret = None
        if user.step_up_secret_encrypted is not None:
            try:
                secret = self.totp_service.decrypt_secret(user.step_up_secret_encrypted)
            except ValueError as e:
                log_warning(logger, f"Unreadable step-up secret for user {user.id}", e)

        return StepUpCredential(
            secret=secret,
            requested_at=_as_utc(user.step_up_requested_at),
            verified=user.step_up_verified,
            verified_at=_as_utc(user.step_up_verified_at),
        )

    def _secret_is_fresh(self, credential: StepUpCredential, now: datetime) -> bool:
        return (
            credential.secret is not None
            and credential.requested_at is not None
            and now - credential.requested_at < self.reuse_window
        )

    async def request_secret(
        self,
        user_id: UUID,
        ip_address: str | None = None,
        user_agent: str | None = None,
    ) -> StepUpSecretResponse:
        """Issue a TOTP secret for the password change gate, or reuse a fresh one.

        Args:
            user_id: User UUID
            ip_address: Client IP address
            user_agent: Client user agent

        Returns:
            StepUpSecretResponse with the secret and its provisioning URI

        Raises:
            UserNotFoundError: If the user does not exist
            StepUpUnavailableError: If the credential store is unreachable
        """
        async with self._unit_of_work("request_secret"):
            user = await self._get_locked_user(user_id)
            now = self.clock()
            credential = self._credential(user)

            if self._secret_is_fresh(credential, now):
                await self.session.commit()
                event = SecurityEventType.STEP_UP_SECRET_REUSED
                secret = credential.secret
            else:
                secret = self.totp_service.generate_secret()
                await self.user_repo.save_step_up(
                    user,
                    secret_encrypted=self.totp_service.encrypt_secret(secret),
                    requested_at=now,
                    verified=False,
                    verified_at=None,
                )
                await self.session.commit()
                event = SecurityEventType.STEP_UP_SECRET_ISSUED

            provisioning_uri = self.totp_service.get_provisioning_uri(secret, user.email)

        log_security_event(event, user_id=user_id, ip_address=ip_address, user_agent=user_agent)

        return StepUpSecretResponse(secret=secret, provisioning_uri=provisioning_uri)

    async def verify_code(
        self,
        user_id: UUID,
        code: str,
        ip_address: str | None = None,
        user_agent: str | None = None,
    ) -> StepUpVerifyResponse:
        """Verify a TOTP code and open the password change window.

        Args:
            user_id: User UUID
            code: Code from the authenticator app
            ip_address: Client IP address
            user_agent: Client user agent

        Returns:
            StepUpVerifyResponse with the verification time

        Raises:
            InvalidCodeError: If the code is malformed or does not match
            UserNotFoundError: If the user does not exist
            NoActiveSessionError: If no secret has been issued
            SessionExpiredError: If the secret is past its verify window
            StepUpUnavailableError: If the credential store is unreachable
        """
        normalized = self.totp_service.normalize_code(code)
        if normalized is None:
            log_security_event(
                SecurityEventType.STEP_UP_VERIFY_FAILED,
                user_id=user_id,
                ip_address=ip_address,
                user_agent=user_agent,
                details={"reason": "malformed"},
                success=False,
            )
            raise InvalidCodeError("malformed")

        async with self._unit_of_work("verify_code"):
            user = await self._get_locked_user(user_id)
            now = self.clock()
            credential = self._credential(user)

            if credential.secret is None or credential.requested_at is None:
                raise NoActiveSessionError()

            if now - credential.requested_at > self.verify_window:
                await self.user_repo.clear_step_up(user)
                await self.session.commit()
                log_security_event(
                    SecurityEventType.STEP_UP_SESSION_EXPIRED,
                    user_id=user_id,
                    ip_address=ip_address,
                    user_agent=user_agent,
                    success=False,
                )
                raise SessionExpiredError()

            if not self.totp_service.verify_totp(credential.secret, normalized, now):
                log_security_event(
                    SecurityEventType.STEP_UP_VERIFY_FAILED,
                    user_id=user_id,
                    ip_address=ip_address,
                    user_agent=user_agent,
                    details={"reason": "mismatch"},
                    success=False,
                )
                raise InvalidCodeError()

            secret_encrypted = user.step_up_secret_encrypted
            if self.totp_service.needs_rotation(secret_encrypted):
                secret_encrypted = self.totp_service.encrypt_secret(credential.secret)
            await self.user_repo.save_step_up(
                user,
                secret_encrypted=secret_encrypted,
                requested_at=credential.requested_at,
                verified=True,
                verified_at=now,
            )
            await self.session.commit()

        log_security_event(
            SecurityEventType.STEP_UP_VERIFIED,
            user_id=user_id,
            ip_address=ip_address,
            user_agent=user_agent,
        )

        return StepUpVerifyResponse(verified_at=now)

    async def change_password(
        self,
        user_id: UUID,
        new_password: str,
        ip_address: str | None = None,
        user_agent: str | None = None,
    ) -> None:
        """Change the password of a user who completed the step-up verification.

        Consumes the verification: the whole step-up credential is cleared, so
        any further change needs a new secret and a new code.

        Args:
            user_id: User UUID
            new_password: New plain text password
            ip_address: Client IP address
            user_agent: Client user agent

        Raises:
            WeakPasswordError: If the password is too short
            PasswordTooLongError: If the password exceeds the bcrypt input limit
            UserNotFoundError: If the user does not exist
            StepUpRequiredError: If no completed verification is on file
            VerificationExpiredError: If the verified window has closed
            StepUpUnavailableError: If the credential store is unreachable
        """
        if not self.password_service.is_strong_enough(new_password):
            raise WeakPasswordError(self.password_service.min_length)
        if self.password_service.is_too_long(new_password):
            raise PasswordTooLongError(self.password_service.max_bytes)

        async with self._unit_of_work("change_password"):
            user = await self._get_locked_user(user_id)
            now = self.clock()
            credential = self._credential(user)

            if not credential.is_stepped_up:
                log_security_event(
                    SecurityEventType.STEP_UP_REQUIRED,
                    user_id=user_id,
                    ip_address=ip_address,
                    user_agent=user_agent,
                    success=False,
                )
                raise StepUpRequiredError()

            if now - credential.verified_at > self.change_window:
                secret_retained = self._secret_is_fresh(credential, now)
                if secret_retained:
                    await self.user_repo.clear_step_up_verification(user)
                else:
                    await self.user_repo.clear_step_up(user)
                await self.session.commit()
                log_security_event(
                    SecurityEventType.STEP_UP_VERIFICATION_EXPIRED,
                    user_id=user_id,
                    ip_address=ip_address,
                    user_agent=user_agent,
                    details={"secret_retained": secret_retained},
                    success=False,
                )
                raise VerificationExpiredError(secret_retained)

            password_hash = self.password_service.hash_password(new_password)
            await self.user_repo.update_password(user, password_hash, changed_at=now)
            await self.user_repo.clear_step_up(user)
            await self.session.commit()

        log_security_event(
            SecurityEventType.PASSWORD_CHANGED,
            user_id=user_id,
            ip_address=ip_address,
            user_agent=user_agent,
        )

    async def get_status(self, user_id: UUID) -> StepUpStatusResponse:
        """Describe where the user stands in the step-up cycle.

        Read-only: stale fields are reported as they are and only cleared by
        the operation that detects the expiry.

        Args:
            user_id: User UUID

        Returns:
            StepUpStatusResponse

        Raises:
            UserNotFoundError: If the user does not exist
            StepUpUnavailableError: If the credential store is unreachable
        """
        async with self._unit_of_work("get_status"):
            user = await self.user_repo.get_by_id(user_id)
            if user is None:
                raise UserNotFoundError(str(user_id))
            credential = self._credential(user)

        requested_at = credential.requested_at if credential.secret is not None else None
        verified_at = credential.verified_at if credential.is_stepped_up else None

        return StepUpStatusResponse(
            state=credential.state,
            requested_at=requested_at,
            verified_at=verified_at,
            secret_reusable_until=requested_at + self.reuse_window if requested_at else None,
            verify_expires_at=requested_at + self.verify_window if requested_at else None,
            change_expires_at=verified_at + self.change_window if verified_at else None,
        )
