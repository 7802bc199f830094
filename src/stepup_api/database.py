"""Async engine and request-scoped sessions for the credential store."""

from collections.abc import AsyncGenerator

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from stepup_api.config import get_settings

settings = get_settings()

engine = create_async_engine(
    settings.async_database_url,
    pool_size=settings.database_pool_size,
    max_overflow=settings.database_max_overflow,
    pool_pre_ping=True,
    pool_recycle=3600,
    # Statements carry password hashes and encrypted secrets
    echo=False,
    # asyncpg cancels a statement server-side once the step-up deadline passes
    connect_args={"command_timeout": settings.step_up_db_timeout_seconds},
)

async_session_maker = async_sessionmaker(
    engine,
    class_=AsyncSession,
    expire_on_commit=False,
)


async def get_db() -> AsyncGenerator[AsyncSession, None]:
    """Request-scoped session.

    Services commit their own unit of work; anything left uncommitted when the
    request ends is rolled back as the session closes.
    """
    async with async_session_maker() as session:
        yield session


async def dispose_engine() -> None:
    """Close pooled connections on shutdown."""
    await engine.dispose()
