#!/usr/bin/env python
"""Create a user and print a bearer token for the step-up endpoints."""

import asyncio
import sys
from pathlib import Path

# Add src directory to path
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from stepup_api.database import async_session_maker, dispose_engine
from stepup_api.repositories.user_repository import UserRepository
from stepup_api.security.auth import create_access_token
from stepup_api.security.password import get_password_service


async def create_user(email: str, password: str, name: str | None = None) -> bool:
    """Create a user with an initial password."""
    password_service = get_password_service()

    if not password_service.is_strong_enough(password):
        print(f"Password must be at least {password_service.min_length} characters long")
        return False
    if password_service.is_too_long(password):
        print(f"Password must be at most {password_service.max_bytes} bytes long")
        return False

    try:
        async with async_session_maker() as session:
            user_repo = UserRepository(session)

            if await user_repo.get_by_email(email) is not None:
                print(f"User {email} already exists")
                return False

            user = await user_repo.create_user(
                email=email,
                password_hash=password_service.hash_password(password),
                name=name,
            )
            await session.commit()
    finally:
        await dispose_engine()

    print(f"User created: {user.email} ({user.id})")
    print(f"Access token: {create_access_token(user.id, user.email)}")
    return True


if __name__ == "__main__":
    import argparse
    parser = argparse.ArgumentParser(description="Create a user")
    parser.add_argument("--email", required=True, help="Email address")
    parser.add_argument("--password", required=True, help="Initial password")
    parser.add_argument("--name", help="Display name")
    args = parser.parse_args()

    ok = asyncio.run(create_user(args.email, args.password, args.name))
    sys.exit(0 if ok else 1)
