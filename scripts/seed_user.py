"""
Seed Portal User

Creates a portal user (reviewer or school admin) if it doesn't exist.
The password is read from SEED_USER_PASSWORD or prompted for.

Usage:
    python scripts/seed_user.py admin@kys.org "Global Admin" --role global-admin
    python scripts/seed_user.py ng@kys.org "Nigeria Admin" --role country-admin --country Nigeria
    python scripts/seed_user.py lagos@kys.org "Lagos Admin" --role state-admin \
        --country Nigeria --state Lagos
"""

import argparse
import asyncio
import getpass
import os

from kys_portal.core.database import async_session_maker, engine
from kys_portal.core.security import hash_password
from kys_portal.modules.users.models import UserRole
from kys_portal.modules.users.repository import UserRepository


def _parse_args() -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Create a KYS portal user")
    parser.add_argument("email")
    parser.add_argument("full_name")
    parser.add_argument(
        "--role",
        choices=[role.value for role in UserRole],
        default=UserRole.GLOBAL_ADMIN.value,
    )
    parser.add_argument("--country", default=None)
    parser.add_argument("--state", default=None)
    parser.add_argument("--lga", default=None)
    return parser.parse_args()


async def seed_user(args: argparse.Namespace, password: str) -> None:
    """Create the user unless the email is already registered."""
    async with async_session_maker() as db:
        existing_user = await UserRepository.get_by_email(db, args.email)

        if existing_user:
            print(f"User already exists: {args.email}")
            print(f"  ID: {existing_user.id}")
            print(f"  Role: {existing_user.role.value}")
            return

        user = await UserRepository.create(
            db,
            email=args.email,
            password_hash=hash_password(password),
            full_name=args.full_name,
            role=UserRole(args.role),
            country=args.country,
            state=args.state,
            lga=args.lga,
        )

        print("User created successfully!")
        print(f"  Email: {user.email}")
        print(f"  Name: {user.full_name}")
        print(f"  ID: {user.id}")
        print(f"  Role: {user.role.value}")

    await engine.dispose()


if __name__ == "__main__":
    arguments = _parse_args()
    user_password = os.getenv("SEED_USER_PASSWORD") or getpass.getpass("Password: ")
    asyncio.run(seed_user(arguments, user_password))
