#!/usr/bin/env python3
"""
Create or update a SUPERADMIN console user.

Usage:
    uv run python scripts/create_admin.py --email admin@example.org --name "Admin"

The password is prompted for (never pass it on the command line). An existing
user with the same email is promoted to SUPERADMIN and gets the new password.
"""

import argparse
import asyncio
import getpass

from sqlalchemy import select

from app.core.database import get_async_session
from app.core.security import get_password_hash
from app.models.user import UserRole, Users


async def upsert_admin(email: str, name: str, password: str, username: str | None) -> None:
    async with get_async_session() as db:
        result = await db.execute(select(Users).where(Users.email == email))  # type: ignore[arg-type]
        user = result.scalar_one_or_none()

        if user is None:
            user = Users(
                email=email,
                name=name,
                username=username,
                role=UserRole.SUPERADMIN,
                password=get_password_hash(password),
            )
            action = "Created"
        else:
            user.role = UserRole.SUPERADMIN
            user.password = get_password_hash(password)
            if username:
                user.username = username
            action = "Updated"

        db.add(user)
        await db.commit()
        await db.refresh(user)
        print(f"{action} SUPERADMIN {user.email} (id={user.id})")


if __name__ == "__main__":
    parser = argparse.ArgumentParser(description="Create or update a SUPERADMIN user")
    parser.add_argument("--email", required=True)
    parser.add_argument("--name", default="Administrator")
    parser.add_argument("--username", default=None)
    args = parser.parse_args()

    password = getpass.getpass("Password: ")
    if len(password) < 8:
        raise SystemExit("Password must be at least 8 characters")
    if password != getpass.getpass("Confirm password: "):
        raise SystemExit("Passwords do not match")

    asyncio.run(upsert_admin(args.email.strip().lower(), args.name, password, args.username))
