"""
Script to create (or promote) an administrator with a password for local testing.
"""

import argparse
import asyncio
import uuid

from sqlmodel import select

from app.core.auth import hash_password
from app.core.database import get_session_context
from app.models.user import User
from awase_shared.schemas.common import UserRole


async def create_admin(email: str, password: str, name: str) -> None:
    async with get_session_context() as session:
        result = await session.execute(select(User).where(User.email == email))
        user = result.scalar_one_or_none()

        if not user:
            user = User(
                id=uuid.uuid4(),
                email=email,
                name=name,
                role=UserRole.ADMIN.value,
                password_hash=hash_password(password),
            )
            session.add(user)
            print(f"Created admin: {email}")
        else:
            user.role = UserRole.ADMIN.value
            user.password_hash = hash_password(password)
            session.add(user)
            print(f"User {email} already exists; promoted to ADMIN and password reset.")

        await session.commit()
        print("Done.")


if __name__ == "__main__":
    parser = argparse.ArgumentParser(description="Create a local admin user.")
    parser.add_argument("--email", required=True, help="Email address for the user")
    parser.add_argument("--password", required=True, help="Password for the user")
    parser.add_argument("--name", default="Admin", help="Name shown in the admin UI")

    args = parser.parse_args()

    asyncio.run(create_admin(args.email, args.password, args.name))
