"""
Script to create (or promote) a platform admin for local testing and print a
session token for it.
"""

import argparse
import asyncio
import os
import sys

from sqlmodel import select

# Add the project root to sys.path to allow importing from 'app'
sys.path.insert(0, os.path.abspath(os.path.join(os.path.dirname(__file__), "../..")))

from app.core.auth import create_session_token
from app.core.database import engine, get_session_context
from app.models.user import User
from supplyhub_shared.schemas.roles import UserRole


async def create_admin(email: str, first_name: str, last_name: str) -> str:
    email = email.strip().lower()
    async with get_session_context() as session:
        result = await session.execute(select(User).where(User.email == email))
        user = result.scalar_one_or_none()

        if not user:
            user = User(
                email=email,
                first_name=first_name,
                last_name=last_name,
                role=UserRole.ADMIN.value,
            )
            session.add(user)
            print(f"Created admin user: {email}")
        elif user.role != UserRole.ADMIN.value or not user.is_active:
            user.role = UserRole.ADMIN.value
            user.is_active = True
            session.add(user)
            print(f"Promoted {email} to platform admin.")
        else:
            print(f"User {email} is already a platform admin.")

    await engine.dispose()
    token, _ = create_session_token(user.id, UserRole.ADMIN)
    return token


if __name__ == "__main__":
    parser = argparse.ArgumentParser(description="Create a local platform admin.")
    parser.add_argument("--email", required=True, help="Email address for the user")
    parser.add_argument("--first-name", default="Local", help="First name")
    parser.add_argument("--last-name", default="Admin", help="Last name")

    args = parser.parse_args()

    token = asyncio.run(create_admin(args.email, args.first_name, args.last_name))
    print(f"Session token (use as 'Authorization: Bearer <token>'):\n{token}")
