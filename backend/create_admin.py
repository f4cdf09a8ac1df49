import argparse
import asyncio
import sys
import os

# Add the current directory to sys.path to allow imports
sys.path.append(os.getcwd())

from app.db.session import AsyncSessionLocal
from app.core.config import settings
from app.core.security import get_password_hash
from app.models.user import User
from sqlalchemy import select


async def create_admin(email: str, password: str, full_name: str):
    if len(password) < settings.MIN_PASSWORD_LENGTH:
        print(f"Password must be at least {settings.MIN_PASSWORD_LENGTH} characters long")
        return 1

    async with AsyncSessionLocal() as db:
        result = await db.execute(select(User).where(User.email == email))
        existing_user = result.scalar_one_or_none()

        if existing_user:
            existing_user.password_hash = get_password_hash(password)
            await db.commit()
            print(f"Admin {email} already exists, password reset")
            return 0

        db.add(User(
            full_name=full_name,
            email=email,
            password_hash=get_password_hash(password),
        ))
        await db.commit()
        print(f"Created admin: {email}")
        return 0


if __name__ == "__main__":
    parser = argparse.ArgumentParser(description="Create or reset an admin account")
    parser.add_argument("--email", default="admin@example.com")
    parser.add_argument("--password", required=True)
    parser.add_argument("--full-name", default="Admin User")
    args = parser.parse_args()
    sys.exit(asyncio.run(create_admin(args.email, args.password, args.full_name)))
