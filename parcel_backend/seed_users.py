"""
Database seeding script for the first admin.

Users are otherwise created on first sign-in, always with the ``user`` role,
so a fresh deployment needs one admin to approve riders and assign parcels.

Usage:
    python -m parcel_backend.seed_users admin@example.com
"""

import asyncio
import sys

from sqlalchemy import select

from parcel_backend.app.db.session import AsyncSessionLocal, engine, Base
from parcel_backend.app.models.user import User
from parcel_backend.app.models.enums import UserRole

DEFAULT_ADMIN_EMAIL = "admin@parcel.local"


async def seed_admin(email: str = DEFAULT_ADMIN_EMAIL):
    """Create the admin user, or promote an existing user with that email."""
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    async with AsyncSessionLocal() as db:
        print("🌱 Starting admin seeding...")

        result = await db.execute(select(User).where(User.email == email))
        user = result.scalar_one_or_none()

        if user is not None and user.role == UserRole.ADMIN:
            print(f"ℹ️  {email} is already an admin, skipping seeding")
        elif user is None:
            db.add(User(email=email, name="Administrator", role=UserRole.ADMIN))
            print(f"✅ Created ADMIN user ({email})")
        else:
            user.role = UserRole.ADMIN
            print(f"✅ Promoted {email} to ADMIN")

        await db.commit()
        print("\n🎉 Admin seeding completed successfully!")
        print("\nNote: sign in with this email through the identity provider to use admin routes")

    await engine.dispose()


if __name__ == "__main__":
    asyncio.run(seed_admin(sys.argv[1] if len(sys.argv) > 1 else DEFAULT_ADMIN_EMAIL))
