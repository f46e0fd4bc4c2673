"""
Create an admin account, or promote an existing account to admin.

Run from the backend/ directory:
    python scripts/create_admin.py --email admin@fuelgo.com --password 'Admin@123' \
        --phone +2348000000000 --first-name Admin --last-name User
"""
import argparse
import asyncio
import os
import sys

# Add backend/ to path so we can import config
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from database import async_session, init_db
from domain.enums import UserRole, UserStatus
from domain.errors import DomainError
from middleware.auth import hash_password
from services import auth_service
from utils.validators import normalize_email


def parse_args(argv=None):
    parser = argparse.ArgumentParser(description="Create or promote a FuelGo admin")
    parser.add_argument("--email", required=True)
    parser.add_argument("--password", required=True)
    parser.add_argument("--phone", default="+2348000000000")
    parser.add_argument("--first-name", default="Admin")
    parser.add_argument("--last-name", default="User")
    parser.add_argument(
        "--reset-password",
        action="store_true",
        help="Overwrite the password when the account already exists",
    )
    return parser.parse_args(argv)


async def create_admin(args) -> int:
    await init_db()
    async with async_session() as db:
        existing = await auth_service.get_user_by_email(db, normalize_email(args.email))
        if existing:
            existing.role = UserRole.ADMIN.value
            existing.status = UserStatus.ACTIVE.value
            if args.reset_password:
                existing.password_hash = hash_password(args.password)
            await db.commit()
            print(f"✅ Promoted {existing.email} to admin")
            return 0

        try:
            user = await auth_service.create_user(
                db,
                first_name=args.first_name,
                last_name=args.last_name,
                email=args.email,
                password=args.password,
                phone=args.phone,
                role=UserRole.ADMIN.value,
                status=UserStatus.ACTIVE.value,
            )
        except DomainError as e:
            print(f"❌ {e.message}")
            return 1
        await db.commit()
        print(f"✅ Admin created: {user.email}")
        print("   Please change this password after first login")
        return 0


if __name__ == "__main__":
    sys.exit(asyncio.run(create_admin(parse_args())))
