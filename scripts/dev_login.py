#!/usr/bin/env python3
"""
Generate an access token for any local user, for dev testing of the API.

Looks up by user ID, or by email. Pass --admin to grant league admin rights first.

Usage:
    python scripts/dev_login.py 1
    python scripts/dev_login.py alice@test.com
    python scripts/dev_login.py admin@test.com --admin
"""

import argparse
import asyncio
import os
import sys
from datetime import timedelta

# Add project root to path
project_root = os.path.dirname(os.path.dirname(os.path.abspath(__file__)))
sys.path.insert(0, project_root)

from sqlalchemy import select
from rinkleague.database.db import AsyncSessionLocal
from rinkleague.database.models import User
from rinkleague.services import user_service
from rinkleague.services.auth_service import create_access_token


async def list_users(session):
    """Print available users for reference."""
    print("\n📋 Available users:")
    result = await session.execute(
        select(User.id, User.email, User.first_name, User.last_name, User.is_admin)
        .order_by(User.id)
        .limit(20)
    )
    for row in result.all():
        admin = "admin" if row[4] else ""
        print(f"  User #{row[0]:<4}  {row[1]:<28}  {row[2]} {row[3]}  {admin}")
    print()


async def main(identifier: str = "", make_admin: bool = False):
    """
    Print a 24h access token for a user.

    Args:
        identifier: User ID (integer) or email
        make_admin: Grant admin rights before issuing the token
    """
    async with AsyncSessionLocal() as session:
        if not identifier:
            print("❌ Usage: python scripts/dev_login.py <user id | email> [--admin]")
            await list_users(session)
            return

        if identifier.isdigit():
            user = await user_service.get_user_by_id(session, int(identifier))
        else:
            user = await user_service.get_user_by_email(session, identifier)

        if not user:
            print(f"❌ No user found for: {identifier}")
            await list_users(session)
            return

        if make_admin and not user["is_admin"]:
            await user_service.set_admin(session, user["id"], True)
            print(f"🔑 Granted admin rights to user #{user['id']}")

        access_token = create_access_token(
            data={"user_id": user["id"], "email": user["email"]},
            expires_delta=timedelta(hours=24),
        )

    print(f"\n🏒  Logged in as: {user['display_name']} (user #{user['id']}, {user['email']})\n")
    print("📋 Use with curl:\n")
    print(f'curl -H "Authorization: Bearer {access_token}" http://localhost:8000/api/events')
    print()


if __name__ == "__main__":
    parser = argparse.ArgumentParser(description="Generate a dev access token")
    parser.add_argument("identifier", nargs="?", default="")
    parser.add_argument("--admin", action="store_true", help="Grant admin rights first")
    args = parser.parse_args()
    asyncio.run(main(args.identifier, args.admin))
