#!/usr/bin/env python3
"""
Seed local dev database with an admin, a handful of members and upcoming events.

Idempotent: skips users whose email already exists and events whose name
already exists.

Usage:
    python scripts/seed_league.py
"""

import asyncio
import os
import sys
from datetime import timedelta

# Add project root to path
project_root = os.path.dirname(os.path.dirname(os.path.abspath(__file__)))
sys.path.insert(0, project_root)

from sqlalchemy import select
from rinkleague.database.db import AsyncSessionLocal, init_database
from rinkleague.database.models import Event, User
from rinkleague.services import event_service
from rinkleague.services.authorization import SYSTEM
from rinkleague.utils.datetime_utils import utcnow

TEST_USERS = [
    {"email": "admin@test.com", "first_name": "Ada", "last_name": "Admin", "is_admin": True},
    {"email": "alice@test.com", "first_name": "Alice", "last_name": "Test", "nickname": "Ace"},
    {"email": "bob@test.com", "first_name": "Bob", "last_name": "Test"},
    {"email": "carol@test.com", "first_name": "Carol", "last_name": "Test"},
    {"email": "dave@test.com", "first_name": "Dave", "last_name": "Test"},
]

TEST_EVENTS = [
    {
        "name": "B League - Tuesday",
        "league": "B",
        "type": "league",
        "days_out": 2,
        "venue_key": "rink_on_the_beach",
        "location": "Rink on the Beach",
        "max_players": 2,
    },
    {
        "name": "Extra Ice - Friday",
        "league": "C",
        "type": "extra",
        "days_out": 5,
        "max_players": None,
        "approval_needed": True,
        "has_fee": True,
        "cost_amount": 15,
    },
]


async def seed_users(session):
    """Create test users; returns {email: user_id}."""
    ids = {}
    for user_data in TEST_USERS:
        result = await session.execute(select(User).where(User.email == user_data["email"]))
        existing_user = result.scalar_one_or_none()
        if existing_user:
            print(f"  ⏭️  {user_data['email']} already exists (user #{existing_user.id})")
            ids[user_data["email"]] = existing_user.id
            continue

        new_user = User(**user_data)
        session.add(new_user)
        await session.flush()
        ids[user_data["email"]] = new_user.id
        print(f"  ✅ Created {user_data['email']} (user #{new_user.id})")

    await session.commit()
    return ids


async def seed_events(session):
    for event_data in TEST_EVENTS:
        result = await session.execute(select(Event.id).where(Event.name == event_data["name"]))
        existing_id = result.scalar_one_or_none()
        if existing_id:
            print(f"  ⏭️  {event_data['name']} already exists (event #{existing_id})")
            continue

        data = dict(event_data)
        start = utcnow().replace(hour=23, minute=0, second=0, microsecond=0)
        data["start_time"] = start + timedelta(days=data.pop("days_out"))
        created = await event_service.create_event(session, SYSTEM, data)
        print(f"  ✅ Created {created['name']} (event #{created['id']}) at {created['start_time']}")


async def main():
    """Create tables if needed, then seed users and events."""
    print("\n🏒  Seeding league data...\n")
    await init_database()

    async with AsyncSessionLocal() as session:
        await seed_users(session)
        await seed_events(session)

    print("\n💡 Get a token with: python scripts/dev_login.py alice@test.com\n")


if __name__ == "__main__":
    asyncio.run(main())
