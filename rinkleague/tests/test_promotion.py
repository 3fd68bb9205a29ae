"""
Tests for waitlist promotion when roster slots open up.
"""

import json

import pytest
from sqlalchemy import select

from rinkleague.database.models import AuditLog, AuditAction
from rinkleague.services import admin_roster_service, registration_service
from rinkleague.services.authorization import AuthContext

ADMIN = AuthContext(user_id=None, is_admin=True)


async def _join_all(session, event_id, user_ids):
    for user_id in user_ids:
        await registration_service.join_event(session, AuthContext(user_id=user_id), event_id)


@pytest.mark.asyncio
async def test_leave_then_rejoin_goes_to_tail(db_session, make_user, make_event, fetch_registrations):
    """A (going), B and C (waitlist); A leaves, B promoted; D joins behind C; A rejoins behind D."""
    event_id = await make_event(max_players=1)
    a, b, c, d = [await make_user(name) for name in ("Ana", "Ben", "Cal", "Dee")]
    await _join_all(db_session, event_id, [a, b, c])

    left = await registration_service.leave_event(db_session, AuthContext(user_id=a), event_id)
    assert left["promoted"]["user_id"] == b

    joined_d = await registration_service.join_event(db_session, AuthContext(user_id=d), event_id)
    assert (joined_d["status"], joined_d["position"]) == ("waitlist", 2)

    rejoined_a = await registration_service.join_event(db_session, AuthContext(user_id=a), event_id)
    assert (rejoined_a["status"], rejoined_a["position"]) == ("waitlist", 3)

    regs = await fetch_registrations(event_id)
    assert regs[b].status == "going"
    assert [(regs[u].status, regs[u].position) for u in (c, d, a)] == [
        ("waitlist", 1),
        ("waitlist", 2),
        ("waitlist", 3),
    ]


@pytest.mark.asyncio
async def test_promotion_follows_position_not_join_time(db_session, make_user, make_event, fetch_registrations):
    event_id = await make_event(max_players=1)
    a, b, c = [await make_user(name) for name in ("Ana", "Ben", "Cal")]
    await _join_all(db_session, event_id, [a, b, c])

    # C jumps the queue
    await admin_roster_service.reorder_waitlist(db_session, ADMIN, event_id, [c, b])
    left = await registration_service.leave_event(db_session, AuthContext(user_id=a), event_id)

    assert left["promoted"]["user_id"] == c
    regs = await fetch_registrations(event_id)
    assert regs[b].status == "waitlist"


@pytest.mark.asyncio
async def test_unlimited_event_leave_promotes_nobody(db_session, make_user, make_event, fetch_registrations):
    event_id = await make_event(max_players=None)
    a, b = [await make_user(name) for name in ("Ana", "Ben")]
    await _join_all(db_session, event_id, [a, b])

    left = await registration_service.leave_event(db_session, AuthContext(user_id=a), event_id)

    assert left["promoted"] is None
    regs = await fetch_registrations(event_id)
    assert regs[b].status == "going"


@pytest.mark.asyncio
async def test_leave_with_empty_waitlist(db_session, make_user, make_event):
    event_id = await make_event(max_players=2)
    a = await make_user("Ana")
    await _join_all(db_session, event_id, [a])

    left = await registration_service.leave_event(db_session, AuthContext(user_id=a), event_id)
    assert left["promoted"] is None


@pytest.mark.asyncio
async def test_promotion_is_audited(db_session, session_factory, make_user, make_event):
    event_id = await make_event(max_players=1)
    a, b = [await make_user(name) for name in ("Ana", "Ben")]
    await _join_all(db_session, event_id, [a, b])

    await registration_service.leave_event(db_session, AuthContext(user_id=a), event_id)

    async with session_factory() as session:
        result = await session.execute(
            select(AuditLog).where(AuditLog.action == AuditAction.REGISTRATION_PROMOTE.value)
        )
        entries = result.scalars().all()
    assert len(entries) == 1
    details = json.loads(entries[0].details)
    assert details == {"event_id": event_id, "user_id": b, "from_position": 0}


@pytest.mark.asyncio
async def test_promotion_sends_email(db_session, make_user, make_event, monkeypatch):
    sent = []

    async def fake_send(to, event_name, start_time_display, location_display, venue_key=None):
        sent.append((to, event_name))
        return {"ok": True}

    monkeypatch.setattr(
        "rinkleague.services.email_service.send_waitlist_promoted_email", fake_send
    )

    event_id = await make_event(max_players=1, name="Friday Skate")
    a = await make_user("Ana")
    b = await make_user("Ben", email="ben@example.com")
    await _join_all(db_session, event_id, [a, b])

    await registration_service.leave_event(db_session, AuthContext(user_id=a), event_id)

    assert sent == [("ben@example.com", "Friday Skate")]


@pytest.mark.asyncio
async def test_failed_email_does_not_undo_promotion(db_session, make_user, make_event, fetch_registrations, monkeypatch):
    async def failing_send(*args, **kwargs):
        raise RuntimeError("SendGrid down")

    monkeypatch.setattr(
        "rinkleague.services.email_service.send_waitlist_promoted_email", failing_send
    )

    event_id = await make_event(max_players=1)
    a, b = [await make_user(name) for name in ("Ana", "Ben")]
    await _join_all(db_session, event_id, [a, b])

    left = await registration_service.leave_event(db_session, AuthContext(user_id=a), event_id)

    assert left["promoted"]["user_id"] == b
    regs = await fetch_registrations(event_id)
    assert regs[b].status == "going"
