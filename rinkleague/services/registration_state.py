"""
Registration state machine primitives.

Every status write goes through apply_transition(), and every roster mutation
starts with lock_event(). Nothing here commits: the calling operation owns the
transaction (see database.db.atomic).
"""

from datetime import datetime
from typing import Dict, Optional
from sqlalchemy import select, update, func
from sqlalchemy.ext.asyncio import AsyncSession
from rinkleague.database.models import (
    Event,
    EventRegistration,
    RegistrationStatus,
    REGISTRATION_TRANSITIONS,
)
from rinkleague.services.capacity_policy import Placement
from rinkleague.services.exceptions import EventClosed, EventNotFound, InvalidState
from rinkleague.services.user_service import display_name
from rinkleague.utils.datetime_utils import ensure_utc, is_event_active
import logging

logger = logging.getLogger(__name__)


async def lock_event(session: AsyncSession, event_id: int) -> Event:
    """
    Take the per-event roster lock and load the event.

    Bumps events.roster_version. On PostgreSQL the UPDATE holds the event row
    lock until the transaction ends; on SQLite it takes the database write lock
    before anything has been read. Either way, concurrent roster changes to the
    same event are serialized from here on.

    Raises:
        EventNotFound: If the event does not exist
    """
    result = await session.execute(
        update(Event)
        .where(Event.id == event_id)
        .values(roster_version=Event.roster_version + 1)
        .execution_options(synchronize_session=False)
    )
    if result.rowcount == 0:
        raise EventNotFound()

    # Drop anything read before the lock was taken
    session.expire_all()
    result = await session.execute(select(Event).where(Event.id == event_id))
    return result.scalar_one()


async def get_event(session: AsyncSession, event_id: int) -> Event:
    """Load an event without locking it."""
    result = await session.execute(
        select(Event).where(Event.id == event_id).execution_options(populate_existing=True)
    )
    event = result.scalar_one_or_none()
    if event is None:
        raise EventNotFound()
    return event


def ensure_event_open(event: Event, now: datetime) -> None:
    """Self-service join/leave requires an active, non-cancelled event."""
    if event.cancelled_at is not None:
        raise EventClosed("Event has been cancelled")
    if not is_event_active(event.start_time, now):
        raise EventClosed()


async def get_registration(
    session: AsyncSession, event_id: int, user_id: int
) -> Optional[EventRegistration]:
    result = await session.execute(
        select(EventRegistration).where(
            EventRegistration.event_id == event_id,
            EventRegistration.user_id == user_id,
        )
    )
    return result.scalar_one_or_none()


async def count_by_status(session: AsyncSession, event_id: int, status: RegistrationStatus) -> int:
    result = await session.execute(
        select(func.count(EventRegistration.id)).where(
            EventRegistration.event_id == event_id,
            EventRegistration.status == status.value,
        )
    )
    return result.scalar_one()


async def max_waitlist_position(session: AsyncSession, event_id: int) -> Optional[int]:
    result = await session.execute(
        select(func.max(EventRegistration.position)).where(
            EventRegistration.event_id == event_id,
            EventRegistration.status == RegistrationStatus.WAITLIST.value,
        )
    )
    return result.scalar_one_or_none()


def current_status(reg: Optional[EventRegistration]) -> RegistrationStatus:
    """A missing row behaves like a removed one."""
    if reg is None:
        return RegistrationStatus.REMOVED
    return RegistrationStatus(reg.status)


def is_active(reg: Optional[EventRegistration]) -> bool:
    return current_status(reg) is not RegistrationStatus.REMOVED


def apply_transition(
    reg: EventRegistration,
    target: RegistrationStatus,
    now: Optional[datetime] = None,
    position: int = 0,
) -> RegistrationStatus:
    """
    Move an existing registration to ``target``.

    Args:
        reg: Registration row
        target: New status
        now: Timestamp for removed_at (required when removing)
        position: Waitlist position for WAITLIST, otherwise 0

    Returns:
        The previous status

    Raises:
        InvalidState: If the edge is not in REGISTRATION_TRANSITIONS
    """
    previous = current_status(reg)
    if target not in REGISTRATION_TRANSITIONS[previous]:
        raise InvalidState(f"Cannot change registration from {previous.value} to {target.value}")

    reg.status = target.value
    reg.position = position if target is RegistrationStatus.WAITLIST else 0
    if target is RegistrationStatus.REMOVED:
        reg.removed_at = now
    return previous


async def activate_registration(
    session: AsyncSession,
    event_id: int,
    user_id: int,
    placement: Placement,
    now: datetime,
    existing: Optional[EventRegistration] = None,
) -> EventRegistration:
    """
    Create a registration, or reactivate the user's removed row in place.

    Reactivation resets joined_at and clears removed_at, line and
    assigned_position, so the row id is stable across leave/join cycles.
    Callers check for an already-active registration first.
    """
    if existing is None:
        if placement.status not in REGISTRATION_TRANSITIONS[RegistrationStatus.REMOVED]:
            raise InvalidState(f"Cannot create a registration as {placement.status.value}")
        reg = EventRegistration(
            event_id=event_id,
            user_id=user_id,
            status=placement.status.value,
            position=placement.position,
            joined_at=now,
        )
        session.add(reg)
    else:
        reg = existing
        apply_transition(reg, placement.status, now, placement.position)
        reg.joined_at = now
        reg.removed_at = None
        reg.line = None
        reg.assigned_position = None

    await session.flush()
    return reg


def registration_to_dict(reg: EventRegistration, user=None) -> Dict:
    """
    Convert a registration (and optionally its user row) to a dictionary.
    """
    data = {
        "id": reg.id,
        "event_id": reg.event_id,
        "user_id": reg.user_id,
        "status": reg.status,
        "position": reg.position,
        "line": reg.line,
        "assigned_position": reg.assigned_position,
        "joined_at": ensure_utc(reg.joined_at).isoformat() if reg.joined_at else None,
        "removed_at": ensure_utc(reg.removed_at).isoformat() if reg.removed_at else None,
    }
    if user is not None:
        data["user"] = {
            "id": user.id,
            "first_name": user.first_name,
            "last_name": user.last_name,
            "nickname": user.nickname,
            "display_name": display_name(user.first_name, user.last_name, user.nickname),
        }
    return data
