"""
Event service: admin event management and event views.
"""

from datetime import datetime, timedelta
from typing import Any, Dict, List, Optional
from sqlalchemy import select, delete, func
from sqlalchemy.ext.asyncio import AsyncSession
from rinkleague.database.db import atomic
from rinkleague.database.models import (
    AuditAction,
    Event,
    EventCaptain,
    EventRegistration,
    RegistrationStatus,
    User,
    ACTIVE_STATUSES,
)
from rinkleague.services import audit_service
from rinkleague.services.authorization import AuthContext, require_admin
from rinkleague.services.exceptions import EventNotFound, InvalidInput
from rinkleague.services.registration_state import lock_event, get_event
from rinkleague.services.roster_service import get_roster
from rinkleague.utils.constants import (
    CALENDAR_EVENT_DURATION_HOURS,
    CALENDAR_PRODID,
    EVENT_TYPES,
    LEAGUES,
)
from rinkleague.utils.datetime_utils import (
    ensure_utc,
    is_event_active,
    parse_iso_datetime,
    round_to_nearest_5_minutes,
    utcnow,
)
import logging

logger = logging.getLogger(__name__)


def _clean_str(value: Any) -> Optional[str]:
    if value is None:
        return None
    value = str(value).strip()
    return value or None


def _parse_start_time(value: Any) -> datetime:
    if isinstance(value, datetime):
        parsed = ensure_utc(value)
    else:
        try:
            parsed = parse_iso_datetime(str(value))
        except ValueError:
            raise InvalidInput("Invalid start date or time")
    return round_to_nearest_5_minutes(parsed)


def _parse_league(value: Any) -> str:
    league = str(value).strip().upper()
    if league not in LEAGUES:
        raise InvalidInput(f"League must be one of {', '.join(LEAGUES)}")
    return league


def _parse_type(value: Any) -> str:
    event_type = str(value).strip().lower()
    if event_type not in EVENT_TYPES:
        raise InvalidInput(f"Event type must be one of {', '.join(EVENT_TYPES)}")
    return event_type


def _parse_max_players(value: Any) -> Optional[int]:
    if value is None:
        return None
    try:
        return max(0, int(value))
    except (TypeError, ValueError):
        raise InvalidInput("max_players must be a number")


def _parse_cost(has_fee: bool, value: Any) -> Optional[float]:
    if not has_fee or value is None:
        return None
    try:
        return float(value)
    except (TypeError, ValueError):
        raise InvalidInput("cost_amount must be a number")


def event_to_dict(event: Event, counts: Optional[Dict[str, int]] = None, now: Optional[datetime] = None) -> Dict:
    """
    Convert an Event ORM instance to a dictionary.

    Args:
        event: Event ORM instance
        counts: Optional {status: count} for going/waitlist/requested
        now: Clock for is_active
    """
    data = {
        "id": event.id,
        "name": event.name,
        "league": event.league,
        "type": event.type,
        "start_time": ensure_utc(event.start_time).isoformat(),
        "location": event.location,
        "rink": event.rink,
        "venue_key": event.venue_key,
        "description": event.description,
        "has_fee": bool(event.has_fee),
        "cost_amount": event.cost_amount,
        "max_players": event.max_players,
        "approval_needed": bool(event.approval_needed),
        "cancelled_at": ensure_utc(event.cancelled_at).isoformat() if event.cancelled_at else None,
        "is_active": is_event_active(event.start_time, now),
    }
    if counts is not None:
        data["going_count"] = counts.get(RegistrationStatus.GOING.value, 0)
        data["waitlist_count"] = counts.get(RegistrationStatus.WAITLIST.value, 0)
        data["requested_count"] = counts.get(RegistrationStatus.REQUESTED.value, 0)
    return data


async def create_event(
    session: AsyncSession, ctx: AuthContext, data: Dict[str, Any]
) -> Dict:
    """
    Create an event (admin only).

    Start time is rounded to the nearest 5 minutes, league is upper-cased, a
    blank location becomes "TBD" and cost is only kept for events with a fee.
    Optional ``captain_ids`` are added as captains.

    Raises:
        Forbidden, InvalidInput
    """
    require_admin(ctx)

    name = _clean_str(data.get("name"))
    if not name or not data.get("league") or not data.get("type") or not data.get("start_time"):
        raise InvalidInput("Event name, league, type, and start_time are required")

    has_fee = bool(data.get("has_fee"))
    event = Event(
        name=name,
        league=_parse_league(data["league"]),
        type=_parse_type(data["type"]),
        start_time=_parse_start_time(data["start_time"]),
        location=_clean_str(data.get("location")) or "TBD",
        venue_key=_clean_str(data.get("venue_key")),
        rink=_clean_str(data.get("rink")),
        description=data.get("description"),
        has_fee=has_fee,
        cost_amount=_parse_cost(has_fee, data.get("cost_amount")),
        max_players=_parse_max_players(data.get("max_players")),
        approval_needed=bool(data.get("approval_needed")),
        created_by=ctx.user_id,
    )
    captain_ids = sorted({int(uid) for uid in (data.get("captain_ids") or [])})

    async with atomic(session):
        session.add(event)
        await session.flush()

        if captain_ids:
            result = await session.execute(select(User.id).where(User.id.in_(captain_ids)))
            for user_id in sorted(result.scalars().all()):
                session.add(EventCaptain(event_id=event.id, user_id=user_id))
            await session.flush()

        audit_service.record(
            session,
            ctx.user_id,
            AuditAction.EVENT_CREATE,
            "event",
            event.id,
            {
                "name": event.name,
                "league": event.league,
                "start_time": ensure_utc(event.start_time).isoformat(),
                "captain_count": len(captain_ids),
            },
        )
        result = event_to_dict(event)

    logger.info(f"Event {event.id} '{event.name}' created by user {ctx.user_id}")
    return result


async def update_event(
    session: AsyncSession, ctx: AuthContext, event_id: int, data: Dict[str, Any]
) -> Dict:
    """
    Partially update an event (admin only).

    ``cancelled=True`` stamps cancelled_at, ``cancelled=False`` clears it.
    Changing max_players never demotes or promotes anyone.

    Raises:
        EventNotFound, Forbidden, InvalidInput
    """
    require_admin(ctx)

    async with atomic(session):
        event = await lock_event(session, event_id)
        changed = []

        if "name" in data:
            name = _clean_str(data["name"])
            if not name:
                raise InvalidInput("Event name cannot be empty")
            event.name = name
            changed.append("name")
        if data.get("league") is not None:
            event.league = _parse_league(data["league"])
            changed.append("league")
        if data.get("type") is not None:
            event.type = _parse_type(data["type"])
            changed.append("type")
        if data.get("start_time") is not None:
            event.start_time = _parse_start_time(data["start_time"])
            changed.append("start_time")
        if "location" in data:
            event.location = _clean_str(data["location"]) or "TBD"
            changed.append("location")
        if "venue_key" in data:
            event.venue_key = _clean_str(data["venue_key"])
            changed.append("venue_key")
        if "rink" in data:
            event.rink = _clean_str(data["rink"])
            changed.append("rink")
        if "description" in data:
            event.description = data["description"]
            changed.append("description")
        if "has_fee" in data:
            event.has_fee = bool(data["has_fee"])
            changed.append("has_fee")
        if "has_fee" in data or "cost_amount" in data:
            event.cost_amount = _parse_cost(bool(event.has_fee), data.get("cost_amount", event.cost_amount))
            changed.append("cost_amount")
        if "max_players" in data:
            event.max_players = _parse_max_players(data["max_players"])
            changed.append("max_players")
        if "approval_needed" in data:
            event.approval_needed = bool(data["approval_needed"])
            changed.append("approval_needed")

        cancelled = data.get("cancelled")
        if cancelled is True:
            event.cancelled_at = utcnow()
        elif cancelled is False:
            event.cancelled_at = None
            changed.append("cancelled_at")

        await session.flush()

        if cancelled is True:
            action = AuditAction.EVENT_CANCEL
        elif "start_time" in changed:
            action = AuditAction.EVENT_RESCHEDULE
        elif changed:
            action = AuditAction.EVENT_UPDATE
        else:
            action = None

        if action is not None:
            audit_service.record(
                session,
                ctx.user_id,
                action,
                "event",
                event.id,
                {
                    "name": event.name,
                    "start_time": ensure_utc(event.start_time).isoformat(),
                    "fields": changed,
                },
            )
        result = event_to_dict(event)

    logger.info(f"Event {event_id} updated by user {ctx.user_id}: {changed or 'no changes'}")
    return result


async def delete_event(session: AsyncSession, ctx: AuthContext, event_id: int) -> None:
    """
    Delete an event with its registrations and captains (admin only).

    Raises:
        EventNotFound, Forbidden
    """
    require_admin(ctx)

    async with atomic(session):
        event = await lock_event(session, event_id)
        name = event.name

        # Explicit deletes: SQLite does not enforce ON DELETE CASCADE by default
        await session.execute(delete(EventRegistration).where(EventRegistration.event_id == event_id))
        await session.execute(delete(EventCaptain).where(EventCaptain.event_id == event_id))
        await session.execute(delete(Event).where(Event.id == event_id))

        audit_service.record(
            session,
            ctx.user_id,
            AuditAction.EVENT_DELETE,
            "event",
            event_id,
            {"name": name},
        )

    logger.info(f"Event {event_id} deleted by user {ctx.user_id}")


async def _status_counts(session: AsyncSession, event_ids: List[int]) -> Dict[int, Dict[str, int]]:
    if not event_ids:
        return {}
    result = await session.execute(
        select(EventRegistration.event_id, EventRegistration.status, func.count(EventRegistration.id))
        .where(
            EventRegistration.event_id.in_(event_ids),
            EventRegistration.status.in_([s.value for s in ACTIVE_STATUSES]),
        )
        .group_by(EventRegistration.event_id, EventRegistration.status)
    )
    counts: Dict[int, Dict[str, int]] = {}
    for event_id, status, count in result.all():
        counts.setdefault(event_id, {})[status] = count
    return counts


async def list_events(
    session: AsyncSession,
    ctx: AuthContext,
    active: Optional[bool] = None,
    now: Optional[datetime] = None,
) -> List[Dict]:
    """
    List events by start time with roster counts.

    Non-admins only ever see active events. Admins see everything unless
    ``active`` is given (True: active only, False: past only).
    """
    result = await session.execute(
        select(Event).order_by(Event.start_time.asc(), Event.id.asc()).execution_options(populate_existing=True)
    )
    events = list(result.scalars().all())

    if not ctx.is_admin:
        active = True
    if active is not None:
        events = [e for e in events if is_event_active(e.start_time, now) == active]

    counts = await _status_counts(session, [e.id for e in events])
    return [event_to_dict(e, counts.get(e.id, {}), now) for e in events]


async def get_event_detail(
    session: AsyncSession,
    ctx: AuthContext,
    event_id: int,
    now: Optional[datetime] = None,
) -> Dict:
    """
    Event with its ordered going, waitlist and requested lists and the viewer's status.

    Raises:
        EventNotFound: If missing, or past and the viewer is not an admin
    """
    event = await get_event(session, event_id)
    if not ctx.is_admin and not is_event_active(event.start_time, now):
        raise EventNotFound()

    roster = await get_roster(session, event_id)
    my_status = None
    if ctx.user_id is not None:
        for regs in roster.values():
            for reg in regs:
                if reg["user_id"] == ctx.user_id:
                    my_status = reg["status"]

    counts = {status: len(regs) for status, regs in roster.items()}
    data = event_to_dict(event, counts, now)
    data.update(roster)
    data["my_status"] = my_status
    return data


def _ics_timestamp(value: datetime) -> str:
    return ensure_utc(value).strftime("%Y%m%dT%H%M%SZ")


def _ics_escape(value: str) -> str:
    return (
        value.replace("\\", "\\\\")
        .replace(";", "\\;")
        .replace(",", "\\,")
        .replace("\n", "\\n")
    )


async def export_event_ics(session: AsyncSession, event_id: int, now: Optional[datetime] = None) -> str:
    """
    Render an event as an iCalendar document for "add to calendar".

    Raises:
        EventNotFound: If the event is missing or cancelled
    """
    event = await get_event(session, event_id)
    if event.cancelled_at is not None:
        raise EventNotFound()

    start = ensure_utc(event.start_time)
    end = start + timedelta(hours=CALENDAR_EVENT_DURATION_HOURS)
    location = event.location + (f", {event.rink}" if event.rink else "")
    description = "\n".join(part for part in (event.location, event.rink, event.description) if part)

    lines = [
        "BEGIN:VCALENDAR",
        "VERSION:2.0",
        f"PRODID:{CALENDAR_PRODID}",
        "BEGIN:VEVENT",
        f"UID:event-{event.id}@rinkleague",
        f"DTSTAMP:{_ics_timestamp(now or utcnow())}",
        f"DTSTART:{_ics_timestamp(start)}",
        f"DTEND:{_ics_timestamp(end)}",
        f"SUMMARY:{_ics_escape(event.name)}",
        f"DESCRIPTION:{_ics_escape(description)}",
        f"LOCATION:{_ics_escape(location)}",
        "END:VEVENT",
        "END:VCALENDAR",
    ]
    return "\r\n".join(lines) + "\r\n"
