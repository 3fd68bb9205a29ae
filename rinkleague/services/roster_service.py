"""
Roster ordering, roster views and CSV export.

On-screen roster and export both go through order_active() so they always list
players in the same order.
"""

import csv
import io
from typing import Dict, Iterable, List
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession
from rinkleague.database.models import EventRegistration, RegistrationStatus, User, ACTIVE_STATUSES
from rinkleague.services.authorization import AuthContext, require_admin_or_captain
from rinkleague.services.registration_state import get_event, registration_to_dict
from rinkleague.services.user_service import display_name
from rinkleague.utils.datetime_utils import ensure_utc

STATUS_RANK = {
    RegistrationStatus.GOING.value: 0,
    RegistrationStatus.WAITLIST.value: 1,
    RegistrationStatus.REQUESTED.value: 2,
}


def _status_value(reg) -> str:
    return getattr(reg.status, "value", reg.status)


def _sort_key(reg):
    # Nulls sort last for line and assigned_position; id settles exact ties
    joined_at = ensure_utc(reg.joined_at).timestamp() if reg.joined_at else 0.0
    return (
        STATUS_RANK[_status_value(reg)],
        reg.line is None,
        reg.line or 0,
        reg.assigned_position is None,
        reg.assigned_position or "",
        reg.position or 0,
        joined_at,
        reg.id or 0,
    )


def order_active(registrations: Iterable) -> List:
    """
    Order active registrations for display and export.

    Precedence: status (going, waitlist, requested), line, assigned position,
    waitlist position, join time. Removed registrations are dropped. The result
    does not depend on input order.
    """
    return sorted((r for r in registrations if _status_value(r) in STATUS_RANK), key=_sort_key)


async def _load_active(session: AsyncSession, event_id: int):
    result = await session.execute(
        select(EventRegistration, User)
        .join(User, User.id == EventRegistration.user_id)
        .where(
            EventRegistration.event_id == event_id,
            EventRegistration.status.in_([s.value for s in ACTIVE_STATUSES]),
        )
        .execution_options(populate_existing=True)
    )
    users = {}
    registrations = []
    for reg, user in result.all():
        users[reg.user_id] = user
        registrations.append(reg)
    return order_active(registrations), users


async def get_roster(session: AsyncSession, event_id: int) -> Dict[str, List[Dict]]:
    """
    Active registrations with user display fields, grouped by status.

    Returns:
        {"going": [...], "waitlist": [...], "requested": [...]}, each list in roster order

    Raises:
        EventNotFound: If the event does not exist
    """
    await get_event(session, event_id)
    ordered, users = await _load_active(session, event_id)

    roster = {status.value: [] for status in ACTIVE_STATUSES}
    for reg in ordered:
        roster[reg.status].append(registration_to_dict(reg, users.get(reg.user_id)))
    return roster


CSV_COLUMNS = [
    "status",
    "line",
    "assigned_position",
    "waitlist_position",
    "name",
    "nickname",
    "email",
    "joined_at",
]


async def export_roster_csv(session: AsyncSession, ctx: AuthContext, event_id: int) -> str:
    """
    Render the roster as CSV (admin or event captain).

    Raises:
        EventNotFound, Forbidden
    """
    await get_event(session, event_id)
    await require_admin_or_captain(session, ctx, event_id)
    ordered, users = await _load_active(session, event_id)

    buffer = io.StringIO()
    writer = csv.writer(buffer)
    writer.writerow(CSV_COLUMNS)
    for reg in ordered:
        user = users[reg.user_id]
        writer.writerow(
            [
                reg.status,
                reg.line if reg.line is not None else "",
                reg.assigned_position or "",
                reg.position if reg.status == RegistrationStatus.WAITLIST.value else "",
                display_name(user.first_name, user.last_name),
                user.nickname or "",
                user.email,
                ensure_utc(reg.joined_at).isoformat() if reg.joined_at else "",
            ]
        )
    return buffer.getvalue()
