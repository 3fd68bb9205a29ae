"""
Promotion engine: move waitlisted registrations onto the roster.

Callers must already hold the event's roster lock (registration_state.lock_event)
so two vacated slots can never promote the same registration. Positions of the
remaining waitlist are not renumbered; gaps are allowed.
"""

from datetime import datetime
from typing import List, Optional
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession
from rinkleague.database.models import AuditAction, Event, EventRegistration, RegistrationStatus
from rinkleague.services import audit_service
from rinkleague.services.registration_state import apply_transition
import logging

logger = logging.getLogger(__name__)


def _waitlist_query(event_id: int):
    return (
        select(EventRegistration)
        .where(
            EventRegistration.event_id == event_id,
            EventRegistration.status == RegistrationStatus.WAITLIST.value,
        )
        .order_by(
            EventRegistration.position.asc(),
            EventRegistration.joined_at.asc(),
            EventRegistration.id.asc(),
        )
    )


async def promote_next_waitlisted(
    session: AsyncSession,
    event: Event,
    now: Optional[datetime] = None,
    actor_user_id: Optional[int] = None,
) -> Optional[EventRegistration]:
    """
    Promote the first waitlisted registration (lowest position, then earliest join).

    Writes a registration.promote audit entry for the promoted row.

    Returns:
        The promoted registration, or None when the waitlist is empty
    """
    result = await session.execute(_waitlist_query(event.id).limit(1))
    reg = result.scalar_one_or_none()
    if reg is None:
        return None

    from_position = reg.position
    apply_transition(reg, RegistrationStatus.GOING, now)
    await session.flush()

    audit_service.record(
        session,
        actor_user_id,
        AuditAction.REGISTRATION_PROMOTE,
        "registration",
        reg.id,
        {"event_id": event.id, "user_id": reg.user_id, "from_position": from_position},
    )
    logger.info(f"Promoted user {reg.user_id} from waitlist position {from_position} on event {event.id}")
    return reg


async def promote_waitlisted(
    session: AsyncSession,
    event: Event,
    limit: Optional[int] = None,
    now: Optional[datetime] = None,
) -> List[EventRegistration]:
    """
    Promote up to ``limit`` waitlisted registrations in one pass (all when None).

    Used by bulk promotion; the caller writes one aggregate audit entry.
    """
    if limit is not None and limit <= 0:
        return []

    query = _waitlist_query(event.id)
    if limit is not None:
        query = query.limit(limit)
    result = await session.execute(query)
    promoted = list(result.scalars().all())

    for reg in promoted:
        apply_transition(reg, RegistrationStatus.GOING, now)
    if promoted:
        await session.flush()
    return promoted
