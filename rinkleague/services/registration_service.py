"""
Self-service registration: join, leave, and captain/admin approval.

Each operation runs in one transaction that starts by locking the event's
roster, so the capacity check, waitlist position and any promotion are decided
against a registration set nobody else is changing. Promotion emails go out
after the commit.
"""

from datetime import datetime
from typing import Dict, Optional
from sqlalchemy.ext.asyncio import AsyncSession
from rinkleague.database.db import atomic
from rinkleague.database.models import AuditAction, Event, EventRegistration, RegistrationStatus
from rinkleague.services import audit_service, notification_service, promotion_service
from rinkleague.services.authorization import AuthContext, require_admin_or_captain
from rinkleague.services.capacity_policy import decide_initial_status, next_waitlist_position
from rinkleague.services.exceptions import AlreadyRegistered, Forbidden, InvalidState, NotRegistered
from rinkleague.services.registration_state import (
    lock_event,
    ensure_event_open,
    get_registration,
    count_by_status,
    max_waitlist_position,
    current_status,
    is_active,
    apply_transition,
    activate_registration,
    registration_to_dict,
)
from rinkleague.utils.datetime_utils import ensure_utc, utcnow
import logging

logger = logging.getLogger(__name__)


def _resolve_now(now: Optional[datetime]) -> datetime:
    return ensure_utc(now) if now is not None else utcnow()


def _require_member(ctx: AuthContext) -> int:
    if ctx.user_id is None:
        raise Forbidden("Sign in to register for events")
    return ctx.user_id


async def remove_registration(
    session: AsyncSession,
    event: Event,
    reg: EventRegistration,
    now: datetime,
    actor_user_id: Optional[int] = None,
) -> Optional[EventRegistration]:
    """
    Remove an active registration and fill the vacated roster slot.

    A going registration on a capped event promotes the next waitlisted one
    in the same transaction.

    Returns:
        The promoted registration, if any
    """
    previous = apply_transition(reg, RegistrationStatus.REMOVED, now)
    await session.flush()

    if previous is RegistrationStatus.GOING and event.max_players is not None:
        return await promotion_service.promote_next_waitlisted(
            session, event, now=now, actor_user_id=actor_user_id
        )
    return None


async def join_event(
    session: AsyncSession, ctx: AuthContext, event_id: int, now: Optional[datetime] = None
) -> Dict:
    """
    Join an event as the acting user.

    Lands on the roster, the waitlist tail, or pending approval depending on the
    event's settings and current going count. A removed registration is
    reactivated in place.

    Raises:
        EventNotFound, EventClosed, AlreadyRegistered

    Returns:
        The registration dictionary (``status`` is the resulting status)
    """
    user_id = _require_member(ctx)
    now = _resolve_now(now)

    async with atomic(session):
        event = await lock_event(session, event_id)
        ensure_event_open(event, now)

        existing = await get_registration(session, event_id, user_id)
        if is_active(existing):
            raise AlreadyRegistered()

        going_count = await count_by_status(session, event_id, RegistrationStatus.GOING)
        tail = next_waitlist_position(await max_waitlist_position(session, event_id))
        placement = decide_initial_status(event, going_count, tail)

        reg = await activate_registration(session, event_id, user_id, placement, now, existing=existing)
        result = registration_to_dict(reg)

    logger.info(
        f"User {user_id} joined event {event_id} as {placement.status.value}"
        + (f" (position {placement.position})" if placement.status is RegistrationStatus.WAITLIST else "")
    )
    return result


async def leave_event(
    session: AsyncSession, ctx: AuthContext, event_id: int, now: Optional[datetime] = None
) -> Dict:
    """
    Leave an event as the acting user.

    Raises:
        EventNotFound, EventClosed, NotRegistered

    Returns:
        {"registration": {...}, "promoted": {...} | None}
    """
    user_id = _require_member(ctx)
    now = _resolve_now(now)

    async with atomic(session):
        event = await lock_event(session, event_id)
        ensure_event_open(event, now)

        reg = await get_registration(session, event_id, user_id)
        if not is_active(reg):
            raise NotRegistered()

        promoted = await remove_registration(session, event, reg, now)
        notices = await notification_service.build_notices(session, event, [promoted] if promoted else [])
        result = {
            "registration": registration_to_dict(reg),
            "promoted": registration_to_dict(promoted) if promoted else None,
        }

    logger.info(f"User {user_id} left event {event_id}")
    await notification_service.dispatch_promotion_notices(notices)
    return result


async def approve_registration(
    session: AsyncSession,
    ctx: AuthContext,
    event_id: int,
    user_id: int,
    now: Optional[datetime] = None,
) -> Dict:
    """
    Approve a requested registration onto the roster (admin or event captain).

    Approval does not re-check max_players. The member gets the same email as a
    waitlist promotion.

    Raises:
        EventNotFound, Forbidden, InvalidState
    """
    async with atomic(session):
        event = await lock_event(session, event_id)
        await require_admin_or_captain(session, ctx, event_id)

        reg = await get_registration(session, event_id, user_id)
        if current_status(reg) is not RegistrationStatus.REQUESTED:
            raise InvalidState("Registration not found or not pending approval")

        apply_transition(reg, RegistrationStatus.GOING, now)
        await session.flush()
        audit_service.record(
            session,
            ctx.user_id,
            AuditAction.REGISTRATION_APPROVE,
            "registration",
            reg.id,
            {"event_id": event_id, "user_id": user_id, "new_status": RegistrationStatus.GOING.value},
        )
        notices = await notification_service.build_notices(session, event, [reg])
        result = registration_to_dict(reg)

    logger.info(f"User {user_id} approved for event {event_id} by user {ctx.user_id}")
    await notification_service.dispatch_promotion_notices(notices)
    return result

