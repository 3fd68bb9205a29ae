"""
Admin override layer for event rosters.

Same state machine and roster lock as self-service registration, with admin
(or event captain) authorization. direct_add is the capacity-bypassing entry
point; join_event in registration_service is the capacity-respecting one.
"""

from datetime import datetime
from typing import Dict, List, Optional, Sequence
from sqlalchemy import select, delete
from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.dialects.sqlite import insert as sqlite_insert
from sqlalchemy.ext.asyncio import AsyncSession
from rinkleague.database.db import atomic
from rinkleague.database.models import (
    AuditAction,
    EventCaptain,
    EventRegistration,
    RegistrationStatus,
    User,
)
from rinkleague.services import audit_service, notification_service, promotion_service
from rinkleague.services.authorization import AuthContext, is_captain, require_admin, require_admin_or_captain
from rinkleague.services.capacity_policy import Placement, spots_left
from rinkleague.services.exceptions import AlreadyActive, InvalidInput, InvalidState, NotRegistered
from rinkleague.services.registration_service import remove_registration
from rinkleague.services.registration_state import (
    lock_event,
    get_event,
    get_registration,
    count_by_status,
    current_status,
    is_active,
    apply_transition,
    activate_registration,
    registration_to_dict,
)
from rinkleague.services.user_service import display_name
from rinkleague.utils.constants import MIN_LINE, MAX_LINE
from rinkleague.utils.datetime_utils import ensure_utc, utcnow
import logging

logger = logging.getLogger(__name__)


def _resolve_now(now: Optional[datetime]) -> datetime:
    return ensure_utc(now) if now is not None else utcnow()


async def _require_user(session: AsyncSession, user_id: int) -> None:
    result = await session.execute(select(User.id).where(User.id == user_id))
    if result.scalar_one_or_none() is None:
        raise InvalidInput(f"User {user_id} not found")


async def direct_add(
    session: AsyncSession,
    ctx: AuthContext,
    event_id: int,
    user_id: int,
    now: Optional[datetime] = None,
) -> Dict:
    """
    Put a user straight onto the roster (admin only), ignoring max_players.

    Raises:
        EventNotFound, Forbidden, AlreadyActive, InvalidInput
    """
    require_admin(ctx)
    now = _resolve_now(now)

    async with atomic(session):
        await lock_event(session, event_id)
        await _require_user(session, user_id)

        existing = await get_registration(session, event_id, user_id)
        if is_active(existing):
            raise AlreadyActive()

        reg = await activate_registration(
            session, event_id, user_id, Placement(RegistrationStatus.GOING, 0), now, existing=existing
        )
        audit_service.record(
            session,
            ctx.user_id,
            AuditAction.REGISTRATION_ADD,
            "registration",
            reg.id,
            {"event_id": event_id, "user_id": user_id},
        )
        result = registration_to_dict(reg)

    logger.info(f"Admin {ctx.user_id} added user {user_id} to event {event_id}")
    return result


async def direct_remove(
    session: AsyncSession,
    ctx: AuthContext,
    event_id: int,
    user_id: int,
    now: Optional[datetime] = None,
) -> Dict:
    """
    Remove any user's active registration (admin or event captain).

    Same promotion cascade as a self-service leave, without the event-open check.

    Returns:
        {"registration": {...}, "promoted": {...} | None}
    """
    now = _resolve_now(now)

    async with atomic(session):
        event = await lock_event(session, event_id)
        await require_admin_or_captain(session, ctx, event_id)

        reg = await get_registration(session, event_id, user_id)
        if not is_active(reg):
            raise NotRegistered("Registration not found")

        promoted = await remove_registration(session, event, reg, now, actor_user_id=ctx.user_id)
        audit_service.record(
            session,
            ctx.user_id,
            AuditAction.REGISTRATION_REMOVE,
            "registration",
            reg.id,
            {"event_id": event_id, "user_id": user_id},
        )
        notices = await notification_service.build_notices(session, event, [promoted] if promoted else [])
        result = {
            "registration": registration_to_dict(reg),
            "promoted": registration_to_dict(promoted) if promoted else None,
        }

    logger.info(f"User {ctx.user_id} removed user {user_id} from event {event_id}")
    await notification_service.dispatch_promotion_notices(notices)
    return result


async def bulk_approve_all_requested(
    session: AsyncSession, ctx: AuthContext, event_id: int
) -> Dict:
    """
    Approve every requested registration, earliest joiner first (admin or captain).

    Each approved member is emailed. One aggregate audit entry is written when
    anything was approved.

    Returns:
        {"count": n, "approved": [...]}
    """
    async with atomic(session):
        event = await lock_event(session, event_id)
        await require_admin_or_captain(session, ctx, event_id)

        result = await session.execute(
            select(EventRegistration)
            .where(
                EventRegistration.event_id == event_id,
                EventRegistration.status == RegistrationStatus.REQUESTED.value,
            )
            .order_by(EventRegistration.joined_at.asc(), EventRegistration.id.asc())
        )
        approved = list(result.scalars().all())
        for reg in approved:
            apply_transition(reg, RegistrationStatus.GOING)

        if approved:
            await session.flush()
            audit_service.record(
                session,
                ctx.user_id,
                AuditAction.REGISTRATION_BULK_APPROVE,
                "event",
                event_id,
                {"count": len(approved)},
            )
        notices = await notification_service.build_notices(session, event, approved)
        payload = {"count": len(approved), "approved": [registration_to_dict(r) for r in approved]}

    logger.info(f"Bulk approved {len(approved)} registrations on event {event_id}")
    await notification_service.dispatch_promotion_notices(notices)
    return payload


async def move_all_waitlist_to_going(
    session: AsyncSession, ctx: AuthContext, event_id: int
) -> Dict:
    """
    Fill every free roster slot from the waitlist in one pass (admin only).

    spots_left = max(0, max_players - going); unlimited events promote the whole
    waitlist. One aggregate audit entry is written when anything moved.

    Returns:
        {"count": n, "promoted": [...]}
    """
    require_admin(ctx)

    async with atomic(session):
        event = await lock_event(session, event_id)
        going_count = await count_by_status(session, event_id, RegistrationStatus.GOING)
        limit = spots_left(event.max_players, going_count)

        promoted = await promotion_service.promote_waitlisted(session, event, limit=limit)
        if promoted:
            audit_service.record(
                session,
                ctx.user_id,
                AuditAction.REGISTRATION_BULK_WAITLIST_TO_GOING,
                "event",
                event_id,
                {"count": len(promoted)},
            )
        notices = await notification_service.build_notices(session, event, promoted)
        payload = {"count": len(promoted), "promoted": [registration_to_dict(r) for r in promoted]}

    logger.info(f"Moved {len(promoted)} waitlisted registrations to going on event {event_id}")
    await notification_service.dispatch_promotion_notices(notices)
    return payload


async def reorder_waitlist(
    session: AsyncSession, ctx: AuthContext, event_id: int, ordered_user_ids: Sequence[int]
) -> List[Dict]:
    """
    Rewrite the whole waitlist order (admin only).

    Listed users who are waitlisted take positions 0..k-1 in the given order;
    the rest of the waitlist keeps its relative order after them. Ids that are
    not waitlisted are ignored.

    Raises:
        InvalidInput: If the list is empty or has duplicates

    Returns:
        The waitlist in its new order
    """
    require_admin(ctx)
    ordered_user_ids = list(ordered_user_ids or [])
    if not ordered_user_ids:
        raise InvalidInput("Waitlist order must not be empty")
    if len(set(ordered_user_ids)) != len(ordered_user_ids):
        raise InvalidInput("Waitlist order contains duplicate users")

    async with atomic(session):
        await lock_event(session, event_id)

        result = await session.execute(
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
        waitlist = list(result.scalars().all())
        by_user = {reg.user_id: reg for reg in waitlist}

        listed = [by_user[uid] for uid in ordered_user_ids if uid in by_user]
        listed_ids = {reg.id for reg in listed}
        rest = [reg for reg in waitlist if reg.id not in listed_ids]

        new_order = listed + rest
        for index, reg in enumerate(new_order):
            reg.position = index
        await session.flush()

        audit_service.record(
            session,
            ctx.user_id,
            AuditAction.REGISTRATION_REORDER_WAITLIST,
            "event",
            event_id,
            {"order": [reg.user_id for reg in new_order]},
        )
        payload = [registration_to_dict(reg) for reg in new_order]

    logger.info(f"Reordered waitlist for event {event_id} ({len(new_order)} entries)")
    return payload


async def set_line_position(
    session: AsyncSession,
    ctx: AuthContext,
    event_id: int,
    user_id: int,
    line: Optional[int] = None,
    assigned_position: Optional[str] = None,
) -> Dict:
    """
    Set a going player's line (1-5 or None) and free-text position (admin or captain).

    Raises:
        InvalidInput: If line is out of range
        InvalidState: If the player is not on the roster
    """
    if line is not None and not (MIN_LINE <= line <= MAX_LINE):
        raise InvalidInput(f"Line must be between {MIN_LINE} and {MAX_LINE}")
    if assigned_position is not None:
        assigned_position = assigned_position.strip() or None

    async with atomic(session):
        await lock_event(session, event_id)
        await require_admin_or_captain(session, ctx, event_id)

        reg = await get_registration(session, event_id, user_id)
        if current_status(reg) is not RegistrationStatus.GOING:
            raise InvalidState("Registration not found or not on roster")

        reg.line = line
        reg.assigned_position = assigned_position
        await session.flush()
        audit_service.record(
            session,
            ctx.user_id,
            AuditAction.REGISTRATION_UPDATE_LINE_POSITION,
            "registration",
            reg.id,
            {"event_id": event_id, "user_id": user_id, "line": line, "assigned_position": assigned_position},
        )
        result = registration_to_dict(reg)

    return result


def _insert_captain(session: AsyncSession, event_id: int, user_id: int):
    """INSERT ... ON CONFLICT DO NOTHING for the current dialect."""
    insert = pg_insert if session.get_bind().dialect.name == "postgresql" else sqlite_insert
    return (
        insert(EventCaptain)
        .values(event_id=event_id, user_id=user_id)
        .on_conflict_do_nothing(index_elements=["event_id", "user_id"])
    )


async def add_captain(session: AsyncSession, ctx: AuthContext, event_id: int, user_id: int) -> bool:
    """
    Make a user captain of an event (admin only). Idempotent.

    Returns:
        True if a new captain row was created
    """
    require_admin(ctx)

    async with atomic(session):
        await get_event(session, event_id)
        await _require_user(session, user_id)
        result = await session.execute(_insert_captain(session, event_id, user_id))
        created = result.rowcount > 0
        if created:
            audit_service.record(
                session,
                ctx.user_id,
                AuditAction.EVENT_ADD_CAPTAIN,
                "event",
                event_id,
                {"user_id": user_id},
            )

    return created


async def remove_captain(session: AsyncSession, ctx: AuthContext, event_id: int, user_id: int) -> bool:
    """
    Remove a user's captain role on an event (admin only). Idempotent.

    Returns:
        True if a captain row was deleted
    """
    require_admin(ctx)

    async with atomic(session):
        await get_event(session, event_id)
        result = await session.execute(
            delete(EventCaptain).where(
                EventCaptain.event_id == event_id,
                EventCaptain.user_id == user_id,
            )
        )
        removed = result.rowcount > 0
        if removed:
            audit_service.record(
                session,
                ctx.user_id,
                AuditAction.EVENT_REMOVE_CAPTAIN,
                "event",
                event_id,
                {"user_id": user_id},
            )

    return removed


async def list_captains(session: AsyncSession, ctx: AuthContext, event_id: int) -> List[Dict]:
    """
    Captains of an event with display names, oldest first.

    Email addresses are only included for admins and captains of the event.
    """
    await get_event(session, event_id)
    show_email = ctx.is_admin or await is_captain(session, event_id, ctx.user_id)
    result = await session.execute(
        select(User)
        .join(EventCaptain, EventCaptain.user_id == User.id)
        .where(EventCaptain.event_id == event_id)
        .order_by(EventCaptain.created_at.asc(), EventCaptain.id.asc())
    )
    return [
        {
            "user_id": user.id,
            "display_name": display_name(user.first_name, user.last_name, user.nickname),
            "email": user.email if show_email else None,
        }
        for user in result.scalars().all()
    ]
