"""
Promotion notifications.

Roster operations collect PromotionNotice values while their transaction is
open and hand them to dispatch_promotion_notices() after it commits. A failed
send is logged and never undoes the promotion.
"""

from dataclasses import dataclass
from typing import Dict, Iterable, List, Optional
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession
from rinkleague.database.models import Event, EventRegistration, User
from rinkleague.services import email_service
from rinkleague.utils.datetime_utils import format_event_start
import logging

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class PromotionNotice:
    """Everything needed to tell one member they are on the roster."""

    user_id: int
    email: str
    event_name: str
    start_time_display: str
    location_display: str
    venue_key: Optional[str] = None


def event_display_name(event: Event) -> str:
    """Event name, or "<league> League - <type>" for unnamed events."""
    return event.name or f"{event.league} League - {event.type}"


def location_display(event: Event) -> str:
    location = event.location or "TBD"
    return f"{location} ({event.rink})" if event.rink else location


async def build_notices(
    session: AsyncSession, event: Event, registrations: Iterable[EventRegistration]
) -> List[PromotionNotice]:
    """
    Build one notice per promoted registration.

    Emails are looked up explicitly so this never triggers a lazy load.
    Registrations whose user has no email are skipped.
    """
    user_ids = [reg.user_id for reg in registrations]
    if not user_ids:
        return []

    result = await session.execute(select(User.id, User.email).where(User.id.in_(user_ids)))
    emails = {row.id: row.email for row in result.all()}

    name = event_display_name(event)
    when = format_event_start(event.start_time)
    where = location_display(event)
    notices = []
    for user_id in user_ids:
        email = emails.get(user_id)
        if not email:
            logger.warning(f"No email for promoted user {user_id} on event {event.id}, skipping notice")
            continue
        notices.append(
            PromotionNotice(
                user_id=user_id,
                email=email,
                event_name=name,
                start_time_display=when,
                location_display=where,
                venue_key=event.venue_key,
            )
        )
    return notices


async def dispatch_promotion_notices(notices: Iterable[PromotionNotice]) -> List[Dict]:
    """
    Send promotion emails. Never raises.

    Returns:
        One {"ok": bool, "error"?: str} result per notice, in order
    """
    results = []
    for notice in notices:
        try:
            result = await email_service.send_waitlist_promoted_email(
                notice.email,
                notice.event_name,
                notice.start_time_display,
                notice.location_display,
                notice.venue_key,
            )
        except Exception as e:
            result = {"ok": False, "error": str(e)}
        if not result.get("ok"):
            logger.warning(
                f"Failed to send promotion email to user {notice.user_id}: {result.get('error')}"
            )
        results.append(result)
    return results
