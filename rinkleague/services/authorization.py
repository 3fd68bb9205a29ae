"""
Authorization context for roster operations.

The roster services never authenticate; the API layer resolves the bearer
token into an AuthContext and passes it explicitly into every operation.
"""

from dataclasses import dataclass
from typing import Optional
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession
from rinkleague.database.models import EventCaptain
from rinkleague.services.exceptions import Forbidden


@dataclass(frozen=True)
class AuthContext:
    """The acting user. user_id is None for system actions (scripts)."""

    user_id: Optional[int] = None
    is_admin: bool = False


SYSTEM = AuthContext(user_id=None, is_admin=True)


async def is_captain(session: AsyncSession, event_id: int, user_id: int) -> bool:
    """True when user_id is a captain of event_id."""
    if user_id is None:
        return False
    result = await session.execute(
        select(EventCaptain.id).where(
            EventCaptain.event_id == event_id,
            EventCaptain.user_id == user_id,
        )
    )
    return result.first() is not None


def require_admin(ctx: AuthContext) -> None:
    if not ctx.is_admin:
        raise Forbidden("Admin access required")


async def require_admin_or_captain(session: AsyncSession, ctx: AuthContext, event_id: int) -> None:
    """Admins pass; otherwise the actor must captain this event."""
    if ctx.is_admin:
        return
    if not await is_captain(session, event_id, ctx.user_id):
        raise Forbidden("Admin or event captain access required")
