"""Event captain route handlers."""

import logging
from typing import List

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.ext.asyncio import AsyncSession

from rinkleague.database.db import get_db_session
from rinkleague.services import admin_roster_service
from rinkleague.services.authorization import AuthContext
from rinkleague.services.exceptions import RosterError
from rinkleague.api.auth_dependencies import get_auth_context
from rinkleague.models.schemas import CaptainResponse

logger = logging.getLogger(__name__)
router = APIRouter()


@router.get("/api/events/{event_id}/captains", response_model=List[CaptainResponse])
async def list_captains(
    event_id: int,
    ctx: AuthContext = Depends(get_auth_context),
    session: AsyncSession = Depends(get_db_session),
):
    """List an event's captains. Emails are shown to admins and the event's captains."""
    try:
        return await admin_roster_service.list_captains(session, ctx, event_id)
    except RosterError as e:
        raise HTTPException(status_code=e.status_code, detail=str(e))
    except HTTPException:
        raise
    except Exception as e:
        logger.error(f"Error listing captains for event {event_id}: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail="Failed to fetch captains")


@router.put("/api/events/{event_id}/captains/{user_id}")
async def add_captain(
    event_id: int,
    user_id: int,
    ctx: AuthContext = Depends(get_auth_context),
    session: AsyncSession = Depends(get_db_session),
):
    """Make a user captain of the event (admin only). Idempotent."""
    try:
        created = await admin_roster_service.add_captain(session, ctx, event_id, user_id)
        return {"ok": True, "created": created}
    except RosterError as e:
        raise HTTPException(status_code=e.status_code, detail=str(e))
    except HTTPException:
        raise
    except Exception as e:
        logger.error(f"Error adding captain {user_id} to event {event_id}: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail="Failed to update")


@router.delete("/api/events/{event_id}/captains/{user_id}")
async def remove_captain(
    event_id: int,
    user_id: int,
    ctx: AuthContext = Depends(get_auth_context),
    session: AsyncSession = Depends(get_db_session),
):
    """Remove a user's captain role on the event (admin only). Idempotent."""
    try:
        removed = await admin_roster_service.remove_captain(session, ctx, event_id, user_id)
        return {"ok": True, "removed": removed}
    except RosterError as e:
        raise HTTPException(status_code=e.status_code, detail=str(e))
    except HTTPException:
        raise
    except Exception as e:
        logger.error(f"Error removing captain {user_id} from event {event_id}: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail="Failed to update")
