"""Event route handlers."""

import logging
from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException, Query
from fastapi.responses import Response
from sqlalchemy.ext.asyncio import AsyncSession

from rinkleague.database.db import get_db_session
from rinkleague.services import event_service
from rinkleague.services.authorization import AuthContext
from rinkleague.services.exceptions import RosterError
from rinkleague.api.auth_dependencies import get_auth_context, get_auth_context_optional
from rinkleague.models.schemas import (
    EventCreate,
    EventUpdate,
    EventResponse,
    EventDetailResponse,
)

logger = logging.getLogger(__name__)
router = APIRouter()


@router.get("/api/events", response_model=List[EventResponse])
async def list_events(
    active: Optional[bool] = Query(None, description="Admins only: true for active, false for past"),
    ctx: AuthContext = Depends(get_auth_context_optional),
    session: AsyncSession = Depends(get_db_session),
):
    """List events. Non-admins only see active events."""
    try:
        return await event_service.list_events(session, ctx, active=active)
    except Exception as e:
        logger.error(f"Error listing events: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail="Failed to fetch events")


@router.post("/api/events", response_model=EventResponse)
async def create_event(
    payload: EventCreate,
    ctx: AuthContext = Depends(get_auth_context),
    session: AsyncSession = Depends(get_db_session),
):
    """Create an event (admin only)."""
    try:
        return await event_service.create_event(session, ctx, payload.model_dump())
    except RosterError as e:
        raise HTTPException(status_code=e.status_code, detail=str(e))
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    except HTTPException:
        raise
    except Exception as e:
        logger.error(f"Error creating event: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail="Failed to create event")


@router.get("/api/events/{event_id}", response_model=EventDetailResponse)
async def get_event(
    event_id: int,
    ctx: AuthContext = Depends(get_auth_context_optional),
    session: AsyncSession = Depends(get_db_session),
):
    """Get an event with its roster. Past events are admin-only."""
    try:
        return await event_service.get_event_detail(session, ctx, event_id)
    except RosterError as e:
        raise HTTPException(status_code=e.status_code, detail=str(e))
    except HTTPException:
        raise
    except Exception as e:
        logger.error(f"Error fetching event {event_id}: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail="Failed to fetch event")


@router.get("/api/events/{event_id}/event.ics")
async def export_event_ics(
    event_id: int,
    session: AsyncSession = Depends(get_db_session),
):
    """Download an event as an .ics file for adding to a calendar."""
    try:
        content = await event_service.export_event_ics(session, event_id)
        return Response(
            content=content,
            media_type="text/calendar; charset=utf-8",
            headers={"Content-Disposition": f'attachment; filename="event-{event_id}.ics"'},
        )
    except RosterError as e:
        raise HTTPException(status_code=e.status_code, detail=str(e))
    except HTTPException:
        raise
    except Exception as e:
        logger.error(f"Error exporting calendar file for event {event_id}: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail="Failed to export calendar file")


@router.patch("/api/events/{event_id}", response_model=EventResponse)
async def update_event(
    event_id: int,
    payload: EventUpdate,
    ctx: AuthContext = Depends(get_auth_context),
    session: AsyncSession = Depends(get_db_session),
):
    """Update, reschedule, cancel or un-cancel an event (admin only)."""
    try:
        return await event_service.update_event(
            session, ctx, event_id, payload.model_dump(exclude_unset=True)
        )
    except RosterError as e:
        raise HTTPException(status_code=e.status_code, detail=str(e))
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    except HTTPException:
        raise
    except Exception as e:
        logger.error(f"Error updating event {event_id}: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail="Failed to update event")


@router.delete("/api/events/{event_id}")
async def delete_event(
    event_id: int,
    ctx: AuthContext = Depends(get_auth_context),
    session: AsyncSession = Depends(get_db_session),
):
    """Delete an event and its roster (admin only)."""
    try:
        await event_service.delete_event(session, ctx, event_id)
        return {"ok": True}
    except RosterError as e:
        raise HTTPException(status_code=e.status_code, detail=str(e))
    except HTTPException:
        raise
    except Exception as e:
        logger.error(f"Error deleting event {event_id}: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail="Failed to delete event")
