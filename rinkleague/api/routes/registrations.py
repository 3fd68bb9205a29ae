"""Event registration, waitlist and roster route handlers."""

import logging
from typing import List

from fastapi import APIRouter, Depends, HTTPException, Request
from fastapi.responses import Response
from sqlalchemy.ext.asyncio import AsyncSession

from rinkleague.database.db import get_db_session
from rinkleague.services import admin_roster_service, registration_service, roster_service
from rinkleague.services.authorization import AuthContext
from rinkleague.services.exceptions import EventNotFound, RosterError
from rinkleague.services.registration_state import get_event
from rinkleague.api.auth_dependencies import get_auth_context
from rinkleague.api.routes import limiter
from rinkleague.models.schemas import (
    RegistrationResponse,
    RosterResponse,
    LeaveResponse,
    BulkApproveResponse,
    BulkPromoteResponse,
    WaitlistOrderRequest,
    LinePositionRequest,
)
from rinkleague.utils.datetime_utils import is_event_active

logger = logging.getLogger(__name__)
router = APIRouter()


def _http_error(e: RosterError) -> HTTPException:
    return HTTPException(status_code=e.status_code, detail=str(e))


# ---------------------------------------------------------------------------
# Roster and self-service
# ---------------------------------------------------------------------------


@router.get("/api/events/{event_id}/registrations", response_model=RosterResponse)
async def get_roster(
    event_id: int,
    ctx: AuthContext = Depends(get_auth_context),
    session: AsyncSession = Depends(get_db_session),
):
    """Roster for an event, grouped by status. Past events are admin-only."""
    try:
        event = await get_event(session, event_id)
        if not ctx.is_admin and not is_event_active(event.start_time):
            raise EventNotFound()
        return await roster_service.get_roster(session, event_id)
    except RosterError as e:
        raise _http_error(e)
    except HTTPException:
        raise
    except Exception as e:
        logger.error(f"Error fetching roster for event {event_id}: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail="Failed to fetch roster")


@router.post("/api/events/{event_id}/registrations", response_model=RegistrationResponse)
@limiter.limit("20/minute")
async def join_event(
    request: Request,
    event_id: int,
    ctx: AuthContext = Depends(get_auth_context),
    session: AsyncSession = Depends(get_db_session),
):
    """Join an event: roster, waitlist or pending approval."""
    try:
        return await registration_service.join_event(session, ctx, event_id)
    except RosterError as e:
        raise _http_error(e)
    except HTTPException:
        raise
    except Exception as e:
        logger.error(f"Error joining event {event_id}: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail="Failed to join")


@router.delete("/api/events/{event_id}/registrations", response_model=LeaveResponse)
@limiter.limit("20/minute")
async def leave_event(
    request: Request,
    event_id: int,
    ctx: AuthContext = Depends(get_auth_context),
    session: AsyncSession = Depends(get_db_session),
):
    """Leave an event. A freed roster slot goes to the first waitlisted player."""
    try:
        return await registration_service.leave_event(session, ctx, event_id)
    except RosterError as e:
        raise _http_error(e)
    except HTTPException:
        raise
    except Exception as e:
        logger.error(f"Error leaving event {event_id}: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail="Failed to leave")


# ---------------------------------------------------------------------------
# Admin / captain overrides
# ---------------------------------------------------------------------------


@router.post("/api/events/{event_id}/registrations/approve-all", response_model=BulkApproveResponse)
async def approve_all_requested(
    event_id: int,
    ctx: AuthContext = Depends(get_auth_context),
    session: AsyncSession = Depends(get_db_session),
):
    """Approve every pending request (admin or captain)."""
    try:
        return await admin_roster_service.bulk_approve_all_requested(session, ctx, event_id)
    except RosterError as e:
        raise _http_error(e)
    except HTTPException:
        raise
    except Exception as e:
        logger.error(f"Error approving requests for event {event_id}: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail="Failed to update")


@router.post(
    "/api/events/{event_id}/registrations/{user_id}/approve", response_model=RegistrationResponse
)
async def approve_registration(
    event_id: int,
    user_id: int,
    ctx: AuthContext = Depends(get_auth_context),
    session: AsyncSession = Depends(get_db_session),
):
    """Approve one pending request (admin or captain)."""
    try:
        return await registration_service.approve_registration(session, ctx, event_id, user_id)
    except RosterError as e:
        raise _http_error(e)
    except HTTPException:
        raise
    except Exception as e:
        logger.error(f"Error approving user {user_id} for event {event_id}: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail="Failed to update")


@router.put(
    "/api/events/{event_id}/registrations/{user_id}/line-position",
    response_model=RegistrationResponse,
)
async def set_line_position(
    event_id: int,
    user_id: int,
    payload: LinePositionRequest,
    ctx: AuthContext = Depends(get_auth_context),
    session: AsyncSession = Depends(get_db_session),
):
    """Assign a rostered player's line and position (admin or captain)."""
    try:
        return await admin_roster_service.set_line_position(
            session, ctx, event_id, user_id, line=payload.line, assigned_position=payload.assigned_position
        )
    except RosterError as e:
        raise _http_error(e)
    except HTTPException:
        raise
    except Exception as e:
        logger.error(f"Error setting line for user {user_id} on event {event_id}: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail="Failed to update")


@router.post("/api/events/{event_id}/registrations/{user_id}", response_model=RegistrationResponse)
async def direct_add(
    event_id: int,
    user_id: int,
    ctx: AuthContext = Depends(get_auth_context),
    session: AsyncSession = Depends(get_db_session),
):
    """Put a user on the roster regardless of capacity (admin only)."""
    try:
        return await admin_roster_service.direct_add(session, ctx, event_id, user_id)
    except RosterError as e:
        raise _http_error(e)
    except HTTPException:
        raise
    except Exception as e:
        logger.error(f"Error adding user {user_id} to event {event_id}: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail="Failed to update")


@router.delete("/api/events/{event_id}/registrations/{user_id}", response_model=LeaveResponse)
async def direct_remove(
    event_id: int,
    user_id: int,
    ctx: AuthContext = Depends(get_auth_context),
    session: AsyncSession = Depends(get_db_session),
):
    """Remove a user from the event (admin or captain)."""
    try:
        return await admin_roster_service.direct_remove(session, ctx, event_id, user_id)
    except RosterError as e:
        raise _http_error(e)
    except HTTPException:
        raise
    except Exception as e:
        logger.error(f"Error removing user {user_id} from event {event_id}: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail="Failed to update")


@router.post("/api/events/{event_id}/waitlist/promote-all", response_model=BulkPromoteResponse)
async def move_all_waitlist_to_going(
    event_id: int,
    ctx: AuthContext = Depends(get_auth_context),
    session: AsyncSession = Depends(get_db_session),
):
    """Fill all free roster slots from the waitlist (admin only)."""
    try:
        return await admin_roster_service.move_all_waitlist_to_going(session, ctx, event_id)
    except RosterError as e:
        raise _http_error(e)
    except HTTPException:
        raise
    except Exception as e:
        logger.error(f"Error promoting waitlist for event {event_id}: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail="Failed to update")


@router.put("/api/events/{event_id}/waitlist/order", response_model=List[RegistrationResponse])
async def reorder_waitlist(
    event_id: int,
    payload: WaitlistOrderRequest,
    ctx: AuthContext = Depends(get_auth_context),
    session: AsyncSession = Depends(get_db_session),
):
    """Replace the waitlist order (admin only)."""
    try:
        return await admin_roster_service.reorder_waitlist(session, ctx, event_id, payload.user_ids)
    except RosterError as e:
        raise _http_error(e)
    except HTTPException:
        raise
    except Exception as e:
        logger.error(f"Error reordering waitlist for event {event_id}: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail="Failed to update")


@router.get("/api/events/{event_id}/roster.csv")
async def export_roster_csv(
    event_id: int,
    ctx: AuthContext = Depends(get_auth_context),
    session: AsyncSession = Depends(get_db_session),
):
    """Download the roster as CSV (admin or captain)."""
    try:
        content = await roster_service.export_roster_csv(session, ctx, event_id)
        return Response(
            content=content,
            media_type="text/csv",
            headers={"Content-Disposition": f'attachment; filename="event-{event_id}-roster.csv"'},
        )
    except RosterError as e:
        raise _http_error(e)
    except HTTPException:
        raise
    except Exception as e:
        logger.error(f"Error exporting roster for event {event_id}: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail="Failed to export roster")
