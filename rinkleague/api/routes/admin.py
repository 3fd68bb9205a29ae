"""Admin and system route handlers."""

import logging

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.ext.asyncio import AsyncSession

from rinkleague.database.db import get_db_session
from rinkleague.services import audit_service
from rinkleague.services.exceptions import RosterError
from rinkleague.api.auth_dependencies import require_system_admin, to_auth_context
from rinkleague.models.schemas import AuditLogResponse
from rinkleague.utils.constants import DEFAULT_AUDIT_LIMIT

logger = logging.getLogger(__name__)
router = APIRouter()


@router.get("/api/admin/audit", response_model=AuditLogResponse)
async def list_audit_log(
    limit: int = Query(DEFAULT_AUDIT_LIMIT),
    offset: int = Query(0),
    user: dict = Depends(require_system_admin),
    session: AsyncSession = Depends(get_db_session),
):
    """List audit log entries, newest first (admin only)."""
    try:
        return await audit_service.list_audit_entries(
            session, to_auth_context(user), limit=limit, offset=offset
        )
    except RosterError as e:
        raise HTTPException(status_code=e.status_code, detail=str(e))
    except HTTPException:
        raise
    except Exception as e:
        logger.error(f"Error listing audit log: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail="Failed to fetch audit log")


@router.get("/api/health")
async def health_check():
    """
    Health check endpoint.

    Returns:
        dict: Service status
    """
    return {"status": "healthy", "message": "API is running"}
