"""
Audit log service.

Entries are written in the caller's transaction so an audited roster change
and its audit row commit (or roll back) together.
"""

import json
import logging
from typing import Any, Dict, Optional, Union
from sqlalchemy import select, func
from sqlalchemy.ext.asyncio import AsyncSession
from rinkleague.database.models import AuditLog, AuditAction
from rinkleague.services import user_service
from rinkleague.services.authorization import AuthContext, require_admin
from rinkleague.utils.constants import DEFAULT_AUDIT_LIMIT, MAX_AUDIT_LIMIT

logger = logging.getLogger(__name__)


def record(
    session: AsyncSession,
    actor_user_id: Optional[int],
    action: Union[AuditAction, str],
    entity_type: str,
    entity_id: Optional[Union[int, str]] = None,
    details: Optional[Dict[str, Any]] = None,
) -> AuditLog:
    """
    Add an audit entry to the session (flushed with the caller's transaction).

    Args:
        session: Database session
        actor_user_id: Acting user, or None for system actions
        action: AuditAction kind
        entity_type: 'event' or 'registration'
        entity_id: Target entity id
        details: JSON-serializable payload
    """
    entry = AuditLog(
        user_id=actor_user_id,
        action=action.value if isinstance(action, AuditAction) else action,
        entity_type=entity_type,
        entity_id=str(entity_id) if entity_id is not None else None,
        details=json.dumps(details, default=str) if details is not None else None,
    )
    session.add(entry)
    logger.debug(f"Audit {entry.action} on {entity_type} {entry.entity_id} by user {actor_user_id}")
    return entry


def _parse_details(raw: Optional[str]):
    if raw is None:
        return None
    try:
        return json.loads(raw)
    except ValueError:
        return raw


async def list_audit_entries(
    session: AsyncSession,
    ctx: AuthContext,
    limit: int = DEFAULT_AUDIT_LIMIT,
    offset: int = 0,
) -> Dict[str, Any]:
    """
    List audit entries, newest first (admin only).

    limit is clamped to 1..MAX_AUDIT_LIMIT and offset to >= 0.

    Returns:
        {"entries": [...], "total": n}
    """
    require_admin(ctx)
    limit = min(MAX_AUDIT_LIMIT, max(1, limit or DEFAULT_AUDIT_LIMIT))
    offset = max(0, offset or 0)

    total = (await session.execute(select(func.count(AuditLog.id)))).scalar_one()
    result = await session.execute(
        select(AuditLog)
        .order_by(AuditLog.created_at.desc(), AuditLog.id.desc())
        .limit(limit)
        .offset(offset)
    )
    entries = result.scalars().all()

    names = await user_service.get_display_names(session, (e.user_id for e in entries))
    return {
        "entries": [
            {
                "id": e.id,
                "user_id": e.user_id,
                "user_name": names.get(e.user_id) if e.user_id else None,
                "action": e.action,
                "entity_type": e.entity_type,
                "entity_id": e.entity_id,
                "details": _parse_details(e.details),
                "created_at": e.created_at.isoformat() if e.created_at else None,
            }
            for e in entries
        ],
        "total": total,
    }
