"""
Authentication dependencies for FastAPI routes.
"""

from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from typing import Optional
from sqlalchemy.ext.asyncio import AsyncSession
from rinkleague.services import auth_service, user_service
from rinkleague.services.authorization import AuthContext
from rinkleague.database.db import get_db_session

security = HTTPBearer()


async def get_current_user(
    session: AsyncSession = Depends(get_db_session),
    credentials: HTTPAuthorizationCredentials = Depends(security),
) -> dict:
    """
    Dependency to get the current authenticated user from JWT token.

    Args:
        session: Database session
        credentials: HTTP Bearer token credentials

    Returns:
        User dictionary

    Raises:
        HTTPException: If token is invalid or user not found
    """
    token = credentials.credentials

    # Verify token
    payload = auth_service.verify_token(token)
    if payload is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid authentication token",
            headers={"WWW-Authenticate": "Bearer"},
        )

    # Get user_id from token
    user_id = payload.get("user_id")
    if user_id is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid token payload",
            headers={"WWW-Authenticate": "Bearer"},
        )

    # Get user from database
    user = await user_service.get_user_by_id(session, user_id)
    if user is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="User not found",
            headers={"WWW-Authenticate": "Bearer"},
        )

    return user


async def get_current_user_optional(
    session: AsyncSession = Depends(get_db_session),
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(HTTPBearer(auto_error=False)),
) -> Optional[dict]:
    """
    Optional dependency to get the current authenticated user.
    Returns None if no token is provided or token is invalid.
    """
    if credentials is None:
        return None

    try:
        return await get_current_user(session, credentials)
    except HTTPException:
        return None


async def require_system_admin(user: dict = Depends(get_current_user)) -> dict:
    """Require a league admin."""
    if not user.get("is_admin"):
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Admin access required")
    return user


def to_auth_context(user: Optional[dict]) -> AuthContext:
    if user is None:
        return AuthContext()
    return AuthContext(user_id=user["id"], is_admin=bool(user.get("is_admin")))


async def get_auth_context(user: dict = Depends(get_current_user)) -> AuthContext:
    """Authorization context for the signed-in user."""
    return to_auth_context(user)


async def get_auth_context_optional(
    user: Optional[dict] = Depends(get_current_user_optional),
) -> AuthContext:
    """Authorization context; anonymous viewers get an empty, non-admin context."""
    return to_auth_context(user)
