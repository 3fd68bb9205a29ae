"""
User service layer for member account database operations.
"""

from typing import Optional, Dict
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select, update, func
from rinkleague.database.models import User
import logging

logger = logging.getLogger(__name__)


def display_name(first_name: Optional[str], last_name: Optional[str], nickname: Optional[str] = None) -> str:
    """Nickname when set, otherwise "First Last"."""
    if nickname and nickname.strip():
        return nickname.strip()
    return f"{first_name or ''} {last_name or ''}".strip()


async def create_user(
    session: AsyncSession,
    email: str,
    first_name: str,
    last_name: str,
    nickname: Optional[str] = None,
    phone: Optional[str] = None,
    is_admin: bool = False,
) -> int:
    """
    Create a new member account.

    Args:
        session: Database session
        email: User email (normalized to lowercase)
        first_name: First name
        last_name: Last name
        nickname: Optional display nickname
        phone: Optional phone number
        is_admin: Grant league admin rights

    Returns:
        User ID of the created user

    Raises:
        ValueError: If the email is missing or already registered
    """
    email = email.strip().lower() if email else None
    if not email:
        raise ValueError("Email is required")

    result = await session.execute(select(User.id).where(User.email == email))
    if result.scalar_one_or_none():
        raise ValueError(f"Email {email} is already registered")

    new_user = User(
        email=email,
        first_name=first_name.strip(),
        last_name=last_name.strip(),
        nickname=nickname.strip() if nickname and nickname.strip() else None,
        phone=phone,
        is_admin=is_admin,
    )
    session.add(new_user)
    await session.flush()
    user_id = new_user.id
    await session.commit()

    return user_id


async def set_admin(session: AsyncSession, user_id: int, is_admin: bool = True) -> bool:
    """
    Grant or revoke league admin rights.

    Returns:
        True if the user exists, False otherwise
    """
    result = await session.execute(update(User).where(User.id == user_id).values(is_admin=is_admin))
    await session.commit()
    return result.rowcount > 0


async def get_user_by_email(session: AsyncSession, email: str) -> Optional[Dict]:
    """
    Get user by email address.

    Args:
        session: Database session
        email: Email address (will be normalized to lowercase)

    Returns:
        User dictionary or None if not found
    """
    email = email.strip().lower() if email else None
    if not email:
        return None

    result = await session.execute(select(User).where(func.lower(User.email) == email).limit(1))
    user = result.scalar_one_or_none()
    return _user_to_dict(user) if user else None


async def get_user_by_id(session: AsyncSession, user_id: int) -> Optional[Dict]:
    """
    Get user by ID.

    Args:
        session: Database session
        user_id: User ID

    Returns:
        User dictionary or None if not found
    """
    result = await session.execute(select(User).where(User.id == user_id))
    user = result.scalar_one_or_none()
    return _user_to_dict(user) if user else None


async def get_display_names(session: AsyncSession, user_ids) -> Dict[int, str]:
    """Map user ids to display names; unknown ids are left out."""
    ids = {uid for uid in user_ids if uid is not None}
    if not ids:
        return {}
    result = await session.execute(
        select(User.id, User.first_name, User.last_name, User.nickname).where(User.id.in_(ids))
    )
    return {row.id: display_name(row.first_name, row.last_name, row.nickname) for row in result.all()}


def _user_to_dict(user: User) -> Dict:
    """
    Convert a User ORM instance to a dictionary.

    Args:
        user: User ORM instance

    Returns:
        User dictionary
    """
    return {
        "id": user.id,
        "email": user.email,
        "first_name": user.first_name,
        "last_name": user.last_name,
        "nickname": user.nickname,
        "display_name": display_name(user.first_name, user.last_name, user.nickname),
        "phone": user.phone,
        "is_admin": bool(user.is_admin),
        "created_at": user.created_at.isoformat() if user.created_at else None,
    }
