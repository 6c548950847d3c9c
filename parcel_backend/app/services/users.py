"""
User directory service.
"""

import logging
from typing import List, Optional, Tuple

from sqlalchemy import func, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from parcel_backend.app.core.exceptions import BadRequestError, InvalidStateError, ResourceNotFoundError
from parcel_backend.app.db.defaults import utc_now
from parcel_backend.app.models.enums import ROLE_FOR_RIDER_STATUS, RiderStatus, UserRole
from parcel_backend.app.models.rider import Rider
from parcel_backend.app.models.user import User
from parcel_backend.app.services.audit import AuditAction, log_event

logger = logging.getLogger(__name__)

SEARCH_LIMIT = 10
DIRECTLY_ASSIGNABLE_ROLES = (UserRole.USER, UserRole.ADMIN)


def escape_like(value: str, escape: str = "\\") -> str:
    """Escape LIKE wildcards so user input is matched literally."""
    return (
        value.replace(escape, escape * 2)
        .replace("%", f"{escape}%")
        .replace("_", f"{escape}_")
    )


async def get_user_by_email(db: AsyncSession, email: str) -> Optional[User]:
    result = await db.execute(select(User).where(User.email == email))
    return result.scalar_one_or_none()


async def upsert_user(
    db: AsyncSession,
    email: str,
    name: Optional[str] = None,
    photo_url: Optional[str] = None,
) -> Tuple[User, bool]:
    """
    Create the user on first sign-in, otherwise refresh the login time.

    A new user whose rider application was already handled gets the role
    that application's status grants.

    Returns:
        (user, created)
    """
    user = await get_user_by_email(db, email)
    if user is not None:
        user.last_login_at = utc_now()
        if name:
            user.name = name
        if photo_url:
            user.photo_url = photo_url
        await db.commit()
        return user, False

    rider_result = await db.execute(select(Rider.status).where(Rider.email == email))
    rider_status = rider_result.scalar_one_or_none()
    role = ROLE_FOR_RIDER_STATUS[rider_status] if rider_status is not None else UserRole.USER

    user = User(email=email, name=name, photo_url=photo_url, role=role)
    db.add(user)
    try:
        await db.commit()
    except IntegrityError:
        # Concurrent first sign-in for the same email
        await db.rollback()
        user = await get_user_by_email(db, email)
        return user, False

    logger.info("User %s created with role %s", email, role.value)
    return user, True


async def get_role(db: AsyncSession, email: str) -> UserRole:
    """Stored role for ``email``; unknown users are plain users."""
    user = await get_user_by_email(db, email)
    return user.role if user is not None else UserRole.USER


async def list_users(db: AsyncSession, page: int = 1, page_size: int = 50) -> Tuple[List[User], int]:
    total_result = await db.execute(select(func.count(User.id)))
    total = total_result.scalar()

    offset = (page - 1) * page_size
    result = await db.execute(
        select(User).order_by(User.created_at.desc()).offset(offset).limit(page_size)
    )
    return list(result.scalars().all()), total


async def search_users(db: AsyncSession, email_fragment: Optional[str]) -> List[User]:
    """Case-insensitive substring search on email, wildcards matched literally."""
    if not email_fragment or not email_fragment.strip():
        raise BadRequestError("email query is required")

    pattern = f"%{escape_like(email_fragment.strip())}%"
    result = await db.execute(
        select(User)
        .where(User.email.ilike(pattern, escape="\\"))
        .order_by(User.email.asc())
        .limit(SEARCH_LIMIT)
    )
    return list(result.scalars().all())


async def set_role(
    db: AsyncSession,
    user_id: str,
    role: UserRole,
    actor_email: Optional[str] = None,
) -> User:
    """
    Change a user's role to ``user`` or ``admin``.

    The rider role follows rider approval and can not be set here.
    """
    if role not in DIRECTLY_ASSIGNABLE_ROLES:
        raise BadRequestError("Rider role is granted by approving a rider application")

    user = await db.get(User, user_id)
    if user is None:
        raise ResourceNotFoundError("User", user_id)

    rider_result = await db.execute(
        select(Rider.id).where(Rider.email == user.email, Rider.status == RiderStatus.APPROVED)
    )
    if rider_result.scalar_one_or_none() is not None:
        raise InvalidStateError("User is an approved rider; deactivate the rider first", current_state=user.role)

    previous = user.role
    if previous == role:
        return user

    user.role = role
    log_event(
        db,
        action=AuditAction.ROLE_CHANGED,
        actor_email=actor_email,
        target_type="user",
        target_id=user.id,
        metadata={"email": user.email, "from": previous.value, "to": role.value},
    )
    await db.commit()

    logger.info("User %s role %s -> %s", user.email, previous.value, role.value)
    return user
