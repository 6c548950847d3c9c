"""
Rider lifecycle service.

Owns rider onboarding transitions:

    pending → approved → deactivated → approved (reactivate)

Each transition rewrites the matching user's role in the same transaction,
so the role can never drift from the rider status. Work status
(available/busy) is not touched here; it belongs to parcel assignment.
"""

import logging
from typing import Any, Dict, Iterable, List, Optional

from sqlalchemy import select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from parcel_backend.app.core.exceptions import (
    BadRequestError,
    ConflictError,
    InvalidStateError,
    ResourceNotFoundError,
)
from parcel_backend.app.db.defaults import utc_now
from parcel_backend.app.models.enums import ROLE_FOR_RIDER_STATUS, RiderStatus, UserRole, WorkStatus
from parcel_backend.app.models.rider import Rider, RiderArea, area_key
from parcel_backend.app.models.user import User
from parcel_backend.app.services.audit import AuditAction, log_event

logger = logging.getLogger(__name__)


def _unique_areas(areas: Optional[Iterable[str]]) -> List[str]:
    seen = set()
    unique = []
    for area in areas or []:
        if not area or not area.strip():
            continue
        key = area_key(area)
        if key in seen:
            continue
        seen.add(key)
        unique.append(area.strip())
    return unique


async def get_rider(db: AsyncSession, rider_id: str) -> Rider:
    rider = await db.get(Rider, rider_id)
    if rider is None:
        raise ResourceNotFoundError("Rider", rider_id)
    return rider


async def set_user_role(db: AsyncSession, email: str, role: UserRole) -> Optional[User]:
    """
    Rewrite the role of the user owning ``email``.

    Admins keep their role. A missing user is skipped; ``users.upsert_user``
    derives the role from the rider status on first sign-in.
    """
    result = await db.execute(select(User).where(User.email == email))
    user = result.scalar_one_or_none()

    if user is None:
        logger.info("No user for rider %s yet; role %s applies on sign-in", email, role.value)
        return None

    if user.role == UserRole.ADMIN:
        return user

    if user.role != role:
        logger.info("User %s role %s -> %s", email, user.role.value, role.value)
        user.role = role
    return user


async def apply(
    db: AsyncSession,
    email: str,
    name: str,
    phone: Optional[str] = None,
    areas: Optional[Iterable[str]] = None,
    details: Optional[Dict[str, Any]] = None,
) -> Rider:
    """
    Submit a rider application (status pending).

    Raises:
        ConflictError: if a rider with this email already exists
    """
    existing = await db.execute(select(Rider.id).where(Rider.email == email))
    if existing.scalar_one_or_none() is not None:
        raise ConflictError("Rider application already exists", details={"email": email})

    rider = Rider(
        email=email,
        name=name,
        phone=phone,
        details=details or {},
        status=RiderStatus.PENDING,
        work_status=WorkStatus.AVAILABLE,
        areas=[RiderArea(area=area, area_key=area_key(area)) for area in _unique_areas(areas)],
    )
    db.add(rider)

    try:
        await db.commit()
    except IntegrityError:
        # Lost a race against a concurrent application for the same email
        await db.rollback()
        raise ConflictError("Rider application already exists", details={"email": email})

    logger.info("Rider application %s received from %s", rider.id, email)
    return rider


async def _transition(
    db: AsyncSession,
    rider_id: str,
    allowed_from: Iterable[RiderStatus],
    target: RiderStatus,
    action: str,
    actor_email: Optional[str],
    **values,
) -> Rider:
    rider = await get_rider(db, rider_id)

    if rider.status == target:
        return rider

    if rider.status not in allowed_from:
        raise InvalidStateError(
            f"Rider cannot move from {rider.status.value} to {target.value}",
            current_state=rider.status,
        )

    previous = rider.status
    result = await db.execute(
        update(Rider)
        .where(Rider.id == rider.id, Rider.status == previous)
        .values(status=target, updated_at=utc_now(), **values)
    )
    if result.rowcount != 1:
        await db.rollback()
        raise InvalidStateError("Rider was modified concurrently", current_state=previous)

    await set_user_role(db, rider.email, ROLE_FOR_RIDER_STATUS[target])
    log_event(
        db,
        action=action,
        actor_email=actor_email,
        target_type="rider",
        target_id=rider.id,
        metadata={"email": rider.email, "from": previous.value, "to": target.value},
    )
    await db.commit()
    await db.refresh(rider)

    logger.info("Rider %s %s -> %s", rider.id, previous.value, target.value)
    return rider


async def approve(db: AsyncSession, rider_id: str, actor_email: Optional[str] = None) -> Rider:
    """Approve a pending application; the user becomes a rider."""
    return await _transition(
        db, rider_id,
        allowed_from=(RiderStatus.PENDING,),
        target=RiderStatus.APPROVED,
        action=AuditAction.RIDER_APPROVED,
        actor_email=actor_email,
        approved_at=utc_now(),
    )


async def deactivate(db: AsyncSession, rider_id: str, actor_email: Optional[str] = None) -> Rider:
    """Deactivate an approved rider; the user falls back to the user role."""
    rider = await get_rider(db, rider_id)
    if rider.status == RiderStatus.APPROVED and rider.work_status == WorkStatus.BUSY:
        raise InvalidStateError("Rider has an active assignment", current_state=rider.work_status)

    return await _transition(
        db, rider_id,
        allowed_from=(RiderStatus.APPROVED,),
        target=RiderStatus.DEACTIVATED,
        action=AuditAction.RIDER_DEACTIVATED,
        actor_email=actor_email,
    )


async def reactivate(db: AsyncSession, rider_id: str, actor_email: Optional[str] = None) -> Rider:
    """Bring a deactivated rider back to approved."""
    return await _transition(
        db, rider_id,
        allowed_from=(RiderStatus.DEACTIVATED,),
        target=RiderStatus.APPROVED,
        action=AuditAction.RIDER_REACTIVATED,
        actor_email=actor_email,
    )


async def list_by_status(db: AsyncSession, status: Optional[RiderStatus] = None) -> List[Rider]:
    """Riders, newest application first, optionally filtered by status."""
    query = select(Rider).order_by(Rider.applied_at.desc())
    if status is not None:
        query = query.where(Rider.status == status)

    result = await db.execute(query)
    return list(result.scalars().all())


async def available_riders(db: AsyncSession, area: Optional[str]) -> List[Rider]:
    """
    Approved, available riders covering ``area``.

    Matching is exact on the case-folded area name: "dhaka" matches "Dhaka",
    "Dhaka Division" does not.
    """
    if not area or not area.strip():
        raise BadRequestError("area is required")

    result = await db.execute(
        select(Rider)
        .join(RiderArea, RiderArea.rider_id == Rider.id)
        .where(
            RiderArea.area_key == area_key(area),
            Rider.status == RiderStatus.APPROVED,
            Rider.work_status == WorkStatus.AVAILABLE,
        )
        .order_by(Rider.applied_at.desc())
    )
    return list(result.scalars().unique().all())


async def delete(db: AsyncSession, rider_id: str, actor_email: Optional[str] = None) -> None:
    """
    Delete a rider record.

    Raises:
        ResourceNotFoundError: if no rider has this id
        InvalidStateError: if the rider is busy with a parcel
    """
    rider = await get_rider(db, rider_id)

    if rider.work_status == WorkStatus.BUSY:
        raise InvalidStateError("Rider has an active assignment", current_state=rider.work_status)

    if rider.status == RiderStatus.APPROVED:
        await set_user_role(db, rider.email, UserRole.USER)

    log_event(
        db,
        action=AuditAction.RIDER_DELETED,
        actor_email=actor_email,
        target_type="rider",
        target_id=rider.id,
        metadata={"email": rider.email, "status": rider.status.value},
    )
    await db.delete(rider)
    await db.commit()

    logger.info("Rider %s deleted", rider_id)
