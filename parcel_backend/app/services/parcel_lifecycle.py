"""
Parcel lifecycle service.

Owns every write to a parcel's lifecycle columns:

    pending → rider_assigned → in_transit → delivered
                                          → service_center_delivered
                                          → returned

Transitions are conditional updates on the expected previous status, and
operations touching more than one row (parcel + rider + tracking event) commit
once, so they either fully apply or not at all.
"""

import logging
from typing import Any, Dict, List, Optional

from sqlalchemy import delete, func, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from parcel_backend.app.core.exceptions import (
    BadRequestError,
    InsufficientPermissionsError,
    InvalidStateError,
    ResourceNotFoundError,
)
from parcel_backend.app.db.defaults import new_id, utc_now
from parcel_backend.app.models.enums import RiderStatus, WorkStatus
from parcel_backend.app.models.parcel import Parcel
from parcel_backend.app.models.parcel_enums import (
    ACTIVE_DELIVERY_STATUSES,
    COMPLETED_DELIVERY_STATUSES,
    CashoutStatus,
    DeliveryStatus,
    PaymentStatus,
    can_transition,
)
from parcel_backend.app.models.rider import Rider
from parcel_backend.app.services.audit import AuditAction, log_event
from parcel_backend.app.services.tracking import stage_event

logger = logging.getLogger(__name__)

# Keys a client can not set through the creation payload
RESERVED_KEYS = frozenset({
    "id", "_id", "tracking_id", "created_by", "creation_date",
    "payment_status", "delivery_status", "cashout_status",
    "rider_id", "rider_name", "rider_phone", "rider_email", "assigned_at",
    "picked_up_at", "picked_by", "delivered_at", "delivered_by",
    "payment_intent_id", "payment_method", "paid_amount", "paid_at",
    "cash_out_at",
})

RIDER_RELEASING_STATUSES = (
    DeliveryStatus.DELIVERED,
    DeliveryStatus.SERVICE_CENTER_DELIVERED,
    DeliveryStatus.RETURNED,
)


def generate_tracking_id() -> str:
    """Tracking ids look like PCL-20250101-1A2B3C4D."""
    return f"PCL-{utc_now():%Y%m%d}-{new_id()[:8].upper()}"


async def create_parcel(db: AsyncSession, payload: Dict[str, Any], creator_email: str) -> Parcel:
    """
    Create an unpaid, pending parcel for ``creator_email``.

    The payload is stored as submitted, minus reserved lifecycle keys.
    """
    details = {key: value for key, value in (payload or {}).items() if key not in RESERVED_KEYS}

    parcel = Parcel(
        tracking_id=generate_tracking_id(),
        created_by=creator_email,
        creation_date=utc_now(),
        details=details,
        payment_status=PaymentStatus.UNPAID,
        delivery_status=DeliveryStatus.PENDING,
        cashout_status=CashoutStatus.NONE,
    )
    db.add(parcel)
    await db.flush()

    stage_event(db, parcel.tracking_id, "parcel_created", {"created_by": creator_email})
    await db.commit()

    logger.info("Parcel %s created by %s (%s)", parcel.id, creator_email, parcel.tracking_id)
    return parcel


async def get_parcel(db: AsyncSession, parcel_id: str) -> Parcel:
    parcel = await db.get(Parcel, parcel_id)
    if parcel is None:
        raise ResourceNotFoundError("Parcel", parcel_id)
    return parcel


async def list_for_user(db: AsyncSession, email: str) -> List[Parcel]:
    """Parcels created by ``email``, newest first."""
    result = await db.execute(
        select(Parcel)
        .where(Parcel.created_by == email)
        .order_by(Parcel.creation_date.desc())
    )
    return list(result.scalars().all())


async def list_admin(
    db: AsyncSession,
    payment_status: Optional[PaymentStatus] = None,
    delivery_status: Optional[DeliveryStatus] = None,
) -> List[Parcel]:
    """All parcels matching the optional filters, newest first."""
    query = select(Parcel).order_by(Parcel.creation_date.desc())
    if payment_status is not None:
        query = query.where(Parcel.payment_status == payment_status)
    if delivery_status is not None:
        query = query.where(Parcel.delivery_status == delivery_status)

    result = await db.execute(query)
    return list(result.scalars().all())


async def delete_parcel(
    db: AsyncSession,
    parcel_id: str,
    caller_email: str,
    caller_is_admin: bool = False,
) -> bool:
    """
    Delete a parcel. Deleting an unknown id is not an error.

    Raises:
        InsufficientPermissionsError: caller is neither the creator nor an admin
        InvalidStateError: a rider is on the parcel (rider_assigned / in_transit)
    """
    parcel = await db.get(Parcel, parcel_id)
    if parcel is None:
        return False

    if parcel.created_by != caller_email and not caller_is_admin:
        raise InsufficientPermissionsError("Only the creator or an admin can delete a parcel")

    if parcel.delivery_status in ACTIVE_DELIVERY_STATUSES:
        raise InvalidStateError(
            "Parcel has an active rider assignment",
            current_state=parcel.delivery_status,
        )

    # Guarded on status so a concurrent assignment is never orphaned
    result = await db.execute(
        delete(Parcel).where(
            Parcel.id == parcel_id,
            Parcel.delivery_status.not_in(ACTIVE_DELIVERY_STATUSES),
        )
    )
    if result.rowcount != 1:
        await db.rollback()
        raise InvalidStateError("Parcel was modified concurrently", current_state=parcel.delivery_status)
    await db.commit()

    logger.info("Parcel %s deleted by %s", parcel_id, caller_email)
    return True


async def _advance(db: AsyncSession, parcel: Parcel, target: DeliveryStatus, **values) -> None:
    current = parcel.delivery_status
    if not can_transition(current, target):
        raise InvalidStateError(
            f"Parcel cannot move from {current.value} to {target.value}",
            current_state=current,
        )

    result = await db.execute(
        update(Parcel)
        .where(Parcel.id == parcel.id, Parcel.delivery_status == current)
        .values(delivery_status=target, **values)
    )
    if result.rowcount != 1:
        await db.rollback()
        raise InvalidStateError("Parcel was modified concurrently", current_state=current)


def _ensure_assigned_rider(parcel: Parcel, rider_email: str) -> None:
    if parcel.rider_email and parcel.rider_email != rider_email:
        raise InsufficientPermissionsError("Parcel is assigned to a different rider")


async def assign_rider(
    db: AsyncSession,
    parcel_id: str,
    rider_id: str,
    actor_email: Optional[str] = None,
) -> Parcel:
    """
    Assign an approved, available rider to a pending parcel.

    The rider becomes busy in the same transaction.

    Raises:
        ResourceNotFoundError: parcel missing, or rider missing / not approved
        InvalidStateError: parcel not pending, or rider busy
    """
    parcel = await get_parcel(db, parcel_id)

    rider = await db.get(Rider, rider_id)
    if rider is None or rider.status != RiderStatus.APPROVED:
        raise ResourceNotFoundError("Approved rider", rider_id)

    if parcel.delivery_status == DeliveryStatus.RIDER_ASSIGNED and parcel.rider_id == rider.id:
        return parcel

    now = utc_now()
    await _advance(
        db, parcel, DeliveryStatus.RIDER_ASSIGNED,
        rider_id=rider.id,
        rider_name=rider.name,
        rider_phone=rider.phone,
        rider_email=rider.email,
        assigned_at=now,
    )

    claimed = await db.execute(
        update(Rider)
        .where(
            Rider.id == rider.id,
            Rider.status == RiderStatus.APPROVED,
            Rider.work_status == WorkStatus.AVAILABLE,
        )
        .values(work_status=WorkStatus.BUSY, updated_at=now)
    )
    if claimed.rowcount != 1:
        await db.rollback()
        raise InvalidStateError("Rider is not available", current_state=WorkStatus.BUSY)

    stage_event(db, parcel.tracking_id, DeliveryStatus.RIDER_ASSIGNED.value, {
        "rider_id": rider.id,
        "rider_name": rider.name,
        "rider_email": rider.email,
    })
    log_event(
        db,
        action=AuditAction.PARCEL_ASSIGNED,
        actor_email=actor_email,
        target_type="parcel",
        target_id=parcel.id,
        metadata={"rider_id": rider.id},
    )
    await db.commit()
    await db.refresh(parcel)

    logger.info("Parcel %s assigned to rider %s", parcel.id, rider.id)
    return parcel


async def mark_picked_up(db: AsyncSession, parcel_id: str, rider_email: Optional[str]) -> Parcel:
    """Assigned rider collects the parcel: rider_assigned → in_transit."""
    if not rider_email:
        raise BadRequestError("Rider email is required")

    parcel = await get_parcel(db, parcel_id)
    _ensure_assigned_rider(parcel, rider_email)

    if parcel.delivery_status == DeliveryStatus.IN_TRANSIT and parcel.picked_by == rider_email:
        return parcel

    await _advance(
        db, parcel, DeliveryStatus.IN_TRANSIT,
        picked_up_at=utc_now(),
        picked_by=rider_email,
    )
    stage_event(db, parcel.tracking_id, DeliveryStatus.IN_TRANSIT.value, {"picked_by": rider_email})
    await db.commit()
    await db.refresh(parcel)

    logger.info("Parcel %s picked up by %s", parcel.id, rider_email)
    return parcel


async def _finish_delivery(
    db: AsyncSession,
    parcel_id: str,
    rider_email: Optional[str],
    target: DeliveryStatus,
) -> Parcel:
    if not rider_email:
        raise BadRequestError("Rider email is required")
    if target not in RIDER_RELEASING_STATUSES:
        raise BadRequestError(f"{target.value} is not a delivery outcome")

    parcel = await get_parcel(db, parcel_id)
    _ensure_assigned_rider(parcel, rider_email)

    if parcel.delivery_status == target and parcel.delivered_by == rider_email:
        return parcel

    now = utc_now()
    await _advance(db, parcel, target, delivered_at=now, delivered_by=rider_email)

    released = await db.execute(
        update(Rider)
        .where(Rider.email == (parcel.rider_email or rider_email))
        .values(work_status=WorkStatus.AVAILABLE, updated_at=now)
    )
    if released.rowcount == 0:
        logger.warning("No rider record for %s while closing parcel %s", rider_email, parcel.id)

    stage_event(db, parcel.tracking_id, target.value, {"delivered_by": rider_email})
    await db.commit()
    await db.refresh(parcel)

    logger.info("Parcel %s %s by %s", parcel.id, target.value, rider_email)
    return parcel


async def mark_delivered(
    db: AsyncSession,
    parcel_id: str,
    rider_email: Optional[str],
    status: DeliveryStatus = DeliveryStatus.DELIVERED,
) -> Parcel:
    """
    Close an in-transit parcel as delivered (to the recipient or to a
    service center). The rider becomes available again.
    """
    if status == DeliveryStatus.RETURNED:
        raise BadRequestError("Use the return operation for returned parcels")
    return await _finish_delivery(db, parcel_id, rider_email, status)


async def mark_returned(db: AsyncSession, parcel_id: str, rider_email: Optional[str]) -> Parcel:
    """Close an in-transit parcel as returned to sender."""
    return await _finish_delivery(db, parcel_id, rider_email, DeliveryStatus.RETURNED)


async def mark_cashed_out(db: AsyncSession, parcel_id: str, rider_email: Optional[str] = None) -> Parcel:
    """
    Mark the parcel's proceeds as settled.

    Delivery status is not checked here.
    """
    parcel = await get_parcel(db, parcel_id)
    if rider_email and parcel.rider_email != rider_email:
        raise InsufficientPermissionsError("Only the assigned rider can cash out a parcel")

    if parcel.cashout_status == CashoutStatus.CASHED_OUT:
        return parcel

    await db.execute(
        update(Parcel)
        .where(Parcel.id == parcel.id)
        .values(cashout_status=CashoutStatus.CASHED_OUT, cash_out_at=utc_now())
    )
    await db.commit()
    await db.refresh(parcel)

    logger.info("Parcel %s cashed out", parcel.id)
    return parcel


async def status_counts(db: AsyncSession) -> List[Dict[str, Any]]:
    """Number of parcels per delivery status."""
    result = await db.execute(
        select(Parcel.delivery_status, func.count(Parcel.id))
        .group_by(Parcel.delivery_status)
    )
    return [{"status": status.value, "count": count} for status, count in result.all()]


async def list_for_rider(db: AsyncSession, rider_email: str) -> List[Parcel]:
    """Parcels the rider still has to pick up or deliver, latest assignment first."""
    result = await db.execute(
        select(Parcel)
        .where(
            Parcel.rider_email == rider_email,
            Parcel.delivery_status.in_(ACTIVE_DELIVERY_STATUSES),
        )
        .order_by(Parcel.assigned_at.desc())
    )
    return list(result.scalars().all())


async def list_completed_for_rider(db: AsyncSession, rider_email: str) -> List[Parcel]:
    """Parcels the rider has closed, latest delivery first."""
    result = await db.execute(
        select(Parcel)
        .where(
            Parcel.rider_email == rider_email,
            Parcel.delivery_status.in_(COMPLETED_DELIVERY_STATUSES),
        )
        .order_by(Parcel.delivered_at.desc())
    )
    return list(result.scalars().all())
