"""
Payment recorder.

Marks a parcel as paid and writes its payment record in one transaction.
"""

import logging
from typing import List, Optional, Tuple

from sqlalchemy import select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from parcel_backend.app.core.exceptions import BadRequestError, ConflictError, ResourceNotFoundError
from parcel_backend.app.db.defaults import utc_now
from parcel_backend.app.models.parcel import Parcel
from parcel_backend.app.models.parcel_enums import PaymentStatus
from parcel_backend.app.models.payment import PaymentRecord
from parcel_backend.app.services.tracking import stage_event

logger = logging.getLogger(__name__)

DEFAULT_PAYMENT_METHOD = "card"


def missing_payment_fields(
    parcel_id: Optional[str],
    payment_intent_id: Optional[str],
    amount: Optional[float],
    user_email: Optional[str],
) -> List[str]:
    """Names of the required confirmation fields that are empty."""
    fields = {
        "parcel_id": parcel_id,
        "payment_intent_id": payment_intent_id,
        "amount": amount,
        "user_email": user_email,
    }
    return [name for name, value in fields.items() if value is None or value == ""]


async def confirm_payment(
    db: AsyncSession,
    parcel_id: Optional[str],
    payment_intent_id: Optional[str],
    amount: Optional[float],
    user_email: Optional[str],
    payment_method: Optional[str] = None,
) -> Tuple[Parcel, PaymentRecord]:
    """
    Record a successful payment for a parcel.

    Confirming an intent that is already recorded for the same parcel returns
    the existing record.

    Raises:
        BadRequestError: a required field is missing
        ResourceNotFoundError: the parcel does not exist
        ConflictError: the intent is already recorded for another parcel
    """
    missing = missing_payment_fields(parcel_id, payment_intent_id, amount, user_email)
    if missing:
        raise BadRequestError("Missing payment information", details={"missing": missing})

    existing = await db.execute(
        select(PaymentRecord).where(PaymentRecord.payment_intent_id == payment_intent_id)
    )
    record = existing.scalar_one_or_none()
    if record is not None:
        if record.parcel_id != parcel_id:
            raise ConflictError(
                "Payment intent already recorded for another parcel",
                details={"payment_intent_id": payment_intent_id},
            )
        parcel = await db.get(Parcel, parcel_id)
        if parcel is None:
            raise ResourceNotFoundError("Parcel", parcel_id)
        return parcel, record

    method = payment_method or DEFAULT_PAYMENT_METHOD
    now = utc_now()
    result = await db.execute(
        update(Parcel)
        .where(Parcel.id == parcel_id)
        .values(
            payment_status=PaymentStatus.PAID,
            payment_method=method,
            payment_intent_id=payment_intent_id,
            paid_amount=amount,
            paid_at=now,
        )
    )
    if result.rowcount == 0:
        await db.rollback()
        raise ResourceNotFoundError("Parcel", parcel_id)

    parcel = await db.get(Parcel, parcel_id)
    record = PaymentRecord(
        parcel_id=parcel_id,
        payment_intent_id=payment_intent_id,
        amount=amount,
        email=user_email,
        payment_method=method,
        status="succeeded",
        paid_at=now,
    )
    db.add(record)
    stage_event(db, parcel.tracking_id, "paid", {"amount": amount, "payment_intent_id": payment_intent_id})

    try:
        await db.commit()
    except IntegrityError:
        await db.rollback()
        raise ConflictError(
            "Payment intent already recorded",
            details={"payment_intent_id": payment_intent_id},
        )

    await db.refresh(parcel)
    logger.info("Parcel %s paid (%s, intent %s)", parcel_id, amount, payment_intent_id)
    return parcel, record


async def list_for_user(db: AsyncSession, email: Optional[str]) -> List[PaymentRecord]:
    """Payments made by ``email``, newest first."""
    if not email:
        raise BadRequestError("email is required")

    result = await db.execute(
        select(PaymentRecord)
        .where(PaymentRecord.email == email)
        .order_by(PaymentRecord.paid_at.desc(), PaymentRecord.id.desc())
    )
    return list(result.scalars().all())
