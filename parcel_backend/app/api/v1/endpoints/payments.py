"""
Payment API Endpoints.

Payment intents are created with the payment processor; once the client has
completed the payment, the parcel is confirmed as paid and the payment is
recorded.
"""

from typing import List, Optional
from fastapi import APIRouter, Depends, Path, Query
from sqlalchemy.ext.asyncio import AsyncSession
from parcel_backend.app.db.session import get_db
from parcel_backend.app.schemas.payment import (
    PaymentIntentCreate, PaymentIntentResponse, PaymentConfirmation,
    PaymentConfirmationResponse, PaymentRecordResponse
)
from parcel_backend.app.schemas.parcel import ParcelResponse
from parcel_backend.app.core.clients import get_payment_processor
from parcel_backend.app.core.config import settings
from parcel_backend.app.core.exceptions import BadRequestError, InsufficientPermissionsError
from parcel_backend.app.core.dependencies import get_current_identity
from parcel_backend.app.core.guards import get_caller, is_admin
from parcel_backend.app.services import payments
from parcel_backend.app.services.payment_processor import SUCCEEDED, StripePaymentProcessor

router = APIRouter(tags=["Payments"])


@router.post("/create-payment-intent", response_model=PaymentIntentResponse)
async def create_payment_intent(
    request: PaymentIntentCreate,
    identity: dict = Depends(get_current_identity),
    processor: StripePaymentProcessor = Depends(get_payment_processor)
):
    """Create a payment intent; the client secret is used to complete payment."""
    metadata = {"payer_email": identity["email"]}
    if request.parcel_id:
        metadata["parcel_id"] = request.parcel_id

    intent = await processor.create_intent(
        request.amount_in_cents,
        (request.currency or settings.payment_currency).lower(),
        metadata=metadata,
    )
    return PaymentIntentResponse(**intent)


@router.get("/intent-status/{intent_id}", response_model=PaymentIntentResponse)
async def get_intent_status(
    intent_id: str = Path(..., description="Payment intent ID"),
    identity: dict = Depends(get_current_identity),
    processor: StripePaymentProcessor = Depends(get_payment_processor)
):
    intent = await processor.retrieve_intent(intent_id)
    return PaymentIntentResponse(**intent)


@router.patch("/parcel/payment-success/{parcel_id}", response_model=PaymentConfirmationResponse)
async def confirm_parcel_payment(
    parcel_id: str = Path(..., description="Parcel ID"),
    confirmation: PaymentConfirmation = ...,
    identity: dict = Depends(get_current_identity),
    processor: StripePaymentProcessor = Depends(get_payment_processor),
    db: AsyncSession = Depends(get_db)
):
    """
    Mark a parcel as paid and record the payment.

    Requires ``payment_intent_id``, ``amount`` and ``user_email``. When intent
    verification is enabled the intent must have succeeded at the processor
    for the same amount.
    """
    missing = payments.missing_payment_fields(
        parcel_id, confirmation.payment_intent_id, confirmation.amount, confirmation.user_email
    )
    if missing:
        raise BadRequestError("Missing payment information", details={"missing": missing})

    if settings.verify_payment_intents:
        intent = await processor.retrieve_intent(confirmation.payment_intent_id)
        if intent["status"] != SUCCEEDED:
            raise BadRequestError(
                "Payment has not succeeded",
                details={"payment_intent_id": intent["id"], "status": intent["status"]}
            )
        # Processor amounts are in minor units; confirmations are in major units
        if intent.get("amount") is not None and round(confirmation.amount * 100) != intent["amount"]:
            raise BadRequestError(
                "Payment amount does not match the payment intent",
                details={
                    "payment_intent_id": intent["id"],
                    "amount": confirmation.amount,
                    "intent_amount": intent["amount"],
                }
            )

    parcel, record = await payments.confirm_payment(
        db,
        parcel_id=parcel_id,
        payment_intent_id=confirmation.payment_intent_id,
        amount=confirmation.amount,
        user_email=confirmation.user_email,
        payment_method=confirmation.payment_method,
    )
    return PaymentConfirmationResponse(
        parcel=ParcelResponse.model_validate(parcel),
        payment=PaymentRecordResponse.model_validate(record),
    )


@router.get("/payments", response_model=List[PaymentRecordResponse])
async def list_payments(
    email: Optional[str] = Query(None, description="Payer email"),
    caller: dict = Depends(get_caller),
    db: AsyncSession = Depends(get_db)
):
    """Payment history for a user, newest first. Users may only read their own."""
    if email and email != caller["email"] and not is_admin(caller):
        raise InsufficientPermissionsError("Forbidden access")

    records = await payments.list_for_user(db, email)
    return [PaymentRecordResponse.model_validate(r) for r in records]
