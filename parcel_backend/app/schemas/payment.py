"""
Payment schemas.
"""

from pydantic import BaseModel, Field
from datetime import datetime
from typing import Optional
from parcel_backend.app.schemas.parcel import ParcelResponse


class PaymentIntentCreate(BaseModel):
    """Schema for creating a payment intent."""
    amount_in_cents: int = Field(..., gt=0, description="Amount in the currency's minor unit")
    currency: Optional[str] = Field(None, min_length=3, max_length=3)
    parcel_id: Optional[str] = None


class PaymentIntentResponse(BaseModel):
    id: str
    client_secret: Optional[str] = None
    status: Optional[str] = None
    amount: Optional[int] = None
    currency: Optional[str] = None


class PaymentConfirmation(BaseModel):
    """Missing fields are reported by the payment recorder as 400."""
    payment_intent_id: Optional[str] = None
    amount: Optional[float] = None
    user_email: Optional[str] = None
    payment_method: Optional[str] = None


class PaymentRecordResponse(BaseModel):
    id: int
    parcel_id: str
    payment_intent_id: str
    amount: float
    email: str
    payment_method: Optional[str] = None
    status: str
    paid_at: datetime
    
    class Config:
        from_attributes = True


class PaymentConfirmationResponse(BaseModel):
    parcel: ParcelResponse
    payment: PaymentRecordResponse
