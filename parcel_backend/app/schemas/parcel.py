"""
Parcel Pydantic schemas.

Defines request and response models for parcel lifecycle endpoints.
"""

from pydantic import BaseModel, Field
from datetime import datetime
from typing import Any, Dict, Optional
from parcel_backend.app.models.parcel_enums import PaymentStatus, DeliveryStatus, CashoutStatus


class ParcelResponse(BaseModel):
    """Schema for parcel response."""
    id: str
    tracking_id: str
    created_by: str
    creation_date: datetime
    details: Dict[str, Any] = Field(default_factory=dict)
    payment_status: PaymentStatus
    delivery_status: DeliveryStatus
    cashout_status: CashoutStatus
    rider_id: Optional[str] = None
    rider_name: Optional[str] = None
    rider_phone: Optional[str] = None
    rider_email: Optional[str] = None
    assigned_at: Optional[datetime] = None
    picked_up_at: Optional[datetime] = None
    picked_by: Optional[str] = None
    delivered_at: Optional[datetime] = None
    delivered_by: Optional[str] = None
    payment_intent_id: Optional[str] = None
    payment_method: Optional[str] = None
    paid_amount: Optional[float] = None
    paid_at: Optional[datetime] = None
    cash_out_at: Optional[datetime] = None
    
    class Config:
        from_attributes = True


class RiderAssignment(BaseModel):
    """Schema for assigning a rider to a parcel."""
    rider_id: str = Field(..., min_length=1)


class DeliveryOutcome(BaseModel):
    """Optional body for the deliver endpoint."""
    delivery_status: DeliveryStatus = DeliveryStatus.DELIVERED


class StatusCount(BaseModel):
    status: DeliveryStatus
    count: int


class ParcelDeleteResponse(BaseModel):
    id: str
    deleted: bool
