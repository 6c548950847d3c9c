"""
Parcel database model.

A parcel is created by a customer, paid for, assigned to a rider and driven
through the delivery state machine in ``parcel_enums``.
"""

from sqlalchemy import Column, String, Float, DateTime, Enum, JSON
from parcel_backend.app.db.session import Base
from parcel_backend.app.db.defaults import new_id, utc_now
from parcel_backend.app.models.parcel_enums import PaymentStatus, DeliveryStatus, CashoutStatus


class Parcel(Base):
    """
    Parcel model.
    
    ``details`` holds the customer's creation payload as submitted. Lifecycle
    fields live in their own columns and are only written by the parcel
    lifecycle service.
    """
    __tablename__ = "parcels"
    
    id = Column(String(32), primary_key=True, default=new_id)
    tracking_id = Column(String(40), unique=True, nullable=False, index=True)
    
    # Ownership
    created_by = Column(String(255), nullable=False, index=True)
    creation_date = Column(DateTime(timezone=True), default=utc_now, nullable=False, index=True)
    
    details = Column(JSON, nullable=False, default=dict)
    
    # Status
    payment_status = Column(Enum(PaymentStatus), default=PaymentStatus.UNPAID, nullable=False, index=True)
    delivery_status = Column(Enum(DeliveryStatus), default=DeliveryStatus.PENDING, nullable=False, index=True)
    cashout_status = Column(Enum(CashoutStatus), default=CashoutStatus.NONE, nullable=False)
    
    # Rider snapshot, stamped at assignment
    rider_id = Column(String(32), nullable=True, index=True)
    rider_name = Column(String(255), nullable=True)
    rider_phone = Column(String(50), nullable=True)
    rider_email = Column(String(255), nullable=True, index=True)
    assigned_at = Column(DateTime(timezone=True), nullable=True)
    
    picked_up_at = Column(DateTime(timezone=True), nullable=True)
    picked_by = Column(String(255), nullable=True)
    delivered_at = Column(DateTime(timezone=True), nullable=True)
    delivered_by = Column(String(255), nullable=True)
    
    # Payment
    payment_intent_id = Column(String(255), nullable=True)
    payment_method = Column(String(50), nullable=True)
    paid_amount = Column(Float, nullable=True)
    paid_at = Column(DateTime(timezone=True), nullable=True)
    
    cash_out_at = Column(DateTime(timezone=True), nullable=True)
    
    def __repr__(self):
        return f"<Parcel(id={self.id}, tracking_id='{self.tracking_id}', status='{self.delivery_status.value}')>"
