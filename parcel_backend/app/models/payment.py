"""
Payment record database model.

One row per confirmed payment intent.
"""

from sqlalchemy import Column, Integer, String, Float, DateTime
from parcel_backend.app.db.session import Base
from parcel_backend.app.db.defaults import utc_now


class PaymentRecord(Base):
    __tablename__ = "payments"
    
    id = Column(Integer, primary_key=True, index=True, autoincrement=True)
    parcel_id = Column(String(32), nullable=False, index=True)
    payment_intent_id = Column(String(255), unique=True, nullable=False, index=True)
    amount = Column(Float, nullable=False)
    email = Column(String(255), nullable=False, index=True)
    payment_method = Column(String(50), nullable=True)
    status = Column(String(50), nullable=False, default="succeeded")
    paid_at = Column(DateTime(timezone=True), default=utc_now, nullable=False, index=True)
    
    def __repr__(self):
        return f"<PaymentRecord(id={self.id}, parcel_id={self.parcel_id}, amount={self.amount})>"
