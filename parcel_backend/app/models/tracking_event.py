"""
Tracking event database model.

Append-only: rows are inserted by the tracking ledger and never updated or
deleted.
"""

from sqlalchemy import Column, Integer, String, DateTime, JSON
from parcel_backend.app.db.session import Base
from parcel_backend.app.db.defaults import utc_now


class TrackingEvent(Base):
    """One status update for a parcel's tracking id."""
    __tablename__ = "trackings"
    
    id = Column(Integer, primary_key=True, index=True, autoincrement=True)
    tracking_id = Column(String(40), nullable=False, index=True)
    status = Column(String(100), nullable=False)
    
    # Free-form context (location, actor, note)
    meta_data = Column(JSON, nullable=True)
    
    timestamp = Column(DateTime(timezone=True), default=utc_now, nullable=False, index=True)
    
    def __repr__(self):
        return f"<TrackingEvent(id={self.id}, tracking_id='{self.tracking_id}', status='{self.status}')>"
