"""
Rider database models.

A rider is a courier application that an admin approves. The areas a rider
covers are stored one row per area with a case-folded match key, so area
lookups are plain equality.
"""

from sqlalchemy import Column, Integer, String, DateTime, Enum, JSON, ForeignKey, UniqueConstraint
from sqlalchemy.orm import relationship
from parcel_backend.app.db.session import Base
from parcel_backend.app.db.defaults import new_id, utc_now
from parcel_backend.app.models.enums import RiderStatus, WorkStatus


def area_key(area: str) -> str:
    """Normalized form used for case-insensitive exact area matching."""
    return area.strip().casefold()


class Rider(Base):
    """Rider model."""
    __tablename__ = "riders"
    
    id = Column(String(32), primary_key=True, default=new_id)
    email = Column(String(255), unique=True, index=True, nullable=False)
    name = Column(String(255), nullable=False)
    phone = Column(String(50), nullable=True)
    details = Column(JSON, nullable=False, default=dict)
    
    status = Column(Enum(RiderStatus), default=RiderStatus.PENDING, nullable=False, index=True)
    work_status = Column(Enum(WorkStatus), default=WorkStatus.AVAILABLE, nullable=False, index=True)
    
    applied_at = Column(DateTime(timezone=True), default=utc_now, nullable=False, index=True)
    approved_at = Column(DateTime(timezone=True), nullable=True)
    updated_at = Column(DateTime(timezone=True), default=utc_now, onupdate=utc_now, nullable=False)
    
    areas = relationship(
        "RiderArea",
        back_populates="rider",
        cascade="all, delete-orphan",
        lazy="selectin",
        order_by="RiderArea.id",
    )
    
    @property
    def areas_to_ride(self) -> list:
        return [area.area for area in self.areas]
    
    def __repr__(self):
        return f"<Rider(id={self.id}, email='{self.email}', status='{self.status.value}')>"


class RiderArea(Base):
    """One area a rider is willing to ride in."""
    __tablename__ = "rider_areas"
    __table_args__ = (UniqueConstraint("rider_id", "area_key", name="uq_rider_area"),)
    
    id = Column(Integer, primary_key=True, autoincrement=True)
    rider_id = Column(String(32), ForeignKey("riders.id", ondelete="CASCADE"), nullable=False, index=True)
    area = Column(String(255), nullable=False)
    area_key = Column(String(255), nullable=False, index=True)
    
    rider = relationship("Rider", back_populates="areas")
