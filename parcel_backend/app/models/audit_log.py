"""
Audit Log Database Model.

Tracks admin actions on riders and users.
"""

from sqlalchemy import Column, Integer, String, DateTime, JSON
from parcel_backend.app.db.session import Base
from parcel_backend.app.db.defaults import utc_now


class AuditLog(Base):
    """
    Audit log model for admin actions.
    
    Events logged:
    - RIDER_APPROVED / RIDER_DEACTIVATED / RIDER_REACTIVATED / RIDER_DELETED
    - PARCEL_ASSIGNED
    - ROLE_CHANGED (for privilege escalation detection)
    """
    __tablename__ = "audit_logs"
    
    id = Column(Integer, primary_key=True, index=True, autoincrement=True)
    
    # Who performed the action (None for system actions)
    actor_email = Column(String(255), index=True, nullable=True)
    
    action = Column(String(100), nullable=False, index=True)
    
    target_type = Column(String(50), nullable=True)
    target_id = Column(String(64), index=True, nullable=True)
    
    meta_data = Column(JSON, nullable=True)
    
    timestamp = Column(DateTime(timezone=True), default=utc_now, nullable=False, index=True)
    
    def __repr__(self):
        return f"<AuditLog(id={self.id}, action='{self.action}', actor={self.actor_email}, target={self.target_id})>"
