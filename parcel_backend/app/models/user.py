"""
User database model.

Users are keyed by the verified email coming from the identity provider.
"""

from sqlalchemy import Column, String, DateTime, Enum
from parcel_backend.app.db.session import Base
from parcel_backend.app.db.defaults import new_id, utc_now
from parcel_backend.app.models.enums import UserRole


class User(Base):
    """
    User model for authorization.
    
    ``role`` is the only attribute read by the role policy. The rider role is
    never set directly: it follows the user's rider record status.
    """
    __tablename__ = "users"
    
    id = Column(String(32), primary_key=True, default=new_id)
    email = Column(String(255), unique=True, index=True, nullable=False)
    name = Column(String(255), nullable=True)
    photo_url = Column(String(1024), nullable=True)
    
    role = Column(Enum(UserRole), default=UserRole.USER, nullable=False)
    
    created_at = Column(DateTime(timezone=True), default=utc_now, nullable=False, index=True)
    last_login_at = Column(DateTime(timezone=True), default=utc_now, nullable=True)
    
    def __repr__(self):
        return f"<User(id={self.id}, email='{self.email}', role='{self.role.value}')>"
