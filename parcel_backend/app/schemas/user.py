"""
User directory schemas.
"""

from pydantic import AliasChoices, BaseModel, Field
from datetime import datetime
from typing import Optional, List
from parcel_backend.app.models.enums import UserRole


class UserUpsert(BaseModel):
    """Profile data sent on sign-in. The email comes from the token."""
    name: Optional[str] = Field(None, max_length=255)
    photo_url: Optional[str] = Field(None, max_length=1024)


class UserResponse(BaseModel):
    id: str
    email: str
    name: Optional[str] = None
    photo_url: Optional[str] = None
    role: UserRole
    created_at: datetime
    last_login_at: Optional[datetime] = None
    
    class Config:
        from_attributes = True


class UserListResponse(BaseModel):
    """Schema for list users response."""
    users: List[UserResponse]
    total: int
    page: int
    page_size: int


class RoleResponse(BaseModel):
    email: str
    role: UserRole


class RoleUpdate(BaseModel):
    role: UserRole


class AuditLogResponse(BaseModel):
    """Schema for audit log entry."""
    id: int
    actor_email: Optional[str] = None
    action: str
    target_type: Optional[str] = None
    target_id: Optional[str] = None
    metadata: Optional[dict] = Field(default=None, validation_alias=AliasChoices("meta_data", "metadata"))
    timestamp: datetime
    
    class Config:
        from_attributes = True
