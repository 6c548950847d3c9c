"""
Rider Pydantic schemas.
"""

from pydantic import BaseModel, EmailStr, Field
from datetime import datetime
from typing import Any, Dict, List, Optional
from parcel_backend.app.models.enums import RiderStatus, WorkStatus


class RiderApply(BaseModel):
    """Schema for a rider application."""
    email: EmailStr = Field(..., description="Rider email (must match the applicant's account)")
    name: str = Field(..., min_length=1, max_length=255)
    phone: Optional[str] = Field(None, max_length=50)
    areas_to_ride: List[str] = Field(default_factory=list, description="Areas the rider covers")
    details: Dict[str, Any] = Field(default_factory=dict, description="Other application data")


class RiderResponse(BaseModel):
    """Schema for rider response."""
    id: str
    email: str
    name: str
    phone: Optional[str] = None
    areas_to_ride: List[str] = Field(default_factory=list)
    details: Dict[str, Any] = Field(default_factory=dict)
    status: RiderStatus
    work_status: WorkStatus
    applied_at: datetime
    approved_at: Optional[datetime] = None
    updated_at: datetime
    
    class Config:
        from_attributes = True
