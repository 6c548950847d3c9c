"""
Tracking ledger schemas.
"""

from pydantic import AliasChoices, BaseModel, Field
from datetime import datetime
from typing import Any, Dict, Optional


class TrackingEventCreate(BaseModel):
    """Fields are optional here so that empty values are reported as 400, not 422."""
    tracking_id: Optional[str] = None
    status: Optional[str] = None
    metadata: Dict[str, Any] = Field(default_factory=dict)


class TrackingEventResponse(BaseModel):
    id: int
    tracking_id: str
    status: str
    metadata: Optional[Dict[str, Any]] = Field(default=None, validation_alias=AliasChoices("meta_data", "metadata"))
    timestamp: datetime
    
    class Config:
        from_attributes = True
