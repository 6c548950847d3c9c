"""
Tracking API Endpoints.

Anyone holding a tracking id can read its history; writing requires a signed-in
caller.
"""

from typing import List
from fastapi import APIRouter, Depends, Path, status
from sqlalchemy.ext.asyncio import AsyncSession
from parcel_backend.app.db.session import get_db
from parcel_backend.app.schemas.tracking import TrackingEventCreate, TrackingEventResponse
from parcel_backend.app.core.dependencies import get_current_identity
from parcel_backend.app.services import tracking

router = APIRouter(prefix="/trackings", tags=["Tracking"])


@router.post("", response_model=TrackingEventResponse, status_code=status.HTTP_201_CREATED)
async def add_tracking_event(
    event: TrackingEventCreate,
    identity: dict = Depends(get_current_identity),
    db: AsyncSession = Depends(get_db)
):
    """Append a tracking event. The timestamp is assigned by the server."""
    metadata = {**event.metadata, "recorded_by": identity["email"]}
    created = await tracking.append_event(db, event.tracking_id, event.status, metadata)
    return TrackingEventResponse.model_validate(created)


@router.get("/{tracking_id}", response_model=List[TrackingEventResponse])
async def get_tracking_history(
    tracking_id: str = Path(..., description="Parcel tracking ID"),
    db: AsyncSession = Depends(get_db)
):
    """Tracking history, oldest event first. 404 if nothing was recorded."""
    events = await tracking.get_events(db, tracking_id)
    return [TrackingEventResponse.model_validate(e) for e in events]
