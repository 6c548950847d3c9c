"""
Tracking ledger.

Append-only event log keyed by a parcel's tracking id.
"""

import logging
from typing import Any, Dict, List, Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from parcel_backend.app.core.exceptions import BadRequestError, ResourceNotFoundError
from parcel_backend.app.models.tracking_event import TrackingEvent

logger = logging.getLogger(__name__)


def stage_event(
    db: AsyncSession,
    tracking_id: str,
    status: str,
    metadata: Optional[Dict[str, Any]] = None,
) -> TrackingEvent:
    """Add an event to the current transaction without committing."""
    event = TrackingEvent(tracking_id=tracking_id, status=status, meta_data=metadata or {})
    db.add(event)
    return event


async def append_event(
    db: AsyncSession,
    tracking_id: Optional[str],
    status: Optional[str],
    metadata: Optional[Dict[str, Any]] = None,
) -> TrackingEvent:
    """
    Append a tracking event with a server-assigned timestamp.

    Raises:
        BadRequestError: if tracking_id or status is empty
    """
    if not tracking_id or not status:
        raise BadRequestError(
            "tracking_id and status are required",
            details={"missing": [name for name, value in (("tracking_id", tracking_id), ("status", status)) if not value]},
        )

    event = stage_event(db, tracking_id, status, metadata)
    await db.commit()
    await db.refresh(event)

    logger.info("Tracking %s: %s", tracking_id, status)
    return event


async def get_events(db: AsyncSession, tracking_id: str) -> List[TrackingEvent]:
    """
    Events for a tracking id, oldest first.

    Raises:
        ResourceNotFoundError: if no event exists for the tracking id
    """
    result = await db.execute(
        select(TrackingEvent)
        .where(TrackingEvent.tracking_id == tracking_id)
        .order_by(TrackingEvent.timestamp.asc(), TrackingEvent.id.asc())
    )
    events = list(result.scalars().all())

    if not events:
        raise ResourceNotFoundError("Tracking", tracking_id)

    return events
