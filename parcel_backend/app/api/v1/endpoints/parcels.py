"""
Parcel API Endpoints.

Customers create and follow their parcels, admins assign riders, riders move
parcels through pickup and delivery.
"""

from typing import Any, Dict, List, Optional
from fastapi import APIRouter, Body, Depends, Path, Query, status
from sqlalchemy.ext.asyncio import AsyncSession
from parcel_backend.app.db.session import get_db
from parcel_backend.app.models.parcel_enums import PaymentStatus, DeliveryStatus
from parcel_backend.app.schemas.parcel import (
    ParcelResponse, RiderAssignment, DeliveryOutcome, StatusCount, ParcelDeleteResponse
)
from parcel_backend.app.core.dependencies import get_current_identity
from parcel_backend.app.core.exceptions import InsufficientPermissionsError
from parcel_backend.app.core.guards import get_caller, is_admin, require_admin, require_rider
from parcel_backend.app.services import parcel_lifecycle

router = APIRouter(prefix="/parcels", tags=["Parcels"])
rider_router = APIRouter(prefix="/rider", tags=["Rider - Parcels"])


@router.get("", response_model=List[ParcelResponse])
async def list_parcels(
    email: Optional[str] = Query(None, description="Creator email; omit for the admin listing"),
    payment_status: Optional[PaymentStatus] = Query(None),
    delivery_status: Optional[DeliveryStatus] = Query(None),
    caller: dict = Depends(get_caller),
    db: AsyncSession = Depends(get_db)
):
    """
    List parcels.

    - With ``email``: that user's parcels, newest first. Only the user
      themselves or an admin may ask.
    - Without ``email``: every parcel matching the status filters (admin only).
    """
    if email:
        if email != caller["email"] and not is_admin(caller):
            raise InsufficientPermissionsError("Forbidden access")
        parcels = await parcel_lifecycle.list_for_user(db, email)
    else:
        if not is_admin(caller):
            raise InsufficientPermissionsError("Forbidden access")
        parcels = await parcel_lifecycle.list_admin(
            db, payment_status=payment_status, delivery_status=delivery_status
        )

    return [ParcelResponse.model_validate(p) for p in parcels]


@router.post("", response_model=ParcelResponse, status_code=status.HTTP_201_CREATED)
async def create_parcel(
    payload: Dict[str, Any] = Body(..., description="Parcel details, stored as submitted"),
    identity: dict = Depends(get_current_identity),
    db: AsyncSession = Depends(get_db)
):
    """Create a new parcel for the caller (unpaid, pending)."""
    parcel = await parcel_lifecycle.create_parcel(db, payload, identity["email"])
    return ParcelResponse.model_validate(parcel)


@router.get("/delivery/status-count", response_model=List[StatusCount])
async def delivery_status_count(
    admin: dict = Depends(require_admin),
    db: AsyncSession = Depends(get_db)
):
    """Parcel count per delivery status (admin only)."""
    return await parcel_lifecycle.status_counts(db)


@router.get("/{parcel_id}", response_model=ParcelResponse)
async def get_parcel(
    parcel_id: str = Path(..., description="Parcel ID"),
    identity: dict = Depends(get_current_identity),
    db: AsyncSession = Depends(get_db)
):
    parcel = await parcel_lifecycle.get_parcel(db, parcel_id)
    return ParcelResponse.model_validate(parcel)


@router.delete("/{parcel_id}", response_model=ParcelDeleteResponse)
async def delete_parcel(
    parcel_id: str = Path(..., description="Parcel ID"),
    caller: dict = Depends(get_caller),
    db: AsyncSession = Depends(get_db)
):
    """
    Delete a parcel (its creator or an admin).

    Unknown ids succeed with ``deleted: false``. Parcels a rider is working on
    can not be deleted.
    """
    deleted = await parcel_lifecycle.delete_parcel(
        db, parcel_id, caller["email"], caller_is_admin=is_admin(caller)
    )
    return ParcelDeleteResponse(id=parcel_id, deleted=deleted)


@router.patch("/{parcel_id}/assign-rider", response_model=ParcelResponse)
async def assign_rider(
    parcel_id: str = Path(..., description="Parcel ID"),
    assignment: RiderAssignment = ...,
    admin: dict = Depends(require_admin),
    db: AsyncSession = Depends(get_db)
):
    """
    Assign an approved, available rider to a pending parcel (admin only).

    The rider is marked busy until the parcel is delivered or returned.
    """
    parcel = await parcel_lifecycle.assign_rider(
        db, parcel_id, assignment.rider_id, actor_email=admin["email"]
    )
    return ParcelResponse.model_validate(parcel)


@router.patch("/{parcel_id}/pickup", response_model=ParcelResponse)
async def pickup_parcel(
    parcel_id: str = Path(..., description="Parcel ID"),
    rider: dict = Depends(require_rider),
    db: AsyncSession = Depends(get_db)
):
    """Assigned rider picks the parcel up (rider_assigned → in_transit)."""
    parcel = await parcel_lifecycle.mark_picked_up(db, parcel_id, rider["email"])
    return ParcelResponse.model_validate(parcel)


@router.patch("/{parcel_id}/deliver", response_model=ParcelResponse)
async def deliver_parcel(
    parcel_id: str = Path(..., description="Parcel ID"),
    outcome: Optional[DeliveryOutcome] = Body(None),
    rider: dict = Depends(require_rider),
    db: AsyncSession = Depends(get_db)
):
    """
    Assigned rider delivers the parcel.

    Body ``{"delivery_status": "service_center_delivered"}`` records a drop at
    a service center instead of the recipient.
    """
    target = outcome.delivery_status if outcome else DeliveryStatus.DELIVERED
    parcel = await parcel_lifecycle.mark_delivered(db, parcel_id, rider["email"], status=target)
    return ParcelResponse.model_validate(parcel)


@router.patch("/{parcel_id}/return", response_model=ParcelResponse)
async def return_parcel(
    parcel_id: str = Path(..., description="Parcel ID"),
    rider: dict = Depends(require_rider),
    db: AsyncSession = Depends(get_db)
):
    """Assigned rider returns the parcel to the sender."""
    parcel = await parcel_lifecycle.mark_returned(db, parcel_id, rider["email"])
    return ParcelResponse.model_validate(parcel)


@router.patch("/{parcel_id}/cashout", response_model=ParcelResponse)
async def cashout_parcel(
    parcel_id: str = Path(..., description="Parcel ID"),
    rider: dict = Depends(require_rider),
    db: AsyncSession = Depends(get_db)
):
    """Settle the parcel's proceeds to its rider."""
    parcel = await parcel_lifecycle.mark_cashed_out(db, parcel_id, rider_email=rider["email"])
    return ParcelResponse.model_validate(parcel)


@rider_router.get("/parcels", response_model=List[ParcelResponse])
async def rider_active_parcels(
    rider: dict = Depends(require_rider),
    db: AsyncSession = Depends(get_db)
):
    """Parcels the calling rider still has to pick up or deliver."""
    parcels = await parcel_lifecycle.list_for_rider(db, rider["email"])
    return [ParcelResponse.model_validate(p) for p in parcels]


@rider_router.get("/completed-parcels", response_model=List[ParcelResponse])
async def rider_completed_parcels(
    rider: dict = Depends(require_rider),
    db: AsyncSession = Depends(get_db)
):
    """Parcels the calling rider has delivered or returned."""
    parcels = await parcel_lifecycle.list_completed_for_rider(db, rider["email"])
    return [ParcelResponse.model_validate(p) for p in parcels]
