"""
Rider API Endpoints.

Rider applications and the admin onboarding workflow.
"""

from typing import List, Optional
from fastapi import APIRouter, Depends, Path, Query, status
from sqlalchemy.ext.asyncio import AsyncSession
from parcel_backend.app.db.session import get_db
from parcel_backend.app.models.enums import RiderStatus
from parcel_backend.app.schemas.rider import RiderApply, RiderResponse
from parcel_backend.app.core.dependencies import get_current_identity
from parcel_backend.app.core.exceptions import InsufficientPermissionsError
from parcel_backend.app.core.guards import require_admin
from parcel_backend.app.services import rider_lifecycle

router = APIRouter(prefix="/riders", tags=["Riders"])


def _riders(riders) -> List[RiderResponse]:
    return [RiderResponse.model_validate(r) for r in riders]


@router.post("", response_model=RiderResponse, status_code=status.HTTP_201_CREATED)
async def apply_as_rider(
    application: RiderApply,
    identity: dict = Depends(get_current_identity),
    db: AsyncSession = Depends(get_db)
):
    """
    Submit a rider application for the caller.

    Returns 409 if an application already exists for the email.
    """
    if application.email != identity["email"]:
        raise InsufficientPermissionsError("Applications must use the applicant's own email")

    rider = await rider_lifecycle.apply(
        db,
        email=application.email,
        name=application.name,
        phone=application.phone,
        areas=application.areas_to_ride,
        details=application.details,
    )
    return RiderResponse.model_validate(rider)


@router.get("", response_model=List[RiderResponse])
async def list_riders(
    status_filter: Optional[RiderStatus] = Query(None, alias="status"),
    admin: dict = Depends(require_admin),
    db: AsyncSession = Depends(get_db)
):
    """List riders, newest application first (admin only)."""
    return _riders(await rider_lifecycle.list_by_status(db, status_filter))


@router.get("/pending", response_model=List[RiderResponse])
async def pending_riders(
    admin: dict = Depends(require_admin),
    db: AsyncSession = Depends(get_db)
):
    return _riders(await rider_lifecycle.list_by_status(db, RiderStatus.PENDING))


@router.get("/approved", response_model=List[RiderResponse])
async def approved_riders(
    admin: dict = Depends(require_admin),
    db: AsyncSession = Depends(get_db)
):
    return _riders(await rider_lifecycle.list_by_status(db, RiderStatus.APPROVED))


@router.get("/deactivated", response_model=List[RiderResponse])
async def deactivated_riders(
    admin: dict = Depends(require_admin),
    db: AsyncSession = Depends(get_db)
):
    return _riders(await rider_lifecycle.list_by_status(db, RiderStatus.DEACTIVATED))


@router.get("/available", response_model=List[RiderResponse])
async def available_riders(
    area: Optional[str] = Query(None, description="Area name, matched case-insensitively and exactly"),
    admin: dict = Depends(require_admin),
    db: AsyncSession = Depends(get_db)
):
    """Approved riders who are free and cover the given area (admin only)."""
    return _riders(await rider_lifecycle.available_riders(db, area))


@router.patch("/{rider_id}/approve", response_model=RiderResponse)
async def approve_rider(
    rider_id: str = Path(..., description="Rider ID"),
    admin: dict = Depends(require_admin),
    db: AsyncSession = Depends(get_db)
):
    """Approve a pending rider; the applicant's user role becomes ``rider``."""
    rider = await rider_lifecycle.approve(db, rider_id, actor_email=admin["email"])
    return RiderResponse.model_validate(rider)


@router.patch("/{rider_id}/deactivate", response_model=RiderResponse)
async def deactivate_rider(
    rider_id: str = Path(..., description="Rider ID"),
    admin: dict = Depends(require_admin),
    db: AsyncSession = Depends(get_db)
):
    """Deactivate an approved rider; the user role falls back to ``user``."""
    rider = await rider_lifecycle.deactivate(db, rider_id, actor_email=admin["email"])
    return RiderResponse.model_validate(rider)


@router.patch("/{rider_id}/activate", response_model=RiderResponse)
async def activate_rider(
    rider_id: str = Path(..., description="Rider ID"),
    admin: dict = Depends(require_admin),
    db: AsyncSession = Depends(get_db)
):
    """Reactivate a deactivated rider."""
    rider = await rider_lifecycle.reactivate(db, rider_id, actor_email=admin["email"])
    return RiderResponse.model_validate(rider)


@router.delete("/{rider_id}", status_code=status.HTTP_200_OK)
async def delete_rider(
    rider_id: str = Path(..., description="Rider ID"),
    admin: dict = Depends(require_admin),
    db: AsyncSession = Depends(get_db)
):
    """Delete a rider record (admin only). 404 if the rider does not exist."""
    await rider_lifecycle.delete(db, rider_id, actor_email=admin["email"])
    return {"id": rider_id, "deleted": True}
