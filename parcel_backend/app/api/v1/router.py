"""
API v1 Router.

Aggregates all v1 API endpoints.
"""

from fastapi import APIRouter
from parcel_backend.app.api.v1.endpoints import parcels, riders, trackings, payments, users

router = APIRouter()

router.include_router(users.router)

router.include_router(parcels.router)
router.include_router(parcels.rider_router)

router.include_router(riders.router)

router.include_router(trackings.router)

router.include_router(payments.router)
