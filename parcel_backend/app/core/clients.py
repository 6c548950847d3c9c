"""
Process-wide external clients.

The identity verifier and the payment processor client are built once in the
application lifespan and handed to endpoints through dependencies, so tests can
swap them with ``app.dependency_overrides``.
"""

import logging
from typing import Optional

from parcel_backend.app.core.identity import JWTIdentityVerifier, build_identity_verifier
from parcel_backend.app.services.payment_processor import StripePaymentProcessor, build_payment_processor

logger = logging.getLogger(__name__)

_identity_verifier: Optional[JWTIdentityVerifier] = None
_payment_processor: Optional[StripePaymentProcessor] = None


async def init_clients():
    """Create the external clients. Called once at startup."""
    global _identity_verifier, _payment_processor
    _identity_verifier = build_identity_verifier()
    _payment_processor = build_payment_processor()
    logger.info("External clients initialized (payment api: %s)", _payment_processor.api_base)


async def close_clients():
    """Release client resources. Called once at shutdown."""
    global _identity_verifier, _payment_processor
    if _payment_processor is not None:
        await _payment_processor.aclose()
    _identity_verifier = None
    _payment_processor = None


def get_identity_verifier() -> JWTIdentityVerifier:
    if _identity_verifier is None:
        raise RuntimeError("Identity verifier is not initialized")
    return _identity_verifier


def get_payment_processor() -> StripePaymentProcessor:
    if _payment_processor is None:
        raise RuntimeError("Payment processor is not initialized")
    return _payment_processor
