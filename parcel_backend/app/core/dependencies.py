"""
Authentication dependencies for FastAPI.

This module provides the identity gate: every protected route resolves the
caller's verified email through the external identity verifier.
"""

from typing import Optional
from fastapi import Depends
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from parcel_backend.app.core.clients import get_identity_verifier
from parcel_backend.app.core.exceptions import AuthenticationError, InsufficientPermissionsError
from parcel_backend.app.core.identity import IdentityVerificationError, JWTIdentityVerifier

# HTTP Bearer security scheme; missing credentials are reported by us, not by FastAPI
security = HTTPBearer(auto_error=False)


async def get_current_identity(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security),
    verifier: JWTIdentityVerifier = Depends(get_identity_verifier),
) -> dict:
    """
    FastAPI dependency resolving the caller's identity.
    
    1. Requires an ``Authorization: Bearer <token>`` header
    2. Verifies the token with the identity verifier (no local caching)
    
    Returns:
        dict with the verified ``email`` and the raw ``claims``
        
    Raises:
        AuthenticationError: 401 if the header is missing or malformed
        InsufficientPermissionsError: 403 if the verifier rejects the token
    """
    if credentials is None or not credentials.credentials:
        raise AuthenticationError("Unauthorized access")
    
    try:
        claims = verifier.verify(credentials.credentials)
    except IdentityVerificationError:
        raise InsufficientPermissionsError("Forbidden access")
    
    return {
        "email": claims["email"],
        "claims": claims,
    }
