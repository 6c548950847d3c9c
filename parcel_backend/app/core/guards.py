"""
Security guards for role-based access control.

The role is always read from the stored user, never from the token.
"""

from typing import List
from fastapi import Depends
from sqlalchemy.ext.asyncio import AsyncSession
from parcel_backend.app.core.dependencies import get_current_identity
from parcel_backend.app.core.exceptions import AuthenticationError, InsufficientPermissionsError
from parcel_backend.app.db.session import get_db
from parcel_backend.app.models.enums import UserRole
from parcel_backend.app.services.users import get_user_by_email


def require_role(allowed_roles: List[UserRole]):
    """
    Dependency factory for role-based access control.
    
    Usage:
        @router.get("/riders/pending")
        async def pending(admin: dict = Depends(require_role([UserRole.ADMIN]))):
            ...
    
    Args:
        allowed_roles: List of UserRole enums that are allowed to access the endpoint
        
    Returns:
        FastAPI dependency returning the identity dict with ``role`` and ``user_id`` added
        
    Raises:
        401 if no identity, 403 if the user is unknown or the role is not allowed
    """
    async def role_checker(
        identity: dict = Depends(get_current_identity),
        db: AsyncSession = Depends(get_db),
    ) -> dict:
        email = identity.get("email") if identity else None
        if not email:
            raise AuthenticationError("Unauthorized access")
        
        user = await get_user_by_email(db, email)
        if user is None or user.role not in allowed_roles:
            raise InsufficientPermissionsError(
                "Forbidden access",
                details={"required_role": [r.value for r in allowed_roles]}
            )
        
        return {**identity, "role": user.role.value, "user_id": user.id}
    
    return role_checker


# Policies used by the API
require_admin = require_role([UserRole.ADMIN])
require_rider = require_role([UserRole.RIDER])


def is_admin(identity: dict) -> bool:
    return identity.get("role") == UserRole.ADMIN.value


async def get_caller(
    identity: dict = Depends(get_current_identity),
    db: AsyncSession = Depends(get_db),
) -> dict:
    """Any authenticated caller, with the stored role (``user`` when unknown)."""
    user = await get_user_by_email(db, identity["email"])
    role = user.role if user is not None else UserRole.USER
    return {**identity, "role": role.value, "user_id": user.id if user else None}
