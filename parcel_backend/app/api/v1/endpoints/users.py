"""
User API Endpoints.

Sign-in upsert, role lookup and admin user management.
"""

from typing import List, Optional
from fastapi import APIRouter, Depends, Path, Query, Response, status
from sqlalchemy.ext.asyncio import AsyncSession
from parcel_backend.app.db.session import get_db
from parcel_backend.app.schemas.user import (
    UserUpsert, UserResponse, UserListResponse, RoleResponse, RoleUpdate, AuditLogResponse
)
from parcel_backend.app.core.dependencies import get_current_identity
from parcel_backend.app.core.guards import require_admin
from parcel_backend.app.services import users as user_service
from parcel_backend.app.services.audit import get_audit_trail

router = APIRouter(tags=["Users"])


@router.post("/users", response_model=UserResponse, status_code=status.HTTP_201_CREATED)
async def upsert_user(
    response: Response,
    profile: Optional[UserUpsert] = None,
    identity: dict = Depends(get_current_identity),
    db: AsyncSession = Depends(get_db)
):
    """
    Register the caller on first sign-in (201), or refresh their last login (200).
    """
    user, created = await user_service.upsert_user(
        db,
        email=identity["email"],
        name=profile.name if profile else None,
        photo_url=profile.photo_url if profile else None,
    )
    if not created:
        response.status_code = status.HTTP_200_OK
    return UserResponse.model_validate(user)


@router.get("/users", response_model=UserListResponse)
async def list_users(
    page: int = Query(1, ge=1, description="Page number"),
    page_size: int = Query(50, ge=1, le=100, description="Items per page"),
    admin: dict = Depends(require_admin),
    db: AsyncSession = Depends(get_db)
):
    """List all users, newest first (admin only)."""
    users, total = await user_service.list_users(db, page=page, page_size=page_size)
    return UserListResponse(
        users=[UserResponse.model_validate(u) for u in users],
        total=total,
        page=page,
        page_size=page_size
    )


@router.get("/users/search", response_model=List[UserResponse])
async def search_users(
    email: Optional[str] = Query(None, description="Part of an email address"),
    admin: dict = Depends(require_admin),
    db: AsyncSession = Depends(get_db)
):
    """Find users by email fragment (admin only, at most 10 results)."""
    users = await user_service.search_users(db, email)
    return [UserResponse.model_validate(u) for u in users]


@router.get("/users/{email}/role", response_model=RoleResponse)
async def get_user_role(
    email: str = Path(..., description="User email"),
    identity: dict = Depends(get_current_identity),
    db: AsyncSession = Depends(get_db)
):
    """Role of a user; unknown users are reported as ``user``."""
    role = await user_service.get_role(db, email)
    return RoleResponse(email=email, role=role)


@router.patch("/users/{user_id}/role", response_model=UserResponse)
async def update_user_role(
    user_id: str = Path(..., description="User ID"),
    update: RoleUpdate = ...,
    admin: dict = Depends(require_admin),
    db: AsyncSession = Depends(get_db)
):
    """Promote a user to admin or demote back to user (admin only)."""
    user = await user_service.set_role(db, user_id, update.role, actor_email=admin["email"])
    return UserResponse.model_validate(user)


@router.get("/audit-logs", response_model=List[AuditLogResponse])
async def list_audit_logs(
    target_id: Optional[str] = Query(None),
    action: Optional[str] = Query(None),
    limit: int = Query(100, ge=1, le=500),
    admin: dict = Depends(require_admin),
    db: AsyncSession = Depends(get_db)
):
    """Recent admin actions, most recent first (admin only)."""
    logs = await get_audit_trail(db, target_id=target_id, action=action, limit=limit)
    return [AuditLogResponse.model_validate(entry) for entry in logs]
