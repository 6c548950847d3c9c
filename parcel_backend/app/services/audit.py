"""
Audit logging service for admin actions.

Entries are added to the caller's session and committed together with the
change they describe.
"""

from typing import Optional, Dict, Any
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select, desc
from parcel_backend.app.models.audit_log import AuditLog


# Audit event constants
class AuditAction:
    """Standardized audit action constants."""
    RIDER_APPROVED = "RIDER_APPROVED"
    RIDER_DEACTIVATED = "RIDER_DEACTIVATED"
    RIDER_REACTIVATED = "RIDER_REACTIVATED"
    RIDER_DELETED = "RIDER_DELETED"
    PARCEL_ASSIGNED = "PARCEL_ASSIGNED"
    ROLE_CHANGED = "ROLE_CHANGED"


def log_event(
    db: AsyncSession,
    action: str,
    actor_email: Optional[str] = None,
    target_type: Optional[str] = None,
    target_id: Optional[str] = None,
    metadata: Optional[Dict[str, Any]] = None,
) -> AuditLog:
    """
    Stage an audit entry in the current transaction.

    Args:
        db: Database session
        action: Action being performed (use AuditAction constants)
        actor_email: Email of the admin performing the action
        target_type: Kind of entity acted upon ("rider", "user", "parcel")
        target_id: ID of the entity acted upon
        metadata: Additional context as JSON

    Returns:
        Pending AuditLog instance
    """
    audit_log = AuditLog(
        actor_email=actor_email,
        action=action,
        target_type=target_type,
        target_id=target_id,
        meta_data=metadata,
    )
    db.add(audit_log)
    return audit_log


async def get_audit_trail(
    db: AsyncSession,
    target_id: Optional[str] = None,
    action: Optional[str] = None,
    limit: int = 100
) -> list[AuditLog]:
    """
    Retrieve audit trail with optional filtering, most recent first.
    """
    query = select(AuditLog).order_by(desc(AuditLog.timestamp), desc(AuditLog.id))

    if target_id:
        query = query.where(AuditLog.target_id == target_id)

    if action:
        query = query.where(AuditLog.action == action)

    query = query.limit(limit)

    result = await db.execute(query)
    return list(result.scalars().all())
