"""
User and rider enumerations.
"""

import enum


class UserRole(str, enum.Enum):
    """
    User role enumeration.
    
    Roles:
        USER: Default role for every signed-in customer
        ADMIN: Operator with access to assignment and onboarding
        RIDER: Derived from an approved rider application
    """
    USER = "user"
    ADMIN = "admin"
    RIDER = "rider"


class RiderStatus(str, enum.Enum):
    """
    Rider onboarding status.
    
    Status flow:
        PENDING → APPROVED → DEACTIVATED → APPROVED (reactivate)
    """
    PENDING = "pending"
    APPROVED = "approved"
    DEACTIVATED = "deactivated"


class WorkStatus(str, enum.Enum):
    """Rider workload flag, driven by parcel assignment and delivery."""
    AVAILABLE = "available"
    BUSY = "busy"


# Role a user holds while their rider record is in a given status
ROLE_FOR_RIDER_STATUS = {
    RiderStatus.PENDING: UserRole.USER,
    RiderStatus.APPROVED: UserRole.RIDER,
    RiderStatus.DEACTIVATED: UserRole.USER,
}
