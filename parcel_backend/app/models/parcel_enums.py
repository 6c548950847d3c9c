"""
Parcel status enumerations and the delivery state machine.
"""

import enum


class PaymentStatus(str, enum.Enum):
    UNPAID = "unpaid"
    PAID = "paid"


class DeliveryStatus(str, enum.Enum):
    """
    Parcel delivery status.
    
    Status flow:
        PENDING → RIDER_ASSIGNED → IN_TRANSIT → DELIVERED
                                              → SERVICE_CENTER_DELIVERED
                                              → RETURNED
    Terminal statuses never move again.
    """
    PENDING = "pending"
    RIDER_ASSIGNED = "rider_assigned"
    IN_TRANSIT = "in_transit"
    DELIVERED = "delivered"
    SERVICE_CENTER_DELIVERED = "service_center_delivered"
    RETURNED = "returned"


class CashoutStatus(str, enum.Enum):
    NONE = "none"
    CASHED_OUT = "cashed_out"


DELIVERY_TRANSITIONS = {
    DeliveryStatus.PENDING: {DeliveryStatus.RIDER_ASSIGNED},
    DeliveryStatus.RIDER_ASSIGNED: {DeliveryStatus.IN_TRANSIT},
    DeliveryStatus.IN_TRANSIT: {
        DeliveryStatus.DELIVERED,
        DeliveryStatus.SERVICE_CENTER_DELIVERED,
        DeliveryStatus.RETURNED,
    },
}

ACTIVE_DELIVERY_STATUSES = (DeliveryStatus.RIDER_ASSIGNED, DeliveryStatus.IN_TRANSIT)

COMPLETED_DELIVERY_STATUSES = (
    DeliveryStatus.DELIVERED,
    DeliveryStatus.SERVICE_CENTER_DELIVERED,
    DeliveryStatus.RETURNED,
)


def can_transition(current: DeliveryStatus, target: DeliveryStatus) -> bool:
    """Whether a parcel may move from ``current`` to ``target``."""
    return target in DELIVERY_TRANSITIONS.get(current, set())
