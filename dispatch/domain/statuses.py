"""Order and assignment status enums plus the order transition table.

Every status string that enters the service goes through
:func:`canonicalize_status` once; after that only enum members are compared.
"""
from __future__ import annotations

import enum
import logging
from typing import Mapping, Optional, Union

from dispatch.core.exceptions import InvalidTransitionError

logger = logging.getLogger(__name__)


class OrderStatus(str, enum.Enum):
    PENDING = "pending"
    AWAITING_RESTAURANT = "awaiting_restaurant"
    RESTAURANT_ASSIGNED = "restaurant_assigned"
    RESTAURANT_ACCEPTED = "restaurant_accepted"
    PREPARING = "preparing"
    READY_FOR_PICKUP = "ready_for_pickup"
    ON_THE_WAY = "on_the_way"
    DELIVERED = "delivered"
    CANCELLED = "cancelled"
    REFUNDED = "refunded"
    RESTAURANT_REJECTED = "restaurant_rejected"
    # Terminal form of a rejection once no candidate restaurant is left.
    NO_RESTAURANT_ACCEPTED = "no_restaurant_accepted"


class RestaurantAssignmentStatus(str, enum.Enum):
    PENDING = "pending"
    ACCEPTED = "accepted"
    REJECTED = "rejected"
    CANCELLED = "cancelled"
    EXPIRED = "expired"


class DeliveryAssignmentStatus(str, enum.Enum):
    ASSIGNED = "assigned"
    ACCEPTED = "accepted"
    PICKED_UP = "picked_up"
    ON_THE_WAY = "on_the_way"
    DELIVERED = "delivered"
    REJECTED = "rejected"
    EXPIRED = "expired"


class AssignmentResponse(str, enum.Enum):
    ACCEPT = "accept"
    REJECT = "reject"


ACTIVE_DELIVERY_STATUSES = frozenset({
    DeliveryAssignmentStatus.ASSIGNED,
    DeliveryAssignmentStatus.ACCEPTED,
    DeliveryAssignmentStatus.PICKED_UP,
    DeliveryAssignmentStatus.ON_THE_WAY,
})

# Orders a driver may be paired with: accepted by a restaurant, not yet picked up
DELIVERY_ASSIGNABLE_STATUSES = frozenset({
    OrderStatus.RESTAURANT_ACCEPTED,
    OrderStatus.PREPARING,
    OrderStatus.READY_FOR_PICKUP,
})

STATUS_ALIASES: Mapping[str, OrderStatus] = {
    "accepted": OrderStatus.RESTAURANT_ACCEPTED,
    "ready": OrderStatus.READY_FOR_PICKUP,
    "delivering": OrderStatus.ON_THE_WAY,
    "completed": OrderStatus.DELIVERED,
    "rejected": OrderStatus.RESTAURANT_REJECTED,
}

_S = OrderStatus
ORDER_TRANSITIONS: Mapping[OrderStatus, frozenset[OrderStatus]] = {
    _S.PENDING: frozenset({
        _S.AWAITING_RESTAURANT,
        _S.RESTAURANT_ASSIGNED,
        _S.RESTAURANT_ACCEPTED,
        _S.RESTAURANT_REJECTED,
    }),
    _S.AWAITING_RESTAURANT: frozenset({_S.RESTAURANT_ACCEPTED, _S.RESTAURANT_REJECTED}),
    _S.RESTAURANT_ASSIGNED: frozenset({_S.RESTAURANT_ACCEPTED, _S.RESTAURANT_REJECTED}),
    _S.RESTAURANT_ACCEPTED: frozenset({_S.PREPARING}),
    _S.PREPARING: frozenset({_S.READY_FOR_PICKUP}),
    _S.READY_FOR_PICKUP: frozenset({_S.ON_THE_WAY}),
    _S.ON_THE_WAY: frozenset({_S.DELIVERED}),
    _S.DELIVERED: frozenset(),
    _S.CANCELLED: frozenset(),
    _S.REFUNDED: frozenset(),
    _S.RESTAURANT_REJECTED: frozenset(),
    _S.NO_RESTAURANT_ACCEPTED: frozenset(),
}

TERMINAL_STATUSES = frozenset(s for s, nxt in ORDER_TRANSITIONS.items() if not nxt)

_D = DeliveryAssignmentStatus
DELIVERY_TRANSITIONS: Mapping[DeliveryAssignmentStatus, frozenset[DeliveryAssignmentStatus]] = {
    _D.ASSIGNED: frozenset({_D.ACCEPTED, _D.REJECTED, _D.EXPIRED}),
    _D.ACCEPTED: frozenset({_D.PICKED_UP}),
    _D.PICKED_UP: frozenset({_D.ON_THE_WAY}),
    _D.ON_THE_WAY: frozenset({_D.DELIVERED}),
    _D.DELIVERED: frozenset(),
    _D.REJECTED: frozenset(),
    _D.EXPIRED: frozenset(),
}

StatusLike = Union[OrderStatus, str, None]


def canonicalize_status(value: StatusLike) -> Optional[OrderStatus]:
    """Map a raw or alias status string to OrderStatus; unknown values give None."""
    if value is None:
        return None
    if isinstance(value, OrderStatus):
        return value
    key = str(value).strip().lower()
    if key in STATUS_ALIASES:
        return STATUS_ALIASES[key]
    try:
        return OrderStatus(key)
    except ValueError:
        return None


def allowed_transitions(current: StatusLike) -> frozenset[OrderStatus]:
    status = canonicalize_status(current)
    if status is None:
        return frozenset()
    return ORDER_TRANSITIONS[status]


def is_valid_transition(current: StatusLike, new: StatusLike) -> bool:
    """Pure check of the order transition table. Unknown statuses fail closed."""
    target = canonicalize_status(new)
    if target is None:
        return False
    return target in allowed_transitions(current)


def ensure_transition(current: StatusLike, new: StatusLike) -> OrderStatus:
    """Return the canonical target status or raise InvalidTransitionError."""
    if is_valid_transition(current, new):
        return canonicalize_status(new)  # type: ignore[return-value]
    allowed = sorted(s.value for s in allowed_transitions(current))
    logger.warning("Invalid status transition attempted: %s -> %s (allowed: %s)", current, new, allowed)
    raise InvalidTransitionError(
        f"Order cannot move from {current!r} to {new!r}",
        details={"from": _raw(current), "to": _raw(new), "allowed": allowed},
    )


def is_valid_delivery_transition(
    current: Union[DeliveryAssignmentStatus, str],
    new: Union[DeliveryAssignmentStatus, str],
) -> bool:
    try:
        src = DeliveryAssignmentStatus(current)
        dst = DeliveryAssignmentStatus(new)
    except ValueError:
        return False
    return dst in DELIVERY_TRANSITIONS[src]


def _raw(value: StatusLike) -> Optional[str]:
    if isinstance(value, enum.Enum):
        return value.value
    return value


def is_delivery_assignable(status: StatusLike) -> bool:
    return canonicalize_status(status) in DELIVERY_ASSIGNABLE_STATUSES
