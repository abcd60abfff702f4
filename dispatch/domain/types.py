"""Plain result and value types returned by the dispatch services."""
from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, NamedTuple, Optional
from uuid import UUID


class LatLng(NamedTuple):
    lat: float
    lng: float


# Failure codes for AssignmentResult.
CAPACITY_EXCEEDED = "CAPACITY_EXCEEDED"
ORDER_ALREADY_ASSIGNED = "ORDER_ALREADY_ASSIGNED"
NO_DRIVER_AVAILABLE = "NO_DRIVER_AVAILABLE"


@dataclass
class AssignmentResult:
    """
    Outcome of a delivery assignment attempt.

    A driver at capacity is an expected outcome, so it comes back as
    ``success=False`` with a ``failure_code`` instead of an exception.
    """

    success: bool
    assignment_id: Optional[UUID] = None
    expires_at: Optional[datetime] = None
    failure_code: Optional[str] = None
    reason: Optional[str] = None
    driver_name: Optional[str] = None
    priority_score: Optional[float] = None

    @classmethod
    def failed(cls, code: str, reason: str) -> AssignmentResult:
        return cls(success=False, failure_code=code, reason=reason)


@dataclass
class RestaurantAcceptance:
    order_id: UUID
    assignment_id: UUID
    restaurant_id: UUID
    cancelled_assignments: int = 0
    already_accepted: bool = False


@dataclass
class RestaurantRejection:
    order_id: UUID
    assignment_id: UUID
    order_status: str
    remaining_pending: int


@dataclass
class AvailableDriver:
    delivery_user_id: UUID
    distance_km: float
    priority_score: float
    current_delivery_count: int
    max_concurrent_deliveries: int
    average_rating: Optional[float] = None
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    latitude: Optional[float] = None
    longitude: Optional[float] = None


@dataclass
class CurrentStep:
    index: int
    instruction: Optional[str]
    distance_to_step_m: float
    maneuver: Optional[str] = None


@dataclass
class Progress:
    percent: float
    distance_remaining_m: float
    time_remaining_s: float
    total_distance_m: float


@dataclass
class NavigationUpdate:
    session_id: UUID
    route_id: UUID
    current_step: CurrentStep
    progress: Progress
    eta: datetime
    off_route: bool
    reroute_count: int
    rerouted: bool = False
    extra: dict[str, Any] = field(default_factory=dict)
