"""
DeliveryHandoffService: assign orders to drivers and drive the driver-side lifecycle.

assigned → accepted → picked_up → on_the_way → delivered, with rejected and
expired as exits from assigned. The driver's current_delivery_count is taken
when an assignment is created and released on reject, expiry and delivery.
"""
from __future__ import annotations

import logging
from datetime import datetime, timedelta
from typing import Any, Iterable, List, Optional
from uuid import UUID

from sqlalchemy.ext.asyncio import AsyncSession

from dispatch.config import DispatchConfig, load_dispatch_config
from dispatch.core.exceptions import (
    ConflictError,
    InvalidTransitionError,
    NotFoundError,
    ValidationError,
)
from dispatch.domain.clock import utcnow
from dispatch.domain.history import (
    AcceptedEvent,
    AssignedEvent,
    ExpiredEvent,
    HistoryEvent,
    ReassignedEvent,
    RejectedEvent,
)
from dispatch.domain.statuses import (
    AssignmentResponse,
    DeliveryAssignmentStatus,
    DELIVERY_ASSIGNABLE_STATUSES,
    OrderStatus,
    is_delivery_assignable,
    is_valid_delivery_transition,
)
from dispatch.domain.types import (
    CAPACITY_EXCEEDED,
    NO_DRIVER_AVAILABLE,
    ORDER_ALREADY_ASSIGNED,
    AssignmentResult,
    AvailableDriver,
    LatLng,
)
from dispatch.infra.database.models.assignment import DeliveryAssignment
from dispatch.infra.database.models.driver import DriverAvailability
from dispatch.infra.database.models.history import DeliveryAssignmentHistory
from dispatch.infra.database.repositories.assignment import DeliveryAssignmentRepository
from dispatch.infra.database.repositories.driver import DriverRepository
from dispatch.infra.database.repositories.history import DeliveryHistoryRepository
from dispatch.infra.database.repositories.restaurant import RestaurantRepository
from dispatch.services.driver_ranking import rank_drivers
from dispatch.services.notification_service import NotificationService
from dispatch.services.order_service import OrderService
from dispatch.services.side_effects import run_best_effort

logger = logging.getLogger(__name__)

_D = DeliveryAssignmentStatus

# Milestone -> (timestamp column, order status to move to)
_MILESTONES = {
    _D.PICKED_UP: ("pickup_time", OrderStatus.ON_THE_WAY),
    _D.ON_THE_WAY: (None, None),
    _D.DELIVERED: ("delivered_at", OrderStatus.DELIVERED),
}


def _seconds_since(start: Optional[datetime], now: datetime) -> Optional[float]:
    if start is None:
        return None
    return round((now - start).total_seconds(), 3)


def _driver_name(driver: Any) -> Optional[str]:
    name = f"{driver.first_name or ''} {driver.last_name or ''}".strip()
    return name or None


class DeliveryHandoffService:
    def __init__(
        self,
        session: AsyncSession,
        config: Optional[DispatchConfig] = None,
        notifications: Optional[NotificationService] = None,
    ) -> None:
        self._session = session
        self._config = config or load_dispatch_config()
        self._orders = OrderService(session)
        self._restaurants = RestaurantRepository(session)
        self._assignments = DeliveryAssignmentRepository(session)
        self._history = DeliveryHistoryRepository(session)
        self._drivers = DriverRepository(session)
        self._notifications = notifications or NotificationService(session)

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    async def _record(
        self,
        assignment_id: UUID,
        order_id: UUID,
        delivery_user_id: UUID,
        event: HistoryEvent,
    ) -> None:
        await run_best_effort(
            self._session,
            f"delivery history {event.action.value}",
            lambda: self._history.record(
                assignment_id=assignment_id,
                order_id=order_id,
                delivery_user_id=delivery_user_id,
                event=event,
            ),
            extra={"order_id": str(order_id), "assignment_id": str(assignment_id)},
        )

    @staticmethod
    def _ensure_assignable(order: Any) -> None:
        """Drivers are only paired with restaurant-accepted orders that are not yet picked up."""
        if not is_delivery_assignable(order.status):
            raise InvalidTransitionError(
                f"Order in status {order.status!r} cannot be assigned to a driver",
                details={
                    "order_id": str(order.id),
                    "status": order.status,
                    "allowed": sorted(s.value for s in DELIVERY_ASSIGNABLE_STATUSES),
                },
            )

    async def _load_for_driver(self, assignment_id: UUID, driver_id: UUID) -> DeliveryAssignment:
        assignment = await self._assignments.get_for_update(assignment_id)
        if assignment is None or assignment.delivery_user_id != driver_id:
            raise NotFoundError(
                "Delivery assignment not found",
                details={"assignment_id": str(assignment_id), "delivery_user_id": str(driver_id)},
            )
        return assignment

    async def _create_assignment(
        self,
        *,
        order_id: UUID,
        restaurant_id: UUID,
        driver_id: UUID,
        window_minutes: int,
        priority_score: float,
        auto_assigned: bool,
        attempt: int,
    ) -> Optional[DeliveryAssignment]:
        """Take a capacity slot and insert the row; None when the driver filled up meanwhile."""
        slot = await self._drivers.increment_delivery_count(driver_id)
        if slot is None:
            return None
        return await self._assignments.create({
            "order_id": order_id,
            "restaurant_id": restaurant_id,
            "delivery_user_id": driver_id,
            "status": _D.ASSIGNED.value,
            "priority_score": priority_score,
            "expires_at": utcnow() + timedelta(minutes=window_minutes),
            "auto_assigned": auto_assigned,
            "assignment_attempt": attempt,
        })

    async def _reassign(self, previous: Any) -> Optional[DeliveryAssignment]:
        """Hand the order of a rejected/expired assignment to the next best driver."""
        order = await self._orders.lock_order(previous.order_id)
        if not is_delivery_assignable(order.status):
            logger.info(
                "Order %s is %s; not reassigning", order.id, order.status,
                extra={"order_id": str(order.id)},
            )
            return None
        attempt = await self._assignments.max_attempt_for_order(previous.order_id) + 1
        if attempt > self._config.max_assignment_attempts:
            logger.info(
                "Order %s reached %d assignment attempts; not reassigning",
                previous.order_id, self._config.max_assignment_attempts,
                extra={"order_id": str(previous.order_id)},
            )
            return None
        tried = await self._assignments.drivers_tried_for_order(previous.order_id)
        candidates = await self.get_available_drivers(previous.restaurant_id, exclude=tried)
        for candidate in candidates:
            created = await self._create_assignment(
                order_id=previous.order_id,
                restaurant_id=previous.restaurant_id,
                driver_id=candidate.delivery_user_id,
                window_minutes=self._config.auto_assignment_window_minutes,
                priority_score=candidate.priority_score,
                auto_assigned=True,
                attempt=attempt,
            )
            if created is None:
                continue
            await self._record(
                created.id,
                created.order_id,
                created.delivery_user_id,
                ReassignedEvent(
                    previous_assignment_id=previous.id,
                    previous_delivery_user_id=previous.delivery_user_id,
                    assignment_attempt=attempt,
                ),
            )
            logger.info(
                "Order %s reassigned to driver %s (attempt %d)",
                created.order_id, created.delivery_user_id, attempt,
                extra={"order_id": str(created.order_id), "delivery_user_id": str(created.delivery_user_id)},
            )
            return created
        logger.info("Order %s: no driver available for reassignment", previous.order_id)
        return None

    # ------------------------------------------------------------------
    # Driver search and assignment
    # ------------------------------------------------------------------

    async def get_available_drivers(
        self,
        restaurant_id: UUID,
        max_distance_km: Optional[float] = None,
        limit: Optional[int] = None,
        *,
        exclude: Iterable[UUID] = (),
    ) -> List[AvailableDriver]:
        restaurant = await self._restaurants.get_by_id(restaurant_id)
        if restaurant is None:
            raise NotFoundError("Restaurant not found", details={"restaurant_id": str(restaurant_id)})
        if restaurant.latitude is None or restaurant.longitude is None:
            raise ValidationError(
                "Restaurant has no location", details={"restaurant_id": str(restaurant_id)},
            )
        rows = await self._drivers.list_candidates(exclude=exclude)
        return rank_drivers(
            [(row[0], row[1]) for row in rows],
            LatLng(restaurant.latitude, restaurant.longitude),
            max_distance_km or self._config.driver_search_radius_km,
            limit or self._config.driver_search_limit,
        )

    async def manually_assign_delivery(
        self,
        order_id: UUID,
        restaurant_id: UUID,
        driver_id: UUID,
        window_minutes: Optional[int] = None,
    ) -> AssignmentResult:
        """Assign a specific driver. Capacity problems come back as a failed result, not an exception."""
        window = window_minutes if window_minutes is not None else self._config.manual_assignment_window_minutes
        if window <= 0:
            raise ValidationError("window_minutes must be positive", details={"window_minutes": window})

        driver = await self._drivers.get_driver(driver_id)
        if driver is None:
            raise NotFoundError("Driver not found", details={"delivery_user_id": str(driver_id)})
        order = await self._orders.lock_order(order_id)
        if order.restaurant_id is not None and order.restaurant_id != restaurant_id:
            raise NotFoundError(
                "Order not found for restaurant",
                details={"order_id": str(order_id), "restaurant_id": str(restaurant_id)},
            )
        self._ensure_assignable(order)

        availability = await self._drivers.get_for_update(driver_id)
        if availability is None or not availability.is_available:
            return AssignmentResult.failed(CAPACITY_EXCEEDED, "Driver is not available")
        if availability.current_delivery_count >= availability.max_concurrent_deliveries:
            return AssignmentResult.failed(CAPACITY_EXCEEDED, "Driver is at maximum concurrent deliveries")

        if await self._assignments.get_active_for_order(order_id) is not None:
            return AssignmentResult.failed(ORDER_ALREADY_ASSIGNED, "Order already has an active delivery assignment")

        assignment = await self._create_assignment(
            order_id=order_id,
            restaurant_id=restaurant_id,
            driver_id=driver_id,
            window_minutes=window,
            priority_score=0.0,
            auto_assigned=False,
            attempt=1,
        )
        if assignment is None:
            return AssignmentResult.failed(CAPACITY_EXCEEDED, "Driver is at maximum concurrent deliveries")

        await self._record(
            assignment.id,
            order_id,
            driver_id,
            AssignedEvent(manual_assignment=True, restaurant_id=restaurant_id, priority_score=0.0),
        )
        logger.info(
            "Order %s manually assigned to driver %s", order_id, driver_id,
            extra={"order_id": str(order_id), "delivery_user_id": str(driver_id)},
        )
        return AssignmentResult(
            success=True,
            assignment_id=assignment.id,
            expires_at=assignment.expires_at,
            driver_name=_driver_name(driver),
            priority_score=0.0,
        )

    async def auto_assign_delivery(self, order_id: UUID) -> AssignmentResult:
        """Assign the best ranked driver near the order's restaurant."""
        order = await self._orders.lock_order(order_id)
        if order.restaurant_id is None:
            raise ValidationError("Order has no restaurant yet", details={"order_id": str(order_id)})
        self._ensure_assignable(order)
        if await self._assignments.get_active_for_order(order_id) is not None:
            return AssignmentResult.failed(ORDER_ALREADY_ASSIGNED, "Order already has an active delivery assignment")

        attempt = await self._assignments.max_attempt_for_order(order_id) + 1
        tried = await self._assignments.drivers_tried_for_order(order_id)
        for candidate in await self.get_available_drivers(order.restaurant_id, exclude=tried):
            assignment = await self._create_assignment(
                order_id=order_id,
                restaurant_id=order.restaurant_id,
                driver_id=candidate.delivery_user_id,
                window_minutes=self._config.auto_assignment_window_minutes,
                priority_score=candidate.priority_score,
                auto_assigned=True,
                attempt=attempt,
            )
            if assignment is None:
                continue
            await self._record(
                assignment.id,
                order_id,
                candidate.delivery_user_id,
                AssignedEvent(
                    manual_assignment=False,
                    restaurant_id=order.restaurant_id,
                    priority_score=candidate.priority_score,
                    assignment_attempt=attempt,
                ),
            )
            logger.info(
                "Order %s auto-assigned to driver %s (score %.2f)",
                order_id, candidate.delivery_user_id, candidate.priority_score,
                extra={"order_id": str(order_id), "delivery_user_id": str(candidate.delivery_user_id)},
            )
            return AssignmentResult(
                success=True,
                assignment_id=assignment.id,
                expires_at=assignment.expires_at,
                driver_name=_driver_name(candidate),
                priority_score=candidate.priority_score,
            )
        return AssignmentResult.failed(NO_DRIVER_AVAILABLE, "No available driver in range")

    # ------------------------------------------------------------------
    # Driver responses and milestones
    # ------------------------------------------------------------------

    async def handle_assignment_response(
        self,
        assignment_id: UUID,
        driver_id: UUID,
        response: Any,
        reason: Optional[str] = None,
    ) -> DeliveryAssignment:
        try:
            action = AssignmentResponse(response)
        except ValueError as exc:
            raise ValidationError(
                "response must be 'accept' or 'reject'", details={"response": str(response)},
            ) from exc

        assignment = await self._load_for_driver(assignment_id, driver_id)
        now = utcnow()
        if assignment.status != _D.ASSIGNED.value:
            raise InvalidTransitionError(
                "Delivery assignment is no longer awaiting a response",
                details={"assignment_id": str(assignment_id), "status": assignment.status},
            )

        if action is AssignmentResponse.ACCEPT:
            return await self._accept(assignment, now)
        return await self._reject(assignment, now, reason)

    async def _accept(self, assignment: DeliveryAssignment, now: datetime) -> DeliveryAssignment:
        if assignment.expires_at <= now:
            raise InvalidTransitionError(
                "Delivery assignment has expired",
                details={"assignment_id": str(assignment.id), "expires_at": assignment.expires_at.isoformat()},
            )
        accepted = await self._assignments.guarded_update(
            assignment.id,
            expected_status=[_D.ASSIGNED.value],
            values={"status": _D.ACCEPTED.value, "accepted_at": now},
            extra=[DeliveryAssignment.expires_at > now],
        )
        if accepted is None:
            raise InvalidTransitionError(
                "Delivery assignment expired or changed before acceptance",
                details={"assignment_id": str(assignment.id)},
            )
        await self._record(
            assignment.id,
            assignment.order_id,
            assignment.delivery_user_id,
            AcceptedEvent(assignment_duration_seconds=_seconds_since(assignment.created_at, now)),
        )
        await self._notifications.notify_restaurant(
            assignment.order_id,
            assignment.restaurant_id,
            "driver_accepted",
            "Driver assigned",
            "A driver has accepted the delivery.",
            {"delivery_user_id": str(assignment.delivery_user_id)},
        )
        logger.info(
            "Driver %s accepted assignment %s", assignment.delivery_user_id, assignment.id,
            extra={"assignment_id": str(assignment.id), "delivery_user_id": str(assignment.delivery_user_id)},
        )
        return accepted

    async def _reject(self, assignment: DeliveryAssignment, now: datetime, reason: Optional[str]) -> DeliveryAssignment:
        rejected = await self._assignments.guarded_update(
            assignment.id,
            expected_status=[_D.ASSIGNED.value],
            values={"status": _D.REJECTED.value, "rejection_reason": reason},
        )
        if rejected is None:
            raise ConflictError(
                "Delivery assignment changed concurrently", details={"assignment_id": str(assignment.id)},
            )
        await self._drivers.decrement_delivery_count(assignment.delivery_user_id)
        await self._record(
            assignment.id,
            assignment.order_id,
            assignment.delivery_user_id,
            RejectedEvent(reason=reason, assignment_duration_seconds=_seconds_since(assignment.created_at, now)),
        )
        logger.info(
            "Driver %s rejected assignment %s", assignment.delivery_user_id, assignment.id,
            extra={"assignment_id": str(assignment.id), "delivery_user_id": str(assignment.delivery_user_id)},
        )
        await run_best_effort(
            self._session,
            "reassign rejected delivery",
            lambda: self._reassign(assignment),
            extra={"order_id": str(assignment.order_id)},
        )
        await run_best_effort(
            self._session,
            "expired assignment sweep",
            self.process_expired_assignments,
        )
        return rejected

    async def record_delivery_milestone(
        self,
        assignment_id: UUID,
        driver_id: UUID,
        milestone: Any,
    ) -> DeliveryAssignment:
        """Advance accepted → picked_up → on_the_way → delivered, keeping the order in step."""
        try:
            target = _D(milestone)
        except ValueError as exc:
            raise ValidationError("Unknown milestone", details={"milestone": str(milestone)}) from exc
        if target not in _MILESTONES:
            raise ValidationError("Unknown milestone", details={"milestone": target.value})

        assignment = await self._load_for_driver(assignment_id, driver_id)
        if not is_valid_delivery_transition(assignment.status, target):
            raise InvalidTransitionError(
                f"Delivery assignment cannot move from {assignment.status!r} to {target.value!r}",
                details={"assignment_id": str(assignment_id), "from": assignment.status, "to": target.value},
            )

        now = utcnow()
        column, order_status = _MILESTONES[target]
        values: dict[str, Any] = {"status": target.value}
        if column:
            values[column] = now
        updated = await self._assignments.guarded_update(
            assignment_id, expected_status=[assignment.status], values=values,
        )
        if updated is None:
            raise ConflictError(
                "Delivery assignment changed concurrently", details={"assignment_id": str(assignment_id)},
            )

        if order_status is not None:
            order = await self._orders.lock_order(assignment.order_id)
            await self._orders.apply_transition(order, order_status)
            await self._notifications.notify_customer(
                order.id,
                order.customer_id,
                f"order_{order_status.value}",
                "Order update",
                "Your order is on the way." if order_status is OrderStatus.ON_THE_WAY else "Your order has been delivered.",
            )
        if target is _D.DELIVERED:
            await self._drivers.decrement_delivery_count(assignment.delivery_user_id)

        logger.info(
            "Assignment %s: %s -> %s", assignment_id, assignment.status, target.value,
            extra={"assignment_id": str(assignment_id), "order_id": str(assignment.order_id)},
        )
        return updated

    # ------------------------------------------------------------------
    # Sweep
    # ------------------------------------------------------------------

    async def process_expired_assignments(self) -> int:
        """
        Expire every ``assigned`` row past its window, release the driver slot,
        log ``expired`` and try to reassign the order.

        Returns the number expired. With nothing overdue it performs no writes.
        """
        now = utcnow()
        expired = await self._assignments.expire_overdue(now)
        if not expired:
            return 0

        for row in expired:
            await self._drivers.decrement_delivery_count(row.delivery_user_id)
            await self._record(
                row.id,
                row.order_id,
                row.delivery_user_id,
                ExpiredEvent(
                    expired_at=row.expires_at.isoformat() if row.expires_at else None,
                    assignment_attempt=row.assignment_attempt,
                ),
            )
        for row in expired:
            await run_best_effort(
                self._session,
                "reassign expired delivery",
                lambda row=row: self._reassign(row),
                extra={"order_id": str(row.order_id)},
            )
        logger.info("Expired %d delivery assignment(s)", len(expired))
        return len(expired)

    # ------------------------------------------------------------------
    # Reads and availability
    # ------------------------------------------------------------------

    async def get_assignment_history(self, assignment_id: UUID) -> List[DeliveryAssignmentHistory]:
        return await self._history.list_for_assignment(assignment_id)

    async def get_driver_availability(self, driver_id: UUID) -> DriverAvailability:
        availability = await self._drivers.get_by_id(driver_id)
        if availability is None:
            raise NotFoundError("Driver availability not found", details={"delivery_user_id": str(driver_id)})
        return availability

    async def update_driver_availability(
        self,
        driver_id: UUID,
        *,
        is_available: Optional[bool] = None,
        latitude: Optional[float] = None,
        longitude: Optional[float] = None,
        max_concurrent_deliveries: Optional[int] = None,
    ) -> DriverAvailability:
        if await self._drivers.get_driver(driver_id) is None:
            raise NotFoundError("Driver not found", details={"delivery_user_id": str(driver_id)})
        if (latitude is None) != (longitude is None):
            raise ValidationError("latitude and longitude must be given together")
        values: dict[str, Any] = {}
        if is_available is not None:
            values["is_available"] = is_available
        if max_concurrent_deliveries is not None:
            if max_concurrent_deliveries <= 0:
                raise ValidationError("max_concurrent_deliveries must be positive")
            values["max_concurrent_deliveries"] = max_concurrent_deliveries
        if latitude is not None:
            values.update(current_latitude=latitude, current_longitude=longitude, last_location_update=utcnow())
        return await self._drivers.upsert_availability(driver_id, values)
