"""
RestaurantHandoffService: offer an order to restaurants and handle their answers.

Accept and reject run inside the caller's transaction. The order row is locked
with SELECT … FOR UPDATE and written with a compare-and-set on its status, so
two restaurants racing for the same order cannot both win. Sibling
cancellation, history and notifications are best effort (savepoint, logged).
"""
from __future__ import annotations

import logging
from datetime import datetime, timedelta
from typing import List, Optional
from uuid import UUID

from sqlalchemy.ext.asyncio import AsyncSession

from dispatch.config import DispatchConfig, load_dispatch_config
from dispatch.core.exceptions import ConflictError, InvalidTransitionError, NotFoundError
from dispatch.domain.clock import utcnow
from dispatch.domain.geo import haversine_km
from dispatch.domain.history import (
    AcceptedEvent,
    CancelledEvent,
    ExpiredEvent,
    HistoryEvent,
    RejectedEvent,
)
from dispatch.domain.statuses import (
    OrderStatus,
    RestaurantAssignmentStatus,
    ensure_transition,
    is_valid_transition,
)
from dispatch.domain.types import RestaurantAcceptance, RestaurantRejection
from dispatch.infra.database.models.assignment import RestaurantAssignment
from dispatch.infra.database.models.order import Order
from dispatch.infra.database.repositories.assignment import RestaurantAssignmentRepository
from dispatch.infra.database.repositories.history import RestaurantHistoryRepository
from dispatch.infra.database.repositories.order import OrderRepository
from dispatch.infra.database.repositories.restaurant import RestaurantRepository
from dispatch.services.notification_service import NotificationService
from dispatch.services.order_service import OrderService
from dispatch.services.side_effects import run_best_effort

logger = logging.getLogger(__name__)

_PENDING = RestaurantAssignmentStatus.PENDING.value
_ACCEPTED = RestaurantAssignmentStatus.ACCEPTED.value


def _seconds_since(start: Optional[datetime], now: datetime) -> Optional[float]:
    if start is None:
        return None
    return round((now - start).total_seconds(), 3)


class RestaurantHandoffService:
    def __init__(
        self,
        session: AsyncSession,
        config: Optional[DispatchConfig] = None,
        notifications: Optional[NotificationService] = None,
    ) -> None:
        self._session = session
        self._config = config or load_dispatch_config()
        self._orders = OrderService(session)
        self._order_repo = OrderRepository(session)
        self._restaurants = RestaurantRepository(session)
        self._assignments = RestaurantAssignmentRepository(session)
        self._history = RestaurantHistoryRepository(session)
        self._notifications = notifications or NotificationService(session)

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    async def _load_assignment(
        self, order_id: UUID, restaurant_id: UUID, assignment_id: UUID
    ) -> RestaurantAssignment:
        assignment = await self._assignments.get_by_id(assignment_id)
        if assignment is None or assignment.order_id != order_id or assignment.restaurant_id != restaurant_id:
            raise NotFoundError(
                "Restaurant assignment not found",
                details={
                    "assignment_id": str(assignment_id),
                    "order_id": str(order_id),
                    "restaurant_id": str(restaurant_id),
                },
            )
        return assignment

    async def _record(self, assignment_id: UUID, order_id: UUID, restaurant_id: UUID, event: HistoryEvent) -> None:
        await run_best_effort(
            self._session,
            f"restaurant history {event.action.value}",
            lambda: self._history.record(
                assignment_id=assignment_id,
                order_id=order_id,
                restaurant_id=restaurant_id,
                event=event,
            ),
            extra={"order_id": str(order_id), "assignment_id": str(assignment_id)},
        )

    async def _close_without_restaurant(self, order: Order) -> Order:
        """Terminal rejection: validated as →restaurant_rejected, written as no_restaurant_accepted."""
        ensure_transition(order.status, OrderStatus.RESTAURANT_REJECTED)
        updated = await self._order_repo.set_status(
            order.id, expected=[order.status], status=OrderStatus.NO_RESTAURANT_ACCEPTED.value,
        )
        if updated is None:
            raise ConflictError("Order status changed concurrently", details={"order_id": str(order.id)})
        await self._notifications.notify_customer(
            order.id,
            order.customer_id,
            "no_restaurant_accepted",
            "No restaurant available",
            "Unfortunately no restaurant could accept your order.",
        )
        logger.info("Order %s: no restaurant accepted", order.id, extra={"order_id": str(order.id)})
        return updated

    # ------------------------------------------------------------------
    # Offer
    # ------------------------------------------------------------------

    async def offer_to_restaurants(
        self,
        order_id: UUID,
        *,
        max_distance_km: Optional[float] = None,
        window_minutes: Optional[int] = None,
    ) -> List[RestaurantAssignment]:
        """Create pending assignments for every active restaurant near the delivery address.

        The order moves to awaiting_restaurant; with no restaurant in range it is
        closed as no_restaurant_accepted and an empty list is returned.
        """
        order = await self._orders.lock_order(order_id)
        ensure_transition(order.status, OrderStatus.AWAITING_RESTAURANT)
        radius = max_distance_km or self._config.restaurant_search_radius_km
        window = window_minutes or self._config.restaurant_assignment_window_minutes

        nearby = []
        if order.delivery_latitude is not None and order.delivery_longitude is not None:
            for restaurant in await self._restaurants.list_active_with_location():
                distance = haversine_km(
                    order.delivery_latitude, order.delivery_longitude,
                    restaurant.latitude, restaurant.longitude,
                )
                if distance <= radius:
                    nearby.append((distance, restaurant))
        if not nearby:
            logger.info("Order %s: no restaurant within %.1f km", order_id, radius, extra={"order_id": str(order_id)})
            await self._close_without_restaurant(order)
            return []

        nearby.sort(key=lambda pair: pair[0])
        expires_at = utcnow() + timedelta(minutes=window)
        created = await self._assignments.create_many([
            {
                "order_id": order_id,
                "restaurant_id": restaurant.id,
                "status": _PENDING,
                "expires_at": expires_at,
            }
            for _, restaurant in nearby
        ])
        await self._orders.apply_transition(order, OrderStatus.AWAITING_RESTAURANT)
        for assignment in created:
            await self._notifications.notify_restaurant(
                order_id,
                assignment.restaurant_id,
                "new_order_offer",
                "New order",
                "A new order is waiting for your answer.",
                {"assignment_id": str(assignment.id), "expires_at": expires_at.isoformat()},
            )
        logger.info(
            "Order %s offered to %d restaurant(s)", order_id, len(created), extra={"order_id": str(order_id)},
        )
        return created

    # ------------------------------------------------------------------
    # Accept / reject
    # ------------------------------------------------------------------

    async def accept_restaurant_assignment(
        self,
        order_id: UUID,
        restaurant_id: UUID,
        assignment_id: UUID,
    ) -> RestaurantAcceptance:
        order = await self._orders.lock_order(order_id)
        assignment = await self._load_assignment(order_id, restaurant_id, assignment_id)

        if assignment.status == _ACCEPTED and order.restaurant_id == restaurant_id:
            logger.info(
                "Assignment %s already accepted; nothing to do", assignment_id,
                extra={"order_id": str(order_id), "assignment_id": str(assignment_id)},
            )
            return RestaurantAcceptance(
                order_id=order_id,
                assignment_id=assignment_id,
                restaurant_id=restaurant_id,
                already_accepted=True,
            )

        ensure_transition(order.status, OrderStatus.RESTAURANT_ACCEPTED)
        if assignment.status != _PENDING:
            raise InvalidTransitionError(
                "Restaurant assignment is no longer pending",
                details={"assignment_id": str(assignment_id), "status": assignment.status},
            )

        now = utcnow()
        if assignment.expires_at is not None and assignment.expires_at <= now:
            raise InvalidTransitionError(
                "Restaurant assignment has expired",
                details={"assignment_id": str(assignment_id), "expires_at": assignment.expires_at.isoformat()},
            )
        await self._orders.apply_transition(
            order, OrderStatus.RESTAURANT_ACCEPTED, restaurant_id=restaurant_id, accepted_at=now,
        )
        accepted = await self._assignments.guarded_update(
            assignment_id,
            expected_status=[_PENDING],
            values={"status": _ACCEPTED, "responded_at": now},
        )
        if accepted is None:
            raise ConflictError(
                "Restaurant assignment changed concurrently",
                details={"assignment_id": str(assignment_id)},
            )

        cancelled = await run_best_effort(
            self._session,
            "cancel sibling assignments",
            lambda: self._assignments.cancel_pending_siblings(order_id, assignment_id, now),
            extra={"order_id": str(order_id)},
        ) or []

        await self._record(
            assignment_id,
            order_id,
            restaurant_id,
            AcceptedEvent(
                assignment_duration_seconds=_seconds_since(assignment.created_at, now),
                cancelled_siblings=len(cancelled),
            ),
        )
        for sibling in cancelled:
            await self._record(
                sibling.id, order_id, sibling.restaurant_id, CancelledEvent(accepted_assignment_id=assignment_id),
            )
        await self._notifications.notify_customer(
            order_id,
            order.customer_id,
            "order_accepted",
            "Order accepted",
            "A restaurant has accepted your order.",
            {"restaurant_id": str(restaurant_id)},
        )
        logger.info(
            "Restaurant %s accepted order %s (%d sibling(s) cancelled)",
            restaurant_id, order_id, len(cancelled),
            extra={"order_id": str(order_id), "restaurant_id": str(restaurant_id)},
        )
        return RestaurantAcceptance(
            order_id=order_id,
            assignment_id=assignment_id,
            restaurant_id=restaurant_id,
            cancelled_assignments=len(cancelled),
        )

    async def reject_restaurant_assignment(
        self,
        order_id: UUID,
        restaurant_id: UUID,
        assignment_id: UUID,
        reason: Optional[str] = None,
    ) -> RestaurantRejection:
        order = await self._orders.lock_order(order_id)
        assignment = await self._load_assignment(order_id, restaurant_id, assignment_id)

        ensure_transition(order.status, OrderStatus.RESTAURANT_REJECTED)
        if assignment.status != _PENDING:
            raise InvalidTransitionError(
                "Restaurant assignment is no longer pending",
                details={"assignment_id": str(assignment_id), "status": assignment.status},
            )

        now = utcnow()
        rejected = await self._assignments.guarded_update(
            assignment_id,
            expected_status=[_PENDING],
            values={
                "status": RestaurantAssignmentStatus.REJECTED.value,
                "responded_at": now,
                "response_notes": reason,
            },
        )
        if rejected is None:
            raise ConflictError(
                "Restaurant assignment changed concurrently",
                details={"assignment_id": str(assignment_id)},
            )

        remaining = await self._assignments.count_for_order(order_id, [_PENDING])
        order_status = order.status
        if remaining == 0:
            updated = await self._close_without_restaurant(order)
            order_status = updated.status

        await self._record(
            assignment_id,
            order_id,
            restaurant_id,
            RejectedEvent(reason=reason, assignment_duration_seconds=_seconds_since(assignment.created_at, now)),
        )
        logger.info(
            "Restaurant %s rejected order %s (%d pending left)", restaurant_id, order_id, remaining,
            extra={"order_id": str(order_id), "restaurant_id": str(restaurant_id)},
        )
        return RestaurantRejection(
            order_id=order_id,
            assignment_id=assignment_id,
            order_status=order_status,
            remaining_pending=remaining,
        )

    # ------------------------------------------------------------------
    # Sweep and reads
    # ------------------------------------------------------------------

    async def process_expired_restaurant_assignments(self) -> int:
        """Expire overdue pending offers; close orders left with no candidate. Returns the count expired."""
        now = utcnow()
        expired = await self._assignments.expire_overdue(now)
        if not expired:
            return 0

        for row in expired:
            await self._record(
                row.id,
                row.order_id,
                row.restaurant_id,
                ExpiredEvent(expired_at=row.expires_at.isoformat() if row.expires_at else None),
            )

        for order_id in dict.fromkeys(row.order_id for row in expired):
            open_count = await self._assignments.count_for_order(order_id, [_PENDING, _ACCEPTED])
            if open_count:
                continue
            order = await self._order_repo.get_for_update(order_id)
            if order is None or not is_valid_transition(order.status, OrderStatus.RESTAURANT_REJECTED):
                continue
            await self._close_without_restaurant(order)

        logger.info("Expired %d restaurant assignment(s)", len(expired))
        return len(expired)

    async def list_order_assignments(self, order_id: UUID) -> List[RestaurantAssignment]:
        return await self._assignments.list_for_order(order_id)

    async def list_pending_for_restaurant(self, restaurant_id: UUID) -> List[RestaurantAssignment]:
        return await self._assignments.list_pending_for_restaurant(restaurant_id, utcnow())
