"""OrderService: read orders and move them through the status table."""
from __future__ import annotations

import logging
from typing import Any, List, Optional
from uuid import UUID

from sqlalchemy.ext.asyncio import AsyncSession

from dispatch.core.exceptions import ConflictError, NotFoundError
from dispatch.domain.clock import utcnow
from dispatch.domain.statuses import OrderStatus, canonicalize_status, ensure_transition
from dispatch.infra.database.models.order import Order
from dispatch.infra.database.repositories.order import OrderRepository

logger = logging.getLogger(__name__)

# Timestamp column stamped when the order enters the status
MILESTONE_COLUMNS = {
    OrderStatus.RESTAURANT_ACCEPTED: "accepted_at",
    OrderStatus.PREPARING: "preparation_started_at",
    OrderStatus.READY_FOR_PICKUP: "ready_at",
    OrderStatus.ON_THE_WAY: "picked_up_at",
    OrderStatus.DELIVERED: "delivered_at",
}


class OrderService:
    def __init__(self, session: AsyncSession) -> None:
        self._repo = OrderRepository(session)

    async def list_orders(
        self,
        *,
        status: Optional[str] = None,
        customer_id: Optional[UUID] = None,
        restaurant_id: Optional[UUID] = None,
        skip: int = 0,
        limit: int = 100,
    ) -> List[Order]:
        canonical = canonicalize_status(status) if status else None
        return await self._repo.list_all(
            status=canonical.value if canonical else status,
            customer_id=customer_id,
            restaurant_id=restaurant_id,
            skip=skip,
            limit=limit,
        )

    async def get_order(self, id: UUID) -> Order:
        order = await self._repo.get_by_id(id)
        if order is None:
            raise NotFoundError("Order not found", details={"order_id": str(id)})
        return order

    async def lock_order(self, id: UUID) -> Order:
        """Load the order with a row lock held for the rest of the transaction."""
        order = await self._repo.get_for_update(id)
        if order is None:
            raise NotFoundError("Order not found", details={"order_id": str(id)})
        return order

    async def apply_transition(self, order: Order, new_status: Any, **values: Any) -> Order:
        """
        Validate and write one status change on an already locked order.

        Raises InvalidTransitionError before any write when the edge is not
        allowed, and ConflictError when the row changed underneath us.
        """
        target = ensure_transition(order.status, new_status)
        column = MILESTONE_COLUMNS.get(target)
        if column and column not in values:
            values[column] = utcnow()
        updated = await self._repo.set_status(
            order.id, expected=[order.status], status=target.value, **values,
        )
        if updated is None:
            raise ConflictError(
                "Order status changed concurrently",
                details={"order_id": str(order.id), "expected": order.status},
            )
        logger.info(
            "Order %s: %s -> %s", order.id, order.status, target.value,
            extra={"order_id": str(order.id)},
        )
        return updated

    async def update_status(
        self,
        id: UUID,
        new_status: Any,
        *,
        restaurant_id: Optional[UUID] = None,
    ) -> Order:
        """Lock, validate and update. With *restaurant_id* the order must belong to that restaurant."""
        order = await self.lock_order(id)
        if restaurant_id is not None and order.restaurant_id != restaurant_id:
            raise NotFoundError(
                "Order not found for restaurant",
                details={"order_id": str(id), "restaurant_id": str(restaurant_id)},
            )
        return await self.apply_transition(order, new_status)
