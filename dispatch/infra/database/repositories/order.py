"""Order repository."""
from __future__ import annotations

from typing import Any, Iterable, List, Optional
from uuid import UUID

from sqlalchemy import select

from dispatch.infra.database.models.order import Order
from dispatch.infra.database.repositories.base import BaseRepository


class OrderRepository(BaseRepository[Order]):
    model = Order

    async def list_all(
        self,
        *,
        status: Optional[str] = None,
        customer_id: Optional[UUID] = None,
        restaurant_id: Optional[UUID] = None,
        skip: int = 0,
        limit: int = 100,
    ) -> List[Order]:
        stmt = select(Order).order_by(Order.created_at.desc())
        if status:
            stmt = stmt.where(Order.status == status)
        if customer_id:
            stmt = stmt.where(Order.customer_id == customer_id)
        if restaurant_id:
            stmt = stmt.where(Order.restaurant_id == restaurant_id)
        stmt = stmt.offset(skip).limit(limit)
        result = await self.session.execute(stmt)
        return list(result.scalars().all())

    async def set_status(
        self,
        id: UUID,
        *,
        expected: Iterable[str],
        status: str,
        **values: Any,
    ) -> Optional[Order]:
        """Move the order to *status* only while it is still in one of *expected*."""
        return await self.guarded_update(
            id, expected_status=expected, values={"status": status, **values},
        )
