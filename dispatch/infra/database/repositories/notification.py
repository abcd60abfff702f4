"""Order notification repository."""
from __future__ import annotations

from typing import List
from uuid import UUID

from sqlalchemy import select

from dispatch.infra.database.models.notification import OrderNotification
from dispatch.infra.database.repositories.base import BaseRepository


class NotificationRepository(BaseRepository[OrderNotification]):
    model = OrderNotification

    async def list_for_order(self, order_id: UUID) -> List[OrderNotification]:
        stmt = (
            select(OrderNotification)
            .where(OrderNotification.order_id == order_id)
            .order_by(OrderNotification.created_at)
        )
        result = await self.session.execute(stmt)
        return list(result.scalars().all())
