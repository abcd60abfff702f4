"""Append-only history repositories."""
from __future__ import annotations

from typing import List
from uuid import UUID

from sqlalchemy import select

from dispatch.domain.history import HistoryEvent
from dispatch.infra.database.models.history import (
    DeliveryAssignmentHistory,
    RestaurantAssignmentHistory,
)
from dispatch.infra.database.repositories.base import BaseRepository


class RestaurantHistoryRepository(BaseRepository[RestaurantAssignmentHistory]):
    model = RestaurantAssignmentHistory

    async def record(
        self,
        *,
        assignment_id: UUID,
        order_id: UUID,
        restaurant_id: UUID,
        event: HistoryEvent,
    ) -> RestaurantAssignmentHistory:
        return await self.create({
            "assignment_id": assignment_id,
            "order_id": order_id,
            "restaurant_id": restaurant_id,
            "action": event.action.value,
            "details": event.to_metadata(),
        })

    async def list_for_order(self, order_id: UUID) -> List[RestaurantAssignmentHistory]:
        stmt = (
            select(RestaurantAssignmentHistory)
            .where(RestaurantAssignmentHistory.order_id == order_id)
            .order_by(RestaurantAssignmentHistory.created_at)
        )
        result = await self.session.execute(stmt)
        return list(result.scalars().all())


class DeliveryHistoryRepository(BaseRepository[DeliveryAssignmentHistory]):
    model = DeliveryAssignmentHistory

    async def record(
        self,
        *,
        assignment_id: UUID,
        order_id: UUID,
        delivery_user_id: UUID,
        event: HistoryEvent,
    ) -> DeliveryAssignmentHistory:
        return await self.create({
            "assignment_id": assignment_id,
            "order_id": order_id,
            "delivery_user_id": delivery_user_id,
            "action": event.action.value,
            "details": event.to_metadata(),
        })

    async def list_for_assignment(self, assignment_id: UUID) -> List[DeliveryAssignmentHistory]:
        stmt = (
            select(DeliveryAssignmentHistory)
            .where(DeliveryAssignmentHistory.assignment_id == assignment_id)
            .order_by(DeliveryAssignmentHistory.created_at)
        )
        result = await self.session.execute(stmt)
        return list(result.scalars().all())
