"""Restaurant and delivery assignment repositories."""
from __future__ import annotations

from datetime import datetime
from typing import Iterable, List, Optional, Sequence
from uuid import UUID

from sqlalchemy import Row, func, or_, select, update

from dispatch.domain.statuses import (
    ACTIVE_DELIVERY_STATUSES,
    DeliveryAssignmentStatus,
    RestaurantAssignmentStatus,
)
from dispatch.infra.database.models.assignment import DeliveryAssignment, RestaurantAssignment
from dispatch.infra.database.repositories.base import BaseRepository

_ACTIVE_DELIVERY = [s.value for s in ACTIVE_DELIVERY_STATUSES]


class RestaurantAssignmentRepository(BaseRepository[RestaurantAssignment]):
    model = RestaurantAssignment

    async def list_for_order(self, order_id: UUID) -> List[RestaurantAssignment]:
        stmt = (
            select(RestaurantAssignment)
            .where(RestaurantAssignment.order_id == order_id)
            .order_by(RestaurantAssignment.created_at)
        )
        result = await self.session.execute(stmt)
        return list(result.scalars().all())

    async def list_pending_for_restaurant(self, restaurant_id: UUID, now: datetime) -> List[RestaurantAssignment]:
        """Open offers for a restaurant, oldest first; expired-but-unswept rows are skipped."""
        stmt = (
            select(RestaurantAssignment)
            .where(
                RestaurantAssignment.restaurant_id == restaurant_id,
                RestaurantAssignment.status == RestaurantAssignmentStatus.PENDING.value,
                or_(RestaurantAssignment.expires_at.is_(None), RestaurantAssignment.expires_at > now),
            )
            .order_by(RestaurantAssignment.created_at)
        )
        result = await self.session.execute(stmt)
        return list(result.scalars().all())

    async def count_for_order(self, order_id: UUID, statuses: Iterable[str]) -> int:
        stmt = select(func.count()).select_from(RestaurantAssignment).where(
            RestaurantAssignment.order_id == order_id,
            RestaurantAssignment.status.in_(list(statuses)),
        )
        result = await self.session.execute(stmt)
        return result.scalar_one()

    async def cancel_pending_siblings(self, order_id: UUID, keep_id: UUID, now: datetime) -> Sequence[Row]:
        """Cancel every other pending assignment of the order; returns (id, restaurant_id) rows."""
        stmt = (
            update(RestaurantAssignment)
            .where(
                RestaurantAssignment.order_id == order_id,
                RestaurantAssignment.id != keep_id,
                RestaurantAssignment.status == RestaurantAssignmentStatus.PENDING.value,
            )
            .values(status=RestaurantAssignmentStatus.CANCELLED.value, responded_at=now)
            .returning(RestaurantAssignment.id, RestaurantAssignment.restaurant_id)
            .execution_options(synchronize_session=False)
        )
        result = await self.session.execute(stmt)
        return result.all()

    async def expire_overdue(self, now: datetime) -> Sequence[Row]:
        """Set-based expiry of pending assignments past ``expires_at``."""
        stmt = (
            update(RestaurantAssignment)
            .where(
                RestaurantAssignment.status == RestaurantAssignmentStatus.PENDING.value,
                RestaurantAssignment.expires_at.is_not(None),
                RestaurantAssignment.expires_at <= now,
            )
            .values(status=RestaurantAssignmentStatus.EXPIRED.value, responded_at=now)
            .returning(
                RestaurantAssignment.id,
                RestaurantAssignment.order_id,
                RestaurantAssignment.restaurant_id,
                RestaurantAssignment.expires_at,
            )
            .execution_options(synchronize_session=False)
        )
        result = await self.session.execute(stmt)
        return result.all()


class DeliveryAssignmentRepository(BaseRepository[DeliveryAssignment]):
    model = DeliveryAssignment

    async def get_active_for_order(self, order_id: UUID) -> Optional[DeliveryAssignment]:
        stmt = (
            select(DeliveryAssignment)
            .where(
                DeliveryAssignment.order_id == order_id,
                DeliveryAssignment.status.in_(_ACTIVE_DELIVERY),
            )
            .limit(1)
        )
        result = await self.session.execute(stmt)
        return result.scalar_one_or_none()

    async def drivers_tried_for_order(self, order_id: UUID) -> List[UUID]:
        stmt = select(DeliveryAssignment.delivery_user_id).where(DeliveryAssignment.order_id == order_id)
        result = await self.session.execute(stmt)
        return list(result.scalars().all())

    async def max_attempt_for_order(self, order_id: UUID) -> int:
        stmt = select(func.coalesce(func.max(DeliveryAssignment.assignment_attempt), 0)).where(
            DeliveryAssignment.order_id == order_id
        )
        result = await self.session.execute(stmt)
        return result.scalar_one()

    async def expire_overdue(self, now: datetime) -> Sequence[Row]:
        """Move every ``assigned`` row whose window has passed to ``expired``."""
        stmt = (
            update(DeliveryAssignment)
            .where(
                DeliveryAssignment.status == DeliveryAssignmentStatus.ASSIGNED.value,
                DeliveryAssignment.expires_at <= now,
            )
            .values(status=DeliveryAssignmentStatus.EXPIRED.value)
            .returning(
                DeliveryAssignment.id,
                DeliveryAssignment.order_id,
                DeliveryAssignment.restaurant_id,
                DeliveryAssignment.delivery_user_id,
                DeliveryAssignment.assignment_attempt,
                DeliveryAssignment.expires_at,
            )
            .execution_options(synchronize_session=False)
        )
        result = await self.session.execute(stmt)
        return result.all()
