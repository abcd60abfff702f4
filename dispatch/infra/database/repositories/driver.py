"""Driver availability repository (capacity counters and last known location)."""
from __future__ import annotations

from typing import Any, Iterable, Optional, Sequence
from uuid import UUID

from sqlalchemy import Row, func, select, update

from dispatch.infra.database.models.driver import DeliveryUser, DriverAvailability
from dispatch.infra.database.repositories.base import BaseRepository


class DriverRepository(BaseRepository[DriverAvailability]):
    """Keyed by ``delivery_user_id``."""

    model = DriverAvailability

    async def get_driver(self, delivery_user_id: UUID) -> Optional[DeliveryUser]:
        return await self.session.get(DeliveryUser, delivery_user_id)

    async def increment_delivery_count(self, delivery_user_id: UUID) -> Optional[DriverAvailability]:
        """Take one slot; None when the driver is unavailable or already full."""
        stmt = (
            update(DriverAvailability)
            .where(
                DriverAvailability.delivery_user_id == delivery_user_id,
                DriverAvailability.is_available.is_(True),
                DriverAvailability.current_delivery_count < DriverAvailability.max_concurrent_deliveries,
            )
            .values(current_delivery_count=DriverAvailability.current_delivery_count + 1)
            .returning(DriverAvailability)
            .execution_options(synchronize_session="fetch")
        )
        result = await self.session.execute(stmt)
        return result.scalar_one_or_none()

    async def decrement_delivery_count(self, delivery_user_id: UUID) -> None:
        """Release one slot, never going below zero."""
        stmt = (
            update(DriverAvailability)
            .where(DriverAvailability.delivery_user_id == delivery_user_id)
            .values(
                current_delivery_count=func.greatest(DriverAvailability.current_delivery_count - 1, 0)
            )
            .execution_options(synchronize_session="fetch")
        )
        await self.session.execute(stmt)

    async def list_candidates(self, *, exclude: Iterable[UUID] = ()) -> Sequence[Row]:
        """Available drivers with free capacity and a known location, joined with their profile."""
        stmt = (
            select(DriverAvailability, DeliveryUser)
            .join(DeliveryUser, DeliveryUser.id == DriverAvailability.delivery_user_id)
            .where(
                DriverAvailability.is_available.is_(True),
                DriverAvailability.current_delivery_count < DriverAvailability.max_concurrent_deliveries,
                DriverAvailability.current_latitude.is_not(None),
                DriverAvailability.current_longitude.is_not(None),
            )
        )
        excluded = list(exclude)
        if excluded:
            stmt = stmt.where(DriverAvailability.delivery_user_id.not_in(excluded))
        result = await self.session.execute(stmt)
        return result.all()

    async def upsert_availability(self, delivery_user_id: UUID, values: dict[str, Any]) -> DriverAvailability:
        instance = await self.get_by_id(delivery_user_id)
        if instance is None:
            return await self.create({"delivery_user_id": delivery_user_id, **values})
        for attr, value in values.items():
            setattr(instance, attr, value)
        await self.session.flush()
        await self.session.refresh(instance)
        return instance
