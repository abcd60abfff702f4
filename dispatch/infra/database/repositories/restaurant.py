"""Restaurant repository."""
from __future__ import annotations

from typing import List, Optional
from uuid import UUID

from sqlalchemy import select

from dispatch.infra.database.models.restaurant import Restaurant
from dispatch.infra.database.repositories.base import BaseRepository


class RestaurantRepository(BaseRepository[Restaurant]):
    model = Restaurant

    async def get_owner_id(self, id: UUID) -> Optional[UUID]:
        stmt = select(Restaurant.owner_user_id).where(Restaurant.id == id)
        result = await self.session.execute(stmt)
        return result.scalar_one_or_none()

    async def list_active_with_location(self) -> List[Restaurant]:
        stmt = select(Restaurant).where(
            Restaurant.is_active.is_(True),
            Restaurant.latitude.is_not(None),
            Restaurant.longitude.is_not(None),
        )
        result = await self.session.execute(stmt)
        return list(result.scalars().all())
