"""Route and navigation-session repositories."""
from __future__ import annotations

from typing import Any, List, Optional
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.orm import selectinload

from dispatch.infra.database.models.navigation import NavigationSession, Route, RouteSegment
from dispatch.infra.database.repositories.base import BaseRepository


class RouteRepository(BaseRepository[Route]):
    model = Route

    async def create_with_segments(self, data: dict[str, Any], segments: List[dict[str, Any]]) -> Route:
        route = Route(**data)
        route.segments = [RouteSegment(segment_index=i, **seg) for i, seg in enumerate(segments)]
        self.session.add(route)
        await self.session.flush()
        await self.session.refresh(route, attribute_names=["segments"])
        return route

    async def get_with_segments(self, id: UUID) -> Optional[Route]:
        stmt = select(Route).where(Route.id == id).options(selectinload(Route.segments))
        result = await self.session.execute(stmt)
        return result.scalar_one_or_none()


class NavigationSessionRepository(BaseRepository[NavigationSession]):
    model = NavigationSession

    async def list_active(self, *, delivery_user_id: Optional[UUID] = None) -> List[NavigationSession]:
        stmt = select(NavigationSession).where(NavigationSession.is_active.is_(True))
        if delivery_user_id is not None:
            stmt = stmt.where(NavigationSession.delivery_user_id == delivery_user_id)
        result = await self.session.execute(stmt)
        return list(result.scalars().all())
