"""RoutingService: compute routes through the provider and store them with their segments."""
from __future__ import annotations

import logging
from datetime import datetime, timedelta
from typing import Optional, Sequence
from uuid import UUID

from sqlalchemy.ext.asyncio import AsyncSession

from dispatch.clients.routing.base import BaseRoutingClient, CalculatedRoute
from dispatch.core.exceptions import NotFoundError
from dispatch.domain.clock import utcnow
from dispatch.domain.types import LatLng
from dispatch.infra.database.models.navigation import Route
from dispatch.infra.database.repositories.navigation import RouteRepository

logger = logging.getLogger(__name__)


class RoutingService:
    def __init__(self, session: AsyncSession, client: BaseRoutingClient) -> None:
        self._client = client
        self._repo = RouteRepository(session)

    async def calculate_route(
        self,
        origin: LatLng,
        destination: LatLng,
        waypoints: Sequence[LatLng] = (),
        *,
        assignment_id: Optional[UUID] = None,
    ) -> Route:
        """Ask the provider for a route and persist it. RoutingProviderError propagates."""
        calculated = await self._client.directions(origin, destination, waypoints)
        route = await self._store(calculated, origin, destination, waypoints, assignment_id)
        logger.info(
            "Route %s stored: %.0f m, %.0f s, %d segment(s)",
            route.id, route.total_distance_m, route.total_duration_s, len(route.segments),
            extra={"route_id": str(route.id)},
        )
        return route

    async def recalculate_route(
        self,
        route_id: UUID,
        current_location: LatLng,
        assignment_id: Optional[UUID] = None,
    ) -> Route:
        """Re-plan from *current_location* to the original destination of *route_id*."""
        original = await self.get_route(route_id)
        destination = LatLng(original.destination_latitude, original.destination_longitude)
        return await self.calculate_route(
            current_location,
            destination,
            assignment_id=assignment_id or original.delivery_assignment_id,
        )

    async def estimate_eta(self, route_id: UUID, current_location: LatLng) -> datetime:
        """Traffic-aware arrival time from *current_location* to the route's destination."""
        route = await self.get_route(route_id)
        destination = LatLng(route.destination_latitude, route.destination_longitude)
        calculated = await self._client.directions(current_location, destination)
        return utcnow() + timedelta(seconds=calculated.total_duration_s)

    async def get_route(self, route_id: UUID) -> Route:
        route = await self._repo.get_with_segments(route_id)
        if route is None:
            raise NotFoundError("Route not found", details={"route_id": str(route_id)})
        return route

    async def _store(
        self,
        calculated: CalculatedRoute,
        origin: LatLng,
        destination: LatLng,
        waypoints: Sequence[LatLng],
        assignment_id: Optional[UUID],
    ) -> Route:
        segments = [
            {
                "start_latitude": step.start.lat,
                "start_longitude": step.start.lng,
                "end_latitude": step.end.lat,
                "end_longitude": step.end.lng,
                "distance_m": step.distance_m,
                "duration_s": step.duration_s,
                "instruction": step.instruction,
                "maneuver": step.maneuver,
                "polyline": step.polyline,
            }
            for step in calculated.steps
        ]
        return await self._repo.create_with_segments(
            {
                "delivery_assignment_id": assignment_id,
                "origin_latitude": origin.lat,
                "origin_longitude": origin.lng,
                "destination_latitude": destination.lat,
                "destination_longitude": destination.lng,
                "waypoints": [list(w) for w in waypoints] or None,
                "waypoint_order": calculated.waypoint_order or None,
                "overview_polyline": calculated.overview_polyline,
                "total_distance_m": calculated.total_distance_m,
                "total_duration_s": calculated.total_duration_s,
                "provider": self._client.provider,
            },
            segments,
        )
