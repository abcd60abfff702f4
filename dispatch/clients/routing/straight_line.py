"""Straight-line routing used when no directions API key is configured."""
from __future__ import annotations

from typing import List, Sequence

from dispatch.clients.routing.base import BaseRoutingClient, CalculatedRoute, RouteLeg, RouteStep
from dispatch.config.routing import RoutingConfig
from dispatch.domain.geo import haversine_m
from dispatch.domain.types import LatLng


class StraightLineRoutingClient(BaseRoutingClient):
    """One step per leg, great-circle distance at a fixed average speed."""

    def __init__(self, average_speed_kmh: float = 25.0) -> None:
        self._speed_mps = average_speed_kmh * 1000.0 / 3600.0

    @property
    def provider(self) -> str:
        return "straight_line"

    async def directions(
        self,
        origin: LatLng,
        destination: LatLng,
        waypoints: Sequence[LatLng] = (),
    ) -> CalculatedRoute:
        stops = [origin, *waypoints, destination]
        legs: List[RouteLeg] = []
        for start, end in zip(stops, stops[1:]):
            distance = haversine_m(start.lat, start.lng, end.lat, end.lng)
            duration = distance / self._speed_mps
            step = RouteStep(
                start=start,
                end=end,
                distance_m=distance,
                duration_s=duration,
                instruction="Head to destination",
            )
            legs.append(RouteLeg(distance_m=distance, duration_s=duration, steps=[step]))
        return CalculatedRoute(
            legs=legs,
            overview_polyline=None,
            total_distance_m=sum(leg.distance_m for leg in legs),
            total_duration_s=sum(leg.duration_s for leg in legs),
            waypoint_order=list(range(len(waypoints))),
        )


def straight_line_builder(config: RoutingConfig) -> StraightLineRoutingClient:
    return StraightLineRoutingClient(config.average_speed_kmh)
