from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import List, Optional, Sequence

from dispatch.core.exceptions import RemoteCallError, exception_factory
from dispatch.domain.types import LatLng

RoutingProviderError = exception_factory(
    "RoutingProviderError",
    code="ROUTING_PROVIDER_ERROR",
    http_status=502,
    base=RemoteCallError,
)


@dataclass
class RouteStep:
    start: LatLng
    end: LatLng
    distance_m: float
    duration_s: float
    instruction: Optional[str] = None
    maneuver: Optional[str] = None
    polyline: Optional[str] = None


@dataclass
class RouteLeg:
    distance_m: float
    duration_s: float
    # Traffic-aware duration when the provider reports one
    duration_in_traffic_s: Optional[float] = None
    steps: List[RouteStep] = field(default_factory=list)

    @property
    def effective_duration_s(self) -> float:
        if self.duration_in_traffic_s is not None:
            return self.duration_in_traffic_s
        return self.duration_s


@dataclass
class CalculatedRoute:
    legs: List[RouteLeg]
    overview_polyline: Optional[str]
    total_distance_m: float
    total_duration_s: float
    waypoint_order: List[int] = field(default_factory=list)

    @property
    def steps(self) -> List[RouteStep]:
        return [step for leg in self.legs for step in leg.steps]


class BaseRoutingClient(ABC):
    @property
    @abstractmethod
    def provider(self) -> str:
        ...

    @abstractmethod
    async def directions(
        self,
        origin: LatLng,
        destination: LatLng,
        waypoints: Sequence[LatLng] = (),
    ) -> CalculatedRoute:
        """Driving route from origin to destination. Raises RoutingProviderError."""

    async def aclose(self) -> None:
        """Release network resources. Default: nothing to release."""
        return None
