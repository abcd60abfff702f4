"""Google Directions provider over httpx."""
from __future__ import annotations

import logging
import re
from typing import Any, Dict, List, Optional, Sequence

import httpx

from dispatch.clients.routing.base import (
    BaseRoutingClient,
    CalculatedRoute,
    RouteLeg,
    RouteStep,
    RoutingProviderError,
)
from dispatch.config.routing import GOOGLE_DIRECTIONS_URL, RoutingConfig
from dispatch.domain.types import LatLng

logger = logging.getLogger(__name__)

_TAG_RE = re.compile(r"<[^>]+>")


def _fmt(point: LatLng) -> str:
    return f"{point.lat},{point.lng}"


def _strip_html(text: Optional[str]) -> Optional[str]:
    if text is None:
        return None
    return " ".join(_TAG_RE.sub(" ", text).split())


def _value(obj: Optional[Dict[str, Any]]) -> Optional[float]:
    if not obj or obj.get("value") is None:
        return None
    return float(obj["value"])


def _point(obj: Dict[str, Any]) -> LatLng:
    return LatLng(float(obj["lat"]), float(obj["lng"]))


class GoogleDirectionsClient(BaseRoutingClient):
    """Traffic-aware driving directions with waypoint optimisation."""

    def __init__(
        self,
        api_key: str,
        *,
        base_url: str = GOOGLE_DIRECTIONS_URL,
        timeout: float = 10.0,
        client: Optional[httpx.AsyncClient] = None,
    ) -> None:
        self._api_key = api_key
        self._base_url = base_url
        self._owns_client = client is None
        self._client = client or httpx.AsyncClient(timeout=timeout)

    @property
    def provider(self) -> str:
        return "google"

    def _params(self, origin: LatLng, destination: LatLng, waypoints: Sequence[LatLng]) -> Dict[str, str]:
        params = {
            "origin": _fmt(origin),
            "destination": _fmt(destination),
            "mode": "driving",
            "departure_time": "now",
            "traffic_model": "best_guess",
            "alternatives": "false",
            "key": self._api_key,
        }
        if waypoints:
            params["waypoints"] = "optimize:true|" + "|".join(_fmt(w) for w in waypoints)
        return params

    async def directions(
        self,
        origin: LatLng,
        destination: LatLng,
        waypoints: Sequence[LatLng] = (),
    ) -> CalculatedRoute:
        try:
            resp = await self._client.get(self._base_url, params=self._params(origin, destination, waypoints))
            resp.raise_for_status()
            data = resp.json()
        except (httpx.HTTPError, ValueError) as exc:
            logger.warning("Directions request failed: %s", exc)
            raise RoutingProviderError("Directions request failed", cause=exc) from exc

        if not isinstance(data, dict):
            raise RoutingProviderError(
                "Directions API returned a non-object body", details={"body_type": type(data).__name__},
            )
        status = data.get("status")
        routes = data.get("routes") or []
        if status != "OK" or not routes:
            raise RoutingProviderError(
                f"Directions API returned {status}",
                details={"status": status, "error_message": data.get("error_message")},
            )
        try:
            return self._parse_route(routes[0])
        except (KeyError, TypeError, ValueError, AttributeError) as exc:
            logger.warning("Malformed directions response: %r", exc)
            raise RoutingProviderError("Malformed directions response", cause=exc) from exc

    @staticmethod
    def _parse_route(raw: Dict[str, Any]) -> CalculatedRoute:
        legs: List[RouteLeg] = []
        for raw_leg in raw.get("legs", []):
            steps = [
                RouteStep(
                    start=_point(s["start_location"]),
                    end=_point(s["end_location"]),
                    distance_m=_value(s.get("distance")) or 0.0,
                    duration_s=_value(s.get("duration")) or 0.0,
                    instruction=_strip_html(s.get("html_instructions")),
                    maneuver=s.get("maneuver"),
                    polyline=(s.get("polyline") or {}).get("points"),
                )
                for s in raw_leg.get("steps", [])
            ]
            legs.append(RouteLeg(
                distance_m=_value(raw_leg.get("distance")) or 0.0,
                duration_s=_value(raw_leg.get("duration")) or 0.0,
                duration_in_traffic_s=_value(raw_leg.get("duration_in_traffic")),
                steps=steps,
            ))
        return CalculatedRoute(
            legs=legs,
            overview_polyline=(raw.get("overview_polyline") or {}).get("points"),
            total_distance_m=sum(leg.distance_m for leg in legs),
            total_duration_s=sum(leg.effective_duration_s for leg in legs),
            waypoint_order=list(raw.get("waypoint_order") or []),
        )

    async def aclose(self) -> None:
        if self._owns_client:
            await self._client.aclose()


def google_builder(config: RoutingConfig) -> GoogleDirectionsClient:
    return GoogleDirectionsClient(
        config.api_key or "",
        base_url=config.base_url,
        timeout=config.timeout,
    )
