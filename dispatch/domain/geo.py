"""Great-circle helpers used by driver ranking and navigation."""
from __future__ import annotations

import math

EARTH_RADIUS_M = 6_371_000.0


def haversine_m(lat1: float, lng1: float, lat2: float, lng2: float) -> float:
    """Distance in meters between two WGS84 points."""
    phi1, phi2 = math.radians(lat1), math.radians(lat2)
    dphi = math.radians(lat2 - lat1)
    dlmb = math.radians(lng2 - lng1)
    a = math.sin(dphi / 2) ** 2 + math.cos(phi1) * math.cos(phi2) * math.sin(dlmb / 2) ** 2
    return 2 * EARTH_RADIUS_M * math.asin(min(1.0, math.sqrt(a)))


def haversine_km(lat1: float, lng1: float, lat2: float, lng2: float) -> float:
    return haversine_m(lat1, lng1, lat2, lng2) / 1000.0


def distance_to_segment_m(
    lat: float,
    lng: float,
    start_lat: float,
    start_lng: float,
    end_lat: float,
    end_lng: float,
) -> float:
    """
    Distance in meters from a point to the segment start→end.

    Uses an equirectangular projection around the point, which is accurate
    enough for the few-hundred-meter segments of a driving route.
    """
    cos_lat = math.cos(math.radians(lat))

    def _xy(p_lat: float, p_lng: float) -> tuple[float, float]:
        x = math.radians(p_lng - lng) * cos_lat * EARTH_RADIUS_M
        y = math.radians(p_lat - lat) * EARTH_RADIUS_M
        return x, y

    ax, ay = _xy(start_lat, start_lng)
    bx, by = _xy(end_lat, end_lng)
    dx, dy = bx - ax, by - ay
    seg_len_sq = dx * dx + dy * dy
    if seg_len_sq == 0:
        return math.hypot(ax, ay)
    # Project the origin (the point itself) onto the segment.
    t = max(0.0, min(1.0, -(ax * dx + ay * dy) / seg_len_sq))
    px, py = ax + t * dx, ay + t * dy
    return math.hypot(px, py)
