"""
Driver ranking for delivery assignment.

Each candidate gets a priority score in [0, 100]; higher is better:

    distance  60 points  (1 - distance / max_distance)
    rating    25 points  (average_rating / 5, neutral 0.5 when unrated)
    load      15 points  (1 - current / max concurrent deliveries)

Candidates outside the radius, unavailable, full, or without a location are
dropped.
"""
from __future__ import annotations

from typing import Any, Iterable, List, Tuple

from dispatch.domain.geo import haversine_km
from dispatch.domain.types import AvailableDriver, LatLng

DISTANCE_WEIGHT = 60.0
RATING_WEIGHT = 25.0
LOAD_WEIGHT = 15.0
MAX_RATING = 5.0


def priority_score(
    distance_km: float,
    max_distance_km: float,
    average_rating: float | None,
    current_count: int,
    max_count: int,
) -> float:
    distance_part = max(0.0, 1.0 - distance_km / max_distance_km) if max_distance_km > 0 else 0.0
    rating_part = 0.5 if average_rating is None else max(0.0, min(1.0, average_rating / MAX_RATING))
    load_part = max(0.0, 1.0 - current_count / max_count) if max_count > 0 else 0.0
    score = distance_part * DISTANCE_WEIGHT + rating_part * RATING_WEIGHT + load_part * LOAD_WEIGHT
    return round(score, 2)


def rank_drivers(
    candidates: Iterable[Tuple[Any, Any]],
    origin: LatLng,
    max_distance_km: float,
    limit: int,
) -> List[AvailableDriver]:
    """
    Rank ``(availability, driver)`` pairs around *origin*.

    Sorted by descending score; ties go to the closer driver.
    """
    ranked: List[AvailableDriver] = []
    for availability, driver in candidates:
        if not availability.is_available:
            continue
        if availability.current_delivery_count >= availability.max_concurrent_deliveries:
            continue
        lat, lng = availability.current_latitude, availability.current_longitude
        if lat is None or lng is None:
            continue
        distance = haversine_km(origin.lat, origin.lng, lat, lng)
        if distance > max_distance_km:
            continue
        rating = getattr(driver, "average_rating", None)
        ranked.append(AvailableDriver(
            delivery_user_id=availability.delivery_user_id,
            distance_km=round(distance, 3),
            priority_score=priority_score(
                distance,
                max_distance_km,
                rating,
                availability.current_delivery_count,
                availability.max_concurrent_deliveries,
            ),
            current_delivery_count=availability.current_delivery_count,
            max_concurrent_deliveries=availability.max_concurrent_deliveries,
            average_rating=rating,
            first_name=getattr(driver, "first_name", None),
            last_name=getattr(driver, "last_name", None),
            latitude=lat,
            longitude=lng,
        ))
    ranked.sort(key=lambda d: (-d.priority_score, d.distance_km))
    return ranked[:limit]
