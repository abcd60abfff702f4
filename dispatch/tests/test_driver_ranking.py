"""Unit tests for driver scoring and ranking."""
from __future__ import annotations

import unittest
from types import SimpleNamespace
from uuid import uuid4

from dispatch.domain.geo import distance_to_segment_m, haversine_km, haversine_m
from dispatch.domain.types import LatLng
from dispatch.services.driver_ranking import priority_score, rank_drivers

ORIGIN = LatLng(41.0082, 28.9784)


def _candidate(lat=41.0082, lng=28.9784, *, available=True, count=0, max_count=3, rating=None, name="Ali"):
    driver_id = uuid4()
    availability = SimpleNamespace(
        delivery_user_id=driver_id,
        is_available=available,
        current_delivery_count=count,
        max_concurrent_deliveries=max_count,
        current_latitude=lat,
        current_longitude=lng,
    )
    driver = SimpleNamespace(id=driver_id, first_name=name, last_name="Driver", average_rating=rating)
    return availability, driver


class TestPriorityScore(unittest.TestCase):
    def test_perfect_driver(self):
        self.assertEqual(priority_score(0.0, 15.0, 5.0, 0, 3), 100.0)

    def test_unrated_driver_gets_neutral_rating(self):
        self.assertEqual(priority_score(0.0, 15.0, None, 0, 3), 87.5)

    def test_edge_of_radius_and_full_load(self):
        self.assertEqual(priority_score(15.0, 15.0, 0.0, 3, 3), 0.0)

    def test_rounded_to_two_places(self):
        score = priority_score(5.0, 15.0, 4.2, 1, 3)
        self.assertEqual(score, round(score, 2))
        self.assertAlmostEqual(score, 40.0 + 21.0 + 10.0, places=2)


class TestRankDrivers(unittest.TestCase):
    def test_filters_unavailable_full_and_unlocated(self):
        good = _candidate()
        candidates = [
            good,
            _candidate(available=False),
            _candidate(count=3, max_count=3),
            _candidate(lat=None, lng=None),
        ]
        ranked = rank_drivers(candidates, ORIGIN, 15.0, 10)
        self.assertEqual([d.delivery_user_id for d in ranked], [good[0].delivery_user_id])

    def test_filters_outside_radius(self):
        far = _candidate(lat=41.5, lng=28.9784)  # ~55 km north
        self.assertEqual(rank_drivers([far], ORIGIN, 15.0, 10), [])

    def test_sorted_by_score_then_distance(self):
        near_rated = _candidate(lat=41.0100, rating=5.0, name="A")
        near_unrated = _candidate(lat=41.0100, rating=None, name="B")
        far_rated = _candidate(lat=41.0800, rating=5.0, name="C")
        ranked = rank_drivers([far_rated, near_unrated, near_rated], ORIGIN, 15.0, 10)
        self.assertEqual([d.first_name for d in ranked], ["A", "B", "C"])
        scores = [d.priority_score for d in ranked]
        self.assertEqual(scores, sorted(scores, reverse=True))

    def test_limit(self):
        candidates = [_candidate(lat=41.0082 + i * 0.001) for i in range(5)]
        self.assertEqual(len(rank_drivers(candidates, ORIGIN, 15.0, 2)), 2)


class TestGeo(unittest.TestCase):
    def test_zero_distance(self):
        self.assertEqual(haversine_m(41.0, 29.0, 41.0, 29.0), 0.0)

    def test_one_degree_latitude(self):
        self.assertAlmostEqual(haversine_km(0.0, 0.0, 1.0, 0.0), 111.19, places=1)

    def test_distance_to_segment(self):
        # Point ~111 m north of an east-west segment along the equator
        d = distance_to_segment_m(0.001, 0.0005, 0.0, 0.0, 0.0, 0.001)
        self.assertAlmostEqual(d, 111.19, delta=0.5)

    def test_distance_to_segment_beyond_end(self):
        d = distance_to_segment_m(0.0, 0.002, 0.0, 0.0, 0.0, 0.001)
        self.assertAlmostEqual(d, haversine_m(0.0, 0.002, 0.0, 0.001), delta=0.5)


if __name__ == "__main__":
    unittest.main()
