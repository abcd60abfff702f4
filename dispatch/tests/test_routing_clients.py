"""Tests for the routing providers, the registry and route ETA estimates."""
from __future__ import annotations

import asyncio
import copy
import unittest
from datetime import datetime, timezone
from types import SimpleNamespace
from unittest.mock import AsyncMock, MagicMock, patch
from uuid import uuid4

import httpx

from dispatch.clients.routing import (
    GoogleDirectionsClient,
    RoutingProviderError,
    StraightLineRoutingClient,
    build_routing_client,
)
from dispatch.config.routing import RoutingConfig
from dispatch.core.exceptions import NotFoundError, RemoteCallError
from dispatch.domain.types import LatLng
from dispatch.services.routing_service import RoutingService


def _run(coro):
    return asyncio.run(coro)


ORIGIN = LatLng(41.0, 29.0)
DEST = LatLng(41.01, 29.0)

GOOGLE_OK = {
    "status": "OK",
    "routes": [{
        "overview_polyline": {"points": "abc"},
        "waypoint_order": [0],
        "legs": [{
            "distance": {"value": 1200},
            "duration": {"value": 300},
            "duration_in_traffic": {"value": 420},
            "steps": [
                {
                    "start_location": {"lat": 41.0, "lng": 29.0},
                    "end_location": {"lat": 41.005, "lng": 29.0},
                    "distance": {"value": 600},
                    "duration": {"value": 150},
                    "html_instructions": "Head <b>north</b> on <div>Main St</div>",
                    "polyline": {"points": "p1"},
                },
                {
                    "start_location": {"lat": 41.005, "lng": 29.0},
                    "end_location": {"lat": 41.01, "lng": 29.0},
                    "distance": {"value": 600},
                    "duration": {"value": 150},
                    "html_instructions": "Turn <b>left</b>",
                    "maneuver": "turn-left",
                },
            ],
        }],
    }],
}


def _google(handler) -> GoogleDirectionsClient:
    client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    return GoogleDirectionsClient("test-key", client=client)


class TestGoogleDirectionsClient(unittest.TestCase):
    def test_parses_route_and_prefers_traffic_duration(self):
        seen = {}

        def handler(request: httpx.Request) -> httpx.Response:
            seen.update(dict(request.url.params))
            return httpx.Response(200, json=GOOGLE_OK)

        route = _run(_google(handler).directions(ORIGIN, DEST, [LatLng(41.002, 29.001)]))

        self.assertEqual(route.total_distance_m, 1200.0)
        self.assertEqual(route.total_duration_s, 420.0)
        self.assertEqual(route.overview_polyline, "abc")
        self.assertEqual(route.waypoint_order, [0])
        self.assertEqual(len(route.steps), 2)
        self.assertEqual(route.steps[0].instruction, "Head north on Main St")
        self.assertEqual(route.steps[1].maneuver, "turn-left")

        self.assertEqual(seen["mode"], "driving")
        self.assertEqual(seen["departure_time"], "now")
        self.assertEqual(seen["traffic_model"], "best_guess")
        self.assertEqual(seen["key"], "test-key")
        self.assertTrue(seen["waypoints"].startswith("optimize:true|"))

    def test_non_ok_status_raises(self):
        def handler(request):
            return httpx.Response(200, json={"status": "ZERO_RESULTS", "routes": []})

        with self.assertRaises(RoutingProviderError) as ctx:
            _run(_google(handler).directions(ORIGIN, DEST))
        self.assertEqual(ctx.exception.details["status"], "ZERO_RESULTS")
        self.assertIsInstance(ctx.exception, RemoteCallError)
        self.assertEqual(ctx.exception.http_status, 502)

    def test_http_error_raises(self):
        def handler(request):
            return httpx.Response(500, text="boom")

        with self.assertRaises(RoutingProviderError):
            _run(_google(handler).directions(ORIGIN, DEST))

    def test_transport_error_raises(self):
        def handler(request):
            raise httpx.ConnectError("unreachable", request=request)

        with self.assertRaises(RoutingProviderError):
            _run(_google(handler).directions(ORIGIN, DEST))

    def test_step_without_location_raises(self):
        broken = copy.deepcopy(GOOGLE_OK)
        del broken["routes"][0]["legs"][0]["steps"][1]["start_location"]

        def handler(request):
            return httpx.Response(200, json=broken)

        with self.assertRaises(RoutingProviderError) as ctx:
            _run(_google(handler).directions(ORIGIN, DEST))
        self.assertIsInstance(ctx.exception.cause, KeyError)

    def test_non_object_body_raises(self):
        for body in ([GOOGLE_OK], "OK", {"status": "OK", "routes": ["not-a-route"]}):
            with self.subTest(body=body):
                def handler(request, body=body):
                    return httpx.Response(200, json=body)

                with self.assertRaises(RoutingProviderError):
                    _run(_google(handler).directions(ORIGIN, DEST))


class TestStraightLineClient(unittest.TestCase):
    def test_single_leg(self):
        client = StraightLineRoutingClient(average_speed_kmh=36.0)  # 10 m/s
        route = _run(client.directions(ORIGIN, DEST))
        self.assertEqual(client.provider, "straight_line")
        self.assertEqual(len(route.legs), 1)
        self.assertAlmostEqual(route.total_distance_m, 1111.95, delta=1.0)
        self.assertAlmostEqual(route.total_duration_s, route.total_distance_m / 10.0, places=3)

    def test_waypoints_make_legs(self):
        route = _run(StraightLineRoutingClient().directions(ORIGIN, DEST, [LatLng(41.005, 29.0)]))
        self.assertEqual(len(route.legs), 2)
        self.assertEqual(route.waypoint_order, [0])


class TestRoutingServiceEta(unittest.TestCase):
    def _service(self, client):
        route = SimpleNamespace(
            id=uuid4(), destination_latitude=DEST.lat, destination_longitude=DEST.lng, delivery_assignment_id=None,
        )
        svc = RoutingService(MagicMock(), client)
        svc._repo = SimpleNamespace(get_with_segments=AsyncMock(side_effect=lambda id: route if id == route.id else None))
        return svc, route

    def test_eta_from_current_position(self):
        now = datetime(2026, 3, 1, 12, 0, tzinfo=timezone.utc)
        svc, route = self._service(StraightLineRoutingClient(average_speed_kmh=36.0))

        with patch("dispatch.services.routing_service.utcnow", return_value=now):
            eta = _run(svc.estimate_eta(route.id, ORIGIN))

        self.assertAlmostEqual((eta - now).total_seconds(), 111.195, delta=0.5)

    def test_unknown_route(self):
        svc, _ = self._service(StraightLineRoutingClient())
        with self.assertRaises(NotFoundError):
            _run(svc.estimate_eta(uuid4(), ORIGIN))


class TestRegistry(unittest.TestCase):
    def test_builds_straight_line(self):
        client = build_routing_client(RoutingConfig(provider="straight_line"))
        self.assertIsInstance(client, StraightLineRoutingClient)

    def test_builds_google(self):
        client = build_routing_client(RoutingConfig(provider="google", api_key="k"))
        self.assertIsInstance(client, GoogleDirectionsClient)
        _run(client.aclose())


if __name__ == "__main__":
    unittest.main()
