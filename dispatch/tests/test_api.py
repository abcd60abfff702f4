"""HTTP behaviour of the dispatch API: error mapping, API key gate, navigation routes.

The lifespan is never entered (TestClient is used without a context manager),
so no database or routing provider is needed; services are patched per test.
"""
from __future__ import annotations

import unittest
from datetime import datetime, timezone
from types import SimpleNamespace
from unittest.mock import AsyncMock, MagicMock, patch
from uuid import uuid4

from fastapi.testclient import TestClient
from sqlalchemy.exc import OperationalError

from dispatch.api import dependencies
from dispatch.api.main import app
from dispatch.core.exceptions import InvalidTransitionError, NotFoundError
from dispatch.domain.types import CurrentStep, LatLng, NavigationUpdate, Progress


async def _fake_session():
    yield MagicMock()


def _session_row(session_id, **kwargs):
    row = {
        "id": session_id,
        "route_id": uuid4(),
        "delivery_user_id": uuid4(),
        "assignment_id": None,
        "current_step_index": 0,
        "distance_remaining_m": 1200.0,
        "time_remaining_s": 180.0,
        "eta": datetime(2026, 3, 1, 12, 3, tzinfo=timezone.utc),
        "off_route": False,
        "reroute_count": 0,
        "is_active": True,
        "started_at": datetime(2026, 3, 1, 12, 0, tzinfo=timezone.utc),
        "completed_at": None,
    }
    row.update(kwargs)
    return SimpleNamespace(**row)


class ApiTestCase(unittest.TestCase):
    def setUp(self):
        self.navigation = MagicMock()
        app.dependency_overrides[dependencies.get_session] = _fake_session
        app.dependency_overrides[dependencies.get_navigation_service] = lambda: self.navigation
        self.client = TestClient(app)

    def tearDown(self):
        app.dependency_overrides.clear()


class TestHealth(ApiTestCase):
    def test_health(self):
        resp = self.client.get("/health")
        self.assertEqual(resp.status_code, 200)
        self.assertEqual(resp.json(), {"status": "ok"})


class TestErrorMapping(ApiTestCase):
    def test_invalid_transition_is_409(self):
        order_id = uuid4()
        error = InvalidTransitionError(
            "Order cannot move from 'preparing' to 'delivered'",
            details={"from": "preparing", "to": "delivered", "allowed": ["ready_for_pickup"]},
        )
        with patch("dispatch.api.routers.orders.OrderService") as cls:
            cls.return_value.update_status = AsyncMock(side_effect=error)
            resp = self.client.patch(f"/api/v1/orders/{order_id}/status", json={"status": "delivered"})

        self.assertEqual(resp.status_code, 409)
        body = resp.json()
        self.assertEqual(body["code"], "INVALID_TRANSITION")
        self.assertEqual(body["details"]["allowed"], ["ready_for_pickup"])
        cls.return_value.update_status.assert_awaited_once_with(order_id, "delivered", restaurant_id=None)

    def test_not_found_is_404(self):
        with patch("dispatch.api.routers.orders.OrderService") as cls:
            cls.return_value.get_order = AsyncMock(side_effect=NotFoundError("Order not found"))
            resp = self.client.get(f"/api/v1/orders/{uuid4()}")

        self.assertEqual(resp.status_code, 404)
        self.assertEqual(resp.json()["detail"], "Order not found")

    def test_database_error_is_502(self):
        with patch("dispatch.api.routers.orders.OrderService") as cls:
            cls.return_value.list_orders = AsyncMock(
                side_effect=OperationalError("SELECT 1", {}, Exception("connection reset")),
            )
            resp = self.client.get("/api/v1/orders")

        self.assertEqual(resp.status_code, 502)
        self.assertEqual(resp.json()["code"], "REMOTE_CALL_FAILED")

    def test_bad_uuid_is_422(self):
        resp = self.client.get("/api/v1/orders/not-a-uuid")
        self.assertEqual(resp.status_code, 422)


class TestApiKey(ApiTestCase):
    def test_missing_key_rejected(self):
        with patch("dispatch.api.main._ADMIN_API_KEY", "s3cret"):
            resp = self.client.get(f"/api/v1/navigation/sessions/{uuid4()}")
        self.assertEqual(resp.status_code, 401)
        self.assertEqual(resp.json()["code"], "UNAUTHORIZED")

    def test_valid_key_passes(self):
        session_id = uuid4()
        self.navigation.get_session = AsyncMock(return_value=_session_row(session_id))
        with patch("dispatch.api.main._ADMIN_API_KEY", "s3cret"):
            resp = self.client.get(
                f"/api/v1/navigation/sessions/{session_id}", headers={"X-Api-Key": "s3cret"},
            )
        self.assertEqual(resp.status_code, 200)

    def test_health_is_open(self):
        with patch("dispatch.api.main._ADMIN_API_KEY", "s3cret"):
            self.assertEqual(self.client.get("/health").status_code, 200)


class TestNavigationRoutes(ApiTestCase):
    def test_start_session(self):
        session_id = uuid4()
        route_id = uuid4()
        driver_id = uuid4()
        self.navigation.start_navigation = AsyncMock(
            return_value=_session_row(session_id, route_id=route_id, delivery_user_id=driver_id),
        )

        resp = self.client.post(
            "/api/v1/navigation/sessions",
            json={"route_id": str(route_id), "delivery_user_id": str(driver_id)},
        )

        self.assertEqual(resp.status_code, 201)
        self.assertEqual(resp.json()["id"], str(session_id))
        self.navigation.start_navigation.assert_awaited_once_with(route_id, driver_id, None)

    def test_location_update(self):
        session_id = uuid4()
        self.navigation.update_location = AsyncMock(return_value=NavigationUpdate(
            session_id=session_id,
            route_id=uuid4(),
            current_step=CurrentStep(index=1, instruction="Turn left", distance_to_step_m=120.0),
            progress=Progress(
                percent=45.0, distance_remaining_m=600.0, time_remaining_s=90.0, total_distance_m=1100.0,
            ),
            eta=datetime(2026, 3, 1, 12, 2, tzinfo=timezone.utc),
            off_route=False,
            reroute_count=0,
            rerouted=False,
        ))

        resp = self.client.post(
            f"/api/v1/navigation/sessions/{session_id}/location",
            json={"latitude": 41.01, "longitude": 28.97},
        )

        self.assertEqual(resp.status_code, 200)
        body = resp.json()
        self.assertEqual(body["current_step"]["instruction"], "Turn left")
        self.assertEqual(body["progress"]["percent"], 45.0)
        self.navigation.update_location.assert_awaited_once_with(session_id, 41.01, 28.97)

    def test_location_out_of_range(self):
        resp = self.client.post(
            f"/api/v1/navigation/sessions/{uuid4()}/location",
            json={"latitude": 91.0, "longitude": 28.97},
        )
        self.assertEqual(resp.status_code, 422)

    def test_route_eta(self):
        route_id = uuid4()
        eta = datetime(2026, 3, 1, 12, 7, tzinfo=timezone.utc)
        app.dependency_overrides[dependencies.get_routing_client] = lambda: MagicMock()
        with patch("dispatch.api.routers.navigation.RoutingService") as cls:
            cls.return_value.estimate_eta = AsyncMock(return_value=eta)
            resp = self.client.get(f"/api/v1/routes/{route_id}/eta", params={"lat": 41.0, "lng": 29.0})

        self.assertEqual(resp.status_code, 200)
        self.assertEqual(resp.json()["route_id"], str(route_id))
        self.assertEqual(datetime.fromisoformat(resp.json()["eta"].replace("Z", "+00:00")), eta)
        cls.return_value.estimate_eta.assert_awaited_once_with(route_id, LatLng(41.0, 29.0))

    def test_route_eta_requires_valid_position(self):
        app.dependency_overrides[dependencies.get_routing_client] = lambda: MagicMock()
        resp = self.client.get(f"/api/v1/routes/{uuid4()}/eta", params={"lat": 95.0, "lng": 29.0})
        self.assertEqual(resp.status_code, 422)

    def test_stop_unknown_session(self):
        self.navigation.stop_navigation = AsyncMock(side_effect=NotFoundError("Navigation session not found"))
        resp = self.client.delete(f"/api/v1/navigation/sessions/{uuid4()}")
        self.assertEqual(resp.status_code, 404)


if __name__ == "__main__":
    unittest.main()
