"""Tests for the status-to-restaurant webhook.

Covers:
- action mapping for canonical statuses
- bearer-token auth (customer, restaurant owner, strangers, bad tokens)
- resolving the order from orders / assignment rows
- forwarding: payload shape, missing URL, downstream errors
- router: HTTP status codes through the dispatch error handler
"""
from __future__ import annotations

import asyncio
import json
import unittest
from types import SimpleNamespace
from unittest.mock import MagicMock, patch
from uuid import uuid4

import httpx
import jwt
from fastapi import FastAPI
from fastapi.testclient import TestClient

from dispatch.config import WebhookConfig
from dispatch.core.exceptions import (
    ConfigurationError,
    DispatchError,
    ForbiddenError,
    NotFoundError,
    RemoteCallError,
    UnauthorizedError,
    ValidationError,
)
from dispatch.domain.statuses import OrderStatus
from dispatch.services.status_webhook_service import (
    ForwardingNotConfiguredError,
    StatusWebhookService,
    action_for_status,
)

SECRET = "test-secret"
FORWARD_URL = "https://restaurants.example.test/hooks/status"


def _run(coro):
    return asyncio.run(coro)


def _token(sub, secret=SECRET, **claims):
    return "Bearer " + jwt.encode({"sub": str(sub), **claims}, secret, algorithm="HS256")


# ─── fakes ───────────────────────────────────────────────────────────────────

class _Rows:
    def __init__(self, *rows):
        self.rows = {r.id: r for r in rows}

    async def get_by_id(self, id):
        return self.rows.get(id)


class _Restaurants:
    def __init__(self, owners=None):
        self.owners = owners or {}

    async def get_owner_id(self, restaurant_id):
        return self.owners.get(restaurant_id)


class _Harness:
    def __init__(self, *, status_code=200, forward_url=FORWARD_URL, jwt_secret=SECRET, transport=None):
        self.owner_id = uuid4()
        self.order = SimpleNamespace(
            id=uuid4(),
            customer_id=uuid4(),
            restaurant_id=uuid4(),
            status="preparing",
            delivery_latitude=41.0082,
            delivery_longitude=28.9784,
        )
        self.restaurant_assignment = SimpleNamespace(id=uuid4(), order_id=self.order.id)
        self.delivery_assignment = SimpleNamespace(id=uuid4(), order_id=self.order.id)
        self.sent = []

        def handler(request):
            self.sent.append(json.loads(request.content))
            return httpx.Response(status_code, json={"ok": status_code < 400})

        self.client = httpx.AsyncClient(transport=transport or httpx.MockTransport(handler))
        self.svc = StatusWebhookService(
            MagicMock(),
            WebhookConfig(forward_url=forward_url, jwt_secret=jwt_secret),
            client=self.client,
        )
        self.svc._orders = _Rows(self.order)
        self.svc._restaurants = _Restaurants({self.order.restaurant_id: self.owner_id})
        self.svc._restaurant_assignments = _Rows(self.restaurant_assignment)
        self.svc._delivery_assignments = _Rows(self.delivery_assignment)

    def handle(self, **kwargs):
        params = {
            "table": "orders",
            "record_id": self.order.id,
            "status_column": "status",
            "new_status": "ready_for_pickup",
            "old_status": "preparing",
            "authorization": _token(self.order.customer_id),
        }
        params.update(kwargs)
        return _run(self.svc.handle(**params))


# ─── action mapping ──────────────────────────────────────────────────────────

class TestActionForStatus(unittest.TestCase):
    def test_mapping(self):
        self.assertEqual(action_for_status(OrderStatus.RESTAURANT_ACCEPTED), "accept")
        self.assertEqual(action_for_status(OrderStatus.RESTAURANT_REJECTED), "reject")
        self.assertEqual(action_for_status(OrderStatus.NO_RESTAURANT_ACCEPTED), "reject")
        for status in (OrderStatus.PENDING, OrderStatus.AWAITING_RESTAURANT, OrderStatus.RESTAURANT_ASSIGNED):
            self.assertEqual(action_for_status(status), "assign")
        self.assertEqual(action_for_status(OrderStatus.ON_THE_WAY), "update")
        self.assertEqual(action_for_status(None), "update")


# ─── auth ────────────────────────────────────────────────────────────────────

class TestAuthentication(unittest.TestCase):
    def test_customer_allowed(self):
        h = _Harness()
        result = h.handle()
        self.assertEqual(result.downstream_status, 200)

    def test_restaurant_owner_allowed(self):
        h = _Harness()
        result = h.handle(authorization=_token(h.owner_id))
        self.assertEqual(result.downstream_status, 200)

    def test_stranger_forbidden(self):
        h = _Harness()
        with self.assertRaises(ForbiddenError):
            h.handle(authorization=_token(uuid4()))
        self.assertEqual(h.sent, [])

    def test_missing_header(self):
        h = _Harness()
        with self.assertRaises(UnauthorizedError) as ctx:
            h.handle(authorization=None)
        self.assertEqual(ctx.exception.http_status, 401)

    def test_wrong_scheme(self):
        h = _Harness()
        with self.assertRaises(UnauthorizedError):
            h.handle(authorization="Basic dXNlcjpwYXNz")

    def test_bad_signature(self):
        h = _Harness()
        with self.assertRaises(UnauthorizedError):
            h.handle(authorization=_token(h.order.customer_id, secret="other-secret"))

    def test_sub_must_be_uuid(self):
        h = _Harness()
        with self.assertRaises(UnauthorizedError):
            h.handle(authorization=_token("not-a-uuid"))

    def test_no_secret_configured(self):
        h = _Harness(jwt_secret=None)
        with self.assertRaises(ConfigurationError):
            h.handle()

    def test_assignment_rows_skip_auth(self):
        h = _Harness()
        h.order.status = "restaurant_accepted"
        result = h.handle(
            table="restaurant_assignments",
            record_id=h.restaurant_assignment.id,
            new_status="accepted",
            authorization=None,
        )
        self.assertEqual(result.payload["action"], "accept")
        self.assertEqual(result.payload["order_id"], str(h.order.id))

    def test_other_order_columns_rejected(self):
        h = _Harness()
        with self.assertRaises(ValidationError):
            h.handle(status_column="payment_status", new_status="delivered", authorization=None)
        with self.assertRaises(ValidationError):
            h.handle(status_column="payment_status", new_status="delivered")
        self.assertEqual(h.sent, [])


# ─── resolve + forward ───────────────────────────────────────────────────────

class TestForwarding(unittest.TestCase):
    def test_payload_shape(self):
        h = _Harness()
        h.handle(new_status="accepted")

        self.assertEqual(h.sent, [{
            "order_id": str(h.order.id),
            "status": "restaurant_accepted",
            "latitude": 41.0082,
            "longitude": 28.9784,
            "action": "accept",
        }])

    def test_unknown_status_forwarded_raw(self):
        h = _Harness()
        result = h.handle(new_status="on_hold")
        self.assertEqual(result.payload["status"], "on_hold")
        self.assertEqual(result.payload["action"], "update")

    def test_delivery_assignment_resolves_order(self):
        h = _Harness()
        result = h.handle(
            table="delivery_assignments",
            record_id=h.delivery_assignment.id,
            new_status="on_the_way",
            authorization=None,
        )
        self.assertEqual(result.payload["order_id"], str(h.order.id))

    def test_driver_statuses_forward_the_order_status(self):
        h = _Harness()
        for driver_status in ("pending", "accepted", "rejected", "expired", "cancelled"):
            result = h.handle(
                table="delivery_assignments",
                record_id=h.delivery_assignment.id,
                new_status=driver_status,
                authorization=None,
            )
            self.assertEqual(result.payload["status"], "preparing")
            self.assertEqual(result.payload["action"], "update")
        self.assertEqual(len(h.sent), 5)

    def test_cancelled_sibling_offer_forwards_the_order_status(self):
        h = _Harness()
        h.order.status = "restaurant_accepted"
        for offer_status in ("cancelled", "rejected", "expired"):
            result = h.handle(
                table="restaurant_assignments",
                record_id=h.restaurant_assignment.id,
                new_status=offer_status,
                authorization=None,
            )
            self.assertEqual(result.payload["status"], "restaurant_accepted")
            self.assertEqual(result.payload["action"], "accept")

    def test_unsupported_table(self):
        h = _Harness()
        with self.assertRaises(ValidationError):
            h.handle(table="customers")

    def test_unknown_assignment(self):
        h = _Harness()
        with self.assertRaises(NotFoundError):
            h.handle(table="restaurant_assignments", record_id=uuid4(), authorization=None)

    def test_unknown_order(self):
        h = _Harness()
        with self.assertRaises(NotFoundError):
            h.handle(record_id=uuid4())

    def test_missing_forward_url(self):
        h = _Harness(forward_url=None)
        with self.assertRaises(ForwardingNotConfiguredError) as ctx:
            h.handle()
        self.assertEqual(ctx.exception.http_status, 503)

    def test_downstream_error_status(self):
        h = _Harness(status_code=500)
        with self.assertRaises(RemoteCallError) as ctx:
            h.handle()
        self.assertEqual(ctx.exception.http_status, 502)
        self.assertEqual(ctx.exception.details["downstream_status"], 500)

    def test_downstream_unreachable(self):
        def refuse(request):
            raise httpx.ConnectError("connection refused", request=request)

        h = _Harness(transport=httpx.MockTransport(refuse))
        with self.assertRaises(RemoteCallError):
            h.handle()


# ─── router ──────────────────────────────────────────────────────────────────

def _make_test_app(service_error=None):
    """Minimal app with the webhooks router, the dispatch error handler and a stubbed service."""
    from dispatch.api import dependencies
    from dispatch.api.main import dispatch_error_handler
    from dispatch.api.routers import webhooks

    app = FastAPI()
    app.include_router(webhooks.router)
    app.add_exception_handler(DispatchError, dispatch_error_handler)

    async def fake_session():
        yield MagicMock()

    app.dependency_overrides[dependencies.get_session] = fake_session
    app.dependency_overrides[dependencies.get_webhook_config] = lambda: WebhookConfig(
        forward_url=FORWARD_URL, jwt_secret=SECRET,
    )
    return app


class TestWebhookRouter(unittest.TestCase):
    def setUp(self):
        self.record_id = uuid4()
        self.body = {"table": "orders", "record_id": str(self.record_id), "new_status": "preparing"}

    def _post(self, handle):
        with patch("dispatch.api.routers.webhooks.StatusWebhookService") as cls:
            cls.return_value.handle = handle
            client = TestClient(_make_test_app())
            resp = client.post(
                "/webhooks/status-to-restaurant", json=self.body, headers={"Authorization": "Bearer x"},
            )
        return resp

    def test_success(self):
        from dispatch.services.status_webhook_service import ForwardResult

        async def handle(**kwargs):
            self.assertEqual(kwargs["authorization"], "Bearer x")
            self.assertEqual(kwargs["status_column"], "status")
            return ForwardResult(downstream_status=202, payload={"action": "update"})

        resp = self._post(handle)

        self.assertEqual(resp.status_code, 200)
        self.assertEqual(resp.json(), {"success": True, "downstream_status": 202, "payload": {"action": "update"}})

    def test_unauthorized_maps_to_401(self):
        async def handle(**kwargs):
            raise UnauthorizedError("Missing bearer token")

        resp = self._post(handle)

        self.assertEqual(resp.status_code, 401)
        self.assertEqual(resp.json()["code"], "UNAUTHORIZED")

    def test_forbidden_maps_to_403(self):
        async def handle(**kwargs):
            raise ForbiddenError("nope")

        self.assertEqual(self._post(handle).status_code, 403)

    def test_forward_not_configured_maps_to_503(self):
        async def handle(**kwargs):
            raise ForwardingNotConfiguredError("STATUS_WEBHOOK_FORWARD_URL is not configured")

        resp = self._post(handle)

        self.assertEqual(resp.status_code, 503)
        self.assertEqual(resp.json()["code"], "FORWARDING_NOT_CONFIGURED")

    def test_invalid_body(self):
        self.body = {"table": "orders"}
        resp = self._post(None)
        self.assertEqual(resp.status_code, 422)


if __name__ == "__main__":
    unittest.main()
