"""OrderService status updates against an in-memory repository."""
from __future__ import annotations

import asyncio
import unittest
from datetime import datetime, timezone
from types import SimpleNamespace
from unittest.mock import MagicMock, patch
from uuid import uuid4

from dispatch.core.exceptions import ConflictError, InvalidTransitionError, NotFoundError
from dispatch.services.order_service import OrderService


def _run(coro):
    return asyncio.run(coro)


FIXED_NOW = datetime(2026, 3, 1, 12, 0, tzinfo=timezone.utc)


class FakeOrders:
    def __init__(self, *orders):
        self.rows = {o.id: o for o in orders}
        self.list_calls = []
        self.lose_race = False

    async def get_by_id(self, id):
        return self.rows.get(id)

    async def get_for_update(self, id):
        return self.rows.get(id)

    async def list_all(self, **filters):
        self.list_calls.append(filters)
        return list(self.rows.values())

    async def set_status(self, id, *, expected, status, **values):
        row = self.rows.get(id)
        if self.lose_race or row is None or row.status not in list(expected):
            return None
        row.status = status
        for key, value in values.items():
            setattr(row, key, value)
        return row


def _order(status="restaurant_accepted", restaurant_id=None):
    return SimpleNamespace(
        id=uuid4(),
        restaurant_id=restaurant_id or uuid4(),
        status=status,
        accepted_at=None,
        preparation_started_at=None,
        ready_at=None,
        picked_up_at=None,
        delivered_at=None,
    )


def _service(*orders):
    svc = OrderService(MagicMock())
    svc._repo = FakeOrders(*orders)
    return svc


class TestUpdateStatus(unittest.TestCase):
    @patch("dispatch.services.order_service.utcnow", return_value=FIXED_NOW)
    def test_valid_transition_stamps_milestone(self, _):
        order = _order("restaurant_accepted")
        svc = _service(order)

        updated = _run(svc.update_status(order.id, "preparing"))

        self.assertEqual(updated.status, "preparing")
        self.assertEqual(updated.preparation_started_at, FIXED_NOW)
        self.assertIsNone(updated.ready_at)

    @patch("dispatch.services.order_service.utcnow", return_value=FIXED_NOW)
    def test_alias_target_is_canonicalised(self, _):
        order = _order("preparing")
        svc = _service(order)

        updated = _run(svc.update_status(order.id, "ready"))

        self.assertEqual(updated.status, "ready_for_pickup")
        self.assertEqual(updated.ready_at, FIXED_NOW)

    def test_invalid_transition_writes_nothing(self):
        order = _order("preparing")
        svc = _service(order)

        with self.assertRaises(InvalidTransitionError) as ctx:
            _run(svc.update_status(order.id, "delivered"))

        self.assertEqual(order.status, "preparing")
        self.assertEqual(ctx.exception.http_status, 409)
        self.assertEqual(ctx.exception.details["allowed"], ["ready_for_pickup"])

    def test_terminal_order_rejects_everything(self):
        order = _order("delivered")
        svc = _service(order)
        with self.assertRaises(InvalidTransitionError):
            _run(svc.update_status(order.id, "cancelled"))

    def test_concurrent_change_is_conflict(self):
        order = _order("ready_for_pickup")
        svc = _service(order)
        svc._repo.lose_race = True

        with self.assertRaises(ConflictError):
            _run(svc.update_status(order.id, "on_the_way"))

    def test_restaurant_mismatch_is_not_found(self):
        order = _order("restaurant_accepted")
        svc = _service(order)

        with self.assertRaises(NotFoundError):
            _run(svc.update_status(order.id, "preparing", restaurant_id=uuid4()))
        self.assertEqual(order.status, "restaurant_accepted")

    def test_matching_restaurant_updates(self):
        restaurant_id = uuid4()
        order = _order("restaurant_accepted", restaurant_id=restaurant_id)
        svc = _service(order)

        updated = _run(svc.update_status(order.id, "preparing", restaurant_id=restaurant_id))
        self.assertEqual(updated.status, "preparing")

    def test_unknown_order(self):
        with self.assertRaises(NotFoundError):
            _run(_service().update_status(uuid4(), "preparing"))


class TestQueries(unittest.TestCase):
    def test_get_order_not_found(self):
        with self.assertRaises(NotFoundError) as ctx:
            _run(_service().get_order(uuid4()))
        self.assertEqual(ctx.exception.http_status, 404)

    def test_list_filter_alias_is_canonicalised(self):
        svc = _service(_order())
        _run(svc.list_orders(status="completed", limit=10))
        call = svc._repo.list_calls[-1]
        self.assertEqual(call["status"], "delivered")
        self.assertEqual(call["limit"], 10)

    def test_list_unknown_status_passed_through(self):
        svc = _service()
        _run(svc.list_orders(status="legacy_state"))
        self.assertEqual(svc._repo.list_calls[-1]["status"], "legacy_state")


if __name__ == "__main__":
    unittest.main()
