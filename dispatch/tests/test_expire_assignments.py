"""sweep_once: each sweep in its own transaction, failures isolated."""
from __future__ import annotations

import asyncio
import unittest
from unittest.mock import AsyncMock, MagicMock, patch

from sqlalchemy.exc import OperationalError

from dispatch.config import DispatchConfig
from dispatch.scripts.expire_assignments import sweep_once


def _run(coro):
    return asyncio.run(coro)


class _Ctx:
    def __init__(self, value=None):
        self.value = value

    async def __aenter__(self):
        return self.value

    async def __aexit__(self, *exc):
        return False


class _Session:
    def __init__(self):
        self.began = 0

    def begin(self):
        self.began += 1
        return _Ctx()


class TestSweepOnce(unittest.TestCase):
    def setUp(self):
        self.sessions = []

        def factory():
            session = _Session()
            self.sessions.append(session)
            return _Ctx(session)

        self.factory = MagicMock(side_effect=factory)

    def _sweep(self, restaurant, delivery):
        with patch("dispatch.scripts.expire_assignments.RestaurantHandoffService") as rest_cls, \
                patch("dispatch.scripts.expire_assignments.DeliveryHandoffService") as del_cls:
            rest_cls.return_value.process_expired_restaurant_assignments = restaurant
            del_cls.return_value.process_expired_assignments = delivery
            return _run(sweep_once(self.factory, DispatchConfig()))

    def test_counts_both_sweeps(self):
        counts = self._sweep(AsyncMock(return_value=2), AsyncMock(return_value=0))

        self.assertEqual(counts, {"restaurant": 2, "delivery": 0})
        self.assertEqual(len(self.sessions), 2)
        self.assertTrue(all(s.began == 1 for s in self.sessions))

    def test_failed_sweep_does_not_block_the_other(self):
        error = OperationalError("UPDATE restaurant_assignments", {}, Exception("deadlock"))
        delivery = AsyncMock(return_value=3)

        counts = self._sweep(AsyncMock(side_effect=error), delivery)

        self.assertEqual(counts, {"restaurant": -1, "delivery": 3})
        delivery.assert_awaited_once()


if __name__ == "__main__":
    unittest.main()
