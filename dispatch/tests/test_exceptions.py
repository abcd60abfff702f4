"""DispatchError rendering and exception_factory."""
from __future__ import annotations

import unittest

from dispatch.clients.routing.base import RoutingProviderError
from dispatch.core.exceptions import (
    DispatchError,
    InvalidTransitionError,
    NotFoundError,
    RemoteCallError,
    exception_factory,
)


class TestDispatchError(unittest.TestCase):
    def test_defaults_from_class(self):
        exc = NotFoundError("Order not found")
        self.assertEqual(exc.code, "NOT_FOUND")
        self.assertEqual(exc.http_status, 404)
        self.assertEqual(str(exc), "Order not found")

    def test_response_body_excludes_cause(self):
        exc = InvalidTransitionError(
            "Order cannot move from 'delivered' to 'preparing'",
            details={"from": "delivered", "to": "preparing", "allowed": []},
            cause=RuntimeError("internal"),
        )
        self.assertEqual(exc.response_body(), {
            "detail": "Order cannot move from 'delivered' to 'preparing'",
            "code": "INVALID_TRANSITION",
            "details": {"from": "delivered", "to": "preparing", "allowed": []},
        })

    def test_to_dict_carries_cause(self):
        try:
            raise ConnectionError("reset by peer")
        except ConnectionError as err:
            exc = RemoteCallError("Downstream webhook unreachable", cause=err)
        out = exc.to_dict()
        self.assertEqual(out["http_status"], 502)
        self.assertIn("reset by peer", out["cause"])
        self.assertIn("ConnectionError", out["cause_traceback"])

    def test_overrides(self):
        exc = DispatchError("teapot", code="TEAPOT", http_status=418)
        self.assertEqual((exc.code, exc.http_status), ("TEAPOT", 418))


class TestExceptionFactory(unittest.TestCase):
    def test_subclass_of_base(self):
        self.assertTrue(issubclass(RoutingProviderError, RemoteCallError))
        exc = RoutingProviderError("ZERO_RESULTS")
        self.assertEqual(exc.code, "ROUTING_PROVIDER_ERROR")
        self.assertEqual(exc.http_status, 502)

    def test_default_code_from_name(self):
        Surge = exception_factory("SurgePricingError", http_status=503)
        self.assertEqual(Surge("busy").code, "SURGEPRICINGERROR")
        self.assertTrue(issubclass(Surge, DispatchError))


if __name__ == "__main__":
    unittest.main()
