"""Tests for the env-driven config dataclasses and the JSON log formatter."""
from __future__ import annotations

import json
import logging
import os
import unittest
from unittest.mock import patch

from dispatch.config import (
    DispatchConfig,
    RoutingConfig,
    WebhookConfig,
    load_dispatch_config,
    load_postgres_config,
    load_routing_config,
    load_webhook_config,
)
from dispatch.core.logger import JsonFormatter, PlainConsoleFormatter
from dispatch.infra.database.engine import asyncpg_url, connect_args


class TestDispatchConfig(unittest.TestCase):
    def test_defaults(self):
        with patch.dict(os.environ, {}, clear=True):
            cfg = load_dispatch_config()
        self.assertEqual(cfg.step_complete_meters, 50.0)
        self.assertEqual(cfg.max_reroutes, 3)
        self.assertEqual(cfg.manual_assignment_window_minutes, 30)
        self.assertEqual(cfg.driver_search_radius_km, 15.0)
        self.assertEqual(cfg.driver_search_limit, 10)
        self.assertEqual(cfg.restaurant_search_radius_km, 50.0)
        self.assertEqual(cfg.restaurant_assignment_window_minutes, 15)

    def test_env_and_overrides(self):
        env = {"NAV_MAX_REROUTES": "5", "DRIVER_SEARCH_RADIUS_KM": "7.5"}
        with patch.dict(os.environ, env, clear=True):
            cfg = load_dispatch_config(max_reroutes=1)
        self.assertEqual(cfg.max_reroutes, 1)
        self.assertEqual(cfg.driver_search_radius_km, 7.5)

    def test_invalid_values_rejected(self):
        with self.assertRaises(ValueError):
            DispatchConfig(manual_assignment_window_minutes=0)
        with self.assertRaises(ValueError):
            DispatchConfig(off_route_meters=-1.0)
        with self.assertRaises(ValueError):
            DispatchConfig(max_reroutes=-1)


class TestRoutingConfig(unittest.TestCase):
    def test_defaults_to_straight_line_without_key(self):
        with patch.dict(os.environ, {}, clear=True):
            self.assertEqual(load_routing_config().provider, "straight_line")

    def test_google_when_key_present(self):
        with patch.dict(os.environ, {"GOOGLE_MAPS_API_KEY": "abc"}, clear=True):
            cfg = load_routing_config()
        self.assertEqual(cfg.provider, "google")
        self.assertEqual(cfg.api_key, "abc")

    def test_google_requires_key(self):
        with self.assertRaises(ValueError):
            RoutingConfig(provider="google")

    def test_unknown_provider(self):
        with self.assertRaises(ValueError):
            RoutingConfig(provider="carrier-pigeon")


class TestWebhookConfig(unittest.TestCase):
    def test_optional_fields(self):
        env = {"STATUS_WEBHOOK_FORWARD_URL": "https://restaurants.example/hook", "AUTH_JWT_SECRET": " s3cret "}
        with patch.dict(os.environ, env, clear=True):
            cfg = load_webhook_config()
        self.assertEqual(cfg.forward_url, "https://restaurants.example/hook")
        self.assertEqual(cfg.jwt_secret, "s3cret")
        self.assertIsNone(cfg.jwt_audience)

    def test_bad_url(self):
        with self.assertRaises(ValueError):
            WebhookConfig(forward_url="ftp://nope")


class TestPostgresConfig(unittest.TestCase):
    def test_default_url(self):
        with patch.dict(os.environ, {}, clear=True):
            cfg = load_postgres_config()
        self.assertEqual(cfg.url, "postgresql://localhost/dispatch")

    def test_rejects_non_postgres(self):
        with self.assertRaises(ValueError):
            load_postgres_config(url="mysql://localhost/db")

    def test_lock_timeout_from_env(self):
        with patch.dict(os.environ, {"DB_LOCK_TIMEOUT_MS": "0"}, clear=True):
            cfg = load_postgres_config()
        self.assertEqual(cfg.lock_timeout_ms, 0)
        with self.assertRaises(ValueError):
            load_postgres_config(lock_timeout_ms=-1)


class TestEngineHelpers(unittest.TestCase):
    def test_asyncpg_url(self):
        self.assertEqual(asyncpg_url("postgres://u:p@db:5432/dispatch"), "postgresql+asyncpg://u:p@db:5432/dispatch")
        self.assertEqual(asyncpg_url("postgresql://db/dispatch"), "postgresql+asyncpg://db/dispatch")
        self.assertEqual(asyncpg_url("postgresql+asyncpg://db/x"), "postgresql+asyncpg://db/x")

    def test_connections_use_utc_and_lock_timeout(self):
        settings = connect_args(load_postgres_config(url="postgresql://db/dispatch"))["server_settings"]
        self.assertEqual(settings["timezone"], "UTC")
        self.assertEqual(settings["lock_timeout"], "5000")
        self.assertEqual(settings["application_name"], "dispatch-service")

    def test_lock_timeout_disabled(self):
        settings = connect_args(load_postgres_config(url="postgresql://db/dispatch", lock_timeout_ms=0))
        self.assertNotIn("lock_timeout", settings["server_settings"])


class TestJsonFormatter(unittest.TestCase):
    def test_context_fields_lifted(self):
        record = logging.LogRecord("dispatch.x", logging.INFO, __file__, 10, "hello %s", ("world",), None)
        record.order_id = "o-1"
        out = json.loads(JsonFormatter().format(record))
        self.assertEqual(out["message"], "hello world")
        self.assertEqual(out["context"], {"order_id": "o-1"})
        self.assertEqual(out["level"], "INFO")

    def test_console_appends_context(self):
        record = logging.LogRecord("dispatch.x", logging.WARNING, __file__, 10, "late accept", (), None)
        record.order_id = "o-1"
        record.assignment_id = "a-9"
        line = PlainConsoleFormatter().format(record)
        self.assertTrue(line.endswith("late accept [order_id=o-1 assignment_id=a-9]"))


if __name__ == "__main__":
    unittest.main()
