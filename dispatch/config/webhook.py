"""
dispatch.config.webhook – status-to-restaurant forwarding and bearer auth.

Env vars: STATUS_WEBHOOK_FORWARD_URL, STATUS_WEBHOOK_TIMEOUT,
AUTH_JWT_SECRET, AUTH_JWT_AUDIENCE.
"""
from __future__ import annotations

import os
from dataclasses import dataclass

from dispatch.config._validators import validate_positive_number


@dataclass(frozen=True)
class WebhookConfig:
    forward_url: str | None = None
    """Downstream URL receiving {order_id, status, latitude, longitude, action}."""

    timeout: float = 10.0
    jwt_secret: str | None = None
    """HS256 secret used to verify caller bearer tokens."""

    jwt_audience: str | None = None

    def __post_init__(self) -> None:
        if self.forward_url and not (
            self.forward_url.startswith("http://") or self.forward_url.startswith("https://")
        ):
            raise ValueError("STATUS_WEBHOOK_FORWARD_URL must start with http:// or https://")
        validate_positive_number(self.timeout, "timeout")

    @classmethod
    def from_env(cls, **overrides: object) -> WebhookConfig:
        def _opt(attr: str, var: str) -> str | None:
            raw = overrides.get(attr) or os.environ.get(var)
            value = str(raw).strip() if raw else ""
            return value or None

        timeout = float(overrides.get("timeout") or os.environ.get("STATUS_WEBHOOK_TIMEOUT", "10"))
        return cls(
            forward_url=_opt("forward_url", "STATUS_WEBHOOK_FORWARD_URL"),
            timeout=timeout,
            jwt_secret=_opt("jwt_secret", "AUTH_JWT_SECRET"),
            jwt_audience=_opt("jwt_audience", "AUTH_JWT_AUDIENCE"),
        )


def load_webhook_config(**overrides: object) -> WebhookConfig:
    return WebhookConfig.from_env(**overrides)
