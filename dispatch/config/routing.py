"""
dispatch.config.routing – directions provider config.

Env vars: ROUTING_PROVIDER, GOOGLE_MAPS_API_KEY, ROUTING_BASE_URL,
ROUTING_TIMEOUT, ROUTING_AVERAGE_SPEED_KMH.
"""
from __future__ import annotations

import os
from dataclasses import dataclass

from dispatch.config._validators import validate_positive_number

_VALID_PROVIDERS = frozenset({"google", "straight_line"})

GOOGLE_DIRECTIONS_URL = "https://maps.googleapis.com/maps/api/directions/json"


@dataclass(frozen=True)
class RoutingConfig:
    provider: str = "straight_line"
    api_key: str | None = None
    base_url: str = GOOGLE_DIRECTIONS_URL
    timeout: float = 10.0
    average_speed_kmh: float = 25.0
    """Speed assumed by the straight-line provider."""

    def __post_init__(self) -> None:
        if self.provider not in _VALID_PROVIDERS:
            raise ValueError(f"provider must be one of {sorted(_VALID_PROVIDERS)}, got {self.provider!r}")
        if self.provider == "google" and not self.api_key:
            raise ValueError("GOOGLE_MAPS_API_KEY is required for the google routing provider")
        if not (self.base_url.startswith("http://") or self.base_url.startswith("https://")):
            raise ValueError("ROUTING_BASE_URL must start with http:// or https://")
        validate_positive_number(self.timeout, "timeout")
        validate_positive_number(self.average_speed_kmh, "average_speed_kmh")

    @classmethod
    def from_env(cls, **overrides: object) -> RoutingConfig:
        """Provider defaults to google when an API key is present, else straight_line."""
        raw_key = overrides.get("api_key") or os.environ.get("GOOGLE_MAPS_API_KEY")
        api_key = str(raw_key).strip() if raw_key else None
        if api_key == "":
            api_key = None
        provider = str(
            overrides.get("provider")
            or os.environ.get("ROUTING_PROVIDER")
            or ("google" if api_key else "straight_line")
        ).strip().lower()
        base_url = str(overrides.get("base_url") or os.environ.get("ROUTING_BASE_URL", GOOGLE_DIRECTIONS_URL)).strip()
        timeout = float(overrides.get("timeout") or os.environ.get("ROUTING_TIMEOUT", "10"))
        speed = float(overrides.get("average_speed_kmh") or os.environ.get("ROUTING_AVERAGE_SPEED_KMH", "25"))
        return cls(provider=provider, api_key=api_key, base_url=base_url, timeout=timeout, average_speed_kmh=speed)


def load_routing_config(**overrides: object) -> RoutingConfig:
    return RoutingConfig.from_env(**overrides)
