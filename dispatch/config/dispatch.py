"""
dispatch.config.dispatch – tunables for assignment handoff and navigation.

Env vars: NAV_STEP_COMPLETE_METERS, NAV_MAX_REROUTES, NAV_OFF_ROUTE_METERS,
NAV_POLL_INTERVAL_SECONDS, NAV_ETA_FALLBACK_MINUTES,
MANUAL_ASSIGNMENT_WINDOW_MINUTES, AUTO_ASSIGNMENT_WINDOW_MINUTES,
MAX_ASSIGNMENT_ATTEMPTS, DRIVER_SEARCH_RADIUS_KM, DRIVER_SEARCH_LIMIT,
RESTAURANT_SEARCH_RADIUS_KM, RESTAURANT_ASSIGNMENT_WINDOW_MINUTES.
"""
from __future__ import annotations

import os
from dataclasses import dataclass, fields

from dispatch.config._validators import (
    validate_nonnegative_int,
    validate_positive_int,
    validate_positive_number,
)

_ENV_VARS = {
    "step_complete_meters": "NAV_STEP_COMPLETE_METERS",
    "max_reroutes": "NAV_MAX_REROUTES",
    "off_route_meters": "NAV_OFF_ROUTE_METERS",
    "poll_interval_seconds": "NAV_POLL_INTERVAL_SECONDS",
    "eta_fallback_minutes": "NAV_ETA_FALLBACK_MINUTES",
    "manual_assignment_window_minutes": "MANUAL_ASSIGNMENT_WINDOW_MINUTES",
    "auto_assignment_window_minutes": "AUTO_ASSIGNMENT_WINDOW_MINUTES",
    "max_assignment_attempts": "MAX_ASSIGNMENT_ATTEMPTS",
    "driver_search_radius_km": "DRIVER_SEARCH_RADIUS_KM",
    "driver_search_limit": "DRIVER_SEARCH_LIMIT",
    "restaurant_search_radius_km": "RESTAURANT_SEARCH_RADIUS_KM",
    "restaurant_assignment_window_minutes": "RESTAURANT_ASSIGNMENT_WINDOW_MINUTES",
}


@dataclass(frozen=True)
class DispatchConfig:
    """Thresholds and windows used by the handoff and navigation services."""

    step_complete_meters: float = 50.0
    """A route step counts as done once the driver is closer than this to its end."""

    max_reroutes: int = 3
    """Reroutes allowed per navigation session."""

    off_route_meters: float = 75.0
    """Distance from the current step beyond which the driver is off route."""

    poll_interval_seconds: float = 5.0
    eta_fallback_minutes: int = 15
    """ETA used before the routing provider has answered once."""

    manual_assignment_window_minutes: int = 30
    auto_assignment_window_minutes: int = 5
    max_assignment_attempts: int = 3
    driver_search_radius_km: float = 15.0
    driver_search_limit: int = 10
    restaurant_search_radius_km: float = 50.0
    restaurant_assignment_window_minutes: int = 15
    """How long an offered restaurant has to answer before the sweep expires it."""

    def __post_init__(self) -> None:
        validate_positive_number(self.step_complete_meters, "step_complete_meters")
        validate_nonnegative_int(self.max_reroutes, "max_reroutes")
        validate_positive_number(self.off_route_meters, "off_route_meters")
        validate_positive_number(self.poll_interval_seconds, "poll_interval_seconds")
        validate_positive_int(self.eta_fallback_minutes, "eta_fallback_minutes")
        validate_positive_int(self.manual_assignment_window_minutes, "manual_assignment_window_minutes")
        validate_positive_int(self.auto_assignment_window_minutes, "auto_assignment_window_minutes")
        validate_positive_int(self.max_assignment_attempts, "max_assignment_attempts")
        validate_positive_number(self.driver_search_radius_km, "driver_search_radius_km")
        validate_positive_int(self.driver_search_limit, "driver_search_limit")
        validate_positive_number(self.restaurant_search_radius_km, "restaurant_search_radius_km")
        validate_positive_int(self.restaurant_assignment_window_minutes, "restaurant_assignment_window_minutes")

    @classmethod
    def from_env(cls, **overrides: object) -> DispatchConfig:
        """Build from env; keyword overrides win. Unset variables keep the defaults."""
        values: dict[str, object] = {}
        for f in fields(cls):
            if overrides.get(f.name) is not None:
                raw = overrides[f.name]
            else:
                raw = os.environ.get(_ENV_VARS[f.name])
                if raw is None or not str(raw).strip():
                    continue
            caster = float if f.type in ("float", float) else int
            values[f.name] = caster(raw)  # type: ignore[arg-type]
        return cls(**values)  # type: ignore[arg-type]


def load_dispatch_config(**overrides: object) -> DispatchConfig:
    return DispatchConfig.from_env(**overrides)
