"""
Routing provider registry: map provider name -> build client from RoutingConfig.

build_routing_client(config) is what the API lifespan calls.
"""
from __future__ import annotations

from typing import Callable, Dict, Optional

from dispatch.clients.routing.base import BaseRoutingClient
from dispatch.clients.routing.google import google_builder
from dispatch.clients.routing.straight_line import straight_line_builder
from dispatch.config.routing import RoutingConfig, load_routing_config


class RoutingRegistry:
    """Maps provider id to a builder that takes RoutingConfig and returns BaseRoutingClient."""

    def __init__(self) -> None:
        self._builders: Dict[str, Callable[[RoutingConfig], BaseRoutingClient]] = {}

    def register(self, provider: str, builder: Callable[[RoutingConfig], BaseRoutingClient]) -> None:
        self._builders[provider] = builder

    def build(self, config: RoutingConfig) -> BaseRoutingClient:
        """Raises KeyError if the provider is unknown."""
        builder = self._builders.get(config.provider)
        if builder is None:
            raise KeyError(f"Unknown routing provider: {config.provider!r}. Registered: {list(self._builders)}")
        return builder(config)


default_registry = RoutingRegistry()
default_registry.register("google", google_builder)
default_registry.register("straight_line", straight_line_builder)


def build_routing_client(config: Optional[RoutingConfig] = None) -> BaseRoutingClient:
    return default_registry.build(config or load_routing_config())
