"""
Routing clients: base, providers, registry.

Register a provider with default_registry.register(name, builder).
"""
from dispatch.clients.routing.base import (
    BaseRoutingClient,
    CalculatedRoute,
    RouteLeg,
    RouteStep,
    RoutingProviderError,
)
from dispatch.clients.routing.google import GoogleDirectionsClient
from dispatch.clients.routing.registry import RoutingRegistry, build_routing_client, default_registry
from dispatch.clients.routing.straight_line import StraightLineRoutingClient

__all__ = [
    "BaseRoutingClient",
    "CalculatedRoute",
    "RouteLeg",
    "RouteStep",
    "RoutingProviderError",
    "GoogleDirectionsClient",
    "StraightLineRoutingClient",
    "RoutingRegistry",
    "default_registry",
    "build_routing_client",
]
