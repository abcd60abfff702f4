"""
Dispatch exception system.

Usage:
    from dispatch.core.exceptions import InvalidTransitionError, NotFoundError

    raise NotFoundError("Order not found", details={"order_id": str(order_id)})

    # Add new type on demand
    RoutingProviderError = exception_factory(
        "RoutingProviderError", code="ROUTING_PROVIDER_ERROR", http_status=502, base=RemoteCallError
    )
"""
from dispatch.core.exceptions.base import DispatchError, exception_factory
from dispatch.core.exceptions.errors import (
    ConfigurationError,
    ConflictError,
    ForbiddenError,
    InvalidTransitionError,
    NotFoundError,
    RemoteCallError,
    UnauthorizedError,
    ValidationError,
)

__all__ = [
    "DispatchError",
    "exception_factory",
    "ConfigurationError",
    "ValidationError",
    "NotFoundError",
    "UnauthorizedError",
    "ForbiddenError",
    "ConflictError",
    "InvalidTransitionError",
    "RemoteCallError",
]
