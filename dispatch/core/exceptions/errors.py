"""
Built-in exception types. Add new ones here or via exception_factory().
"""
from __future__ import annotations

from dispatch.core.exceptions.base import DispatchError


class ConfigurationError(DispatchError):
    """Invalid or missing configuration."""

    default_code = "CONFIGURATION_ERROR"
    default_http_status = 500


class ValidationError(DispatchError):
    """Request or input validation failed."""

    default_code = "VALIDATION_ERROR"
    default_http_status = 400


class NotFoundError(DispatchError):
    """Referenced order, assignment, driver or session does not exist."""

    default_code = "NOT_FOUND"
    default_http_status = 404


class UnauthorizedError(DispatchError):
    """Missing or invalid bearer token."""

    default_code = "UNAUTHORIZED"
    default_http_status = 401


class ForbiddenError(DispatchError):
    """Caller is authenticated but not a party to the record."""

    default_code = "FORBIDDEN"
    default_http_status = 403


class ConflictError(DispatchError):
    """A guarded update lost against a concurrent writer."""

    default_code = "CONFLICT"
    default_http_status = 409


class InvalidTransitionError(DispatchError):
    """Status change not permitted by the transition table. Raised before any write."""

    default_code = "INVALID_TRANSITION"
    default_http_status = 409


class RemoteCallError(DispatchError):
    """Database, routing provider or downstream webhook call failed."""

    default_code = "REMOTE_CALL_FAILED"
    default_http_status = 502
