"""
Base exception types for the dispatch service.

Each error knows its machine-readable code and the HTTP status the API answers
with, so routers never translate exceptions themselves. Add new types by
subclassing DispatchError or with exception_factory().
"""
from __future__ import annotations

import traceback
from typing import Any, Optional, Type


class DispatchError(Exception):
    """
    Base exception for all dispatch errors.

    Attributes:
        message: Human-readable description, returned as ``detail``.
        code: Machine-readable slug (class default_code unless overridden).
        http_status: Status the API answers with.
        details: Structured context, e.g. ``{"from": ..., "to": ..., "allowed": [...]}``.
        cause: Underlying driver / HTTP error, if any.
    """

    default_code: str = "ERROR"
    default_http_status: int = 500

    def __init__(
        self,
        message: str,
        *,
        code: Optional[str] = None,
        http_status: Optional[int] = None,
        details: Optional[dict[str, Any]] = None,
        cause: Optional[BaseException] = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.code = code or type(self).default_code
        self.http_status = http_status or type(self).default_http_status
        self.details: dict[str, Any] = dict(details or {})
        self.cause = cause

    def __repr__(self) -> str:
        return f"{type(self).__name__}({self.message!r}, code={self.code!r}, http_status={self.http_status})"

    def __str__(self) -> str:
        return self.message

    def response_body(self) -> dict[str, Any]:
        """JSON body of the API error response. Never includes the cause."""
        return {"detail": self.message, "code": self.code, "details": self.details}

    def to_dict(self) -> dict[str, Any]:
        """Log representation: the response body plus the cause and its traceback."""
        out = self.response_body()
        out["http_status"] = self.http_status
        if self.cause is not None:
            out["cause"] = repr(self.cause)
            out["cause_traceback"] = "".join(
                traceback.format_exception(type(self.cause), self.cause, self.cause.__traceback__)
            )
        return out


def exception_factory(
    name: str,
    *,
    code: Optional[str] = None,
    http_status: int = 500,
    base: Type[DispatchError] = DispatchError,
) -> Type[DispatchError]:
    """
    Build a DispatchError subclass on demand.

        RoutingProviderError = exception_factory(
            "RoutingProviderError", code="ROUTING_PROVIDER_ERROR",
            http_status=502, base=RemoteCallError,
        )
    """
    attrs = {
        "default_code": code or name.upper(),
        "default_http_status": http_status,
    }
    return type(name, (base,), attrs)
