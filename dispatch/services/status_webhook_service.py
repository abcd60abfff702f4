"""StatusWebhookService: forward order status changes to the restaurant-side endpoint.

Inbound body: ``{table, record_id, status_column, new_status, old_status}``.
Outbound body: ``{order_id, status, latitude, longitude, action}``.

Assignment rows are forwarded with the current status of their order, never
with the assignment's own status. Only the ``status`` column of ``orders`` is
accepted, and those changes must carry ``Authorization: Bearer <jwt>``
(HS256, ``sub`` = user id) of the order's customer or of the owner of the
order's restaurant.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Dict, Optional
from uuid import UUID

import httpx
import jwt
from sqlalchemy.ext.asyncio import AsyncSession

from dispatch.config import WebhookConfig, load_webhook_config
from dispatch.core.exceptions import (
    ConfigurationError,
    ForbiddenError,
    NotFoundError,
    RemoteCallError,
    UnauthorizedError,
    ValidationError,
    exception_factory,
)
from dispatch.domain.statuses import OrderStatus, canonicalize_status
from dispatch.infra.database.models.order import Order
from dispatch.infra.database.repositories.assignment import (
    DeliveryAssignmentRepository,
    RestaurantAssignmentRepository,
)
from dispatch.infra.database.repositories.order import OrderRepository
from dispatch.infra.database.repositories.restaurant import RestaurantRepository

logger = logging.getLogger(__name__)

ForwardingNotConfiguredError = exception_factory(
    "ForwardingNotConfiguredError",
    code="FORWARDING_NOT_CONFIGURED",
    http_status=503,
    base=ConfigurationError,
)

_ACCEPT = {OrderStatus.RESTAURANT_ACCEPTED}
_REJECT = {OrderStatus.RESTAURANT_REJECTED, OrderStatus.NO_RESTAURANT_ACCEPTED}
_ASSIGN = {OrderStatus.PENDING, OrderStatus.AWAITING_RESTAURANT, OrderStatus.RESTAURANT_ASSIGNED}


def action_for_status(status: Optional[OrderStatus]) -> str:
    if status in _ACCEPT:
        return "accept"
    if status in _REJECT:
        return "reject"
    if status in _ASSIGN:
        return "assign"
    return "update"


@dataclass
class ForwardResult:
    downstream_status: int
    payload: Dict[str, Any]


class StatusWebhookService:
    def __init__(
        self,
        session: AsyncSession,
        config: Optional[WebhookConfig] = None,
        client: Optional[httpx.AsyncClient] = None,
    ) -> None:
        self._config = config or load_webhook_config()
        self._client = client
        self._orders = OrderRepository(session)
        self._restaurants = RestaurantRepository(session)
        self._restaurant_assignments = RestaurantAssignmentRepository(session)
        self._delivery_assignments = DeliveryAssignmentRepository(session)

    # ── auth ──────────────────────────────────────────────────────────────

    def authenticate(self, authorization: Optional[str]) -> UUID:
        """Return the user id carried by a bearer token, or raise UnauthorizedError."""
        if not self._config.jwt_secret:
            raise ConfigurationError("AUTH_JWT_SECRET is not configured")
        scheme, _, token = (authorization or "").partition(" ")
        if scheme.lower() != "bearer" or not token.strip():
            raise UnauthorizedError("Missing bearer token")
        try:
            claims = jwt.decode(
                token.strip(),
                self._config.jwt_secret,
                algorithms=["HS256"],
                audience=self._config.jwt_audience,
                options={"require": ["sub"], "verify_aud": self._config.jwt_audience is not None},
            )
            return UUID(str(claims["sub"]))
        except (jwt.PyJWTError, ValueError) as exc:
            raise UnauthorizedError("Invalid bearer token", cause=exc) from exc

    async def _authorize(self, order: Order, authorization: Optional[str]) -> UUID:
        user_id = self.authenticate(authorization)
        if user_id == order.customer_id:
            return user_id
        if order.restaurant_id is not None:
            owner_id = await self._restaurants.get_owner_id(order.restaurant_id)
            if owner_id is not None and owner_id == user_id:
                return user_id
        raise ForbiddenError(
            "Requester is neither the customer nor the restaurant of this order",
            details={"order_id": str(order.id)},
        )

    # ── resolve + forward ─────────────────────────────────────────────────

    async def _resolve_order(self, table: str, record_id: UUID) -> Order:
        if table == "orders":
            order_id = record_id
        elif table in ("restaurant_assignments", "delivery_assignments"):
            repo = (
                self._restaurant_assignments if table == "restaurant_assignments" else self._delivery_assignments
            )
            assignment = await repo.get_by_id(record_id)
            if assignment is None:
                raise NotFoundError("Assignment not found", details={"table": table, "record_id": str(record_id)})
            order_id = assignment.order_id
        else:
            raise ValidationError("Unsupported table", details={"table": table})
        order = await self._orders.get_by_id(order_id)
        if order is None:
            raise NotFoundError("Order not found", details={"order_id": str(order_id)})
        return order

    async def handle(
        self,
        *,
        table: str,
        record_id: UUID,
        status_column: str,
        new_status: str,
        old_status: Optional[str] = None,
        authorization: Optional[str] = None,
    ) -> ForwardResult:
        if table == "orders" and status_column != "status":
            raise ValidationError(
                "Only orders.status changes are forwarded",
                details={"table": table, "status_column": status_column},
            )
        order = await self._resolve_order(table, record_id)
        if table == "orders":
            await self._authorize(order, authorization)
            status = new_status
        else:
            # Assignment rows carry their own status vocabulary; the restaurant
            # side only ever sees the order's status.
            status = order.status

        canonical = canonicalize_status(status)
        payload = {
            "order_id": str(order.id),
            "status": canonical.value if canonical else status,
            "latitude": order.delivery_latitude,
            "longitude": order.delivery_longitude,
            "action": action_for_status(canonical),
        }
        logger.info(
            "Status change %s.%s %s -> %s forwarded as %s",
            table, status_column, old_status, new_status, payload["action"],
            extra={"order_id": str(order.id)},
        )
        status_code = await self._forward(payload)
        return ForwardResult(downstream_status=status_code, payload=payload)

    async def _forward(self, payload: Dict[str, Any]) -> int:
        url = self._config.forward_url
        if not url:
            raise ForwardingNotConfiguredError("STATUS_WEBHOOK_FORWARD_URL is not configured")
        try:
            if self._client is not None:
                resp = await self._client.post(url, json=payload)
            else:
                async with httpx.AsyncClient(timeout=self._config.timeout) as client:
                    resp = await client.post(url, json=payload)
        except httpx.HTTPError as exc:
            logger.warning("Status forward to %s failed: %s", url, exc, extra={"order_id": payload["order_id"]})
            raise RemoteCallError("Downstream webhook unreachable", cause=exc) from exc
        if resp.status_code >= 400:
            logger.warning(
                "Status forward to %s returned HTTP %d", url, resp.status_code,
                extra={"order_id": payload["order_id"]},
            )
            raise RemoteCallError(
                "Downstream webhook rejected the status change",
                details={"downstream_status": resp.status_code},
            )
        return resp.status_code
