"""NotificationService: fire-and-forget order notifications."""
from __future__ import annotations

import logging
from typing import Any, Dict, Optional
from uuid import UUID

from sqlalchemy.ext.asyncio import AsyncSession

from dispatch.infra.database.repositories.notification import NotificationRepository
from dispatch.services.side_effects import run_best_effort

logger = logging.getLogger(__name__)


class NotificationService:
    """Writes order_notifications rows; realtime consumers pick them up from there.

    Never raises: a failed insert is logged and the caller carries on.
    """

    def __init__(self, session: AsyncSession) -> None:
        self._session = session
        self._repo = NotificationRepository(session)

    async def _notify(
        self,
        recipient_type: str,
        order_id: UUID,
        recipient_id: Optional[UUID],
        notification_type: str,
        title: str,
        message: str,
        data: Optional[Dict[str, Any]],
    ) -> bool:
        row = await run_best_effort(
            self._session,
            f"{recipient_type} notification {notification_type}",
            lambda: self._repo.create({
                "order_id": order_id,
                "recipient_type": recipient_type,
                "recipient_id": recipient_id,
                "notification_type": notification_type,
                "title": title,
                "message": message,
                "data": data,
            }),
            extra={"order_id": str(order_id)},
        )
        return row is not None

    async def notify_customer(
        self,
        order_id: UUID,
        customer_id: Optional[UUID],
        notification_type: str,
        title: str,
        message: str,
        data: Optional[Dict[str, Any]] = None,
    ) -> bool:
        return await self._notify("customer", order_id, customer_id, notification_type, title, message, data)

    async def notify_restaurant(
        self,
        order_id: UUID,
        restaurant_id: Optional[UUID],
        notification_type: str,
        title: str,
        message: str,
        data: Optional[Dict[str, Any]] = None,
    ) -> bool:
        return await self._notify("restaurant", order_id, restaurant_id, notification_type, title, message, data)
