"""Public webhook endpoints.

These routes live under /webhooks/ (not /api/v1/) so the admin API-key
middleware does not apply; order status changes authenticate with the
caller's bearer token instead.
"""
from __future__ import annotations

import logging
from typing import Optional

from fastapi import APIRouter, Depends, Header
from sqlalchemy.ext.asyncio import AsyncSession

from dispatch.api.dependencies import get_session, get_webhook_config
from dispatch.api.schemas.webhooks import StatusChangeEvent, StatusForwardResponse
from dispatch.config import WebhookConfig
from dispatch.services.status_webhook_service import StatusWebhookService

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/webhooks", tags=["webhooks"])


@router.post("/status-to-restaurant", response_model=StatusForwardResponse)
async def status_to_restaurant(
    body: StatusChangeEvent,
    authorization: Optional[str] = Header(None),
    session: AsyncSession = Depends(get_session),
    config: WebhookConfig = Depends(get_webhook_config),
):
    """Translate a status-change event and forward it to the restaurant endpoint."""
    svc = StatusWebhookService(session, config)
    result = await svc.handle(
        table=body.table,
        record_id=body.record_id,
        status_column=body.status_column,
        new_status=body.new_status,
        old_status=body.old_status,
        authorization=authorization,
    )
    return StatusForwardResponse(downstream_status=result.downstream_status, payload=result.payload)
