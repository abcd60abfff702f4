"""Delivery-side handoff: manual and automatic assignment, driver responses, milestones."""
from __future__ import annotations

import uuid
from typing import List

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from dispatch.api.dependencies import get_dispatch_config, get_session
from dispatch.api.schemas.assignments import (
    AssignmentHistoryResponse,
    AssignmentResultResponse,
    AutoAssignRequest,
    DeliveryAssignmentResponse,
    DriverResponseRequest,
    ManualAssignRequest,
    MilestoneRequest,
    SweepResponse,
)
from dispatch.config import DispatchConfig
from dispatch.services.delivery_handoff_service import DeliveryHandoffService

router = APIRouter(prefix="/delivery-assignments", tags=["delivery-assignments"])


@router.post("/manual", response_model=AssignmentResultResponse)
async def manual_assign(
    body: ManualAssignRequest,
    session: AsyncSession = Depends(get_session),
    config: DispatchConfig = Depends(get_dispatch_config),
):
    """Assign a chosen driver. A driver at capacity answers 200 with success=false."""
    svc = DeliveryHandoffService(session, config)
    return await svc.manually_assign_delivery(
        body.order_id, body.restaurant_id, body.delivery_user_id, body.window_minutes,
    )


@router.post("/auto", response_model=AssignmentResultResponse)
async def auto_assign(
    body: AutoAssignRequest,
    session: AsyncSession = Depends(get_session),
    config: DispatchConfig = Depends(get_dispatch_config),
):
    return await DeliveryHandoffService(session, config).auto_assign_delivery(body.order_id)


@router.post("/{assignment_id}/respond", response_model=DeliveryAssignmentResponse)
async def respond(
    assignment_id: uuid.UUID,
    body: DriverResponseRequest,
    session: AsyncSession = Depends(get_session),
    config: DispatchConfig = Depends(get_dispatch_config),
):
    svc = DeliveryHandoffService(session, config)
    return await svc.handle_assignment_response(
        assignment_id, body.delivery_user_id, body.response, body.reason,
    )


@router.post("/{assignment_id}/milestones", response_model=DeliveryAssignmentResponse)
async def record_milestone(
    assignment_id: uuid.UUID,
    body: MilestoneRequest,
    session: AsyncSession = Depends(get_session),
    config: DispatchConfig = Depends(get_dispatch_config),
):
    svc = DeliveryHandoffService(session, config)
    return await svc.record_delivery_milestone(assignment_id, body.delivery_user_id, body.milestone)


@router.get("/{assignment_id}/history", response_model=List[AssignmentHistoryResponse])
async def assignment_history(
    assignment_id: uuid.UUID,
    session: AsyncSession = Depends(get_session),
):
    return await DeliveryHandoffService(session).get_assignment_history(assignment_id)


@router.post("/expire", response_model=SweepResponse)
async def expire_delivery_assignments(
    session: AsyncSession = Depends(get_session),
    config: DispatchConfig = Depends(get_dispatch_config),
):
    """Expire overdue assignments and try to reassign their orders."""
    expired = await DeliveryHandoffService(session, config).process_expired_assignments()
    return SweepResponse(expired=expired)
