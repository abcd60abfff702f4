"""Restaurant-side handoff: accept, reject, pending offers and the expiry sweep."""
from __future__ import annotations

import uuid
from typing import List

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from dispatch.api.dependencies import get_dispatch_config, get_session
from dispatch.api.schemas.assignments import (
    RestaurantAcceptanceResponse,
    RestaurantAssignmentResponse,
    RestaurantDecisionRequest,
    RestaurantRejectionResponse,
    SweepResponse,
)
from dispatch.config import DispatchConfig
from dispatch.services.restaurant_handoff_service import RestaurantHandoffService

router = APIRouter(tags=["restaurant-assignments"])


@router.post(
    "/orders/{order_id}/restaurant-assignments/{assignment_id}/accept",
    response_model=RestaurantAcceptanceResponse,
)
async def accept_assignment(
    order_id: uuid.UUID,
    assignment_id: uuid.UUID,
    body: RestaurantDecisionRequest,
    session: AsyncSession = Depends(get_session),
    config: DispatchConfig = Depends(get_dispatch_config),
):
    """Accept an offer. Every other pending offer for the order is cancelled."""
    svc = RestaurantHandoffService(session, config)
    return await svc.accept_restaurant_assignment(order_id, body.restaurant_id, assignment_id)


@router.post(
    "/orders/{order_id}/restaurant-assignments/{assignment_id}/reject",
    response_model=RestaurantRejectionResponse,
)
async def reject_assignment(
    order_id: uuid.UUID,
    assignment_id: uuid.UUID,
    body: RestaurantDecisionRequest,
    session: AsyncSession = Depends(get_session),
    config: DispatchConfig = Depends(get_dispatch_config),
):
    svc = RestaurantHandoffService(session, config)
    return await svc.reject_restaurant_assignment(order_id, body.restaurant_id, assignment_id, body.reason)


@router.get(
    "/restaurants/{restaurant_id}/pending-assignments",
    response_model=List[RestaurantAssignmentResponse],
)
async def list_pending_assignments(
    restaurant_id: uuid.UUID,
    session: AsyncSession = Depends(get_session),
):
    """Offers still waiting for this restaurant's answer and not yet expired."""
    return await RestaurantHandoffService(session).list_pending_for_restaurant(restaurant_id)


@router.post("/restaurant-assignments/expire", response_model=SweepResponse)
async def expire_restaurant_assignments(
    session: AsyncSession = Depends(get_session),
    config: DispatchConfig = Depends(get_dispatch_config),
):
    expired = await RestaurantHandoffService(session, config).process_expired_restaurant_assignments()
    return SweepResponse(expired=expired)
