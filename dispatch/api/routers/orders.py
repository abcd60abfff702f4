"""Orders API: list, get, status transitions and restaurant offers."""
from __future__ import annotations

import uuid
from typing import List, Optional

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from dispatch.api.dependencies import get_dispatch_config, get_session
from dispatch.api.schemas.assignments import RestaurantAssignmentResponse
from dispatch.api.schemas.orders import (
    OfferRequest,
    OrderDetailResponse,
    OrderResponse,
    OrderStatusUpdate,
)
from dispatch.config import DispatchConfig
from dispatch.services.order_service import OrderService
from dispatch.services.restaurant_handoff_service import RestaurantHandoffService

router = APIRouter(prefix="/orders", tags=["orders"])


@router.get("", response_model=List[OrderResponse])
async def list_orders(
    status: Optional[str] = None,
    customer_id: Optional[uuid.UUID] = None,
    restaurant_id: Optional[uuid.UUID] = None,
    skip: int = 0,
    limit: int = 100,
    session: AsyncSession = Depends(get_session),
):
    """List orders, optionally filtered by status (aliases such as ``preparing`` accepted)."""
    svc = OrderService(session)
    return await svc.list_orders(
        status=status, customer_id=customer_id, restaurant_id=restaurant_id, skip=skip, limit=limit,
    )


@router.get("/{order_id}", response_model=OrderDetailResponse)
async def get_order(
    order_id: uuid.UUID,
    session: AsyncSession = Depends(get_session),
):
    return await OrderService(session).get_order(order_id)


@router.patch("/{order_id}/status", response_model=OrderResponse)
async def update_order_status(
    order_id: uuid.UUID,
    body: OrderStatusUpdate,
    session: AsyncSession = Depends(get_session),
):
    """Move the order along the status table. Disallowed edges answer 409."""
    svc = OrderService(session)
    return await svc.update_status(order_id, body.status, restaurant_id=body.restaurant_id)


@router.get("/{order_id}/restaurant-assignments", response_model=List[RestaurantAssignmentResponse])
async def list_restaurant_assignments(
    order_id: uuid.UUID,
    session: AsyncSession = Depends(get_session),
):
    return await RestaurantHandoffService(session).list_order_assignments(order_id)


@router.post("/{order_id}/offer", response_model=List[RestaurantAssignmentResponse], status_code=201)
async def offer_to_restaurants(
    order_id: uuid.UUID,
    body: Optional[OfferRequest] = None,
    session: AsyncSession = Depends(get_session),
    config: DispatchConfig = Depends(get_dispatch_config),
):
    """Offer the order to every active restaurant in range."""
    body = body or OfferRequest()
    svc = RestaurantHandoffService(session, config)
    return await svc.offer_to_restaurants(
        order_id, max_distance_km=body.max_distance_km, window_minutes=body.window_minutes,
    )
