"""Driver search and availability."""
from __future__ import annotations

import uuid
from typing import List, Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from dispatch.api.dependencies import get_dispatch_config, get_session
from dispatch.api.schemas.drivers import (
    AvailableDriverResponse,
    DriverAvailabilityResponse,
    DriverAvailabilityUpdate,
)
from dispatch.config import DispatchConfig
from dispatch.services.delivery_handoff_service import DeliveryHandoffService

router = APIRouter(tags=["drivers"])


@router.get("/restaurants/{restaurant_id}/available-drivers", response_model=List[AvailableDriverResponse])
async def available_drivers(
    restaurant_id: uuid.UUID,
    max_distance_km: Optional[float] = Query(None, gt=0),
    limit: Optional[int] = Query(None, gt=0, le=100),
    session: AsyncSession = Depends(get_session),
    config: DispatchConfig = Depends(get_dispatch_config),
):
    """Available drivers around the restaurant, best priority score first."""
    svc = DeliveryHandoffService(session, config)
    return await svc.get_available_drivers(restaurant_id, max_distance_km, limit)


@router.get("/drivers/{driver_id}/availability", response_model=DriverAvailabilityResponse)
async def get_availability(
    driver_id: uuid.UUID,
    session: AsyncSession = Depends(get_session),
):
    return await DeliveryHandoffService(session).get_driver_availability(driver_id)


@router.put("/drivers/{driver_id}/availability", response_model=DriverAvailabilityResponse)
async def update_availability(
    driver_id: uuid.UUID,
    body: DriverAvailabilityUpdate,
    session: AsyncSession = Depends(get_session),
):
    svc = DeliveryHandoffService(session)
    return await svc.update_driver_availability(
        driver_id,
        is_available=body.is_available,
        latitude=body.latitude,
        longitude=body.longitude,
        max_concurrent_deliveries=body.max_concurrent_deliveries,
    )
