"""Pydantic schemas for the Orders API."""
from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from typing import List, Optional
from uuid import UUID

from pydantic import BaseModel, Field


class OrderItemResponse(BaseModel):
    position: int
    name: str
    quantity: int
    price: Decimal

    model_config = {"from_attributes": True}


class OrderResponse(BaseModel):
    id: UUID
    customer_id: UUID
    restaurant_id: Optional[UUID] = None
    status: str
    delivery_address: Optional[str] = None
    delivery_latitude: Optional[float] = None
    delivery_longitude: Optional[float] = None
    total: Optional[Decimal] = None
    accepted_at: Optional[datetime] = None
    preparation_started_at: Optional[datetime] = None
    ready_at: Optional[datetime] = None
    picked_up_at: Optional[datetime] = None
    delivered_at: Optional[datetime] = None
    created_at: datetime
    updated_at: datetime

    model_config = {"from_attributes": True}


class OrderDetailResponse(OrderResponse):
    items: List[OrderItemResponse] = Field(default_factory=list)


class OrderStatusUpdate(BaseModel):
    status: str = Field(..., min_length=1, max_length=32)
    restaurant_id: Optional[UUID] = Field(
        None, description="When set, the order must belong to this restaurant."
    )


class OfferRequest(BaseModel):
    max_distance_km: Optional[float] = Field(None, gt=0)
    window_minutes: Optional[int] = Field(None, gt=0)
