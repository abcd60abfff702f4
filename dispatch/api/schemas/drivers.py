"""Pydantic schemas for driver search and availability."""
from __future__ import annotations

from datetime import datetime
from typing import Optional
from uuid import UUID

from pydantic import BaseModel, Field


class AvailableDriverResponse(BaseModel):
    delivery_user_id: UUID
    distance_km: float
    priority_score: float
    current_delivery_count: int
    max_concurrent_deliveries: int
    average_rating: Optional[float] = None
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    latitude: Optional[float] = None
    longitude: Optional[float] = None

    model_config = {"from_attributes": True}


class DriverAvailabilityResponse(BaseModel):
    delivery_user_id: UUID
    is_available: bool
    current_delivery_count: int
    max_concurrent_deliveries: int
    current_latitude: Optional[float] = None
    current_longitude: Optional[float] = None
    last_location_update: Optional[datetime] = None

    model_config = {"from_attributes": True}


class DriverAvailabilityUpdate(BaseModel):
    is_available: Optional[bool] = None
    latitude: Optional[float] = Field(None, ge=-90, le=90)
    longitude: Optional[float] = Field(None, ge=-180, le=180)
    max_concurrent_deliveries: Optional[int] = Field(None, gt=0)
