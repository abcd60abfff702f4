"""Pydantic schemas for routes and navigation sessions."""
from __future__ import annotations

from datetime import datetime
from typing import List, Optional
from uuid import UUID

from pydantic import BaseModel, Field


class Point(BaseModel):
    latitude: float = Field(..., ge=-90, le=90)
    longitude: float = Field(..., ge=-180, le=180)


class RouteRequest(BaseModel):
    origin: Point
    destination: Point
    waypoints: List[Point] = Field(default_factory=list)
    assignment_id: Optional[UUID] = None


class RouteSegmentResponse(BaseModel):
    segment_index: int
    start_latitude: float
    start_longitude: float
    end_latitude: float
    end_longitude: float
    distance_m: float
    duration_s: float
    instruction: Optional[str] = None
    maneuver: Optional[str] = None

    model_config = {"from_attributes": True}


class RouteResponse(BaseModel):
    id: UUID
    delivery_assignment_id: Optional[UUID] = None
    destination_latitude: float
    destination_longitude: float
    total_distance_m: float
    total_duration_s: float
    overview_polyline: Optional[str] = None
    provider: str
    segments: List[RouteSegmentResponse] = Field(default_factory=list)

    model_config = {"from_attributes": True}


class EtaResponse(BaseModel):
    route_id: UUID
    eta: datetime


class StartNavigationRequest(BaseModel):
    route_id: UUID
    delivery_user_id: UUID
    assignment_id: Optional[UUID] = None


class NavigationSessionResponse(BaseModel):
    id: UUID
    route_id: UUID
    delivery_user_id: UUID
    assignment_id: Optional[UUID] = None
    current_step_index: int
    distance_remaining_m: Optional[float] = None
    time_remaining_s: Optional[float] = None
    eta: Optional[datetime] = None
    off_route: bool
    reroute_count: int
    is_active: bool
    started_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None

    model_config = {"from_attributes": True}


class CurrentStepResponse(BaseModel):
    index: int
    instruction: Optional[str] = None
    distance_to_step_m: float
    maneuver: Optional[str] = None

    model_config = {"from_attributes": True}


class ProgressResponse(BaseModel):
    percent: float
    distance_remaining_m: float
    time_remaining_s: float
    total_distance_m: float

    model_config = {"from_attributes": True}


class NavigationUpdateResponse(BaseModel):
    session_id: UUID
    route_id: UUID
    current_step: CurrentStepResponse
    progress: ProgressResponse
    eta: datetime
    off_route: bool
    reroute_count: int
    rerouted: bool

    model_config = {"from_attributes": True}
