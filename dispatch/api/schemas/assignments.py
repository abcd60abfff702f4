"""Pydantic schemas for restaurant and delivery assignments."""
from __future__ import annotations

from datetime import datetime
from typing import Any, Dict, Literal, Optional
from uuid import UUID

from pydantic import BaseModel, Field


# ── Restaurant side ───────────────────────────────────────────────────────────

class RestaurantAssignmentResponse(BaseModel):
    id: UUID
    order_id: UUID
    restaurant_id: UUID
    status: str
    expires_at: Optional[datetime] = None
    responded_at: Optional[datetime] = None
    response_notes: Optional[str] = None
    created_at: datetime

    model_config = {"from_attributes": True}


class RestaurantDecisionRequest(BaseModel):
    restaurant_id: UUID
    reason: Optional[str] = Field(None, max_length=500)


class RestaurantAcceptanceResponse(BaseModel):
    order_id: UUID
    assignment_id: UUID
    restaurant_id: UUID
    cancelled_assignments: int
    already_accepted: bool

    model_config = {"from_attributes": True}


class RestaurantRejectionResponse(BaseModel):
    order_id: UUID
    assignment_id: UUID
    order_status: str
    remaining_pending: int

    model_config = {"from_attributes": True}


# ── Delivery side ─────────────────────────────────────────────────────────────

class ManualAssignRequest(BaseModel):
    order_id: UUID
    restaurant_id: UUID
    delivery_user_id: UUID
    window_minutes: Optional[int] = Field(None, description="Must be positive when given.")


class AutoAssignRequest(BaseModel):
    order_id: UUID


class AssignmentResultResponse(BaseModel):
    success: bool
    assignment_id: Optional[UUID] = None
    expires_at: Optional[datetime] = None
    failure_code: Optional[str] = None
    reason: Optional[str] = None
    driver_name: Optional[str] = None
    priority_score: Optional[float] = None

    model_config = {"from_attributes": True}


class DriverResponseRequest(BaseModel):
    delivery_user_id: UUID
    response: Literal["accept", "reject"]
    reason: Optional[str] = Field(None, max_length=500)


class MilestoneRequest(BaseModel):
    delivery_user_id: UUID
    milestone: Literal["picked_up", "on_the_way", "delivered"]


class DeliveryAssignmentResponse(BaseModel):
    id: UUID
    order_id: UUID
    restaurant_id: UUID
    delivery_user_id: UUID
    status: str
    priority_score: float
    expires_at: datetime
    auto_assigned: bool
    assignment_attempt: int
    rejection_reason: Optional[str] = None
    accepted_at: Optional[datetime] = None
    pickup_time: Optional[datetime] = None
    delivered_at: Optional[datetime] = None
    created_at: datetime

    model_config = {"from_attributes": True}


class AssignmentHistoryResponse(BaseModel):
    id: UUID
    assignment_id: UUID
    order_id: UUID
    action: str
    details: Dict[str, Any] = Field(default_factory=dict, serialization_alias="metadata")
    created_at: datetime

    model_config = {"from_attributes": True}


class SweepResponse(BaseModel):
    expired: int
