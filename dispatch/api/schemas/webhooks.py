"""Pydantic schemas for the status-to-restaurant webhook."""
from __future__ import annotations

from typing import Any, Dict, Optional
from uuid import UUID

from pydantic import BaseModel, Field


class StatusChangeEvent(BaseModel):
    table: str = Field(..., min_length=1, max_length=64)
    record_id: UUID
    status_column: str = Field(default="status", max_length=64)
    new_status: str = Field(..., min_length=1, max_length=32)
    old_status: Optional[str] = None


class StatusForwardResponse(BaseModel):
    success: bool = True
    downstream_status: int
    payload: Dict[str, Any]
