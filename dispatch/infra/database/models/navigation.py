"""Route, RouteSegment and NavigationSession ORM models."""
from __future__ import annotations

import uuid
from datetime import datetime
from typing import Any, List, Optional

from sqlalchemy import Boolean, DateTime, Float, ForeignKey, Index, Integer, String, Text
from sqlalchemy.dialects.postgresql import JSONB, UUID
from sqlalchemy.orm import Mapped, mapped_column, relationship

from dispatch.infra.database.models.base import Base, TimestampMixin, _uuid_pk


class Route(Base, TimestampMixin):
    """Stored result of one directions call."""

    __tablename__ = "routes"
    __table_args__ = (
        Index("ix_routes_delivery_assignment_id", "delivery_assignment_id"),
    )

    id: Mapped[uuid.UUID] = _uuid_pk()
    delivery_assignment_id: Mapped[Optional[uuid.UUID]] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("delivery_assignments.id", ondelete="SET NULL"),
        nullable=True,
    )
    origin_latitude: Mapped[float] = mapped_column(Float, nullable=False)
    origin_longitude: Mapped[float] = mapped_column(Float, nullable=False)
    destination_latitude: Mapped[float] = mapped_column(Float, nullable=False)
    destination_longitude: Mapped[float] = mapped_column(Float, nullable=False)
    waypoints: Mapped[Optional[list[Any]]] = mapped_column(JSONB, nullable=True)
    waypoint_order: Mapped[Optional[list[Any]]] = mapped_column(JSONB, nullable=True)
    overview_polyline: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    total_distance_m: Mapped[float] = mapped_column(Float, nullable=False, server_default="0")
    total_duration_s: Mapped[float] = mapped_column(Float, nullable=False, server_default="0")
    provider: Mapped[str] = mapped_column(String(32), nullable=False)

    segments: Mapped[List["RouteSegment"]] = relationship(
        "RouteSegment",
        back_populates="route",
        cascade="all, delete-orphan",
        order_by="RouteSegment.segment_index",
        lazy="selectin",
    )


class RouteSegment(Base):
    """One flattened step of a route."""

    __tablename__ = "route_segments"
    __table_args__ = (
        Index("ix_route_segments_route_index", "route_id", "segment_index", unique=True),
    )

    id: Mapped[uuid.UUID] = _uuid_pk()
    route_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), ForeignKey("routes.id", ondelete="CASCADE"), nullable=False,
    )
    segment_index: Mapped[int] = mapped_column(Integer, nullable=False)
    start_latitude: Mapped[float] = mapped_column(Float, nullable=False)
    start_longitude: Mapped[float] = mapped_column(Float, nullable=False)
    end_latitude: Mapped[float] = mapped_column(Float, nullable=False)
    end_longitude: Mapped[float] = mapped_column(Float, nullable=False)
    distance_m: Mapped[float] = mapped_column(Float, nullable=False, server_default="0")
    duration_s: Mapped[float] = mapped_column(Float, nullable=False, server_default="0")
    instruction: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    maneuver: Mapped[Optional[str]] = mapped_column(String(64), nullable=True)
    polyline: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    route: Mapped["Route"] = relationship("Route", back_populates="segments")


class NavigationSession(Base, TimestampMixin):
    """Live tracking of one driver along a route."""

    __tablename__ = "navigation_sessions"
    __table_args__ = (
        Index("ix_navigation_sessions_delivery_user_active", "delivery_user_id", "is_active"),
    )

    id: Mapped[uuid.UUID] = _uuid_pk()
    route_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), ForeignKey("routes.id", ondelete="CASCADE"), nullable=False,
    )
    delivery_user_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), ForeignKey("delivery_users.id", ondelete="CASCADE"), nullable=False,
    )
    assignment_id: Mapped[Optional[uuid.UUID]] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("delivery_assignments.id", ondelete="SET NULL"),
        nullable=True,
    )
    current_step_index: Mapped[int] = mapped_column(Integer, nullable=False, server_default="0")
    current_latitude: Mapped[Optional[float]] = mapped_column(Float, nullable=True)
    current_longitude: Mapped[Optional[float]] = mapped_column(Float, nullable=True)
    distance_remaining_m: Mapped[Optional[float]] = mapped_column(Float, nullable=True)
    time_remaining_s: Mapped[Optional[float]] = mapped_column(Float, nullable=True)
    eta: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    off_route: Mapped[bool] = mapped_column(Boolean, nullable=False, server_default="false")
    reroute_count: Mapped[int] = mapped_column(Integer, nullable=False, server_default="0")
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, server_default="true")
    started_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    completed_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)

    def __repr__(self) -> str:
        return f"NavigationSession(id={self.id!r}, step={self.current_step_index}, active={self.is_active})"
