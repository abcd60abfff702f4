"""Restaurant and delivery assignment ORM models."""
from __future__ import annotations

import uuid
from datetime import datetime
from typing import Optional

from sqlalchemy import Boolean, DateTime, Float, ForeignKey, Index, Integer, String, Text, text
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import Mapped, mapped_column

from dispatch.infra.database.models.base import Base, TimestampMixin, _uuid_pk


class RestaurantAssignment(Base, TimestampMixin):
    """Candidate pairing of an unclaimed order with one restaurant."""

    __tablename__ = "restaurant_assignments"
    __table_args__ = (
        Index("ix_restaurant_assignments_order_status", "order_id", "status"),
        Index("ix_restaurant_assignments_restaurant_id", "restaurant_id"),
        # At most one accepted candidate per order
        Index(
            "uq_restaurant_assignments_one_accepted",
            "order_id",
            unique=True,
            postgresql_where=text("status = 'accepted'"),
        ),
    )

    id: Mapped[uuid.UUID] = _uuid_pk()
    order_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), ForeignKey("orders.id", ondelete="CASCADE"), nullable=False,
    )
    restaurant_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), ForeignKey("restaurants.id", ondelete="CASCADE"), nullable=False,
    )
    status: Mapped[str] = mapped_column(String(16), nullable=False, server_default="pending")
    """pending | accepted | rejected | cancelled | expired"""

    expires_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    responded_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    response_notes: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    def __repr__(self) -> str:
        return f"RestaurantAssignment(id={self.id!r}, order_id={self.order_id!r}, status={self.status!r})"


class DeliveryAssignment(Base, TimestampMixin):
    """Pairing of an accepted order with one delivery driver."""

    __tablename__ = "delivery_assignments"
    __table_args__ = (
        Index("ix_delivery_assignments_status_expires", "status", "expires_at"),
        Index("ix_delivery_assignments_delivery_user_id", "delivery_user_id"),
        Index(
            "uq_delivery_assignments_one_active",
            "order_id",
            unique=True,
            postgresql_where=text("status IN ('assigned', 'accepted', 'picked_up', 'on_the_way')"),
        ),
    )

    id: Mapped[uuid.UUID] = _uuid_pk()
    order_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), ForeignKey("orders.id", ondelete="CASCADE"), nullable=False,
    )
    restaurant_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), ForeignKey("restaurants.id", ondelete="CASCADE"), nullable=False,
    )
    delivery_user_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), ForeignKey("delivery_users.id", ondelete="CASCADE"), nullable=False,
    )
    status: Mapped[str] = mapped_column(String(16), nullable=False, server_default="assigned")
    """assigned | accepted | picked_up | on_the_way | delivered | rejected | expired"""

    priority_score: Mapped[float] = mapped_column(Float, nullable=False, server_default="0")
    expires_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    auto_assigned: Mapped[bool] = mapped_column(Boolean, nullable=False, server_default="false")
    assignment_attempt: Mapped[int] = mapped_column(Integer, nullable=False, server_default="1")
    rejection_reason: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    accepted_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    pickup_time: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    delivered_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)

    def __repr__(self) -> str:
        return f"DeliveryAssignment(id={self.id!r}, order_id={self.order_id!r}, status={self.status!r})"
