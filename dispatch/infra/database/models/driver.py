"""Delivery driver and availability ORM models."""
from __future__ import annotations

import uuid
from datetime import datetime
from typing import Optional

from sqlalchemy import Boolean, CheckConstraint, DateTime, Float, ForeignKey, Integer, String
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import Mapped, mapped_column, relationship

from dispatch.infra.database.models.base import Base, TimestampMixin, _uuid_pk


class DeliveryUser(Base, TimestampMixin):
    __tablename__ = "delivery_users"

    id: Mapped[uuid.UUID] = _uuid_pk()
    first_name: Mapped[Optional[str]] = mapped_column(String(128), nullable=True)
    last_name: Mapped[Optional[str]] = mapped_column(String(128), nullable=True)
    phone: Mapped[Optional[str]] = mapped_column(String(32), nullable=True)
    average_rating: Mapped[Optional[float]] = mapped_column(Float, nullable=True)

    availability: Mapped[Optional["DriverAvailability"]] = relationship(
        "DriverAvailability", back_populates="driver", uselist=False, lazy="selectin",
    )

    def __repr__(self) -> str:
        return f"DeliveryUser(id={self.id!r})"


class DriverAvailability(Base, TimestampMixin):
    """Live capacity and location of one driver."""

    __tablename__ = "delivery_driver_availability"
    __table_args__ = (
        CheckConstraint("current_delivery_count >= 0", name="delivery_count_nonnegative"),
    )

    delivery_user_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("delivery_users.id", ondelete="CASCADE"),
        primary_key=True,
    )
    is_available: Mapped[bool] = mapped_column(Boolean, nullable=False, server_default="false")
    current_delivery_count: Mapped[int] = mapped_column(Integer, nullable=False, server_default="0")
    max_concurrent_deliveries: Mapped[int] = mapped_column(Integer, nullable=False, server_default="3")
    current_latitude: Mapped[Optional[float]] = mapped_column(Float, nullable=True)
    current_longitude: Mapped[Optional[float]] = mapped_column(Float, nullable=True)
    last_location_update: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)

    driver: Mapped["DeliveryUser"] = relationship("DeliveryUser", back_populates="availability")

    @property
    def has_capacity(self) -> bool:
        return self.is_available and self.current_delivery_count < self.max_concurrent_deliveries
