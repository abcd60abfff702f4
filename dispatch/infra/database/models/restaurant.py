"""Restaurant ORM model."""
from __future__ import annotations

import uuid
from typing import Optional

from sqlalchemy import Boolean, Float, String, Text
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import Mapped, mapped_column

from dispatch.infra.database.models.base import Base, TimestampMixin, _uuid_pk


class Restaurant(Base, TimestampMixin):
    """A restaurant that can be offered orders and hands them to drivers."""

    __tablename__ = "restaurants"

    id: Mapped[uuid.UUID] = _uuid_pk()

    owner_user_id: Mapped[Optional[uuid.UUID]] = mapped_column(
        UUID(as_uuid=True), nullable=True, index=True,
    )
    """User account allowed to act for this restaurant."""

    name: Mapped[str] = mapped_column(String(255), nullable=False)
    address: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    latitude: Mapped[Optional[float]] = mapped_column(Float, nullable=True)
    longitude: Mapped[Optional[float]] = mapped_column(Float, nullable=True)
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, server_default="true")

    def __repr__(self) -> str:
        return f"Restaurant(id={self.id!r}, name={self.name!r})"
