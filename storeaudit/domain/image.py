"""SQLAlchemy ORM model for audit photos."""

from __future__ import annotations

import uuid
from datetime import datetime
from typing import Optional

from sqlalchemy import DateTime, Float, ForeignKey, Integer, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship

from storeaudit.db.base import Base
from storeaudit.domain.mixins import TimestampMixin, utcnow


class Image(Base, TimestampMixin):
    __tablename__ = "images"
    __table_args__ = (
        # A retried upload for the same capture slot must not add a second row
        UniqueConstraint("audit_id", "slot_index", name="uq_images_audit_slot"),
    )

    id: Mapped[str] = mapped_column(
        String(36), primary_key=True, default=lambda: str(uuid.uuid4())
    )
    audit_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("audits.id", ondelete="CASCADE"), nullable=False, index=True
    )
    image_url: Mapped[str] = mapped_column(String(500), nullable=False)
    reference_image_url: Mapped[Optional[str]] = mapped_column(String(500), nullable=True)
    storage_id: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)

    latitude: Mapped[Optional[float]] = mapped_column(Float, nullable=True)
    longitude: Mapped[Optional[float]] = mapped_column(Float, nullable=True)
    captured_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, nullable=False
    )
    slot_index: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)

    audit: Mapped["Audit"] = relationship(back_populates="images")
