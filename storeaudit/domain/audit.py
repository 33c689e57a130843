"""SQLAlchemy ORM model for store audits."""

from __future__ import annotations

import enum
import uuid
from datetime import datetime
from typing import List, Optional

from sqlalchemy import DateTime, ForeignKey, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from storeaudit.db.base import Base
from storeaudit.domain.mixins import TimestampMixin, utcnow


class AuditResult(str, enum.Enum):
    PASS = "pass"
    FAIL = "fail"


class Audit(Base, TimestampMixin):
    """One field visit to a store by one user.

    ``result`` is NULL for a placeholder audit that only carries photos
    pending review.
    """

    __tablename__ = "audits"

    id: Mapped[str] = mapped_column(
        String(36), primary_key=True, default=lambda: str(uuid.uuid4())
    )
    # Users live in an external service; stored as a plain reference
    user_id: Mapped[str] = mapped_column(String(36), nullable=False, index=True)
    store_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("stores.id", ondelete="CASCADE"), nullable=False, index=True
    )

    # "pass" | "fail" | NULL
    result: Mapped[Optional[str]] = mapped_column(String(20), nullable=True, index=True)
    failed_reason: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    notes: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    audit_date: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, nullable=False, index=True
    )
    expected_image_count: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)

    store: Mapped["Store"] = relationship(back_populates="audits", lazy="noload")
    images: Mapped[List["Image"]] = relationship(
        back_populates="audit",
        lazy="selectin",
        cascade="all, delete-orphan",
        order_by="Image.captured_at",
    )

    @property
    def image_count(self) -> int:
        return len(self.images)

    @property
    def missing_image_count(self) -> int:
        if self.expected_image_count is None:
            return 0
        return max(self.expected_image_count - len(self.images), 0)

    @property
    def is_complete(self) -> bool:
        return self.missing_image_count == 0
