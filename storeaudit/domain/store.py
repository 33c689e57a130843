"""SQLAlchemy ORM model for Stores.

``status`` and ``failed_reason`` are owned by the store status state machine
(:mod:`storeaudit.services.store_status`); nothing else writes them.
"""

from __future__ import annotations

import enum
import uuid
from typing import List, Optional

from sqlalchemy import Float, String, Text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from storeaudit.db.base import Base
from storeaudit.domain.mixins import TimestampMixin


class StoreStatus(str, enum.Enum):
    NOT_AUDITED = "not_audited"
    AUDITED = "audited"
    PASSED = "passed"
    FAILED = "failed"


class Store(Base, TimestampMixin):
    __tablename__ = "stores"

    id: Mapped[str] = mapped_column(
        String(36), primary_key=True, default=lambda: str(uuid.uuid4())
    )
    store_code: Mapped[str] = mapped_column(String(50), nullable=False, unique=True, index=True)
    store_name: Mapped[str] = mapped_column(String(200), nullable=False)
    address: Mapped[Optional[str]] = mapped_column(String(500), nullable=True)

    # "not_audited" | "audited" | "passed" | "failed"
    status: Mapped[str] = mapped_column(
        String(20), default=StoreStatus.NOT_AUDITED.value, nullable=False, index=True
    )
    failed_reason: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    # Last known position, taken from the first photo of the latest capture
    latitude: Mapped[Optional[float]] = mapped_column(Float, nullable=True)
    longitude: Mapped[Optional[float]] = mapped_column(Float, nullable=True)

    audits: Mapped[List["Audit"]] = relationship(back_populates="store", lazy="noload")
