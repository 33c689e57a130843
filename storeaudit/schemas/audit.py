"""Audit Pydantic schemas (request DTOs and response models)."""

from datetime import datetime

from pydantic import Field

from storeaudit.schemas.common import CamelModel
from storeaudit.schemas.image import ImageOut


class AuditCreate(CamelModel):
    # Presence is checked by the service so missing ids get the standard error envelope
    user_id: str | None = None
    store_id: str | None = None
    result: str | None = None
    failed_reason: str | None = None
    notes: str | None = None
    audit_date: datetime | None = None
    skip_status_update: bool = False
    expected_image_count: int | None = None


class AuditUpdate(CamelModel):
    result: str | None = None
    failed_reason: str | None = None
    notes: str | None = None


class AuditOut(CamelModel):
    id: str
    user_id: str
    store_id: str
    result: str | None = None
    failed_reason: str | None = None
    notes: str | None = None
    audit_date: datetime
    expected_image_count: int | None = None
    image_count: int = 0
    images: list[ImageOut] = Field(default_factory=list)
    created_at: datetime
    updated_at: datetime


class AuditFinalizeOut(CamelModel):
    audit_id: str
    store_id: str
    store_status: str
    failed_reason: str | None = None
    image_count: int
    expected_image_count: int | None = None
    missing_image_count: int
    is_complete: bool
