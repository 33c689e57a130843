"""Store Pydantic schemas (request DTOs and response models)."""

from datetime import datetime

from pydantic import Field

from storeaudit.schemas.audit import AuditOut
from storeaudit.schemas.common import CamelModel


class StoreCreate(CamelModel):
    store_name: str = Field(min_length=1, max_length=200)
    store_code: str | None = None  # generated (CH000001, ...) when omitted
    address: str | None = None


class StoreUpdate(CamelModel):
    store_name: str | None = None
    address: str | None = None
    latitude: float | None = None
    longitude: float | None = None


class StoreStatusUpdate(CamelModel):
    status: str
    failed_reason: str | None = None
    audit_id: str | None = None


class StoreOut(CamelModel):
    id: str
    store_code: str
    store_name: str
    address: str | None = None
    status: str
    failed_reason: str | None = None
    latitude: float | None = None
    longitude: float | None = None
    created_at: datetime
    updated_at: datetime


class StoreDetailOut(StoreOut):
    audits: list[AuditOut] = Field(default_factory=list)


class StoreResetOut(CamelModel):
    store: StoreOut
    audits_deleted: int
    images_deleted: int
