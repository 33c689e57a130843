"""Image response schema."""

from datetime import datetime

from storeaudit.schemas.common import CamelModel


class ImageOut(CamelModel):
    id: str
    audit_id: str
    image_url: str
    reference_image_url: str | None = None
    latitude: float | None = None
    longitude: float | None = None
    captured_at: datetime
    slot_index: int | None = None
    created_at: datetime
