"""Image recording: watermark + store an uploaded photo, then append it to its audit."""

from __future__ import annotations

import logging
from datetime import datetime, timedelta, timezone
from zoneinfo import ZoneInfo

from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from storeaudit.core.config import settings
from storeaudit.core.exceptions import ConflictError, NotFoundError, StorageError, ValidationError
from storeaudit.domain.image import Image
from storeaudit.domain.mixins import as_utc, utcnow
from storeaudit.repositories.audit import AuditRepository
from storeaudit.repositories.image import ImageRepository
from storeaudit.services.storage import WatermarkStorage, build_watermark_text
from storeaudit.services.store_status import StoreStatusService

logger = logging.getLogger(__name__)


def parse_capture_timestamp(value: str | None) -> datetime:
    """ISO-8601 capture time as an aware UTC datetime (now when absent)."""
    if not value:
        return datetime.now(timezone.utc)
    try:
        parsed = datetime.fromisoformat(value.strip().replace("Z", "+00:00"))
    except ValueError:
        raise ValidationError(f"Invalid timestamp '{value}'") from None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed.astimezone(timezone.utc)


def local_capture_time(captured_at: datetime, timezone_offset: int | None) -> datetime:
    """Wall-clock time at the capture device.

    ``timezone_offset`` is in minutes, UTC minus local (UTC+7 is ``-420``).
    Without it the configured audit timezone is used.
    """
    if timezone_offset is None:
        return captured_at.astimezone(ZoneInfo(settings.audit_timezone))
    return (captured_at - timedelta(minutes=timezone_offset)).replace(tzinfo=None)


def _check_coordinate(name: str, value: float | None, bound: float) -> None:
    if value is not None and not -bound <= value <= bound:
        raise ValidationError(f"{name} must be between -{bound:g} and {bound:g}")


class ImageService:
    def __init__(self, session: AsyncSession, storage: WatermarkStorage | None = None):
        self._repo = ImageRepository(session)
        self._audits = AuditRepository(session)
        self._status = StoreStatusService(session)
        self._storage = storage

    async def _require_audit(self, audit_id: str):
        audit = await self._audits.get_by_id(audit_id)
        if not audit:
            raise NotFoundError("Audit", audit_id)
        return audit

    async def add_image(
        self,
        audit_id: str,
        image_url: str,
        latitude: float | None = None,
        longitude: float | None = None,
        captured_at: datetime | None = None,
        *,
        reference_image_url: str | None = None,
        slot_index: int | None = None,
        storage_id: str | None = None,
    ) -> Image:
        """Append an image reference to an audit. Does not touch store status."""
        await self._require_audit(audit_id)
        return await self._repo.create(
            audit_id=audit_id,
            image_url=image_url,
            reference_image_url=reference_image_url,
            latitude=latitude,
            longitude=longitude,
            captured_at=as_utc(captured_at) if captured_at is not None else utcnow(),
            slot_index=slot_index,
            storage_id=storage_id,
        )

    async def upload_image(
        self,
        audit_id: str,
        content: bytes,
        *,
        latitude: float | None = None,
        longitude: float | None = None,
        timestamp: str | None = None,
        timezone_offset: int | None = None,
        slot_index: int | None = None,
        reference_image_url: str | None = None,
    ) -> Image:
        if self._storage is None:
            raise StorageError("No image storage configured")

        _check_coordinate("latitude", latitude, 90)
        _check_coordinate("longitude", longitude, 180)
        if slot_index is not None and slot_index < 0:
            raise ValidationError("slotIndex must be zero or positive")

        await self._require_audit(audit_id)
        if slot_index is not None and await self._repo.get_by_slot(audit_id, slot_index):
            raise ConflictError(f"Audit '{audit_id}' already has an image for slot {slot_index}")

        captured_at = parse_capture_timestamp(timestamp)
        text = build_watermark_text(
            latitude, longitude, local_capture_time(captured_at, timezone_offset)
        )
        stored = await self._storage.store(content, text)

        try:
            image = await self.add_image(
                audit_id,
                stored.url,
                latitude,
                longitude,
                captured_at,
                reference_image_url=reference_image_url,
                slot_index=slot_index,
                storage_id=stored.storage_id,
            )
        except IntegrityError:
            # A concurrent upload took the slot between the check and the insert
            await self._discard_file(stored.storage_id)
            raise ConflictError(
                f"Audit '{audit_id}' already has an image for slot {slot_index}"
            ) from None
        except Exception:
            await self._discard_file(stored.storage_id)
            raise
        logger.info("Image %s uploaded for audit %s (slot %s)", image.id, audit_id, slot_index)
        return image

    async def list_for_audit(self, audit_id: str) -> list[Image]:
        await self._require_audit(audit_id)
        return await self._repo.list_for_audit(audit_id)

    async def get_image(self, image_id: str) -> Image:
        image = await self._repo.get_by_id(image_id)
        if not image:
            raise NotFoundError("Image", image_id)
        return image

    async def delete_image(self, image_id: str) -> None:
        """Remove an image row and its stored file, then recompute the store status."""
        image = await self.get_image(image_id)
        audit = await self._require_audit(image.audit_id)
        storage_id = image.storage_id

        await self._repo.delete(image)
        await self._status.recompute(audit.store_id)

        if storage_id:
            await self._discard_file(storage_id)

    async def _discard_file(self, storage_id: str) -> None:
        if self._storage is None:
            return
        try:
            await self._storage.delete(storage_id)
        except StorageError as exc:
            logger.warning("Stored file %s could not be removed: %s", storage_id, exc)
