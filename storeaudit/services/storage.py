"""Watermark & storage boundary.

Burns the capture metadata visibly into an uploaded photo and persists it,
returning a permanent public URL. The default backend writes JPEGs under
``MEDIA_DIR`` which the app serves from ``/media``.
"""

from __future__ import annotations

import asyncio
import io
import logging
import uuid
from dataclasses import dataclass
from datetime import datetime
from pathlib import Path
from typing import Protocol

from PIL import Image, ImageColor, ImageDraw, ImageFont, ImageOps, UnidentifiedImageError

from storeaudit.core.config import settings
from storeaudit.core.exceptions import StorageError, ValidationError

logger = logging.getLogger(__name__)

WATERMARK_OFFSET = (15, 15)  # from the top-right corner
WATERMARK_TIME_FORMAT = "%d-%m-%Y %H:%M:%S"


def build_watermark_text(
    latitude: float | None, longitude: float | None, local_time: datetime
) -> str:
    """``Lat: 10.123456 Long: 106.654321 19-10-2026 14:03:22`` (``N/A`` when unknown)."""
    lat = f"{latitude:.6f}" if latitude is not None else "N/A"
    lon = f"{longitude:.6f}" if longitude is not None else "N/A"
    return f"Lat: {lat} Long: {lon} {local_time.strftime(WATERMARK_TIME_FORMAT)}"


@dataclass(frozen=True)
class StoredImage:
    url: str
    storage_id: str
    width: int
    height: int


class WatermarkStorage(Protocol):
    async def store(self, content: bytes, watermark_text: str) -> StoredImage: ...

    async def delete(self, storage_id: str) -> None: ...


class LocalWatermarkStorage:
    """Pillow watermarking + local filesystem persistence."""

    def __init__(
        self,
        media_dir: str | Path,
        folder: str,
        url_prefix: str,
        *,
        font_size: int = 18,
        color: str = "#0138C3",
        font_path: str | None = None,
        jpeg_quality: int = 85,
    ):
        self._root = Path(media_dir)
        self._folder = folder.strip("/")
        self._url_prefix = url_prefix.rstrip("/")
        self._font_size = font_size
        self._color = ImageColor.getrgb(color)
        self._font_path = font_path
        self._jpeg_quality = jpeg_quality

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    async def store(self, content: bytes, watermark_text: str) -> StoredImage:
        return await asyncio.to_thread(self._store_sync, content, watermark_text)

    async def delete(self, storage_id: str) -> None:
        await asyncio.to_thread(self._delete_sync, storage_id)

    # ------------------------------------------------------------------
    # Internals (run in a worker thread)
    # ------------------------------------------------------------------

    def _font(self) -> ImageFont.ImageFont | ImageFont.FreeTypeFont:
        if self._font_path:
            try:
                return ImageFont.truetype(self._font_path, self._font_size)
            except OSError:
                logger.warning("Watermark font %s not loadable; using default", self._font_path)
        return ImageFont.load_default(size=self._font_size)

    def render(self, content: bytes, watermark_text: str) -> tuple[bytes, int, int]:
        """Return (jpeg_bytes, width, height) with the text drawn top-right."""
        try:
            with Image.open(io.BytesIO(content)) as im:
                im.load()
                base = ImageOps.exif_transpose(im).convert("RGB")
        except (UnidentifiedImageError, OSError) as exc:
            raise ValidationError("Uploaded file is not a readable image") from exc

        draw = ImageDraw.Draw(base)
        font = self._font()
        left, top, right, bottom = draw.textbbox((0, 0), watermark_text, font=font)
        text_w = right - left
        x = max(base.width - text_w - WATERMARK_OFFSET[0], 0)
        y = WATERMARK_OFFSET[1]

        # 1px black shadow under the coloured text
        draw.text((x + 1, y + 1), watermark_text, font=font, fill=(0, 0, 0))
        draw.text((x, y), watermark_text, font=font, fill=self._color)

        out = io.BytesIO()
        base.save(out, format="JPEG", quality=self._jpeg_quality)
        return out.getvalue(), base.width, base.height

    def _store_sync(self, content: bytes, watermark_text: str) -> StoredImage:
        data, width, height = self.render(content, watermark_text)

        name = f"{uuid.uuid4().hex}.jpg"
        storage_id = f"{self._folder}/{name}" if self._folder else name
        path = self._root / storage_id
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            path.write_bytes(data)
        except OSError as exc:
            raise StorageError(f"Could not persist image: {exc}") from exc

        logger.debug("Stored watermarked image %s (%dx%d)", storage_id, width, height)
        return StoredImage(
            url=f"{self._url_prefix}/{storage_id}",
            storage_id=storage_id,
            width=width,
            height=height,
        )

    def _delete_sync(self, storage_id: str) -> None:
        path = (self._root / storage_id).resolve()
        if self._root.resolve() not in path.parents:
            raise StorageError(f"Refusing to delete outside media root: {storage_id}")
        try:
            path.unlink(missing_ok=True)
        except OSError as exc:
            raise StorageError(f"Could not delete image: {exc}") from exc


def get_storage() -> WatermarkStorage:
    """Storage backend built from settings (FastAPI dependency / CLI)."""
    return LocalWatermarkStorage(
        settings.media_dir,
        settings.media_folder,
        settings.media_url_prefix,
        font_size=settings.watermark_font_size,
        color=settings.watermark_color,
        font_path=settings.watermark_font_path,
        jpeg_quality=settings.jpeg_quality,
    )
