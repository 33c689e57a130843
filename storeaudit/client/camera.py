"""
Geotagged photo capture.

A ``CameraDevice`` hands out exclusive ``LiveFeed`` objects. The capturer
holds at most one open feed, waits for it to report stable dimensions, then
walks an ordered list of frame strategies until one produces a JPEG:

  1. DirectPhotoStrategy      - the platform's "take photo from live track"
  2. OffscreenRenderStrategy  - render a cloned track into an off-screen
                                surface sized to the *native* feed resolution

Each capture is paired with one bounded location read.
"""

from __future__ import annotations

import asyncio
import enum
import io
import logging
import sys
import time
from collections.abc import Callable, Sequence
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Protocol

import cv2
import numpy as np
from PIL import Image, UnidentifiedImageError

from storeaudit.client.config import client_settings
from storeaudit.client.errors import CaptureFailed, DeviceNotReady
from storeaudit.client.location import LocationProvider, read_location
from storeaudit.client.permissions import PermissionFlags

logger = logging.getLogger(__name__)

READY_POLL_INTERVAL = 0.1  # seconds


class Facing(str, enum.Enum):
    REAR = "environment"
    FRONT = "user"

    @property
    def opposite(self) -> "Facing":
        return Facing.FRONT if self is Facing.REAR else Facing.REAR


@dataclass(frozen=True)
class FrameSize:
    width: int
    height: int

    @property
    def is_empty(self) -> bool:
        return self.width <= 0 or self.height <= 0


class LiveFeed(Protocol):
    supports_take_photo: bool

    @property
    def active(self) -> bool: ...

    def native_size(self) -> FrameSize: ...

    async def take_photo(self) -> bytes: ...

    def read_frame(self) -> np.ndarray | None: ...

    def clone(self) -> "LiveFeed": ...

    def stop(self) -> None: ...


class CameraDevice(Protocol):
    async def request_permission(self) -> bool: ...

    async def open(self, facing: Facing) -> LiveFeed: ...


@dataclass(frozen=True)
class FrameResult:
    data: bytes
    width: int
    height: int
    strategy: str


@dataclass(frozen=True)
class CapturedImage:
    """One filled capture slot, ready for upload."""

    slot_index: int
    data: bytes
    latitude: float | None
    longitude: float | None
    timestamp: str  # ISO-8601, UTC
    timezone_offset: int  # minutes, UTC minus local
    width: int
    height: int
    strategy: str
    content_type: str = "image/jpeg"

    @property
    def has_location(self) -> bool:
        return self.latitude is not None and self.longitude is not None


# ---------------------------------------------------------------------------
# Readiness
# ---------------------------------------------------------------------------

async def wait_until_ready(
    feed: LiveFeed, timeout: float, poll_interval: float = READY_POLL_INTERVAL
) -> FrameSize:
    """Poll until the feed reports the same non-zero size twice in a row.

    Raises :class:`DeviceNotReady` after ``timeout`` seconds.
    """
    loop = asyncio.get_running_loop()
    deadline = loop.time() + timeout
    previous: FrameSize | None = None
    while True:
        if not feed.active:
            raise DeviceNotReady("Camera feed stopped before it became ready")
        size = feed.native_size()
        if not size.is_empty and size == previous:
            return size
        previous = size
        if loop.time() >= deadline:
            raise DeviceNotReady(
                f"Camera did not report stable dimensions within {timeout:g}s"
            )
        await asyncio.sleep(poll_interval)


# ---------------------------------------------------------------------------
# Frame strategies
# ---------------------------------------------------------------------------

class FrameStrategy(Protocol):
    name: str

    def supports(self, feed: LiveFeed) -> bool: ...

    async def extract(self, feed: LiveFeed, size: FrameSize) -> FrameResult: ...


class DirectPhotoStrategy:
    name = "direct"

    def supports(self, feed: LiveFeed) -> bool:
        return bool(getattr(feed, "supports_take_photo", False))

    async def extract(self, feed: LiveFeed, size: FrameSize) -> FrameResult:
        data = await feed.take_photo()
        if not data:
            raise CaptureFailed("Platform returned an empty photo")
        try:
            with Image.open(io.BytesIO(data)) as im:
                width, height = im.size
        except (UnidentifiedImageError, OSError) as exc:
            raise CaptureFailed(f"Platform photo is not a readable image: {exc}") from exc
        return FrameResult(data, width, height, self.name)


class OffscreenRenderStrategy:
    """Render a frame from a cloned track into a native-size surface.

    The surface is allocated from ``size`` (what the track reports), never
    from the preview dimensions, so a preview that only shows a cropped or
    scaled region still yields the full frame.
    """

    name = "offscreen"

    def __init__(self, jpeg_quality: float = 0.8):
        self._quality = int(round(min(max(jpeg_quality, 0.0), 1.0) * 100))

    def supports(self, feed: LiveFeed) -> bool:
        return True

    def _render(self, frame: np.ndarray, size: FrameSize) -> bytes:
        if frame.ndim == 2:
            frame = cv2.cvtColor(frame, cv2.COLOR_GRAY2BGR)
        surface = np.zeros((size.height, size.width, 3), dtype=np.uint8)
        if frame.shape[:2] != (size.height, size.width):
            frame = cv2.resize(frame, (size.width, size.height), interpolation=cv2.INTER_LINEAR)
        surface[:, :, :] = frame[:, :, :3]
        ok, buf = cv2.imencode(".jpg", surface, [int(cv2.IMWRITE_JPEG_QUALITY), self._quality])
        if not ok:
            raise CaptureFailed("JPEG encoding failed")
        return buf.tobytes()

    async def extract(self, feed: LiveFeed, size: FrameSize) -> FrameResult:
        track = feed.clone()
        try:
            frame = await asyncio.to_thread(track.read_frame)
            if frame is None or frame.size == 0:
                raise CaptureFailed("Cloned track produced no frame")
            data = await asyncio.to_thread(self._render, frame, size)
        finally:
            track.stop()
        return FrameResult(data, size.width, size.height, self.name)


def default_strategies(jpeg_quality: float = 0.8) -> list[FrameStrategy]:
    return [DirectPhotoStrategy(), OffscreenRenderStrategy(jpeg_quality)]


# ---------------------------------------------------------------------------
# Capturer
# ---------------------------------------------------------------------------

def _local_now() -> datetime:
    return datetime.now().astimezone()


class GeotaggedPhotoCapturer:
    """Owns the single camera feed of a capture session."""

    def __init__(
        self,
        device: CameraDevice,
        location: LocationProvider | None = None,
        *,
        permissions: PermissionFlags | None = None,
        strategies: Sequence[FrameStrategy] | None = None,
        ready_timeout: float | None = None,
        location_timeout: float | None = None,
        location_max_age: float | None = None,
        jpeg_quality: float | None = None,
        clock: Callable[[], datetime] = _local_now,
    ):
        self._device = device
        self._location = location
        self._permissions = permissions
        if strategies is None:
            strategies = default_strategies(
                client_settings.jpeg_quality if jpeg_quality is None else jpeg_quality
            )
        self._strategies = list(strategies)
        self._ready_timeout = (
            client_settings.camera_ready_timeout if ready_timeout is None else ready_timeout
        )
        self._location_timeout = (
            client_settings.location_timeout if location_timeout is None else location_timeout
        )
        self._location_max_age = (
            client_settings.location_max_age if location_max_age is None else location_max_age
        )
        self._clock = clock
        self._feed: LiveFeed | None = None
        self.facing = Facing.REAR

    @property
    def is_open(self) -> bool:
        return self._feed is not None and self._feed.active

    def _release(self) -> None:
        feed, self._feed = self._feed, None
        if feed is not None:
            feed.stop()

    async def open(self, facing: Facing | None = None) -> None:
        """Acquire a feed, stopping any feed already held."""
        self._release()
        if self._permissions is not None:
            await self._permissions.ensure("camera", self._device.request_permission)
        if facing is not None:
            self.facing = facing
        self._feed = await self._device.open(self.facing)
        logger.debug("Camera opened (%s)", self.facing.name.lower())

    async def switch_facing(self) -> Facing:
        self.facing = self.facing.opposite
        if self.is_open:
            await self.open(self.facing)
        return self.facing

    def close_capture(self) -> None:
        """Stop the feed now. Safe to call repeatedly."""
        self._release()

    async def _extract(self, size: FrameSize) -> FrameResult:
        failures = []
        for strategy in self._strategies:
            if not strategy.supports(self._feed):
                continue
            try:
                return await strategy.extract(self._feed, size)
            except Exception as exc:
                logger.info("Frame strategy %s failed: %s", strategy.name, exc)
                failures.append(f"{strategy.name}: {exc}")
        raise CaptureFailed("All frame strategies failed (" + "; ".join(failures) + ")")

    async def capture(self, slot_index: int) -> CapturedImage:
        if not self.is_open:
            raise DeviceNotReady("Camera is not open")

        size = await wait_until_ready(self._feed, self._ready_timeout)
        location_task = asyncio.create_task(
            read_location(
                self._location,
                timeout=self._location_timeout,
                max_age=self._location_max_age,
            )
        )
        try:
            frame = await self._extract(size)
        except BaseException:
            location_task.cancel()
            raise
        position = await location_task

        now = self._clock()
        offset = now.utcoffset()
        offset_minutes = -int(offset.total_seconds() // 60) if offset is not None else 0
        timestamp = now.astimezone(timezone.utc).isoformat(timespec="milliseconds")

        logger.info(
            "Captured slot %d via %s (%dx%d, location=%s)",
            slot_index, frame.strategy, frame.width, frame.height,
            "yes" if position else "no",
        )
        return CapturedImage(
            slot_index=slot_index,
            data=frame.data,
            latitude=position.latitude if position else None,
            longitude=position.longitude if position else None,
            timestamp=timestamp.replace("+00:00", "Z"),
            timezone_offset=offset_minutes,
            width=frame.width,
            height=frame.height,
            strategy=frame.strategy,
        )

    async def open_capture(self, slot_index: int) -> CapturedImage:
        if not self.is_open:
            await self.open()
        return await self.capture(slot_index)


# ---------------------------------------------------------------------------
# OpenCV backend
# ---------------------------------------------------------------------------

def open_camera_with_retry(camera_index: int, timeout_seconds: float) -> cv2.VideoCapture | None:
    cam: cv2.VideoCapture | None = None
    deadline = time.time() + max(timeout_seconds, 0.5)
    backends: list[int | None]
    if sys.platform == "darwin":
        backends = [cv2.CAP_AVFOUNDATION, None]
    else:
        backends = [None]

    while time.time() < deadline:
        for backend in backends:
            cam = cv2.VideoCapture(camera_index) if backend is None else cv2.VideoCapture(camera_index, backend)
            if cam.isOpened():
                return cam
            cam.release()
        time.sleep(0.35)
    return None


class OpenCVFeed:
    """Live feed over ``cv2.VideoCapture``. Clones share the device but never release it."""

    supports_take_photo = False

    def __init__(self, capture: cv2.VideoCapture, *, owner: bool = True):
        self._capture = capture
        self._owner = owner
        self._active = True

    @property
    def active(self) -> bool:
        return self._active and self._capture.isOpened()

    def native_size(self) -> FrameSize:
        if not self.active:
            return FrameSize(0, 0)
        return FrameSize(
            int(self._capture.get(cv2.CAP_PROP_FRAME_WIDTH)),
            int(self._capture.get(cv2.CAP_PROP_FRAME_HEIGHT)),
        )

    async def take_photo(self) -> bytes:
        raise CaptureFailed("OpenCV feeds have no still-photo API")

    def read_frame(self) -> np.ndarray | None:
        if not self.active:
            return None
        ok, frame = self._capture.read()
        return frame if ok else None

    def clone(self) -> "OpenCVFeed":
        return OpenCVFeed(self._capture, owner=False)

    def stop(self) -> None:
        if self._active and self._owner:
            self._capture.release()
        self._active = False


class OpenCVCamera:
    """Desktop/USB camera. Rear and front facing map to device indexes."""

    def __init__(self, rear_index: int = 0, front_index: int = 1, open_timeout: float = 3.0):
        self._indexes = {Facing.REAR: rear_index, Facing.FRONT: front_index}
        self._open_timeout = open_timeout

    async def request_permission(self) -> bool:
        # Desktop OSes grant access at open time; a refusal surfaces as a failed open
        return True

    async def open(self, facing: Facing) -> OpenCVFeed:
        index = self._indexes[facing]
        capture = await asyncio.to_thread(open_camera_with_retry, index, self._open_timeout)
        if capture is None:
            raise DeviceNotReady(f"Camera {index} could not be opened")
        return OpenCVFeed(capture)
