import asyncio
import io
from datetime import datetime, timedelta, timezone

import pytest
from PIL import Image as PILImage

from fakes import FakeDevice, FakeFeed, jpeg
from storeaudit.client.camera import (
    DirectPhotoStrategy,
    Facing,
    FrameSize,
    GeotaggedPhotoCapturer,
    OffscreenRenderStrategy,
    wait_until_ready,
)
from storeaudit.client.errors import CaptureFailed, DeviceNotReady, PermissionDenied
from storeaudit.client.location import Position, StaticLocationProvider, read_location
from storeaudit.client.permissions import PermissionFlags

UTC_PLUS_7 = timezone(timedelta(hours=7))


def _clock():
    return datetime(2026, 10, 19, 14, 3, 22, tzinfo=UTC_PLUS_7)


def _capturer(device=None, location=None, **kwargs):
    kwargs.setdefault("ready_timeout", 0.5)
    kwargs.setdefault("location_timeout", 0.2)
    return GeotaggedPhotoCapturer(
        device or FakeDevice(), location, clock=_clock, **kwargs
    )


# =============================================================================
# Readiness
# =============================================================================

class TestWaitUntilReady:

    async def test_needs_two_identical_non_zero_polls(self):
        feed = FakeFeed(sizes=[(0, 0), (320, 240), (640, 480), (640, 480)])
        size = await wait_until_ready(feed, timeout=1.0, poll_interval=0.001)
        assert size == FrameSize(640, 480)

    async def test_times_out_when_never_ready(self):
        feed = FakeFeed(sizes=[(0, 0)])
        with pytest.raises(DeviceNotReady):
            await wait_until_ready(feed, timeout=0.05, poll_interval=0.01)

    async def test_stopped_feed_is_not_ready(self):
        feed = FakeFeed()
        feed.stop()
        with pytest.raises(DeviceNotReady):
            await wait_until_ready(feed, timeout=1.0)


# =============================================================================
# Frame strategies
# =============================================================================

class TestStrategies:

    async def test_direct_photo(self):
        feed = FakeFeed(photo=jpeg((800, 600)))
        result = await DirectPhotoStrategy().extract(feed, FrameSize(640, 480))
        assert (result.width, result.height, result.strategy) == (800, 600, "direct")

    async def test_direct_photo_rejects_garbage(self):
        feed = FakeFeed(photo=b"not an image")
        with pytest.raises(CaptureFailed):
            await DirectPhotoStrategy().extract(feed, FrameSize(640, 480))

    async def test_offscreen_uses_native_size(self):
        # Track delivers a scaled-down frame; the surface must still be native size
        feed = FakeFeed(frame_shape=(240, 320, 3))
        result = await OffscreenRenderStrategy(0.8).extract(feed, FrameSize(1280, 720))

        with PILImage.open(io.BytesIO(result.data)) as im:
            assert im.size == (1280, 720)
            assert im.format == "JPEG"
        assert result.strategy == "offscreen"

    async def test_offscreen_stops_clone_on_success(self):
        feed = FakeFeed()
        await OffscreenRenderStrategy().extract(feed, FrameSize(640, 480))
        assert feed.clones and all(c.stopped for c in feed.clones)
        assert not feed.stopped

    async def test_offscreen_stops_clone_on_failure(self):
        feed = FakeFeed(frame=False)
        with pytest.raises(CaptureFailed):
            await OffscreenRenderStrategy().extract(feed, FrameSize(640, 480))
        assert feed.clones[0].stopped


# =============================================================================
# Capturer
# =============================================================================

class TestGeotaggedPhotoCapturer:

    async def test_prefers_direct_photo(self):
        device = FakeDevice(lambda: FakeFeed(photo=jpeg()))
        capturer = _capturer(device, StaticLocationProvider(10.5, 106.7))
        image = await capturer.open_capture(0)

        assert image.strategy == "direct"
        assert image.slot_index == 0
        assert (image.latitude, image.longitude) == (10.5, 106.7)
        assert image.timestamp == "2026-10-19T07:03:22.000Z"
        assert image.timezone_offset == -420

    async def test_falls_back_to_offscreen(self):
        feeds = []

        def factory():
            feed = FakeFeed(photo=None)
            feeds.append(feed)
            return feed

        capturer = _capturer(FakeDevice(factory))
        image = await capturer.open_capture(1)
        assert image.strategy == "offscreen"
        assert feeds[0].take_photo_calls == 1
        assert (image.width, image.height) == (640, 480)

    async def test_all_strategies_fail(self):
        capturer = _capturer(FakeDevice(lambda: FakeFeed(photo=None, frame=False)))
        with pytest.raises(CaptureFailed):
            await capturer.open_capture(0)

    async def test_not_ready_raises(self):
        capturer = _capturer(FakeDevice(lambda: FakeFeed(sizes=[(0, 0)])), ready_timeout=0.05)
        with pytest.raises(DeviceNotReady):
            await capturer.open_capture(0)

    async def test_missing_location_is_not_fatal(self):
        capturer = _capturer(location=StaticLocationProvider())
        image = await capturer.open_capture(0)
        assert image.latitude is None and image.longitude is None
        assert not image.has_location

    async def test_only_one_feed_open(self):
        device = FakeDevice()
        capturer = _capturer(device)
        await capturer.open()
        await capturer.switch_facing()

        (first_facing, first), (second_facing, second) = device.opened
        assert first_facing is Facing.REAR and second_facing is Facing.FRONT
        assert first.stopped and not second.stopped

    async def test_close_releases_immediately(self):
        device = FakeDevice()
        capturer = _capturer(device)
        await capturer.open()
        capturer.close_capture()
        assert device.opened[0][1].stopped
        assert not capturer.is_open
        capturer.close_capture()

    async def test_capture_without_open_feed(self):
        with pytest.raises(DeviceNotReady):
            await _capturer().capture(0)

    async def test_permission_denied(self, tmp_path):
        flags = PermissionFlags(tmp_path / "flags.json")
        capturer = _capturer(FakeDevice(granted=False), permissions=flags)
        with pytest.raises(PermissionDenied):
            await capturer.open()
        assert flags.was_requested("camera")
        assert flags.is_granted("camera") is False

    async def test_denied_switch_releases_old_feed(self, tmp_path):
        device = FakeDevice()
        capturer = _capturer(device, permissions=PermissionFlags(tmp_path / "flags.json"))
        await capturer.open()

        device.granted = False
        with pytest.raises(PermissionDenied):
            await capturer.switch_facing()

        assert device.opened[0][1].stopped
        assert len(device.opened) == 1
        assert not capturer.is_open


# =============================================================================
# Location
# =============================================================================

class _SlowProvider:
    async def current_position(self, max_age):
        await asyncio.sleep(5)


class _StaleProvider:
    async def current_position(self, max_age):
        return Position(1.0, 2.0, timestamp=datetime.now(timezone.utc) - timedelta(minutes=10))


class _BrokenProvider:
    async def current_position(self, max_age):
        raise OSError("gpsd socket closed")


class TestReadLocation:

    async def test_timeout_returns_none(self):
        assert await read_location(_SlowProvider(), timeout=0.05) is None

    async def test_stale_fix_returns_none(self):
        assert await read_location(_StaleProvider(), max_age=60) is None

    async def test_fresh_fix(self):
        position = await read_location(StaticLocationProvider(1.5, 2.5))
        assert (position.latitude, position.longitude) == (1.5, 2.5)

    async def test_no_provider(self):
        assert await read_location(None) is None

    async def test_provider_error_returns_none(self):
        assert await read_location(_BrokenProvider()) is None

    async def test_provider_error_does_not_fail_capture(self):
        image = await _capturer(location=_BrokenProvider()).open_capture(0)
        assert image.data
        assert not image.has_location


class TestPermissionFlags:

    async def test_records_grant(self, tmp_path):
        flags = PermissionFlags(tmp_path / "nested" / "flags.json")
        assert not flags.was_requested("camera")

        async def grant():
            return True

        await flags.ensure("camera", grant)
        assert flags.was_requested("camera")
        assert flags.is_granted("camera") is True

    def test_corrupt_file_is_ignored(self, tmp_path):
        path = tmp_path / "flags.json"
        path.write_text("{not json")
        assert PermissionFlags(path).was_requested("camera") is False
