"""Device location reads for geotagging.

A failed or slow position read never fails a capture: coordinates are
recorded as absent instead.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Protocol

from storeaudit.client.errors import LocationUnavailable, PermissionDenied

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Position:
    latitude: float
    longitude: float
    accuracy: float | None = None
    timestamp: datetime = field(default_factory=lambda: datetime.now(timezone.utc))


class LocationProvider(Protocol):
    async def current_position(self, max_age: float) -> Position:
        """Return a fix no older than ``max_age`` seconds or raise LocationUnavailable."""
        ...


class StaticLocationProvider:
    """Fixed position (desktop stations, tests). ``None`` means no fix."""

    def __init__(self, latitude: float | None = None, longitude: float | None = None):
        self._latitude = latitude
        self._longitude = longitude

    async def current_position(self, max_age: float) -> Position:
        if self._latitude is None or self._longitude is None:
            raise LocationUnavailable("No position configured")
        return Position(self._latitude, self._longitude)


async def read_location(
    provider: LocationProvider | None,
    *,
    timeout: float = 10.0,
    max_age: float = 60.0,
) -> Position | None:
    """One bounded position read. Returns ``None`` instead of raising."""
    if provider is None:
        return None
    try:
        position = await asyncio.wait_for(provider.current_position(max_age), timeout)
    except asyncio.TimeoutError:
        logger.warning("%s", LocationUnavailable(f"Position read timed out after {timeout:g}s"))
        return None
    except (LocationUnavailable, PermissionDenied) as exc:
        logger.warning("Location unavailable: %s", exc.message)
        return None
    except Exception as exc:
        logger.warning("Location unavailable: provider error %r", exc)
        return None

    age = (datetime.now(timezone.utc) - position.timestamp).total_seconds()
    if age > max_age:
        logger.warning("Location unavailable: fix is %.0fs old (max %gs)", age, max_age)
        return None
    return position
