"""Persisted "permission already requested" flags."""

from __future__ import annotations

import json
import logging
from collections.abc import Awaitable, Callable
from pathlib import Path

from storeaudit.client.errors import PermissionDenied

logger = logging.getLogger(__name__)


class PermissionFlags:
    """Small JSON file: ``{"camera": {"requested": true, "granted": true}, ...}``."""

    def __init__(self, path: str | Path):
        self._path = Path(path).expanduser()

    def _load(self) -> dict:
        if not self._path.exists():
            return {}
        try:
            data = json.loads(self._path.read_text(encoding="utf-8"))
        except (OSError, json.JSONDecodeError) as exc:
            logger.warning("Ignoring unreadable permission flags %s: %s", self._path, exc)
            return {}
        return data if isinstance(data, dict) else {}

    def _save(self, data: dict) -> None:
        self._path.parent.mkdir(parents=True, exist_ok=True)
        self._path.write_text(json.dumps(data, indent=2, sort_keys=True), encoding="utf-8")

    def was_requested(self, capability: str) -> bool:
        return bool(self._load().get(capability, {}).get("requested"))

    def is_granted(self, capability: str) -> bool | None:
        entry = self._load().get(capability)
        return None if entry is None else bool(entry.get("granted"))

    def record(self, capability: str, granted: bool) -> None:
        data = self._load()
        data[capability] = {"requested": True, "granted": granted}
        self._save(data)

    async def ensure(self, capability: str, request: Callable[[], Awaitable[bool]]) -> None:
        """Ask the platform for ``capability`` and remember the answer.

        Raises :class:`PermissionDenied` when it is not granted.
        """
        if not self.was_requested(capability):
            logger.info("Requesting %s permission for the first time", capability)
        granted = await request()
        self.record(capability, granted)
        if not granted:
            raise PermissionDenied(capability)
