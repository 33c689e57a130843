"""Daily capture gate.

Decides, per user per store, whether a new capture session may start today
and whether to offer the once-a-day "start today's audit?" prompt. Evaluated
entirely from the audit history already fetched with the store detail.
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Iterable
from dataclasses import dataclass
from datetime import date, datetime, timezone, tzinfo
from typing import Protocol

logger = logging.getLogger(__name__)


class AuditLike(Protocol):
    user_id: str
    store_id: str
    audit_date: datetime


def local_day(value: datetime, tz: tzinfo | None = None) -> date:
    """Calendar day of ``value`` on the device (naive values are UTC)."""
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value.astimezone(tz).date()


def last_audit_day(
    user_id: str, store_id: str, audit_history: Iterable[AuditLike], tz: tzinfo | None = None
) -> date | None:
    days = [
        local_day(a.audit_date, tz)
        for a in audit_history
        if a.user_id == user_id and getattr(a, "store_id", store_id) == store_id
    ]
    return max(days) if days else None


def can_start_new_capture_today(
    user_id: str,
    store_id: str,
    audit_history: Iterable[AuditLike],
    today: date | None = None,
    tz: tzinfo | None = None,
) -> bool:
    """False when this user's most recent audit of the store is dated today."""
    today = today or datetime.now(tz).date()
    last = last_audit_day(user_id, store_id, audit_history, tz)
    return last is None or last < today


@dataclass(frozen=True)
class GateDecision:
    allowed: bool
    capture_visible: bool  # hidden, not disabled, once today's audit exists
    should_prompt: bool
    last_audit_day: date | None = None


class DailyCaptureGate:
    """Tracks the once-per-day prompt for each (user, store)."""

    def __init__(self, today: Callable[[], date] | None = None, tz: tzinfo | None = None):
        self._tz = tz
        self._today = today or (lambda: datetime.now(self._tz).date())
        self._prompted: dict[tuple[str, str], date] = {}
        self._declined: dict[tuple[str, str], date] = {}

    def evaluate(
        self, user_id: str, store_id: str, audit_history: Iterable[AuditLike]
    ) -> GateDecision:
        today = self._today()
        history = list(audit_history)
        last = last_audit_day(user_id, store_id, history, self._tz)
        allowed = can_start_new_capture_today(user_id, store_id, history, today, self._tz)
        if not allowed:
            return GateDecision(False, False, False, last)

        key = (user_id, store_id)
        # First-ever audit: capture is offered without a prompt
        should_prompt = last is not None and self._prompted.get(key) != today
        if should_prompt:
            self._prompted[key] = today
            logger.debug("Prompting user %s for store %s (last audit %s)", user_id, store_id, last)
        return GateDecision(True, True, should_prompt, last)

    def decline(self, user_id: str, store_id: str) -> None:
        """Suppress the prompt for the rest of today; the store stays as last seen."""
        today = self._today()
        self._prompted[(user_id, store_id)] = today
        self._declined[(user_id, store_id)] = today

    def accept(self, user_id: str, store_id: str) -> bool:
        """Record acceptance. True means a capture session should be opened."""
        self._prompted[(user_id, store_id)] = self._today()
        self._declined.pop((user_id, store_id), None)
        return True

    def declined_today(self, user_id: str, store_id: str) -> bool:
        return self._declined.get((user_id, store_id)) == self._today()
