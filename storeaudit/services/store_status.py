"""Store status state machine.

The lifecycle status of a store is a pure function of its audit history:

  1. any audit with result ``pass``           -> ``passed``
  2. else any audit with result ``fail``      -> ``failed`` (reason from the latest failing audit)
  3. else any audit carrying at least 1 image -> ``audited``
  4. else                                     -> ``not_audited``

:func:`derive_store_status` is used by every path that (re)computes status:
single-store recompute, the explicit admin status action and the batch
recompute. ``StoreStatusService.update_status`` is the only code that writes
``Store.status``; resets go through it as well.
"""

from __future__ import annotations

import logging
from collections import Counter
from collections.abc import Iterable
from datetime import datetime, timezone

from sqlalchemy.ext.asyncio import AsyncSession

from storeaudit.core.exceptions import NotFoundError, ValidationError
from storeaudit.domain.audit import Audit, AuditResult
from storeaudit.domain.store import Store, StoreStatus
from storeaudit.repositories.audit import AuditRepository
from storeaudit.repositories.store import StoreRepository

logger = logging.getLogger(__name__)

# Used only when a failing audit predates mandatory fail reasons
DEFAULT_FAILED_REASON = "Audit failed"

# Admin status action: requested store status -> result written onto the audit
_STATUS_TO_RESULT: dict[StoreStatus, str | None] = {
    StoreStatus.PASSED: AuditResult.PASS.value,
    StoreStatus.FAILED: AuditResult.FAIL.value,
    StoreStatus.AUDITED: None,
}

_EPOCH = datetime.min.replace(tzinfo=timezone.utc)


def _as_utc(value: datetime | None) -> datetime:
    if value is None:
        return _EPOCH
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def _recency(audit: Audit) -> tuple[datetime, datetime]:
    return _as_utc(audit.audit_date), _as_utc(audit.created_at)


def parse_store_status(value: str | StoreStatus) -> StoreStatus:
    try:
        return StoreStatus(value.strip().lower() if isinstance(value, str) else value)
    except ValueError:
        allowed = ", ".join(s.value for s in StoreStatus)
        raise ValidationError(f"Invalid status '{value}'. Must be one of: {allowed}") from None


def derive_store_status(audits: Iterable[Audit]) -> tuple[StoreStatus, str | None]:
    """Map a store's audit history to ``(status, failed_reason)``."""
    audits = list(audits)

    if any(a.result == AuditResult.PASS.value for a in audits):
        return StoreStatus.PASSED, None

    failing = [a for a in audits if a.result == AuditResult.FAIL.value]
    if failing:
        latest = max(failing, key=_recency)
        reason = (latest.failed_reason or "").strip() or DEFAULT_FAILED_REASON
        return StoreStatus.FAILED, reason

    if any(a.images for a in audits):
        return StoreStatus.AUDITED, None

    return StoreStatus.NOT_AUDITED, None


class StoreStatusService:
    def __init__(self, session: AsyncSession):
        self._stores = StoreRepository(session)
        self._audits = AuditRepository(session)

    async def _get_store(self, store_id: str) -> Store:
        store = await self._stores.get_by_id(store_id)
        if not store:
            raise NotFoundError("Store", store_id)
        return store

    # ------------------------------------------------------------------
    # Write path
    # ------------------------------------------------------------------

    async def update_status(
        self,
        store_id: str,
        status: str | StoreStatus,
        failed_reason: str | None = None,
    ) -> Store:
        """Persist a status. ``failed`` needs a reason; any other status clears it."""
        new_status = parse_store_status(status)
        reason = (failed_reason or "").strip() or None

        if new_status is StoreStatus.FAILED:
            if not reason:
                raise ValidationError("failedReason is required when status is 'failed'")
        else:
            reason = None

        store = await self._get_store(store_id)
        if store.status != new_status.value or store.failed_reason != reason:
            logger.info(
                "Store %s status %s -> %s", store.store_code, store.status, new_status.value
            )
        return await self._stores.update(store, status=new_status.value, failed_reason=reason)

    # ------------------------------------------------------------------
    # Derivation
    # ------------------------------------------------------------------

    async def recompute(self, store_id: str) -> Store:
        await self._get_store(store_id)
        audits = await self._audits.list_for_store(store_id)
        status, reason = derive_store_status(audits)
        return await self.update_status(store_id, status, reason)

    async def recompute_all_store_statuses(self) -> dict[str, int]:
        """Recompute every store with the same rules as :meth:`recompute`.

        Returns a count of stores per resulting status.
        """
        counts: Counter[str] = Counter()
        for store_id in await self._stores.all_ids():
            store = await self.recompute(store_id)
            counts[store.status] += 1
        logger.info("Recomputed %d store statuses: %s", sum(counts.values()), dict(counts))
        return dict(counts)

    async def mark_store_status(
        self,
        store_id: str,
        status: str | StoreStatus,
        failed_reason: str | None = None,
        audit_id: str | None = None,
    ) -> Store:
        """Explicit pass/fail action.

        The requested status is written as a result onto the chosen audit
        (latest by audit date unless ``audit_id`` is given) and the store is
        then recomputed, so precedence still applies: an older ``pass``
        outranks a newly marked ``fail``.
        """
        requested = parse_store_status(status)
        if requested is StoreStatus.NOT_AUDITED:
            raise ValidationError("Use the reset action to return a store to 'not_audited'")

        reason = (failed_reason or "").strip() or None
        if requested is StoreStatus.FAILED and not reason:
            raise ValidationError("failedReason is required when status is 'failed'")

        await self._get_store(store_id)
        if audit_id:
            audit = await self._audits.get_by_id(audit_id)
            if not audit or audit.store_id != store_id:
                raise NotFoundError("Audit", audit_id)
        else:
            audit = await self._audits.latest_for_store(store_id)
            if not audit:
                raise ValidationError("Store has no audit to mark")

        await self._audits.update(
            audit,
            result=_STATUS_TO_RESULT[requested],
            failed_reason=reason if requested is StoreStatus.FAILED else None,
        )
        return await self.recompute(store_id)

    # ------------------------------------------------------------------
    # Reset
    # ------------------------------------------------------------------

    async def reset_store_audits(self, store_id: str) -> dict:
        """Delete all audits and images of a store and return it to ``not_audited``.

        Runs inside the caller's transaction; calling it twice is harmless.
        """
        store = await self._get_store(store_id)
        audits_deleted, images_deleted = await self._audits.delete_for_store(store_id)
        store = await self.update_status(store_id, StoreStatus.NOT_AUDITED)
        logger.info(
            "Reset store %s: removed %d audits, %d images",
            store.store_code, audits_deleted, images_deleted,
        )
        return {
            "store": store,
            "audits_deleted": audits_deleted,
            "images_deleted": images_deleted,
        }

    async def reset_all_store_audits(self) -> dict[str, int]:
        audits_total = images_total = stores = 0
        for store_id in await self._stores.all_ids():
            outcome = await self.reset_store_audits(store_id)
            audits_total += outcome["audits_deleted"]
            images_total += outcome["images_deleted"]
            stores += 1
        return {"stores": stores, "audits_deleted": audits_total, "images_deleted": images_total}
