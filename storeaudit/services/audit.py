"""Audit recorder: creates audits and keeps store status in step with them.

Rule: No FastAPI here. Business rule violations raise AppException subclasses.
"""

from __future__ import annotations

import logging
from datetime import date, datetime
from zoneinfo import ZoneInfo

from sqlalchemy.ext.asyncio import AsyncSession

from storeaudit.core.config import settings
from storeaudit.core.exceptions import ConflictError, NotFoundError, ValidationError
from storeaudit.core.pagination import PaginationParams
from storeaudit.domain.audit import Audit, AuditResult
from storeaudit.domain.mixins import as_utc, utcnow
from storeaudit.domain.store import Store
from storeaudit.repositories.audit import AuditRepository
from storeaudit.repositories.store import StoreRepository
from storeaudit.services.store_status import StoreStatusService

logger = logging.getLogger(__name__)

_UNSET = object()


def normalize_result(result: str | None) -> str | None:
    """Case-insensitive ``pass``/``fail``; empty means no result."""
    if result is None or not str(result).strip():
        return None
    value = str(result).strip().lower()
    if value not in {r.value for r in AuditResult}:
        raise ValidationError("Result must be either 'pass' or 'fail'")
    return value


def audit_day(value: datetime, tz_name: str | None = None) -> date:
    """Calendar day of ``value`` in the audit timezone (naive values are UTC)."""
    return as_utc(value).astimezone(ZoneInfo(tz_name or settings.audit_timezone)).date()


class AuditService:
    def __init__(self, session: AsyncSession):
        self._repo = AuditRepository(session)
        self._stores = StoreRepository(session)
        self._status = StoreStatusService(session)

    async def _get_store(self, store_id: str) -> Store:
        store = await self._stores.get_by_id(store_id)
        if not store:
            raise NotFoundError("Store", store_id)
        return store

    async def _check_daily_limit(self, user_id: str, store_id: str, audit_date: datetime) -> None:
        day = audit_day(audit_date)
        for existing in await self._repo.list_for_user_store(user_id, store_id):
            if existing.images and audit_day(existing.audit_date) == day:
                raise ConflictError(
                    f"User '{user_id}' already has a photo audit for this store on {day.isoformat()}"
                )

    # ------------------------------------------------------------------
    # Create
    # ------------------------------------------------------------------

    async def create_audit(
        self,
        *,
        user_id: str | None,
        store_id: str | None,
        result: str | None = None,
        notes: str | None = None,
        audit_date: datetime | None = None,
        skip_status_update: bool = False,
        failed_reason: str | None = None,
        expected_image_count: int | None = None,
    ) -> Audit:
        if not user_id or not store_id:
            raise ValidationError("userId and storeId are required")

        result = normalize_result(result)
        failed_reason = (failed_reason or "").strip() or None
        if result == AuditResult.FAIL.value and not failed_reason:
            raise ValidationError("failedReason is required when result is 'fail'")
        if result != AuditResult.FAIL.value:
            failed_reason = None

        # Placeholder audits only hold photos; status is recomputed on finalize
        if result is None:
            skip_status_update = True
            if expected_image_count is None:
                expected_image_count = settings.expected_images_per_audit

        if expected_image_count is not None and expected_image_count < 1:
            raise ValidationError("expectedImageCount must be at least 1")

        store = await self._get_store(store_id)

        audit_date = as_utc(audit_date) if audit_date is not None else utcnow()

        if settings.enforce_daily_audit_limit:
            await self._check_daily_limit(user_id, store_id, audit_date)

        audit = await self._repo.create(
            user_id=user_id,
            store_id=store_id,
            result=result,
            failed_reason=failed_reason,
            notes=notes,
            audit_date=audit_date,
            expected_image_count=expected_image_count,
        )
        logger.info(
            "Audit %s created for store %s by user %s (result=%s)",
            audit.id, store.store_code, user_id, result or "none",
        )

        if not skip_status_update:
            await self._status.recompute(store_id)
        return audit

    # ------------------------------------------------------------------
    # Read
    # ------------------------------------------------------------------

    async def get_audit(self, audit_id: str) -> Audit:
        audit = await self._repo.get_by_id(audit_id)
        if not audit:
            raise NotFoundError("Audit", audit_id)
        return audit

    async def list_audits(
        self,
        pagination: PaginationParams,
        user_id: str | None = None,
        store_id: str | None = None,
        result: str | None = None,
    ):
        filters = {
            "user_id": user_id,
            "store_id": store_id,
            "result": normalize_result(result),
        }
        return await self._repo.list(
            offset=pagination.offset,
            limit=pagination.limit,
            order_by=pagination.sort,
            order=pagination.order,
            filters=filters,
        )

    async def list_store_history(self, store_id: str) -> list[Audit]:
        return await self._repo.list_for_store(store_id)

    # ------------------------------------------------------------------
    # Update / delete
    # ------------------------------------------------------------------

    async def update_audit(
        self,
        audit_id: str,
        *,
        result=_UNSET,
        failed_reason=_UNSET,
        notes=_UNSET,
    ) -> Audit:
        """Change result, reason or notes and recompute the store status.

        Arguments left unset keep their stored value; ``result=None`` turns
        the audit back into a photo-only placeholder.
        """
        audit = await self.get_audit(audit_id)

        new_result = audit.result if result is _UNSET else normalize_result(result)
        new_reason = audit.failed_reason if failed_reason is _UNSET else failed_reason
        new_reason = (new_reason or "").strip() or None
        if new_result == AuditResult.FAIL.value and not new_reason:
            raise ValidationError("failedReason is required when result is 'fail'")
        if new_result != AuditResult.FAIL.value:
            new_reason = None

        changes = {"result": new_result, "failed_reason": new_reason}
        if notes is not _UNSET:
            changes["notes"] = notes

        audit = await self._repo.update(audit, **changes)
        await self._status.recompute(audit.store_id)
        return audit

    async def delete_audit(self, audit_id: str) -> None:
        audit = await self.get_audit(audit_id)
        store_id = audit.store_id
        await self._repo.delete(audit)
        logger.info("Audit %s deleted", audit_id)
        await self._status.recompute(store_id)

    # ------------------------------------------------------------------
    # Finalize
    # ------------------------------------------------------------------

    async def finalize_audit(self, audit_id: str) -> dict:
        """Recompute the store status once uploads are done and report completeness.

        An incomplete audit is reported, not rejected: the photos that did
        arrive still count towards the store status.
        """
        audit = await self.get_audit(audit_id)
        store = await self._status.recompute(audit.store_id)
        audit = await self.get_audit(audit_id)

        if not audit.is_complete:
            logger.warning(
                "Audit %s finalized with %d of %d images",
                audit.id, audit.image_count, audit.expected_image_count,
            )
        return {
            "audit_id": audit.id,
            "store_id": store.id,
            "store_status": store.status,
            "failed_reason": store.failed_reason,
            "image_count": audit.image_count,
            "expected_image_count": audit.expected_image_count,
            "missing_image_count": audit.missing_image_count,
            "is_complete": audit.is_complete,
        }
