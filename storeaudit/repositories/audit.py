"""Audit repository: history queries and the bulk delete used by store resets."""

from __future__ import annotations

from sqlalchemy import delete, select

from storeaudit.domain.audit import Audit
from storeaudit.domain.image import Image
from storeaudit.repositories.base import BaseRepository


class AuditRepository(BaseRepository[Audit]):
    model = Audit

    def _history_query(self, store_id: str):
        return (
            self._base_query()
            .where(Audit.store_id == store_id)
            .order_by(Audit.audit_date.desc(), Audit.created_at.desc())
        )

    async def list_for_store(self, store_id: str) -> list[Audit]:
        """All audits of a store, newest audit date first, images eagerly loaded."""
        result = await self._session.execute(self._history_query(store_id))
        return list(result.scalars().all())

    async def latest_for_store(self, store_id: str) -> Audit | None:
        result = await self._session.execute(self._history_query(store_id).limit(1))
        return result.scalars().first()

    async def list_for_user_store(self, user_id: str, store_id: str) -> list[Audit]:
        result = await self._session.execute(
            self._history_query(store_id).where(Audit.user_id == user_id)
        )
        return list(result.scalars().all())

    async def delete_for_store(self, store_id: str) -> tuple[int, int]:
        """Delete every image and audit of a store. Returns (audits, images) removed.

        Images are deleted explicitly so the result does not depend on the
        database enforcing ``ON DELETE CASCADE`` (SQLite does not by default).
        """
        audit_ids = select(Audit.id).where(Audit.store_id == store_id)
        images = await self._session.execute(
            delete(Image)
            .where(Image.audit_id.in_(audit_ids))
            .execution_options(synchronize_session=False)
        )
        audits = await self._session.execute(
            delete(Audit)
            .where(Audit.store_id == store_id)
            .execution_options(synchronize_session=False)
        )
        await self._session.flush()
        return audits.rowcount or 0, images.rowcount or 0
