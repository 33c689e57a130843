"""Image repository."""

from sqlalchemy import func, select

from storeaudit.domain.image import Image
from storeaudit.repositories.base import BaseRepository


class ImageRepository(BaseRepository[Image]):
    model = Image

    async def list_for_audit(self, audit_id: str) -> list[Image]:
        result = await self._session.execute(
            self._base_query()
            .where(Image.audit_id == audit_id)
            .order_by(Image.slot_index.asc(), Image.captured_at.asc())
        )
        return list(result.scalars().all())

    async def count_for_audit(self, audit_id: str) -> int:
        result = await self._session.execute(
            select(func.count()).select_from(Image).where(Image.audit_id == audit_id)
        )
        return result.scalar_one()

    async def get_by_slot(self, audit_id: str, slot_index: int) -> Image | None:
        result = await self._session.execute(
            self._base_query()
            .where(Image.audit_id == audit_id)
            .where(Image.slot_index == slot_index)
        )
        return result.scalars().first()
