"""Store repository."""

import re

from sqlalchemy import select

from storeaudit.domain.store import Store
from storeaudit.repositories.base import BaseRepository

STORE_CODE_PREFIX = "CH"
_CODE_RE = re.compile(rf"^{STORE_CODE_PREFIX}(\d+)$")


class StoreRepository(BaseRepository[Store]):
    model = Store

    async def get_by_code(self, store_code: str) -> Store | None:
        result = await self._session.execute(
            self._base_query().where(Store.store_code == store_code)
        )
        return result.scalars().first()

    async def next_store_code(self) -> str:
        """Return the next free ``CH000001``-style code."""
        result = await self._session.execute(
            select(Store.store_code).where(Store.store_code.like(f"{STORE_CODE_PREFIX}%"))
        )
        highest = 0
        for code in result.scalars():
            match = _CODE_RE.match(code)
            if match:
                highest = max(highest, int(match.group(1)))
        return f"{STORE_CODE_PREFIX}{highest + 1:06d}"
