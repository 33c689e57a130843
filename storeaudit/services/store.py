"""Store service: the minimal store CRUD the capture pipeline needs."""

from sqlalchemy.ext.asyncio import AsyncSession

from storeaudit.core.exceptions import ConflictError, NotFoundError, ValidationError
from storeaudit.domain.store import Store
from storeaudit.repositories.audit import AuditRepository
from storeaudit.repositories.store import StoreRepository
from storeaudit.schemas.store import StoreCreate, StoreUpdate


class StoreService:
    def __init__(self, session: AsyncSession):
        self._repo = StoreRepository(session)
        self._audits = AuditRepository(session)

    async def get_store(self, store_id: str) -> Store:
        store = await self._repo.get_by_id(store_id)
        if not store:
            raise NotFoundError("Store", store_id)
        return store

    async def get_store_detail(self, store_id: str) -> tuple[Store, list]:
        """Store plus its audit history (newest first, each with its images)."""
        store = await self.get_store(store_id)
        return store, await self._audits.list_for_store(store_id)

    async def create_store(self, data: StoreCreate) -> Store:
        code = data.store_code or await self._repo.next_store_code()
        if await self._repo.get_by_code(code):
            raise ConflictError(f"Store code '{code}' is already in use")
        return await self._repo.create(
            store_code=code, store_name=data.store_name, address=data.address
        )

    async def update_store(self, store_id: str, data: StoreUpdate) -> Store:
        """Partial update. Status is not editable here; see StoreStatusService."""
        store = await self.get_store(store_id)
        changes = data.model_dump(exclude_unset=True)
        for key in ("store_name", "store_code"):
            if changes.get(key, "") is None:
                changes.pop(key)
        for key in ("latitude", "longitude"):
            if key in changes and changes[key] is not None:
                bound = 90 if key == "latitude" else 180
                if not -bound <= changes[key] <= bound:
                    raise ValidationError(f"{key} must be between -{bound} and {bound}")
        if not changes:
            return store
        return await self._repo.update(store, **changes)
