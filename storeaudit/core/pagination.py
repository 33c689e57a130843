"""Query-string paging for audit listings."""

from fastapi import Query
from pydantic import BaseModel

from storeaudit.core.exceptions import ValidationError

SORTABLE_FIELDS = ("audit_date", "created_at", "updated_at", "result", "store_id", "user_id")


class PaginationParams:
    """FastAPI dependency for ``?page=1&limit=20&sort=audit_date&order=desc``."""

    def __init__(
        self,
        page: int = Query(default=1, ge=1),
        limit: int = Query(default=20, ge=1, le=200),
        sort: str = Query(default="audit_date", description=" | ".join(SORTABLE_FIELDS)),
        order: str = Query(default="desc", pattern="^(asc|desc)$"),
    ):
        if sort not in SORTABLE_FIELDS:
            raise ValidationError(f"Cannot sort audits by '{sort}'")
        self.page = page
        self.limit = limit
        self.sort = sort
        self.order = order

    @property
    def offset(self) -> int:
        return (self.page - 1) * self.limit


class PageMeta(BaseModel):
    total: int
    page: int
    limit: int
    pages: int
    sort: str
    order: str
