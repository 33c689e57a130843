"""JSON envelopes: ``{"data": ...}`` for single items, ``{"data": [...], "meta": {...}}`` for pages."""

import math
from typing import Generic, TypeVar

from pydantic import BaseModel
from pydantic.alias_generators import to_camel

from storeaudit.core.pagination import PageMeta, PaginationParams

T = TypeVar("T")


class _Envelope(BaseModel):
    model_config = {
        "populate_by_name": True,
        "alias_generator": to_camel,
    }


class DataResponse(_Envelope, Generic[T]):
    data: T


class ListResponse(_Envelope, Generic[T]):
    data: list[T]
    meta: PageMeta


def paginated(items: list, total: int, params: PaginationParams) -> dict:
    """Body for a ListResponse page."""
    return {
        "data": items,
        "meta": {
            "total": total,
            "page": params.page,
            "limit": params.limit,
            "pages": max(math.ceil(total / params.limit), 1),
            "sort": params.sort,
            "order": params.order,
        },
    }
