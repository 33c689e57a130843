"""Domain package. All ORM models are imported here so Alembic autogenerate detects them.

Folder intent:
  store.py   : stores and their derived lifecycle status
  audit.py   : one row per field visit, with an optional pass/fail result
  image.py   : watermarked photos attached to an audit
  mixins.py  : shared TimestampMixin
"""

from storeaudit.domain.audit import Audit, AuditResult
from storeaudit.domain.image import Image
from storeaudit.domain.store import Store, StoreStatus

__all__ = [
    "Audit",
    "AuditResult",
    "Image",
    "Store",
    "StoreStatus",
]
