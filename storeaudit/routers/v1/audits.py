"""Audit routes."""

from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from storeaudit.core.pagination import PaginationParams
from storeaudit.core.response import DataResponse, ListResponse, paginated
from storeaudit.db.base import get_db
from storeaudit.schemas.audit import AuditCreate, AuditFinalizeOut, AuditOut, AuditUpdate
from storeaudit.services.audit import AuditService

router = APIRouter(prefix="/audits", tags=["Audits"])


def _svc(session: AsyncSession) -> AuditService:
    return AuditService(session)


@router.get("", response_model=ListResponse[AuditOut])
async def list_audits(
    user_id: Optional[str] = Query(default=None, alias="userId"),
    store_id: Optional[str] = Query(default=None, alias="storeId"),
    result: Optional[str] = Query(default=None, description="pass | fail"),
    pagination: PaginationParams = Depends(),
    session: AsyncSession = Depends(get_db),
):
    """List audits (paginated), newest audit date first by default."""
    items, total = await _svc(session).list_audits(
        pagination, user_id=user_id, store_id=store_id, result=result
    )
    return paginated(
        [AuditOut.model_validate(a) for a in items],
        total, pagination,
    )


@router.post("", response_model=DataResponse[AuditOut], status_code=status.HTTP_201_CREATED)
async def create_audit(
    body: AuditCreate,
    session: AsyncSession = Depends(get_db),
):
    """Create an audit. Without a result it is a photo-only placeholder."""
    audit = await _svc(session).create_audit(**body.model_dump())
    return {"data": AuditOut.model_validate(audit)}


@router.get("/{audit_id}", response_model=DataResponse[AuditOut])
async def get_audit(
    audit_id: str,
    session: AsyncSession = Depends(get_db),
):
    audit = await _svc(session).get_audit(audit_id)
    return {"data": AuditOut.model_validate(audit)}


@router.patch("/{audit_id}", response_model=DataResponse[AuditOut])
async def update_audit(
    audit_id: str,
    body: AuditUpdate,
    session: AsyncSession = Depends(get_db),
):
    audit = await _svc(session).update_audit(audit_id, **body.model_dump(exclude_unset=True))
    return {"data": AuditOut.model_validate(audit)}


@router.delete("/{audit_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_audit(
    audit_id: str,
    session: AsyncSession = Depends(get_db),
):
    await _svc(session).delete_audit(audit_id)


@router.post("/{audit_id}/finalize", response_model=DataResponse[AuditFinalizeOut])
async def finalize_audit(
    audit_id: str,
    session: AsyncSession = Depends(get_db),
):
    """Recompute the store status after uploads and report missing photos."""
    report = await _svc(session).finalize_audit(audit_id)
    return {"data": AuditFinalizeOut(**report)}
