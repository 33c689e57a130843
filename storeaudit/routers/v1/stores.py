"""Store routes: detail with audit history, location update, status action, reset."""

from __future__ import annotations

from fastapi import APIRouter, Depends, status
from sqlalchemy.ext.asyncio import AsyncSession

from storeaudit.core.response import DataResponse
from storeaudit.db.base import get_db
from storeaudit.schemas.audit import AuditOut
from storeaudit.schemas.store import (
    StoreCreate,
    StoreDetailOut,
    StoreOut,
    StoreResetOut,
    StoreStatusUpdate,
    StoreUpdate,
)
from storeaudit.services.store import StoreService
from storeaudit.services.store_status import StoreStatusService

router = APIRouter(prefix="/stores", tags=["Stores"])


@router.post("", response_model=DataResponse[StoreOut], status_code=status.HTTP_201_CREATED)
async def create_store(
    body: StoreCreate,
    session: AsyncSession = Depends(get_db),
):
    store = await StoreService(session).create_store(body)
    return {"data": StoreOut.model_validate(store)}


@router.get("/{store_id}", response_model=DataResponse[StoreDetailOut])
async def get_store(
    store_id: str,
    session: AsyncSession = Depends(get_db),
):
    """Store plus its audit history, each audit embedding its images."""
    store, audits = await StoreService(session).get_store_detail(store_id)
    detail = StoreDetailOut(
        **StoreOut.model_validate(store).model_dump(),
        audits=[AuditOut.model_validate(a) for a in audits],
    )
    return {"data": detail}


@router.put("/{store_id}", response_model=DataResponse[StoreOut])
async def update_store(
    store_id: str,
    body: StoreUpdate,
    session: AsyncSession = Depends(get_db),
):
    store = await StoreService(session).update_store(store_id, body)
    return {"data": StoreOut.model_validate(store)}


@router.patch("/{store_id}/status", response_model=DataResponse[StoreOut])
async def update_store_status(
    store_id: str,
    body: StoreStatusUpdate,
    session: AsyncSession = Depends(get_db),
):
    """Explicit pass/fail action, applied to the target audit then recomputed."""
    store = await StoreStatusService(session).mark_store_status(
        store_id, body.status, body.failed_reason, audit_id=body.audit_id
    )
    return {"data": StoreOut.model_validate(store)}


@router.post("/{store_id}/reset", response_model=DataResponse[StoreResetOut])
async def reset_store(
    store_id: str,
    session: AsyncSession = Depends(get_db),
):
    """Delete every audit and image of the store and reset its status."""
    outcome = await StoreStatusService(session).reset_store_audits(store_id)
    return {
        "data": StoreResetOut(
            store=StoreOut.model_validate(outcome["store"]),
            audits_deleted=outcome["audits_deleted"],
            images_deleted=outcome["images_deleted"],
        )
    }
