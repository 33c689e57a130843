"""Async HTTP client for the audit API (/api/v1)."""

from __future__ import annotations

import logging
from datetime import datetime
from typing import Any

import httpx

from storeaudit.client.camera import CapturedImage
from storeaudit.client.config import client_settings
from storeaudit.client.errors import ApiError
from storeaudit.schemas.audit import AuditFinalizeOut, AuditOut
from storeaudit.schemas.image import ImageOut
from storeaudit.schemas.store import StoreDetailOut, StoreOut, StoreResetOut

logger = logging.getLogger(__name__)


class AuditApiClient:
    """Thin wrapper over ``httpx.AsyncClient``; every failure becomes :class:`ApiError`."""

    def __init__(
        self,
        base_url: str | None = None,
        *,
        token: str | None = None,
        timeout: float | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        headers = {"Accept": "application/json"}
        token = token if token is not None else client_settings.api_token
        if token:
            headers["Authorization"] = f"Bearer {token}"
        self._client = httpx.AsyncClient(
            base_url=(base_url or client_settings.api_base_url).rstrip("/"),
            headers=headers,
            timeout=timeout or client_settings.request_timeout,
            transport=transport,
        )

    async def __aenter__(self) -> "AuditApiClient":
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        await self._client.aclose()

    async def _request(self, method: str, path: str, **kwargs: Any) -> Any:
        try:
            response = await self._client.request(method, path, **kwargs)
        except httpx.HTTPError as exc:
            raise ApiError(f"{method} {path} failed: {exc}") from exc
        if response.is_error:
            error = ApiError.from_response(response)
            logger.warning("%s %s -> %s %s", method, path, response.status_code, error.message)
            raise error
        if response.status_code == 204 or not response.content:
            return None
        return response.json().get("data")

    # ------------------------------------------------------------------
    # Audits
    # ------------------------------------------------------------------

    async def create_audit(
        self,
        user_id: str,
        store_id: str,
        *,
        notes: str | None = None,
        audit_date: datetime | None = None,
        result: str | None = None,
        failed_reason: str | None = None,
        skip_status_update: bool = True,
        expected_image_count: int | None = None,
    ) -> AuditOut:
        body = {
            "userId": user_id,
            "storeId": store_id,
            "notes": notes,
            "auditDate": audit_date.isoformat() if audit_date else None,
            "result": result,
            "failedReason": failed_reason,
            "skipStatusUpdate": skip_status_update,
            "expectedImageCount": expected_image_count,
        }
        data = await self._request(
            "POST", "/audits", json={k: v for k, v in body.items() if v is not None}
        )
        return AuditOut.model_validate(data)

    async def finalize_audit(self, audit_id: str) -> AuditFinalizeOut:
        data = await self._request("POST", f"/audits/{audit_id}/finalize")
        return AuditFinalizeOut.model_validate(data)

    # ------------------------------------------------------------------
    # Images
    # ------------------------------------------------------------------

    async def upload_image(
        self,
        audit_id: str,
        image: CapturedImage,
        *,
        reference_image_url: str | None = None,
    ) -> ImageOut:
        form = {
            "auditId": audit_id,
            "timestamp": image.timestamp,
            "timezoneOffset": str(image.timezone_offset),
            "slotIndex": str(image.slot_index),
        }
        if image.latitude is not None:
            form["latitude"] = str(image.latitude)
        if image.longitude is not None:
            form["longitude"] = str(image.longitude)
        if reference_image_url:
            form["referenceImageUrl"] = reference_image_url

        files = {
            "image": (f"audit-{audit_id}-{image.slot_index}.jpg", image.data, image.content_type)
        }
        data = await self._request("POST", "/images/upload", data=form, files=files)
        return ImageOut.model_validate(data)

    # ------------------------------------------------------------------
    # Stores
    # ------------------------------------------------------------------

    async def get_store(self, store_id: str) -> StoreDetailOut:
        data = await self._request("GET", f"/stores/{store_id}")
        return StoreDetailOut.model_validate(data)

    async def update_store_location(
        self, store_id: str, latitude: float, longitude: float
    ) -> StoreOut:
        data = await self._request(
            "PUT", f"/stores/{store_id}", json={"latitude": latitude, "longitude": longitude}
        )
        return StoreOut.model_validate(data)

    async def update_status(
        self,
        store_id: str,
        status: str,
        failed_reason: str | None = None,
        audit_id: str | None = None,
    ) -> StoreOut:
        body = {"status": status}
        if failed_reason is not None:
            body["failedReason"] = failed_reason
        if audit_id is not None:
            body["auditId"] = audit_id
        data = await self._request("PATCH", f"/stores/{store_id}/status", json=body)
        return StoreOut.model_validate(data)

    async def reset_store(self, store_id: str) -> StoreResetOut:
        data = await self._request("POST", f"/stores/{store_id}/reset")
        return StoreResetOut.model_validate(data)
