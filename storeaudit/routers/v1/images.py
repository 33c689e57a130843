"""Image routes: multipart photo upload and image lookups.

Request-format problems (type, empty, size) are rejected here with
HTTPException; business rules are enforced by ImageService.
"""

from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, Depends, File, Form, HTTPException, UploadFile, status
from sqlalchemy.ext.asyncio import AsyncSession

from storeaudit.core.config import settings
from storeaudit.core.exceptions import ValidationError
from storeaudit.core.response import DataResponse
from storeaudit.db.base import get_db
from storeaudit.schemas.image import ImageOut
from storeaudit.services.image import ImageService
from storeaudit.services.storage import WatermarkStorage, get_storage

router = APIRouter(prefix="/images", tags=["Images"])

_ALLOWED_CONTENT_TYPES = {"image/jpeg", "image/jpg", "image/png", "image/webp"}
# Browsers post FormData values as strings
_EMPTY_FORM_VALUES = {"", "null", "undefined"}


# ------------------------------------------------------------------
# Helpers
# ------------------------------------------------------------------

def _svc(session: AsyncSession, storage: WatermarkStorage | None = None) -> ImageService:
    return ImageService(session, storage)


def _optional_number(name: str, raw: Optional[str], cast=float):
    if raw is None or raw.strip().lower() in _EMPTY_FORM_VALUES:
        return None
    try:
        return cast(raw)
    except ValueError:
        raise ValidationError(f"{name} must be a number") from None


async def _validate_and_read_image(file: UploadFile) -> bytes:
    """Read the upload, enforcing content type and size. Raises HTTPException."""
    content_type = (file.content_type or "").lower()
    if content_type not in _ALLOWED_CONTENT_TYPES:
        raise HTTPException(
            status_code=415,
            detail=(
                f"Unsupported file type '{file.content_type}'. "
                "Upload a JPEG, PNG or WebP image."
            ),
        )

    contents = await file.read()
    if not contents:
        raise HTTPException(status_code=400, detail="Uploaded file is empty.")
    if len(contents) > settings.max_upload_size_bytes:
        raise HTTPException(
            status_code=413,
            detail=f"File size exceeds the {settings.max_upload_size_mb}MB limit.",
        )
    return contents


# ------------------------------------------------------------------
# Endpoints
# ------------------------------------------------------------------

@router.post(
    "/upload",
    response_model=DataResponse[ImageOut],
    status_code=status.HTTP_201_CREATED,
)
async def upload_image(
    image: UploadFile = File(...),
    audit_id: str = Form(..., alias="auditId"),
    latitude: Optional[str] = Form(default=None),
    longitude: Optional[str] = Form(default=None),
    timestamp: Optional[str] = Form(default=None),
    timezone_offset: Optional[str] = Form(default=None, alias="timezoneOffset"),
    slot_index: Optional[str] = Form(default=None, alias="slotIndex"),
    reference_image_url: Optional[str] = Form(default=None, alias="referenceImageUrl"),
    session: AsyncSession = Depends(get_db),
    storage: WatermarkStorage = Depends(get_storage),
):
    """Watermark and store one audit photo, then attach it to the audit."""
    contents = await _validate_and_read_image(image)
    created = await _svc(session, storage).upload_image(
        audit_id,
        contents,
        latitude=_optional_number("latitude", latitude),
        longitude=_optional_number("longitude", longitude),
        timestamp=timestamp or None,
        timezone_offset=_optional_number("timezoneOffset", timezone_offset, int),
        slot_index=_optional_number("slotIndex", slot_index, int),
        reference_image_url=reference_image_url or None,
    )
    return {"data": ImageOut.model_validate(created)}


@router.get("/audit/{audit_id}", response_model=DataResponse[list[ImageOut]])
async def list_audit_images(
    audit_id: str,
    session: AsyncSession = Depends(get_db),
):
    images = await _svc(session).list_for_audit(audit_id)
    return {"data": [ImageOut.model_validate(i) for i in images]}


@router.get("/{image_id}", response_model=DataResponse[ImageOut])
async def get_image(
    image_id: str,
    session: AsyncSession = Depends(get_db),
):
    image = await _svc(session).get_image(image_id)
    return {"data": ImageOut.model_validate(image)}


@router.delete("/{image_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_image(
    image_id: str,
    session: AsyncSession = Depends(get_db),
    storage: WatermarkStorage = Depends(get_storage),
):
    """Delete an image and its stored file; the store status is recomputed."""
    await _svc(session, storage).delete_image(image_id)
