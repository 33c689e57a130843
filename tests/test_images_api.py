import asyncio
import io
import os

import pytest
from PIL import Image as PILImage

from storeaudit.core.exceptions import ConflictError
from storeaudit.repositories.image import ImageRepository
from storeaudit.services.audit import AuditService
from storeaudit.services.image import ImageService
from storeaudit.services.storage import StoredImage

API = "/api/v1"


async def _audit(client, user_id="u1"):
    store = (await client.post(f"{API}/stores", json={"storeName": "Photo Store"})).json()["data"]
    audit = (await client.post(
        f"{API}/audits", json={"userId": user_id, "storeId": store["id"], "expectedImageCount": 3}
    )).json()["data"]
    return store, audit


def _form(audit_id, **extra):
    return {"auditId": audit_id, **extra}


# =============================================================================
# Upload
# =============================================================================

class TestUpload:
    """Tests for POST /images/upload."""

    async def test_upload_stores_watermarked_file(self, client, jpeg_bytes, media_dir):
        _, audit = await _audit(client)
        resp = await client.post(
            f"{API}/images/upload",
            data=_form(
                audit["id"], latitude="10.762622", longitude="106.660172",
                timestamp="2026-10-19T07:03:22.000Z", timezoneOffset="-420", slotIndex="0",
            ),
            files={"image": ("photo.jpg", jpeg_bytes, "image/jpeg")},
        )
        assert resp.status_code == 201
        body = resp.json()["data"]
        assert body["auditId"] == audit["id"]
        assert body["slotIndex"] == 0
        assert body["latitude"] == 10.762622
        assert body["imageUrl"].startswith("http://testserver/media/auditapp/")
        assert body["capturedAt"].startswith("2026-10-19T07:03:22")

        relative = body["imageUrl"].split("/media/", 1)[1]
        path = os.path.join(media_dir, relative)
        assert os.path.exists(path)
        with PILImage.open(path) as stored:
            assert stored.size == (320, 240)
            assert stored.format == "JPEG"

        served = await client.get(body["imageUrl"].replace("http://testserver", ""))
        assert served.status_code == 200

    async def test_upload_without_location(self, client, jpeg_bytes):
        _, audit = await _audit(client)
        resp = await client.post(
            f"{API}/images/upload",
            data=_form(audit["id"], latitude="null", longitude=""),
            files={"image": ("photo.jpg", jpeg_bytes, "image/jpeg")},
        )
        assert resp.status_code == 201
        assert resp.json()["data"]["latitude"] is None
        assert resp.json()["data"]["longitude"] is None

    async def test_duplicate_slot_conflicts(self, client, jpeg_bytes):
        _, audit = await _audit(client)
        files = {"image": ("photo.jpg", jpeg_bytes, "image/jpeg")}
        first = await client.post(f"{API}/images/upload", data=_form(audit["id"], slotIndex="1"), files=files)
        second = await client.post(f"{API}/images/upload", data=_form(audit["id"], slotIndex="1"), files=files)
        assert first.status_code == 201
        assert second.status_code == 409
        assert second.json()["error"]["code"] == "CONFLICT"

        images = (await client.get(f"{API}/images/audit/{audit['id']}")).json()["data"]
        assert len(images) == 1

    async def test_concurrent_uploads_for_one_slot(self, client, jpeg_bytes):
        _, audit = await _audit(client)

        def upload():
            return client.post(
                f"{API}/images/upload",
                data=_form(audit["id"], slotIndex="0"),
                files={"image": ("photo.jpg", jpeg_bytes, "image/jpeg")},
            )

        responses = await asyncio.gather(upload(), upload())

        assert sorted(r.status_code for r in responses) == [201, 409]
        images = (await client.get(f"{API}/images/audit/{audit['id']}")).json()["data"]
        assert len(images) == 1

    async def test_unknown_audit(self, client, jpeg_bytes):
        resp = await client.post(
            f"{API}/images/upload",
            data=_form("missing"),
            files={"image": ("photo.jpg", jpeg_bytes, "image/jpeg")},
        )
        assert resp.status_code == 404

    async def test_unsupported_type(self, client):
        _, audit = await _audit(client)
        resp = await client.post(
            f"{API}/images/upload",
            data=_form(audit["id"]),
            files={"image": ("notes.txt", b"hello", "text/plain")},
        )
        assert resp.status_code == 415

    async def test_empty_file(self, client):
        _, audit = await _audit(client)
        resp = await client.post(
            f"{API}/images/upload",
            data=_form(audit["id"]),
            files={"image": ("photo.jpg", b"", "image/jpeg")},
        )
        assert resp.status_code == 400

    async def test_corrupt_image_rejected(self, client):
        _, audit = await _audit(client)
        resp = await client.post(
            f"{API}/images/upload",
            data=_form(audit["id"]),
            files={"image": ("photo.jpg", b"not really a jpeg", "image/jpeg")},
        )
        assert resp.status_code == 422

    async def test_bad_latitude(self, client, jpeg_bytes):
        _, audit = await _audit(client)
        resp = await client.post(
            f"{API}/images/upload",
            data=_form(audit["id"], latitude="north"),
            files={"image": ("photo.jpg", jpeg_bytes, "image/jpeg")},
        )
        assert resp.status_code == 422

    async def test_png_is_stored_as_jpeg(self, client):
        _, audit = await _audit(client)
        buf = io.BytesIO()
        PILImage.new("RGBA", (64, 48), (0, 128, 0, 255)).save(buf, format="PNG")
        resp = await client.post(
            f"{API}/images/upload",
            data=_form(audit["id"]),
            files={"image": ("photo.png", buf.getvalue(), "image/png")},
        )
        assert resp.status_code == 201
        assert resp.json()["data"]["imageUrl"].endswith(".jpg")


# =============================================================================
# Read / delete
# =============================================================================

class TestImageLookup:

    async def test_store_detail_embeds_images(self, client, jpeg_bytes):
        store, audit = await _audit(client)
        for slot in (0, 1):
            await client.post(
                f"{API}/images/upload",
                data=_form(audit["id"], slotIndex=str(slot)),
                files={"image": ("photo.jpg", jpeg_bytes, "image/jpeg")},
            )
        detail = (await client.get(f"{API}/stores/{store['id']}")).json()["data"]
        assert len(detail["audits"]) == 1
        assert detail["audits"][0]["imageCount"] == 2
        assert sorted(i["slotIndex"] for i in detail["audits"][0]["images"]) == [0, 1]

    async def test_delete_image_recomputes(self, client, jpeg_bytes, media_dir):
        store, audit = await _audit(client)
        image = (await client.post(
            f"{API}/images/upload",
            data=_form(audit["id"], slotIndex="0"),
            files={"image": ("photo.jpg", jpeg_bytes, "image/jpeg")},
        )).json()["data"]
        await client.post(f"{API}/audits/{audit['id']}/finalize")
        assert (await client.get(f"{API}/stores/{store['id']}")).json()["data"]["status"] == "audited"

        resp = await client.delete(f"{API}/images/{image['id']}")
        assert resp.status_code == 204
        assert (await client.get(f"{API}/images/{image['id']}")).status_code == 404
        assert (await client.get(f"{API}/stores/{store['id']}")).json()["data"]["status"] == "not_audited"
        relative = image["imageUrl"].split("/media/", 1)[1]
        assert not os.path.exists(os.path.join(media_dir, relative))


# =============================================================================
# Slot race inside the service
# =============================================================================

class _RecordingStorage:
    def __init__(self):
        self.stored = []
        self.deleted = []

    async def store(self, content, watermark_text):
        storage_id = f"file-{len(self.stored) + 1}"
        self.stored.append(storage_id)
        return StoredImage(f"http://testserver/media/{storage_id}.jpg", storage_id, 320, 240)

    async def delete(self, storage_id):
        self.deleted.append(storage_id)


class TestSlotRace:

    async def test_insert_conflict_is_409_and_file_removed(self, session, store, monkeypatch):
        storage = _RecordingStorage()
        audit = await AuditService(session).create_audit(user_id="u1", store_id=store.id)
        await ImageService(session, storage).upload_image(audit.id, b"jpeg", slot_index=0)
        await session.commit()

        # Both uploads passed the slot check before either inserted
        async def no_existing_slot(self, audit_id, slot_index):
            return None

        monkeypatch.setattr(ImageRepository, "get_by_slot", no_existing_slot)

        with pytest.raises(ConflictError):
            await ImageService(session, storage).upload_image(audit.id, b"jpeg", slot_index=0)
        await session.rollback()

        assert storage.stored == ["file-1", "file-2"]
        assert storage.deleted == ["file-2"]

    async def test_failed_insert_removes_file(self, session, store, monkeypatch):
        storage = _RecordingStorage()
        audit = await AuditService(session).create_audit(user_id="u1", store_id=store.id)
        await session.commit()

        async def broken_create(self, **kwargs):
            raise RuntimeError("database went away")

        monkeypatch.setattr(ImageRepository, "create", broken_create)

        with pytest.raises(RuntimeError):
            await ImageService(session, storage).upload_image(audit.id, b"jpeg", slot_index=1)
        assert storage.deleted == ["file-1"]
