import json

import httpx
import pytest

from fakes import jpeg
from storeaudit.client.api import AuditApiClient
from storeaudit.client.camera import CapturedImage
from storeaudit.client.errors import ApiError

NOW = "2026-10-19T07:00:00Z"


def _image_payload(slot=0):
    return {
        "id": f"img-{slot}", "auditId": "a1", "imageUrl": f"http://x/{slot}.jpg",
        "latitude": 10.5, "longitude": 106.7, "capturedAt": NOW,
        "slotIndex": slot, "createdAt": NOW,
    }


def _client(handler, **kwargs):
    return AuditApiClient(
        "http://api.test/api/v1", transport=httpx.MockTransport(handler), **kwargs
    )


def _captured(**overrides):
    values = dict(
        slot_index=2, data=jpeg(), latitude=10.5, longitude=106.7,
        timestamp="2026-10-19T07:03:22.000Z", timezone_offset=-420,
        width=64, height=48, strategy="direct",
    )
    values.update(overrides)
    return CapturedImage(**values)


# =============================================================================
# Requests
# =============================================================================

class TestRequests:

    async def test_upload_sends_multipart_fields(self):
        seen = {}

        def handler(request):
            seen["path"] = request.url.path
            seen["body"] = request.content
            seen["type"] = request.headers["content-type"]
            return httpx.Response(201, json={"data": _image_payload(2)})

        async with _client(handler) as api:
            image = await api.upload_image("a1", _captured())

        assert seen["path"] == "/api/v1/images/upload"
        assert seen["type"].startswith("multipart/form-data")
        body = seen["body"]
        for name, value in [
            ("auditId", b"a1"),
            ("timezoneOffset", b"-420"),
            ("slotIndex", b"2"),
            ("latitude", b"10.5"),
            ("timestamp", b"2026-10-19T07:03:22.000Z"),
        ]:
            assert f'name="{name}"'.encode() in body
            assert value in body
        assert b'name="image"; filename="audit-a1-2.jpg"' in body
        assert image.slot_index == 2

    async def test_upload_without_location_omits_coordinates(self):
        seen = {}

        def handler(request):
            seen["body"] = request.content
            return httpx.Response(201, json={"data": _image_payload()})

        async with _client(handler) as api:
            await api.upload_image("a1", _captured(latitude=None, longitude=None))

        assert b'name="latitude"' not in seen["body"]
        assert b'name="longitude"' not in seen["body"]

    async def test_create_audit_body(self):
        seen = {}

        def handler(request):
            seen["json"] = json.loads(request.content)
            return httpx.Response(201, json={"data": {
                "id": "a1", "userId": "u1", "storeId": "s1", "auditDate": NOW,
                "createdAt": NOW, "updatedAt": NOW, "expectedImageCount": 3,
            }})

        async with _client(handler) as api:
            audit = await api.create_audit("u1", "s1", expected_image_count=3)

        assert seen["json"] == {
            "userId": "u1", "storeId": "s1",
            "skipStatusUpdate": True, "expectedImageCount": 3,
        }
        assert audit.id == "a1"

    async def test_bearer_token(self):
        seen = {}

        def handler(request):
            seen["auth"] = request.headers.get("authorization")
            return httpx.Response(204)

        async with _client(handler, token="secret") as api:
            await api._request("GET", "/ping")

        assert seen["auth"] == "Bearer secret"


# =============================================================================
# Errors
# =============================================================================

class TestErrors:

    async def test_error_envelope(self):
        def handler(request):
            return httpx.Response(
                409, json={"error": {"code": "CONFLICT", "message": "slot taken"}}
            )

        async with _client(handler) as api:
            with pytest.raises(ApiError) as exc_info:
                await api.upload_image("a1", _captured())

        assert exc_info.value.status_code == 409
        assert exc_info.value.code == "CONFLICT"
        assert exc_info.value.message == "slot taken"

    async def test_http_exception_detail(self):
        def handler(request):
            return httpx.Response(415, json={"detail": "Unsupported image type"})

        async with _client(handler) as api:
            with pytest.raises(ApiError) as exc_info:
                await api.get_store("s1")

        assert exc_info.value.message == "Unsupported image type"

    async def test_transport_failure(self):
        def handler(request):
            raise httpx.ConnectError("connection refused", request=request)

        async with _client(handler) as api:
            with pytest.raises(ApiError) as exc_info:
                await api.finalize_audit("a1")

        assert exc_info.value.status_code is None
