"""Capture client error taxonomy.

Only :class:`AuditCreateFailed` leaves no server state behind; every
upload-phase error may leave a partially populated audit.
"""

from __future__ import annotations

import httpx


class CaptureError(Exception):
    """Base class for capture pipeline errors."""

    def __init__(self, message: str):
        self.message = message
        super().__init__(message)


class PermissionDenied(CaptureError):
    """Camera (or another device capability) was not granted."""

    def __init__(self, capability: str = "camera"):
        self.capability = capability
        super().__init__(f"{capability.capitalize()} permission was not granted")


class DeviceNotReady(CaptureError):
    """The feed never reported stable, non-zero dimensions. Retry; nothing was captured."""


class CaptureFailed(CaptureError):
    """Every frame extraction strategy failed; the slot stays empty."""


class LocationUnavailable(CaptureError):
    """Non-fatal: the capture continues without coordinates."""


class AuditCreateFailed(CaptureError):
    """The audit could not be created; nothing was persisted."""


class ImageUploadFailed(CaptureError):
    """The audit exists but some photos did not reach the server."""

    def __init__(self, audit_id: str, failed_slots: list[int], total: int):
        self.audit_id = audit_id
        self.failed_slots = sorted(failed_slots)
        self.total = total
        super().__init__(
            f"audit saved but {len(self.failed_slots)} of {total} photos failed"
        )


class StatusUpdateFailed(CaptureError):
    """The store status was not recomputed; the store may show a stale status."""


class ApiError(Exception):
    """Non-2xx response (or transport failure) from the audit API."""

    def __init__(self, message: str, status_code: int | None = None, code: str | None = None):
        self.message = message
        self.status_code = status_code
        self.code = code
        super().__init__(f"{status_code or 'network'}: {message}")

    @classmethod
    def from_response(cls, response: httpx.Response) -> "ApiError":
        code = None
        message = response.reason_phrase or "Request failed"
        try:
            body = response.json()
        except ValueError:
            body = None
        if isinstance(body, dict):
            if isinstance(body.get("error"), dict):
                code = body["error"].get("code")
                message = body["error"].get("message", message)
            elif body.get("detail"):
                message = str(body["detail"])
        return cls(message, status_code=response.status_code, code=code)
