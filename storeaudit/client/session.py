"""
Capture session controller.

One session per store visit:

    IDLE -> SLOT_CAPTURING(i) -> SLOT_FILLED(i) -> ... -> ALL_FILLED
         -> NOTES_ENTRY -> UPLOADING -> DONE

CANCELLED and ERROR are reachable from any non-terminal state. A filled
slot can be discarded, which returns the session to SLOT_CAPTURING(i).
Entering UPLOADING is the only point with server-visible effects.
"""

from __future__ import annotations

import asyncio
import enum
import logging
from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import datetime

from storeaudit.client.api import AuditApiClient
from storeaudit.client.camera import CapturedImage, GeotaggedPhotoCapturer
from storeaudit.client.config import client_settings
from storeaudit.client.errors import (
    ApiError,
    AuditCreateFailed,
    CaptureError,
    ImageUploadFailed,
    PermissionDenied,
    StatusUpdateFailed,
)
from storeaudit.schemas.store import StoreDetailOut

logger = logging.getLogger(__name__)


class SessionState(str, enum.Enum):
    IDLE = "idle"
    SLOT_CAPTURING = "slot_capturing"
    SLOT_FILLED = "slot_filled"
    ALL_FILLED = "all_filled"
    NOTES_ENTRY = "notes_entry"
    UPLOADING = "uploading"
    DONE = "done"
    CANCELLED = "cancelled"
    ERROR = "error"


TERMINAL_STATES = {SessionState.DONE, SessionState.CANCELLED}


class FetchMode(enum.Enum):
    FIRST_LOAD = "first_load"  # shows the blocking loading indicator
    REFETCHING = "refetching"  # silent refresh after a change


class InvalidTransition(CaptureError):
    """An operation was called in a state that does not allow it."""


@dataclass
class SessionOutcome:
    audit_id: str
    uploaded_slots: list[int] = field(default_factory=list)
    failed_slots: list[int] = field(default_factory=list)
    store: StoreDetailOut | None = None
    warnings: list[str] = field(default_factory=list)

    @property
    def complete(self) -> bool:
        return not self.failed_slots


class CaptureSessionController:
    def __init__(
        self,
        api: AuditApiClient,
        capturer: GeotaggedPhotoCapturer,
        *,
        user_id: str,
        store_id: str,
        slots: int | None = None,
        on_loading: Callable[[bool], None] | None = None,
        clock: Callable[[], datetime] = lambda: datetime.now().astimezone(),
    ):
        self._api = api
        self._capturer = capturer
        self.user_id = user_id
        self.store_id = store_id
        self.slot_count = slots or client_settings.capture_slots
        self._on_loading = on_loading
        self._clock = clock

        self.state = SessionState.IDLE
        self.current_slot: int | None = None
        self.slots: list[CapturedImage | None] = [None] * self.slot_count
        self.notes: str = ""
        self.audit_id: str | None = None
        self.failed_slots: list[int] = []
        self.store: StoreDetailOut | None = None
        self.last_error: Exception | None = None

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _require(self, *states: SessionState) -> None:
        if self.state not in states:
            allowed = ", ".join(s.value for s in states)
            raise InvalidTransition(f"Cannot do this while {self.state.value} (needs {allowed})")

    def _fail(self, exc: Exception) -> None:
        self.state = SessionState.ERROR
        self.last_error = exc

    @property
    def filled_count(self) -> int:
        return sum(1 for s in self.slots if s is not None)

    def _next_empty_slot(self) -> int | None:
        for index, slot in enumerate(self.slots):
            if slot is None:
                return index
        return None

    # ------------------------------------------------------------------
    # Store detail
    # ------------------------------------------------------------------

    async def refresh(self, mode: FetchMode = FetchMode.REFETCHING) -> StoreDetailOut:
        """Fetch the store detail; only FIRST_LOAD toggles the loading indicator."""
        show_loading = mode is FetchMode.FIRST_LOAD and self._on_loading is not None
        if show_loading:
            self._on_loading(True)
        try:
            self.store = await self._api.get_store(self.store_id)
        finally:
            if show_loading:
                self._on_loading(False)
        return self.store

    # ------------------------------------------------------------------
    # Capture phase (no server calls)
    # ------------------------------------------------------------------

    async def begin(self) -> None:
        """Open the camera and start on slot 0."""
        self._require(SessionState.IDLE)
        try:
            await self._capturer.open()
        except PermissionDenied as exc:
            self._fail(exc)
            raise
        self.state = SessionState.SLOT_CAPTURING
        self.current_slot = 0

    async def capture_slot(self, index: int | None = None) -> CapturedImage:
        """Fill ``index`` (default: the next empty slot).

        On DeviceNotReady / CaptureFailed the slot stays empty and the session
        stays in SLOT_CAPTURING for a retry.
        """
        self._require(SessionState.SLOT_CAPTURING, SessionState.SLOT_FILLED)
        if index is None:
            index = self.current_slot if self.state is SessionState.SLOT_CAPTURING else self._next_empty_slot()
        if index is None or not 0 <= index < self.slot_count:
            raise InvalidTransition(f"No capture slot {index}")
        if self.slots[index] is not None:
            raise InvalidTransition(f"Slot {index} is already filled; discard it first")

        self.state = SessionState.SLOT_CAPTURING
        self.current_slot = index
        try:
            image = await self._capturer.open_capture(index)
        except PermissionDenied as exc:
            self._fail(exc)
            raise

        self.slots[index] = image
        if self._next_empty_slot() is None:
            self.state = SessionState.ALL_FILLED
            self.current_slot = None
            self._capturer.close_capture()
        else:
            self.state = SessionState.SLOT_FILLED
        return image

    def discard_slot(self, index: int) -> None:
        self._require(SessionState.SLOT_FILLED, SessionState.ALL_FILLED, SessionState.NOTES_ENTRY)
        if not 0 <= index < self.slot_count or self.slots[index] is None:
            raise InvalidTransition(f"Slot {index} is empty")
        self.slots[index] = None
        self.state = SessionState.SLOT_CAPTURING
        self.current_slot = index

    async def switch_camera(self) -> None:
        self._require(SessionState.SLOT_CAPTURING, SessionState.SLOT_FILLED)
        try:
            await self._capturer.switch_facing()
        except PermissionDenied as exc:
            self._fail(exc)
            raise

    def begin_notes(self) -> None:
        self._require(SessionState.ALL_FILLED)
        self.state = SessionState.NOTES_ENTRY

    def set_notes(self, notes: str) -> None:
        self._require(SessionState.NOTES_ENTRY)
        self.notes = notes

    def cancel(self) -> None:
        """Abandon the session and release the camera on this call."""
        if self.state in TERMINAL_STATES:
            return
        if self.state is SessionState.UPLOADING:
            raise InvalidTransition("Uploads are in flight")
        self._capturer.close_capture()
        self.slots = [None] * self.slot_count
        self.current_slot = None
        self.state = SessionState.CANCELLED

    # ------------------------------------------------------------------
    # Commit
    # ------------------------------------------------------------------

    async def _upload(self, indexes: list[int]) -> tuple[list[int], list[int]]:
        """Upload the given slots in parallel. Returns (uploaded, failed)."""
        results = await asyncio.gather(
            *(self._api.upload_image(self.audit_id, self.slots[i]) for i in indexes),
            return_exceptions=True,
        )
        uploaded, failed = [], []
        for index, result in zip(indexes, results):
            if isinstance(result, ApiError) and result.status_code == 409:
                # Slot already stored by an earlier attempt whose response was lost
                uploaded.append(index)
            elif isinstance(result, BaseException):
                logger.warning("Upload of slot %d for audit %s failed: %s", index, self.audit_id, result)
                failed.append(index)
            else:
                uploaded.append(index)
        return uploaded, failed

    async def _finish(self, outcome: SessionOutcome) -> SessionOutcome:
        try:
            await self._api.finalize_audit(self.audit_id)
        except ApiError as exc:
            warning = StatusUpdateFailed(f"Store status not updated: {exc.message}")
            logger.warning("%s", warning)
            outcome.warnings.append(warning.message)

        try:
            outcome.store = await self.refresh(FetchMode.REFETCHING)
        except ApiError as exc:
            logger.warning("Store refresh failed: %s", exc.message)
            outcome.warnings.append(f"Store refresh failed: {exc.message}")

        self.failed_slots = outcome.failed_slots
        if outcome.failed_slots:
            error = ImageUploadFailed(self.audit_id, outcome.failed_slots, self.slot_count)
            self._fail(error)
            raise error
        self.state = SessionState.DONE
        return outcome

    async def commit(self) -> SessionOutcome:
        """Create the audit, upload every slot, update the store location and finalize."""
        self._require(SessionState.NOTES_ENTRY)
        self.state = SessionState.UPLOADING

        try:
            audit = await self._api.create_audit(
                self.user_id,
                self.store_id,
                notes=self.notes or None,
                audit_date=self._clock(),
                skip_status_update=True,
                expected_image_count=self.slot_count,
            )
        except ApiError as exc:
            self.state = SessionState.NOTES_ENTRY
            self.last_error = exc
            raise AuditCreateFailed(f"Audit could not be saved: {exc.message}") from exc

        self.audit_id = audit.id
        uploaded, failed = await self._upload(list(range(self.slot_count)))
        outcome = SessionOutcome(audit_id=audit.id, uploaded_slots=uploaded, failed_slots=failed)

        first = self.slots[0]
        if first is not None and first.has_location:
            try:
                await self._api.update_store_location(self.store_id, first.latitude, first.longitude)
            except ApiError as exc:
                logger.warning("Store location not updated: %s", exc.message)
                outcome.warnings.append(f"Store location not updated: {exc.message}")

        return await self._finish(outcome)

    async def retry_failed_uploads(self) -> SessionOutcome:
        """Re-upload only the slots that failed, against the same audit."""
        self._require(SessionState.ERROR)
        if not self.audit_id or not self.failed_slots:
            raise InvalidTransition("There are no failed uploads to retry")

        self.state = SessionState.UPLOADING
        previously_failed = list(self.failed_slots)
        uploaded, failed = await self._upload(previously_failed)
        done = [i for i in range(self.slot_count) if i not in failed]
        logger.info("Retry for audit %s: %d uploaded, %d still failing", self.audit_id, len(uploaded), len(failed))
        return await self._finish(
            SessionOutcome(audit_id=self.audit_id, uploaded_slots=done, failed_slots=failed)
        )
