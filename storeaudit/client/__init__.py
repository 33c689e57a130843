"""Capture client: camera + location capture, daily gate, session controller, API client.

Files:
  camera.py       : feed readiness, frame strategies, GeotaggedPhotoCapturer, OpenCV backend
  location.py     : bounded position reads
  permissions.py  : persisted "permission already requested" flags
  gate.py         : once-per-day capture gate
  session.py      : capture session state machine (the only server-visible commit)
  api.py          : httpx client for /api/v1
  errors.py       : client error taxonomy
  config.py       : ClientSettings
"""

from storeaudit.client.api import AuditApiClient
from storeaudit.client.camera import CapturedImage, Facing, GeotaggedPhotoCapturer
from storeaudit.client.gate import DailyCaptureGate, can_start_new_capture_today
from storeaudit.client.session import CaptureSessionController, FetchMode, SessionState

__all__ = [
    "AuditApiClient",
    "CaptureSessionController",
    "CapturedImage",
    "DailyCaptureGate",
    "Facing",
    "FetchMode",
    "GeotaggedPhotoCapturer",
    "SessionState",
    "can_start_new_capture_today",
]
