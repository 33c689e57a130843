"""Capture client configuration loaded from environment variables / .env file."""

from pydantic import Field
from pydantic_settings import BaseSettings


class ClientSettings(BaseSettings):
    api_base_url: str = Field(default="http://localhost:8000/api/v1", alias="API_BASE_URL")
    api_token: str | None = Field(default=None, alias="API_TOKEN")
    request_timeout: float = Field(default=30.0, alias="REQUEST_TIMEOUT")

    # Capture session
    capture_slots: int = Field(default=3, alias="CAPTURE_SLOTS")
    camera_ready_timeout: float = Field(default=5.0, alias="CAMERA_READY_TIMEOUT")  # seconds
    location_timeout: float = Field(default=10.0, alias="LOCATION_TIMEOUT")  # seconds
    location_max_age: float = Field(default=60.0, alias="LOCATION_MAX_AGE")  # seconds
    jpeg_quality: float = Field(default=0.8, alias="CAPTURE_JPEG_QUALITY")  # off-screen encode, 0..1

    # Local "permission already requested" flags
    permission_flags_path: str = Field(
        default="~/.storeaudit/permissions.json", alias="PERMISSION_FLAGS_PATH",
    )

    model_config = {
        "env_file": ".env",
        "env_file_encoding": "utf-8",
        "populate_by_name": True,
        "extra": "ignore",
    }


client_settings = ClientSettings()
