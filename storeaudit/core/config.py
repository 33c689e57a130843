
from pydantic import Field
from pydantic_settings import BaseSettings

class Settings(BaseSettings):
    """Application configuration loaded from environment variables / .env file."""

    app_name: str = "Store Audit API"
    app_env: str = "development"
    app_port: int = 8000
    frontend_url: str = "http://localhost:3000"
    max_upload_size_mb: int = 10

    # Database (SQLite for local dev, any async SQLAlchemy URL in production)
    database_url: str = Field(
        default="sqlite+aiosqlite:///./storeaudit_dev.db",
        alias="DATABASE_URL",
    )

    # Watermarked image storage
    media_dir: str = Field(default="./media", alias="MEDIA_DIR")
    media_folder: str = Field(default="auditapp", alias="MEDIA_FOLDER")
    public_base_url: str = Field(
        default="http://localhost:8000", alias="PUBLIC_BASE_URL",
    )  # prefix for the URLs handed back to clients
    jpeg_quality: int = Field(default=85, alias="JPEG_QUALITY")
    watermark_font_size: int = Field(default=18, alias="WATERMARK_FONT_SIZE")
    watermark_color: str = Field(default="#0138C3", alias="WATERMARK_COLOR")
    watermark_font_path: str | None = Field(default=None, alias="WATERMARK_FONT_PATH")

    # Audit rules
    audit_timezone: str = Field(
        default="UTC", alias="AUDIT_TIMEZONE",
    )  # calendar day boundaries for the same-day rule
    enforce_daily_audit_limit: bool = Field(
        default=False, alias="ENFORCE_DAILY_AUDIT_LIMIT",
    )
    expected_images_per_audit: int = Field(default=3, alias="EXPECTED_IMAGES_PER_AUDIT")

    model_config = {
        "env_file": ".env",
        "env_file_encoding": "utf-8",
        "populate_by_name": True,
        "extra": "ignore",
    }

    @property
    def max_upload_size_bytes(self) -> int:
        return self.max_upload_size_mb * 1024 * 1024

    @property
    def media_url_prefix(self) -> str:
        return f"{self.public_base_url.rstrip('/')}/media"

settings = Settings()
