"""Application configuration settings.

All configuration values are loaded from environment variables (.env file).
No sensitive values should be hardcoded here.
"""

from typing import Optional

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    # Application
    PROJECT_NAME: str = "Clip Variants API"
    VERSION: str = "0.1.0"
    API_V1_PREFIX: str = "/api/v1"
    DEBUG: bool = False
    LOG_JSON: bool = True

    # CORS
    CORS_ORIGINS: list[str] = []

    # Working directories
    UPLOAD_DIR: str = "./uploads"
    OUTPUT_DIR: str = "./processed"

    # Intake
    MAX_UPLOAD_SIZE_MB: int = 500
    MIN_VERSION_COUNT: int = 1
    MAX_VERSION_COUNT: int = 5

    # Encoder
    FFMPEG_PATH: str = "ffmpeg"
    FFPROBE_PATH: str = "ffprobe"
    OUTPUT_WIDTH: int = 1920
    OUTPUT_HEIGHT: int = 1080
    # 0 disables the timeout
    ENCODE_TIMEOUT_SECONDS: float = 3600.0
    SOURCE_DELETE_GRACE_SECONDS: float = 5.0

    # Retention
    JOB_RETENTION_HOURS: float = 1.0
    FILE_MAX_AGE_HOURS: float = 24.0
    SWEEP_INTERVAL_SECONDS: float = 600.0

    # Mixpost (outbound media publishing)
    MIXPOST_API_KEY: str = ""
    MIXPOST_BASE_URL: str = ""
    MIXPOST_TIMEOUT_SECONDS: float = 300.0

    @property
    def max_upload_size_bytes(self) -> int:
        return self.MAX_UPLOAD_SIZE_MB * 1024 * 1024

    @property
    def encode_timeout(self) -> Optional[float]:
        """Encode timeout in seconds, or None when disabled."""
        return self.ENCODE_TIMEOUT_SECONDS if self.ENCODE_TIMEOUT_SECONDS > 0 else None

    @property
    def mixpost_configured(self) -> bool:
        return bool(self.MIXPOST_API_KEY and self.MIXPOST_BASE_URL)

    class Config:
        env_file = ".env"
        case_sensitive = True
        extra = "ignore"


settings = Settings()
