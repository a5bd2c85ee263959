"""
Application configuration using Pydantic BaseSettings.
Loads from .env and provides typed access to all settings.
"""

from pathlib import Path
from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    # ── Registry ─────────────────────────────────────────
    DATABASE_URL: str = "sqlite+aiosqlite:///./storage/codedrop.db"
    REGISTRY_BACKEND: str = "sql"  # "sql" | "redis"

    # ── Redis ────────────────────────────────────────────
    REDIS_URL: str = ""
    REDIS_KEY_PREFIX: str = "codedrop:"

    # ── Storage ──────────────────────────────────────────
    STORAGE_LOCAL_PATH: Path = Path("./storage")

    # ── Sharing ──────────────────────────────────────────
    BASE_URL: str = ""
    FILE_TTL_SECONDS: int = 3600
    CODE_LENGTH: int = 6
    CODE_MAX_ATTEMPTS: int = 5
    MAX_UPLOAD_SIZE_MB: int = 100
    MAX_FILES_PER_UPLOAD: int = 20

    # ── Expiry reaper ────────────────────────────────────
    REAPER_ENABLED: bool = True
    REAPER_INTERVAL_SECONDS: int = 600
    REAPER_GRACE_SECONDS: int = 30

    # ── Server ───────────────────────────────────────────
    BACKEND_HOST: str = "0.0.0.0"
    BACKEND_PORT: int = 3000
    CORS_ORIGINS: list[str] = ["*"]
    LOG_LEVEL: str = "INFO"

    model_config = {"env_file": ".env", "env_file_encoding": "utf-8", "extra": "ignore"}

    @property
    def blob_dir(self) -> Path:
        return self.STORAGE_LOCAL_PATH / "blobs"


settings = Settings()
