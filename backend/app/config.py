from __future__ import annotations
"""Application configuration using Pydantic Settings."""

from functools import lru_cache
from urllib.parse import quote_plus

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """Short-drama studio backend settings.

    Loaded from environment variables or .env file.
    """

    # --- Application ---
    APP_NAME: str = "ShortDrama Studio"
    DEBUG: bool = False
    CORS_ORIGINS: str = "http://localhost:5173,http://127.0.0.1:5173"

    # --- Database (MySQL 8.0+) ---
    DB_HOST: str = "127.0.0.1"
    DB_PORT: int = 3306
    DB_USER: str = "root"
    DB_PASSWORD: str = ""
    DB_NAME: str = "shortdrama"
    DB_URL: str = ""  # full async URL, overrides the DB_* parts when set

    @property
    def DATABASE_URL(self) -> str:
        """Async connection string; defaults to MySQL via the asyncmy driver."""
        if self.DB_URL:
            return self.DB_URL
        encoded_password = quote_plus(self.DB_PASSWORD)
        return (
            f"mysql+asyncmy://{self.DB_USER}:{encoded_password}"
            f"@{self.DB_HOST}:{self.DB_PORT}/{self.DB_NAME}"
            "?charset=utf8mb4"
        )

    # --- Redis (Celery broker + Pub/Sub) ---
    REDIS_URL: str = "redis://localhost:6379/0"

    # --- Media Volume ---
    MEDIA_VOLUME: str = "media_volume"
    PUBLIC_BASE_URL: str = "http://localhost:8000"

    # --- Generation task orchestration ---
    SWEEP_INTERVAL_SECONDS: float = 10.0
    PENDING_TIMEOUT_SECONDS: int = 5 * 60
    PROCESSING_TIMEOUT_SECONDS: int = 20 * 60
    SWEEP_BATCH_SIZE: int = 5
    ENABLE_INPROCESS_SWEEP: bool = False  # run the sweep inside the API process instead of Celery beat

    # --- AI model catalog ---
    AI_MODELS_DIR: str = ""  # optional dir with image.json / video.json overrides
    DEFAULT_IMAGE_MODEL: str = "doubao-seedream-4-0"
    DEFAULT_VIDEO_MODEL: str = "sora-2"

    # --- Zeroapi (image + video provider) ---
    ZEROAPI_BASE_URL: str = "https://zeroapi.cn"
    ZEROAPI_API_KEY: str = ""
    PROVIDER_TIMEOUT: float = 60.0

    @property
    def cors_origin_list(self) -> list[str]:
        return [o.strip() for o in self.CORS_ORIGINS.split(",") if o.strip()]

    model_config = {
        "env_file": ".env",
        "env_file_encoding": "utf-8",
        "extra": "ignore",
    }


@lru_cache
def get_settings() -> Settings:
    """Get cached application settings singleton."""
    return Settings()
