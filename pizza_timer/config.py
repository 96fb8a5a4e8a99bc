"""Application configuration settings."""
from pydantic_settings import BaseSettings
from functools import lru_cache
from typing import Optional


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    # Application
    APP_NAME: str = "Pizza Timer"
    APP_VERSION: str = "1.0.0"
    DEBUG: bool = False

    # Active-pizza backend
    # For local development: run mock_backend/server.py and point this at port 8002
    API_BASE_URL: str = "http://localhost:8080"
    API_TOKEN: Optional[str] = None
    API_REFRESH_TOKEN: Optional[str] = None
    API_EMAIL: Optional[str] = None
    API_PASSWORD: Optional[str] = None
    REQUEST_TIMEOUT_SECONDS: float = 30.0

    # Timer
    POLL_INTERVAL_SECONDS: float = 30.0
    TICK_INTERVAL_SECONDS: float = 1.0
    DEFAULT_REMINDER_MINUTES: int = 15

    # Desktop alerts
    # Empty URL means the host offers no alert capability ("unsupported")
    NOTIFICATION_WEBHOOK_URL: Optional[str] = None
    NOTIFICATION_PERMISSION: str = "default"
    NOTIFICATION_AUTO_CLOSE_SECONDS: int = 30
    NOTIFICATION_ICON: str = "/logo192.png"
    SOUND_ENABLED: bool = True

    # Toasts
    TOAST_HISTORY_SIZE: int = 50

    class Config:
        env_file = ".env"
        case_sensitive = True


@lru_cache()
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
