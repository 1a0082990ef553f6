"""
Application Configuration - Environment & Settings
Centralizes all config from .env with Pydantic Settings for validation.
"""
from pathlib import Path
from functools import lru_cache
from pydantic_settings import BaseSettings

# Resolve paths relative to backend/ directory
BASE_DIR = Path(__file__).resolve().parent.parent


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    # --- Core ---
    APP_NAME: str = "Swish Payment Gateway"
    APP_VERSION: str = "1.0.0"
    ENVIRONMENT: str = "development"
    DEBUG: bool = False

    # --- Swish API ---
    SWISH_API_URL: str = "https://mss.cpc.getswish.net"
    SWISH_PAYEE_ALIAS: str = "1234679304"
    SWISH_CALLBACK_URL: str = ""
    SWISH_TIMEOUT_SECONDS: float = 10.0
    SWISH_STATUS_RETRIES: int = 2
    SWISH_RETRY_BACKOFF_SECONDS: float = 0.5

    # --- Client certificate (PEM text or base64-encoded PEM) ---
    SWISH_CERT: str = ""
    SWISH_KEY: str = ""

    # --- Payment ---
    CURRENCY: str = "SEK"
    PAYMENT_MESSAGE: str = "Payment to Yumplee"
    REFERENCE_PREFIX: str = "YMP"
    COUNTRY_CODE: str = "46"
    CANCELLATION_TIMEOUT_SECONDS: int = 60

    # --- Storage ---
    PAYMENT_STORE: str = "memory"   # memory | sql
    DATABASE_URL: str = f"sqlite:///{BASE_DIR / 'data' / 'payments.db'}"

    # --- Security ---
    CORS_ORIGINS: list[str] = ["*"]
    CREATE_RATE_LIMIT_REQUESTS: int = 10
    CREATE_RATE_LIMIT_WINDOW: int = 60

    # --- Logging ---
    LOG_DIR: str = str(BASE_DIR / "logs")
    LOG_LEVEL: str = "INFO"

    @property
    def is_production(self) -> bool:
        return self.ENVIRONMENT.lower() == "production"

    class Config:
        env_file = str(BASE_DIR / ".env")
        env_file_encoding = "utf-8"
        case_sensitive = True


@lru_cache()
def get_settings() -> Settings:
    """Cached settings singleton."""
    return Settings()
