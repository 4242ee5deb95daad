from typing import List

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    # App
    PROJECT_NAME: str = "VitalWatch"
    API_V1_STR: str = "/api/v1"
    ENVIRONMENT: str = ""  # local, dev, prod (from .env)

    # MongoDB (from .env)
    MONGODB_URL: str = "mongodb://localhost:27017"
    MONGODB_DB_NAME: str = "vitalwatch"

    # CORS (from .env, comma-separated)
    BACKEND_CORS_ORIGINS: List[str] = []

    # Logging & Sentry
    LOG_LEVEL: str = "INFO"
    # Levels for chatty third-party loggers routed through the structlog formatter
    UVICORN_LOG_LEVEL: str = "INFO"
    UVICORN_ACCESS_LOG_LEVEL: str = "WARNING"
    PYMONGO_LOG_LEVEL: str = "WARNING"
    SENTRY_DSN: str | None = None

    # Caching (from .env, set empty to disable)
    REDIS_URL: str | None = None
    VITALS_CACHE_TTL_SECONDS: int = 30

    # Alert thresholds override (JSON file, defaults used when missing)
    ALERT_RANGES_PATH: str | None = None

    # Alert channels
    ALERTS_BROADCAST_ENABLED: bool = True
    ALERTS_EMAIL_ENABLED: bool = False
    ALERT_EMAIL_COOLDOWN_SECONDS: int = 300
    ALERT_EMAIL_TIMEOUT_SECONDS: float = 10.0
    ALERT_EMAIL_TO: str | None = None
    ALERT_EMAIL_FROM: str = "alerts@vitalwatch.local"

    # SMTP transport (from .env)
    SMTP_HOST: str | None = None
    SMTP_PORT: int = 587
    SMTP_USER: str | None = None
    SMTP_PASSWORD: str | None = None
    SMTP_STARTTLS: bool = True

    model_config = SettingsConfigDict(
        env_file=".env", case_sensitive=True, extra="ignore"
    )


settings = Settings()
