import os

from dotenv import load_dotenv


load_dotenv()


def _get_bool(value: str | None, default: bool = False) -> bool:
    if value is None:
        return default
    return value.strip().lower() in {"1", "true", "yes", "on"}


def _get_list(value: str | None, default: list[str]) -> list[str]:
    if not value:
        return default
    return [item.strip() for item in value.split(",") if item.strip()]


DEFAULT_DATABASE_URL = "sqlite:///./telecare.db"

APP_ENV = os.getenv("APP_ENV", "development")
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")

DATABASE_URL = os.getenv("DATABASE_URL", DEFAULT_DATABASE_URL)

CORS_ORIGINS = _get_list(os.getenv("CORS_ORIGINS"), ["http://localhost:8081"])

BOOKING_HORIZON_DAYS = int(os.getenv("BOOKING_HORIZON_DAYS", "14"))
JOIN_WINDOW_MINUTES = int(os.getenv("JOIN_WINDOW_MINUTES", "10"))
ROOM_ID_LENGTH = int(os.getenv("ROOM_ID_LENGTH", "6"))

NOTIFICATION_SERVICE_URL = os.getenv("NOTIFICATION_SERVICE_URL", "")
NOTIFICATION_TIMEOUT_SECONDS = float(os.getenv("NOTIFICATION_TIMEOUT_SECONDS", "10"))

RETENTION_SWEEPER_ENABLED = _get_bool(os.getenv("RETENTION_SWEEPER_ENABLED"), default=True)
RETENTION_SWEEP_HOUR = int(os.getenv("RETENTION_SWEEP_HOUR", "23"))
RETENTION_SWEEP_MINUTE = int(os.getenv("RETENTION_SWEEP_MINUTE", "57"))
RETENTION_STARTUP_DELAY_SECONDS = int(os.getenv("RETENTION_STARTUP_DELAY_SECONDS", "2"))
SCHEDULER_TIMEZONE = os.getenv("SCHEDULER_TIMEZONE") or None


def validate_runtime_config() -> None:
    if APP_ENV.lower() != "production":
        return
    if DATABASE_URL == DEFAULT_DATABASE_URL:
        raise RuntimeError("DATABASE_URL must be set in production.")
    if not NOTIFICATION_SERVICE_URL:
        raise RuntimeError("NOTIFICATION_SERVICE_URL must be set in production.")
