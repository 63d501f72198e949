import os

from dotenv import load_dotenv


load_dotenv()


def _get_int(value: str | None, default: int) -> int:
    if value is None or not value.strip():
        return default
    return int(value)


def _get_float(value: str | None, default: float) -> float:
    if value is None or not value.strip():
        return default
    return float(value)


def _get_list(value: str | None, default: list[str]) -> list[str]:
    if value is None:
        return default
    return [item.strip() for item in value.split(",") if item.strip()]

APP_ENV = os.getenv("APP_ENV", "development")

DATABASE_URL = os.getenv("DATABASE_URL", "sqlite:///./practice_cache.db")

CORS_ALLOW_ORIGINS = _get_list(os.getenv("CORS_ALLOW_ORIGINS"), ["http://localhost:5173"])

REMOTE_API_URL = os.getenv("REMOTE_API_URL", "http://localhost:3000/api")
REMOTE_API_TOKEN = os.getenv("REMOTE_API_TOKEN", "")
REMOTE_TIMEOUT_SECONDS = _get_float(os.getenv("REMOTE_TIMEOUT_SECONDS"), 5.0)

POLL_INTERVAL_SECONDS = _get_float(os.getenv("POLL_INTERVAL_SECONDS"), 10.0)
# polls without a dashboard request before a provider's scheduler is stopped; 0 keeps it forever
SCHEDULER_IDLE_POLLS = _get_int(os.getenv("SCHEDULER_IDLE_POLLS"), 30)
COUNTDOWN_REFRESH_SECONDS = 1

PROVIDER_TIMEZONE = os.getenv("PROVIDER_TIMEZONE", "UTC")
SESSION_DURATION_MINUTES = _get_int(os.getenv("SESSION_DURATION_MINUTES"), 50)

JWT_SECRET_KEY = os.getenv("JWT_SECRET_KEY", "change-me")
JWT_ALGORITHM = os.getenv("JWT_ALGORITHM", "HS256")
JWT_EXPIRES_MINUTES = int(os.getenv("JWT_EXPIRES_MINUTES", "60"))


def validate_runtime_config() -> None:
    if APP_ENV.lower() == "production" and JWT_SECRET_KEY == "change-me":
        raise RuntimeError("JWT_SECRET_KEY must be set in production.")
    if POLL_INTERVAL_SECONDS <= 0:
        raise RuntimeError("POLL_INTERVAL_SECONDS must be positive.")
    if REMOTE_TIMEOUT_SECONDS <= 0:
        raise RuntimeError("REMOTE_TIMEOUT_SECONDS must be positive.")
    if SCHEDULER_IDLE_POLLS < 0:
        raise RuntimeError("SCHEDULER_IDLE_POLLS cannot be negative.")
