import os
from datetime import time



def _get_bool(value: str | None, default: bool = False) -> bool:
    if value is None:
        return default
    return value.strip().lower() in {"1", "true", "yes", "on"}


def _get_time(value: str | None, default: time) -> time:
    if not value:
        return default
    hour, _, minute = value.strip().partition(":")
    return time(int(hour), int(minute or 0))


def _get_list(value: str | None, default: list[str]) -> list[str]:
    if not value:
        return default
    return [item.strip() for item in value.split(",") if item.strip()]

APP_ENV = os.getenv("APP_ENV", "development")
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()
SQL_ECHO = _get_bool(os.getenv("SQL_ECHO"), default=False)

CORS_ALLOWED_ORIGINS = _get_list(os.getenv("CORS_ALLOWED_ORIGINS"), ["http://localhost:3000"])

JWT_SECRET_KEY = os.getenv("JWT_SECRET_KEY", "change-me")
JWT_ALGORITHM = os.getenv("JWT_ALGORITHM", "HS256")
JWT_EXPIRES_MINUTES = int(os.getenv("JWT_EXPIRES_MINUTES", "720"))

ADMIN_EMAIL_DOMAIN = os.getenv("ADMIN_EMAIL_DOMAIN", "@boondocks.com").strip().lower()

# Shop policy for the bookable grid. Candidate starts run from the open time
# up to, not including, the close time; starts inside the lunch break are skipped.
SCHEDULE_OPEN_TIME = _get_time(os.getenv("SCHEDULE_OPEN_TIME"), time(9, 0))
SCHEDULE_CLOSE_TIME = _get_time(os.getenv("SCHEDULE_CLOSE_TIME"), time(20, 0))
SLOT_INCREMENT_MINUTES = int(os.getenv("SLOT_INCREMENT_MINUTES", "30"))
LUNCH_BREAK_START = _get_time(os.getenv("LUNCH_BREAK_START"), time(13, 0))
LUNCH_BREAK_END = _get_time(os.getenv("LUNCH_BREAK_END"), time(14, 0))
DEFAULT_SERVICE_DURATION_MINUTES = int(os.getenv("DEFAULT_SERVICE_DURATION_MINUTES", "30"))

def validate_runtime_config() -> None:
    if APP_ENV.lower() == "production" and JWT_SECRET_KEY == "change-me":
        raise RuntimeError("JWT_SECRET_KEY must be set in production.")
    if SLOT_INCREMENT_MINUTES < 1:
        raise RuntimeError("SLOT_INCREMENT_MINUTES must be a positive number of minutes.")
    if SCHEDULE_OPEN_TIME >= SCHEDULE_CLOSE_TIME:
        raise RuntimeError("SCHEDULE_OPEN_TIME must be earlier than SCHEDULE_CLOSE_TIME.")
