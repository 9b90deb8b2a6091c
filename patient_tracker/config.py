# NOTE: Runtime configuration read from the environment at import time
import os
from datetime import datetime, timedelta, timezone

ENVIRONMENT = os.getenv("ENVIRONMENT", "production")
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()

# Angular/React dev servers by default, comma separated
CORS_ORIGINS = [
    origin.strip()
    for origin in os.getenv(
        "CORS_ORIGINS", "http://localhost:5173,http://127.0.0.1:5173"
    ).split(",")
    if origin.strip()
]

# Scan reconciliation windows
SCAN_LOOKBACK_WINDOW = timedelta(minutes=int(os.getenv("SCAN_LOOKBACK_MINUTES", "5")))
SCAN_COOLDOWN = timedelta(seconds=int(os.getenv("SCAN_COOLDOWN_SECONDS", "3")))
EARLY_DISCHARGE_THRESHOLD = timedelta(minutes=int(os.getenv("EARLY_DISCHARGE_MINUTES", "5")))

ISOLATION_WARD = os.getenv("ISOLATION_WARD", "isolation_room")


def utcnow() -> datetime:
    """Current time as naive UTC, the form every timestamp column stores."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


def as_naive_utc(value: datetime) -> datetime:
    """Normalize an aware datetime to naive UTC; naive values are assumed UTC already."""
    if value.tzinfo is None:
        return value
    return value.astimezone(timezone.utc).replace(tzinfo=None)
