"""Shared configuration defaults for the location hierarchy engine and flows."""

import datetime
import os

BASE_URL_ENV = "LOCATION_STORE_BASE_URL"
API_TOKEN_ENV = "LOCATION_STORE_API_TOKEN"
TIMEOUT_ENV = "LOCATION_STORE_TIMEOUT"
CASCADE_MODE_ENV = "LOCATION_STORE_CASCADE_MODE"

DEFAULT_BASE_URL = "http://localhost:8000/api"
DEFAULT_TIMEOUT_SECONDS = 10.0
DEFAULT_CASCADE_MODE = "client"

LOCATIONS_UPDATED_EVENT = "location-hierarchy.locations.updated"
EVENT_RESOURCE_ID = "location-hierarchy.console"

# Read-only fetches may be retried; deletes never are.
TASK_DEFAULTS: dict[str, object] = {
    "retries": 1,
    "retry_delay_seconds": 2,
    "log_prints": True,
}


def env_default(key: str, default: str) -> str:
    """Return an environment variable, or *default* when unset or blank."""
    value = os.environ.get(key, "").strip()
    return value or default


def timestamp() -> str:
    """Return the current UTC timestamp as an ISO-8601 string."""
    return datetime.datetime.now(tz=datetime.UTC).isoformat()
