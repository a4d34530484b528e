"""Shared utilities for schema validation."""

from datetime import datetime, timezone
from typing import Any


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def parse_mongo_datetime(v: Any) -> Any:
    """Parse MongoDB datetimes into timezone-aware UTC values.

    Handles the Extended JSON format ({'$date': '2024-11-01T08:00:00Z'}) that
    appears when data is inserted via mongoimport, and the naive datetimes the
    driver returns when the client is not tz-aware.
    """
    if isinstance(v, dict) and "$date" in v:
        v = datetime.fromisoformat(v["$date"].replace("Z", "+00:00"))
    if isinstance(v, datetime) and v.tzinfo is None:
        return v.replace(tzinfo=timezone.utc)
    # Return as-is and let Pydantic handle validation
    return v
