"""Timestamp source shared by models and services."""

from datetime import datetime, timezone
from typing import Callable

Clock = Callable[[], datetime]


def utcnow() -> datetime:
    """Timezone-aware current UTC time. All stored timestamps use this."""
    return datetime.now(timezone.utc)
