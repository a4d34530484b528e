"""Access plan enumeration."""

from datetime import datetime, timedelta
from enum import Enum


class PlanTag(str, Enum):
    """Time-boxed access plans.

    - FIVE_HOURS: session expires five hours after creation
    - TWELVE_HOURS: session expires twelve hours after creation
    - LIFETIME: session never expires
    """

    FIVE_HOURS = "5hours"
    TWELVE_HOURS = "12hours"
    LIFETIME = "lifetime"

    def __str__(self) -> str:
        return self.value

    @property
    def duration(self) -> timedelta | None:
        return _PLAN_DURATIONS[self]

    def expires_at(self, now: datetime) -> datetime | None:
        """Expiry timestamp for a session created at `now`, None if it never expires."""
        duration = self.duration
        return now + duration if duration is not None else None


_PLAN_DURATIONS: dict[PlanTag, timedelta | None] = {
    PlanTag.FIVE_HOURS: timedelta(hours=5),
    PlanTag.TWELVE_HOURS: timedelta(hours=12),
    PlanTag.LIFETIME: None,
}


__all__ = ["PlanTag"]
