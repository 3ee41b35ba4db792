"""Recurrence configuration model."""
from enum import Enum, IntEnum
from typing import Any, List, Optional

from pydantic import BaseModel, Field, field_validator

MINUTES_PER_DAY = 24 * 60


class RecurrenceType(str, Enum):
    """Repetition unit of a task."""

    NONE = "none"
    DAILY = "daily"
    WEEKLY = "weekly"
    MONTHLY = "monthly"
    CUSTOM_DAYS = "custom_days"


class MissedBehaviour(str, Enum):
    """What happens when a reminder is missed.

    IGNORABLE (e.g. "brush teeth"): the next prompt returns to the intended
    time of day. PERSISTENT (e.g. "change the sheets"): the next occurrence is
    measured from when the task was actually done.
    """

    IGNORABLE = "ignorable"
    PERSISTENT = "persistent"


class Weekday(IntEnum):
    """ISO weekday numbering, as returned by ``datetime.isoweekday()``."""

    MONDAY = 1
    TUESDAY = 2
    WEDNESDAY = 3
    THURSDAY = 4
    FRIDAY = 5
    SATURDAY = 6
    SUNDAY = 7

    @property
    def short_name(self) -> str:
        return self.name[:3].title()


class RecurrenceConfig(BaseModel):
    """How a task repeats and when it reminds during the day.

    Malformed values are normalised instead of rejected: reminders are not a
    hard validation boundary.
    """

    type: RecurrenceType = RecurrenceType.NONE
    interval: int = 1  # every N units, ignored for CUSTOM_DAYS
    days_of_week: List[Weekday] = Field(default_factory=list)  # CUSTOM_DAYS only
    missed_behaviour: MissedBehaviour = MissedBehaviour.IGNORABLE
    preferred_time_of_day_minutes: Optional[int] = None  # minutes since midnight
    times_per_day: int = 1
    daily_slot_minutes: List[int] = Field(default_factory=list)

    class Config:
        frozen = True

    @field_validator("interval", "times_per_day", mode="before")
    @classmethod
    def _at_least_one(cls, value: Any) -> int:
        try:
            value = int(value)
        except (TypeError, ValueError):
            return 1
        return max(value, 1)

    @field_validator("days_of_week", mode="before")
    @classmethod
    def _known_weekdays(cls, value: Any) -> List[int]:
        days = set()
        for day in value or []:
            try:
                number = int(day)
            except (TypeError, ValueError):
                # Accept names like "MONDAY" / "mon"
                number = _weekday_from_name(str(day))
            if number is not None and 1 <= number <= 7:
                days.add(number)
        return sorted(days)

    @field_validator("preferred_time_of_day_minutes", mode="before")
    @classmethod
    def _preferred_in_day(cls, value: Any) -> Optional[int]:
        if value is None:
            return None
        value = int(value)
        return value if 0 <= value < MINUTES_PER_DAY else None

    @field_validator("daily_slot_minutes", mode="before")
    @classmethod
    def _slots_in_day(cls, value: Any) -> List[int]:
        return sorted(int(m) for m in value or [] if 0 <= int(m) < MINUTES_PER_DAY)

    @property
    def recurs(self) -> bool:
        return self.type != RecurrenceType.NONE


def _weekday_from_name(name: str) -> Optional[int]:
    prefix = name.strip()[:3].upper()
    for day in Weekday:
        if day.name.startswith(prefix) and prefix:
            return day.value
    return None
