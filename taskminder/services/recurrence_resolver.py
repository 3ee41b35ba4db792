"""
Recurrence Resolver.

Decides whether a recurring task is due and, after a completion, when it
should next appear. Pure: every time-sensitive call takes ``now`` or the
completion moment explicitly.

Missed-behaviour models:

IGNORABLE ("brush teeth"): a missed reminder is forgiven. The next occurrence
is one interval after the completion, snapped back to the preferred time of
day, so brushing at 23:00 still yields tomorrow's reminder at 08:00.

PERSISTENT ("change the sheets"): the next occurrence is measured from when
the task was actually done, so changing the sheets on Wednesday instead of
Sunday moves the next one to the following Wednesday.

Weekdays use ISO numbering (Monday = 1 ... Sunday = 7). A CUSTOM_DAYS task
completed on one of its own days moves to the next listed day, never the same
day.
"""

import calendar
from datetime import datetime, timedelta
from typing import Optional

from taskminder.models.recurrence import (
    MissedBehaviour,
    RecurrenceConfig,
    RecurrenceType,
    Weekday,
)
from taskminder.models.task import Task
from taskminder.utils.timeutils import rezone, wall_clock


class RecurrenceResolver:
    """Next-occurrence arithmetic for recurring tasks."""

    @staticmethod
    def is_due(task: Task, now: datetime) -> bool:
        """
        Check whether the user is expected to act on the task now.

        Args:
            task: Task snapshot
            now: Current time

        Returns:
            False for non-recurring tasks; otherwise "not completed" while no
            next occurrence is pending, else whether it has been reached
        """
        if task.recurrence.type == RecurrenceType.NONE:
            return False
        if task.next_occurrence_at is None:
            return not task.is_completed
        return now >= task.next_occurrence_at

    @staticmethod
    def next_occurrence(task: Task, completed_at: datetime) -> Optional[datetime]:
        """
        Calculate when a completed task should next appear.

        Args:
            task: Task that was completed
            completed_at: When it was completed

        Returns:
            The next occurrence, or None if the task does not recur
        """
        config = task.recurrence
        if config.type == RecurrenceType.NONE:
            return None

        if config.missed_behaviour == MissedBehaviour.PERSISTENT:
            return RecurrenceResolver._next_from_completion(config, completed_at)
        return RecurrenceResolver._next_from_schedule(config, completed_at)

    @staticmethod
    def _next_from_schedule(config: RecurrenceConfig, completed_at: datetime) -> Optional[datetime]:
        """IGNORABLE: one interval on, back at the intended time of day."""
        advanced = advance(config, wall_clock(completed_at))
        if advanced is None:
            return None
        return rezone(snap_to_preferred_time(config, advanced), completed_at)

    @staticmethod
    def _next_from_completion(config: RecurrenceConfig, completed_at: datetime) -> Optional[datetime]:
        """PERSISTENT: one interval on from the moment it was actually done."""
        advanced = advance(config, wall_clock(completed_at))
        if advanced is None:
            return None
        # The date follows the completion; the time of day still honours the preference.
        return rezone(snap_to_preferred_time(config, advanced), completed_at)

    @staticmethod
    def reset_for_next_occurrence(task: Task) -> Task:
        """Mark a task active again, awaiting completion."""
        return task.model_copy(update={
            "is_completed": False,
            "completed_at": None,
            "next_occurrence_at": None,
        })

    @staticmethod
    def describe(config: RecurrenceConfig) -> str:
        """
        Human-readable summary of a recurrence.

        e.g. "Daily", "Weekly (every 2) ↩ persistent", "Mon, Wed, Fri"
        """
        if config.type == RecurrenceType.NONE:
            return "Once"

        interval = "" if config.interval <= 1 else f" (every {config.interval})"
        if config.type == RecurrenceType.DAILY:
            base = f"Daily{interval}"
        elif config.type == RecurrenceType.WEEKLY:
            base = f"Weekly{interval}"
        elif config.type == RecurrenceType.MONTHLY:
            base = f"Monthly{interval}"
        else:
            base = ", ".join(Weekday(day).short_name for day in sorted(config.days_of_week))

        if config.missed_behaviour == MissedBehaviour.PERSISTENT:
            return f"{base} ↩ persistent"
        return base


def advance(config: RecurrenceConfig, start: datetime) -> Optional[datetime]:
    """Move ``start`` forward by one recurrence unit.

    Returns None when nothing can be computed (NONE, or CUSTOM_DAYS without days).
    """
    interval = max(config.interval, 1)

    if config.type == RecurrenceType.DAILY:
        return start + timedelta(days=interval)
    if config.type == RecurrenceType.WEEKLY:
        return start + timedelta(weeks=interval)
    if config.type == RecurrenceType.MONTHLY:
        return add_months(start, interval)
    if config.type == RecurrenceType.CUSTOM_DAYS:
        if not config.days_of_week:
            return None
        return start + timedelta(days=days_until_next_weekday(start.isoweekday(), config.days_of_week))
    return None


def days_until_next_weekday(today: int, days_of_week) -> int:
    """Days from ISO weekday ``today`` to the next listed weekday, in 1..7."""
    ordered = sorted(int(day) for day in days_of_week)
    target = next((day for day in ordered if day > today), ordered[0])
    ahead = target - today
    if ahead <= 0:
        ahead += 7
    return ahead


def add_months(start: datetime, months: int) -> datetime:
    """Same day ``months`` later, clamped to the length of the target month."""
    month_index = start.month - 1 + months
    year = start.year + month_index // 12
    month = month_index % 12 + 1

    # Handle months with different number of days
    max_day = calendar.monthrange(year, month)[1]
    return start.replace(year=year, month=month, day=min(start.day, max_day))


def snap_to_preferred_time(config: RecurrenceConfig, moment: datetime) -> datetime:
    minutes = config.preferred_time_of_day_minutes
    if minutes is None:
        return moment
    return moment.replace(hour=minutes // 60, minute=minutes % 60, second=0, microsecond=0)
