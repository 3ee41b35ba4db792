"""
Slot Planner.

Turns a task's daily reminder cadence into today-forward trigger times.

Priority order:
    1. ``daily_slot_minutes``: explicit times (e.g. wake/lunch/dinner/bed).
    2. Even spread of ``times_per_day`` slots across the waking window
       07:00-22:00, anchored at ``preferred_time_of_day_minutes`` if set.

A slot whose time has already passed today moves to the same time tomorrow.
"""

from datetime import datetime, timedelta
from typing import List

from taskminder.models.recurrence import RecurrenceConfig
from taskminder.models.reminder import ReminderSlot
from taskminder.utils.timeutils import at_minute_of_day, epoch_ms

WAKE_START_MINUTES = 7 * 60   # 07:00
WAKE_END_MINUTES = 22 * 60    # 22:00


def slot_count(config: RecurrenceConfig) -> int:
    """Number of slot indices a config addresses."""
    if config.daily_slot_minutes:
        return len(config.daily_slot_minutes)
    return max(config.times_per_day, 1)


def slot_minutes(config: RecurrenceConfig) -> List[int]:
    """Minute-of-day for each slot, in slot-index order."""
    if config.daily_slot_minutes:
        return sorted(config.daily_slot_minutes)

    n = max(config.times_per_day, 1)
    anchor = config.preferred_time_of_day_minutes
    if anchor is None:
        anchor = WAKE_START_MINUTES
    if n == 1:
        return [anchor]

    # An anchor past the window collapses every slot onto 22:00
    step = max((WAKE_END_MINUTES - anchor) // (n - 1), 0)
    minutes = [min(anchor + i * step, WAKE_END_MINUTES) for i in range(n)]
    # The last slot always closes the window, whatever the rounding
    minutes[-1] = WAKE_END_MINUTES
    return minutes


def plan_slots(task_id: str, config: RecurrenceConfig, now: datetime) -> List[ReminderSlot]:
    """
    Compute the next trigger time for every slot of a task.

    Args:
        task_id: Task the slots belong to
        config: Recurrence configuration holding the daily cadence
        now: Current time; naive values are local wall-clock

    Returns:
        One ReminderSlot per slot index, each at or after ``now``
    """
    today = now.date()
    slots = []
    for index, minutes in enumerate(slot_minutes(config)):
        trigger_at = at_minute_of_day(today, minutes, now)
        if trigger_at < now:
            trigger_at = at_minute_of_day(today + timedelta(days=1), minutes, now)
        slots.append(ReminderSlot(
            task_id=task_id,
            slot_index=index,
            trigger_at=trigger_at,
            trigger_at_epoch_ms=epoch_ms(trigger_at),
        ))
    return slots
