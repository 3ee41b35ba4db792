"""Domain models for recurring tasks and reminder slots."""

from .recurrence import MissedBehaviour, RecurrenceConfig, RecurrenceType, Weekday
from .reminder import ReminderSlot
from .task import Task, TaskRecord

__all__ = [
    "MissedBehaviour",
    "RecurrenceConfig",
    "RecurrenceType",
    "Weekday",
    "ReminderSlot",
    "Task",
    "TaskRecord",
]
