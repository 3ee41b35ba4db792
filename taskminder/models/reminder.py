"""Reminder slot model."""
from datetime import datetime

from pydantic import BaseModel


class ReminderSlot(BaseModel):
    """One scheduled timer: a task's reminder at one time of day.

    Ephemeral, never persisted. ``slot_index`` follows the sorted order of the
    day's slot minutes so timers stay addressable for cancellation.
    """

    task_id: str
    slot_index: int
    trigger_at: datetime
    trigger_at_epoch_ms: int
    generation: int = 0

    class Config:
        frozen = True

    @property
    def timer_id(self) -> str:
        return f"{self.task_id}:{self.slot_index}"
