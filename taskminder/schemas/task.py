"""Task schemas for the reminder API."""
from datetime import datetime
from typing import Dict, List, Optional

from pydantic import BaseModel, Field

from taskminder.models.recurrence import RecurrenceConfig
from taskminder.models.task import Task


class TaskCreate(BaseModel):
    """Schema for creating a task."""
    title: str = Field(..., min_length=1, max_length=200)
    due_date: Optional[datetime] = None
    recurrence: RecurrenceConfig = Field(default_factory=RecurrenceConfig)


class TaskUpdate(BaseModel):
    """Schema for editing a task; omitted fields keep their value."""
    title: Optional[str] = Field(None, min_length=1, max_length=200)
    due_date: Optional[datetime] = None
    recurrence: Optional[RecurrenceConfig] = None


class TaskResponse(BaseModel):
    """Schema for task API responses."""
    id: str
    title: str
    is_completed: bool
    completed_at: Optional[datetime] = None
    due_date: Optional[datetime] = None
    recurrence: RecurrenceConfig
    next_occurrence_at: Optional[datetime] = None
    recurrence_summary: str

    @classmethod
    def from_task(cls, task: Task, summary: str) -> "TaskResponse":
        return cls(**task.model_dump(), recurrence_summary=summary)


class ReminderAction(BaseModel):
    """Body of a complete/skip action taken on a reminder."""
    slot_index: int = Field(0, ge=0)
    completed_at: Optional[datetime] = None


class SlotResponse(BaseModel):
    slot_index: int
    trigger_at: datetime
    trigger_at_epoch_ms: int


class RecurrenceResponse(BaseModel):
    """Recurrence summary and today-forward plan of a task."""
    task_id: str
    description: str
    is_due: bool
    slots: List[SlotResponse]


class BatchResult(BaseModel):
    """Per-task outcome of a recovery or due-check run."""
    results: Dict[str, bool]
    succeeded: int
    failed: int

    @classmethod
    def from_results(cls, results: Dict[str, bool]) -> "BatchResult":
        succeeded = sum(1 for ok in results.values() if ok)
        return cls(results=results, succeeded=succeeded, failed=len(results) - succeeded)
