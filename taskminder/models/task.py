"""Task models: the domain snapshot and its SQLModel table."""
import uuid
from datetime import datetime
from typing import Optional

from pydantic import BaseModel, Field as PydanticField
from sqlalchemy import Column, Text
from sqlmodel import SQLModel, Field

from taskminder.models.recurrence import RecurrenceConfig


class Task(BaseModel):
    """Immutable snapshot of a task as the reminder core sees it.

    The task store owns the record; the core only reads snapshots and proposes
    updated copies.
    """

    id: str = PydanticField(default_factory=lambda: str(uuid.uuid4()))
    title: str
    is_completed: bool = False
    completed_at: Optional[datetime] = None
    due_date: Optional[datetime] = None  # None = no fixed due time
    recurrence: RecurrenceConfig = PydanticField(default_factory=RecurrenceConfig)
    next_occurrence_at: Optional[datetime] = None  # only meaningful once completed

    class Config:
        frozen = True


class TaskRecord(SQLModel, table=True):
    """Task entity as stored in the database."""

    __tablename__ = "tasks"

    id: str = Field(default_factory=lambda: str(uuid.uuid4()), primary_key=True, max_length=64)
    title: str = Field(max_length=200, min_length=1)
    is_completed: bool = Field(default=False, index=True)
    completed_at: Optional[datetime] = Field(default=None)
    due_date: Optional[datetime] = Field(default=None)
    recurrence: Optional[str] = Field(default=None, sa_column=Column(Text))  # RecurrenceConfig as JSON
    next_occurrence_at: Optional[datetime] = Field(default=None, index=True)
    created_at: datetime = Field(default_factory=datetime.utcnow)
    updated_at: datetime = Field(default_factory=datetime.utcnow)

    @property
    def recurrence_config(self) -> RecurrenceConfig:
        """Deserialize the stored recurrence JSON."""
        if not self.recurrence:
            return RecurrenceConfig()
        return RecurrenceConfig.model_validate_json(self.recurrence)

    def to_task(self) -> Task:
        return Task(
            id=self.id,
            title=self.title,
            is_completed=self.is_completed,
            completed_at=self.completed_at,
            due_date=self.due_date,
            recurrence=self.recurrence_config,
            next_occurrence_at=self.next_occurrence_at,
        )

    def apply(self, task: Task) -> None:
        """Copy a task snapshot's fields onto this record."""
        self.title = task.title
        self.is_completed = task.is_completed
        self.completed_at = task.completed_at
        self.due_date = task.due_date
        self.recurrence = task.recurrence.model_dump_json()
        self.next_occurrence_at = task.next_occurrence_at
        self.updated_at = datetime.utcnow()

    @classmethod
    def from_task(cls, task: Task) -> "TaskRecord":
        record = cls(id=task.id, title=task.title)
        record.apply(task)
        return record
