"""Task store: the single writer of task state."""
import abc
from datetime import datetime
from typing import Iterator, List, Optional

from sqlalchemy.engine import Engine
from sqlalchemy.exc import SQLAlchemyError
from sqlmodel import Session, select

from taskminder.exceptions import TaskStoreUnavailableError
from taskminder.models.task import Task, TaskRecord
from taskminder.utils.logger import get_logger

logger = get_logger(__name__)


class TaskStore(abc.ABC):
    """Authoritative storage of tasks. The reminder core never persists on its own."""

    @abc.abstractmethod
    def get_active_recurring_tasks(self) -> Iterator[Task]:
        """Stream every recurring task that is not completed."""

    @abc.abstractmethod
    def get_task(self, task_id: str) -> Optional[Task]:
        """Fetch one task, or None."""

    @abc.abstractmethod
    def update_task(self, task: Task) -> Task:
        """Persist a task snapshot and return what was stored."""

    @abc.abstractmethod
    def get_recurrences_due(self, now: datetime) -> List[Task]:
        """Completed tasks whose next occurrence is at or before ``now``."""

    @abc.abstractmethod
    def add_task(self, task: Task) -> Task:
        """Insert a new task."""


class SqlTaskStore(TaskStore):
    """TaskStore backed by SQLModel."""

    def __init__(self, engine: Engine):
        self.engine = engine

    def get_active_recurring_tasks(self) -> Iterator[Task]:
        statement = select(TaskRecord).where(TaskRecord.is_completed == False)  # noqa: E712
        try:
            with Session(self.engine) as session:
                records = session.exec(statement).all()
                tasks = [record.to_task() for record in records]
        except SQLAlchemyError as e:
            logger.error("Failed to load active tasks", error=str(e))
            raise TaskStoreUnavailableError(f"Failed to load active tasks: {e}") from e

        for task in tasks:
            if task.recurrence.recurs:
                yield task

    def get_task(self, task_id: str) -> Optional[Task]:
        try:
            with Session(self.engine) as session:
                record = session.get(TaskRecord, task_id)
                return record.to_task() if record else None
        except SQLAlchemyError as e:
            logger.error("Failed to load task", task_id=task_id, error=str(e))
            raise TaskStoreUnavailableError(f"Failed to load task {task_id}: {e}") from e

    def update_task(self, task: Task) -> Task:
        try:
            with Session(self.engine) as session:
                record = session.get(TaskRecord, task.id)
                if record is None:
                    record = TaskRecord.from_task(task)
                else:
                    record.apply(task)
                session.add(record)
                session.commit()
                session.refresh(record)
                return record.to_task()
        except SQLAlchemyError as e:
            logger.error("Failed to update task", task_id=task.id, error=str(e))
            raise TaskStoreUnavailableError(f"Failed to update task {task.id}: {e}") from e

    def get_recurrences_due(self, now: datetime) -> List[Task]:
        statement = select(TaskRecord).where(
            TaskRecord.is_completed == True,  # noqa: E712
            TaskRecord.next_occurrence_at.is_not(None),
            TaskRecord.next_occurrence_at <= now,
        )
        try:
            with Session(self.engine) as session:
                return [record.to_task() for record in session.exec(statement).all()]
        except SQLAlchemyError as e:
            logger.error("Failed to load due recurrences", error=str(e))
            raise TaskStoreUnavailableError(f"Failed to load due recurrences: {e}") from e

    def add_task(self, task: Task) -> Task:
        try:
            with Session(self.engine) as session:
                record = TaskRecord.from_task(task)
                session.add(record)
                session.commit()
                session.refresh(record)
                logger.info("Created task", task_id=record.id)
                return record.to_task()
        except SQLAlchemyError as e:
            logger.error("Failed to create task", error=str(e))
            raise TaskStoreUnavailableError(f"Failed to create task: {e}") from e
