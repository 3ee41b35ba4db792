"""
Pytest configuration and shared fixtures.
"""

from datetime import datetime
from typing import Dict, List, Optional, Tuple

import pytest
from sqlmodel import create_engine

from taskminder.db.config import init_db
from taskminder.exceptions import ExactTimerPermissionError
from taskminder.models.recurrence import RecurrenceConfig, RecurrenceType
from taskminder.models.task import Task
from taskminder.services.notification_service import NotificationDispatcher
from taskminder.services.reminder_scheduler import ReminderScheduler
from taskminder.services.task_store import SqlTaskStore, TaskStore
from taskminder.services.timer_service import TimerService, timer_id
from taskminder.utils.metrics import MetricsCollector

# Monday
NOW = datetime(2026, 10, 19, 9, 30)


class FakeTimerService(TimerService):
    """Records timers in memory; can refuse exact timers."""

    def __init__(self, exact_allowed: bool = True):
        self.exact_allowed = exact_allowed
        self.installed: Dict[str, Tuple[int, bool, int]] = {}
        self.calls: List[Tuple[str, str]] = []
        self.fail_slots = set()

    def install_timer(self, task_id, slot_index, trigger_at_epoch_ms, exact, generation):
        if (task_id, slot_index) in self.fail_slots:
            raise RuntimeError("timer facility unavailable")
        if exact and not self.exact_allowed:
            raise ExactTimerPermissionError("exact timers not permitted")
        self.calls.append(("install", timer_id(task_id, slot_index)))
        self.installed[timer_id(task_id, slot_index)] = (trigger_at_epoch_ms, exact, generation)

    def cancel_timer(self, task_id, slot_index):
        self.calls.append(("cancel", timer_id(task_id, slot_index)))
        self.installed.pop(timer_id(task_id, slot_index), None)

    def generation_of(self, task_id: str, slot_index: int) -> int:
        return self.installed[timer_id(task_id, slot_index)][2]


class RecordingDispatcher(NotificationDispatcher):
    """Keeps every present/dismiss call."""

    def __init__(self):
        self.presented: List[Tuple[str, str, int]] = []
        self.dismissed: List[Tuple[str, int]] = []

    def present(self, task_id, title, slot_index):
        self.presented.append((task_id, title, slot_index))

    def dismiss(self, task_id, slot_index):
        self.dismissed.append((task_id, slot_index))


class InMemoryTaskStore(TaskStore):
    """Dictionary-backed TaskStore."""

    def __init__(self, tasks: Optional[List[Task]] = None):
        self.tasks: Dict[str, Task] = {task.id: task for task in tasks or []}
        self.updates: List[Task] = []

    def get_active_recurring_tasks(self):
        for task in list(self.tasks.values()):
            if task.recurrence.recurs and not task.is_completed:
                yield task

    def get_task(self, task_id):
        return self.tasks.get(task_id)

    def update_task(self, task):
        self.tasks[task.id] = task
        self.updates.append(task)
        return task

    def get_recurrences_due(self, now):
        return [
            task for task in self.tasks.values()
            if task.is_completed and task.next_occurrence_at is not None and task.next_occurrence_at <= now
        ]

    def add_task(self, task):
        self.tasks[task.id] = task
        return task


def make_task(task_id: str = "task-1", title: str = "Brush teeth", **recurrence) -> Task:
    """A daily task with the given recurrence overrides."""
    recurrence.setdefault("type", RecurrenceType.DAILY)
    return Task(id=task_id, title=title, recurrence=RecurrenceConfig(**recurrence))


@pytest.fixture
def timers():
    return FakeTimerService()


@pytest.fixture
def dispatcher():
    return RecordingDispatcher()


@pytest.fixture
def store():
    return InMemoryTaskStore()


@pytest.fixture
def metrics():
    return MetricsCollector()


@pytest.fixture
def scheduler(timers, dispatcher, store, metrics):
    return ReminderScheduler(timers, dispatcher, store, clock=lambda: NOW, lock_timeout=2, metrics=metrics)


@pytest.fixture
def engine(tmp_path):
    db_engine = create_engine(f"sqlite:///{tmp_path / 'tasks.db'}", connect_args={"check_same_thread": False})
    init_db(db_engine)
    yield db_engine
    db_engine.dispose()


@pytest.fixture
def sql_store(engine):
    return SqlTaskStore(engine)
