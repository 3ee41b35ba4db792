"""
Tests for the SQLModel task store.
"""

from datetime import datetime
from unittest.mock import patch

import pytest
from sqlalchemy.exc import OperationalError

from conftest import NOW, make_task
from taskminder.exceptions import TaskStoreUnavailableError
from taskminder.models.recurrence import MissedBehaviour, RecurrenceType, Weekday
from taskminder.models.task import Task


def test_add_and_get_round_trips_recurrence(sql_store):
    task = make_task(
        type=RecurrenceType.CUSTOM_DAYS,
        days_of_week=[Weekday.FRIDAY, Weekday.MONDAY],
        missed_behaviour=MissedBehaviour.PERSISTENT,
        preferred_time_of_day_minutes=450,
        daily_slot_minutes=[450, 1200],
    )

    sql_store.add_task(task)
    loaded = sql_store.get_task(task.id)

    assert loaded == task
    assert loaded.recurrence.days_of_week == [Weekday.MONDAY, Weekday.FRIDAY]


def test_get_unknown_task_returns_none(sql_store):
    assert sql_store.get_task("missing") is None


def test_update_overwrites_existing_record(sql_store):
    task = sql_store.add_task(make_task())
    done = task.model_copy(update={
        "is_completed": True,
        "completed_at": NOW,
        "next_occurrence_at": datetime(2026, 10, 20, 9, 30),
    })

    stored = sql_store.update_task(done)

    assert stored == done
    assert sql_store.get_task(task.id).is_completed is True


def test_update_inserts_unknown_task(sql_store):
    task = make_task("fresh")
    sql_store.update_task(task)
    assert sql_store.get_task("fresh") == task


def test_active_recurring_tasks_skip_completed_and_one_off(sql_store):
    sql_store.add_task(make_task("daily"))
    sql_store.add_task(make_task("done").model_copy(update={"is_completed": True}))
    sql_store.add_task(Task(id="once", title="Post letter"))

    ids = {task.id for task in sql_store.get_active_recurring_tasks()}

    assert ids == {"daily"}


def test_recurrences_due_uses_next_occurrence(sql_store):
    for task_id, next_at in [("due", datetime(2026, 10, 19, 8, 0)),
                             ("later", datetime(2026, 10, 20, 8, 0))]:
        sql_store.add_task(make_task(task_id).model_copy(update={
            "is_completed": True,
            "next_occurrence_at": next_at,
        }))
    sql_store.add_task(make_task("open"))

    due = sql_store.get_recurrences_due(NOW)

    assert [task.id for task in due] == ["due"]


def test_database_errors_become_store_unavailable(sql_store):
    with patch("taskminder.services.task_store.Session") as session_cls:
        session_cls.return_value.__enter__.side_effect = OperationalError(
            "SELECT", {}, Exception("database is locked"))

        with pytest.raises(TaskStoreUnavailableError):
            sql_store.get_task("task-1")
        with pytest.raises(TaskStoreUnavailableError):
            sql_store.update_task(make_task())
        with pytest.raises(TaskStoreUnavailableError):
            list(sql_store.get_active_recurring_tasks())
