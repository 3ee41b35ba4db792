"""
Unit tests for next-occurrence and due-state arithmetic.
"""

from datetime import datetime, timedelta

import pytest
import pytz

from conftest import NOW, make_task
from taskminder.models.recurrence import MissedBehaviour, RecurrenceConfig, RecurrenceType, Weekday
from taskminder.models.task import Task
from taskminder.services.recurrence_resolver import RecurrenceResolver, add_months, days_until_next_weekday

MON, WED, FRI = Weekday.MONDAY, Weekday.WEDNESDAY, Weekday.FRIDAY


@pytest.mark.parametrize("task", [
    Task(id="a", title="Once"),
    Task(id="b", title="Once", is_completed=True),
    Task(id="c", title="Once", is_completed=True, next_occurrence_at=NOW - timedelta(days=1)),
    Task(id="d", title="Once", next_occurrence_at=NOW + timedelta(days=1)),
])
def test_non_recurring_task_is_never_due_and_never_recurs(task):
    assert RecurrenceResolver.is_due(task, NOW) is False
    assert RecurrenceResolver.next_occurrence(task, NOW) is None


def test_is_due_without_pending_occurrence_follows_completion():
    task = make_task()
    assert RecurrenceResolver.is_due(task, NOW) is True
    done = task.model_copy(update={"is_completed": True, "completed_at": NOW})
    assert RecurrenceResolver.is_due(done, NOW) is False


def test_is_due_once_next_occurrence_is_reached():
    task = make_task().model_copy(update={
        "is_completed": True,
        "next_occurrence_at": datetime(2026, 10, 20, 8, 0),
    })
    assert RecurrenceResolver.is_due(task, datetime(2026, 10, 20, 7, 59)) is False
    assert RecurrenceResolver.is_due(task, datetime(2026, 10, 20, 8, 0)) is True


def test_ignorable_daily_returns_to_preferred_time():
    """Completed late at night, the next reminder is still tomorrow morning."""
    task = make_task(preferred_time_of_day_minutes=8 * 60)
    completed_at = datetime(2026, 10, 19, 23, 0)

    assert RecurrenceResolver.next_occurrence(task, completed_at) == datetime(2026, 10, 20, 8, 0)


def test_ignorable_without_preferred_time_keeps_completion_time():
    task = make_task()
    completed_at = datetime(2026, 10, 19, 23, 17, 45)

    assert RecurrenceResolver.next_occurrence(task, completed_at) == datetime(2026, 10, 20, 23, 17, 45)


def test_persistent_weekly_recurs_from_actual_completion():
    """Due on Sunday, done on Wednesday: next is the following Wednesday."""
    task = make_task(
        type=RecurrenceType.WEEKLY,
        missed_behaviour=MissedBehaviour.PERSISTENT,
    ).model_copy(update={"due_date": datetime(2026, 10, 18, 10, 0)})
    completed_at = datetime(2026, 10, 21, 14, 0)

    next_at = RecurrenceResolver.next_occurrence(task, completed_at)

    assert next_at == datetime(2026, 10, 28, 14, 0)
    assert next_at != datetime(2026, 10, 25, 10, 0)


def test_daily_interval_advances_by_n_days():
    task = make_task(interval=3, preferred_time_of_day_minutes=9 * 60 + 15)
    assert RecurrenceResolver.next_occurrence(task, NOW) == datetime(2026, 10, 22, 9, 15)


def test_monthly_clamps_to_month_length():
    task = make_task(type=RecurrenceType.MONTHLY)
    assert RecurrenceResolver.next_occurrence(task, datetime(2026, 1, 31, 10, 0)) == datetime(2026, 2, 28, 10, 0)


def test_add_months_crosses_years():
    assert add_months(datetime(2026, 3, 15, 6, 0), 13) == datetime(2027, 4, 15, 6, 0)
    assert add_months(datetime(2028, 1, 31), 1) == datetime(2028, 2, 29)


def test_custom_days_wraps_to_next_week():
    """Mon/Wed/Fri completed on Friday lands on Monday."""
    task = make_task(type=RecurrenceType.CUSTOM_DAYS, days_of_week=[MON, WED, FRI],
                     preferred_time_of_day_minutes=7 * 60)
    friday = datetime(2026, 10, 23, 18, 0)

    next_at = RecurrenceResolver.next_occurrence(task, friday)

    assert next_at == datetime(2026, 10, 26, 7, 0)
    assert next_at.isoweekday() == Weekday.MONDAY


def test_custom_days_picks_next_later_day_in_week():
    task = make_task(type=RecurrenceType.CUSTOM_DAYS, days_of_week=[FRI, MON, WED])
    wednesday = datetime(2026, 10, 21, 12, 0)

    assert RecurrenceResolver.next_occurrence(task, wednesday) == datetime(2026, 10, 23, 12, 0)


@pytest.mark.parametrize("behaviour", list(MissedBehaviour))
def test_custom_days_completed_on_listed_day_moves_to_next_listed_day(behaviour):
    task = make_task(type=RecurrenceType.CUSTOM_DAYS, days_of_week=[MON], missed_behaviour=behaviour)
    monday = datetime(2026, 10, 19, 8, 0)

    assert RecurrenceResolver.next_occurrence(task, monday) == datetime(2026, 10, 26, 8, 0)


def test_days_until_next_weekday_is_always_within_a_week():
    for today in range(1, 8):
        for days in ([1], [7], [1, 3, 5], list(range(1, 8))):
            assert 1 <= days_until_next_weekday(today, days) <= 7
    assert days_until_next_weekday(7, [1]) == 1


def test_custom_days_without_days_does_not_recur():
    task = make_task(type=RecurrenceType.CUSTOM_DAYS, days_of_week=[])
    assert RecurrenceResolver.next_occurrence(task, NOW) is None


def test_non_positive_interval_is_treated_as_one():
    unchecked = RecurrenceConfig.model_construct(type=RecurrenceType.DAILY, interval=-2)
    task = Task(id="t", title="Water plants", recurrence=unchecked)

    assert RecurrenceResolver.next_occurrence(task, NOW) == NOW + timedelta(days=1)


def test_preferred_time_crosses_dst_change():
    london = pytz.timezone("Europe/London")
    task = make_task(preferred_time_of_day_minutes=8 * 60)
    completed_at = london.localize(datetime(2026, 10, 24, 23, 0))  # BST

    next_at = RecurrenceResolver.next_occurrence(task, completed_at)

    assert next_at.replace(tzinfo=None) == datetime(2026, 10, 25, 8, 0)
    assert next_at.utcoffset() == timedelta(0)  # GMT again


def test_reset_for_next_occurrence_clears_completion():
    task = make_task().model_copy(update={
        "is_completed": True,
        "completed_at": NOW,
        "next_occurrence_at": NOW + timedelta(days=1),
    })

    reset = RecurrenceResolver.reset_for_next_occurrence(task)

    assert reset.is_completed is False
    assert reset.completed_at is None
    assert reset.next_occurrence_at is None
    assert reset.title == task.title
    assert task.is_completed is True


@pytest.mark.parametrize("config, expected", [
    (RecurrenceConfig(), "Once"),
    (RecurrenceConfig(type=RecurrenceType.DAILY), "Daily"),
    (RecurrenceConfig(type=RecurrenceType.MONTHLY, interval=3), "Monthly (every 3)"),
    (RecurrenceConfig(type=RecurrenceType.WEEKLY, interval=2, missed_behaviour=MissedBehaviour.PERSISTENT),
     "Weekly (every 2) ↩ persistent"),
    (RecurrenceConfig(type=RecurrenceType.CUSTOM_DAYS, days_of_week=[FRI, MON, WED]), "Mon, Wed, Fri"),
])
def test_describe(config, expected):
    assert RecurrenceResolver.describe(config) == expected
