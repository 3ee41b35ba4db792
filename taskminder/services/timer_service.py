"""
Timer service.

Installs one-shot timers for reminder slots. The APScheduler implementation
keeps one ``DateTrigger`` job per (task, slot) so reinstalling a slot replaces
its previous timer.
"""

import abc
from datetime import datetime
from typing import Callable, Optional, Set

import pytz
from apscheduler.jobstores.base import JobLookupError
from apscheduler.schedulers.base import BaseScheduler
from apscheduler.triggers.date import DateTrigger

from taskminder.exceptions import ExactTimerPermissionError, TimerServiceError
from taskminder.utils.logger import get_logger

logger = get_logger(__name__)

FireHandler = Callable[[str, int, int], object]


def timer_id(task_id: str, slot_index: int) -> str:
    return f"{task_id}:{slot_index}"


class TimerService(abc.ABC):
    """Platform facility that fires a callback at a point in time."""

    @abc.abstractmethod
    def install_timer(self, task_id: str, slot_index: int, trigger_at_epoch_ms: int,
                      exact: bool, generation: int) -> None:
        """
        Install (or replace) the timer for one slot.

        Raises:
            ExactTimerPermissionError: if ``exact`` is requested but not permitted
            TimerServiceError: if the timer cannot be installed at all
        """

    @abc.abstractmethod
    def cancel_timer(self, task_id: str, slot_index: int) -> None:
        """Remove the timer for one slot. A missing timer is not an error."""


class ApschedulerTimerService(TimerService):
    """TimerService on top of an APScheduler scheduler."""

    def __init__(
        self,
        scheduler: BaseScheduler,
        on_fire: Optional[FireHandler] = None,
        exact_allowed: bool = True,
        exact_grace_seconds: int = 60,
    ):
        self.scheduler = scheduler
        self.exact_allowed = exact_allowed
        self.exact_grace_seconds = exact_grace_seconds
        self._on_fire = on_fire

    def set_fire_handler(self, on_fire: FireHandler) -> None:
        self._on_fire = on_fire

    def install_timer(self, task_id: str, slot_index: int, trigger_at_epoch_ms: int,
                      exact: bool, generation: int) -> None:
        if exact and not self.exact_allowed:
            raise ExactTimerPermissionError("Exact timers are not permitted")

        run_date = datetime.fromtimestamp(trigger_at_epoch_ms / 1000, tz=pytz.utc)
        try:
            self.scheduler.add_job(
                self._fire,
                trigger=DateTrigger(run_date=run_date),
                args=[task_id, slot_index, generation],
                id=timer_id(task_id, slot_index),
                name=f"Reminder {task_id} slot {slot_index}",
                replace_existing=True,
                # Inexact timers may run late rather than never
                misfire_grace_time=self.exact_grace_seconds if exact else None,
                coalesce=True,
            )
        except Exception as e:
            raise TimerServiceError(f"Failed to install timer {timer_id(task_id, slot_index)}: {e}") from e

        logger.debug("Timer installed", task_id=task_id, slot_index=slot_index,
                     run_date=run_date.isoformat(), exact=exact, generation=generation)

    def cancel_timer(self, task_id: str, slot_index: int) -> None:
        try:
            self.scheduler.remove_job(timer_id(task_id, slot_index))
        except JobLookupError:
            pass

    def installed_timer_ids(self) -> Set[str]:
        """Ids of every pending reminder timer."""
        return {job.id for job in self.scheduler.get_jobs() if ":" in job.id}

    def _fire(self, task_id: str, slot_index: int, generation: int) -> None:
        if self._on_fire is None:
            logger.warning("Timer fired with no handler", task_id=task_id, slot_index=slot_index)
            return
        self._on_fire(task_id, slot_index, generation)
