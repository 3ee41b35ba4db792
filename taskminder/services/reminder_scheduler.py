"""
Reminder Scheduler Service.

Keeps the timer service in step with task state: installs one timer per daily
slot, cancels them when a task completes or changes, reinstalls them after a
restart, and turns timer fires and user actions into notifications and task
updates.

Calls for the same task are serialised by a per-task lock; calls for
different tasks run in parallel. Every (re)schedule or cancellation moves the
task to a new generation. Timers carry the generation they were installed
under, and a fire from an older generation is dropped.

After a slot fires it is not rescheduled here. Completion stores the next
occurrence; the periodic due-check resets the task once that moment arrives
and schedules it again.
"""

import threading
import time
from datetime import datetime
from enum import Enum
from typing import Callable, Dict, Iterable, List, Optional, Set

from taskminder.exceptions import (
    ExactTimerPermissionError,
    TaskNotFoundError,
    TaskStoreUnavailableError,
    TimerServiceError,
)
from taskminder.models.recurrence import RecurrenceType
from taskminder.models.reminder import ReminderSlot
from taskminder.models.task import Task
from taskminder.services.notification_service import NotificationDispatcher
from taskminder.services.recurrence_resolver import RecurrenceResolver
from taskminder.services.slot_planner import plan_slots, slot_count
from taskminder.services.task_store import TaskStore
from taskminder.services.timer_service import TimerService
from taskminder.utils.locks import KeyedLock
from taskminder.utils.logger import get_logger
from taskminder.utils.metrics import MetricsCollector, metrics_collector

logger = get_logger(__name__)


class UserAction(str, Enum):
    """Actions offered on a presented reminder."""

    COMPLETE = "complete"
    SKIP = "skip"


class ReminderScheduler:
    """Drives the reminder lifecycle of recurring tasks."""

    def __init__(
        self,
        timer_service: TimerService,
        dispatcher: NotificationDispatcher,
        task_store: TaskStore,
        clock: Optional[Callable[[], datetime]] = None,
        lock_timeout: Optional[float] = None,
        metrics: Optional[MetricsCollector] = None,
    ):
        self.timer_service = timer_service
        self.dispatcher = dispatcher
        self.task_store = task_store
        self.clock = clock or datetime.now
        self.metrics = metrics or metrics_collector

        self._locks = KeyedLock(timeout=lock_timeout)
        # Ephemeral bookkeeping, rebuilt by boot recovery
        self._state_lock = threading.Lock()
        self._generations: Dict[str, int] = {}
        self._titles: Dict[str, str] = {}
        self._slot_counts: Dict[str, int] = {}
        self._delivered: Dict[str, Set[int]] = {}

    # ------------------------------------------------------------------
    # Scheduling
    # ------------------------------------------------------------------

    def schedule_task(self, task: Task, now: Optional[datetime] = None) -> List[ReminderSlot]:
        """
        Install a timer for every future slot of a task.

        Safe to call repeatedly (e.g. after every edit): existing timers are
        cancelled first. Completed tasks only get their timers cancelled.

        Args:
            task: Task snapshot
            now: Current time, defaults to the scheduler clock

        Returns:
            The slots that were installed

        Raises:
            TimerServiceError: if any slot could not be installed; the other
                slots are still installed
        """
        if task.recurrence.type == RecurrenceType.NONE:
            return []

        with self._locks.hold(task.id):
            return self._schedule_locked(task, now)

    def _schedule_locked(self, task: Task, now: Optional[datetime]) -> List[ReminderSlot]:
        """Body of ``schedule_task``; the caller holds the task lock."""
        generation = self._next_generation(task.id)
        self._cancel_slots(task)
        if task.is_completed:
            logger.info("Task completed, reminders cancelled", task_id=task.id)
            return []

        if now is None:
            now = self.clock()
        with self._state_lock:
            self._titles[task.id] = task.title

        installed = []
        failed = []
        planned = plan_slots(task.id, task.recurrence, now)
        for slot in planned:
            if slot.trigger_at <= now:
                continue
            slot = slot.model_copy(update={"generation": generation})
            if self._install(slot):
                installed.append(slot)
            else:
                failed.append(slot.slot_index)

        with self._state_lock:
            self._slot_counts[task.id] = len(planned)

        logger.info("Task scheduled", task_id=task.id, generation=generation,
                    slots=[slot.trigger_at.isoformat() for slot in installed])
        if failed:
            raise TimerServiceError(f"Failed to install reminders for {task.id}, slots {failed}")
        return installed

    def cancel_task(self, task: Task) -> None:
        """Remove every timer of a task. A no-op when none are installed."""
        with self._locks.hold(task.id):
            self._next_generation(task.id)
            self._cancel_slots(task)
        logger.debug("Task reminders cancelled", task_id=task.id)

    def on_task_deleted(self, task: Task) -> None:
        """Cancel a deleted task's timers and forget it.

        The generation counter is kept so a reused id never sees an old
        generation number again.
        """
        self.cancel_task(task)
        with self._state_lock:
            self._titles.pop(task.id, None)
            self._slot_counts.pop(task.id, None)
            self._delivered.pop(task.id, None)

    def current_generation(self, task_id: str) -> int:
        with self._state_lock:
            return self._generations.get(task_id, 0)

    def _next_generation(self, task_id: str) -> int:
        with self._state_lock:
            generation = self._generations.get(task_id, 0) + 1
            self._generations[task_id] = generation
            self._delivered.pop(task_id, None)
            return generation

    def _cancel_slots(self, task: Task) -> None:
        with self._state_lock:
            previous = self._slot_counts.pop(task.id, 0)
        # Cover both the current config and whatever was installed before an edit
        for slot_index in range(max(slot_count(task.recurrence), previous)):
            try:
                self.timer_service.cancel_timer(task.id, slot_index)
            except Exception as e:
                self.metrics.scheduler_error()
                logger.error("Failed to cancel timer", task_id=task.id,
                             slot_index=slot_index, error=str(e))

    def _install(self, slot: ReminderSlot) -> bool:
        """Install one timer, falling back to an inexact trigger when exact is refused."""
        try:
            self.timer_service.install_timer(slot.task_id, slot.slot_index, slot.trigger_at_epoch_ms,
                                             True, slot.generation)
            self.metrics.reminder_installed(exact=True)
            return True
        except ExactTimerPermissionError:
            logger.warning("Exact timer refused, using inexact timer",
                           task_id=slot.task_id, slot_index=slot.slot_index)
        except Exception as e:
            self.metrics.scheduler_error()
            logger.error("Failed to install timer", task_id=slot.task_id,
                         slot_index=slot.slot_index, error=str(e))
            return False

        try:
            self.timer_service.install_timer(slot.task_id, slot.slot_index, slot.trigger_at_epoch_ms,
                                             False, slot.generation)
            self.metrics.reminder_installed(exact=False)
            return True
        except Exception as e:
            self.metrics.scheduler_error()
            logger.error("Failed to install inexact timer", task_id=slot.task_id,
                         slot_index=slot.slot_index, error=str(e))
            return False

    # ------------------------------------------------------------------
    # Events
    # ------------------------------------------------------------------

    def on_timer_fired(self, task_id: str, slot_index: int, generation: int) -> bool:
        """
        Present the reminder for a fired slot.

        Does not touch task state and does not reschedule the slot.

        Returns:
            True if a notification was dispatched, False if the fire was stale,
            a duplicate, or could not be delivered
        """
        with self._state_lock:
            current = self._generations.get(task_id)
            if current is None or generation != current:
                stale = True
            else:
                stale = False
                delivered = self._delivered.setdefault(task_id, set())
                duplicate = slot_index in delivered
                delivered.add(slot_index)
            title = self._titles.get(task_id, "")

        if stale:
            self.metrics.stale_reminder_dropped()
            logger.info("Dropped stale timer", task_id=task_id, slot_index=slot_index,
                        generation=generation, current_generation=current)
            return False
        if duplicate:
            logger.info("Dropped duplicate timer", task_id=task_id, slot_index=slot_index,
                        generation=generation)
            return False

        try:
            self.dispatcher.present(task_id, title, slot_index)
        except Exception as e:
            self.metrics.scheduler_error()
            logger.error("Failed to present reminder", task_id=task_id,
                         slot_index=slot_index, error=str(e))
            return False

        self.metrics.reminder_fired()
        return True

    def on_task_completed(self, task: Task, completed_at: Optional[datetime] = None) -> Task:
        """
        Resolve the current instance of a task.

        Cancels its timers, works out the next occurrence and stores the
        completed task. The next cycle is scheduled by the due-check, not here.

        Raises:
            TaskStoreUnavailableError: if the completion could not be stored;
                the caller may retry
        """
        if completed_at is None:
            completed_at = self.clock()

        with self._locks.hold(task.id):
            self._next_generation(task.id)
            self._cancel_slots(task)

            next_at = RecurrenceResolver.next_occurrence(task, completed_at)
            completed = task.model_copy(update={
                "is_completed": True,
                "completed_at": completed_at,
                "next_occurrence_at": next_at,
            })
            try:
                stored = self.task_store.update_task(completed)
            except TaskStoreUnavailableError:
                logger.error("Could not store completion", task_id=task.id)
                raise
            except Exception as e:
                logger.error("Could not store completion", task_id=task.id, error=str(e))
                raise TaskStoreUnavailableError(f"Failed to store completion of {task.id}: {e}") from e

        self.metrics.task_completed()
        logger.info("Task completed", task_id=task.id,
                    next_occurrence_at=next_at.isoformat() if next_at else None)
        return stored

    def handle_action(self, task_id: str, slot_index: int, action: UserAction,
                      now: Optional[datetime] = None) -> Optional[Task]:
        """
        Handle a tap on a reminder's action.

        The notification is always dismissed first. SKIP changes nothing else;
        the task stays due for its next slot. COMPLETE completes the task.

        Returns:
            The stored task for COMPLETE, None for SKIP

        Raises:
            TaskNotFoundError: if COMPLETE names an unknown task
        """
        try:
            self.dispatcher.dismiss(task_id, slot_index)
        except Exception as e:
            logger.error("Failed to dismiss reminder", task_id=task_id,
                         slot_index=slot_index, error=str(e))

        if UserAction(action) == UserAction.SKIP:
            logger.info("Reminder skipped", task_id=task_id, slot_index=slot_index)
            return None

        task = self.task_store.get_task(task_id)
        if task is None:
            raise TaskNotFoundError(task_id)
        return self.on_task_completed(task, now)

    # ------------------------------------------------------------------
    # Recovery
    # ------------------------------------------------------------------

    def on_boot_recovery(self, tasks: Iterable[Task]) -> Dict[str, bool]:
        """
        Reinstall timers after a restart.

        Idempotent. Every recurring, uncompleted task is scheduled on its own;
        one failure does not stop the others.

        Returns:
            Mapping of task id to whether scheduling succeeded
        """
        results = {}
        for task in tasks:
            if task.recurrence.type == RecurrenceType.NONE or task.is_completed:
                continue
            try:
                self.schedule_task(task)
                results[task.id] = True
            except TimerServiceError as e:
                logger.error("Failed to recover reminders", task_id=task.id, error=str(e))
                results[task.id] = False
            except Exception as e:
                self.metrics.scheduler_error()
                logger.exception("Failed to recover reminders", task_id=task.id, error=str(e))
                results[task.id] = False

        logger.info("Boot recovery finished", recovered=sum(results.values()),
                    failed=len(results) - sum(results.values()))
        return results

    def recover_from_store(self) -> Dict[str, bool]:
        """
        Boot recovery for every active recurring task in the store.

        Raises:
            TaskStoreUnavailableError: if the store cannot be read
        """
        tasks = list(self.task_store.get_active_recurring_tasks())
        return self.on_boot_recovery(tasks)

    def run_due_check(self, now: Optional[datetime] = None) -> Dict[str, bool]:
        """
        Bring completed recurring tasks back once their next occurrence arrives.

        Each due task is re-read, reset, stored and scheduled again inside its
        task lock, so a completion racing with the check is never overwritten
        or left with live timers.

        Returns:
            Mapping of task id to whether it was reset and rescheduled

        Raises:
            TaskStoreUnavailableError: if the due tasks cannot be loaded
        """
        if now is None:
            now = self.clock()
        started = time.time()

        results = {}
        for candidate in self.task_store.get_recurrences_due(now):
            try:
                with self._locks.hold(candidate.id):
                    task = self.task_store.get_task(candidate.id)
                    if task is None or not task.is_completed or not RecurrenceResolver.is_due(task, now):
                        continue
                    reset = self.task_store.update_task(RecurrenceResolver.reset_for_next_occurrence(task))
                    self._schedule_locked(reset, now)
                results[candidate.id] = True
                self.metrics.recurrence_reset()
            except TimerServiceError as e:
                logger.error("Reset recurrence but reminders are incomplete", task_id=candidate.id, error=str(e))
                results[candidate.id] = False
            except Exception as e:
                self.metrics.scheduler_error()
                logger.exception("Failed to reset recurrence", task_id=candidate.id, error=str(e))
                results[candidate.id] = False

        self.metrics.record_timer("due_check_seconds", time.time() - started)
        if results:
            logger.info("Due check finished", reset=sum(results.values()),
                        failed=len(results) - sum(results.values()))
        return results
