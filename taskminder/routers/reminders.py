"""Reminder router: task edits, reminder actions and recovery triggers."""
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Request, status

from taskminder.exceptions import (
    SchedulerBusyError,
    TaskNotFoundError,
    TaskStoreUnavailableError,
    TimerServiceError,
)
from taskminder.models.task import Task
from taskminder.schemas.task import (
    BatchResult,
    RecurrenceResponse,
    ReminderAction,
    SlotResponse,
    TaskCreate,
    TaskResponse,
    TaskUpdate,
)
from taskminder.services.recurrence_resolver import RecurrenceResolver
from taskminder.services.reminder_scheduler import ReminderScheduler, UserAction
from taskminder.services.slot_planner import plan_slots

router = APIRouter(tags=["Reminders"])


def get_scheduler(request: Request) -> ReminderScheduler:
    """Dependency for the application's ReminderScheduler."""
    return request.app.state.scheduler


def _to_response(task: Task) -> TaskResponse:
    return TaskResponse.from_task(task, RecurrenceResolver.describe(task.recurrence))


def _load_task(scheduler: ReminderScheduler, task_id: str) -> Task:
    task = _call(scheduler.task_store.get_task, task_id)
    if task is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Task not found")
    return task


def _call(call, *args):
    """Run a store-touching scheduler call, mapping core errors to HTTP errors."""
    try:
        return call(*args)
    except TaskNotFoundError:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Task not found")
    except TaskStoreUnavailableError as e:
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail=str(e))
    except SchedulerBusyError as e:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(e))
    except TimerServiceError as e:
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail=str(e))


@router.post("/tasks", response_model=TaskResponse, status_code=status.HTTP_201_CREATED)
def create_task(task_data: TaskCreate, scheduler: ReminderScheduler = Depends(get_scheduler)):
    """Create a task and install its reminders."""
    task = Task(title=task_data.title, due_date=task_data.due_date, recurrence=task_data.recurrence)
    stored = _call(scheduler.task_store.add_task, task)
    _call(scheduler.schedule_task, stored)
    return _to_response(stored)


@router.get("/tasks/{task_id}", response_model=TaskResponse)
def get_task(task_id: str, scheduler: ReminderScheduler = Depends(get_scheduler)):
    """Get a specific task by ID."""
    return _to_response(_load_task(scheduler, task_id))


@router.put("/tasks/{task_id}", response_model=TaskResponse)
def update_task(task_id: str, task_data: TaskUpdate, scheduler: ReminderScheduler = Depends(get_scheduler)):
    """Edit a task and reschedule its reminders."""
    task = _load_task(scheduler, task_id)
    changes = task_data.model_dump(exclude_unset=True)
    if "recurrence" in changes:
        changes["recurrence"] = task_data.recurrence
    stored = _call(scheduler.task_store.update_task, task.model_copy(update=changes))
    _call(scheduler.schedule_task, stored)
    return _to_response(stored)


@router.post("/tasks/{task_id}/complete", response_model=TaskResponse)
def complete_task(task_id: str, action: Optional[ReminderAction] = None,
                  scheduler: ReminderScheduler = Depends(get_scheduler)):
    """Mark the current instance done and store when it next recurs."""
    action = action or ReminderAction()
    task = _call(scheduler.handle_action, task_id, action.slot_index,
                 UserAction.COMPLETE, action.completed_at)
    return _to_response(task)


@router.post("/tasks/{task_id}/skip")
def skip_reminder(task_id: str, action: Optional[ReminderAction] = None,
                  scheduler: ReminderScheduler = Depends(get_scheduler)):
    """Dismiss a reminder; the task stays due for its next slot."""
    action = action or ReminderAction()
    scheduler.handle_action(task_id, action.slot_index, UserAction.SKIP)
    return {"status": "skipped", "task_id": task_id, "slot_index": action.slot_index}


@router.get("/tasks/{task_id}/recurrence", response_model=RecurrenceResponse)
def describe_recurrence(task_id: str, scheduler: ReminderScheduler = Depends(get_scheduler)):
    """Summary of a task's recurrence with its today-forward reminder plan."""
    task = _load_task(scheduler, task_id)
    now = scheduler.clock()
    slots = plan_slots(task.id, task.recurrence, now) if task.recurrence.recurs else []
    return RecurrenceResponse(
        task_id=task.id,
        description=RecurrenceResolver.describe(task.recurrence),
        is_due=RecurrenceResolver.is_due(task, now),
        slots=[SlotResponse(slot_index=s.slot_index, trigger_at=s.trigger_at,
                            trigger_at_epoch_ms=s.trigger_at_epoch_ms) for s in slots],
    )


@router.post("/reminders/recover", response_model=BatchResult)
def recover_reminders(scheduler: ReminderScheduler = Depends(get_scheduler)):
    """Reinstall timers for every active recurring task."""
    return BatchResult.from_results(_call(scheduler.recover_from_store))


@router.post("/reminders/due-check", response_model=BatchResult)
def run_due_check(scheduler: ReminderScheduler = Depends(get_scheduler)):
    """Reset and reschedule completed tasks whose next occurrence has arrived."""
    return BatchResult.from_results(_call(scheduler.run_due_check))
