"""
Custom exception classes for the reminder core.

Configuration problems are normalised, never raised; everything here is a
failure of a collaborator or of a bounded wait.
"""


class TaskminderError(Exception):
    """Base exception for reminder scheduling errors."""

    pass


class TaskStoreUnavailableError(TaskminderError):
    """Raised when the task store cannot be read or written. Retryable."""

    pass


class TaskNotFoundError(TaskminderError):
    """Raised when an action references a task the store does not know."""

    def __init__(self, task_id: str):
        self.task_id = task_id
        super().__init__(f"Task {task_id} not found")


class TimerServiceError(TaskminderError):
    """Raised when the timer service refuses to install or cancel a timer."""

    pass


class ExactTimerPermissionError(TimerServiceError):
    """Raised when a precise trigger time is not permitted."""

    pass


class NotificationDispatchError(TaskminderError):
    """Raised when a reminder cannot be presented or dismissed."""

    pass


class SchedulerBusyError(TaskminderError):
    """Raised when a per-task critical section could not be entered in time."""

    def __init__(self, task_id: str, timeout: float):
        self.task_id = task_id
        self.timeout = timeout
        super().__init__(f"Task {task_id} is busy (waited {timeout}s)")
