"""
Notification dispatch.

Presents a reminder when a timer fires and dismisses it when the user acts.
"""

import abc
from typing import Optional

from taskminder.config import settings
from taskminder.dapr.client import DaprEventPublisher
from taskminder.exceptions import NotificationDispatchError
from taskminder.utils.logger import get_logger

logger = get_logger(__name__)


def notification_id(task_id: str, slot_index: int) -> int:
    """Stable non-negative 31-bit id for a task's slot, for channels that need ints."""
    value = 0
    for char in f"{task_id}{slot_index}":
        value = (31 * value + ord(char)) & 0xFFFFFFFF
    return value & 0x7FFFFFFF


class NotificationDispatcher(abc.ABC):
    """Delivers reminders to the user."""

    @abc.abstractmethod
    def present(self, task_id: str, title: str, slot_index: int) -> None:
        """Show the reminder for one slot of a task."""

    @abc.abstractmethod
    def dismiss(self, task_id: str, slot_index: int) -> None:
        """Remove the reminder for one slot of a task."""


class LoggingNotificationDispatcher(NotificationDispatcher):
    """Development dispatcher: logs reminders instead of sending them."""

    def present(self, task_id: str, title: str, slot_index: int) -> None:
        logger.info(
            f"NOTIFICATION: Reminder: Task '{title}' is due",
            task_id=task_id,
            slot_index=slot_index,
            notification_id=notification_id(task_id, slot_index),
        )

    def dismiss(self, task_id: str, slot_index: int) -> None:
        logger.info("Notification dismissed", task_id=task_id, slot_index=slot_index)


class DaprNotificationDispatcher(NotificationDispatcher):
    """Publishes reminder events for the notification consumers to deliver."""

    def __init__(self, publisher: Optional[DaprEventPublisher] = None, topic: Optional[str] = None):
        self.publisher = publisher or DaprEventPublisher()
        self.topic = topic or settings.reminder_topic

    def present(self, task_id: str, title: str, slot_index: int) -> None:
        self._publish("reminder.present", {
            "task_id": task_id,
            "title": title,
            "slot_index": slot_index,
            "notification_id": notification_id(task_id, slot_index),
        })

    def dismiss(self, task_id: str, slot_index: int) -> None:
        self._publish("reminder.dismiss", {
            "task_id": task_id,
            "slot_index": slot_index,
            "notification_id": notification_id(task_id, slot_index),
        })

    def _publish(self, event_type: str, data: dict) -> None:
        try:
            self.publisher.publish_event(self.topic, event_type, data)
        except Exception as e:
            raise NotificationDispatchError(f"Failed to publish {event_type}: {e}") from e


def build_dispatcher(backend: Optional[str] = None) -> NotificationDispatcher:
    """Dispatcher for the configured backend ("dapr" or "log")."""
    backend = (backend or settings.notification_backend).lower()
    if backend == "dapr":
        return DaprNotificationDispatcher()
    if backend != "log":
        logger.warning("Unknown notification backend, logging instead", backend=backend)
    return LoggingNotificationDispatcher()
