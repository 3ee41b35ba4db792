"""
Metrics Collection for the reminder scheduler.

Counts timer installs, fallbacks, fires and dropped stale events.
"""

import threading
from collections import defaultdict
from datetime import datetime
from typing import Any, Dict


class MetricsCollector:
    """Collects and manages reminder metrics."""

    def __init__(self):
        """Initialize metrics collector."""
        self.metrics = defaultdict(int)
        self.timers = defaultdict(float)
        self.lock = threading.Lock()

        # Initialize counters
        self.metrics["reminders_installed_total"] = 0
        self.metrics["reminders_inexact_fallback_total"] = 0
        self.metrics["reminders_fired_total"] = 0
        self.metrics["reminders_stale_dropped_total"] = 0
        self.metrics["tasks_completed_total"] = 0
        self.metrics["recurrences_reset_total"] = 0
        self.metrics["scheduler_errors_total"] = 0

    def increment_counter(self, metric_name: str, value: int = 1):
        """Increment a counter metric."""
        with self.lock:
            self.metrics[metric_name] += value

    def record_timer(self, metric_name: str, duration: float):
        """Record a timing metric."""
        with self.lock:
            self.timers[metric_name] += duration

    def get_metrics(self) -> Dict[str, Any]:
        """Get current metrics values."""
        with self.lock:
            return {
                "counters": dict(self.metrics),
                "timers": dict(self.timers),
                "timestamp": datetime.utcnow().isoformat(),
            }

    def reminder_installed(self, exact: bool = True):
        self.increment_counter("reminders_installed_total")
        if not exact:
            self.increment_counter("reminders_inexact_fallback_total")

    def reminder_fired(self):
        self.increment_counter("reminders_fired_total")

    def stale_reminder_dropped(self):
        self.increment_counter("reminders_stale_dropped_total")

    def task_completed(self):
        self.increment_counter("tasks_completed_total")

    def recurrence_reset(self):
        self.increment_counter("recurrences_reset_total")

    def scheduler_error(self):
        self.increment_counter("scheduler_errors_total")


# Global metrics instance
metrics_collector = MetricsCollector()
