"""Configuration loaded from the environment (and a local .env file)."""
import os
from dataclasses import dataclass

from dotenv import load_dotenv

# Load environment variables but prioritize local development
load_dotenv()


def _env_bool(name: str, default: bool) -> bool:
    value = os.environ.get(name)
    if value is None:
        return default
    return value.strip().lower() in ("1", "true", "yes", "on")


@dataclass(frozen=True)
class Settings:
    """Runtime settings for the reminder service."""

    database_url: str = "sqlite:///./taskminder.db"
    environment: str = "development"
    notification_backend: str = "log"  # "dapr" or "log"
    dapr_pubsub_name: str = "task-pubsub"
    reminder_topic: str = "reminders"
    exact_timers_allowed: bool = True
    exact_misfire_grace_seconds: int = 60
    due_check_interval_hours: float = 2.0
    lock_timeout_seconds: float = 5.0
    timezone: str = ""  # empty = process-local zone
    log_level: str = "INFO"

    @classmethod
    def from_env(cls) -> "Settings":
        environment = os.environ.get("ENVIRONMENT", "development")
        default_backend = "log" if environment == "development" else "dapr"
        return cls(
            database_url=os.environ.get("DATABASE_URL", cls.database_url),
            environment=environment,
            notification_backend=os.environ.get("NOTIFICATION_BACKEND", default_backend).lower(),
            dapr_pubsub_name=os.environ.get("DAPR_PUBSUB_NAME", cls.dapr_pubsub_name),
            reminder_topic=os.environ.get("REMINDER_TOPIC", cls.reminder_topic),
            exact_timers_allowed=_env_bool("EXACT_TIMERS_ALLOWED", True),
            exact_misfire_grace_seconds=int(os.environ.get("EXACT_MISFIRE_GRACE_SECONDS", "60")),
            due_check_interval_hours=float(os.environ.get("DUE_CHECK_INTERVAL_HOURS", "2")),
            lock_timeout_seconds=float(os.environ.get("LOCK_TIMEOUT_SECONDS", "5")),
            timezone=os.environ.get("TIMEZONE", ""),
            log_level=os.environ.get("LOG_LEVEL", "INFO").upper(),
        )

    @property
    def is_sqlite(self) -> bool:
        return self.database_url.startswith("sqlite")


settings = Settings.from_env()
