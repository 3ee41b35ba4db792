"""Main FastAPI application for the reminder service."""
from contextlib import asynccontextmanager
from datetime import datetime
from typing import Callable, Optional

from apscheduler.schedulers.background import BackgroundScheduler
from apscheduler.schedulers.base import BaseScheduler
from apscheduler.triggers.interval import IntervalTrigger
from fastapi import FastAPI, Request
from sqlalchemy.engine import Engine

from taskminder import __version__
from taskminder.config import settings
from taskminder.db.config import build_engine, init_db
from taskminder.exceptions import TaskStoreUnavailableError
from taskminder.routers import reminders_router
from taskminder.services.notification_service import NotificationDispatcher, build_dispatcher
from taskminder.services.reminder_scheduler import ReminderScheduler
from taskminder.services.task_store import SqlTaskStore
from taskminder.services.timer_service import ApschedulerTimerService
from taskminder.utils.logger import get_logger
from taskminder.utils.timeutils import resolve_timezone

logger = get_logger(__name__)

DUE_CHECK_JOB_ID = "due_check"


def build_background_scheduler() -> BackgroundScheduler:
    """APScheduler instance on the configured zone (process-local by default)."""
    timezone = resolve_timezone(settings.timezone)
    if timezone is None:
        return BackgroundScheduler()
    return BackgroundScheduler(timezone=timezone)


def create_app(
    engine: Optional[Engine] = None,
    dispatcher: Optional[NotificationDispatcher] = None,
    background_scheduler: Optional[BaseScheduler] = None,
    clock: Optional[Callable[[], datetime]] = None,
) -> FastAPI:
    """Build the application; collaborators may be injected for tests."""

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        db_engine = engine or build_engine()
        init_db(db_engine)

        timers = background_scheduler or build_background_scheduler()
        timer_service = ApschedulerTimerService(
            timers,
            exact_allowed=settings.exact_timers_allowed,
            exact_grace_seconds=settings.exact_misfire_grace_seconds,
        )
        task_store = SqlTaskStore(db_engine)
        scheduler = ReminderScheduler(
            timer_service,
            dispatcher or build_dispatcher(),
            task_store,
            clock=clock,
            lock_timeout=settings.lock_timeout_seconds,
        )
        timer_service.set_fire_handler(scheduler.on_timer_fired)

        timers.add_job(
            scheduler.run_due_check,
            trigger=IntervalTrigger(hours=settings.due_check_interval_hours),
            id=DUE_CHECK_JOB_ID,
            name="Reset recurring tasks whose next occurrence is due",
            replace_existing=True,
        )
        timers.start()

        app.state.scheduler = scheduler
        app.state.timer_service = timer_service

        # Timers do not survive a restart
        try:
            scheduler.recover_from_store()
        except TaskStoreUnavailableError as e:
            logger.error("Boot recovery failed, reminders not restored", error=str(e))

        logger.info("Application startup complete", version=__version__)
        try:
            yield
        finally:
            timers.shutdown(wait=False)
            logger.info("Application shut down")

    app = FastAPI(
        title="taskminder",
        description="Reminder scheduling for recurring tasks",
        version=__version__,
        lifespan=lifespan,
    )
    app.include_router(reminders_router)

    @app.get("/health")
    async def health_check():
        """Health check endpoint."""
        return {"status": "healthy", "version": __version__}

    @app.get("/metrics")
    async def get_metrics(request: Request):
        """Reminder counters and timings."""
        return request.app.state.scheduler.metrics.get_metrics()

    return app


app = create_app()


if __name__ == "__main__":
    import uvicorn

    uvicorn.run("taskminder.main:app", host="0.0.0.0", port=8000, reload=settings.environment == "development")
