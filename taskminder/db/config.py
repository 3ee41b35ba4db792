"""Database configuration for the reminder service."""
from typing import Optional

from sqlalchemy import event
from sqlalchemy.engine import Engine
from sqlmodel import SQLModel, create_engine

from taskminder.config import settings
from taskminder.utils.logger import get_logger

logger = get_logger(__name__)


def build_engine(database_url: Optional[str] = None) -> Engine:
    """Create a SQLModel engine, with SQLite pragmas when applicable."""
    database_url = database_url or settings.database_url

    if not database_url.startswith("sqlite"):
        logger.info("Using PostgreSQL database")
        return create_engine(database_url, echo=False, pool_pre_ping=True)

    logger.info("Using SQLite database", database_url=database_url)
    engine = create_engine(database_url, echo=False, connect_args={"check_same_thread": False})

    @event.listens_for(engine, "connect")
    def set_sqlite_pragma(dbapi_connection, connection_record):
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.execute("PRAGMA journal_mode=WAL")
        cursor.close()

    return engine


def init_db(engine: Engine) -> None:
    """Create all tables in the database."""
    # Registers TaskRecord on the metadata
    from taskminder.models.task import TaskRecord  # noqa: F401

    SQLModel.metadata.create_all(engine)
    logger.info("Tables created")
