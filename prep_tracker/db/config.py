"""Database configuration."""
from typing import Generator

from sqlalchemy import event
from sqlalchemy.engine import Engine
from sqlmodel import Session, create_engine

from prep_tracker.config import DATABASE_URL
from prep_tracker.utils.logger import get_logger

logger = get_logger(__name__)


def create_db_engine(database_url: str = DATABASE_URL) -> Engine:
    """
    Create a SQLModel engine for ``database_url``.

    SQLite connections get foreign keys and WAL mode enabled, and a generous
    busy timeout so concurrent writers wait for the lock instead of failing.
    """
    is_sqlite = database_url.startswith("sqlite")
    connect_args = {"check_same_thread": False, "timeout": 30} if is_sqlite else {}

    db_engine = create_engine(database_url, echo=False, connect_args=connect_args)

    if is_sqlite:
        @event.listens_for(db_engine, "connect")
        def set_sqlite_pragma(dbapi_connection, connection_record):
            cursor = dbapi_connection.cursor()
            cursor.execute("PRAGMA foreign_keys=ON")
            cursor.execute("PRAGMA journal_mode=WAL")
            cursor.close()

    logger.info("Database engine created", dialect=db_engine.dialect.name)
    return db_engine


engine = create_db_engine()


def get_session() -> Generator[Session, None, None]:
    """Dependency for getting database sessions."""
    with Session(engine) as session:
        yield session
