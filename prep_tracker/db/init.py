"""Initialize database tables."""
from sqlalchemy.engine import Engine
from sqlmodel import SQLModel

# Imported for table registration on SQLModel.metadata
from prep_tracker.models import Occurrence, Question, Task  # noqa: F401
from prep_tracker.utils.logger import get_logger

logger = get_logger(__name__)


def init_db(db_engine: Engine | None = None) -> None:
    """Create all tables in the database."""
    if db_engine is None:
        from prep_tracker.db.config import engine as db_engine

    SQLModel.metadata.create_all(db_engine)
    logger.info("Tables created", tables=sorted(SQLModel.metadata.tables))


if __name__ == "__main__":
    init_db()
