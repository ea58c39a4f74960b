from datetime import date

import pytest
from sqlmodel import Session

from prep_tracker.db.config import create_db_engine
from prep_tracker.db.init import init_db
from prep_tracker.models.occurrence import Occurrence
from prep_tracker.services.materializer import InstanceMaterializer
from prep_tracker.services.question_service import QuestionService
from prep_tracker.services.task_service import TaskService

USER = "user-1"
OTHER_USER = "user-2"
MONDAY = date(2025, 1, 6)


@pytest.fixture
def engine(tmp_path):
    """Fresh SQLite database file with the schema created."""
    db_engine = create_db_engine(f"sqlite:///{tmp_path / 'test_prep.db'}")
    init_db(db_engine)
    yield db_engine
    db_engine.dispose()


@pytest.fixture
def session(engine):
    with Session(engine) as db_session:
        yield db_session


@pytest.fixture
def task_service(session):
    return TaskService(session)


@pytest.fixture
def materializer(session):
    return InstanceMaterializer(session)


@pytest.fixture
def question_service(session):
    return QuestionService(session)


@pytest.fixture
def daily_task(task_service):
    """Daily DSA task starting on Monday 2025-01-06 with a target of one question."""
    return task_service.create(
        USER,
        name="Daily DSA",
        category="dsa",
        target_question_count=1,
        is_recurring=True,
        recurrence={"frequency": "daily", "start_date": MONDAY},
    )


def reload_occurrence(session, occurrence_id):
    """Read an occurrence straight from the database."""
    return session.get(Occurrence, occurrence_id, populate_existing=True)
