from datetime import datetime

import pytest
from sqlalchemy import DateTime
from sqlmodel import Session

from prep_tracker.models.occurrence import Occurrence
from prep_tracker.models.question import Question
from prep_tracker.models.task import Task

from conftest import MONDAY, USER


@pytest.mark.parametrize(
    "model, column",
    [
        (Task, "start_date"),
        (Task, "end_date"),
        (Task, "created_at"),
        (Occurrence, "date"),
        (Occurrence, "updated_at"),
        (Question, "solved_at"),
        (Question, "next_review_at"),
        (Question, "last_reviewed_at"),
        (Question, "deleted_at"),
        (Question, "created_at"),
    ],
)
def test_timestamp_columns_store_naive_datetimes(model, column):
    column_type = model.__table__.c[column].type
    assert isinstance(column_type, DateTime)
    assert column_type.timezone is False


def test_deleted_at_is_indexed():
    assert Question.__table__.c.deleted_at.index is True


def test_naive_utc_values_round_trip(engine, daily_task, materializer, question_service):
    occurrence = materializer.resolve_day(USER, MONDAY).occurrences[0].occurrence
    question = question_service.create(USER, occurrence.id, title="Two Sum")
    solved_at = datetime(2025, 1, 6, 9, 30, 15, 123456)
    question_service.solve(USER, question.id, now=solved_at)

    with Session(engine) as fresh:
        stored = fresh.get(Question, question.id)
        assert stored.solved_at == solved_at
        assert stored.solved_at.tzinfo is None
        assert stored.next_review_at == datetime(2025, 1, 7, 9, 30, 15, 123456)
        assert stored.created_at.tzinfo is None

        stored_occurrence = fresh.get(Occurrence, occurrence.id)
        # Monday 00:00 in Asia/Kolkata is Sunday 18:30 UTC
        assert stored_occurrence.date == datetime(2025, 1, 5, 18, 30)
        assert stored_occurrence.date.tzinfo is None

        stored_task = fresh.get(Task, daily_task.id)
        assert stored_task.start_date.tzinfo is None


def test_aware_input_is_stored_as_naive_utc(engine, daily_task, materializer, question_service):
    occurrence = materializer.resolve_day(USER, MONDAY).occurrences[0].occurrence
    question = question_service.create(USER, occurrence.id, title="Two Sum")
    aware = datetime.fromisoformat("2025-01-06T15:00:00+05:30")
    question_service.solve(USER, question.id, now=aware)

    with Session(engine) as fresh:
        assert fresh.get(Question, question.id).solved_at == datetime(2025, 1, 6, 9, 30)
