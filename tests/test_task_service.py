from datetime import date, datetime

import pytest
from sqlmodel import select

from prep_tracker.errors import InvalidStateError, NotFoundError
from prep_tracker.models.occurrence import Occurrence
from prep_tracker.models.question import Question

from conftest import MONDAY, OTHER_USER, USER


def test_create_recurring_task(daily_task):
    assert daily_task.id is not None
    assert daily_task.frequency == "daily"
    assert daily_task.start_date == datetime(2025, 1, 5, 18, 30)
    assert daily_task.status == "active"


def test_recurring_task_needs_frequency_and_start(task_service):
    with pytest.raises(InvalidStateError):
        task_service.create(USER, name="Broken", category="dsa", target_question_count=1, is_recurring=True)
    with pytest.raises(InvalidStateError):
        task_service.create(
            USER,
            name="Broken",
            category="dsa",
            target_question_count=1,
            is_recurring=True,
            recurrence={"frequency": "fortnightly", "start_date": MONDAY},
        )


def test_weekly_days_are_normalized(task_service):
    task = task_service.create(
        USER,
        name="Weekly design",
        category="system_design",
        target_question_count=2,
        is_recurring=True,
        recurrence={"frequency": "weekly", "days_of_week": [3, 1, 3], "start_date": MONDAY},
    )
    assert task.days_of_week == [1, 3]


def test_get_by_id_is_owner_scoped(daily_task, task_service):
    assert task_service.get_by_id(USER, daily_task.id).name == "Daily DSA"
    with pytest.raises(NotFoundError):
        task_service.get_by_id(OTHER_USER, daily_task.id)


def test_get_by_user_filters(daily_task, task_service):
    one_off = task_service.create(USER, name="Mock", category="behavioral", target_question_count=1, today=MONDAY)

    assert {task.id for task in task_service.get_by_user(USER)} == {daily_task.id, one_off.id}
    assert [task.id for task in task_service.get_by_user(USER, is_recurring=False)] == [one_off.id]
    assert [task.id for task in task_service.get_by_user(USER, category="dsa")] == [daily_task.id]
    assert task_service.get_by_user(OTHER_USER) == []


def test_update_recurrence(daily_task, task_service, materializer):
    task_service.update(
        USER,
        daily_task.id,
        recurrence={"frequency": "weekly", "days_of_week": [3], "start_date": MONDAY},
        end_date=date(2025, 1, 31),
    )

    assert materializer.resolve_day(USER, date(2025, 1, 7)).summary.total == 0
    assert materializer.resolve_day(USER, date(2025, 1, 8)).summary.total == 1
    assert materializer.resolve_day(USER, date(2025, 2, 5)).summary.total == 0


def test_delete_cascades(session, daily_task, task_service, materializer, question_service):
    occurrence_id = materializer.resolve_day(USER, MONDAY).occurrences[0].occurrence.id
    question_service.create(USER, occurrence_id, title="Two Sum")
    backlog = question_service.create_backlog(USER, title="Unrelated")

    task_service.delete(USER, daily_task.id)

    with pytest.raises(NotFoundError):
        task_service.get_by_id(USER, daily_task.id)
    assert session.exec(select(Occurrence)).all() == []
    assert [question.id for question in session.exec(select(Question)).all()] == [backlog.id]


def test_delete_other_users_task(daily_task, task_service):
    with pytest.raises(NotFoundError):
        task_service.delete(OTHER_USER, daily_task.id)
