import threading
from datetime import date, datetime, timedelta

import pytest
from sqlmodel import Session, select

from prep_tracker.config import HISTORY_MAX_DAYS
from prep_tracker.errors import InvalidStateError, NotFoundError, UnauthorizedError
from prep_tracker.models.occurrence import Occurrence
from prep_tracker.services.materializer import InstanceMaterializer

from conftest import MONDAY, OTHER_USER, USER


def _count_occurrences(session):
    return len(session.exec(select(Occurrence)).all())


def test_resolve_day_materializes_firing_task(daily_task, materializer):
    resolution = materializer.resolve_day(USER, MONDAY)

    assert resolution.date == MONDAY
    assert resolution.summary.total == 1
    assert resolution.summary.pending == 1

    occurrence = resolution.occurrences[0].occurrence
    assert occurrence.task_id == daily_task.id
    assert occurrence.date == datetime(2025, 1, 5, 18, 30)
    assert occurrence.task_name == "Daily DSA"
    assert (occurrence.added_count, occurrence.solved_count) == (0, 0)


def test_resolve_day_is_idempotent(session, daily_task, materializer):
    first = materializer.resolve_day(USER, MONDAY).occurrences[0].occurrence.id
    second = materializer.resolve_day(USER, MONDAY).occurrences[0].occurrence.id

    assert first == second
    assert _count_occurrences(session) == 1


def test_resolve_day_before_start_is_empty(session, daily_task, materializer):
    resolution = materializer.resolve_day(USER, date(2025, 1, 5))
    assert resolution.summary.total == 0
    assert resolution.groups == []
    assert _count_occurrences(session) == 0


def test_resolve_day_skips_inactive_and_ended_tasks(session, task_service, materializer):
    ended = task_service.create(
        USER,
        name="Ended",
        category="dsa",
        target_question_count=1,
        is_recurring=True,
        recurrence={"frequency": "daily", "start_date": MONDAY},
        end_date=date(2025, 1, 7),
    )
    finished = task_service.create(
        USER,
        name="Finished",
        category="dsa",
        target_question_count=1,
        is_recurring=True,
        recurrence={"frequency": "daily", "start_date": MONDAY},
    )
    task_service.update(USER, finished.id, status="completed")

    assert materializer.resolve_day(USER, date(2025, 1, 7)).occurrences[0].occurrence.task_id == ended.id
    assert materializer.resolve_day(USER, date(2025, 1, 8)).summary.total == 0


def test_resolve_day_only_sees_owner_tasks(daily_task, materializer):
    assert materializer.resolve_day(OTHER_USER, MONDAY).summary.total == 0


def test_existing_occurrence_keeps_snapshot(daily_task, task_service, materializer):
    materializer.resolve_day(USER, MONDAY)
    task_service.update(USER, daily_task.id, name="Renamed", target_question_count=3)

    kept = materializer.resolve_day(USER, MONDAY).occurrences[0].occurrence
    assert kept.task_name == "Daily DSA"
    assert kept.target_question_count == 1

    fresh = materializer.resolve_day(USER, date(2025, 1, 7)).occurrences[0].occurrence
    assert fresh.task_name == "Renamed"
    assert fresh.target_question_count == 3


def test_occurrences_grouped_by_category(task_service, materializer):
    for name, category in [("Arrays", "dsa"), ("STAR stories", "behavioral"), ("Graphs", "dsa")]:
        task_service.create(
            USER,
            name=name,
            category=category,
            target_question_count=1,
            is_recurring=True,
            recurrence={"frequency": "daily", "start_date": MONDAY},
        )

    resolution = materializer.resolve_day(USER, MONDAY)

    assert [group.category for group in resolution.groups] == ["dsa", "behavioral"]
    assert resolution.groups[0].summary.total == 2
    assert resolution.groups[1].summary.total == 1
    assert resolution.summary.total == 3


def test_resolution_carries_live_questions(daily_task, materializer, question_service):
    occurrence_id = materializer.resolve_day(USER, MONDAY).occurrences[0].occurrence.id
    kept = question_service.create(USER, occurrence_id, title="Two Sum")
    dropped = question_service.create(USER, occurrence_id, title="Valid Anagram")
    question_service.delete(USER, dropped.id)

    resolved = materializer.resolve_day(USER, MONDAY).occurrences[0]
    assert [question.id for question in resolved.questions] == [kept.id]


def test_one_off_task_materializes_on_creation(session, task_service, materializer):
    task = task_service.create(
        USER,
        name="Mock interview",
        category="behavioral",
        target_question_count=1,
        today=date(2025, 1, 8),
    )

    assert _count_occurrences(session) == 1
    resolution = materializer.resolve_day(USER, date(2025, 1, 8))
    assert resolution.occurrences[0].occurrence.task_id == task.id
    assert materializer.resolve_day(USER, date(2025, 1, 9)).summary.total == 0


def test_resolve_range(daily_task, materializer):
    result = materializer.resolve_range(USER, MONDAY, date(2025, 1, 8))

    assert [day.date for day in result.days] == [MONDAY, date(2025, 1, 7), date(2025, 1, 8)]
    assert all(day.summary.total == 1 for day in result.days)


def test_resolve_range_rejects_inverted_bounds(materializer):
    with pytest.raises(InvalidStateError):
        materializer.resolve_range(USER, date(2025, 1, 8), MONDAY)


def test_resolve_range_allows_exactly_the_maximum_span(session, daily_task):
    materializer = InstanceMaterializer(session, max_range_days=5)
    result = materializer.resolve_range(USER, MONDAY, MONDAY + timedelta(days=4))
    assert len(result.days) == 5


def test_resolve_range_rejects_longer_span(session, daily_task):
    materializer = InstanceMaterializer(session, max_range_days=5)
    with pytest.raises(InvalidStateError) as excinfo:
        materializer.resolve_range(USER, MONDAY, MONDAY + timedelta(days=5))

    assert excinfo.value.details["days"] == 6
    assert excinfo.value.details["max_days"] == 5
    # Nothing was materialized for the rejected range
    assert session.exec(select(Occurrence)).all() == []


def test_default_range_limit_comes_from_config(materializer):
    assert materializer.max_range_days == HISTORY_MAX_DAYS


def test_missing_owner_is_unauthorized(materializer):
    with pytest.raises(UnauthorizedError):
        materializer.resolve_day("", MONDAY)


def test_get_occurrence(daily_task, materializer, question_service):
    occurrence_id = materializer.resolve_day(USER, MONDAY).occurrences[0].occurrence.id
    question_service.create(USER, occurrence_id, title="Two Sum")

    resolved = materializer.get_occurrence(USER, occurrence_id)
    assert resolved.occurrence.id == occurrence_id
    assert [question.title for question in resolved.questions] == ["Two Sum"]

    with pytest.raises(NotFoundError):
        materializer.get_occurrence(OTHER_USER, occurrence_id)


def test_concurrent_resolution_creates_one_occurrence(engine, session, daily_task):
    workers = 4
    barrier = threading.Barrier(workers)
    seen = []
    errors = []

    def resolve():
        try:
            with Session(engine) as worker_session:
                barrier.wait()
                resolution = InstanceMaterializer(worker_session).resolve_day(USER, MONDAY)
                seen.append(resolution.occurrences[0].occurrence.id)
        except Exception as e:  # surfaced through the assertion below
            errors.append(e)

    threads = [threading.Thread(target=resolve) for _ in range(workers)]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join()

    assert errors == []
    assert len(set(seen)) == 1
    assert _count_occurrences(session) == 1
