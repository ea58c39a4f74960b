from datetime import date, datetime, timedelta

import pytest

from prep_tracker.config import REVIEW_INTERVALS
from prep_tracker.errors import InvalidStateError
from prep_tracker.models.question import Question, QuestionStatus
from prep_tracker.services.review_scheduler import ReviewScheduler

from conftest import MONDAY, USER

NOW = datetime(2025, 1, 6, 10, 0)


def _solved(**fields):
    return Question(user_id=USER, title="Two Sum", status=QuestionStatus.SOLVED.value, **fields)


def test_interval_for_saturates_at_last_entry():
    scheduler = ReviewScheduler(None, intervals=[1, 3, 7])
    assert [scheduler.interval_for(count) for count in range(5)] == [1, 3, 7, 7, 7]


def test_empty_intervals_rejected():
    with pytest.raises(ValueError):
        ReviewScheduler(None, intervals=[])


def test_default_intervals_used_when_none_given():
    assert ReviewScheduler(None).intervals == REVIEW_INTERVALS
    assert ReviewScheduler(None, intervals=None).intervals == REVIEW_INTERVALS


def test_explicit_intervals_are_kept():
    assert ReviewScheduler(None, intervals=(2, 5)).intervals == [2, 5]


def test_on_solve_schedules_first_review():
    question = ReviewScheduler(None).on_solve(_solved(), NOW)
    assert question.next_review_at == NOW + timedelta(days=1)


def test_on_solve_keeps_existing_schedule():
    scheduled = NOW + timedelta(days=10)
    question = ReviewScheduler(None).on_solve(_solved(review_count=2, next_review_at=scheduled), NOW)
    assert question.next_review_at == scheduled


def test_on_review_walks_the_intervals():
    scheduler = ReviewScheduler(None)
    question = scheduler.on_solve(_solved(), NOW)

    expected_days = [3, 7, 14, 30, 30, 30]
    for count, days in enumerate(expected_days, start=1):
        reviewed_at = NOW + timedelta(days=count)
        scheduler.on_review(question, reviewed_at)
        assert question.review_count == count
        assert question.last_reviewed_at == reviewed_at
        assert question.next_review_at == reviewed_at + timedelta(days=days)


def test_on_review_requires_solved():
    question = Question(user_id=USER, title="Two Sum", status=QuestionStatus.PENDING.value)
    with pytest.raises(InvalidStateError):
        ReviewScheduler(None).on_review(question, NOW)


def test_on_reset_clears_history():
    question = _solved(
        solved_at=NOW,
        review_count=3,
        next_review_at=NOW + timedelta(days=14),
        last_reviewed_at=NOW,
    )
    ReviewScheduler(None).on_reset(question)

    assert question.status == QuestionStatus.PENDING.value
    assert question.solved_at is None
    assert question.review_count == 0
    assert question.next_review_at is None
    assert question.last_reviewed_at is None


def test_due_for_review_orders_by_next_review(daily_task, materializer, question_service):
    occurrence_id = materializer.resolve_day(USER, MONDAY).occurrences[0].occurrence.id
    early = question_service.create(USER, occurrence_id, title="Early", topic="arrays")
    late = question_service.create(USER, occurrence_id, title="Late", topic="graphs")
    future = question_service.create(USER, occurrence_id, title="Future", topic="arrays")
    unsolved = question_service.create(USER, occurrence_id, title="Unsolved", topic="arrays")

    question_service.solve(USER, late.id, now=datetime(2025, 1, 3, 9, 0))
    question_service.solve(USER, early.id, now=datetime(2025, 1, 1, 9, 0))
    question_service.solve(USER, future.id, now=datetime(2025, 1, 20, 9, 0))

    now = datetime(2025, 1, 10, 9, 0)
    due = question_service.due_for_review(USER, now=now)
    assert [question.id for question in due] == [early.id, late.id]
    assert unsolved.id not in [question.id for question in due]

    by_topic = question_service.due_for_review(USER, now=now, topic="graphs")
    assert [question.id for question in by_topic] == [late.id]


def test_due_for_review_skips_deleted(daily_task, materializer, question_service):
    occurrence_id = materializer.resolve_day(USER, MONDAY).occurrences[0].occurrence.id
    question = question_service.create(USER, occurrence_id, title="Gone")
    question_service.solve(USER, question.id, now=datetime(2025, 1, 1))
    question_service.delete(USER, question.id)

    assert question_service.due_for_review(USER, now=datetime(2025, 2, 1)) == []


def test_solve_and_review_through_service(daily_task, materializer, question_service):
    occurrence_id = materializer.resolve_day(USER, MONDAY).occurrences[0].occurrence.id
    question = question_service.create(USER, occurrence_id, title="Two Sum")
    question_service.solve(USER, question.id, now=NOW)

    reviewed = question_service.review(USER, question.id, now=datetime(2025, 1, 7, 10, 0))
    assert reviewed.review_count == 1
    assert reviewed.next_review_at.date() == date(2025, 1, 10)


def test_first_review_only_on_first_solve():
    scheduler = ReviewScheduler(None, intervals=[2])
    assert scheduler.first_review_at(_solved(), NOW) == NOW + timedelta(days=2)

    scheduled = NOW + timedelta(days=9)
    assert scheduler.first_review_at(_solved(review_count=1, next_review_at=scheduled), NOW) == scheduled


def test_reset_values_clear_history():
    assert ReviewScheduler.reset_values() == {
        "status": "pending",
        "solved_at": None,
        "review_count": 0,
        "next_review_at": None,
        "last_reviewed_at": None,
    }
