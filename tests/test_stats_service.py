from datetime import date, datetime

import pytest

from prep_tracker.errors import InvalidStateError, UnauthorizedError
from prep_tracker.services.stats_service import StatsService, completion_rate

from conftest import MONDAY, OTHER_USER, USER


@pytest.fixture
def stats(session):
    return StatsService(session)


@pytest.fixture
def occurrence_id(daily_task, materializer):
    return materializer.resolve_day(USER, MONDAY).occurrences[0].occurrence.id


def _behavioral_occurrence(task_service, materializer):
    task_service.create(
        USER,
        name="Stories",
        category="behavioral",
        target_question_count=1,
        is_recurring=True,
        recurrence={"frequency": "daily", "start_date": MONDAY},
    )
    resolution = materializer.resolve_day(USER, MONDAY)
    return next(item.occurrence.id for item in resolution.occurrences if item.occurrence.category == "behavioral")


def test_completion_rate_rounds_to_whole_percent():
    assert completion_rate(0, 0) == 0
    assert completion_rate(1, 3) == 33
    assert completion_rate(2, 3) == 67
    assert completion_rate(4, 4) == 100


def test_overview_zero_fills_and_counts_backlog(stats, occurrence_id, question_service):
    solved = question_service.create(USER, occurrence_id, title="Two Sum", difficulty="easy")
    question_service.solve(USER, solved.id)
    question_service.create(USER, occurrence_id, title="3Sum", difficulty="medium")
    question_service.create_backlog(USER, title="Later", difficulty="hard")
    gone = question_service.create_backlog(USER, title="Gone")
    question_service.delete(USER, gone.id)
    question_service.create_backlog(OTHER_USER, title="Theirs")

    overview = stats.overview(USER)

    assert overview["total"] == 3
    assert overview["backlog_count"] == 1
    assert overview["by_status"] == {"pending": 2, "solved": 1}
    assert overview["by_category"] == {
        "dsa": 2,
        "system_design": 0,
        "behavioral": 0,
        "machine_coding": 0,
        "language_framework": 0,
    }
    assert overview["by_difficulty"] == {"easy": 1, "medium": 1, "hard": 1}


def test_overview_for_new_user_is_all_zero(stats):
    overview = stats.overview(USER)
    assert overview["total"] == 0
    assert set(overview["by_status"].values()) == {0}


def test_category_breakdown(stats, task_service, materializer, occurrence_id, question_service):
    behavioral_id = _behavioral_occurrence(task_service, materializer)
    first = question_service.create(USER, occurrence_id, title="Two Sum")
    question_service.create(USER, occurrence_id, title="3Sum")
    question_service.create(USER, occurrence_id, title="4Sum")
    question_service.solve(USER, first.id)
    story = question_service.create(USER, behavioral_id, title="Conflict")
    question_service.solve(USER, story.id)

    rows = {row["category"]: row for row in stats.categories(USER)}

    assert rows["dsa"] == {"category": "dsa", "total": 3, "solved": 1, "pending": 2, "completion_rate": 33}
    assert rows["behavioral"]["completion_rate"] == 100
    assert rows["system_design"] == {
        "category": "system_design",
        "total": 0,
        "solved": 0,
        "pending": 0,
        "completion_rate": 0,
    }


def test_difficulty_breakdown_ignores_unrated(stats, occurrence_id, question_service):
    hard = question_service.create(USER, occurrence_id, title="Median", difficulty="hard")
    question_service.create(USER, occurrence_id, title="Unrated")
    question_service.solve(USER, hard.id)

    rows = {row["difficulty"]: row for row in stats.difficulties(USER)}
    assert rows["hard"]["total"] == 1
    assert rows["hard"]["completion_rate"] == 100
    assert sum(row["total"] for row in rows.values()) == 1


def test_topic_breakdown_sorted_and_filtered(stats, task_service, materializer, occurrence_id, question_service):
    behavioral_id = _behavioral_occurrence(task_service, materializer)
    question_service.create(USER, occurrence_id, title="A", topic="arrays")
    question_service.create(USER, occurrence_id, title="B", topic="arrays")
    question_service.create(USER, occurrence_id, title="C", topic="graphs")
    question_service.create(USER, behavioral_id, title="D", topic="leadership")
    question_service.create_backlog(USER, title="E", topic="graphs")

    assert [row["topic"] for row in stats.topics(USER)] == ["arrays", "graphs", "leadership"]
    assert [row["total"] for row in stats.topics(USER)] == [2, 2, 1]
    assert [row["topic"] for row in stats.topics(USER, category="behavioral")] == ["leadership"]


def test_streaks_count_completed_days(stats, session, daily_task, materializer, question_service):
    for day in (date(2025, 1, 6), date(2025, 1, 7), date(2025, 1, 8), date(2025, 1, 10), date(2025, 1, 11)):
        occurrence_id = materializer.resolve_day(USER, day).occurrences[0].occurrence.id
        question = question_service.create(USER, occurrence_id, title=f"Q {day}")
        question_service.solve(USER, question.id)
    # Materialized but never completed
    materializer.resolve_day(USER, date(2025, 1, 12))

    assert stats.streaks(USER, today=date(2025, 1, 12)) == {
        "current_streak": 2,
        "longest_streak": 3,
        "total_active_days": 5,
    }
    assert stats.streaks(USER, today=date(2025, 1, 11))["current_streak"] == 2
    assert stats.streaks(USER, today=date(2025, 1, 20))["current_streak"] == 0
    assert stats.streaks(OTHER_USER) == {"current_streak": 0, "longest_streak": 0, "total_active_days": 0}


def test_progress_buckets_by_reference_day(stats, occurrence_id, question_service):
    late_evening = question_service.create(USER, occurrence_id, title="A")
    # 19:00 UTC on the 6th is already the 7th in the reference timezone
    question_service.solve(USER, late_evening.id, now=datetime(2025, 1, 6, 19, 0))
    morning = question_service.create(USER, occurrence_id, title="B")
    question_service.solve(USER, morning.id, now=datetime(2025, 1, 7, 3, 0))
    old = question_service.create(USER, occurrence_id, title="C")
    question_service.solve(USER, old.id, now=datetime(2024, 12, 1, 3, 0))

    progress = stats.progress(USER, days=3, today=date(2025, 1, 8))

    assert progress == [
        {"date": "2025-01-05", "solved": 0},
        {"date": "2025-01-06", "solved": 0},
        {"date": "2025-01-07", "solved": 2},
        {"date": "2025-01-08", "solved": 0},
    ]


@pytest.mark.parametrize("days", [0, -1, 366])
def test_progress_rejects_out_of_range_days(stats, days):
    with pytest.raises(InvalidStateError):
        stats.progress(USER, days=days)


def test_stats_require_owner(stats):
    with pytest.raises(UnauthorizedError):
        stats.overview(None)
