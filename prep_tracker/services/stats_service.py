"""
Read-only progress statistics over a user's questions and occurrences.

A question's category is the category of the occurrence it is attached to;
backlog questions have none and are reported separately.
"""
from collections import Counter
from datetime import date, timedelta
from typing import Any, Dict, List, Optional, Tuple

from sqlmodel import Session, select

from prep_tracker.errors import InvalidStateError, require_owner
from prep_tracker.models.occurrence import Occurrence, OccurrenceStatus
from prep_tracker.models.question import Difficulty, Question, QuestionStatus
from prep_tracker.models.task import PrepCategory
from prep_tracker.utils.dates import local_midnight, to_local_date, utcnow

MAX_PROGRESS_DAYS = 365


def completion_rate(solved: int, total: int) -> int:
    """Solved share as a whole percentage, 0 when there is nothing to solve."""
    return round(solved / total * 100) if total else 0


def _breakdown(key: str, counts: Dict[str, List[int]]) -> List[Dict[str, Any]]:
    rows = []
    for value, (total, solved) in counts.items():
        rows.append(
            {
                key: value,
                "total": total,
                "solved": solved,
                "pending": total - solved,
                "completion_rate": completion_rate(solved, total),
            }
        )
    return rows


class StatsService:
    """Service class for statistics. Nothing here writes."""

    def __init__(self, session: Session):
        self.session = session

    def _question_rows(self, user_id: str, *criteria: Any) -> List[Tuple[str, Optional[str], Optional[str], Optional[str]]]:
        """(status, difficulty, topic, category) for every live question of the user."""
        statement = (
            select(Question.status, Question.difficulty, Question.topic, Occurrence.category)
            .select_from(Question)
            .outerjoin(Occurrence, Question.occurrence_id == Occurrence.id)
            .where(Question.user_id == user_id, Question.deleted_at.is_(None), *criteria)
        )
        return list(self.session.exec(statement).all())

    def overview(self, user_id: str) -> Dict[str, Any]:
        """Totals by status, category and difficulty, with every known value present."""
        require_owner(user_id)
        rows = self._question_rows(user_id)

        by_status = {status.value: 0 for status in QuestionStatus}
        by_category = {category.value: 0 for category in PrepCategory}
        by_difficulty = {difficulty.value: 0 for difficulty in Difficulty}
        backlog_count = 0

        for status, difficulty, _topic, category in rows:
            by_status[status] = by_status.get(status, 0) + 1
            if category is None:
                backlog_count += 1
            else:
                by_category[category] = by_category.get(category, 0) + 1
            if difficulty:
                by_difficulty[difficulty] = by_difficulty.get(difficulty, 0) + 1

        return {
            "total": len(rows),
            "backlog_count": backlog_count,
            "by_status": by_status,
            "by_category": by_category,
            "by_difficulty": by_difficulty,
        }

    def categories(self, user_id: str) -> List[Dict[str, Any]]:
        """Per-category totals and completion rate for attached questions."""
        require_owner(user_id)
        counts = {category.value: [0, 0] for category in PrepCategory}
        for status, _difficulty, _topic, category in self._question_rows(user_id):
            if category in counts:
                counts[category][0] += 1
                counts[category][1] += status == QuestionStatus.SOLVED.value
        return _breakdown("category", counts)

    def difficulties(self, user_id: str) -> List[Dict[str, Any]]:
        """Per-difficulty totals and completion rate."""
        require_owner(user_id)
        counts = {difficulty.value: [0, 0] for difficulty in Difficulty}
        for status, difficulty, _topic, _category in self._question_rows(user_id):
            if difficulty in counts:
                counts[difficulty][0] += 1
                counts[difficulty][1] += status == QuestionStatus.SOLVED.value
        return _breakdown("difficulty", counts)

    def topics(self, user_id: str, category: Optional[str] = None) -> List[Dict[str, Any]]:
        """Per-topic totals and completion rate, largest topic first."""
        require_owner(user_id)
        criteria = [Question.topic.is_not(None), Question.topic != ""]
        if category:
            criteria.append(Occurrence.category == category)

        counts: Dict[str, List[int]] = {}
        for status, _difficulty, topic, _category in self._question_rows(user_id, *criteria):
            entry = counts.setdefault(topic, [0, 0])
            entry[0] += 1
            entry[1] += status == QuestionStatus.SOLVED.value

        rows = _breakdown("topic", counts)
        rows.sort(key=lambda row: (-row["total"], row["topic"]))
        return rows

    def streaks(self, user_id: str, today: Optional[date] = None) -> Dict[str, Any]:
        """
        Runs of consecutive days with at least one completed occurrence.

        The current streak may end yesterday: today still counts as open.
        """
        require_owner(user_id)
        today = today or to_local_date(utcnow())

        statement = select(Occurrence.date).where(
            Occurrence.user_id == user_id,
            Occurrence.status == OccurrenceStatus.COMPLETED.value,
        )
        active_days = sorted({to_local_date(value) for value in self.session.exec(statement).all()})

        longest = run = 0
        previous = None
        for day in active_days:
            run = run + 1 if previous is not None and day - previous == timedelta(days=1) else 1
            longest = max(longest, run)
            previous = day

        active = set(active_days)
        cursor = today if today in active else today - timedelta(days=1)
        current = 0
        while cursor in active:
            current += 1
            cursor -= timedelta(days=1)

        return {
            "current_streak": current,
            "longest_streak": longest,
            "total_active_days": len(active_days),
        }

    def progress(self, user_id: str, days: int = 30, today: Optional[date] = None) -> List[Dict[str, Any]]:
        """
        Questions solved per day from ``days`` days ago through today.

        Raises:
            InvalidStateError: If days is outside 1..365
        """
        require_owner(user_id)
        if days < 1 or days > MAX_PROGRESS_DAYS:
            raise InvalidStateError(
                f"days must be between 1 and {MAX_PROGRESS_DAYS}",
                details={"days": days},
            )

        today = today or to_local_date(utcnow())
        first = today - timedelta(days=days)

        statement = select(Question.solved_at).where(
            Question.user_id == user_id,
            Question.deleted_at.is_(None),
            Question.status == QuestionStatus.SOLVED.value,
            Question.solved_at >= local_midnight(first),
            Question.solved_at < local_midnight(today + timedelta(days=1)),
        )
        per_day = Counter(to_local_date(solved_at) for solved_at in self.session.exec(statement).all())

        return [
            {"date": (first + timedelta(days=offset)).isoformat(), "solved": per_day[first + timedelta(days=offset)]}
            for offset in range(days + 1)
        ]
