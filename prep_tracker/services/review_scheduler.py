"""Spaced-repetition scheduling for solved questions."""
from datetime import datetime, timedelta
from typing import Any, Dict, List, Optional, Sequence

from sqlmodel import Session

from prep_tracker.config import REVIEW_INTERVALS
from prep_tracker.errors import InvalidStateError, require_owner
from prep_tracker.models.question import Question, QuestionStatus
from prep_tracker.services.question_store import find_active
from prep_tracker.utils.dates import to_utc_naive, utcnow
from prep_tracker.utils.logger import get_logger

logger = get_logger(__name__)


class ReviewScheduler:
    """
    Decides when a solved question comes up for review again.

    The interval sequence is walked by ``review_count`` and saturates at its
    last entry. Mutating methods change the question in memory only; the
    caller commits.
    """

    def __init__(self, session: Session, intervals: Optional[Sequence[int]] = None):
        self.session = session
        self.intervals = list(REVIEW_INTERVALS if intervals is None else intervals)
        if not self.intervals:
            raise ValueError("At least one review interval is required")

    def interval_for(self, review_count: int) -> int:
        """Days until the next review after ``review_count`` reviews."""
        return self.intervals[min(review_count, len(self.intervals) - 1)]

    def first_review_at(self, question: Question, now: datetime) -> Optional[datetime]:
        """Review date a solve should leave on ``question``; only a first solve schedules one."""
        if question.review_count == 0 and question.next_review_at is None:
            return now + timedelta(days=self.intervals[0])
        return question.next_review_at

    def on_solve(self, question: Question, now: Optional[datetime] = None) -> Question:
        """Schedule the first review when a question is solved for the first time."""
        now = to_utc_naive(now) if now else utcnow()
        scheduled = self.first_review_at(question, now)
        if scheduled != question.next_review_at:
            question.next_review_at = scheduled
            logger.info(
                "First review scheduled",
                question_id=question.id,
                next_review_at=scheduled.isoformat(),
            )
        return question

    def on_review(self, question: Question, now: Optional[datetime] = None) -> Question:
        """
        Record a review and push the next one further out.

        Raises:
            InvalidStateError: If the question is not solved
        """
        if question.status != QuestionStatus.SOLVED.value:
            raise InvalidStateError(
                "Only solved questions can be reviewed",
                details={"question_id": question.id, "status": question.status},
            )

        now = to_utc_naive(now) if now else utcnow()
        question.review_count += 1
        question.last_reviewed_at = now
        question.next_review_at = now + timedelta(days=self.interval_for(question.review_count))
        logger.info(
            "Review recorded",
            question_id=question.id,
            review_count=question.review_count,
            next_review_at=question.next_review_at.isoformat(),
        )
        return question

    @staticmethod
    def reset_values() -> Dict[str, Any]:
        """Column values that forget all solve and review history."""
        return {
            "status": QuestionStatus.PENDING.value,
            "solved_at": None,
            "review_count": 0,
            "next_review_at": None,
            "last_reviewed_at": None,
        }

    def on_reset(self, question: Question) -> Question:
        """Forget all solve and review history."""
        for name, value in self.reset_values().items():
            setattr(question, name, value)
        return question

    def due_for_review(
        self,
        user_id: str,
        now: Optional[datetime] = None,
        topic: Optional[str] = None,
        difficulty: Optional[str] = None,
    ) -> List[Question]:
        """Solved questions whose review is due, soonest-overdue first."""
        require_owner(user_id)
        now = to_utc_naive(now) if now else utcnow()

        criteria = [
            Question.user_id == user_id,
            Question.status == QuestionStatus.SOLVED.value,
            Question.next_review_at.is_not(None),
            Question.next_review_at <= now,
        ]
        if topic:
            criteria.append(Question.topic == topic)
        if difficulty:
            criteria.append(Question.difficulty == difficulty)

        return find_active(self.session, *criteria, order_by=Question.next_review_at.asc())
