"""
Turns "task fires on day D" into persisted, date-scoped occurrences.

Materialization is demand driven: the first read of a day creates the
occurrences that should exist for it. Creation is an insert-only upsert on
the unique (task_id, user_id, date) index, so concurrent reads of the same day
converge on one row per task; the loser of the race simply re-fetches.
"""
from collections import OrderedDict
from dataclasses import dataclass, field
from datetime import date, datetime
from typing import Dict, Iterable, List, Optional

from sqlalchemy import or_
from sqlmodel import Session, select

from prep_tracker.config import HISTORY_MAX_DAYS
from prep_tracker.db.store import insert_if_absent
from prep_tracker.errors import ConflictError, InvalidStateError, NotFoundError, require_owner
from prep_tracker.models.occurrence import Occurrence, OccurrenceStatus
from prep_tracker.models.question import Question
from prep_tracker.models.task import Task, TaskStatus
from prep_tracker.services.question_store import find_active
from prep_tracker.services.recurrence import fires, rule_for
from prep_tracker.utils.dates import DayWindow, day_window, iter_days, to_local_date, utcnow
from prep_tracker.utils.logger import get_logger

logger = get_logger(__name__)

OCCURRENCE_KEY = ("task_id", "user_id", "date")


@dataclass
class ResolvedOccurrence:
    """An occurrence bundled with its live questions."""

    occurrence: Occurrence
    questions: List[Question] = field(default_factory=list)


@dataclass
class StatusSummary:
    total: int = 0
    completed: int = 0
    incomplete: int = 0
    in_progress: int = 0
    pending: int = 0

    @classmethod
    def of(cls, occurrences: Iterable[Occurrence]) -> "StatusSummary":
        summary = cls()
        for occurrence in occurrences:
            summary.total += 1
            status = OccurrenceStatus(occurrence.status)
            if status == OccurrenceStatus.COMPLETED:
                summary.completed += 1
            elif status == OccurrenceStatus.INCOMPLETE:
                summary.incomplete += 1
            elif status == OccurrenceStatus.IN_PROGRESS:
                summary.in_progress += 1
            else:
                summary.pending += 1
        return summary


@dataclass
class CategoryGroup:
    category: str
    summary: StatusSummary
    occurrences: List[ResolvedOccurrence]


@dataclass
class DayResolution:
    """Everything due on one day, grouped by category."""

    date: date
    summary: StatusSummary
    groups: List[CategoryGroup]

    @property
    def occurrences(self) -> List[ResolvedOccurrence]:
        return [resolved for group in self.groups for resolved in group.occurrences]


@dataclass
class RangeResolution:
    start: date
    end: date
    days: List[DayResolution]


class InstanceMaterializer:
    """Resolves which occurrences exist for a user on a day, creating missing ones."""

    def __init__(self, session: Session, max_range_days: int = HISTORY_MAX_DAYS):
        self.session = session
        self.max_range_days = max_range_days

    def resolve_day(self, user_id: str, day: date | datetime) -> DayResolution:
        """
        Return every occurrence due for ``user_id`` on ``day``.

        Occurrences already persisted for the day are returned as they are;
        recurring tasks that fire on the day but have no occurrence yet get one.

        Raises:
            UnauthorizedError: If user_id is missing
        """
        require_owner(user_id)
        window = day_window(day)

        existing = self._occurrences_in(user_id, window)
        represented = {occurrence.task_id for occurrence in existing}

        created = []
        for task in self._candidate_tasks(user_id, window):
            if task.id in represented:
                continue
            if not fires(rule_for(task), task.start_date, task.end_date, window.day):
                continue
            created.append(self.materialize(task, window.day))
            represented.add(task.id)

        if created:
            logger.info(
                "Occurrences materialized",
                user_id=user_id,
                day=window.day.isoformat(),
                count=len(created),
            )

        return self._build_resolution(window.day, existing + created)

    def resolve_range(self, user_id: str, start: date | datetime, end: date | datetime) -> RangeResolution:
        """
        Resolve every day from ``start`` to ``end`` inclusive.

        A range covers at most ``max_range_days`` days (``HISTORY_MAX_DAYS``),
        since every day in it may materialize occurrences.

        Raises:
            InvalidStateError: If start is after end or the range is too long
        """
        require_owner(user_id)
        first, last = to_local_date(start), to_local_date(end)
        if first > last:
            raise InvalidStateError(
                "Range start must not be after range end",
                details={"from": first.isoformat(), "to": last.isoformat()},
            )

        span = (last - first).days + 1
        if span > self.max_range_days:
            raise InvalidStateError(
                f"Range covers {span} days; at most {self.max_range_days} are allowed",
                details={
                    "from": first.isoformat(),
                    "to": last.isoformat(),
                    "days": span,
                    "max_days": self.max_range_days,
                },
            )

        days = [self.resolve_day(user_id, day) for day in iter_days(first, last)]
        return RangeResolution(start=first, end=last, days=days)

    def get_occurrence(self, user_id: str, occurrence_id: int) -> ResolvedOccurrence:
        """
        Return one occurrence with its live questions.

        Raises:
            NotFoundError: If the occurrence is absent or owned by someone else
        """
        require_owner(user_id)
        occurrence = self.session.exec(
            select(Occurrence).where(Occurrence.id == occurrence_id, Occurrence.user_id == user_id)
        ).first()
        if occurrence is None:
            raise NotFoundError("Task instance not found", details={"occurrence_id": occurrence_id})

        questions = find_active(self.session, Question.occurrence_id == occurrence.id, order_by=Question.id)
        return ResolvedOccurrence(occurrence=occurrence, questions=questions)

    def materialize(self, task: Task, day: date | datetime) -> Occurrence:
        """
        Ensure ``task`` has an occurrence on ``day`` and return it.

        Inserts with insert-only semantics: an existing row is never modified.
        Losing an insert race is not an error; the winner's row is returned.

        Raises:
            ConflictError: If the row can neither be inserted nor found
        """
        window = day_window(day)
        now = utcnow()
        values = {
            "task_id": task.id,
            "user_id": task.user_id,
            "date": window.start,
            "task_name": task.name,
            "category": task.category,
            "target_question_count": task.target_question_count,
            "added_count": 0,
            "solved_count": 0,
            "status": OccurrenceStatus.PENDING.value,
            "created_at": now,
            "updated_at": now,
        }

        # One retry: the row may vanish between a lost insert and the re-fetch
        for attempt in range(2):
            inserted = insert_if_absent(self.session, Occurrence, values, OCCURRENCE_KEY)
            self.session.commit()

            occurrence = self._find(task.id, task.user_id, window)
            if occurrence is not None:
                if not inserted:
                    logger.info(
                        "Occurrence already materialized by a concurrent request",
                        task_id=task.id,
                        day=window.day.isoformat(),
                        occurrence_id=occurrence.id,
                    )
                return occurrence

            logger.warning(
                "Occurrence missing after upsert; retrying",
                task_id=task.id,
                day=window.day.isoformat(),
                attempt=attempt + 1,
            )

        raise ConflictError(
            "Could not materialize task instance",
            details={"task_id": task.id, "date": window.day.isoformat()},
        )

    def _find(self, task_id: int, user_id: str, window: DayWindow) -> Optional[Occurrence]:
        statement = select(Occurrence).where(
            Occurrence.task_id == task_id,
            Occurrence.user_id == user_id,
            Occurrence.date >= window.start,
            Occurrence.date < window.end,
        )
        return self.session.exec(statement).first()

    def _occurrences_in(self, user_id: str, window: DayWindow) -> List[Occurrence]:
        statement = (
            select(Occurrence)
            .where(
                Occurrence.user_id == user_id,
                Occurrence.date >= window.start,
                Occurrence.date < window.end,
            )
            .order_by(Occurrence.id)
        )
        return list(self.session.exec(statement).all())

    def _candidate_tasks(self, user_id: str, window: DayWindow) -> List[Task]:
        statement = (
            select(Task)
            .where(
                Task.user_id == user_id,
                Task.is_recurring == True,  # noqa: E712
                Task.status == TaskStatus.ACTIVE.value,
                Task.start_date.is_not(None),
                Task.start_date < window.end,
                or_(Task.end_date.is_(None), Task.end_date >= window.start),
            )
            .order_by(Task.id)
        )
        return list(self.session.exec(statement).all())

    def _build_resolution(self, day: date, occurrences: List[Occurrence]) -> DayResolution:
        ids = [occurrence.id for occurrence in occurrences]
        by_occurrence: Dict[int, List[Question]] = {occurrence_id: [] for occurrence_id in ids}
        if ids:
            for question in find_active(self.session, Question.occurrence_id.in_(ids), order_by=Question.id):
                by_occurrence[question.occurrence_id].append(question)

        grouped: "OrderedDict[str, List[ResolvedOccurrence]]" = OrderedDict()
        for occurrence in occurrences:
            resolved = ResolvedOccurrence(occurrence=occurrence, questions=by_occurrence[occurrence.id])
            grouped.setdefault(occurrence.category or "unknown", []).append(resolved)

        groups = [
            CategoryGroup(
                category=category,
                summary=StatusSummary.of(resolved.occurrence for resolved in members),
                occurrences=members,
            )
            for category, members in grouped.items()
        ]
        return DayResolution(date=day, summary=StatusSummary.of(occurrences), groups=groups)
