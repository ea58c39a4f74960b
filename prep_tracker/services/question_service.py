"""Question service: lifecycle of questions and the counters they drive."""
from collections import Counter, defaultdict
from datetime import datetime
from typing import Any, Dict, Iterable, List, Optional, Tuple

from sqlalchemy import func
from sqlmodel import Session, select

from prep_tracker.db.store import update_where
from prep_tracker.errors import ConflictError, InvalidStateError, NotFoundError, require_owner
from prep_tracker.models.occurrence import Occurrence
from prep_tracker.models.question import Question, QuestionStatus
from prep_tracker.services.counter_ledger import CounterLedger
from prep_tracker.services.question_store import find_active, get_active
from prep_tracker.services.review_scheduler import ReviewScheduler
from prep_tracker.utils.dates import to_utc_naive, utcnow
from prep_tracker.utils.logger import get_logger

logger = get_logger(__name__)

EDITABLE_FIELDS = ("title", "notes", "solution", "difficulty", "topic", "source", "url", "tags")

BACKLOG_EXCLUDE = "exclude"
BACKLOG_ONLY = "only"
BACKLOG_ALL = "all"

# Guarded soft deletes re-read and retry this many times before giving up
RELEASE_ATTEMPTS = 3


class QuestionService:
    """
    Service class for question operations.

    Any change that affects an occurrence's counters runs the row change and
    the counter increment in one commit, then settles the occurrence status.
    State transitions are conditional updates on the state they were read
    from, so a counter moves only when this request made the transition.
    """

    def __init__(self, session: Session, scheduler: Optional[ReviewScheduler] = None):
        self.session = session
        self.ledger = CounterLedger(session)
        self.scheduler = scheduler or ReviewScheduler(session)

    # ---- lookups ----

    def get(self, user_id: str, question_id: int) -> Question:
        """
        Get a live question owned by ``user_id``.

        Raises:
            NotFoundError: If the question is absent, deleted or not owned
        """
        require_owner(user_id)
        question = get_active(self.session, question_id, user_id)
        if question is None:
            raise NotFoundError("Question not found", details={"question_id": question_id})
        return question

    def _get_occurrence(self, user_id: str, occurrence_id: int) -> Occurrence:
        statement = select(Occurrence).where(
            Occurrence.id == occurrence_id,
            Occurrence.user_id == user_id,
        )
        occurrence = self.session.exec(statement).first()
        if occurrence is None:
            raise NotFoundError("Task instance not found", details={"occurrence_id": occurrence_id})
        return occurrence

    def get_by_user(
        self,
        user_id: str,
        occurrence_id: Optional[int] = None,
        task_id: Optional[int] = None,
        backlog: str = BACKLOG_EXCLUDE,
        status: Optional[str] = None,
        difficulty: Optional[str] = None,
        topic: Optional[str] = None,
        source: Optional[str] = None,
        tag: Optional[str] = None,
        starred: Optional[bool] = None,
    ) -> List[Question]:
        """List live questions with optional filters, newest first."""
        require_owner(user_id)
        criteria = [Question.user_id == user_id]

        if occurrence_id is not None:
            criteria.append(Question.occurrence_id == occurrence_id)
        elif backlog == BACKLOG_ONLY:
            criteria.append(Question.occurrence_id.is_(None))
        elif backlog != BACKLOG_ALL:
            criteria.append(Question.occurrence_id.is_not(None))

        if task_id is not None:
            criteria.append(Question.task_id == task_id)
        if status:
            criteria.append(Question.status == status)
        if difficulty:
            criteria.append(Question.difficulty == difficulty)
        if topic:
            criteria.append(Question.topic == topic)
        if source:
            criteria.append(Question.source == source)
        if starred:
            criteria.append(Question.starred == True)  # noqa: E712

        questions = find_active(self.session, *criteria, order_by=Question.created_at.desc())

        # Tags live in a JSON column; match them here so every dialect behaves the same
        if tag:
            questions = [question for question in questions if tag in (question.tags or [])]

        return questions

    # ---- creation ----

    def create(self, user_id: str, occurrence_id: int, **fields: Any) -> Question:
        """
        Create a question attached to an occurrence.

        Raises:
            NotFoundError: If the occurrence is absent or not owned
        """
        require_owner(user_id)
        occurrence = self._get_occurrence(user_id, occurrence_id)

        question = Question(
            occurrence_id=occurrence.id,
            task_id=occurrence.task_id,
            user_id=user_id,
            **self._editable(fields),
        )
        self.session.add(question)
        self.session.flush()
        self.ledger.apply(occurrence.id, added=1)
        self.session.commit()
        self.session.refresh(question)

        self.ledger.settle([occurrence.id])
        logger.info("Question attached", question_id=question.id, occurrence_id=occurrence.id)
        return question

    def create_backlog(self, user_id: str, **fields: Any) -> Question:
        """Create a question in the backlog, with no occurrence."""
        require_owner(user_id)
        question = Question(user_id=user_id, occurrence_id=None, task_id=None, **self._editable(fields))
        self.session.add(question)
        self.session.commit()
        self.session.refresh(question)
        logger.info("Backlog question created", question_id=question.id)
        return question

    # ---- editing ----

    def update(self, user_id: str, question_id: int, **changes: Any) -> Question:
        """
        Update question content.

        When notes or solution change and the question already had either, the
        previous pair is appended to ``revisions`` first.
        """
        question = self.get(user_id, question_id)
        changes = self._editable(changes)
        if changes.get("title") is None:
            changes.pop("title", None)

        notes_changed = "notes" in changes and changes["notes"] != question.notes
        solution_changed = "solution" in changes and changes["solution"] != question.solution

        if (notes_changed or solution_changed) and (question.notes or question.solution):
            snapshot = {
                "notes": question.notes,
                "solution": question.solution,
                "edited_at": utcnow().isoformat(),
            }
            question.revisions = [*(question.revisions or []), snapshot]

        for name, value in changes.items():
            setattr(question, name, value)

        question.updated_at = utcnow()
        self.session.add(question)
        self.session.commit()
        self.session.refresh(question)
        return question

    def revisions(self, user_id: str, question_id: int) -> Dict[str, Any]:
        """Current notes/solution and the list of earlier revisions."""
        question = self.get(user_id, question_id)
        return {
            "current": {"notes": question.notes, "solution": question.solution},
            "revisions": list(question.revisions or []),
        }

    def toggle_starred(self, user_id: str, question_id: int) -> Question:
        question = self.get(user_id, question_id)
        question.starred = not question.starred
        question.updated_at = utcnow()
        self.session.add(question)
        self.session.commit()
        self.session.refresh(question)
        return question

    # ---- solve / reset / review ----

    def solve(self, user_id: str, question_id: int, now: Optional[datetime] = None) -> Question:
        """
        Mark a question solved and schedule its first review.

        The pending -> solved transition is a guarded update, so of two
        concurrent solves exactly one moves the occurrence's solved counter.

        Raises:
            NotFoundError: If the question is absent or not owned
            InvalidStateError: If the question is in the backlog or already solved
        """
        question = self.get(user_id, question_id)

        if question.occurrence_id is None:
            raise InvalidStateError(
                "Cannot solve a backlog question. Move it to a daily task first.",
                details={"question_id": question_id},
            )
        if question.status == QuestionStatus.SOLVED.value:
            raise InvalidStateError("Question is already solved", details={"question_id": question_id})

        now = to_utc_naive(now) if now else utcnow()
        occurrence_id = question.occurrence_id
        next_review_at = self.scheduler.first_review_at(question, now)

        solved = update_where(
            self.session,
            Question,
            question.id,
            [
                Question.deleted_at.is_(None),
                Question.status == QuestionStatus.PENDING.value,
                Question.occurrence_id == occurrence_id,
            ],
            status=QuestionStatus.SOLVED.value,
            solved_at=now,
            next_review_at=next_review_at,
            updated_at=now,
        )
        if not solved:
            self._transition_lost(user_id, question_id, "solve")

        self.ledger.apply(occurrence_id, solved=1)
        self.session.commit()
        self.session.refresh(question)

        self.ledger.settle([occurrence_id])
        logger.info(
            "Question solved",
            question_id=question.id,
            occurrence_id=occurrence_id,
            next_review_at=next_review_at.isoformat() if next_review_at else None,
        )
        return question

    def reset(self, user_id: str, question_id: int) -> Question:
        """
        Return a solved question to pending and forget its review history.

        Raises:
            InvalidStateError: If the question is not solved
        """
        question = self.get(user_id, question_id)
        if question.status != QuestionStatus.SOLVED.value:
            raise InvalidStateError("Question is not solved", details={"question_id": question_id})

        occurrence_id = question.occurrence_id
        reset = update_where(
            self.session,
            Question,
            question.id,
            [
                Question.deleted_at.is_(None),
                Question.status == QuestionStatus.SOLVED.value,
                _on_occurrence(occurrence_id),
            ],
            updated_at=utcnow(),
            **self.scheduler.reset_values(),
        )
        if not reset:
            self._transition_lost(user_id, question_id, "reset")

        if occurrence_id is not None:
            self.ledger.apply(occurrence_id, solved=-1)
        self.session.commit()
        self.session.refresh(question)

        if occurrence_id is not None:
            self.ledger.settle([occurrence_id])
        logger.info("Question reset", question_id=question.id)
        return question

    def review(self, user_id: str, question_id: int, now: Optional[datetime] = None) -> Question:
        """
        Record a spaced-repetition review.

        Raises:
            InvalidStateError: If the question is not solved
        """
        question = self.get(user_id, question_id)
        review_count = question.review_count
        self.scheduler.on_review(question, now)

        values = {
            "review_count": question.review_count,
            "last_reviewed_at": question.last_reviewed_at,
            "next_review_at": question.next_review_at,
            "updated_at": utcnow(),
        }
        # The guarded statement below is the only write; drop the in-memory edits
        self.session.expire(question)

        reviewed = update_where(
            self.session,
            Question,
            question_id,
            [
                Question.deleted_at.is_(None),
                Question.status == QuestionStatus.SOLVED.value,
                Question.review_count == review_count,
            ],
            **values,
        )
        if not reviewed:
            self._transition_lost(user_id, question_id, "review")

        self.session.commit()
        self.session.refresh(question)
        return question

    def due_for_review(
        self,
        user_id: str,
        now: Optional[datetime] = None,
        topic: Optional[str] = None,
        difficulty: Optional[str] = None,
    ) -> List[Question]:
        return self.scheduler.due_for_review(user_id, now=now, topic=topic, difficulty=difficulty)

    def _transition_lost(self, user_id: str, question_id: int, action: str) -> None:
        """
        Report a guarded update that matched no row.

        Rolls back, re-reads the question and raises the error its committed
        state calls for.
        """
        self.session.rollback()
        question = self.get(user_id, question_id)
        details = {"question_id": question_id, "status": question.status}

        if action == "solve" and question.status == QuestionStatus.SOLVED.value:
            raise InvalidStateError("Question is already solved", details=details)
        if action in ("reset", "review") and question.status != QuestionStatus.SOLVED.value:
            raise InvalidStateError("Question is not solved", details=details)
        if action == "move" and question.occurrence_id is not None:
            details["occurrence_id"] = question.occurrence_id
            raise InvalidStateError("Question is already assigned to a daily task", details=details)

        raise ConflictError("Question was changed by another request; try again", details=details)

    # ---- deletion ----

    def delete(self, user_id: str, question_id: int) -> Question:
        """
        Soft delete a question and release it from its occurrence's counters.

        Raises:
            NotFoundError: If the question is absent, already deleted or not owned
        """
        question = self.get(user_id, question_id)
        deltas = self._release(question.id)
        if deltas is None:
            self.session.rollback()
            raise NotFoundError("Question not found", details={"question_id": question_id})

        self.ledger.apply_many(deltas)
        self.session.commit()
        self.session.refresh(question)

        self.ledger.settle(deltas)
        logger.info("Question deleted", question_id=question_id)
        return question

    def bulk_delete(self, user_id: str, question_ids: Iterable[int]) -> int:
        """
        Soft delete every live owned question in ``question_ids``.

        Returns the number of questions deleted. Unknown or foreign ids are skipped.
        """
        require_owner(user_id)
        ids = list(dict.fromkeys(question_ids))
        if not ids:
            raise InvalidStateError("ids must be a non-empty array")

        questions = find_active(self.session, Question.id.in_(ids), Question.user_id == user_id)
        deleted, totals = self._release_all(question.id for question in questions)

        self.ledger.apply_many({occurrence_id: tuple(delta) for occurrence_id, delta in totals.items()})
        self.session.commit()
        self.ledger.settle(totals)

        logger.info("Questions deleted", requested=len(ids), deleted=deleted)
        return deleted

    def _release_all(self, question_ids: Iterable[int]) -> Tuple[int, Dict[int, List[int]]]:
        """Soft delete each question; return how many were deleted and the summed counter deltas."""
        deleted = 0
        totals: Dict[int, List[int]] = defaultdict(lambda: [0, 0])
        for question_id in question_ids:
            deltas = self._release(question_id)
            if deltas is None:
                continue
            deleted += 1
            for occurrence_id, (added, solved) in deltas.items():
                totals[occurrence_id][0] += added
                totals[occurrence_id][1] += solved
        return deleted, totals

    def _release(self, question_id: int) -> Optional[Dict[int, Tuple[int, int]]]:
        """
        Soft delete one question in the current transaction.

        The update is guarded on the status and occurrence read just before it,
        so the returned ``{occurrence_id: (added, solved)}`` deltas always match
        what the row held when it was deleted. Returns None when the question is
        gone or already deleted.

        Raises:
            ConflictError: If concurrent changes keep winning the guard
        """
        for _ in range(RELEASE_ATTEMPTS):
            question = self.session.get(Question, question_id, populate_existing=True)
            if question is None or question.deleted_at is not None:
                return None

            now = utcnow()
            released = update_where(
                self.session,
                Question,
                question_id,
                [
                    Question.deleted_at.is_(None),
                    Question.status == question.status,
                    _on_occurrence(question.occurrence_id),
                ],
                deleted_at=now,
                updated_at=now,
            )
            if not released:
                continue

            if question.occurrence_id is None:
                return {}
            solved = -1 if question.status == QuestionStatus.SOLVED.value else 0
            return {question.occurrence_id: (-1, solved)}

        raise ConflictError("Question kept changing while being deleted", details={"question_id": question_id})

    # ---- backlog moves ----

    def move_to_occurrence(self, user_id: str, question_id: int, occurrence_id: int) -> Question:
        """
        Attach a backlog question to an occurrence.

        Raises:
            InvalidStateError: If the question is already attached
            NotFoundError: If the question or occurrence is absent or not owned
        """
        question = self.get(user_id, question_id)
        if question.occurrence_id is not None:
            raise InvalidStateError(
                "Question is already assigned to a daily task",
                details={"question_id": question_id, "occurrence_id": question.occurrence_id},
            )
        occurrence = self._get_occurrence(user_id, occurrence_id)

        if not self._attach(question.id, occurrence):
            self._transition_lost(user_id, question_id, "move")

        self.ledger.apply(occurrence.id, added=1)
        self.session.commit()
        self.session.refresh(question)

        self.ledger.settle([occurrence.id])
        return question

    def bulk_move_to_occurrence(
        self, user_id: str, question_ids: Iterable[int], occurrence_id: int
    ) -> Dict[str, int]:
        """
        Attach every backlog question in ``question_ids`` to one occurrence.

        Questions that are already attached, deleted or not owned are skipped.
        """
        require_owner(user_id)
        ids = list(dict.fromkeys(question_ids))
        if not ids:
            raise InvalidStateError("questionIds must be a non-empty array")

        occurrence = self._get_occurrence(user_id, occurrence_id)
        backlog = find_active(
            self.session,
            Question.id.in_(ids),
            Question.user_id == user_id,
            Question.occurrence_id.is_(None),
        )

        moved = sum(1 for question in backlog if self._attach(question.id, occurrence))
        if moved:
            self.ledger.apply(occurrence.id, added=moved)
            self.session.commit()
            self.ledger.settle([occurrence.id])
        else:
            self.session.rollback()

        return {"moved_count": moved, "skipped_count": len(ids) - moved}

    def _attach(self, question_id: int, occurrence: Occurrence) -> bool:
        """Point a live backlog question at ``occurrence``; False if it is no longer in the backlog."""
        return update_where(
            self.session,
            Question,
            question_id,
            [Question.deleted_at.is_(None), Question.occurrence_id.is_(None)],
            occurrence_id=occurrence.id,
            task_id=occurrence.task_id,
            updated_at=utcnow(),
        )

    # ---- listings ----

    def tags(self, user_id: str) -> List[Dict[str, Any]]:
        """Every tag on the user's live questions with its usage count, most used first."""
        require_owner(user_id)
        counts: Counter = Counter()
        for question in find_active(self.session, Question.user_id == user_id):
            counts.update(set(question.tags or []))
        return [{"tag": tag, "count": count} for tag, count in _by_count(counts)]

    def topics(self, user_id: str, category: Optional[str] = None) -> List[Dict[str, Any]]:
        """
        Distinct topics with question counts, most used first.

        With ``category`` only questions attached to occurrences of that
        category are counted, so backlog questions drop out.
        """
        require_owner(user_id)
        criteria = [Question.user_id == user_id, Question.topic.is_not(None), Question.topic != ""]
        if category:
            criteria.append(
                Question.occurrence_id.in_(
                    select(Occurrence.id).where(
                        Occurrence.user_id == user_id,
                        Occurrence.category == category,
                    )
                )
            )
        return [{"topic": topic, "count": count} for topic, count in self._group_count(Question.topic, criteria)]

    def sources(self, user_id: str) -> List[Dict[str, Any]]:
        """Distinct sources with question counts, most used first."""
        require_owner(user_id)
        criteria = [Question.user_id == user_id, Question.source.is_not(None), Question.source != ""]
        return [{"source": source, "count": count} for source, count in self._group_count(Question.source, criteria)]

    def _group_count(self, column: Any, criteria: List[Any]) -> List[Tuple[str, int]]:
        statement = (
            select(column, func.count(Question.id))
            .where(Question.deleted_at.is_(None), *criteria)
            .group_by(column)
        )
        return _by_count(dict(self.session.exec(statement).all()))

    # ---- deduplication ----

    def deduplicate(self, user_id: str) -> Dict[str, Any]:
        """
        Soft delete live questions whose titles repeat, ignoring case.

        In each group of duplicates a solved question is kept over a pending
        one, then the earliest created. The rest are released from their
        occurrences' counters like any other delete.
        """
        require_owner(user_id)
        by_title: Dict[str, List[Question]] = defaultdict(list)
        for question in find_active(self.session, Question.user_id == user_id):
            by_title[question.title.strip().lower()].append(question)

        groups = []
        for questions in by_title.values():
            if len(questions) < 2:
                continue
            questions.sort(
                key=lambda q: (q.status != QuestionStatus.SOLVED.value, q.created_at, q.id)
            )
            keep, *duplicates = questions
            groups.append(
                {
                    "title": keep.title,
                    "kept": keep.id,
                    "deleted": [question.id for question in duplicates],
                }
            )
        groups.sort(key=lambda group: -len(group["deleted"]))

        if not groups:
            return {"deleted": 0, "groups": []}

        doomed = [question_id for group in groups for question_id in group["deleted"]]
        deleted, totals = self._release_all(doomed)

        self.ledger.apply_many({occurrence_id: tuple(delta) for occurrence_id, delta in totals.items()})
        self.session.commit()
        self.ledger.settle(totals)

        logger.info("Duplicate questions deleted", groups=len(groups), deleted=deleted)
        return {"deleted": deleted, "groups": groups}

    @staticmethod
    def _editable(fields: Dict[str, Any]) -> Dict[str, Any]:
        values = {name: value for name, value in fields.items() if name in EDITABLE_FIELDS}
        if "tags" in values and values["tags"] is None:
            values["tags"] = []
        return values


def _on_occurrence(occurrence_id: Optional[int]) -> Any:
    """Guard clause matching the occurrence a question was read with."""
    if occurrence_id is None:
        return Question.occurrence_id.is_(None)
    return Question.occurrence_id == occurrence_id


def _by_count(counts: Dict[str, int]) -> List[Tuple[str, int]]:
    return sorted(counts.items(), key=lambda item: (-item[1], item[0]))
