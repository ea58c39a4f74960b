"""Task service: CRUD for task definitions."""
from datetime import date, datetime
from typing import Any, Dict, Iterable, List, Optional

from sqlalchemy import delete
from sqlmodel import Session, select

from prep_tracker.errors import InvalidStateError, NotFoundError, require_owner
from prep_tracker.models.occurrence import Occurrence
from prep_tracker.models.question import Question
from prep_tracker.models.task import Task, TaskStatus
from prep_tracker.services.materializer import InstanceMaterializer
from prep_tracker.services.recurrence import recurrence_from_fields
from prep_tracker.utils.dates import day_window, utcnow
from prep_tracker.utils.logger import get_logger

logger = get_logger(__name__)


def _day_start(value: Optional[date | datetime]) -> Optional[datetime]:
    """Store dates as the naive-UTC start of their reference-timezone day."""
    if value is None:
        return None
    return day_window(value).start


class TaskService:
    """Service class for task definition CRUD operations."""

    def __init__(self, session: Session):
        self.session = session
        self.materializer = InstanceMaterializer(session)

    def create(
        self,
        user_id: str,
        name: str,
        category: str,
        target_question_count: int,
        is_recurring: bool = False,
        recurrence: Optional[Dict[str, Any]] = None,
        end_date: Optional[date | datetime] = None,
        today: Optional[date | datetime] = None,
    ) -> Task:
        """
        Create a task definition.

        A one-off task gets its single occurrence right away, on its start date
        when one is given and on ``today`` otherwise.

        Raises:
            InvalidStateError: If a recurring task has no usable recurrence rule
        """
        require_owner(user_id)
        recurrence = dict(recurrence or {})
        self._check_recurrence(is_recurring, recurrence)

        task = Task(
            user_id=user_id,
            name=name,
            category=category,
            target_question_count=target_question_count,
            is_recurring=is_recurring,
            frequency=recurrence.get("frequency"),
            days_of_week=self._days(recurrence.get("days_of_week")),
            interval=recurrence.get("interval"),
            start_date=_day_start(recurrence.get("start_date")),
            end_date=_day_start(end_date),
            status=TaskStatus.ACTIVE.value,
        )
        self.session.add(task)
        self.session.commit()
        self.session.refresh(task)

        if not is_recurring:
            day = task.start_date or today or utcnow()
            occurrence = self.materializer.materialize(task, day)
            logger.info("One-off task materialized", task_id=task.id, occurrence_id=occurrence.id)

        logger.info("Task created", task_id=task.id, user_id=user_id, is_recurring=is_recurring)
        return task

    def get_by_user(
        self,
        user_id: str,
        category: Optional[str] = None,
        status: Optional[str] = None,
        is_recurring: Optional[bool] = None,
    ) -> List[Task]:
        """Get all tasks for a user with optional filters, newest first."""
        require_owner(user_id)
        statement = select(Task).where(Task.user_id == user_id)

        if category:
            statement = statement.where(Task.category == category)
        if status:
            statement = statement.where(Task.status == status)
        if is_recurring is not None:
            statement = statement.where(Task.is_recurring == is_recurring)

        statement = statement.order_by(Task.created_at.desc(), Task.id.desc())
        return list(self.session.exec(statement).all())

    def get_by_id(self, user_id: str, task_id: int) -> Task:
        """
        Get a specific task by ID, ensuring user ownership.

        Raises:
            NotFoundError: If the task is absent or not owned
        """
        require_owner(user_id)
        statement = select(Task).where(Task.id == task_id, Task.user_id == user_id)
        task = self.session.exec(statement).first()
        if task is None:
            raise NotFoundError("Task not found", details={"task_id": task_id})
        return task

    def update(self, user_id: str, task_id: int, **changes: Any) -> Task:
        """
        Update a task, ensuring user ownership.

        Occurrences already materialized keep their snapshot; only days
        resolved afterwards see the new definition.
        """
        task = self.get_by_id(user_id, task_id)

        for name in ("name", "category", "target_question_count", "is_recurring", "status"):
            if name in changes and changes[name] is not None:
                setattr(task, name, changes[name])

        if "recurrence" in changes and changes["recurrence"] is not None:
            recurrence = dict(changes["recurrence"])
            task.frequency = recurrence.get("frequency")
            task.days_of_week = self._days(recurrence.get("days_of_week"))
            task.interval = recurrence.get("interval")
            task.start_date = _day_start(recurrence.get("start_date"))

        if "end_date" in changes:
            task.end_date = _day_start(changes["end_date"])

        self._check_recurrence(
            task.is_recurring,
            {"frequency": task.frequency, "start_date": task.start_date},
        )

        task.updated_at = utcnow()
        self.session.add(task)
        self.session.commit()
        self.session.refresh(task)
        logger.info("Task updated", task_id=task.id)
        return task

    def delete(self, user_id: str, task_id: int) -> None:
        """Delete a task together with its occurrences and their questions."""
        task = self.get_by_id(user_id, task_id)

        occurrence_ids = select(Occurrence.id).where(Occurrence.task_id == task.id)
        self.session.connection().execute(
            delete(Question).where(
                (Question.task_id == task.id) | (Question.occurrence_id.in_(occurrence_ids))
            )
        )
        self.session.connection().execute(delete(Occurrence).where(Occurrence.task_id == task.id))
        self.session.delete(task)
        self.session.commit()
        logger.info("Task deleted", task_id=task_id, user_id=user_id)

    @staticmethod
    def _days(days: Optional[Iterable[int]]) -> Optional[List[int]]:
        if days is None:
            return None
        return sorted(set(days))

    @staticmethod
    def _check_recurrence(is_recurring: bool, recurrence: Dict[str, Any]) -> None:
        if not is_recurring:
            return
        if not recurrence.get("frequency") or recurrence.get("start_date") is None:
            raise InvalidStateError(
                "Recurring tasks require a recurrence with a frequency and a start date"
            )
        try:
            recurrence_from_fields(recurrence["frequency"])
        except ValueError:
            raise InvalidStateError(
                f"Unknown recurrence frequency: {recurrence['frequency']}"
            )
