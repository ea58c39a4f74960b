"""Occurrence model: one task materialized on one calendar day."""
from datetime import datetime
from enum import Enum

from sqlalchemy import CheckConstraint, Index, UniqueConstraint
from sqlmodel import Field, SQLModel

from prep_tracker.models.columns import utc_column
from prep_tracker.utils.dates import utcnow


class OccurrenceStatus(str, Enum):
    PENDING = "pending"
    INCOMPLETE = "incomplete"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"


class Occurrence(SQLModel, table=True):
    """
    Date-scoped materialization of a task for its owner.

    The unique (task_id, user_id, date) index is what keeps concurrent
    materialization from creating duplicates. ``status`` is a cache of the
    counters and is only written by the counter ledger.
    """

    __table_args__ = (
        UniqueConstraint("task_id", "user_id", "date", name="uq_occurrence_task_user_date"),
        Index("ix_occurrence_user_date", "user_id", "date"),
        CheckConstraint("added_count >= 0", name="ck_occurrence_added_count"),
        CheckConstraint(
            "solved_count >= 0 AND solved_count <= added_count",
            name="ck_occurrence_solved_count",
        ),
    )

    id: int | None = Field(default=None, primary_key=True)
    task_id: int = Field(foreign_key="task.id", index=True)
    user_id: str = Field(max_length=255)
    date: datetime = Field(sa_column=utc_column(nullable=False))  # start of the reference-timezone day, naive UTC

    # Snapshot of the task at materialization time
    task_name: str = Field(max_length=200)
    category: str = Field(max_length=50)
    target_question_count: int

    added_count: int = Field(default=0)
    solved_count: int = Field(default=0)
    status: str = Field(default=OccurrenceStatus.PENDING.value, max_length=20)
    created_at: datetime = Field(default_factory=utcnow, sa_column=utc_column(nullable=False))
    updated_at: datetime = Field(default_factory=utcnow, sa_column=utc_column(nullable=False))
