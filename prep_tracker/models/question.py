"""Question model: a piece of work optionally attached to an occurrence."""
from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Optional

from sqlalchemy import JSON, Column, Index
from sqlmodel import Field, SQLModel

from prep_tracker.models.columns import utc_column
from prep_tracker.utils.dates import utcnow


class QuestionStatus(str, Enum):
    PENDING = "pending"
    SOLVED = "solved"


class Difficulty(str, Enum):
    EASY = "easy"
    MEDIUM = "medium"
    HARD = "hard"


class QuestionSource(str, Enum):
    LEETCODE = "leetcode"
    GREATFRONTEND = "greatfrontend"
    GEEKSFORGEEKS = "geeksforgeeks"
    LINKEDIN = "linkedin"
    MEDIUM = "medium"
    OTHER = "other"


class Question(SQLModel, table=True):
    """
    A question in the backlog (no occurrence) or attached to one occurrence.

    Rows are soft deleted through ``deleted_at``; read them through the
    helpers in services.question_store so the predicate is never forgotten.
    """

    __table_args__ = (
        Index("ix_question_user_occurrence", "user_id", "occurrence_id"),
        Index("ix_question_user_status", "user_id", "status"),
        Index("ix_question_user_next_review", "user_id", "next_review_at"),
    )

    id: int | None = Field(default=None, primary_key=True)
    occurrence_id: Optional[int] = Field(default=None, foreign_key="occurrence.id")
    task_id: Optional[int] = Field(default=None, foreign_key="task.id")
    user_id: str = Field(max_length=255)

    title: str = Field(max_length=500)
    notes: Optional[str] = Field(default=None)
    solution: Optional[str] = Field(default=None)
    difficulty: Optional[str] = Field(default=None, max_length=20)
    topic: Optional[str] = Field(default=None, max_length=100)
    source: Optional[str] = Field(default=None, max_length=50)
    url: Optional[str] = Field(default=None, max_length=2000)
    tags: List[str] = Field(default_factory=list, sa_column=Column(JSON))
    starred: bool = Field(default=False)
    revisions: List[Dict[str, Any]] = Field(default_factory=list, sa_column=Column(JSON))

    status: str = Field(default=QuestionStatus.PENDING.value, max_length=20)
    solved_at: Optional[datetime] = Field(default=None, sa_column=utc_column())

    # Spaced repetition
    review_count: int = Field(default=0)
    next_review_at: Optional[datetime] = Field(default=None, sa_column=utc_column())
    last_reviewed_at: Optional[datetime] = Field(default=None, sa_column=utc_column())

    deleted_at: Optional[datetime] = Field(default=None, sa_column=utc_column(index=True))
    created_at: datetime = Field(default_factory=utcnow, sa_column=utc_column(nullable=False))
    updated_at: datetime = Field(default_factory=utcnow, sa_column=utc_column(nullable=False))
