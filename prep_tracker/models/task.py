"""Task definition model for SQLModel."""
from datetime import datetime
from enum import Enum
from typing import List, Optional

from sqlalchemy import JSON, Column, Index
from sqlmodel import Field, SQLModel

from prep_tracker.models.columns import utc_column
from prep_tracker.utils.dates import utcnow


class TaskStatus(str, Enum):
    ACTIVE = "active"
    COMPLETED = "completed"


class RecurrenceFrequency(str, Enum):
    DAILY = "daily"
    WEEKLY = "weekly"
    BIWEEKLY = "biweekly"
    MONTHLY = "monthly"
    CUSTOM = "custom"


class PrepCategory(str, Enum):
    DSA = "dsa"
    SYSTEM_DESIGN = "system_design"
    BEHAVIORAL = "behavioral"
    MACHINE_CODING = "machine_coding"
    LANGUAGE_FRAMEWORK = "language_framework"


class Task(SQLModel, table=True):
    """A named unit of recurring or one-off preparation work."""

    __table_args__ = (
        Index("ix_task_user_recurring", "user_id", "is_recurring"),
        Index("ix_task_user_status", "user_id", "status"),
    )

    id: int | None = Field(default=None, primary_key=True)
    user_id: str = Field(index=True, max_length=255)
    name: str = Field(max_length=200, min_length=1)
    category: str = Field(max_length=50)
    target_question_count: int = Field(ge=1)
    is_recurring: bool = Field(default=False)

    # Flat recurrence columns; services.recurrence turns them into a rule variant
    frequency: Optional[str] = Field(default=None, max_length=20)  # daily, weekly, biweekly, monthly, custom
    days_of_week: Optional[List[int]] = Field(default=None, sa_column=Column(JSON))  # 0=Sunday..6=Saturday
    interval: Optional[int] = Field(default=None)  # custom: every N days
    start_date: Optional[datetime] = Field(default=None, sa_column=utc_column())  # first day the rule can fire (naive UTC)

    end_date: Optional[datetime] = Field(default=None, sa_column=utc_column())  # inclusive hard end (naive UTC)
    status: str = Field(default=TaskStatus.ACTIVE.value, max_length=20)
    created_at: datetime = Field(default_factory=utcnow, sa_column=utc_column(nullable=False))
    updated_at: datetime = Field(default_factory=utcnow, sa_column=utc_column(nullable=False))
