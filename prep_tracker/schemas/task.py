"""Task schemas."""
from datetime import date, datetime
from typing import Annotated, List, Optional

from pydantic import BaseModel, Field

CATEGORY_PATTERN = r"^(dsa|system_design|behavioral|machine_coding|language_framework)$"
FREQUENCY_PATTERN = r"^(daily|weekly|biweekly|monthly|custom)$"

Weekday = Annotated[int, Field(ge=0, le=6)]


class RecurrenceIn(BaseModel):
    """Recurrence rule as submitted by clients."""
    frequency: str = Field(..., pattern=FREQUENCY_PATTERN)
    days_of_week: Optional[List[Weekday]] = Field(None, max_length=7)  # 0=Sunday..6=Saturday
    interval: Optional[int] = Field(None, ge=1)  # custom: every N days
    start_date: date


class TaskCreate(BaseModel):
    """Schema for creating a task."""
    name: str = Field(..., min_length=1, max_length=200)
    category: str = Field(..., pattern=CATEGORY_PATTERN)
    target_question_count: int = Field(..., ge=1, le=100)
    is_recurring: bool = False
    recurrence: Optional[RecurrenceIn] = None
    end_date: Optional[date] = None


class TaskUpdate(BaseModel):
    """Schema for updating a task. Omitted fields stay as they are."""
    name: Optional[str] = Field(None, min_length=1, max_length=200)
    category: Optional[str] = Field(None, pattern=CATEGORY_PATTERN)
    target_question_count: Optional[int] = Field(None, ge=1, le=100)
    is_recurring: Optional[bool] = None
    recurrence: Optional[RecurrenceIn] = None
    end_date: Optional[date] = None
    status: Optional[str] = Field(None, pattern=r"^(active|completed)$")


class TaskResponse(BaseModel):
    """Schema for task API responses."""
    id: int
    user_id: str
    name: str
    category: str
    target_question_count: int
    is_recurring: bool
    frequency: Optional[str] = None
    days_of_week: Optional[List[int]] = None
    interval: Optional[int] = None
    start_date: Optional[datetime] = None
    end_date: Optional[datetime] = None
    status: str
    created_at: datetime
    updated_at: datetime

    class Config:
        from_attributes = True
