"""Occurrence and day-resolution schemas."""
from datetime import date, datetime
from typing import List

from pydantic import BaseModel

from prep_tracker.schemas.question import QuestionResponse


class OccurrenceResponse(BaseModel):
    """Schema for a materialized occurrence."""
    id: int
    task_id: int
    user_id: str
    date: datetime
    task_name: str
    category: str
    target_question_count: int
    added_count: int
    solved_count: int
    status: str
    created_at: datetime
    updated_at: datetime

    class Config:
        from_attributes = True


class ResolvedOccurrenceResponse(BaseModel):
    occurrence: OccurrenceResponse
    questions: List[QuestionResponse] = []

    class Config:
        from_attributes = True


class StatusSummaryResponse(BaseModel):
    total: int
    completed: int
    incomplete: int
    in_progress: int
    pending: int

    class Config:
        from_attributes = True


class CategoryGroupResponse(BaseModel):
    category: str
    summary: StatusSummaryResponse
    occurrences: List[ResolvedOccurrenceResponse]

    class Config:
        from_attributes = True


class DayResolutionResponse(BaseModel):
    """Everything due on one reference-timezone day."""
    date: date
    summary: StatusSummaryResponse
    groups: List[CategoryGroupResponse]

    class Config:
        from_attributes = True


class RangeResolutionResponse(BaseModel):
    start: date
    end: date
    days: List[DayResolutionResponse]

    class Config:
        from_attributes = True
