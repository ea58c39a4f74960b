"""Question schemas."""
from datetime import datetime
from typing import Annotated, Any, Dict, List, Optional

from pydantic import BaseModel, Field

DIFFICULTY_PATTERN = r"^(easy|medium|hard)$"
SOURCE_PATTERN = r"^(leetcode|greatfrontend|geeksforgeeks|linkedin|medium|other)$"

Tag = Annotated[str, Field(max_length=50)]


class QuestionFields(BaseModel):
    """Content fields shared by every way of creating a question."""
    title: str = Field(..., min_length=1, max_length=500)
    notes: Optional[str] = Field(None, max_length=50000)
    solution: Optional[str] = Field(None, max_length=50000)
    difficulty: Optional[str] = Field(None, pattern=DIFFICULTY_PATTERN)
    topic: Optional[str] = Field(None, max_length=100)
    source: Optional[str] = Field(None, pattern=SOURCE_PATTERN)
    url: Optional[str] = Field(None, max_length=2000)
    tags: Optional[List[Tag]] = Field(None, max_length=20)


class QuestionCreate(QuestionFields):
    """Schema for attaching a new question to an occurrence."""
    occurrence_id: int


class BacklogQuestionCreate(QuestionFields):
    """Schema for adding a question to the backlog."""


class QuestionUpdate(BaseModel):
    """Schema for updating question content. Omitted fields stay as they are."""
    title: Optional[str] = Field(None, min_length=1, max_length=500)
    notes: Optional[str] = Field(None, max_length=50000)
    solution: Optional[str] = Field(None, max_length=50000)
    difficulty: Optional[str] = Field(None, pattern=DIFFICULTY_PATTERN)
    topic: Optional[str] = Field(None, max_length=100)
    source: Optional[str] = Field(None, pattern=SOURCE_PATTERN)
    url: Optional[str] = Field(None, max_length=2000)
    tags: Optional[List[Tag]] = Field(None, max_length=20)


class BulkDeleteRequest(BaseModel):
    ids: List[int] = Field(..., min_length=1, max_length=100)


class MoveRequest(BaseModel):
    occurrence_id: int


class BulkMoveRequest(BaseModel):
    question_ids: List[int] = Field(..., min_length=1, max_length=100)
    occurrence_id: int


class QuestionResponse(BaseModel):
    """Schema for question API responses."""
    id: int
    occurrence_id: Optional[int] = None
    task_id: Optional[int] = None
    user_id: str
    title: str
    notes: Optional[str] = None
    solution: Optional[str] = None
    difficulty: Optional[str] = None
    topic: Optional[str] = None
    source: Optional[str] = None
    url: Optional[str] = None
    tags: List[str] = []
    starred: bool = False
    status: str
    solved_at: Optional[datetime] = None
    review_count: int = 0
    next_review_at: Optional[datetime] = None
    last_reviewed_at: Optional[datetime] = None
    created_at: datetime
    updated_at: datetime

    class Config:
        from_attributes = True


class RevisionHistory(BaseModel):
    current: Dict[str, Optional[str]]
    revisions: List[Dict[str, Any]]
