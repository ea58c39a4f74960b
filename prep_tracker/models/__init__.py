"""SQLModel table models."""

from .occurrence import Occurrence, OccurrenceStatus
from .question import Difficulty, Question, QuestionSource, QuestionStatus
from .task import PrepCategory, RecurrenceFrequency, Task, TaskStatus

__all__ = [
    "Difficulty",
    "Occurrence",
    "OccurrenceStatus",
    "PrepCategory",
    "Question",
    "QuestionSource",
    "QuestionStatus",
    "RecurrenceFrequency",
    "Task",
    "TaskStatus",
]
