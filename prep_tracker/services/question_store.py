"""
Read helpers for questions.

Questions are soft deleted. Every read goes through these helpers, which add
the ``deleted_at IS NULL`` predicate explicitly at the call site.
"""
from typing import Any, List, Optional

from sqlmodel import Session, select

from prep_tracker.models.question import Question


def select_active(*criteria: Any):
    """Build a select over live questions matching ``criteria``."""
    return select(Question).where(Question.deleted_at.is_(None), *criteria)


def find_active(session: Session, *criteria: Any, order_by: Any = None) -> List[Question]:
    """Return live questions matching ``criteria``."""
    statement = select_active(*criteria)
    if order_by is not None:
        statement = statement.order_by(order_by)
    return list(session.exec(statement).all())


def get_active(session: Session, question_id: int, user_id: str) -> Optional[Question]:
    """Return one live question owned by ``user_id``, or None."""
    statement = select_active(Question.id == question_id, Question.user_id == user_id)
    return session.exec(statement).first()
