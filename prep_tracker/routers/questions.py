"""Question router: attach, solve, review and tidy up questions."""
from typing import Any, Dict, Optional

from fastapi import APIRouter, Depends, Query, status
from sqlmodel import Session

from prep_tracker.db.config import get_session
from prep_tracker.errors import create_success_response
from prep_tracker.middleware.auth import CurrentUser, get_current_user
from prep_tracker.schemas.question import (
    BacklogQuestionCreate,
    BulkDeleteRequest,
    BulkMoveRequest,
    MoveRequest,
    QuestionCreate,
    QuestionResponse,
    QuestionUpdate,
    RevisionHistory,
)
from prep_tracker.services.question_service import BACKLOG_EXCLUDE, QuestionService

router = APIRouter(prefix="/questions", tags=["Questions"])


def get_question_service(session: Session = Depends(get_session)) -> QuestionService:
    """Dependency for getting QuestionService instance."""
    return QuestionService(session)


def _one(question) -> QuestionResponse:
    return QuestionResponse.model_validate(question)


@router.get("", response_model=Dict[str, Any])
def list_questions(
    current_user: CurrentUser = Depends(get_current_user),
    service: QuestionService = Depends(get_question_service),
    occurrence_id: Optional[int] = Query(None, description="Only questions attached to this occurrence"),
    task_id: Optional[int] = Query(None, description="Only questions of this task"),
    backlog: str = Query(BACKLOG_EXCLUDE, pattern=r"^(exclude|only|all)$", description="Backlog handling"),
    question_status: Optional[str] = Query(None, alias="status", description="Filter by status: pending, solved"),
    difficulty: Optional[str] = Query(None, description="Filter by difficulty"),
    topic: Optional[str] = Query(None, description="Filter by topic"),
    source: Optional[str] = Query(None, description="Filter by source"),
    tag: Optional[str] = Query(None, description="Filter by specific tag"),
    starred: Optional[bool] = Query(None, description="Only starred questions"),
):
    """List questions for the authenticated user."""
    questions = service.get_by_user(
        current_user.user_id,
        occurrence_id=occurrence_id,
        task_id=task_id,
        backlog=backlog,
        status=question_status,
        difficulty=difficulty,
        topic=topic,
        source=source,
        tag=tag,
        starred=starred,
    )
    return create_success_response(
        {"questions": [_one(question) for question in questions], "count": len(questions)}
    )


@router.post("", response_model=Dict[str, Any], status_code=status.HTTP_201_CREATED)
def attach_question(
    question_data: QuestionCreate,
    current_user: CurrentUser = Depends(get_current_user),
    service: QuestionService = Depends(get_question_service),
):
    """Create a question attached to an occurrence."""
    fields = question_data.model_dump(exclude={"occurrence_id"}, exclude_none=True)
    question = service.create(current_user.user_id, question_data.occurrence_id, **fields)
    return create_success_response(_one(question), message="Question added")


@router.post("/backlog", response_model=Dict[str, Any], status_code=status.HTTP_201_CREATED)
def create_backlog_question(
    question_data: BacklogQuestionCreate,
    current_user: CurrentUser = Depends(get_current_user),
    service: QuestionService = Depends(get_question_service),
):
    """Create a question in the backlog."""
    question = service.create_backlog(current_user.user_id, **question_data.model_dump(exclude_none=True))
    return create_success_response(_one(question), message="Question added to backlog")


@router.get("/due-for-review", response_model=Dict[str, Any])
def due_for_review(
    current_user: CurrentUser = Depends(get_current_user),
    service: QuestionService = Depends(get_question_service),
    topic: Optional[str] = Query(None, description="Filter by topic"),
    difficulty: Optional[str] = Query(None, description="Filter by difficulty"),
):
    """Solved questions whose review is due, most overdue first."""
    questions = service.due_for_review(current_user.user_id, topic=topic, difficulty=difficulty)
    return create_success_response(
        {"questions": [_one(question) for question in questions], "count": len(questions)}
    )


@router.post("/bulk-delete", response_model=Dict[str, Any])
def bulk_delete_questions(
    request: BulkDeleteRequest,
    current_user: CurrentUser = Depends(get_current_user),
    service: QuestionService = Depends(get_question_service),
):
    deleted = service.bulk_delete(current_user.user_id, request.ids)
    return create_success_response({"deleted_count": deleted})


@router.post("/bulk-move", response_model=Dict[str, Any])
def bulk_move_questions(
    request: BulkMoveRequest,
    current_user: CurrentUser = Depends(get_current_user),
    service: QuestionService = Depends(get_question_service),
):
    """Move backlog questions onto one occurrence."""
    result = service.bulk_move_to_occurrence(current_user.user_id, request.question_ids, request.occurrence_id)
    return create_success_response(result)


@router.get("/tags", response_model=Dict[str, Any])
def list_tags(
    current_user: CurrentUser = Depends(get_current_user),
    service: QuestionService = Depends(get_question_service),
):
    """Tags in use with their question counts."""
    return create_success_response(service.tags(current_user.user_id))


@router.get("/topics", response_model=Dict[str, Any])
def list_topics(
    current_user: CurrentUser = Depends(get_current_user),
    service: QuestionService = Depends(get_question_service),
    category: Optional[str] = Query(None, description="Only topics of this category"),
):
    return create_success_response(service.topics(current_user.user_id, category=category))


@router.get("/sources", response_model=Dict[str, Any])
def list_sources(
    current_user: CurrentUser = Depends(get_current_user),
    service: QuestionService = Depends(get_question_service),
):
    return create_success_response(service.sources(current_user.user_id))


@router.post("/deduplicate", response_model=Dict[str, Any])
def deduplicate_questions(
    current_user: CurrentUser = Depends(get_current_user),
    service: QuestionService = Depends(get_question_service),
):
    """Delete questions whose titles repeat, keeping the best copy of each."""
    result = service.deduplicate(current_user.user_id)
    message = f"Deleted {result['deleted']} duplicate questions" if result["deleted"] else "No duplicates found"
    return create_success_response(result, message=message)


@router.get("/{question_id}", response_model=Dict[str, Any])
def get_question(
    question_id: int,
    current_user: CurrentUser = Depends(get_current_user),
    service: QuestionService = Depends(get_question_service),
):
    return create_success_response(_one(service.get(current_user.user_id, question_id)))


@router.put("/{question_id}", response_model=Dict[str, Any])
def update_question(
    question_id: int,
    question_data: QuestionUpdate,
    current_user: CurrentUser = Depends(get_current_user),
    service: QuestionService = Depends(get_question_service),
):
    """Update question content, keeping earlier notes and solutions as revisions."""
    question = service.update(current_user.user_id, question_id, **question_data.model_dump(exclude_unset=True))
    return create_success_response(_one(question), message="Question updated")


@router.delete("/{question_id}", response_model=Dict[str, Any])
def delete_question(
    question_id: int,
    current_user: CurrentUser = Depends(get_current_user),
    service: QuestionService = Depends(get_question_service),
):
    service.delete(current_user.user_id, question_id)
    return create_success_response({"id": question_id}, message="Question deleted")


@router.post("/{question_id}/solve", response_model=Dict[str, Any])
def solve_question(
    question_id: int,
    current_user: CurrentUser = Depends(get_current_user),
    service: QuestionService = Depends(get_question_service),
):
    """Mark a question solved and schedule its first review."""
    return create_success_response(_one(service.solve(current_user.user_id, question_id)))


@router.post("/{question_id}/reset", response_model=Dict[str, Any])
def reset_question(
    question_id: int,
    current_user: CurrentUser = Depends(get_current_user),
    service: QuestionService = Depends(get_question_service),
):
    return create_success_response(_one(service.reset(current_user.user_id, question_id)))


@router.post("/{question_id}/review", response_model=Dict[str, Any])
def review_question(
    question_id: int,
    current_user: CurrentUser = Depends(get_current_user),
    service: QuestionService = Depends(get_question_service),
):
    """Record a spaced-repetition review."""
    return create_success_response(_one(service.review(current_user.user_id, question_id)))


@router.post("/{question_id}/star", response_model=Dict[str, Any])
def toggle_star(
    question_id: int,
    current_user: CurrentUser = Depends(get_current_user),
    service: QuestionService = Depends(get_question_service),
):
    return create_success_response(_one(service.toggle_starred(current_user.user_id, question_id)))


@router.get("/{question_id}/revisions", response_model=Dict[str, Any])
def get_revisions(
    question_id: int,
    current_user: CurrentUser = Depends(get_current_user),
    service: QuestionService = Depends(get_question_service),
):
    history = service.revisions(current_user.user_id, question_id)
    return create_success_response(RevisionHistory(**history))


@router.post("/{question_id}/move", response_model=Dict[str, Any])
def move_question(
    question_id: int,
    request: MoveRequest,
    current_user: CurrentUser = Depends(get_current_user),
    service: QuestionService = Depends(get_question_service),
):
    """Attach a backlog question to an occurrence."""
    question = service.move_to_occurrence(current_user.user_id, question_id, request.occurrence_id)
    return create_success_response(_one(question), message="Question moved")
