"""Task router: task definitions and the days they resolve to."""
from datetime import date, datetime
from typing import Any, Dict, Optional

from fastapi import APIRouter, Depends, Query, status
from sqlmodel import Session

from prep_tracker.db.config import get_session
from prep_tracker.errors import InvalidStateError, create_success_response
from prep_tracker.middleware.auth import CurrentUser, get_current_user
from prep_tracker.schemas.occurrence import DayResolutionResponse, RangeResolutionResponse
from prep_tracker.schemas.task import TaskCreate, TaskResponse, TaskUpdate
from prep_tracker.services.materializer import InstanceMaterializer
from prep_tracker.services.task_service import TaskService
from prep_tracker.utils.dates import parse_date_param, utcnow

router = APIRouter(prefix="/tasks", tags=["Tasks"])


def get_task_service(session: Session = Depends(get_session)) -> TaskService:
    """Dependency for getting TaskService instance."""
    return TaskService(session)


def get_materializer(session: Session = Depends(get_session)) -> InstanceMaterializer:
    """Dependency for getting InstanceMaterializer instance."""
    return InstanceMaterializer(session)


def _parse_day(raw: str, name: str) -> date | datetime:
    try:
        return parse_date_param(raw)
    except ValueError:
        raise InvalidStateError(f"Invalid {name} date", details={name: raw})


@router.get("", response_model=Dict[str, Any])
def list_tasks(
    current_user: CurrentUser = Depends(get_current_user),
    service: TaskService = Depends(get_task_service),
    category: Optional[str] = Query(None, description="Filter by category"),
    task_status: Optional[str] = Query(None, alias="status", description="Filter by status: active, completed"),
    is_recurring: Optional[bool] = Query(None, description="Filter recurring or one-off tasks"),
):
    """List task definitions for the authenticated user."""
    tasks = service.get_by_user(
        current_user.user_id,
        category=category,
        status=task_status,
        is_recurring=is_recurring,
    )
    return create_success_response(
        {"tasks": [TaskResponse.model_validate(task) for task in tasks], "count": len(tasks)}
    )


@router.post("", response_model=Dict[str, Any], status_code=status.HTTP_201_CREATED)
def create_task(
    task_data: TaskCreate,
    current_user: CurrentUser = Depends(get_current_user),
    service: TaskService = Depends(get_task_service),
):
    """Create a task. One-off tasks get their occurrence immediately."""
    task = service.create(
        current_user.user_id,
        name=task_data.name,
        category=task_data.category,
        target_question_count=task_data.target_question_count,
        is_recurring=task_data.is_recurring,
        recurrence=task_data.recurrence.model_dump() if task_data.recurrence else None,
        end_date=task_data.end_date,
    )
    return create_success_response(TaskResponse.model_validate(task), message="Task created")


@router.get("/today", response_model=Dict[str, Any])
def get_today(
    current_user: CurrentUser = Depends(get_current_user),
    materializer: InstanceMaterializer = Depends(get_materializer),
):
    """Resolve everything due today in the reference timezone."""
    resolution = materializer.resolve_day(current_user.user_id, utcnow())
    return create_success_response(DayResolutionResponse.model_validate(resolution))


@router.get("/history", response_model=Dict[str, Any])
def get_history(
    current_user: CurrentUser = Depends(get_current_user),
    materializer: InstanceMaterializer = Depends(get_materializer),
    day: Optional[str] = Query(None, alias="date", description="Single day (YYYY-MM-DD or ISO datetime)"),
    start: Optional[str] = Query(None, alias="from", description="First day of an inclusive range"),
    end: Optional[str] = Query(None, alias="to", description="Last day of an inclusive range"),
):
    """Resolve a single past or future day, or an inclusive range of days."""
    if day:
        resolution = materializer.resolve_day(current_user.user_id, _parse_day(day, "date"))
        return create_success_response(DayResolutionResponse.model_validate(resolution))

    if start and end:
        resolution = materializer.resolve_range(
            current_user.user_id, _parse_day(start, "from"), _parse_day(end, "to")
        )
        return create_success_response(RangeResolutionResponse.model_validate(resolution))

    raise InvalidStateError("Provide either date or both from and to")


@router.get("/{task_id}", response_model=Dict[str, Any])
def get_task(
    task_id: int,
    current_user: CurrentUser = Depends(get_current_user),
    service: TaskService = Depends(get_task_service),
):
    """Get a specific task by ID."""
    task = service.get_by_id(current_user.user_id, task_id)
    return create_success_response(TaskResponse.model_validate(task))


@router.put("/{task_id}", response_model=Dict[str, Any])
def update_task(
    task_id: int,
    task_data: TaskUpdate,
    current_user: CurrentUser = Depends(get_current_user),
    service: TaskService = Depends(get_task_service),
):
    """Update a task. Occurrences already materialized keep their snapshot."""
    changes = task_data.model_dump(exclude_unset=True)
    task = service.update(current_user.user_id, task_id, **changes)
    return create_success_response(TaskResponse.model_validate(task), message="Task updated")


@router.delete("/{task_id}", response_model=Dict[str, Any])
def delete_task(
    task_id: int,
    current_user: CurrentUser = Depends(get_current_user),
    service: TaskService = Depends(get_task_service),
):
    """Delete a task together with its occurrences and questions."""
    service.delete(current_user.user_id, task_id)
    return create_success_response({"id": task_id}, message="Task deleted")
