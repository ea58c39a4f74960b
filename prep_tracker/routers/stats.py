"""Stats router: read-only progress summaries."""
from typing import Any, Dict, Optional

from fastapi import APIRouter, Depends, Query
from sqlmodel import Session

from prep_tracker.db.config import get_session
from prep_tracker.errors import create_success_response
from prep_tracker.middleware.auth import CurrentUser, get_current_user
from prep_tracker.services.stats_service import StatsService

router = APIRouter(prefix="/stats", tags=["Stats"])


def get_stats_service(session: Session = Depends(get_session)) -> StatsService:
    """Dependency for getting StatsService instance."""
    return StatsService(session)


@router.get("/overview", response_model=Dict[str, Any])
def overview(
    current_user: CurrentUser = Depends(get_current_user),
    service: StatsService = Depends(get_stats_service),
):
    """Question totals by status, category and difficulty."""
    return create_success_response(service.overview(current_user.user_id))


@router.get("/categories", response_model=Dict[str, Any])
def categories(
    current_user: CurrentUser = Depends(get_current_user),
    service: StatsService = Depends(get_stats_service),
):
    return create_success_response(service.categories(current_user.user_id))


@router.get("/difficulties", response_model=Dict[str, Any])
def difficulties(
    current_user: CurrentUser = Depends(get_current_user),
    service: StatsService = Depends(get_stats_service),
):
    return create_success_response(service.difficulties(current_user.user_id))


@router.get("/topics", response_model=Dict[str, Any])
def topics(
    current_user: CurrentUser = Depends(get_current_user),
    service: StatsService = Depends(get_stats_service),
    category: Optional[str] = Query(None, description="Only topics of this category"),
):
    return create_success_response(service.topics(current_user.user_id, category=category))


@router.get("/streaks", response_model=Dict[str, Any])
def streaks(
    current_user: CurrentUser = Depends(get_current_user),
    service: StatsService = Depends(get_stats_service),
):
    """Current and longest runs of days with a completed task."""
    return create_success_response(service.streaks(current_user.user_id))


@router.get("/progress", response_model=Dict[str, Any])
def progress(
    current_user: CurrentUser = Depends(get_current_user),
    service: StatsService = Depends(get_stats_service),
    days: int = Query(30, description="How many days back to report"),
):
    """Questions solved per day over the last ``days`` days."""
    return create_success_response(service.progress(current_user.user_id, days=days))
