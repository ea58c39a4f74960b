"""Occurrence router."""
from typing import Any, Dict

from fastapi import APIRouter, Depends

from prep_tracker.errors import create_success_response
from prep_tracker.middleware.auth import CurrentUser, get_current_user
from prep_tracker.routers.tasks import get_materializer
from prep_tracker.schemas.occurrence import ResolvedOccurrenceResponse
from prep_tracker.services.materializer import InstanceMaterializer

router = APIRouter(prefix="/occurrences", tags=["Occurrences"])


@router.get("/{occurrence_id}", response_model=Dict[str, Any])
def get_occurrence(
    occurrence_id: int,
    current_user: CurrentUser = Depends(get_current_user),
    materializer: InstanceMaterializer = Depends(get_materializer),
):
    """Get one occurrence with its questions."""
    resolved = materializer.get_occurrence(current_user.user_id, occurrence_id)
    return create_success_response(ResolvedOccurrenceResponse.model_validate(resolved))
