"""
Error taxonomy for the tracker services.

Every failure a caller can observe is a PrepTrackerError carrying a stable
code. The HTTP layer turns these into the tagged failure envelope built by
create_error_response.
"""

from typing import Any, Dict, Optional


class PrepTrackerError(Exception):
    """Base exception for service errors"""

    code = "INTERNAL_ERROR"
    status_code = 500

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        self.message = message
        self.details = details or {}
        super().__init__(self.message)


class NotFoundError(PrepTrackerError):
    """Referenced task, occurrence or question is absent or not owned by the caller."""

    code = "NOT_FOUND"
    status_code = 404


class InvalidStateError(PrepTrackerError):
    """The operation is not legal for the current state of the resource."""

    code = "INVALID_STATE"
    status_code = 400


class ConflictError(PrepTrackerError):
    """A concurrent request changed the same row first."""

    code = "CONFLICT"
    status_code = 409


class UnauthorizedError(PrepTrackerError):
    """No owner context was supplied."""

    code = "UNAUTHORIZED"
    status_code = 401


def require_owner(user_id: Optional[str]) -> str:
    """
    Validate that an owner id is present and non-empty.

    Raises:
        UnauthorizedError: If user_id is missing
    """
    if not user_id or not isinstance(user_id, str):
        raise UnauthorizedError("Invalid or missing user_id", details={"field": "user_id"})
    return user_id


def create_error_response(error: PrepTrackerError) -> Dict[str, Any]:
    """
    Create a standardized error response

    Args:
        error: The PrepTrackerError to convert

    Returns:
        Standardized error response dictionary
    """
    return {
        "success": False,
        "error": {
            "code": error.code,
            "message": error.message,
            "details": error.details,
        },
    }


def create_success_response(data: Any, message: Optional[str] = None) -> Dict[str, Any]:
    """
    Create a standardized success response

    Args:
        data: The response data
        message: Optional success message

    Returns:
        Standardized success response dictionary
    """
    response = {
        "success": True,
        "data": data,
    }

    if message:
        response["message"] = message

    return response
