"""
Custom exception classes and error handling.

Two families live here:

- APIException and friends: HTTP-shaped errors raised directly by routers.
- CognitiveEngineError and subclasses: domain errors raised by services.
  They carry the HTTP status and error code they map to, and main.py renders
  them with a single exception handler so services stay free of FastAPI.

Degraded outcomes (cap exceeded, duplicate event, stale recovery window) are
not exceptions; they are reported through return values.
"""
from fastapi import HTTPException, status
from typing import Optional, Dict, Any


class APIException(HTTPException):
    """Base API exception with consistent structure."""

    def __init__(
        self,
        status_code: int,
        detail: str,
        error_code: Optional[str] = None,
        headers: Optional[Dict[str, Any]] = None
    ):
        super().__init__(status_code=status_code, detail=detail, headers=headers)
        self.error_code = error_code


class NotFoundError(APIException):
    """Resource not found."""

    def __init__(self, resource: str, identifier: str):
        super().__init__(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"{resource} not found: {identifier}",
            error_code="NOT_FOUND"
        )


class ValidationError(APIException):
    """Validation error."""

    def __init__(self, detail: str, field: Optional[str] = None):
        error_code = f"VALIDATION_ERROR_{field.upper()}" if field else "VALIDATION_ERROR"
        super().__init__(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            detail=detail,
            error_code=error_code
        )


# ---------------------------------------------------------------------------
# Domain errors
# ---------------------------------------------------------------------------


class CognitiveEngineError(Exception):
    """Base class for errors surfaced by the skill-state engine."""

    status_code: int = status.HTTP_400_BAD_REQUEST
    error_code: str = "COGNITIVE_ENGINE_ERROR"

    def __init__(self, detail: str):
        super().__init__(detail)
        self.detail = detail


class UnknownSkillRoute(CognitiveEngineError):
    """A game/task identifier with no skill mapping. The event is rejected."""

    status_code = status.HTTP_422_UNPROCESSABLE_ENTITY
    error_code = "UNKNOWN_SKILL_ROUTE"

    def __init__(self, identifier: Optional[str]):
        super().__init__(f"No skill route for identifier: {identifier!r}")
        self.identifier = identifier


class NotCalibrated(CognitiveEngineError):
    """Operation needs a baseline snapshot and the user has none."""

    status_code = status.HTTP_409_CONFLICT
    error_code = "NOT_CALIBRATED"

    def __init__(self, user_id: str):
        super().__init__(f"User {user_id} has not completed calibration")
        self.user_id = user_id


class BaselineAlreadyCaptured(CognitiveEngineError):
    """The baseline snapshot is write-once."""

    status_code = status.HTTP_409_CONFLICT
    error_code = "BASELINE_ALREADY_CAPTURED"

    def __init__(self, user_id: str):
        super().__init__(f"Baseline already captured for user {user_id}")
        self.user_id = user_id
