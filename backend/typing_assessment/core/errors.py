"""
Error taxonomy for the typing assessment engine.

The diff engine and metrics calculator never raise for valid input; every
error below originates at a state machine transition, the reconciler or the
grading client.
"""

from typing import Optional


class AssessmentError(Exception):
    """Base class for all engine errors."""

    code = "assessment_error"
    default_message = "Assessment error"
    user_visible = True

    def __init__(self, message: str = ""):
        self.message = message or self.default_message
        super().__init__(self.message)

    def to_dict(self) -> dict:
        return {"code": self.code, "message": self.message}


class NotReadyError(AssessmentError):
    """Typing test has not been loaded yet."""

    code = "not_ready"
    default_message = "Typing test has not been loaded yet"


class MissingCandidateError(AssessmentError):
    """Candidate identity is required to take this test."""

    code = "missing_candidate"
    default_message = "Candidate ID is required"


class InvalidStateError(AssessmentError):
    """Operation is not valid in the current phase."""

    code = "invalid_state"
    default_message = "Operation not valid in the current phase"
    # Always a programming or race defect: log it, don't show it.
    user_visible = False


class ValidationError(AssessmentError):
    """Assessment input failed validation."""

    code = "validation_error"
    default_message = "Invalid assessment input"


class NotFoundError(AssessmentError):
    """Typing test not found or no longer active."""

    code = "not_found"
    default_message = "Typing test not found or inactive"


class NetworkError(AssessmentError):
    """
    A call to the grading service failed.

    ``retryable`` is True for connection failures, timeouts and 5xx
    responses; a 4xx answer will not change on retry.
    """

    code = "network_error"
    default_message = "Failed to reach the grading service"

    def __init__(
        self,
        message: str = "",
        status_code: Optional[int] = None,
        retryable: bool = True,
    ):
        super().__init__(message)
        self.status_code = status_code
        self.retryable = retryable

    def to_dict(self) -> dict:
        return {
            **super().to_dict(),
            "status_code": self.status_code,
            "retryable": self.retryable,
        }
