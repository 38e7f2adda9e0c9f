"""
Message schemas exchanged between the engine and its collaborators.

Events flow into the orchestrator's queue, submission records flow out to
the grading authority, and snapshots flow out to the UI. Outcomes and
snapshots carry a ``to_dict`` for JSON transport.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional, Tuple

from .assessment import AssessmentSession, CharacterComparison, Metrics, Phase


class EventType(str, Enum):
    """Transitions the orchestrator serializes through its queue."""
    START = "start"
    INPUT = "input"
    TICK = "tick"
    RESTART = "restart"
    SUBMISSION_RESULT = "submission_result"


class SubmissionStatus(str, Enum):
    """Reconciliation state shown to the candidate after completion."""
    NOT_REQUIRED = "not_required"  # no completed session yet
    PENDING = "pending"
    SUCCEEDED = "succeeded"
    FAILED = "failed"


@dataclass
class AssessmentEvent:
    """
    Envelope for one state transition request.

    Attributes:
        event_type: Which transition to apply
        payload: Transition arguments (typed_text, duration_seconds, ...)
        session_id: Session the event was produced for, when it matters
            (ticks and submission results for a superseded session are
            dropped)
    """
    event_type: EventType
    payload: Dict[str, Any] = field(default_factory=dict)
    session_id: Optional[str] = None


@dataclass(frozen=True)
class SubmissionRecord:
    """
    Final result payload for the grading authority.

    ``session_id`` doubles as the idempotency key so the authority can
    accept a record at most once even if the transport retries.
    """
    session_id: str
    candidate_id: str
    test_id: str
    metrics: Metrics
    time_taken_seconds: int
    duration_seconds: int

    @property
    def idempotency_key(self) -> str:
        return self.session_id

    @classmethod
    def from_session(cls, session: AssessmentSession, metrics: Metrics) -> "SubmissionRecord":
        return cls(
            session_id=session.session_id,
            candidate_id=session.candidate_id,
            test_id=session.test_id,
            metrics=metrics,
            time_taken_seconds=session.elapsed_seconds,
            duration_seconds=session.duration_seconds,
        )


@dataclass(frozen=True)
class SubmissionReceipt:
    """Grading authority's answer to a submission."""
    accepted: bool = True
    warnings: Tuple[str, ...] = ()


@dataclass(frozen=True)
class SubmissionOutcome:
    """
    Single logical result of reconciling one completed session.

    Retries are folded into ``attempts``; the candidate only ever sees
    succeeded or failed.
    """
    session_id: str
    status: SubmissionStatus
    accepted: bool = False
    warnings: Tuple[str, ...] = ()
    attempts: int = 0
    error: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "session_id": self.session_id,
            "status": self.status.value,
            "accepted": self.accepted,
            "warnings": list(self.warnings),
            "attempts": self.attempts,
            "error": self.error,
        }


@dataclass(frozen=True)
class AssessmentSnapshot:
    """
    Read-only projection of the engine for the UI collaborator.

    The UI renders these values but computes none of them.
    """
    phase: Phase
    session_id: Optional[str]
    remaining_seconds: Optional[int]
    duration_seconds: Optional[int]
    backspace_count: int
    comparisons: Tuple[CharacterComparison, ...]
    metrics: Metrics
    submission_status: SubmissionStatus
    submission_error: Optional[str] = None
    submission_warnings: Tuple[str, ...] = ()
    time_display: str = ""
    timer_urgency: str = "normal"
    accuracy_rating: str = ""

    def to_dict(self) -> Dict[str, Any]:
        comparisons: List[Dict[str, Any]] = [c.to_dict() for c in self.comparisons]
        return {
            "phase": self.phase.value,
            "session_id": self.session_id,
            "remaining_seconds": self.remaining_seconds,
            "duration_seconds": self.duration_seconds,
            "backspace_count": self.backspace_count,
            "comparisons": comparisons,
            "metrics": self.metrics.to_dict(),
            "submission_status": self.submission_status.value,
            "submission_error": self.submission_error,
            "submission_warnings": list(self.submission_warnings),
            "time_display": self.time_display,
            "timer_urgency": self.timer_urgency,
            "accuracy_rating": self.accuracy_rating,
        }
