"""
Assessment schemas for the typing test engine.

These schemas define the fetched typing test, the per-attempt session,
the character comparison produced by the diff engine and the metrics
derived from it.
"""

from dataclasses import dataclass, field, replace
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, Optional, Tuple
from uuid import uuid4


class Phase(str, Enum):
    """Lifecycle of one assessment attempt."""
    IDLE = "idle"
    RUNNING = "running"
    COMPLETED = "completed"


class CharacterState(str, Enum):
    """Per-position result of comparing typed text to the reference."""
    CORRECT = "correct"
    INCORRECT = "incorrect"
    CURRENT = "current"  # cursor position, index == len(typed)
    PENDING = "pending"  # not reached yet


class CompletionTrigger(str, Enum):
    """What moved the session into the completed phase."""
    PARAGRAPH_FINISHED = "paragraph_finished"
    TIME_EXPIRED = "time_expired"


@dataclass(frozen=True)
class CharacterComparison:
    """One reference position and how the candidate's input relates to it."""
    index: int
    expected: str
    typed: Optional[str]
    state: CharacterState

    def to_dict(self) -> Dict[str, Any]:
        return {
            "index": self.index,
            "expected": self.expected,
            "typed": self.typed,
            "state": self.state.value,
        }


@dataclass(frozen=True)
class TypingTest:
    """
    A typing test as served by the recruitment backend.

    Durations are held in seconds; the wire format uses minutes and is
    converted by the grading client.
    """
    test_id: str
    reference_text: str
    duration_options: Tuple[int, ...] = (60, 120)
    default_duration: int = 60
    title: str = "Typing Speed Test"
    description: str = ""
    instructions: str = ""
    test_link: str = ""

    def to_dict(self) -> Dict[str, Any]:
        return {
            "test_id": self.test_id,
            "title": self.title,
            "description": self.description,
            "reference_text": self.reference_text,
            "duration_options": list(self.duration_options),
            "default_duration": self.default_duration,
            "instructions": self.instructions,
            "test_link": self.test_link,
        }


@dataclass(frozen=True)
class Metrics:
    """
    Live or final performance figures for one session.

    Always derived from the session by the metrics calculator; never
    stored on its own.
    """
    wpm: int = 0
    accuracy_percent: int = 0
    correct_character_count: int = 0
    error_count: int = 0
    total_typed_character_count: int = 0
    backspace_count: int = 0

    def to_dict(self) -> Dict[str, Any]:
        return {
            "wpm": self.wpm,
            "accuracy_percent": self.accuracy_percent,
            "correct_character_count": self.correct_character_count,
            "error_count": self.error_count,
            "total_typed_character_count": self.total_typed_character_count,
            "backspace_count": self.backspace_count,
        }


@dataclass(frozen=True)
class AssessmentSession:
    """
    Immutable state of one assessment attempt.

    The state machine owns the current instance and replaces it on every
    transition; nothing mutates a session in place.

    Attributes:
        session_id: Unique id, also the idempotency key for submission
        candidate_id: Candidate taking the test
        test_id: Typing test being taken
        reference_text: Paragraph to reproduce
        duration_seconds: Configured countdown length
        remaining_seconds: Countdown value, mirrors the timer
        typed_text: Everything typed so far (replaced per input event)
        backspace_count: Monotonic count of delete keystrokes
        phase: Current lifecycle phase
        started_at: ISO timestamp of start
        completed_at: ISO timestamp of completion, if any
        completion_trigger: Why the session completed, if it did
    """
    candidate_id: str
    test_id: str
    reference_text: str
    duration_seconds: int
    remaining_seconds: int
    session_id: str = field(default_factory=lambda: uuid4().hex)
    typed_text: str = ""
    backspace_count: int = 0
    phase: Phase = Phase.RUNNING
    started_at: Optional[str] = field(
        default_factory=lambda: datetime.now(timezone.utc).isoformat()
    )
    completed_at: Optional[str] = None
    completion_trigger: Optional[CompletionTrigger] = None

    # -------------------------------------------------------------------------
    # Immutable Update Methods
    # -------------------------------------------------------------------------

    def with_input(self, typed_text: str, backspaces: int = 0) -> "AssessmentSession":
        """Return a new session with the typed text replaced."""
        return replace(
            self,
            typed_text=typed_text,
            backspace_count=self.backspace_count + backspaces,
        )

    def with_remaining(self, remaining_seconds: int) -> "AssessmentSession":
        return replace(self, remaining_seconds=remaining_seconds)

    def completed(self, trigger: CompletionTrigger) -> "AssessmentSession":
        """Return a new session frozen in the completed phase."""
        return replace(
            self,
            phase=Phase.COMPLETED,
            completed_at=datetime.now(timezone.utc).isoformat(),
            completion_trigger=trigger,
        )

    # -------------------------------------------------------------------------
    # Query Methods
    # -------------------------------------------------------------------------

    @property
    def elapsed_seconds(self) -> int:
        """Seconds consumed on the countdown (not wall-clock time)."""
        return max(0, self.duration_seconds - self.remaining_seconds)

    @property
    def is_completed(self) -> bool:
        return self.phase == Phase.COMPLETED

    def to_dict(self) -> Dict[str, Any]:
        return {
            "session_id": self.session_id,
            "candidate_id": self.candidate_id,
            "test_id": self.test_id,
            "duration_seconds": self.duration_seconds,
            "remaining_seconds": self.remaining_seconds,
            "typed_text": self.typed_text,
            "backspace_count": self.backspace_count,
            "phase": self.phase.value,
            "started_at": self.started_at,
            "completed_at": self.completed_at,
            "completion_trigger": (
                self.completion_trigger.value if self.completion_trigger else None
            ),
        }
