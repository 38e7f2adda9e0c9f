"""
Assessment State Machine

Responsibility: Own one candidate's typing attempt from start to result.
Single purpose: Apply start/input/tick/restart transitions to the session,
detect completion and hand the frozen result to reconciliation.

    idle --start--> running --input reaches end of paragraph--> completed
                            --timer reaches zero----------> completed
    running|completed --restart--> idle

Every transition is synchronous and never blocks on I/O. Serializing
transitions is the caller's job (see the orchestrator); the machine itself
assumes one thread of control.
"""

import logging
from typing import Callable, Optional, Tuple

from ..core.diff import compare
from ..core.errors import (
    InvalidStateError,
    MissingCandidateError,
    NotReadyError,
    ValidationError,
)
from ..core.metrics import compute_metrics
from ..core.scheduler import TickScheduler
from ..core.timer import CountdownTimer
from ..schemas.assessment import (
    AssessmentSession,
    CharacterComparison,
    CompletionTrigger,
    Metrics,
    Phase,
    TypingTest,
)
from ..schemas.messages import AssessmentSnapshot, SubmissionOutcome, SubmissionStatus
from ..utils.formatting import accuracy_rating, format_time, timer_urgency

logger = logging.getLogger(__name__)

CompletionHook = Callable[[AssessmentSession, Metrics], None]
TickTarget = Callable[[int, Optional[str]], None]

SUBMISSION_FAILED_MESSAGE = "Failed to submit results. Please contact support."


class AssessmentStateMachine:
    """
    Lifecycle owner for a single typing assessment.

    The machine exclusively owns the current ``AssessmentSession`` and
    replaces it on every transition. The diff engine and metrics
    calculator only ever see read-only values.

    Args:
        scheduler: Tick source; started on ``start()``, stopped on
            completion and restart
        on_complete: Called exactly once per entry into ``completed`` with
            the frozen session and final metrics
        candidate_id: Identity of the candidate; required to start
        tick_target: Where scheduler ticks are delivered. Defaults to
            ``on_tick``; the orchestrator points it at its event queue.

    Example:
        >>> machine = AssessmentStateMachine(ManualScheduler(), candidate_id="c1")
        >>> machine.load_test(TypingTest(test_id="t1", reference_text="cat"))
        >>> machine.start(60)
        >>> machine.on_input("cat")
        >>> machine.phase
        <Phase.COMPLETED: 'completed'>
    """

    def __init__(
        self,
        scheduler: TickScheduler,
        on_complete: Optional[CompletionHook] = None,
        candidate_id: Optional[str] = None,
        tick_target: Optional[TickTarget] = None,
    ):
        self.candidate_id = candidate_id
        self._scheduler = scheduler
        self._on_complete = on_complete
        self._tick_target: TickTarget = tick_target or self.on_tick

        self._test: Optional[TypingTest] = None
        self._session: Optional[AssessmentSession] = None
        self._timer: Optional[CountdownTimer] = None
        self._final_metrics: Optional[Metrics] = None
        self._submission_status = SubmissionStatus.NOT_REQUIRED
        self._submission_error: Optional[str] = None
        self._submission_warnings: Tuple[str, ...] = ()

    # -------------------------------------------------------------------------
    # Transitions
    # -------------------------------------------------------------------------

    def load_test(self, test: TypingTest) -> None:
        """Install the reference paragraph for the next attempt."""
        if self.phase == Phase.RUNNING:
            raise self._invalid("load_test while running")
        if not test.reference_text or not test.reference_text.strip():
            raise ValidationError("Typing paragraph is required")
        if not test.duration_options:
            raise ValidationError("Typing test has no duration options")
        self._test = test

    def validate_start(self, duration_seconds: Optional[int] = None) -> int:
        """
        Check every start precondition without changing state.

        Returns:
            The duration that ``start`` would use.
        """
        if self._test is None:
            raise NotReadyError()
        if not self.candidate_id:
            raise MissingCandidateError()
        if self.phase != Phase.IDLE:
            raise self._invalid(f"start from {self.phase.value}")

        duration = self._test.default_duration if duration_seconds is None else duration_seconds
        if duration not in self._test.duration_options:
            allowed = ", ".join(str(d) for d in self._test.duration_options)
            raise ValidationError(f"Duration must be one of: {allowed} seconds")
        return duration

    def start(self, duration_seconds: Optional[int] = None) -> AssessmentSession:
        """
        Begin a fresh attempt.

        Raises:
            NotReadyError: No typing test loaded
            MissingCandidateError: No candidate identity
            InvalidStateError: Not idle
            ValidationError: Duration not offered by the test
        """
        duration = self.validate_start(duration_seconds)

        timer = CountdownTimer(duration)
        timer.start()
        session = AssessmentSession(
            candidate_id=self.candidate_id,
            test_id=self._test.test_id,
            reference_text=self._test.reference_text,
            duration_seconds=duration,
            remaining_seconds=duration,
        )

        self._timer = timer
        self._session = session
        self._reset_results()

        session_id = session.session_id
        self._scheduler.start(lambda ticks: self._tick_target(ticks, session_id))

        logger.info(
            f"Session {session_id[:8]} started for candidate {session.candidate_id} "
            f"({duration}s)"
        )
        return session

    def on_input(self, typed_text: str, delete_key: bool = False) -> bool:
        """
        Replace the typed text with the input field's current value.

        A shorter value or a reported delete key counts as one backspace.
        Reaching the length of the reference completes the attempt.

        Returns:
            False if the input was ignored (not running).
        """
        if self.phase != Phase.RUNNING:
            logger.debug(f"Ignoring input in phase {self.phase.value}")
            return False

        previous = self._session.typed_text
        backspaces = 1 if delete_key or len(typed_text) < len(previous) else 0
        self._session = self._session.with_input(typed_text, backspaces)

        if len(typed_text) >= len(self._session.reference_text):
            self._complete(CompletionTrigger.PARAGRAPH_FINISHED)
        return True

    def on_tick(self, ticks: int = 1, session_id: Optional[str] = None) -> bool:
        """
        Advance the countdown by ``ticks`` seconds (more than one when the
        scheduler is catching up).

        Returns:
            False if the tick was ignored (not running, or meant for a
            superseded session).
        """
        if self.phase != Phase.RUNNING:
            return False
        if session_id is not None and session_id != self._session.session_id:
            logger.debug(f"Dropping stale tick for session {session_id[:8]}")
            return False

        for _ in range(max(0, ticks)):
            if self._timer.tick():
                break

        self._session = self._session.with_remaining(self._timer.remaining_seconds)
        if self._timer.is_expired:
            self._complete(CompletionTrigger.TIME_EXPIRED)
        return True

    def restart(self) -> None:
        """Abandon the current attempt and everything computed for it."""
        self._scheduler.stop()
        if self._timer is not None:
            self._timer.stop()

        if self._session is not None:
            logger.info(
                f"Session {self._session.session_id[:8]} discarded "
                f"({self._session.phase.value})"
            )

        self._session = None
        self._timer = None
        self._reset_results()

    def record_submission(self, outcome: SubmissionOutcome) -> bool:
        """
        Apply a reconciliation outcome to the current session.

        Returns:
            False when the outcome belongs to a superseded session.
        """
        if self._session is None or outcome.session_id != self._session.session_id:
            logger.info(f"Dropping late submission result for session {outcome.session_id[:8]}")
            return False

        self._submission_status = outcome.status
        self._submission_warnings = outcome.warnings
        self._submission_error = (
            SUBMISSION_FAILED_MESSAGE if outcome.status == SubmissionStatus.FAILED else None
        )
        return True

    # -------------------------------------------------------------------------
    # Queries
    # -------------------------------------------------------------------------

    @property
    def phase(self) -> Phase:
        return self._session.phase if self._session is not None else Phase.IDLE

    @property
    def session(self) -> Optional[AssessmentSession]:
        return self._session

    @property
    def test(self) -> Optional[TypingTest]:
        return self._test

    @property
    def remaining_seconds(self) -> Optional[int]:
        return self._session.remaining_seconds if self._session is not None else None

    @property
    def backspace_count(self) -> int:
        return self._session.backspace_count if self._session is not None else 0

    @property
    def submission_status(self) -> SubmissionStatus:
        return self._submission_status

    @property
    def final_metrics(self) -> Optional[Metrics]:
        return self._final_metrics

    def comparisons(self) -> Tuple[CharacterComparison, ...]:
        if self._session is not None:
            return compare(self._session.reference_text, self._session.typed_text)
        if self._test is not None:
            return compare(self._test.reference_text, "")
        return ()

    def metrics(self) -> Metrics:
        """Live metrics while running, the frozen snapshot once completed."""
        if self._session is None:
            return Metrics()
        if self._final_metrics is not None:
            return self._final_metrics
        return self._compute(self._session)

    def snapshot(self) -> AssessmentSnapshot:
        metrics = self.metrics()
        session = self._session
        remaining = session.remaining_seconds if session is not None else None
        shown = remaining if remaining is not None else (
            self._test.default_duration if self._test is not None else 0
        )

        return AssessmentSnapshot(
            phase=self.phase,
            session_id=session.session_id if session is not None else None,
            remaining_seconds=remaining,
            duration_seconds=session.duration_seconds if session is not None else None,
            backspace_count=self.backspace_count,
            comparisons=self.comparisons(),
            metrics=metrics,
            submission_status=self._submission_status,
            submission_error=self._submission_error,
            submission_warnings=self._submission_warnings,
            time_display=format_time(shown),
            timer_urgency=timer_urgency(shown) if session is not None else "normal",
            accuracy_rating=(
                accuracy_rating(metrics.accuracy_percent) if self.phase == Phase.COMPLETED else ""
            ),
        )

    # -------------------------------------------------------------------------
    # Internals
    # -------------------------------------------------------------------------

    @staticmethod
    def _compute(session: AssessmentSession) -> Metrics:
        return compute_metrics(
            session.reference_text,
            session.typed_text,
            session.elapsed_seconds,
            session.backspace_count,
        )

    def _complete(self, trigger: CompletionTrigger) -> None:
        self._scheduler.stop()
        self._timer.stop()

        self._session = self._session.completed(trigger)
        self._final_metrics = self._compute(self._session)

        logger.info(
            f"Session {self._session.session_id[:8]} completed ({trigger.value}): "
            f"{self._final_metrics.wpm} WPM, {self._final_metrics.accuracy_percent}% accuracy"
        )

        if self._on_complete is not None:
            self._submission_status = SubmissionStatus.PENDING
            self._on_complete(self._session, self._final_metrics)

    def _reset_results(self) -> None:
        self._final_metrics = None
        self._submission_status = SubmissionStatus.NOT_REQUIRED
        self._submission_error = None
        self._submission_warnings = ()

    @staticmethod
    def _invalid(operation: str) -> InvalidStateError:
        logger.warning(f"Invalid state transition: {operation}")
        return InvalidStateError(f"Cannot {operation}")
