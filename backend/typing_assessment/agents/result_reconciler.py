"""
Result Reconciler Agent

Responsibility: Deliver a completed session's final result to the grading
authority exactly once.
Single purpose: Build the submission record, post it, fold transient
failures into a bounded retry, and report one logical outcome.

This agent does NOT compute metrics or change the session phase. The
completed score is already on screen when it runs.
"""

import logging
import time
from dataclasses import dataclass
from typing import Callable, Optional, Tuple

from .base import AgentResponse, BaseAgent
from ..core.errors import InvalidStateError, NetworkError
from ..schemas.assessment import AssessmentSession, Metrics
from ..schemas.messages import (
    SubmissionOutcome,
    SubmissionReceipt,
    SubmissionRecord,
    SubmissionStatus,
)
from ..utils.grading_client import GradingServiceClient

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ReconcileInput:
    """Frozen final session plus its frozen metrics."""
    session: AssessmentSession
    metrics: Metrics


class ResultReconcilerAgent(BaseAgent[ReconcileInput, SubmissionOutcome]):
    """
    Submits final metrics to the grading authority.

    Input: ReconcileInput (completed session + final metrics)
    Output: SubmissionOutcome (succeeded or failed, attempts folded in)

    Key responsibilities:
    - Key every attempt by session id so the authority accepts it once
    - Retry only transient failures, at most ``max_attempts`` in total,
      with exponential backoff
    - Never report more than one logical outcome per run

    Does NOT:
    - Guarantee one run per session (the orchestrator does)
    - Touch the state machine
    """

    name = "result_reconciler"
    description = (
        "Submits completed typing assessment results to the grading "
        "service once, with a bounded retry on transient failures."
    )

    def __init__(
        self,
        client: GradingServiceClient,
        max_attempts: int = 2,
        backoff_seconds: float = 1.0,
        sleep: Callable[[float], None] = time.sleep,
        agent_id: Optional[str] = None,
    ):
        super().__init__(agent_id=agent_id)
        if max_attempts < 1:
            raise ValueError(f"max_attempts must be at least 1, got {max_attempts}")
        self.client = client
        self.max_attempts = max_attempts
        self.backoff_seconds = backoff_seconds
        self._sleep = sleep

    def run(self, input_data: ReconcileInput) -> AgentResponse[SubmissionOutcome]:
        """
        Submit one completed session.

        Args:
            input_data: Completed session and its final metrics

        Returns:
            AgentResponse whose output is always a SubmissionOutcome; status
            SUCCESS only when the authority accepted the record.
        """
        session = input_data.session

        try:
            if not session.is_completed:
                raise InvalidStateError(
                    f"Session {session.session_id[:8]} is {session.phase.value}, not completed"
                )
            record = SubmissionRecord.from_session(session, input_data.metrics)
        except InvalidStateError as e:
            logger.warning(e.message)
            return self._failure(
                error=e.message,
                explanation="Only completed sessions can be submitted",
                output=SubmissionOutcome(
                    session_id=session.session_id,
                    status=SubmissionStatus.FAILED,
                    error=e.message,
                ),
                metadata={"code": e.code},
            )

        self.log_reasoning(
            f"Submitting session {record.session_id[:8]} for candidate "
            f"{record.candidate_id[:8]}: {record.metrics.wpm} WPM, "
            f"{record.metrics.accuracy_percent}% accuracy"
        )

        try:
            attempts, response = self._submit_with_retry(record)
        except Exception as e:
            logger.exception(f"Unexpected error submitting session {record.session_id[:8]}")
            outcome = SubmissionOutcome(
                session_id=record.session_id,
                status=SubmissionStatus.FAILED,
                error=str(e),
            )
            return self._failure(
                error=str(e),
                explanation=f"Submission failed unexpectedly: {e}",
                output=outcome,
            )

        receipt: Optional[SubmissionReceipt] = response.output

        if response.is_successful() and receipt is not None and receipt.accepted:
            outcome = SubmissionOutcome(
                session_id=record.session_id,
                status=SubmissionStatus.SUCCEEDED,
                accepted=True,
                warnings=receipt.warnings,
                attempts=attempts,
            )
            self.log_reasoning(f"Accepted after {attempts} attempt(s)")
            logger.info(f"Session {record.session_id[:8]} submitted in {attempts} attempt(s)")
            return self._success(
                output=outcome,
                explanation=f"Result accepted by grading service after {attempts} attempt(s)",
                metadata={"attempts": attempts},
            )

        if receipt is not None:
            error = "Grading service did not accept the result"
            warnings = receipt.warnings
        else:
            error = response.metadata.get("error") or response.explanation
            warnings = ()

        outcome = SubmissionOutcome(
            session_id=record.session_id,
            status=SubmissionStatus.FAILED,
            accepted=False,
            warnings=warnings,
            attempts=attempts,
            error=error,
        )
        self.log_reasoning(f"Gave up after {attempts} attempt(s): {error}")
        logger.warning(f"Session {record.session_id[:8]} submission failed: {error}")
        return self._failure(
            error=error,
            explanation=f"Submission failed after {attempts} attempt(s)",
            output=outcome,
            metadata={"attempts": attempts},
        )

    def _submit_with_retry(
        self, record: SubmissionRecord
    ) -> Tuple[int, AgentResponse[SubmissionReceipt]]:
        attempts = 0
        while True:
            attempts += 1
            response = self._submit_once(record)
            if not response.should_retry() or attempts >= self.max_attempts:
                return attempts, response

            delay = self.backoff_seconds * (2 ** (attempts - 1))
            self.log_reasoning(
                f"Attempt {attempts} failed transiently ({response.explanation}); "
                f"retrying in {delay:.1f}s"
            )
            self._sleep(delay)

    def _submit_once(self, record: SubmissionRecord) -> AgentResponse[SubmissionReceipt]:
        try:
            receipt = self.client.submit_result(record)
        except NetworkError as e:
            metadata = {"status_code": e.status_code, "error": e.message}
            if e.retryable:
                return self._retry(reason=e.message, metadata=metadata)
            return self._failure(
                error=e.message,
                explanation="Grading service rejected the submission",
                metadata=metadata,
            )

        return self._success(
            output=receipt,
            explanation="Submission received",
        )
