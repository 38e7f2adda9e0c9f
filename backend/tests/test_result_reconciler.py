"""
Tests for the result reconciler agent.

The grading client is replaced by a scripted fake; backoff sleeps are
recorded instead of slept.
"""

from typing_assessment.agents.base import AgentStatus
from typing_assessment.agents.result_reconciler import ReconcileInput, ResultReconcilerAgent
from typing_assessment.core.errors import NetworkError
from typing_assessment.schemas.assessment import (
    AssessmentSession,
    CompletionTrigger,
    Metrics,
)
from typing_assessment.schemas.messages import SubmissionReceipt, SubmissionStatus


SAMPLE_METRICS = Metrics(
    wpm=42,
    accuracy_percent=96,
    correct_character_count=210,
    error_count=9,
    total_typed_character_count=219,
    backspace_count=7,
)


def _completed_session():
    session = AssessmentSession(
        candidate_id="cand_1",
        test_id="test_1",
        reference_text="x" * 300,
        duration_seconds=60,
        remaining_seconds=0,
    )
    return session.completed(CompletionTrigger.TIME_EXPIRED)


class ScriptedClient:
    """Returns or raises the scripted responses in order."""

    def __init__(self, *responses):
        self.responses = list(responses)
        self.records = []

    def submit_result(self, record):
        self.records.append(record)
        response = self.responses.pop(0)
        if isinstance(response, Exception):
            raise response
        return response


def _agent(client, max_attempts=2):
    sleeps = []
    agent = ResultReconcilerAgent(
        client, max_attempts=max_attempts, backoff_seconds=0.5, sleep=sleeps.append
    )
    return agent, sleeps


def test_accepted_on_first_attempt():
    client = ScriptedClient(SubmissionReceipt(accepted=True))
    agent, sleeps = _agent(client)
    session = _completed_session()

    response = agent.run(ReconcileInput(session=session, metrics=SAMPLE_METRICS))

    outcome = response.output
    assert response.status == AgentStatus.SUCCESS
    assert outcome.status == SubmissionStatus.SUCCEEDED
    assert outcome.attempts == 1
    assert sleeps == []

    record = client.records[0]
    assert record.idempotency_key == session.session_id
    assert record.metrics.backspace_count == 7
    assert record.time_taken_seconds == 60


def test_transient_failure_is_retried_with_same_key():
    client = ScriptedClient(
        NetworkError("connection reset"),
        SubmissionReceipt(accepted=True, warnings=("late submission",)),
    )
    agent, sleeps = _agent(client)

    response = agent.run(ReconcileInput(session=_completed_session(), metrics=SAMPLE_METRICS))

    outcome = response.output
    assert outcome.status == SubmissionStatus.SUCCEEDED
    assert outcome.attempts == 2
    assert outcome.warnings == ("late submission",)
    assert sleeps == [0.5]
    assert len({r.idempotency_key for r in client.records}) == 1


def test_retry_budget_is_bounded():
    client = ScriptedClient(*[NetworkError("503", status_code=503) for _ in range(5)])
    agent, sleeps = _agent(client, max_attempts=3)

    response = agent.run(ReconcileInput(session=_completed_session(), metrics=SAMPLE_METRICS))

    outcome = response.output
    assert response.status == AgentStatus.FAILURE
    assert outcome.status == SubmissionStatus.FAILED
    assert outcome.attempts == 3
    assert len(client.records) == 3
    assert sleeps == [0.5, 1.0]


def test_client_error_is_not_retried():
    client = ScriptedClient(NetworkError("Invalid payload", status_code=422, retryable=False))
    agent, sleeps = _agent(client)

    response = agent.run(ReconcileInput(session=_completed_session(), metrics=SAMPLE_METRICS))

    outcome = response.output
    assert outcome.status == SubmissionStatus.FAILED
    assert outcome.attempts == 1
    assert outcome.error == "Invalid payload"
    assert sleeps == []


def test_rejected_receipt_is_a_failure():
    client = ScriptedClient(SubmissionReceipt(accepted=False, warnings=("duplicate",)))
    agent, _ = _agent(client)

    response = agent.run(ReconcileInput(session=_completed_session(), metrics=SAMPLE_METRICS))

    outcome = response.output
    assert outcome.status == SubmissionStatus.FAILED
    assert outcome.warnings == ("duplicate",)


def test_running_session_is_refused():
    client = ScriptedClient()
    agent, _ = _agent(client)
    running = AssessmentSession(
        candidate_id="cand_1",
        test_id="test_1",
        reference_text="abc",
        duration_seconds=60,
        remaining_seconds=40,
    )

    response = agent.run(ReconcileInput(session=running, metrics=SAMPLE_METRICS))

    assert response.status == AgentStatus.FAILURE
    assert response.output.status == SubmissionStatus.FAILED
    assert response.metadata["code"] == "invalid_state"
    assert client.records == []


def test_unexpected_error_becomes_failed_outcome():
    client = ScriptedClient(RuntimeError("boom"))
    agent, _ = _agent(client)

    response = agent.run(ReconcileInput(session=_completed_session(), metrics=SAMPLE_METRICS))

    assert response.output.status == SubmissionStatus.FAILED
    assert "boom" in response.output.error


def test_reasoning_log_records_attempts():
    client = ScriptedClient(NetworkError("timeout"), SubmissionReceipt())
    agent, _ = _agent(client)

    agent.run(ReconcileInput(session=_completed_session(), metrics=SAMPLE_METRICS))

    log = agent.reasoning_log
    assert log[0].startswith("Submitting session")
    assert any("retrying" in entry for entry in log)
