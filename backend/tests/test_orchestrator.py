"""
Tests for the assessment orchestrator (event queue + reconciliation).

Each test drives one asyncio loop with ``asyncio.run`` and a
ManualScheduler; ``drain()`` waits for queued events and in-flight
submissions.
"""

import asyncio
import threading

import pytest

from typing_assessment.agents.orchestrator import AssessmentOrchestrator
from typing_assessment.agents.result_reconciler import ResultReconcilerAgent
from typing_assessment.core.errors import InvalidStateError, MissingCandidateError, NetworkError
from typing_assessment.core.scheduler import ManualScheduler
from typing_assessment.schemas.assessment import Phase, TypingTest
from typing_assessment.schemas.messages import SubmissionReceipt, SubmissionStatus


SAMPLE_TEST = TypingTest(test_id="test_1", reference_text="cat", duration_options=(60, 120))


class FakeGradingClient:
    def __init__(self, submit_error=None, not_assigned=False, gate=None):
        self.started = []
        self.records = []
        self.submit_error = submit_error
        self.not_assigned = not_assigned
        self.gate = gate

    def notify_start(self, test_id, candidate_id, duration_seconds):
        if self.not_assigned:
            raise MissingCandidateError("You are not assigned to this typing test")
        self.started.append((test_id, candidate_id, duration_seconds))
        return {"message": "Test started"}

    def submit_result(self, record):
        if self.gate is not None:
            self.gate.wait(timeout=5)
        self.records.append(record)
        if self.submit_error is not None:
            raise self.submit_error
        return SubmissionReceipt(accepted=True)


def _orchestrator(client, candidate_id="cand_1", max_attempts=2):
    scheduler = ManualScheduler()
    reconciler = ResultReconcilerAgent(
        client, max_attempts=max_attempts, backoff_seconds=0, sleep=lambda s: None
    )
    orchestrator = AssessmentOrchestrator(
        SAMPLE_TEST, candidate_id, client=client, reconciler=reconciler, scheduler=scheduler
    )
    return orchestrator, scheduler


def test_finishing_paragraph_submits_once():
    client = FakeGradingClient()

    async def scenario():
        orchestrator, scheduler = _orchestrator(client)
        await orchestrator.start(60)
        scheduler.fire(6)
        await orchestrator.input("c")
        await orchestrator.input("ca")
        await orchestrator.input("cat")
        await orchestrator.drain()
        snapshot = orchestrator.snapshot()
        audit = orchestrator.get_audit_log()
        await orchestrator.aclose()
        return snapshot, audit

    snapshot, audit = asyncio.run(scenario())

    assert client.started == [("test_1", "cand_1", 60)]
    assert len(client.records) == 1
    assert client.records[0].metrics.wpm == 6
    assert snapshot.phase == Phase.COMPLETED
    assert snapshot.remaining_seconds == 54
    assert snapshot.submission_status == SubmissionStatus.SUCCEEDED
    assert [e["event_type"] for e in audit] == [
        "session_started",
        "session_completed",
        "submission_result",
    ]
    assert audit[-1]["data"]["applied"] is True
    assert audit[-1]["data"]["response"]["status"] == "success"
    assert audit[-1]["data"]["response"]["output"]["status"] == "succeeded"


def test_countdown_expiry_via_scheduler_ticks():
    client = FakeGradingClient()

    async def scenario():
        orchestrator, scheduler = _orchestrator(client)
        await orchestrator.start(60)
        await orchestrator.input("ca")
        scheduler.fire(30)
        scheduler.fire(30)
        await orchestrator.drain()
        snapshot = orchestrator.snapshot()
        await orchestrator.aclose()
        return snapshot

    snapshot = asyncio.run(scenario())

    assert snapshot.phase == Phase.COMPLETED
    assert snapshot.remaining_seconds == 0
    assert len(client.records) == 1
    assert client.records[0].time_taken_seconds == 60


def test_failed_submission_keeps_completed_score():
    client = FakeGradingClient(submit_error=NetworkError("Grading service returned 503", status_code=503))

    async def scenario():
        orchestrator, scheduler = _orchestrator(client, max_attempts=2)
        await orchestrator.start(60)
        scheduler.fire(12)
        await orchestrator.input("cat")
        await orchestrator.drain()
        snapshot = orchestrator.snapshot()
        await orchestrator.aclose()
        return snapshot

    snapshot = asyncio.run(scenario())

    assert len(client.records) == 2
    assert snapshot.phase == Phase.COMPLETED
    assert snapshot.submission_status == SubmissionStatus.FAILED
    assert snapshot.submission_error == "Failed to submit results. Please contact support."
    assert snapshot.metrics.accuracy_percent == 100



class CrashingReconciler:
    def run(self, input_data):
        raise RuntimeError("reconciler crashed")


def test_reconciler_crash_reports_failed():
    client = FakeGradingClient()

    async def scenario():
        orchestrator = AssessmentOrchestrator(
            SAMPLE_TEST,
            "cand_1",
            client=client,
            reconciler=CrashingReconciler(),
            scheduler=ManualScheduler(),
        )
        await orchestrator.start(60)
        await orchestrator.input("cat")
        await orchestrator.drain()
        snapshot = orchestrator.snapshot()
        finished_at = orchestrator.finished_at
        audit = orchestrator.get_audit_log()
        await orchestrator.aclose()
        return snapshot, finished_at, audit

    snapshot, finished_at, audit = asyncio.run(scenario())

    assert snapshot.phase == Phase.COMPLETED
    assert snapshot.submission_status == SubmissionStatus.FAILED
    assert finished_at is not None
    result = [e for e in audit if e["event_type"] == "submission_result"][0]
    assert result["data"]["error"] == "reconciler crashed"
    assert result["data"]["response"] is None

def test_restart_drops_late_submission_result():
    gate = threading.Event()
    client = FakeGradingClient(gate=gate)

    async def scenario():
        orchestrator, scheduler = _orchestrator(client)
        await orchestrator.start(60)
        scheduler.fire(3)
        await orchestrator.input("cat")
        assert orchestrator.snapshot().submission_status == SubmissionStatus.PENDING

        await orchestrator.restart()
        second = await orchestrator.start(60)
        gate.set()
        await orchestrator.drain()
        snapshot = orchestrator.snapshot()
        audit = orchestrator.get_audit_log()
        await orchestrator.aclose()
        return second, snapshot, audit

    second, snapshot, audit = asyncio.run(scenario())

    assert snapshot.phase == Phase.RUNNING
    assert snapshot.session_id == second.session_id
    assert snapshot.submission_status == SubmissionStatus.NOT_REQUIRED
    late = [e for e in audit if e["event_type"] == "submission_result"]
    assert late and late[0]["data"]["applied"] is False


def test_stale_ticks_after_restart_are_ignored():
    client = FakeGradingClient()

    async def scenario():
        orchestrator, scheduler = _orchestrator(client)
        first = await orchestrator.start(60)
        await orchestrator.restart()
        await orchestrator.start(60)
        orchestrator.post_tick(10, session_id=first.session_id)
        await orchestrator.drain()
        snapshot = orchestrator.snapshot()
        await orchestrator.aclose()
        return snapshot

    snapshot = asyncio.run(scenario())
    assert snapshot.remaining_seconds == 60


def test_missing_candidate_never_reaches_backend():
    client = FakeGradingClient()

    async def scenario():
        orchestrator, _ = _orchestrator(client, candidate_id=None)
        try:
            with pytest.raises(MissingCandidateError):
                await orchestrator.start(60)
            return orchestrator.snapshot()
        finally:
            await orchestrator.aclose()

    snapshot = asyncio.run(scenario())
    assert snapshot.phase == Phase.IDLE
    assert client.started == []


def test_unassigned_candidate_stays_idle():
    client = FakeGradingClient(not_assigned=True)

    async def scenario():
        orchestrator, scheduler = _orchestrator(client)
        try:
            with pytest.raises(MissingCandidateError):
                await orchestrator.start(60)
            return orchestrator.snapshot(), scheduler.start_count
        finally:
            await orchestrator.aclose()

    snapshot, start_count = asyncio.run(scenario())
    assert snapshot.phase == Phase.IDLE
    assert start_count == 0


def test_closed_orchestrator_rejects_events():
    client = FakeGradingClient()

    async def scenario():
        orchestrator, _ = _orchestrator(client)
        await orchestrator.start(60)
        await orchestrator.aclose()
        with pytest.raises(InvalidStateError):
            await orchestrator.input("c")

    asyncio.run(scenario())
