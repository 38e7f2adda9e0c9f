"""
Assessment Orchestrator

Responsibility: Serialize every transition of one assessment.
Single purpose: Funnel start, input, tick, restart and submission-result
events through a single queue consumed by a single worker, and run result
reconciliation off to the side so the UI never waits on the network.

This is the only writer of the state machine. Handlers, timer callbacks
and reconciliation tasks all post events; none of them touch the machine
directly.
"""

import asyncio
import logging
import time
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Tuple

from .assessment_machine import AssessmentStateMachine
from .base import AgentResponse
from .result_reconciler import ReconcileInput, ResultReconcilerAgent
from ..core.errors import InvalidStateError
from ..core.scheduler import AsyncioTickScheduler, TickScheduler
from ..schemas.assessment import AssessmentSession, Metrics, TypingTest
from ..schemas.messages import (
    AssessmentEvent,
    AssessmentSnapshot,
    EventType,
    SubmissionOutcome,
    SubmissionStatus,
)

logger = logging.getLogger(__name__)

_QueueItem = Tuple[AssessmentEvent, Optional[asyncio.Future]]


class AssessmentOrchestrator:
    """
    Single-writer coordinator around an ``AssessmentStateMachine``.

    The orchestrator:
    - Owns the event queue and its one worker task
    - Points scheduler ticks at the queue, tagged with their session id
    - Notifies the grading service on start (assignment check)
    - Launches exactly one reconciliation per completed session
    - Keeps an audit log of applied events

    NOT responsible for:
    - Diffing or scoring (the machine does that)
    - Retry policy (the reconciler does that)

    Example:
        >>> orchestrator = AssessmentOrchestrator(test, "cand_1", client=client)
        >>> await orchestrator.start(60)
        >>> await orchestrator.input("The q")
        >>> orchestrator.snapshot().metrics.wpm
    """

    def __init__(
        self,
        test: TypingTest,
        candidate_id: Optional[str],
        client=None,
        reconciler: Optional[ResultReconcilerAgent] = None,
        scheduler: Optional[TickScheduler] = None,
        tick_interval: float = 1.0,
    ):
        self.client = client
        self.reconciler = reconciler
        if self.reconciler is None and client is not None:
            self.reconciler = ResultReconcilerAgent(client)

        self._scheduler = scheduler or AsyncioTickScheduler(interval=tick_interval)
        self.machine = AssessmentStateMachine(
            self._scheduler,
            on_complete=self._on_complete if self.reconciler is not None else None,
            candidate_id=candidate_id,
            tick_target=self.post_tick,
        )
        self.machine.load_test(test)

        self._queue: Optional["asyncio.Queue[_QueueItem]"] = None
        self._worker: Optional[asyncio.Task] = None
        self._reconcile_tasks: Dict[str, asyncio.Task] = {}
        self._audit_log: List[Dict[str, Any]] = []
        self._closed = False
        self._finished_at: Optional[float] = None

    # -------------------------------------------------------------------------
    # Public operations
    # -------------------------------------------------------------------------

    async def start(self, duration_seconds: Optional[int] = None) -> AssessmentSession:
        """
        Start an attempt after the grading service confirms the assignment.

        Preconditions are checked before the network call so a bad request
        never reaches the backend; the START event re-checks them.
        """
        duration = self.machine.validate_start(duration_seconds)
        if self.client is not None:
            test = self.machine.test
            await asyncio.to_thread(
                self.client.notify_start, test.test_id, self.machine.candidate_id, duration
            )
        return await self.dispatch(
            AssessmentEvent(EventType.START, payload={"duration_seconds": duration})
        )

    async def input(self, typed_text: str, delete_key: bool = False) -> bool:
        return await self.dispatch(
            AssessmentEvent(
                EventType.INPUT,
                payload={"typed_text": typed_text, "delete_key": delete_key},
            )
        )

    async def restart(self) -> None:
        await self.dispatch(AssessmentEvent(EventType.RESTART))

    def post_tick(self, ticks: int, session_id: Optional[str] = None) -> None:
        """Scheduler callback; enqueues without waiting."""
        self._enqueue(
            AssessmentEvent(EventType.TICK, payload={"ticks": ticks}, session_id=session_id)
        )

    def snapshot(self) -> AssessmentSnapshot:
        return self.machine.snapshot()

    def dispatch(self, event: AssessmentEvent) -> "asyncio.Future[Any]":
        """
        Enqueue an event and return a future for the transition's result.
        Exceptions raised by the transition are set on the future.
        """
        future = asyncio.get_running_loop().create_future()
        self._enqueue(event, future)
        return future

    async def drain(self) -> None:
        """Wait until the queue is empty and no reconciliation is in flight."""
        while True:
            if self._queue is not None:
                await self._queue.join()
            pending = [t for t in self._reconcile_tasks.values() if not t.done()]
            if not pending:
                return
            await asyncio.gather(*pending, return_exceptions=True)

    async def aclose(self) -> None:
        """Stop ticking and cancel the worker and any reconciliation."""
        self._closed = True
        self._scheduler.stop()

        tasks = [t for t in self._reconcile_tasks.values() if not t.done()]
        if self._worker is not None:
            tasks.append(self._worker)
        for task in tasks:
            task.cancel()
        await asyncio.gather(*tasks, return_exceptions=True)
        self._worker = None

    @property
    def finished_at(self) -> Optional[float]:
        """Monotonic time the current session's submission result landed, if it has."""
        return self._finished_at

    @property
    def is_closed(self) -> bool:
        return self._closed

    def get_audit_log(self) -> List[Dict[str, Any]]:
        """Get the complete audit log."""
        return self._audit_log.copy()

    # -------------------------------------------------------------------------
    # Queue
    # -------------------------------------------------------------------------

    def _enqueue(self, event: AssessmentEvent, future: Optional[asyncio.Future] = None) -> None:
        if self._closed:
            if future is not None:
                future.set_exception(InvalidStateError("Assessment has been closed"))
            return
        self._ensure_worker()
        self._queue.put_nowait((event, future))

    def _ensure_worker(self) -> None:
        if self._queue is None:
            self._queue = asyncio.Queue()
        if self._worker is None or self._worker.done():
            self._worker = asyncio.get_running_loop().create_task(self._consume())

    async def _consume(self) -> None:
        while True:
            event, future = await self._queue.get()
            try:
                result = self._apply(event)
            except Exception as e:
                if future is not None and not future.done():
                    future.set_exception(e)
                else:
                    logger.exception(f"Unhandled error applying {event.event_type.value} event")
            else:
                if future is not None and not future.done():
                    future.set_result(result)
            finally:
                self._queue.task_done()

    def _apply(self, event: AssessmentEvent) -> Any:
        payload = event.payload

        if event.event_type == EventType.START:
            session = self.machine.start(payload.get("duration_seconds"))
            self._finished_at = None
            self._log_event("session_started", {
                "session_id": session.session_id,
                "duration_seconds": session.duration_seconds,
            })
            return session

        if event.event_type == EventType.INPUT:
            return self.machine.on_input(
                payload.get("typed_text", ""), delete_key=payload.get("delete_key", False)
            )

        if event.event_type == EventType.TICK:
            return self.machine.on_tick(payload.get("ticks", 1), session_id=event.session_id)

        if event.event_type == EventType.RESTART:
            previous = self.machine.session
            self.machine.restart()
            self._finished_at = None
            self._log_event("session_restarted", {
                "session_id": previous.session_id if previous else None,
            })
            return None

        if event.event_type == EventType.SUBMISSION_RESULT:
            outcome: SubmissionOutcome = payload["outcome"]
            response: Optional[AgentResponse] = payload.get("response")
            applied = self.machine.record_submission(outcome)
            if applied:
                self._finished_at = time.monotonic()
            self._log_event("submission_result", {
                **outcome.to_dict(),
                "applied": applied,
                "response": response.to_dict() if response is not None else None,
            })
            return applied

        raise ValueError(f"Unknown event type: {event.event_type}")

    # -------------------------------------------------------------------------
    # Reconciliation
    # -------------------------------------------------------------------------

    def _on_complete(self, session: AssessmentSession, metrics: Metrics) -> None:
        self._log_event("session_completed", {
            "session_id": session.session_id,
            "trigger": session.completion_trigger.value if session.completion_trigger else None,
            "wpm": metrics.wpm,
            "accuracy_percent": metrics.accuracy_percent,
        })
        if session.session_id in self._reconcile_tasks:
            logger.warning(f"Session {session.session_id[:8]} already submitted; skipping")
            return
        self._reconcile_tasks[session.session_id] = asyncio.get_running_loop().create_task(
            self._reconcile(session, metrics)
        )

    async def _reconcile(self, session: AssessmentSession, metrics: Metrics) -> None:
        response: Optional[AgentResponse] = None
        try:
            response = await asyncio.to_thread(
                self.reconciler.run, ReconcileInput(session=session, metrics=metrics)
            )
            outcome = response.output
            error = response.metadata.get("error")
        except Exception as e:
            logger.exception(f"Reconciliation of session {session.session_id[:8]} crashed")
            outcome = None
            error = str(e)

        if outcome is None:
            outcome = SubmissionOutcome(
                session_id=session.session_id,
                status=SubmissionStatus.FAILED,
                error=error,
            )
        self._enqueue(
            AssessmentEvent(
                EventType.SUBMISSION_RESULT,
                payload={"outcome": outcome, "response": response},
                session_id=session.session_id,
            )
        )

    def _log_event(self, event_type: str, data: Dict[str, Any]) -> None:
        """Log an orchestrator event for auditing."""
        self._audit_log.append({
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "event_type": event_type,
            "candidate_id": self.machine.candidate_id,
            "data": data,
        })
