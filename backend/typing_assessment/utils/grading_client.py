"""
Grading Service Client

Thin ``requests`` wrapper around the recruitment backend's typing test
endpoints: test fetch, session start notification and result submission.

The backend speaks minutes for durations (``durationOptions: [1, 2]``);
the engine works in seconds. Conversion happens here and nowhere else.
"""

import logging
from typing import Any, Dict, Optional, Union

import requests

from ..core.errors import MissingCandidateError, NetworkError, NotFoundError
from ..schemas.assessment import TypingTest
from ..schemas.messages import SubmissionReceipt, SubmissionRecord

logger = logging.getLogger(__name__)

DEFAULT_INSTRUCTIONS = (
    "Type the given paragraph as accurately and quickly as possible. "
    "Your typing speed (WPM) and accuracy will be measured."
)


def _to_minutes(seconds: int) -> Union[int, float]:
    return seconds // 60 if seconds % 60 == 0 else seconds / 60


def _to_seconds(minutes: Union[int, float]) -> int:
    return int(round(float(minutes) * 60))


def _error_message(response: requests.Response, fallback: str) -> str:
    try:
        body = response.json()
    except ValueError:
        return fallback
    if isinstance(body, dict) and body.get("message"):
        return str(body["message"])
    return fallback


class GradingServiceClient:
    """
    Client for the grading authority.

    Every call uses a timeout. Connection failures, timeouts and 5xx
    answers raise a retryable ``NetworkError``; a 4xx that has no more
    specific meaning raises a non-retryable one.

    Example:
        >>> client = GradingServiceClient("http://localhost:5000/api")
        >>> test = client.fetch_test("typing_abc_123", candidate_id="c1")
        >>> test.duration_options
        (60, 120)
    """

    def __init__(
        self,
        base_url: str,
        timeout: float = 10.0,
        session: Optional[requests.Session] = None,
    ):
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self.session = session or requests.Session()

    # -------------------------------------------------------------------------
    # Endpoints
    # -------------------------------------------------------------------------

    def fetch_test(self, test_link: str, candidate_id: Optional[str] = None) -> TypingTest:
        """
        Fetch a typing test by its public link.

        Raises:
            NotFoundError: Link unknown or test inactive
            MissingCandidateError: Candidate not assigned to this test
            NetworkError: Transport failure or unexpected status
        """
        params = {"candidate": candidate_id} if candidate_id else None
        response = self._request("GET", f"/typing-test/take/{test_link}", params=params)

        if response.status_code == 404:
            raise NotFoundError(_error_message(response, "Typing test not found or inactive"))
        if response.status_code == 403:
            raise MissingCandidateError(
                _error_message(response, "You are not assigned to this typing test")
            )
        self._raise_for_status(response)

        data = response.json().get("typingTest") or {}
        options = tuple(_to_seconds(m) for m in data.get("durationOptions") or [1, 2])
        default = data.get("defaultDuration")

        return TypingTest(
            test_id=str(data.get("_id", "")),
            reference_text=data.get("typingParagraph", ""),
            duration_options=options,
            default_duration=_to_seconds(default) if default else options[0],
            title=data.get("title") or "Typing Speed Test",
            description=data.get("description") or "",
            instructions=data.get("instructions") or DEFAULT_INSTRUCTIONS,
            test_link=data.get("testLink") or test_link,
        )

    def notify_start(self, test_id: str, candidate_id: str, duration_seconds: int) -> Dict[str, Any]:
        """
        Tell the backend the candidate is starting; doubles as the
        assignment check.

        Raises:
            MissingCandidateError: No candidate or candidate not assigned
            NotFoundError: Unknown test
            NetworkError: Transport failure or unexpected status
        """
        response = self._request(
            "POST",
            f"/typing-test/{test_id}/start",
            json={"candidateId": candidate_id, "duration": _to_minutes(duration_seconds)},
        )

        if response.status_code in (400, 403):
            raise MissingCandidateError(_error_message(response, "Candidate ID is required"))
        if response.status_code == 404:
            raise NotFoundError(_error_message(response, "Typing test not found"))
        self._raise_for_status(response)

        return response.json()

    def submit_result(self, record: SubmissionRecord) -> SubmissionReceipt:
        """
        Post the final result once. The idempotency key travels both in
        the header and the body.
        """
        metrics = record.metrics
        payload = {
            "candidateId": record.candidate_id,
            "sessionId": record.session_id,
            "wpm": metrics.wpm,
            "accuracy": metrics.accuracy_percent,
            "totalErrors": metrics.error_count,
            "totalCharacters": metrics.total_typed_character_count,
            "correctCharacters": metrics.correct_character_count,
            "backspaceCount": metrics.backspace_count,
            "timeTaken": record.time_taken_seconds,
            "duration": _to_minutes(record.duration_seconds),
            "durationSeconds": record.duration_seconds,
        }
        response = self._request(
            "POST",
            f"/typing-test/{record.test_id}/submit",
            json=payload,
            headers={"Idempotency-Key": record.idempotency_key},
        )
        self._raise_for_status(response)

        body = response.json() if response.content else {}
        return SubmissionReceipt(
            accepted=bool(body.get("accepted", True)),
            warnings=tuple(body.get("warnings") or ()),
        )

    # -------------------------------------------------------------------------
    # Transport
    # -------------------------------------------------------------------------

    def _request(self, method: str, path: str, **kwargs: Any) -> requests.Response:
        url = f"{self.base_url}{path}"
        try:
            return self.session.request(method, url, timeout=self.timeout, **kwargs)
        except (requests.ConnectionError, requests.Timeout) as e:
            logger.warning(f"{method} {url} failed: {e}")
            raise NetworkError(f"Could not reach grading service: {e}") from e

    @staticmethod
    def _raise_for_status(response: requests.Response) -> None:
        status = response.status_code
        if status < 400:
            return
        message = _error_message(response, f"Grading service returned {status}")
        raise NetworkError(message, status_code=status, retryable=status >= 500)
