"""
Runtime configuration.

Values come from the environment (a ``.env`` file is loaded if present)
and are frozen into a ``Settings`` instance at startup.
"""

import logging
import os
from dataclasses import dataclass, field
from typing import Optional, Tuple

from dotenv import load_dotenv

load_dotenv()

LOG_FORMAT = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"


def _split_csv(value: str) -> Tuple[str, ...]:
    return tuple(item.strip() for item in value.split(",") if item.strip())


@dataclass(frozen=True)
class Settings:
    """
    Engine and API settings.

    Attributes:
        grading_api_url: Base URL of the recruitment backend (``.../api``)
        grading_timeout_seconds: Per-request timeout for outbound calls
        submission_max_attempts: Total attempts per result submission,
            first try included
        submission_backoff_seconds: Base delay, doubled after each failure
        tick_interval_seconds: Countdown tick length
        completed_retention_seconds: How long a finished assessment stays
            in the registry before it is closed and evicted
        log_level: Root logging level name
        cors_origins: Origins allowed by the REST API
    """
    grading_api_url: str = "http://localhost:5000/api"
    grading_timeout_seconds: float = 10.0
    submission_max_attempts: int = 2
    submission_backoff_seconds: float = 1.0
    tick_interval_seconds: float = 1.0
    completed_retention_seconds: float = 300.0
    log_level: str = "INFO"
    cors_origins: Tuple[str, ...] = field(
        default_factory=lambda: ("http://localhost:5173", "http://localhost:3000")
    )

    @classmethod
    def from_env(cls) -> "Settings":
        defaults = cls()
        origins = os.getenv("CORS_ORIGINS")
        return cls(
            grading_api_url=os.getenv("GRADING_API_URL", defaults.grading_api_url).rstrip("/"),
            grading_timeout_seconds=float(
                os.getenv("GRADING_TIMEOUT_SECONDS", defaults.grading_timeout_seconds)
            ),
            submission_max_attempts=max(1, int(
                os.getenv("SUBMISSION_MAX_ATTEMPTS", defaults.submission_max_attempts)
            )),
            submission_backoff_seconds=float(
                os.getenv("SUBMISSION_BACKOFF_SECONDS", defaults.submission_backoff_seconds)
            ),
            tick_interval_seconds=float(
                os.getenv("TICK_INTERVAL_SECONDS", defaults.tick_interval_seconds)
            ),
            completed_retention_seconds=float(
                os.getenv("COMPLETED_RETENTION_SECONDS", defaults.completed_retention_seconds)
            ),
            log_level=os.getenv("LOG_LEVEL", defaults.log_level).upper(),
            cors_origins=_split_csv(origins) if origins else defaults.cors_origins,
        )


def configure_logging(level: Optional[str] = None) -> None:
    """Configure root logging once for the process."""
    logging.basicConfig(
        level=getattr(logging, (level or "INFO").upper(), logging.INFO),
        format=LOG_FORMAT,
    )
