# Utility modules
from .formatting import (
    format_time,
    accuracy_rating,
    timer_urgency,
)
from .grading_client import GradingServiceClient

__all__ = [
    "format_time",
    "accuracy_rating",
    "timer_urgency",
    "GradingServiceClient",
]
