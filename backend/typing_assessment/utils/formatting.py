"""
Display helpers for the assessment snapshot.

The UI renders these strings verbatim; keeping them here means every
client shows the same countdown and rating.
"""

EXCELLENT_ACCURACY = 90
GOOD_ACCURACY = 70

WARNING_SECONDS = 30
CRITICAL_SECONDS = 10


def format_time(seconds: int) -> str:
    """
    Format a countdown value as ``m:ss``.

    Example:
        >>> format_time(125)
        '2:05'
    """
    seconds = max(0, int(seconds))
    minutes, secs = divmod(seconds, 60)
    return f"{minutes}:{secs:02d}"


def accuracy_rating(accuracy_percent: int) -> str:
    """Short verdict shown next to the final accuracy."""
    if accuracy_percent >= EXCELLENT_ACCURACY:
        return "Excellent!"
    if accuracy_percent >= GOOD_ACCURACY:
        return "Good!"
    return "Keep practicing!"


def timer_urgency(remaining_seconds: int) -> str:
    """``critical`` in the last 10 s, ``warning`` in the last 30 s."""
    if remaining_seconds <= CRITICAL_SECONDS:
        return "critical"
    if remaining_seconds <= WARNING_SECONDS:
        return "warning"
    return "normal"
