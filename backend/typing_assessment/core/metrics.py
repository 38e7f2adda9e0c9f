"""
Metrics Calculator

Derives WPM, accuracy and error counts from the diff engine output plus
the countdown-based elapsed time. Pure function; safe to call on every
keystroke and after completion.
"""

import math

from .diff import compare, count_states, overflow_length
from ..schemas.assessment import CharacterState, Metrics

CHARS_PER_WORD = 5


def round_half_up(value: float) -> int:
    """Round a non-negative number to the nearest integer, .5 going up."""
    return int(math.floor(value + 0.5))


def compute_metrics(
    reference: str,
    typed: str,
    elapsed_seconds: float,
    backspace_count: int = 0,
) -> Metrics:
    """
    Compute live or final metrics for one attempt.

    Args:
        reference: The paragraph to reproduce
        typed: Candidate input so far
        elapsed_seconds: Countdown seconds consumed (duration minus remaining)
        backspace_count: Delete keystrokes recorded for the session

    Returns:
        Metrics with WPM from correct characters only (5 chars per word)
        and accuracy over everything typed, overflow included.

    Example:
        >>> compute_metrics("ab", "ax", 60).accuracy_percent
        50
    """
    counts = count_states(compare(reference, typed))

    correct = counts[CharacterState.CORRECT]
    errors = counts[CharacterState.INCORRECT] + overflow_length(reference, typed)
    total_typed = len(typed)

    accuracy = round_half_up(correct / total_typed * 100) if total_typed > 0 else 0

    minutes_elapsed = elapsed_seconds / 60
    words_typed = correct / CHARS_PER_WORD
    wpm = round_half_up(words_typed / minutes_elapsed) if minutes_elapsed > 0 else 0

    return Metrics(
        wpm=wpm,
        accuracy_percent=accuracy,
        correct_character_count=correct,
        error_count=errors,
        total_typed_character_count=total_typed,
        backspace_count=backspace_count,
    )
