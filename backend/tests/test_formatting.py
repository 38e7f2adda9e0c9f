"""
Tests for snapshot display helpers.
"""

import pytest

from typing_assessment.utils.formatting import accuracy_rating, format_time, timer_urgency


@pytest.mark.parametrize("seconds, expected", [
    (0, "0:00"),
    (9, "0:09"),
    (60, "1:00"),
    (125, "2:05"),
    (-3, "0:00"),
])
def test_format_time(seconds, expected):
    assert format_time(seconds) == expected


def test_accuracy_rating_thresholds():
    assert accuracy_rating(100) == "Excellent!"
    assert accuracy_rating(90) == "Excellent!"
    assert accuracy_rating(89) == "Good!"
    assert accuracy_rating(70) == "Good!"
    assert accuracy_rating(69) == "Keep practicing!"


def test_timer_urgency():
    assert timer_urgency(45) == "normal"
    assert timer_urgency(30) == "warning"
    assert timer_urgency(11) == "warning"
    assert timer_urgency(10) == "critical"
    assert timer_urgency(0) == "critical"
