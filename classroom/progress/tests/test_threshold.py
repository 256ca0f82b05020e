"""Tests for the watched-ratio completion threshold."""

import pytest

from classroom.progress.threshold import completion_percentage, is_watch_complete


@pytest.mark.parametrize(
    "current_time,duration,expected",
    [
        (90, 100, True),
        (91, 100, True),
        (100, 100, True),
        (89.99, 100, False),
        (85, 100, False),
        (0, 100, False),
        (27, 30, True),  # exactly 90%, not lost to float rounding
        (26.9, 30, False),
    ],
)
def test_threshold_boundary(current_time, duration, expected):
    assert is_watch_complete(current_time, duration) is expected


@pytest.mark.parametrize("duration", [0, None, -10])
def test_unknown_duration_is_never_complete(duration):
    assert is_watch_complete(1000, duration) is False


def test_completion_percentage():
    assert completion_percentage(45, 90) == 50
    assert completion_percentage(45, 0) == 0
    assert completion_percentage(45, None) == 0
