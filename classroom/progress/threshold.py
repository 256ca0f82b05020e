"""Watched-ratio math for deciding when a lesson video counts as complete."""

from classroom.constants import COMPLETION_THRESHOLD_PERCENT


def completion_percentage(current_time: float, duration: float | None) -> float:
    """Percentage of the video watched; 0 while the duration is unknown."""
    if not duration or duration <= 0:
        return 0.0
    return current_time / duration * 100


def is_watch_complete(current_time: float, duration: float | None) -> bool:
    """True once at least COMPLETION_THRESHOLD_PERCENT of the video is watched.

    The threshold sits below 100% to tolerate trailing credits and players
    that never emit a reliable end event.
    """
    if not duration or duration <= 0:
        return False
    # Cross-multiplied so boundary ratios like 27/30 are not lost to rounding
    return current_time * 100 >= COMPLETION_THRESHOLD_PERCENT * duration
