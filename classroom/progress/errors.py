"""Exceptions raised by the progress store, orchestrator and notifier."""


class ProgressError(Exception):
    """Base class for lesson/course progress failures."""


class ProgressReadError(ProgressError):
    """Loading a stored progress record failed."""


class ProgressWriteError(ProgressError):
    """Upserting a progress record failed."""


class AggregationError(ProgressError):
    """Gathering lessons or completed progress for a course check failed."""


class FetchLessonsError(AggregationError):
    pass


class FetchProgressError(AggregationError):
    pass


class NotificationDispatchError(ProgressError):
    """The course completion side effect could not be delivered."""
