"""
Domain-specific exception hierarchy for the timeline engine.
"""


class TimelineError(Exception):
    """Base class for all application-level errors."""


class InvalidIntervalError(TimelineError, ValueError):
    """Raised when an interval would have zero or negative duration."""


class AmbiguousRecurrenceError(InvalidIntervalError):
    """Raised when a weekly block has a malformed day of week or time of day."""


class InvalidTransitionError(TimelineError, ValueError):
    """Raised when a booked event is moved to a status it cannot reach."""


class DependencyUnavailableError(TimelineError):
    """Raised by a snapshot source when its data cannot be obtained."""


class SnapshotError(TimelineError):
    """Raised when a stored snapshot record cannot be parsed."""
