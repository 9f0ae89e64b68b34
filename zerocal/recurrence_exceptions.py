"""Exception hierarchy for the recurrence engine.

Every error raised by the engine derives from RecurrenceEngineError so
calling layers can catch the whole family in one place while still telling
a bad query range apart from a bad stored rule.
"""

from typing import Optional


class RecurrenceEngineError(Exception):
    """Base exception for all recurrence engine errors."""


class InvalidRangeError(RecurrenceEngineError):
    """Query range is unusable.

    Raised when:
    - range_start is later than range_end
    - A range bound cannot be parsed as a timestamp

    Never retried automatically; the caller must fix the query.
    """


class InvalidRuleError(RecurrenceEngineError):
    """Recurrence rule parameters are malformed.

    Raised when:
    - frequency is missing or not one of daily/weekly/monthly/yearly
    - interval is missing or lower than 1
    - a BY* list holds out-of-range values or unknown weekday codes
    - count/until cannot be interpreted

    Attributes:
        field: Name of the offending rule field, when known
    """

    def __init__(self, message: str, field: Optional[str] = None):
        super().__init__(message)
        self.field = field


class MalformedExceptionError(RecurrenceEngineError):
    """A single per-occurrence exception entry is unusable.

    Raised when:
    - the entry has no date, or the date cannot be parsed
    - status is neither "cancelled" nor "modified"
    - status is "modified" but no modifiedEvent payload is present

    The expander catches this per entry, logs a warning and keeps expanding
    the rest of the series.

    Attributes:
        index: Position of the entry in the event's exception list
    """

    def __init__(self, message: str, index: Optional[int] = None):
        super().__init__(message)
        self.index = index
