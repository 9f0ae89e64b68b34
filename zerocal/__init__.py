"""zerocal - recurring event expansion for the Zero calendar.

Materializes recurring events (a recurrence rule plus per-occurrence
exceptions) into concrete instances for a queried date range.
"""

__version__ = "0.1.0"

from .logging_setup import configure_logging, get_logging_status
from .recurrence_exceptions import (
    InvalidRangeError,
    InvalidRuleError,
    MalformedExceptionError,
    RecurrenceEngineError,
)
from .recurrence_expander import (
    RecurrenceExpander,
    RecurrenceExpanderConfig,
    expand_event,
    expand_events,
    get_default_expander,
)
from .recurrence_models import (
    CalendarEvent,
    EventException,
    EventOverride,
    ExceptionStatus,
    RecurrenceFrequency,
    RecurrenceRule,
)
from .rrule_builder import build_rrule, parse_rrule_string, to_rrule_string

__all__ = [
    "CalendarEvent",
    "EventException",
    "EventOverride",
    "ExceptionStatus",
    "InvalidRangeError",
    "InvalidRuleError",
    "MalformedExceptionError",
    "RecurrenceEngineError",
    "RecurrenceExpander",
    "RecurrenceExpanderConfig",
    "RecurrenceFrequency",
    "RecurrenceRule",
    "build_rrule",
    "configure_logging",
    "expand_event",
    "expand_events",
    "get_default_expander",
    "get_logging_status",
    "parse_rrule_string",
    "to_rrule_string",
]
