"""Data models for recurring calendar events.

Python attributes are snake_case; the JSON shape shared with the calendar
application is camelCase (``byDay``, ``modifiedEvent``,
``isRecurringInstance``...). Both spellings are accepted on input.
"""

from datetime import date, datetime, timedelta
from enum import Enum
from typing import Any, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, field_serializer, model_validator
from pydantic.alias_generators import to_camel

from .timezone_utils import ensure_timezone_aware, resolve_timezone

TimestampInput = Union[datetime, date, str]


class RecurrenceFrequency(str, Enum):
    """Base repeat unit of a recurrence rule."""

    DAILY = "daily"
    WEEKLY = "weekly"
    MONTHLY = "monthly"
    YEARLY = "yearly"


class ExceptionStatus(str, Enum):
    """What a per-occurrence exception does to its occurrence."""

    CANCELLED = "cancelled"
    MODIFIED = "modified"


class _CamelModel(BaseModel):
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        use_enum_values=True,
    )


class RecurrenceRule(_CamelModel):
    """Stored recurrence rule.

    Values are kept as received; the rule builder validates them when the
    rule is expanded so that a bad rule surfaces as InvalidRuleError.
    """

    frequency: Optional[str] = Field(
        default=None, description="daily, weekly, monthly or yearly"
    )
    interval: Optional[int] = Field(default=1, description="Repeat every N frequency units")
    count: Optional[int] = Field(default=None, description="Total number of occurrences")
    until: Optional[TimestampInput] = Field(
        default=None, description="Last possible occurrence start"
    )
    by_day: Optional[list[str]] = Field(
        default=None, description="Weekday codes MO..SU, optionally with ordinal (-1FR)"
    )
    by_month_day: Optional[list[int]] = Field(default=None, description="Days of month")
    by_month: Optional[list[int]] = Field(default=None, description="Months 1-12")
    by_set_pos: Optional[list[int]] = Field(
        default=None, description="Nth matching occurrence within a period"
    )
    week_start: Optional[str] = Field(default=None, description="Week start weekday code")
    exceptions: Optional[list[TimestampInput]] = Field(
        default=None, description="Excluded occurrence dates (EXDATE)"
    )

    @property
    def is_bounded(self) -> bool:
        """True when the rule ends by itself (count or until)."""
        return bool(self.count) or self.until is not None


class EventOverride(_CamelModel):
    """Partial event payload carried by a modified exception.

    Only fields explicitly present in the payload override the base event;
    see ``overrides()``.
    """

    title: Optional[str] = None
    start: Optional[datetime] = None
    end: Optional[datetime] = None
    description: Optional[str] = None
    location: Optional[str] = None
    color: Optional[str] = None
    all_day: Optional[bool] = None
    timezone: Optional[str] = None

    def overrides(self) -> dict[str, Any]:
        """Fields explicitly set on this payload, keyed by attribute name."""
        return {name: getattr(self, name) for name in self.model_fields_set}


class EventException(_CamelModel):
    """Per-occurrence exception: cancels or modifies one occurrence."""

    date: Optional[TimestampInput] = Field(
        default=None, description="Original start of the occurrence it overrides"
    )
    status: Optional[str] = Field(default=None, description="cancelled or modified")
    modified_event: Optional[EventOverride] = Field(
        default=None, description="Overrides applied when status is modified"
    )


class CalendarEvent(_CamelModel):
    """Calendar event: a stored origin event or a materialized instance.

    Origin events may carry a recurrence rule and exceptions. Instances are
    produced by the recurrence expander, carry ``is_recurring_instance``
    and ``original_event_id``, and are never persisted.
    """

    # Core properties
    id: str = Field(..., description="Event ID")
    title: str = Field(default="", description="Event title")
    description: Optional[str] = Field(default=None, description="Event description")
    location: Optional[str] = Field(default=None, description="Event location")
    color: Optional[str] = Field(default=None, description="Display color")

    # Time information
    start: datetime = Field(..., description="Event start time")
    end: datetime = Field(..., description="Event end time")
    all_day: bool = Field(default=False, description="All-day event flag")
    timezone: Optional[str] = Field(default=None, description="IANA timezone of the event")

    # Recurrence
    recurrence: Optional[RecurrenceRule] = Field(default=None, description="Recurrence rule")
    exceptions: Optional[list[EventException]] = Field(
        default=None, description="Per-occurrence exceptions"
    )
    is_recurring: Optional[bool] = Field(default=None, description="Recurring series flag")

    # Instance tracking
    is_recurring_instance: bool = Field(
        default=False, description="True if generated by recurrence expansion"
    )
    original_event_id: Optional[str] = Field(
        default=None, description="ID of the origin event for generated instances"
    )
    exception_date: Optional[TimestampInput] = Field(
        default=None, description="Matching exception date for modified instances"
    )

    # Ownership and sharing, carried through expansion untouched
    user_id: Optional[str] = None
    source: Optional[str] = None
    source_id: Optional[str] = None
    attendees: Optional[list[dict[str, Any]]] = None
    categories: Optional[list[str]] = None
    reminders: Optional[list[dict[str, Any]]] = None
    is_shared: Optional[bool] = None
    shared_by: Optional[str] = None
    shared_with: Optional[list[str]] = None

    @model_validator(mode="after")
    def _check_times(self) -> "CalendarEvent":
        tz = resolve_timezone(self.timezone)
        self.start = ensure_timezone_aware(self.start, tz)
        self.end = ensure_timezone_aware(self.end, tz)
        if self.all_day:
            if self.end < self.start:
                raise ValueError("end must not be before start for all-day events")
        elif self.end <= self.start:
            raise ValueError("end must be after start")
        return self

    @property
    def duration(self) -> timedelta:
        """Fixed length applied to every generated occurrence."""
        return self.end - self.start

    @field_serializer("start", "end")
    def serialize_datetime(self, dt: datetime) -> str:
        """Serialize datetime to ISO format."""
        return dt.isoformat()
