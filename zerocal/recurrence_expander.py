"""Recurring event expansion with per-occurrence exceptions.

Turns an origin event carrying a recurrence rule and a sparse list of
exceptions into the concrete instances that fall inside a query window.
Expansion is a pure function of (event, window): nothing is cached and no
instance is ever stored.
"""

# ruff: noqa: I001
import asyncio
from dataclasses import dataclass
from datetime import UTC, date, datetime, time, timedelta, tzinfo
import logging
from typing import Any, Optional, Union
from collections.abc import AsyncIterator, Iterable, Iterator

from dateutil.rrule import rrule

from .config_manager import ConfigManager, get_config_value
from .recurrence_exceptions import InvalidRangeError, InvalidRuleError, MalformedExceptionError
from .recurrence_models import CalendarEvent, EventException, EventOverride, ExceptionStatus
from .rrule_builder import build_rrule
from .timezone_utils import (
    DEFAULT_TIMEZONE,
    calendar_date_in,
    ensure_timezone_aware,
    parse_timestamp,
    resolve_timezone,
)

logger = logging.getLogger(__name__)

RangeBound = Union[datetime, date, str]

# Override fields that cannot be cleared by an explicit null
_NON_NULLABLE_OVERRIDES = ("title", "start", "end", "all_day")


@dataclass
class RecurrenceExpanderConfig:
    """Configuration for recurrence expansion.

    Consolidates all expansion settings with explicit defaults.
    """

    max_occurrences_per_rule: int = 10000
    worker_concurrency: int = 1
    expansion_yield_frequency: int = 50
    default_timezone: str = DEFAULT_TIMEZONE

    @classmethod
    def from_settings(cls, settings: Any) -> "RecurrenceExpanderConfig":
        """Extract expansion configuration from a dict or settings object.

        Args:
            settings: Mapping or object with expansion settings (None for defaults)

        Returns:
            RecurrenceExpanderConfig with values from settings or defaults
        """
        return cls(
            max_occurrences_per_rule=get_config_value(settings, "max_occurrences_per_rule", 10000),
            worker_concurrency=get_config_value(settings, "worker_concurrency", 1),
            expansion_yield_frequency=get_config_value(settings, "expansion_yield_frequency", 50),
            default_timezone=get_config_value(settings, "default_timezone", DEFAULT_TIMEZONE),
        )


@dataclass(frozen=True)
class ResolvedException:
    """An exception entry that passed validation, keyed by calendar date."""

    index: Optional[int]
    date_value: Any
    status: ExceptionStatus
    override: Optional[EventOverride] = None


class RecurrenceExpander:
    """Expands recurring events into concrete instances within a date range."""

    def __init__(self, settings: Any = None):
        """Initialize expander with configuration settings.

        Args:
            settings: Dict or object with expansion settings (None for defaults)
        """
        self.config = RecurrenceExpanderConfig.from_settings(settings)
        self._semaphore = asyncio.Semaphore(self.config.worker_concurrency)

        logger.debug(
            "RecurrenceExpander initialized: max_occurrences=%d, concurrency=%d, "
            "yield_frequency=%d, default_timezone=%s",
            self.config.max_occurrences_per_rule,
            self.config.worker_concurrency,
            self.config.expansion_yield_frequency,
            self.config.default_timezone,
        )

    def expand(
        self,
        event: CalendarEvent,
        range_start: RangeBound,
        range_end: RangeBound,
    ) -> list[CalendarEvent]:
        """Expand one event into the instances intersecting [range_start, range_end].

        Non-recurring events come back as ``[event]`` when their start is in
        range and ``[]`` otherwise. Recurring events produce one instance per
        surviving occurrence, ordered by start, each with a synthetic id of
        ``{event.id}_{YYYYMMDD}``.

        Args:
            event: Origin event
            range_start: Inclusive window start (naive values are UTC)
            range_end: Inclusive window end (naive values are UTC)

        Returns:
            Instances ordered by start

        Raises:
            InvalidRangeError: If range_start is after range_end
            InvalidRuleError: If the event's recurrence rule is malformed
        """
        start, end = self._normalize_range(range_start, range_end)

        if event.recurrence is None:
            return [event] if start <= event.start <= end else []

        tz = resolve_timezone(event.timezone, self.config.default_timezone)
        generator = build_rrule(event.recurrence, event.start.astimezone(tz), tz)
        exceptions = self._collect_exceptions(event, tz)

        instances: list[CalendarEvent] = []
        seen_dates: set[date] = set()

        for occurrence in self._iter_occurrences(generator, start, end, event.id):
            occurrence_date = occurrence.date()
            seen_dates.add(occurrence_date)
            instance = self._materialize(event, occurrence, exceptions.get(occurrence_date), tz)
            if instance is not None and start <= instance.start <= end:
                instances.append(instance)

        # Modified occurrences whose original date is outside the window but
        # whose new start was moved into it
        for occurrence_date, resolved in exceptions.items():
            if resolved.status != ExceptionStatus.MODIFIED or occurrence_date in seen_dates:
                continue
            moved_start = self._override_start(resolved.override, tz)
            if moved_start is None or not start <= moved_start <= end:
                continue
            occurrence = self._find_occurrence_on(generator, occurrence_date, tz)
            if occurrence is None:
                logger.debug(
                    "Exception date %s on event %s matches no occurrence; ignoring",
                    occurrence_date.isoformat(),
                    event.id,
                )
                continue
            instance = self._materialize(event, occurrence, resolved, tz)
            if instance is not None and start <= instance.start <= end:
                instances.append(instance)

        instances.sort(key=lambda inst: (inst.start, inst.id))

        logger.debug(
            "Expanded event %s: %d instances in [%s, %s]",
            event.id,
            len(instances),
            start.isoformat(),
            end.isoformat(),
        )
        return instances

    def expand_events(
        self,
        events: Iterable[CalendarEvent],
        range_start: RangeBound,
        range_end: RangeBound,
    ) -> list[CalendarEvent]:
        """Expand many events and merge the results in start order.

        An event with a malformed rule is logged and skipped so that one bad
        series does not blank a whole calendar view.

        Raises:
            InvalidRangeError: If range_start is after range_end
        """
        start, end = self._normalize_range(range_start, range_end)

        expanded: list[CalendarEvent] = []
        for event in events:
            try:
                expanded.extend(self.expand(event, start, end))
            except InvalidRuleError as e:
                logger.warning(
                    "Skipping event %s with invalid recurrence rule (field=%s): %s",
                    event.id,
                    e.field,
                    e,
                )
                continue

        expanded.sort(key=lambda inst: (inst.start, inst.id))
        return expanded

    async def expand_events_async(
        self,
        events: Iterable[CalendarEvent],
        range_start: RangeBound,
        range_end: RangeBound,
    ) -> AsyncIterator[CalendarEvent]:
        """Expand many events, yielding instances with cooperative multitasking.

        Instances are yielded event by event (each event's instances in start
        order). Control returns to the event loop every
        ``expansion_yield_frequency`` instances. The worker semaphore is held
        only while an event is being expanded, never across a yield, so a
        paused or abandoned stream does not block other expansions.

        Yields:
            Individual instances

        Raises:
            InvalidRangeError: If range_start is after range_end
        """
        start, end = self._normalize_range(range_start, range_end)

        emitted = 0
        for event in events:
            async with self._semaphore:
                try:
                    instances = self.expand(event, start, end)
                except InvalidRuleError as e:
                    logger.warning(
                        "Skipping event %s with invalid recurrence rule (field=%s): %s",
                        event.id,
                        e.field,
                        e,
                    )
                    continue

            for instance in instances:
                yield instance
                emitted += 1
                if emitted % self.config.expansion_yield_frequency == 0:
                    await asyncio.sleep(0)

        logger.debug("Async expansion completed: yielded=%d instances", emitted)

    def _normalize_range(
        self, range_start: RangeBound, range_end: RangeBound
    ) -> tuple[datetime, datetime]:
        try:
            start = parse_timestamp(range_start, UTC)
            end = parse_timestamp(range_end, UTC)
        except ValueError as e:
            raise InvalidRangeError(f"Invalid range bound: {e}") from e

        if start > end:
            raise InvalidRangeError(
                f"range_start {start.isoformat()} is after range_end {end.isoformat()}"
            )
        return start, end

    def _iter_occurrences(
        self, generator: rrule, start: datetime, end: datetime, event_id: str
    ) -> Iterator[datetime]:
        """Walk occurrences from start to end without materializing the series."""
        for i, occurrence in enumerate(generator.xafter(start, inc=True)):
            if occurrence > end:
                return
            if i >= self.config.max_occurrences_per_rule:
                logger.warning(
                    "Expansion of event %s stopped at %d occurrences (max_occurrences_per_rule)",
                    event_id,
                    self.config.max_occurrences_per_rule,
                )
                return
            yield occurrence

    def _find_occurrence_on(
        self, generator: rrule, day: date, tz: tzinfo
    ) -> Optional[datetime]:
        day_start = datetime.combine(day, time.min, tzinfo=tz)
        day_end = day_start + timedelta(days=1)
        for occurrence in generator.between(day_start, day_end, inc=True):
            if occurrence.date() == day:
                return occurrence
        return None

    def _collect_exceptions(self, event: CalendarEvent, tz: tzinfo) -> dict[date, ResolvedException]:
        """Index usable exceptions by the calendar date they apply to.

        Rule-level excluded dates are applied first, then the event's
        exception list; a later entry for the same date replaces an earlier
        one. Malformed entries are logged and skipped.
        """
        resolved: dict[date, ResolvedException] = {}

        excluded_dates = event.recurrence.exceptions if event.recurrence is not None else None
        for value in excluded_dates or []:
            try:
                excluded = calendar_date_in(value, tz)
            except ValueError as e:
                logger.warning(
                    "Skipping unparsable excluded date %r on event %s: %s", value, event.id, e
                )
                continue
            resolved[excluded] = ResolvedException(
                index=None, date_value=value, status=ExceptionStatus.CANCELLED
            )

        for index, entry in enumerate(event.exceptions or []):
            try:
                day, item = self._resolve_exception(entry, index, tz)
            except MalformedExceptionError as e:
                logger.warning(
                    "Skipping malformed exception #%d on event %s: %s", index, event.id, e
                )
                continue

            if day in resolved:
                logger.debug(
                    "Exception #%d on event %s replaces an earlier entry for %s",
                    index,
                    event.id,
                    day.isoformat(),
                )
            resolved[day] = item

        return resolved

    def _resolve_exception(
        self, entry: EventException, index: int, tz: tzinfo
    ) -> tuple[date, ResolvedException]:
        """Validate one exception entry.

        Raises:
            MalformedExceptionError: If the entry cannot be applied
        """
        if entry.date is None or (isinstance(entry.date, str) and not entry.date.strip()):
            raise MalformedExceptionError("exception has no date", index=index)

        try:
            day = calendar_date_in(entry.date, tz)
        except ValueError as e:
            raise MalformedExceptionError(f"unparsable date {entry.date!r}", index=index) from e

        try:
            status = ExceptionStatus(str(entry.status).lower())
        except ValueError as e:
            raise MalformedExceptionError(f"unknown status {entry.status!r}", index=index) from e

        if status == ExceptionStatus.MODIFIED and entry.modified_event is None:
            raise MalformedExceptionError("modified exception has no modifiedEvent", index=index)

        if status == ExceptionStatus.CANCELLED and entry.modified_event is not None:
            logger.debug("Cancelled exception #%d carries a modifiedEvent; ignoring payload", index)

        override = entry.modified_event if status == ExceptionStatus.MODIFIED else None
        return day, ResolvedException(
            index=index, date_value=entry.date, status=status, override=override
        )

    def _override_start(
        self, override: Optional[EventOverride], tz: tzinfo
    ) -> Optional[datetime]:
        if override is None or override.start is None:
            return None
        return ensure_timezone_aware(override.start, self._override_timezone(override, tz))

    def _override_timezone(self, override: EventOverride, tz: tzinfo) -> tzinfo:
        if override.timezone:
            return resolve_timezone(override.timezone, self.config.default_timezone)
        return tz

    def _materialize(
        self,
        event: CalendarEvent,
        occurrence: datetime,
        resolved: Optional[ResolvedException],
        tz: tzinfo,
    ) -> Optional[CalendarEvent]:
        """Build the instance for one occurrence, or None when it is cancelled."""
        duration = event.duration
        update: dict[str, Any] = {
            "id": f"{event.id}_{occurrence.strftime('%Y%m%d')}",
            "start": occurrence,
            "end": occurrence + duration,
            "recurrence": None,
            "exceptions": None,
            "is_recurring_instance": True,
            "original_event_id": event.id,
            "exception_date": None,
        }

        if resolved is None:
            return event.model_copy(update=update, deep=True)

        if resolved.status == ExceptionStatus.CANCELLED:
            return None

        overrides = resolved.override.overrides() if resolved.override else {}
        for name in _NON_NULLABLE_OVERRIDES:
            if name in overrides and overrides[name] is None:
                del overrides[name]

        override_tz = self._override_timezone(resolved.override, tz) if resolved.override else tz
        new_start = overrides.pop("start", None)
        new_end = overrides.pop("end", None)
        start = ensure_timezone_aware(new_start, override_tz) if new_start else occurrence
        end = ensure_timezone_aware(new_end, override_tz) if new_end else start + duration

        all_day = overrides.get("all_day", event.all_day)
        if end < start or (not all_day and end == start):
            logger.warning(
                "Modified exception #%s on event %s ends before it starts; using unmodified occurrence",
                resolved.index,
                event.id,
            )
            return event.model_copy(update=update, deep=True)

        update.update(overrides)
        update["start"] = start
        update["end"] = end
        update["exception_date"] = resolved.date_value
        return event.model_copy(update=update, deep=True)


# Default expander instance (created on first use)
_default_expander: Optional[RecurrenceExpander] = None


def get_default_expander() -> RecurrenceExpander:
    """Get or create the module-level expander configured from the environment."""
    global _default_expander
    if _default_expander is None:
        _default_expander = RecurrenceExpander(ConfigManager().load_full_config())
    return _default_expander


def expand_event(
    event: CalendarEvent, range_start: RangeBound, range_end: RangeBound
) -> list[CalendarEvent]:
    """Expand one event with the default expander. See RecurrenceExpander.expand."""
    return get_default_expander().expand(event, range_start, range_end)


def expand_events(
    events: Iterable[CalendarEvent], range_start: RangeBound, range_end: RangeBound
) -> list[CalendarEvent]:
    """Expand many events with the default expander. See RecurrenceExpander.expand_events."""
    return get_default_expander().expand_events(events, range_start, range_end)
