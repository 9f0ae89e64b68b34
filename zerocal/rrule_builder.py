"""Mapping between stored recurrence rules and dateutil rrule generators."""

import datetime
import logging
import re
from typing import Any, Optional

from dateutil import rrule as du_rrule

from .recurrence_exceptions import InvalidRuleError
from .recurrence_models import RecurrenceFrequency, RecurrenceRule
from .timezone_utils import is_date_only, parse_timestamp

logger = logging.getLogger(__name__)

FREQUENCY_MAP: dict[str, int] = {
    RecurrenceFrequency.DAILY.value: du_rrule.DAILY,
    RecurrenceFrequency.WEEKLY.value: du_rrule.WEEKLY,
    RecurrenceFrequency.MONTHLY.value: du_rrule.MONTHLY,
    RecurrenceFrequency.YEARLY.value: du_rrule.YEARLY,
}

WEEKDAY_MAP: dict[str, du_rrule.weekday] = {
    "MO": du_rrule.MO,
    "TU": du_rrule.TU,
    "WE": du_rrule.WE,
    "TH": du_rrule.TH,
    "FR": du_rrule.FR,
    "SA": du_rrule.SA,
    "SU": du_rrule.SU,
}

_BYDAY_PATTERN = re.compile(r"^([+-]?\d{1,2})?(MO|TU|WE|TH|FR|SA|SU)$")


def parse_weekday(code: str, field: str = "by_day") -> du_rrule.weekday:
    """Turn a weekday code such as "MO", "2TU" or "-1FR" into a dateutil weekday.

    Raises:
        InvalidRuleError: If the code is not a valid RFC 5545 weekday
    """
    match = _BYDAY_PATTERN.match(str(code).strip().upper())
    if not match:
        raise InvalidRuleError(f"Invalid weekday code {code!r} in {field}", field=field)

    ordinal, day = match.groups()
    weekday = WEEKDAY_MAP[day]
    if ordinal is None:
        return weekday

    n = int(ordinal)
    if n == 0 or abs(n) > 53:
        raise InvalidRuleError(f"Invalid weekday ordinal {code!r} in {field}", field=field)
    return weekday(n)


def _check_int_list(
    values: Optional[list[int]], field: str, low: int, high: int, allow_negative: bool = False
) -> Optional[list[int]]:
    if not values:
        return None
    for value in values:
        magnitude = abs(value) if allow_negative else value
        if magnitude < low or magnitude > high:
            raise InvalidRuleError(f"Value {value} out of range in {field}", field=field)
    return list(values)


def validate_rule(rule: RecurrenceRule) -> None:
    """Check frequency and interval, the fields every rule must carry.

    Raises:
        InvalidRuleError: Naming the offending field
    """
    if not rule.frequency:
        raise InvalidRuleError("Recurrence rule is missing frequency", field="frequency")
    if str(rule.frequency).lower() not in FREQUENCY_MAP:
        raise InvalidRuleError(
            f"Unsupported frequency {rule.frequency!r}", field="frequency"
        )
    if rule.interval is None:
        raise InvalidRuleError("Recurrence rule is missing interval", field="interval")
    if rule.interval < 1:
        raise InvalidRuleError(
            f"Interval must be at least 1, got {rule.interval}", field="interval"
        )
    if rule.count is not None and rule.count < 1:
        raise InvalidRuleError(f"Count must be at least 1, got {rule.count}", field="count")


def resolve_until(rule: RecurrenceRule, tz: datetime.tzinfo) -> Optional[datetime.datetime]:
    """Interpret the rule's until bound as an aware datetime in tz.

    A date-only until covers the whole of that day, so an occurrence at any
    time on the until date is still produced.
    """
    if rule.until is None:
        return None
    try:
        until = parse_timestamp(rule.until, tz)
    except ValueError as e:
        raise InvalidRuleError(f"Invalid until value {rule.until!r}", field="until") from e

    date_only = isinstance(rule.until, datetime.date) and not isinstance(
        rule.until, datetime.datetime
    )
    if date_only or (isinstance(rule.until, str) and is_date_only(rule.until)):
        until = until.replace(hour=23, minute=59, second=59)
    return until


def build_rrule(
    rule: RecurrenceRule,
    dtstart: datetime.datetime,
    tz: datetime.tzinfo,
) -> du_rrule.rrule:
    """Build a dateutil rrule anchored at dtstart.

    dtstart should already be expressed in the event's timezone so that
    occurrences keep their wall-clock time across DST changes. When both
    count and until are set, until is the binding constraint and count is
    dropped.

    Raises:
        InvalidRuleError: If any rule field is malformed
    """
    validate_rule(rule)

    kwargs: dict[str, Any] = {
        "freq": FREQUENCY_MAP[str(rule.frequency).lower()],
        "interval": rule.interval,
        "dtstart": dtstart,
    }

    until = resolve_until(rule, tz)
    if until is not None:
        kwargs["until"] = until
        if rule.count:
            logger.debug(
                "Rule sets both count=%d and until=%s; until takes precedence",
                rule.count,
                until.isoformat(),
            )
    elif rule.count:
        kwargs["count"] = rule.count

    if rule.by_day:
        kwargs["byweekday"] = [parse_weekday(code) for code in rule.by_day]

    by_month_day = _check_int_list(rule.by_month_day, "by_month_day", 1, 31, allow_negative=True)
    if by_month_day:
        kwargs["bymonthday"] = by_month_day

    by_month = _check_int_list(rule.by_month, "by_month", 1, 12)
    if by_month:
        kwargs["bymonth"] = by_month

    by_set_pos = _check_int_list(rule.by_set_pos, "by_set_pos", 1, 366, allow_negative=True)
    if by_set_pos:
        kwargs["bysetpos"] = by_set_pos

    if rule.week_start:
        week_start = parse_weekday(rule.week_start, field="week_start")
        if week_start.n is not None:
            raise InvalidRuleError(
                f"Week start {rule.week_start!r} must be a plain weekday code", field="week_start"
            )
        kwargs["wkst"] = week_start.weekday

    try:
        return du_rrule.rrule(**kwargs)
    except (ValueError, TypeError) as e:
        raise InvalidRuleError(f"Recurrence rule rejected by generator: {e}") from e


def _format_until(value: Any) -> str:
    """Render an until bound so that parsing it back gives the same bound.

    Dates stay dates (whole-day bound), naive timestamps stay floating and
    are read in the event's timezone again, aware ones are written in UTC.
    """
    if isinstance(value, datetime.date) and not isinstance(value, datetime.datetime):
        return value.strftime("%Y%m%d")
    try:
        if isinstance(value, str) and is_date_only(value):
            return parse_timestamp(value).strftime("%Y%m%d")
        until = parse_timestamp(value, None)
    except ValueError as e:
        raise InvalidRuleError(f"Invalid until value {value!r}", field="until") from e

    if until.tzinfo is None:
        return until.strftime("%Y%m%dT%H%M%S")
    return until.astimezone(datetime.UTC).strftime("%Y%m%dT%H%M%SZ")


def to_rrule_string(rule: RecurrenceRule) -> str:
    """Convert a rule to an RFC 5545 RRULE value (without the "RRULE:" prefix).

    Raises:
        InvalidRuleError: If frequency or interval are invalid
    """
    validate_rule(rule)

    parts = [f"FREQ={str(rule.frequency).upper()}"]

    if rule.interval and rule.interval != 1:
        parts.append(f"INTERVAL={rule.interval}")

    if rule.until is not None:
        parts.append(f"UNTIL={_format_until(rule.until)}")
    elif rule.count:
        parts.append(f"COUNT={rule.count}")

    if rule.by_day:
        parts.append("BYDAY=" + ",".join(code.strip().upper() for code in rule.by_day))

    if rule.by_month_day:
        parts.append("BYMONTHDAY=" + ",".join(str(v) for v in rule.by_month_day))

    if rule.by_month:
        parts.append("BYMONTH=" + ",".join(str(v) for v in rule.by_month))

    if rule.by_set_pos:
        parts.append("BYSETPOS=" + ",".join(str(v) for v in rule.by_set_pos))

    if rule.week_start:
        parts.append(f"WKST={rule.week_start.strip().upper()}")

    return ";".join(parts)


def _parse_int_list(value: str, key: str, field: str) -> list[int]:
    try:
        return [int(v) for v in value.split(",") if v.strip()]
    except ValueError as e:
        raise InvalidRuleError(f"Invalid {key} value {value!r}", field=field) from e


def parse_rrule_string(rrule_string: str) -> RecurrenceRule:
    """Parse an RRULE value such as "FREQ=WEEKLY;INTERVAL=2;BYDAY=MO,WE".

    An optional "RRULE:" prefix is accepted. Parts with no counterpart in
    RecurrenceRule (BYHOUR, BYWEEKNO...) are ignored.

    Raises:
        InvalidRuleError: If the string is empty, lacks FREQ or holds bad values
    """
    if not rrule_string or not rrule_string.strip():
        raise InvalidRuleError("Empty RRULE string", field="frequency")

    text = rrule_string.strip()
    if text.upper().startswith("RRULE:"):
        text = text[6:]

    data: dict[str, Any] = {}
    for part in text.split(";"):
        if "=" not in part:
            continue
        key, value = part.split("=", 1)
        key = key.strip().upper()
        value = value.strip()

        if key == "FREQ":
            data["frequency"] = value.lower()
        elif key == "INTERVAL":
            try:
                data["interval"] = int(value)
            except ValueError as e:
                raise InvalidRuleError(f"Invalid INTERVAL value {value!r}", field="interval") from e
        elif key == "COUNT":
            try:
                data["count"] = int(value)
            except ValueError as e:
                raise InvalidRuleError(f"Invalid COUNT value {value!r}", field="count") from e
        elif key == "UNTIL":
            data["until"] = value
        elif key == "BYDAY":
            data["by_day"] = [v.strip().upper() for v in value.split(",") if v.strip()]
        elif key == "BYMONTHDAY":
            data["by_month_day"] = _parse_int_list(value, key, "by_month_day")
        elif key == "BYMONTH":
            data["by_month"] = _parse_int_list(value, key, "by_month")
        elif key == "BYSETPOS":
            data["by_set_pos"] = _parse_int_list(value, key, "by_set_pos")
        elif key == "WKST":
            data["week_start"] = value.upper()
        else:
            logger.debug("Ignoring unsupported RRULE part %s=%s", key, value)

    rule = RecurrenceRule(**data)
    validate_rule(rule)
    return rule
