from collections.abc import Generator
from datetime import datetime, timezone
from typing import Any, Callable

import pytest

from zerocal.recurrence_models import CalendarEvent, RecurrenceRule

ENGINE_ENV_KEYS = [
    "ZEROCAL_DEFAULT_TIMEZONE",
    "ZEROCAL_MAX_OCCURRENCES_PER_RULE",
    "ZEROCAL_EXPANSION_YIELD_FREQUENCY",
    "ZEROCAL_WORKER_CONCURRENCY",
    "ZEROCAL_DEBUG",
    "ZEROCAL_LOG_LEVEL",
]


@pytest.fixture
def simple_settings() -> dict[str, Any]:
    """Lightweight expander settings used across tests.

    Fields:
      - max_occurrences_per_rule: safety cap on enumerated occurrences
      - expansion_yield_frequency: async yield interval
      - default_timezone: zone for events without a timezone
    """
    return {
        "max_occurrences_per_rule": 500,
        "expansion_yield_frequency": 2,
        "default_timezone": "UTC",
    }


@pytest.fixture
def test_timezone() -> str:
    """Return a deterministic DST-observing timezone identifier for tests."""
    return "America/New_York"


@pytest.fixture(autouse=True)
def reset_default_expander() -> Generator[None, Any, None]:
    """Reset the module-level default expander between tests.

    The default expander reads its settings from the environment on first
    use; resetting it keeps env-driven tests from leaking into each other.
    """
    yield
    import zerocal.recurrence_expander

    zerocal.recurrence_expander._default_expander = None


@pytest.fixture(autouse=True)
def clean_test_environment(monkeypatch: Any) -> Generator[None, Any, None]:
    """Clear engine environment variables before each test."""
    for key in ENGINE_ENV_KEYS:
        monkeypatch.delenv(key, raising=False)
    yield


@pytest.fixture
def weekly_rule() -> RecurrenceRule:
    """Weekly rule with four occurrences."""
    return RecurrenceRule(frequency="weekly", interval=1, count=4)


@pytest.fixture
def event_factory() -> Callable[..., CalendarEvent]:
    """Return a builder for origin events.

    Defaults to a one-hour meeting starting 2024-01-01T09:00Z with
    location and description set, so override tests can check inheritance.
    """

    def builder(**overrides: Any) -> CalendarEvent:
        data: dict[str, Any] = {
            "id": "evt-1",
            "title": "Team Sync",
            "description": "Weekly planning",
            "location": "Room 4",
            "color": "#3366ff",
            "user_id": "user-1",
            "start": datetime(2024, 1, 1, 9, 0, tzinfo=timezone.utc),
            "end": datetime(2024, 1, 1, 10, 0, tzinfo=timezone.utc),
        }
        data.update(overrides)
        return CalendarEvent(**data)

    return builder
