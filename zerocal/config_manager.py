"""Engine settings read from ZEROCAL_* environment variables and a .env file."""

from __future__ import annotations

import logging
import os
from collections.abc import Mapping
from pathlib import Path
from typing import Any

from .timezone_utils import get_default_timezone

logger = logging.getLogger(__name__)

# Integer settings read from the environment: env var -> config key
_INT_SETTINGS: dict[str, str] = {
    "ZEROCAL_MAX_OCCURRENCES_PER_RULE": "max_occurrences_per_rule",
    "ZEROCAL_EXPANSION_YIELD_FREQUENCY": "expansion_yield_frequency",
    "ZEROCAL_WORKER_CONCURRENCY": "worker_concurrency",
}


def _parse_env_line(line: str) -> tuple[str, str] | None:
    """Split one .env line into (key, value), or None for blanks and comments.

    Understands an optional ``export`` prefix, values wrapped in matching
    quotes, and trailing ``# comments`` after unquoted values.
    """
    line = line.strip()
    if not line or line.startswith("#") or "=" not in line:
        return None
    if line.startswith("export "):
        line = line[len("export ") :]

    key, _, value = line.partition("=")
    key = key.strip()
    if not key:
        return None

    value = value.strip()
    if len(value) >= 2 and value[0] == value[-1] and value[0] in "\"'":
        value = value[1:-1]
    elif " #" in value:
        value = value.split(" #", 1)[0].rstrip()
    return key, value


def parse_env_file(path: Path) -> dict[str, str]:
    """Read KEY=VALUE pairs from a .env file.

    A missing or unreadable file yields an empty dict.
    """
    try:
        content = path.read_text(encoding="utf-8")
    except FileNotFoundError:
        return {}
    except OSError:
        logger.warning("Could not read %s; ignoring it", path, exc_info=True)
        return {}

    pairs = (_parse_env_line(line) for line in content.splitlines())
    return dict(pair for pair in pairs if pair is not None)


def _positive_int(env_key: str, raw: str) -> int | None:
    try:
        value = int(raw)
    except ValueError:
        logger.warning("Invalid %s=%r; ignoring", env_key, raw)
        return None
    if value < 1:
        logger.warning("Invalid %s=%r (must be >= 1); ignoring", env_key, raw)
        return None
    return value


class ConfigManager:
    """Builds expander settings from the environment.

    Values already present in the environment always win over the .env
    file, so deployments can override a checked-in .env without editing it.
    """

    def __init__(self, env_file_path: Path | None = None):
        self.env_file_path = env_file_path or Path.cwd() / ".env"

    def load_env_file(self) -> list[str]:
        """Copy .env values into os.environ where the key is not already set.

        Returns:
            Keys that were taken from the file
        """
        loaded: list[str] = []
        for key, value in parse_env_file(self.env_file_path).items():
            if key in os.environ:
                continue
            os.environ[key] = value
            loaded.append(key)

        if loaded:
            logger.debug("Loaded %s from %s", ", ".join(loaded), self.env_file_path)
        return loaded

    def build_config_from_env(self) -> dict[str, Any]:
        """Collect ZEROCAL_* settings into a dict for RecurrenceExpanderConfig.

        ``default_timezone`` is always present; integer settings appear only
        when set to a valid value >= 1.
        """
        cfg: dict[str, Any] = {"default_timezone": get_default_timezone()}
        for env_key, cfg_key in _INT_SETTINGS.items():
            raw = os.environ.get(env_key, "").strip()
            if not raw:
                continue
            value = _positive_int(env_key, raw)
            if value is not None:
                cfg[cfg_key] = value
        return cfg

    def load_full_config(self) -> dict[str, Any]:
        """Apply the .env file, then read settings from the environment."""
        self.load_env_file()
        return self.build_config_from_env()


def get_config_value(config: Any, key: str, default: Any = None) -> Any:
    """Look up key on a mapping or attribute-style settings object."""
    if config is None:
        return default
    if isinstance(config, Mapping):
        return config.get(key, default)
    return getattr(config, key, default)
