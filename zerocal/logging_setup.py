"""
Central logging configuration for zerocal.

Keeps engine diagnostics readable in a host application: engine modules log
at DEBUG only when asked to, while WARNING lines (skipped exceptions,
rejected rules, occurrence caps) always get through.
"""

import logging
import os
import sys
from typing import Optional

from colorlog import ColoredFormatter

ENGINE_MODULES = [
    "zerocal",
    "zerocal.recurrence_expander",
    "zerocal.rrule_builder",
    "zerocal.timezone_utils",
    "zerocal.config_manager",
]

LOG_COLORS = {
    "DEBUG": "cyan",
    "INFO": "green",
    "WARNING": "yellow",
    "ERROR": "red",
    "CRITICAL": "bold_red",
}


def _build_console_handler(level: int) -> logging.Handler:
    handler = logging.StreamHandler(stream=sys.stderr)
    handler.setLevel(level)
    # HH:MM:SS  LEVEL   logger.name: message, with only the level colorized
    fmt = "%(asctime)s %(log_color)s%(levelname)-7s%(reset)s %(name)s: %(message)s"
    handler.setFormatter(ColoredFormatter(fmt, datefmt="%H:%M:%S", log_colors=LOG_COLORS))
    return handler


def configure_logging(debug_mode: bool = False, force_debug: Optional[bool] = None) -> None:
    """
    Configure logging levels for zerocal.

    Args:
        debug_mode: Whether to enable debug logging for zerocal modules
        force_debug: Override debug mode setting (None to use env var detection)

    Environment Variables:
        ZEROCAL_DEBUG: Set to '1', 'true', 'yes' to force debug logging
        ZEROCAL_LOG_LEVEL: Override root log level (DEBUG, INFO, WARNING, ERROR)
    """
    env_debug = os.getenv("ZEROCAL_DEBUG", "").strip().lower() in ("1", "true", "yes", "on")
    env_log_level = os.getenv("ZEROCAL_LOG_LEVEL", "").strip().upper()

    if force_debug is not None:
        final_debug = force_debug
    elif env_debug:
        final_debug = True
    else:
        final_debug = debug_mode

    root_level = logging.DEBUG if final_debug else logging.INFO
    if env_log_level in ("DEBUG", "INFO", "WARNING", "ERROR"):
        root_level = getattr(logging, env_log_level)

    root_logger = logging.getLogger()
    root_logger.setLevel(root_level)

    # Only add a console handler if the host application has not set one up
    if not root_logger.handlers:
        root_logger.addHandler(_build_console_handler(root_level))

    engine_level = logging.DEBUG if final_debug else logging.INFO
    for module in ENGINE_MODULES:
        logging.getLogger(module).setLevel(engine_level)

    # dateutil is quiet, but keep it from inheriting DEBUG from the root
    logging.getLogger("dateutil").setLevel(logging.WARNING)

    logging.getLogger(__name__).debug(
        "Logging configured: root=%s engine=%s",
        logging.getLevelName(root_level),
        logging.getLevelName(engine_level),
    )


def get_logging_status() -> dict[str, str]:
    """
    Get current logging configuration status.

    Returns:
        Dictionary mapping logger names to their current levels
    """
    status = {"root": logging.getLevelName(logging.getLogger().level)}
    for logger_name in ENGINE_MODULES:
        status[logger_name] = logging.getLevelName(logging.getLogger(logger_name).level)
    return status
