"""
Central logging configuration for agenda_lite.

Keeps engine diagnostics at INFO by default and lets debug output be switched
on per run without code changes.
"""

import logging
import os
from typing import Optional

AGENDA_MODULES = [
    "agenda_lite",
    "agenda_lite.calendar.rrule_codec",
    "agenda_lite.calendar.occurrence_generator",
    "agenda_lite.calendar.bucketer",
    "agenda_lite.domain.scroll_sync",
    "agenda_lite.domain.rescheduler",
    "agenda_lite.domain.engine",
]


def configure_lite_logging(debug_mode: bool = False, force_debug: Optional[bool] = None) -> None:
    """
    Configure logging levels for agenda_lite.

    Args:
        debug_mode: Whether to enable debug logging for agenda_lite modules
        force_debug: Override debug mode setting (None to use env var detection)

    Environment Variables:
        AGENDA_DEBUG: Set to '1', 'true', 'yes' to force debug logging
        AGENDA_LOG_LEVEL: Override root log level (DEBUG, INFO, WARNING, ERROR)
    """
    env_debug = os.getenv("AGENDA_DEBUG", "").lower() in ("1", "true", "yes")
    env_log_level = os.getenv("AGENDA_LOG_LEVEL", "").upper()

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

    logger_config: dict[str, int] = {
        "asyncio": logging.WARNING,  # Event loop debug logs
    }

    module_level = logging.DEBUG if final_debug else logging.INFO
    for module in AGENDA_MODULES:
        logger_config[module] = module_level

    for logger_name, level in logger_config.items():
        logging.getLogger(logger_name).setLevel(level)

    if final_debug:
        root_logger.info("Debug logging enabled for agenda_lite modules")


def get_logging_status() -> dict[str, str]:
    """
    Get current logging configuration status.

    Returns:
        Dictionary mapping logger names to their current levels
    """
    status = {"root": logging.getLevelName(logging.getLogger().level)}
    for logger_name in ["agenda_lite", "asyncio"]:
        status[logger_name] = logging.getLevelName(logging.getLogger(logger_name).level)
    return status
