"""agenda_lite.core.config_loader

Lightweight config loader for agenda_lite.

- Reads YAML (PyYAML) or JSON files.
- Exposes a typed dataclass `Config` and a `load_config()` helper that accepts
  an optional path override.
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass
from datetime import time
from pathlib import Path
from typing import Any

import yaml

from agenda_lite.exceptions import ConfigError

logger = logging.getLogger(__name__)

DEFAULT_CONFIG_PATH = Path.home() / ".config" / "agenda_lite" / "config.yaml"


@dataclass
class Config:
    """Typed configuration for agenda_lite.

    Fields:
        horizon_months: how far past "now" recurrence expansion may reach (1..60)
        max_occurrences_per_rule: cap on occurrences produced by a single rule
        scroll_settle_ms: delay after a programmatic scroll before it counts as done
        render_wait_ms: how long a selection waits for the list to render its day
        neutral_due_time: time-of-day ("HH:MM", UTC) given to date-only items on reschedule
        upcoming_offset_days: days after today used for drops onto "Upcoming" (>= 2)
        default_timezone: viewer timezone used to decide what "today" is
        log_level: logging level name
    """

    horizon_months: int = 12
    max_occurrences_per_rule: int = 500
    scroll_settle_ms: int = 400
    render_wait_ms: int = 300
    neutral_due_time: str = "12:00"
    upcoming_offset_days: int = 2
    default_timezone: str = "UTC"
    log_level: str = "INFO"

    @property
    def neutral_time(self) -> time:
        """``neutral_due_time`` as a time object."""
        return time.fromisoformat(self.neutral_due_time)

    @property
    def scroll_settle_seconds(self) -> float:
        return self.scroll_settle_ms / 1000.0

    @property
    def render_wait_seconds(self) -> float:
        return self.render_wait_ms / 1000.0

    @classmethod
    def from_dict(cls, data: dict[str, Any] | None) -> Config:
        """Create Config from a plain mapping, applying defaults and validation.

        Numeric-like values are coerced to int and bounded; invalid values fall
        back to defaults with a logged warning.
        """
        if data is None:
            data = {}

        def _coerce_int(key: str, default: int, minimum: int, maximum: int) -> int:
            raw = data.get(key, default)
            try:
                value = int(raw)
            except (TypeError, ValueError):
                logger.warning("Config %s=%r is not an int; using default %d", key, raw, default)
                return default
            if value < minimum:
                logger.warning("%s %d below minimum; coercing to %d", key, value, minimum)
                return minimum
            if value > maximum:
                logger.warning("%s %d above maximum; coercing to %d", key, value, maximum)
                return maximum
            return value

        horizon = _coerce_int("horizon_months", 12, 1, 60)
        max_occurrences = _coerce_int("max_occurrences_per_rule", 500, 1, 10000)
        settle = _coerce_int("scroll_settle_ms", 400, 0, 5000)
        render_wait = _coerce_int("render_wait_ms", 300, 0, 10000)
        # Upcoming must land strictly after tomorrow
        upcoming = _coerce_int("upcoming_offset_days", 2, 2, 365)

        neutral = str(data.get("neutral_due_time", "12:00"))
        try:
            time.fromisoformat(neutral)
        except ValueError:
            logger.warning("Config neutral_due_time=%r is not HH:MM; using 12:00", neutral)
            neutral = "12:00"

        default_tz = data.get("default_timezone", "UTC")
        default_tz = str(default_tz) if default_tz else "UTC"

        log_level = data.get("log_level", "INFO")
        log_level = str(log_level).upper() if log_level is not None else "INFO"

        return cls(
            horizon_months=horizon,
            max_occurrences_per_rule=max_occurrences,
            scroll_settle_ms=settle,
            render_wait_ms=render_wait,
            neutral_due_time=neutral,
            upcoming_offset_days=upcoming,
            default_timezone=default_tz,
            log_level=log_level,
        )


def _load_yaml_or_json(path: Path) -> Any:
    """Load a mapping from a YAML or JSON file.

    JSON files are parsed with the json module; everything else goes through
    ``yaml.safe_load`` (which also accepts JSON).
    """
    text = path.read_text(encoding="utf-8")
    if path.suffix.lower() == ".json":
        try:
            return json.loads(text)
        except json.JSONDecodeError as exc:
            raise ConfigError(f"Config file {path} is not valid JSON: {exc}") from exc
    try:
        loaded = yaml.safe_load(text)
    except yaml.YAMLError as exc:
        raise ConfigError(f"Config file {path} is not valid YAML: {exc}") from exc
    # safe_load returns None for empty files
    return {} if loaded is None else loaded


def load_config(path: str | Path | None = None, overrides: dict[str, Any] | None = None) -> Config:
    """Load configuration from a YAML/JSON file and return a Config instance.

    Args:
        path: Optional path to the config file; defaults to
              ~/.config/agenda_lite/config.yaml
        overrides: Values applied on top of the file (e.g. from environment)

    Returns:
        Config dataclass instance with values from file (or defaults).

    Behavior:
    - If file is missing: defaults (plus overrides).
    - If file exists but top-level is not a mapping: raises ConfigError.
    """
    p = Path(path) if path else DEFAULT_CONFIG_PATH
    logger.debug("Attempting to load config from %s", p)

    raw: dict[str, Any] = {}
    if p.exists():
        loaded = _load_yaml_or_json(p)
        if not isinstance(loaded, dict):
            logger.warning("Config file %s parsed but top-level is not a mapping: %r", p, loaded)
            raise ConfigError("Config file must contain a mapping at top level")
        raw.update(loaded)
        logger.info("Loaded configuration from %s", p)
    else:
        logger.info("Config file %s not found; using defaults", p)

    if overrides:
        raw.update(overrides)

    cfg = Config.from_dict(raw)
    logger.debug("Configuration values: %s", cfg)
    return cfg
