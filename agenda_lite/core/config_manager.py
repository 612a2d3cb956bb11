"""Environment-driven configuration for agenda_lite."""

from __future__ import annotations

import logging
import os
from pathlib import Path
from typing import Any

logger = logging.getLogger(__name__)

# Environment variable -> (config key, is integer)
ENV_KEYS: dict[str, tuple[str, bool]] = {
    "AGENDA_HORIZON_MONTHS": ("horizon_months", True),
    "AGENDA_MAX_OCCURRENCES": ("max_occurrences_per_rule", True),
    "AGENDA_SCROLL_SETTLE_MS": ("scroll_settle_ms", True),
    "AGENDA_RENDER_WAIT_MS": ("render_wait_ms", True),
    "AGENDA_NEUTRAL_DUE_TIME": ("neutral_due_time", False),
    "AGENDA_UPCOMING_OFFSET_DAYS": ("upcoming_offset_days", True),
    "AGENDA_DEFAULT_TIMEZONE": ("default_timezone", False),
    "AGENDA_LOG_LEVEL": ("log_level", False),
}


class ConfigManager:
    """Manages configuration overrides from environment variables and .env files."""

    def __init__(self, env_file_path: Path | None = None):
        """Initialize configuration manager.

        Args:
            env_file_path: Optional path to .env file (defaults to .env in current directory)
        """
        self.env_file_path = env_file_path or Path.cwd() / ".env"

    def load_env_file(self) -> list[str]:
        """Load .env file and set environment variables.

        Only sets variables that are not already in the environment to avoid
        surprising overrides of user's environment.

        Returns:
            List of environment variable keys that were loaded from .env file
        """
        if not self.env_file_path.exists():
            logger.debug("No .env file found at %s", self.env_file_path)
            return []

        set_keys = []

        try:
            content = self.env_file_path.read_text(encoding="utf-8")
        except OSError:
            logger.debug(
                "Failed to read .env file for defaults (continuing): %s",
                str(self.env_file_path),
                exc_info=True,
            )
            return []

        for raw_line in content.splitlines():
            line = raw_line.strip()

            # Skip empty lines and comments
            if not line or line.startswith("#") or "=" not in line:
                continue

            key, val = line.split("=", 1)
            key = key.strip()
            val = val.strip().strip('"').strip("'")

            # Only set if not already in environment
            if key and key not in os.environ:
                os.environ[key] = val
                set_keys.append(key)

        if set_keys:
            logger.debug("Loaded .env defaults for keys: %s", ", ".join(set_keys))

        return set_keys

    def build_config_from_env(self) -> dict[str, Any]:
        """Build a configuration override dictionary from AGENDA_* variables.

        Invalid integers are logged and ignored.

        Returns:
            Mapping suitable for ``Config.from_dict`` / ``load_config(overrides=...)``
        """
        cfg: dict[str, Any] = {}

        for env_name, (key, is_int) in ENV_KEYS.items():
            raw = os.environ.get(env_name)
            if not raw:
                continue
            if is_int:
                try:
                    cfg[key] = int(raw)
                except ValueError:
                    logger.warning("Invalid %s=%r; ignoring", env_name, raw)
                continue
            cfg[key] = raw

        return cfg

    def load_full_config(self) -> dict[str, Any]:
        """Load .env file and build configuration overrides from environment.

        Returns:
            Configuration override dictionary
        """
        self.load_env_file()
        return self.build_config_from_env()
