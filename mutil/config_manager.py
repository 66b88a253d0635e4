"""
Configuration management using database storage.

Provides access to configuration values with defaults, environment overrides
and type conversion. CONFIG_SCHEMA describes every editable key.
"""

import logging
import os
from typing import Any, Dict, Optional

from .database import ConfigRepository, Database

# Editable configuration keys with the description printed by `mutil config`
CONFIG_SCHEMA = {
    "cmus_socket": {
        "description": "Path of the cmus control socket. MUTIL_CMUS_SOCKET overrides it.",
    },
    "poll_interval_ms": {
        "description": "Milliseconds between two status polls while recording.",
    },
    "source_timeout_seconds": {
        "description": "Seconds to wait for cmus to answer a status request.",
    },
    "source_retry_attempts": {
        "description": "Consecutive failed polls tolerated before recording stops. 0 stops on the first failure.",
    },
    "source_retry_backoff_ms": {
        "description": "Initial wait after a failed poll, doubled on each further failure.",
    },
    "live_line": {
        "description": "Overwrite a single terminal line instead of logging each status.",
    },
    "report_top_albums": {
        "description": "Number of albums listed by the daily report.",
    },
}

# Environment variables that win over stored values
ENV_OVERRIDES = {
    "cmus_socket": "MUTIL_CMUS_SOCKET",
}


class ConfigManager:
    """Manages configuration stored in database."""

    DEFAULTS = {
        "cmus_socket": os.path.expanduser("~/.config/cmus/socket"),
        "poll_interval_ms": "2000",
        "source_timeout_seconds": "5",
        "source_retry_attempts": "3",
        "source_retry_backoff_ms": "1000",
        "live_line": "false",
        "report_top_albums": "5",
    }

    def __init__(self, database: Database, environ: Optional[Dict[str, str]] = None):
        """
        Initialize ConfigManager.

        Args:
            database: Database instance
            environ: Environment mapping used for overrides (defaults to os.environ)
        """
        self.database = database
        self.repository = ConfigRepository(database)
        self.environ = os.environ if environ is None else environ
        self.logger = logging.getLogger(__name__)
        self.repository.initialize_defaults(self.DEFAULTS)

    def get(self, key: str, default: Any = None) -> Optional[str]:
        """
        Get a configuration value.

        Environment overrides take precedence, then the stored value, then
        the default.

        Args:
            key: Configuration key
            default: Default value if not found (uses DEFAULTS if None)

        Returns:
            Configuration value as string, or None if not found
        """
        env_name = ENV_OVERRIDES.get(key)
        if env_name and self.environ.get(env_name):
            return self.environ[env_name]

        if default is None:
            default = self.DEFAULTS.get(key)

        entry = self.repository.get(key)
        if entry:
            return entry.value if entry.value else default
        return default

    def get_int(self, key: str, default: Optional[int] = None) -> Optional[int]:
        """Get configuration value as integer."""
        value = self.get(key)
        if value is None or value == "":
            return default
        try:
            return int(value)
        except ValueError:
            self.logger.warning("Invalid integer value for %s: %s", key, value)
            return default

    def get_float(self, key: str, default: Optional[float] = None) -> Optional[float]:
        """Get configuration value as float."""
        value = self.get(key)
        if value is None or value == "":
            return default
        try:
            return float(value)
        except ValueError:
            self.logger.warning("Invalid float value for %s: %s", key, value)
            return default

    def get_bool(self, key: str, default: Optional[bool] = None) -> Optional[bool]:
        """Get configuration value as boolean."""
        value = self.get(key)
        if value is None or value == "":
            return default
        return value.lower() in ("true", "1", "yes", "on")

    def set(self, key: str, value: Any) -> bool:
        """
        Set a configuration value.

        Args:
            key: Configuration key
            value: Value to set (will be converted to string)

        Returns:
            True once stored

        Raises:
            StoreError: if the database cannot be written
        """
        return self.repository.set(key, str(value))

    def get_all(self) -> dict:
        """
        Get all configuration values, with environment overrides applied.

        Returns:
            Dictionary of all configuration key-value pairs
        """
        result = dict(self.DEFAULTS)
        result.update({entry.key: entry.value for entry in self.repository.get_all()})
        for key, env_name in ENV_OVERRIDES.items():
            if self.environ.get(env_name):
                result[key] = self.environ[env_name]
        return result
