"""Configuration loading service.

Handles loading config.yaml, folding flat legacy keys into the nested schema
and applying environment overrides.
"""

import logging
import os
from pathlib import Path
from typing import Any

import yaml

from tabwatch.models.config import AppConfig
from tabwatch.services.log_monitor import MATCHERS_ENV_VAR, parse_matchers

logger = logging.getLogger(__name__)

CORRELATION_FILE_ENV_VAR = "TABWATCH_CORRELATION_FILE"

# Flat keys accepted at the top level and where they live now
FLAT_KEYS = {
    "scan_interval": ("polling", "interval"),
    "poll_interval": ("polling", "interval"),
    "query_timeout": ("polling", "query_timeout"),
    "max_slots": ("polling", "max_slots"),
    "log_matchers": ("events", "log_matchers"),
    "correlation_file": ("events", "correlation_file"),
}


class ConfigService:
    """Service for loading and managing application configuration.

    Handles:
    - Loading config from config.yaml
    - Validating against the Pydantic schema
    - Environment overrides (TABWATCH_LOG_MATCHERS, TABWATCH_CORRELATION_FILE)
    - Saving updated config
    """

    def __init__(self, config_path: str | Path = "config.yaml"):
        """Initialize the config service.

        Args:
            config_path: Path to the config file.
        """
        self.config_path = Path(config_path)
        self._config: AppConfig | None = None

    def load(self) -> AppConfig:
        """Load and validate configuration.

        Returns:
            Validated AppConfig instance. Defaults when the file is missing,
            unreadable or invalid.
        """
        raw_config: dict[str, Any] = {}
        if not self.config_path.exists():
            logger.info(f"Config file not found at {self.config_path}, using defaults")
        else:
            try:
                with open(self.config_path) as f:
                    loaded = yaml.safe_load(f) or {}
                if isinstance(loaded, dict):
                    raw_config = loaded
                else:
                    logger.warning("Config file is not a mapping, using defaults")
            except Exception as e:
                logger.warning(f"Error reading config file: {e}, using defaults")

        normalized = self._apply_env_overrides(self._normalize(raw_config))

        try:
            self._config = AppConfig(**normalized)
        except Exception as e:
            logger.warning(f"Config validation error: {e}, using defaults")
            self._config = AppConfig(**self._apply_env_overrides({}))

        return self._config

    def get_config(self) -> AppConfig:
        """Get the current configuration.

        Loads from disk if not already loaded.
        """
        if self._config is None:
            return self.load()
        return self._config

    def reload(self) -> AppConfig:
        """Force reload configuration from disk."""
        self._config = None
        return self.load()

    def save(self, config: AppConfig | None = None) -> bool:
        """Save configuration to disk.

        Args:
            config: Config to save. Uses current config if not provided.

        Returns:
            True if save succeeded.
        """
        config = config or self._config
        if config is None:
            return False

        try:
            config_dict = config.model_dump(mode="json")
            with open(self.config_path, "w") as f:
                yaml.dump(config_dict, f, default_flow_style=False, sort_keys=False)
            return True
        except Exception as e:
            logger.error(f"Error saving config: {e}")
            return False

    def _normalize(self, raw: dict[str, Any]) -> dict[str, Any]:
        """Fold flat top-level keys into their nested sections.

        Nested values win over flat ones when both are present.
        """
        normalized: dict[str, Any] = {
            key: (dict(value) if isinstance(value, dict) else value)
            for key, value in raw.items()
            if key not in FLAT_KEYS
        }
        for flat_key, (section, field) in FLAT_KEYS.items():
            if flat_key not in raw:
                continue
            target = normalized.setdefault(section, {})
            if not isinstance(target, dict):
                continue
            target.setdefault(field, raw[flat_key])

        events = normalized.get("events")
        if isinstance(events, dict) and isinstance(events.get("log_matchers"), str):
            events["log_matchers"] = parse_matchers(events["log_matchers"])
        return normalized

    def _apply_env_overrides(self, config: dict[str, Any]) -> dict[str, Any]:
        """Apply environment variables on top of file values."""
        events = config.get("events") or {}
        if not isinstance(events, dict):
            return config
        events = dict(events)

        matchers = parse_matchers(os.environ.get(MATCHERS_ENV_VAR))
        if matchers:
            events["log_matchers"] = matchers

        correlation_file = os.environ.get(CORRELATION_FILE_ENV_VAR, "").strip()
        if correlation_file:
            events["correlation_file"] = correlation_file

        if events:
            return {**config, "events": events}
        return config


# Module-level singleton
_config_service: ConfigService | None = None


def get_config_service(config_path: str | Path = "config.yaml") -> ConfigService:
    """Get the global config service instance.

    Args:
        config_path: Path to config file (only used on first call).

    Returns:
        ConfigService singleton.
    """
    global _config_service
    if _config_service is None:
        _config_service = ConfigService(config_path)
    return _config_service


def reset_config_service() -> None:
    """Reset the global config service (for testing)."""
    global _config_service
    _config_service = None
