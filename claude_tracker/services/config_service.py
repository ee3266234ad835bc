"""Configuration loading, migration and update service.

Handles loading config.yaml, migrating the legacy camelCase settings format,
and applying validated changes from the dashboard.
"""

import logging
import os
from pathlib import Path
from typing import Any

import yaml
from pydantic import ValidationError

from claude_tracker.models.config import AppConfig

logger = logging.getLogger(__name__)

API_KEY_ENV_VAR = "CLAUDE_TRACKER_API_KEY"

# Legacy camelCase key -> current key
LEGACY_SESSION_KEYS = {
    "sessionPattern": "session_pattern",
    "maxSessionAgeHours": "max_session_age_hours",
    "pollIntervalMs": "poll_interval_ms",
    "statusSource": "status_source",
    "stripNamePrefix": "strip_name_prefix",
}
LEGACY_LLM_KEYS = {
    "apiKey": "api_key",
    "baseUrl": "base_url",
    "timeoutSeconds": "timeout_seconds",
}


def _deep_merge(base: dict[str, Any], changes: dict[str, Any]) -> dict[str, Any]:
    merged = dict(base)
    for key, value in changes.items():
        if isinstance(value, dict) and isinstance(merged.get(key), dict):
            merged[key] = _deep_merge(merged[key], value)
        else:
            merged[key] = value
    return merged


class ConfigService:
    """Service for loading and managing application configuration.

    Handles:
    - Loading config from config.yaml
    - Validating against Pydantic schema
    - Migrating from the legacy settings format
    - Applying and saving updates
    """

    def __init__(self, config_path: str | Path = "config.yaml"):
        """Initialize the config service.

        Args:
            config_path: Path to the config file.
        """
        self.config_path = Path(config_path)
        self._config: AppConfig | None = None
        self._api_key_from_env = False

    def load(self) -> AppConfig:
        """Load and validate configuration.

        Never raises: a missing file, unreadable YAML or invalid values fall
        back to defaults with a warning.

        Returns:
            Validated AppConfig instance.
        """
        if not self.config_path.exists():
            logger.info(f"Config file not found at {self.config_path}, using defaults")
            return self._set_config(AppConfig())

        try:
            with open(self.config_path) as f:
                raw_config = yaml.safe_load(f) or {}
        except (OSError, yaml.YAMLError) as e:
            logger.warning(f"Error reading config file: {e}, using defaults")
            return self._set_config(AppConfig())

        if not isinstance(raw_config, dict):
            logger.warning(f"Config file {self.config_path} is not a mapping, using defaults")
            return self._set_config(AppConfig())

        migrated = self._migrate_config(raw_config)

        try:
            config = AppConfig.model_validate(migrated)
        except ValidationError as e:
            logger.warning(f"Config validation error: {e}, using defaults")
            config = AppConfig()

        return self._set_config(config)

    def _set_config(self, config: AppConfig) -> AppConfig:
        env_key = os.environ.get(API_KEY_ENV_VAR)
        self._api_key_from_env = bool(env_key) and not config.llm.api_key
        if self._api_key_from_env:
            llm = config.llm.model_copy(update={"api_key": env_key})
            config = config.model_copy(update={"llm": llm})

        self._config = config
        return config

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

    def update(self, changes: dict[str, Any]) -> AppConfig:
        """Validate a partial configuration change.

        Nested sections (``llm``, ``capture``) are merged key by key. The
        result is neither applied nor written; pass it to save() for that.

        Args:
            changes: Partial config in the current (snake_case) or legacy
                format.

        Returns:
            The new AppConfig.

        Raises:
            pydantic.ValidationError: If the merged config is invalid.
        """
        current = self.get_config().model_dump(mode="json")
        merged = _deep_merge(current, self._migrate_config(changes))
        return AppConfig.model_validate(merged)

    def save(self, config: AppConfig | None = None) -> bool:
        """Save configuration to disk and make it current.

        The current config only changes once the file is written. An API key
        taken from the environment is not written out.

        Args:
            config: Config to save. Uses current config if not provided.

        Returns:
            True if save succeeded.
        """
        config = config or self._config
        if config is None:
            return False

        key_from_env = (
            self._api_key_from_env
            and self._config is not None
            and config.llm.api_key == self._config.llm.api_key
        )

        config_dict = config.model_dump(mode="json")
        if key_from_env:
            config_dict["llm"]["api_key"] = None

        try:
            with open(self.config_path, "w") as f:
                yaml.dump(config_dict, f, default_flow_style=False, sort_keys=False)
        except OSError as e:
            logger.error(f"Error saving config: {e}")
            return False

        self._config = config
        self._api_key_from_env = key_from_env
        return True

    def _migrate_config(self, raw: dict[str, Any]) -> dict[str, Any]:
        """Migrate the legacy settings format to the current schema.

        Handles:
        - camelCase session keys, at the top level or under ``session``
        - camelCase keys under ``llm``
        - Dropping window geometry, which has no counterpart

        Args:
            raw: Raw config dictionary.

        Returns:
            Migrated config dictionary.
        """
        migrated: dict[str, Any] = {}

        legacy_session = raw.get("session")
        if isinstance(legacy_session, dict):
            for old_key, new_key in LEGACY_SESSION_KEYS.items():
                if old_key in legacy_session:
                    migrated[new_key] = legacy_session[old_key]

        for key, value in raw.items():
            if key in ("session", "window"):
                if key == "window":
                    logger.info("Ignoring deprecated config field: window")
                continue
            if key == "llm" and isinstance(value, dict):
                migrated["llm"] = {LEGACY_LLM_KEYS.get(k, k): v for k, v in value.items()}
                continue
            migrated[LEGACY_SESSION_KEYS.get(key, key)] = value

        return migrated


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
