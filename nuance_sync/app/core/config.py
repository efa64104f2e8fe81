"""
Configuration management for the sync service.

Settings come from the ``[sync]`` table of a TOML config file, with
environment variables taking precedence over the file.
"""

import os
from dataclasses import dataclass, field, asdict
from pathlib import Path
from typing import Any, Dict, List, Optional

import tomli
from loguru import logger

from nuance_sync.app.core.Sync.transport import BLOB_DESCRIPTION, BLOB_FILENAME, DEFAULT_API_URL, FORMAT_VERSION


def _default_state_file() -> str:
    return str(Path.home() / ".config" / "nuance_sync" / "state.json")


@dataclass
class SyncConfig:
    """Main configuration class for the sync service."""
    api_base_url: str = DEFAULT_API_URL
    blob_filename: str = BLOB_FILENAME
    blob_description: str = BLOB_DESCRIPTION
    format_version: str = FORMAT_VERSION

    request_timeout: float = 30.0  # seconds, per HTTP call
    lock_timeout: float = 30.0  # seconds to wait for an in-flight sync; negative waits forever

    state_file: str = field(default_factory=_default_state_file)

    # Logging
    log_level: str = "INFO"

    _FIELD_KINDS = {
        "api_base_url": "string",
        "blob_filename": "string",
        "blob_description": "string",
        "format_version": "string",
        "request_timeout": "number",
        "lock_timeout": "number",
        "state_file": "string",
        "log_level": "string",
    }

    @classmethod
    def _coerce_field(cls, key: str, value: Any) -> Any:
        """Returns the value in the field's type, or None when TOML gave the wrong kind."""
        if cls._FIELD_KINDS[key] == "number":
            if isinstance(value, bool) or not isinstance(value, (int, float)):
                return None
            return float(value)
        return value if isinstance(value, str) else None

    @classmethod
    def from_toml(cls, config_path: Optional[Path] = None) -> 'SyncConfig':
        """
        Load configuration from TOML file.

        Args:
            config_path: Path to config file. If None, uses default location.

        Returns:
            SyncConfig instance
        """
        if config_path is None:
            # Try multiple default locations
            possible_paths = [
                Path.home() / ".config" / "nuance_sync" / "config.toml",
                Path("config.toml"),
            ]
            env_path = os.environ.get("NUANCE_SYNC_CONFIG")
            if env_path:
                possible_paths.insert(0, Path(env_path))

            for path in possible_paths:
                if path.exists():
                    config_path = path
                    break
            else:
                logger.warning("No config file found, using defaults")
                config = cls()
                config._apply_env_overrides()
                return config

        logger.info(f"Loading sync config from: {config_path}")

        try:
            with open(config_path, "rb") as f:
                toml_data = tomli.load(f)

            sync_config = toml_data.get("sync", {})
            if not isinstance(sync_config, dict):
                logger.warning("Config [sync] is not a table, ignoring it")
                sync_config = {}
            known = {}
            for key, value in sync_config.items():
                if key not in cls.__dataclass_fields__:
                    continue
                coerced = cls._coerce_field(key, value)
                if coerced is None:
                    logger.warning(f"Ignoring [sync] {key}: expected {cls._FIELD_KINDS[key]}, got {type(value).__name__}")
                    continue
                known[key] = coerced
            ignored = sorted(set(sync_config) - set(cls.__dataclass_fields__))
            if ignored:
                logger.warning(f"Ignoring unknown [sync] config keys: {', '.join(ignored)}")
            config = cls(**known)

        except (OSError, tomli.TOMLDecodeError, TypeError) as e:
            logger.error(f"Error loading config from {config_path}: {e}")
            logger.warning("Using default configuration")
            config = cls()

        # Override with environment variables if present
        config._apply_env_overrides()
        return config

    def _apply_env_overrides(self):
        """Apply environment variable overrides."""
        env_mappings = {
            "NUANCE_SYNC_API_URL": ("api_base_url", str),
            "NUANCE_SYNC_STATE_FILE": ("state_file", str),
            "NUANCE_SYNC_TIMEOUT": ("request_timeout", float),
            "NUANCE_SYNC_LOCK_TIMEOUT": ("lock_timeout", float),
            "NUANCE_SYNC_LOG_LEVEL": ("log_level", str.upper),
        }

        for env_var, (attr, converter) in env_mappings.items():
            value = os.environ.get(env_var)
            if value is not None:
                try:
                    setattr(self, attr, converter(value))
                    logger.debug(f"Override from env: {env_var} -> {attr} = {value}")
                except ValueError as e:
                    logger.warning(f"Failed to apply env override {env_var}: {e}")

    def to_dict(self) -> Dict[str, Any]:
        """Convert configuration to dictionary."""
        return asdict(self)

    def validate(self) -> List[str]:
        """
        Validate configuration settings.

        Returns:
            List of validation errors (empty if valid)
        """
        errors = []

        for name, kind in self._FIELD_KINDS.items():
            value = getattr(self, name)
            if kind == "number":
                ok = isinstance(value, (int, float)) and not isinstance(value, bool)
            else:
                ok = isinstance(value, str)
            if not ok:
                errors.append(f"{name} must be a {kind}, got {type(value).__name__}")
        if errors:
            return errors

        if not self.api_base_url.startswith(("http://", "https://")):
            errors.append("api_base_url must be an http(s) URL")
        if not self.blob_filename:
            errors.append("blob_filename must not be empty")
        if self.request_timeout <= 0:
            errors.append("request_timeout must be > 0")
        if self.log_level not in ("TRACE", "DEBUG", "INFO", "SUCCESS", "WARNING", "ERROR", "CRITICAL"):
            errors.append(f"log_level '{self.log_level}' is not a known level")

        return errors
