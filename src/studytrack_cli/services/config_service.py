"""Configuration service for StudyTrack CLI.

Single source of truth for configuration. It handles:

- Loading and saving config.json (created with defaults on first run)
- Dot-path access to individual settings (``timer.credit_overrun``)
- Reading the API token used by the HTTP client
"""

from __future__ import annotations

import json
from functools import lru_cache
from json import JSONDecodeError
from pathlib import Path
from typing import Any

from platformdirs import user_config_dir, user_data_dir
from pydantic import BaseModel

from studytrack_cli.models.config_models import AppConfig


class ConfigService:
    """Loads, saves and edits the application configuration."""

    def __init__(self):
        """Initialize the config service."""

        self.config_dir = Path(user_config_dir("studytrack_cli"))
        self.config_path = self.config_dir / "config.json"
        self.credentials_dir = self.config_dir / "credentials"
        self.data_dir = Path(user_data_dir("studytrack_cli"))

        # Ensure directories exist
        self.config_dir.mkdir(parents=True, exist_ok=True)
        self.data_dir.mkdir(parents=True, exist_ok=True)
        self.credentials_dir.mkdir(parents=True, exist_ok=True)

        self._config: AppConfig | None = None

    @property
    def config(self) -> AppConfig:
        """Get or load the current configuration."""
        if self._config is None:
            self._config = self.load_config()
        return self._config

    @property
    def state_dir(self) -> Path:
        """Directory holding timer snapshots."""
        if self.config.timer.state_dir:
            return Path(self.config.timer.state_dir).expanduser()
        return self.data_dir / "state"

    def load_config(self) -> AppConfig:
        """Load configuration from storage."""
        if self._config is not None:
            return self._config  # Return cached config if already loaded

        try:
            with open(self.config_path, encoding="utf-8") as f:
                self._config = AppConfig.model_validate_json(f.read())
        except FileNotFoundError:
            # First run
            self._config = AppConfig()
            self.save_config()
        except Exception as e:
            raise RuntimeError(f"Failed to load config: {e}") from e

        return self._config

    def save_config(self) -> None:
        """Save the current configuration to storage."""
        if self._config is None:
            raise RuntimeError("No configuration to save")

        try:
            self.config_path.parent.mkdir(parents=True, exist_ok=True)
            with open(self.config_path, "w", encoding="utf-8") as f:
                f.write(self._config.model_dump_json(indent=4))

            # Set file permissions
            self.config_path.chmod(0o600)
        except Exception as e:
            raise RuntimeError(f"Failed to save config: {e}") from e

    def get(self, key: str) -> Any:
        """Get a configuration value by dot-separated key."""
        return self._get_from(self.config, key)

    def set(self, key: str, value: Any) -> None:
        """Set a configuration value by dot-separated key.

        Raises:
            KeyError: If the key does not exist
            pydantic.ValidationError: If the value is invalid for the key
        """
        if not self.has_key(key):
            raise KeyError(key)

        keys = key.split(".")
        config_dict = self.config.model_dump()

        current = config_dict
        for k in keys[:-1]:
            current = current[k]
        current[keys[-1]] = value

        self._config = AppConfig.model_validate(config_dict)
        self.save_config()

    def reset(self, key: str | None = None) -> None:
        """Reset the whole configuration, or a single key, to defaults."""
        if key is None:
            self._config = AppConfig()
            self.save_config()
            return

        if not self.has_key(key):
            raise KeyError(key)
        self.set(key, self._get_from(AppConfig(), key))

    def load_credentials(self) -> dict | None:
        """Load API credentials.

        Returns:
            dict with 'token', or None if not found
        """
        cred_path = self.credentials_dir / "default.json"
        if not cred_path.exists():
            return None

        try:
            with open(cred_path, encoding="utf-8") as f:
                return json.load(f)
        except JSONDecodeError:
            return None

    def save_credentials(self, access_token: str) -> None:
        """Store the API token."""
        cred_path = self.credentials_dir / "default.json"
        cred_path.parent.mkdir(parents=True, exist_ok=True)

        with open(cred_path, "w", encoding="utf-8") as f:
            json.dump({"token": access_token}, f, indent=2)

        # Set secure file permissions
        cred_path.chmod(0o600)

    @staticmethod
    def _get_from(config: AppConfig, key: str) -> Any:
        value: Any = config
        for k in key.split("."):
            if isinstance(value, BaseModel):
                value = getattr(value, k, None)
            else:
                return None
        return value

    def has_key(self, key: str) -> bool:
        """Whether a dot-separated key names a configuration field."""
        value: Any = self.config
        for k in key.split("."):
            if not isinstance(value, BaseModel) or k not in type(value).model_fields:
                return False
            value = getattr(value, k)
        return True


@lru_cache(maxsize=1)
def get_config_service() -> ConfigService:
    """Get a cached ConfigService instance."""
    config_service = ConfigService()
    config_service.load_config()
    return config_service
