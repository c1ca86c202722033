"""Configuration loading for unattended and preset installs."""

import os
from pathlib import Path
from typing import Any

import yaml
from pydantic import ValidationError

from vllminstaller.config.models import InstallerConfig
from vllminstaller.errors import ConfigurationError

CONFIG_ENV_VAR = "VLLM_INSTALLER_CONFIG"


class ConfigManager:
    """Loads and validates the optional YAML answers file."""

    def __init__(self, config_path: Path | None = None):
        """Initialize ConfigManager.

        Args:
            config_path: Optional path to a YAML answers file. Falls back to the
                VLLM_INSTALLER_CONFIG environment variable when not given.
        """
        if config_path is None:
            env_path = os.getenv(CONFIG_ENV_VAR)
            config_path = Path(env_path) if env_path else None
        self.config_path = config_path

    def load(self) -> InstallerConfig:
        """Load configuration, applying defaults for anything not specified.

        Returns:
            InstallerConfig: Validated configuration

        Raises:
            ConfigurationError: If the file is missing, unreadable, or invalid
        """
        if self.config_path is None:
            return InstallerConfig()

        raw_config = self._read_yaml(self.config_path)
        try:
            config = InstallerConfig(**raw_config)
        except ValidationError as e:
            errors = [
                f"{'.'.join(str(part) for part in error['loc'])}: {error['msg']}"
                for error in e.errors()
            ]
            raise ConfigurationError(
                f"Configuration validation failed for {self.config_path}: {'; '.join(errors)}"
            ) from e

        return config

    def _read_yaml(self, config_path: Path) -> dict[str, Any]:
        """Read YAML config file.

        Returns:
            dict: Raw configuration dictionary
        """
        if not config_path.is_file():
            raise ConfigurationError(f"Configuration file not found: {config_path}")

        try:
            raw_config = yaml.safe_load(config_path.read_text()) or {}
        except (OSError, yaml.YAMLError) as e:
            raise ConfigurationError(f"Could not read {config_path}: {e}") from e

        if not isinstance(raw_config, dict):
            raise ConfigurationError(
                f"Configuration file {config_path} must contain a mapping at the top level"
            )
        return raw_config
