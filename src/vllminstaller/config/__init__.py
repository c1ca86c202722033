"""Installer configuration package.

This package provides the configuration models and loader for the installer:
- Server launch defaults (bind address, GPU memory fraction, parallelism, dtype)
- Optional service registration answers for unattended installs
- Logging settings
- YAML answers-file parsing and validation
"""

from .manager import ConfigManager
from .models import InstallerConfig, LoggingConfig, ServerOptions, ServiceOptions

__all__ = [
    "ConfigManager",
    "InstallerConfig",
    "LoggingConfig",
    "ServerOptions",
    "ServiceOptions",
]
