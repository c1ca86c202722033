"""System domain package.

This package contains host-level components:
- CommandRunner: External command execution, optionally as another account
- FileManager: Atomic file writes and permission changes
- HostProbe: Read-only host queries (os-release, GPUs, accounts)
- PathResolver: Path resolution and management
- ServiceStrategies: Init system management strategies
- StructlogConfigurator: Structured logging configuration
"""

from vllminstaller.system import structlog_configurator
from vllminstaller.system.command_runner import CommandResult, CommandRunner
from vllminstaller.system.file_manager import FileManager
from vllminstaller.system.host_probe import GpuReport, HostProbe
from vllminstaller.system.path_resolver import PathResolver
from vllminstaller.system.service_strategies import ServiceManagementStrategy, SystemdStrategy

__all__ = [
    "CommandResult",
    "CommandRunner",
    "FileManager",
    "GpuReport",
    "HostProbe",
    "PathResolver",
    "ServiceManagementStrategy",
    "SystemdStrategy",
    "structlog_configurator",
]
