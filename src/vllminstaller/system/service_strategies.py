import abc

import structlog

from vllminstaller.system.command_runner import CommandRunner

logger = structlog.get_logger(__name__)


class ServiceManagementStrategy(abc.ABC):
    """Abstract Base Class for service management strategies.

    Defines the interface the service registrar needs from an init system.
    """

    @abc.abstractmethod
    def daemon_reload(self) -> None:
        """Reload daemon configuration after unit files change."""
        pass

    @abc.abstractmethod
    def enable_service(self, service_name: str) -> None:
        """Enable a specified system service to start on boot."""
        pass

    @abc.abstractmethod
    def is_enabled(self, service_name: str) -> bool:
        """Return whether a specified system service starts on boot."""
        pass

    @abc.abstractmethod
    def get_service_status(self, service_name: str) -> str:
        """Return the status of a specified system service."""
        pass


class SystemdStrategy(ServiceManagementStrategy):
    """Service management strategy for systems using systemd (e.g., Ubuntu)."""

    def __init__(self, runner: CommandRunner) -> None:
        self.runner = runner

    def _run_systemctl_command(self, action: str, service_name: str = "") -> None:
        """Run a systemctl command with optional service name."""
        cmd = ["systemctl", action]
        if service_name:
            cmd.append(service_name)
        self.runner.run(cmd)
        if service_name:
            logger.info("systemctl action completed", action=action, service=service_name)
        else:
            logger.info("systemctl action completed", action=action)

    def daemon_reload(self) -> None:
        """Reload systemd daemon configuration."""
        self._run_systemctl_command("daemon-reload")

    def enable_service(self, service_name: str) -> None:
        """Enable a specified system service to start on boot."""
        self._run_systemctl_command("enable", service_name)

    def is_enabled(self, service_name: str) -> bool:
        """Return whether a specified system service starts on boot."""
        result = self.runner.run(["systemctl", "is-enabled", service_name], check=False)
        return result.stdout.strip() == "enabled"

    def get_service_status(self, service_name: str) -> str:
        """Return the status of a specified system service."""
        result = self.runner.run(["systemctl", "is-active", service_name], check=False)
        if result.returncode == 0:
            return "active"
        elif result.returncode == 3:
            return "inactive"
        else:
            return "unknown"
