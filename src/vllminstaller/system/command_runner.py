"""Single seam through which the installer runs external commands.

Components receive a ``CommandRunner`` instead of calling ``subprocess`` directly,
so tests can substitute a recorder and never need root or account switching.
"""

import subprocess
from dataclasses import dataclass
from pathlib import Path

import structlog

from vllminstaller.errors import CommandFailedError

logger = structlog.get_logger(__name__)


@dataclass(frozen=True)
class CommandResult:
    """Outcome of an external command."""

    command: list[str]
    returncode: int
    stdout: str = ""
    stderr: str = ""

    @property
    def ok(self) -> bool:
        """Whether the command exited successfully."""
        return self.returncode == 0


class CommandRunner:
    """Runs commands as root or as another account via ``sudo -u``."""

    def run(
        self,
        command: list[str],
        check: bool = True,
        capture: bool = True,
        env: dict[str, str] | None = None,
        cwd: Path | None = None,
    ) -> CommandResult:
        """Run a command as the current (root) user.

        Args:
            command: Argument vector
            check: Raise CommandFailedError on a non-zero exit status
            capture: Capture output instead of streaming it to the terminal
            env: Optional full environment for the child process
            cwd: Optional working directory for the child process

        Returns:
            CommandResult with the exit status and captured output
        """
        logger.debug("Running command", command=command)
        try:
            completed = subprocess.run(
                command,
                check=False,
                capture_output=capture,
                text=True,
                stdin=subprocess.DEVNULL,
                env=env,
                cwd=cwd,
            )
        except FileNotFoundError as e:
            raise CommandFailedError(command, 127, str(e)) from e

        result = CommandResult(
            command=command,
            returncode=completed.returncode,
            stdout=completed.stdout or "",
            stderr=completed.stderr or "",
        )
        if check and not result.ok:
            raise CommandFailedError(command, result.returncode, result.stderr)
        return result

    def run_as(
        self,
        account: str,
        command: list[str],
        check: bool = True,
        capture: bool = True,
        cwd: Path | None = None,
    ) -> CommandResult:
        """Run a command as ``account`` with its own home directory as HOME."""
        return self.run(
            ["sudo", "-u", account, "-H", *command], check=check, capture=capture, cwd=cwd
        )
