import os
import shutil
from dataclasses import dataclass

from vllminstaller.errors import DriverMissingError
from vllminstaller.system.command_runner import CommandRunner
from vllminstaller.system.path_resolver import PathResolver


@dataclass(frozen=True)
class GpuReport:
    """One line of ``nvidia-smi`` output, unparsed."""

    name: str
    compute_capability: str


class HostProbe:
    """Read-only queries against the host operating system."""

    def __init__(self, runner: CommandRunner, path_resolver: PathResolver) -> None:
        self.runner = runner
        self.path_resolver = path_resolver

    @staticmethod
    def is_root() -> bool:
        """Check whether the installer runs with an effective UID of 0."""
        return os.geteuid() == 0

    @staticmethod
    def which(executable: str) -> str | None:
        """Locate an executable on PATH."""
        return shutil.which(executable)

    def read_os_release(self) -> dict[str, str]:
        """Parse the os-release file into a key/value mapping.

        Returns:
            Dict of os-release fields with surrounding quotes removed (empty if unreadable)
        """
        try:
            content = self.path_resolver.get_os_release_path().read_text()
        except OSError:
            return {}

        fields = {}
        for line in content.splitlines():
            line = line.strip()
            if not line or line.startswith("#") or "=" not in line:
                continue
            key, value = line.split("=", 1)
            fields[key.strip()] = value.strip().strip("\"'")
        return fields

    def query_gpus(self) -> list[GpuReport]:
        """Query installed GPUs via nvidia-smi.

        Returns:
            One GpuReport per GPU, in the order nvidia-smi lists them

        Raises:
            DriverMissingError: nvidia-smi is present but cannot talk to the driver
        """
        result = self.runner.run(
            ["nvidia-smi", "--query-gpu=name,compute_cap", "--format=csv,noheader"], check=False
        )
        if not result.ok:
            # Usually a driver/library version mismatch; the host is unusable either way
            detail = result.stderr.strip() or result.stdout.strip() or "no output"
            raise DriverMissingError(
                f"nvidia-smi failed with exit status {result.returncode}: {detail}"
            )
        reports = []
        for line in result.stdout.splitlines():
            if not line.strip():
                continue
            # GPU names may contain commas; the capability is always the last column
            name, _, capability = line.rpartition(",")
            reports.append(GpuReport(name=name.strip(), compute_capability=capability.strip()))
        return reports

    def account_exists(self, account: str) -> bool:
        """Check whether a system account already exists."""
        return self.runner.run(["id", "-u", account], check=False).ok
