"""System packages, interpreter selection and the uv environment manager."""

from pathlib import Path

import structlog

from vllminstaller.errors import CommandFailedError
from vllminstaller.system.command_runner import CommandRunner
from vllminstaller.system.host_probe import HostProbe

logger = structlog.get_logger(__name__)

UV_INSTALL_URL = "https://astral.sh/uv/install.sh"
APT_ENV = {"DEBIAN_FRONTEND": "noninteractive", "PATH": "/usr/sbin:/usr/bin:/sbin:/bin"}


def detect_python_version(probe: HostProbe, supported: list[str], default: str) -> str:
    """Pick the interpreter version for the virtual environment.

    Searches ``python<version>`` on PATH in the given order (newest first). When none
    is found, returns ``default`` and uv downloads a standalone build of it.
    """
    for version in supported:
        if probe.which(f"python{version}"):
            logger.info("Found compatible system Python", version=version)
            return version

    logger.warning(
        "No system-wide Python found in the supported range; uv will download a standalone build",
        supported=supported,
        version=default,
    )
    return default


def install_system_packages(runner: CommandRunner, packages: list[str]) -> None:
    """Install system packages with apt-get (already-installed packages are left as is)."""
    runner.run(["apt-get", "update"], env=APT_ENV)
    runner.run(["apt-get", "install", "-y", *packages], env=APT_ENV)
    logger.info("System dependencies installed", packages=packages)


def ensure_uv(runner: CommandRunner, account: str, uv_executable: Path) -> bool:
    """Install uv for the dedicated account unless it is already present.

    Returns:
        True if uv was installed by this call, False if it already existed

    Raises:
        CommandFailedError: If the installer ran but the executable is still missing
    """
    if uv_executable.exists():
        logger.info("uv already installed", path=str(uv_executable))
        return False

    command = ["bash", "-c", f"curl -LsSf {UV_INSTALL_URL} | sh"]
    runner.run_as(account, command)
    if not uv_executable.exists():
        raise CommandFailedError(command, 1, f"uv executable not found at {uv_executable}")

    logger.info("uv installed", account=account, path=str(uv_executable))
    return True
