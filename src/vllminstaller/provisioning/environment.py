"""Dedicated account, directory layout and the isolated runtime environment.

Every step checks existing host state first, so re-running the installer on a
provisioned host repairs ownership and leaves everything else as it was.
"""

from pathlib import Path

import structlog

from vllminstaller.errors import InstallVerificationFailedError
from vllminstaller.system.command_runner import CommandRunner
from vllminstaller.system.host_probe import HostProbe

logger = structlog.get_logger(__name__)

VERSION_QUERY = "import vllm; print(vllm.__version__)"


def ensure_account(runner: CommandRunner, probe: HostProbe, account: str, home: Path) -> bool:
    """Create the dedicated system account with ``home`` as its home directory.

    Returns:
        True if the account was created, False if it already existed
    """
    if probe.account_exists(account):
        logger.info("User already exists", account=account)
        return False

    runner.run(["useradd", "-r", "-m", "-d", str(home), "-s", "/bin/bash", account])
    logger.info("Created dedicated user", account=account, home=str(home))
    return True


def ensure_layout(runner: CommandRunner, account: str, install_root: Path, dirs: list[Path]) -> None:
    """Create the directory layout and hand the whole tree to the account.

    Ownership is reapplied on every run, not only when directories are created.
    """
    for directory in dirs:
        directory.mkdir(parents=True, exist_ok=True)
    runner.run(["chown", "-R", f"{account}:{account}", str(install_root)])
    logger.info("Created directories and set permissions", root=str(install_root))


def ensure_venv(
    runner: CommandRunner,
    account: str,
    uv_executable: Path,
    venv_dir: Path,
    python_version: str,
    install_root: Path,
) -> bool:
    """Create the virtual environment unless one already exists.

    Returns:
        True if the environment was created by this call
    """
    if (venv_dir / "pyvenv.cfg").exists():
        logger.info("Virtual environment already exists", path=str(venv_dir))
        return False

    runner.run_as(
        account,
        [str(uv_executable), "venv", "--python", python_version, str(venv_dir), "--seed"],
        cwd=install_root,
    )
    logger.info("Virtual environment created", path=str(venv_dir), python=python_version)
    return True


def install_package(
    runner: CommandRunner,
    account: str,
    uv_executable: Path,
    venv_python: Path,
    package: str,
    torch_backend: str,
    install_root: Path,
) -> None:
    """Install the inference engine into the environment.

    uv leaves an already satisfied requirement untouched, so this is safe to repeat.
    Output is streamed to the terminal because the install takes several minutes.
    """
    logger.info("Installing package into the virtual environment", package=package)
    runner.run_as(
        account,
        [
            str(uv_executable),
            "pip",
            "install",
            "--python",
            str(venv_python),
            package,
            f"--torch-backend={torch_backend}",
        ],
        capture=False,
        cwd=install_root,
    )


def verify_installation(
    runner: CommandRunner, account: str, venv_python: Path, install_root: Path
) -> str:
    """Query the installed engine's version as the dedicated account.

    Returns:
        The reported version string

    Raises:
        InstallVerificationFailedError: If no version is reported
    """
    result = runner.run_as(
        account, [str(venv_python), "-c", VERSION_QUERY], check=False, cwd=install_root
    )
    lines = result.stdout.strip().splitlines() if result.ok else []
    # Import-time warnings may precede the version on stdout
    version = lines[-1].strip() if lines else ""
    if not version:
        raise InstallVerificationFailedError(
            "vLLM installation failed. Could not retrieve version after installation. "
            "Please check the logs."
        )
    logger.info("vLLM installed successfully", version=version)
    return version
