from pathlib import Path


class PathResolver:
    """Central authority for all file path resolution in the installer.

    Everything the installer creates lives under the install root, except the
    system-wide help command and the systemd unit. Those system locations can be
    overridden so tests never touch the real host.
    """

    def __init__(
        self,
        install_root: Path,
        bin_dir: Path = Path("/usr/local/bin"),
        systemd_dir: Path = Path("/etc/systemd/system"),
        os_release_path: Path = Path("/etc/os-release"),
    ) -> None:
        self.install_root = install_root
        self.bin_dir = bin_dir
        self.systemd_dir = systemd_dir
        self.os_release_path = os_release_path

    def get_install_root(self) -> Path:
        """Get the install root, which is also the dedicated account's home directory."""
        return self.install_root

    def get_venv_dir(self) -> Path:
        """Get the isolated virtual environment directory."""
        return self.install_root / ".venv"

    def get_venv_python(self) -> Path:
        """Get the interpreter inside the virtual environment."""
        return self.get_venv_dir() / "bin" / "python"

    def get_models_dir(self) -> Path:
        """Get the model cache directory (exported as HF_HOME by the launcher)."""
        return self.install_root / "models"

    def get_run_script_path(self) -> Path:
        """Get the path of the generated launcher script."""
        return self.install_root / "run_server.sh"

    def get_uv_executable(self) -> Path:
        """Get the uv binary installed for the dedicated account."""
        return self.install_root / ".local" / "bin" / "uv"

    def get_help_command_path(self, command_name: str) -> Path:
        """Get the path of the system-wide help command."""
        return self.bin_dir / command_name

    def get_service_file_path(self, service_name: str) -> Path:
        """Get the path of the systemd unit file."""
        return self.systemd_dir / f"{service_name}.service"

    def get_os_release_path(self) -> Path:
        """Get the os-release file used for distribution detection."""
        return self.os_release_path

    def get_templates_dir(self) -> Path:
        """Get the directory holding the artifact templates shipped with the package."""
        return Path(__file__).resolve().parent.parent / "templates"
