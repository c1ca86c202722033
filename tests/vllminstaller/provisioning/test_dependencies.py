import pytest

from vllminstaller.errors import CommandFailedError
from vllminstaller.provisioning.dependencies import (
    APT_ENV,
    UV_INSTALL_URL,
    detect_python_version,
    ensure_uv,
    install_system_packages,
)

SUPPORTED = ["3.12", "3.11", "3.10", "3.9"]


class TestDetectPythonVersion:
    """Tests for interpreter selection."""

    @pytest.mark.parametrize(
        "available,expected",
        [
            pytest.param({"python3.12", "python3.10"}, "3.12", id="newest-wins"),
            pytest.param({"python3.10"}, "3.10", id="single-match"),
            pytest.param({"python3.8"}, "3.11", id="unsupported-falls-back"),
            pytest.param(set(), "3.11", id="none-falls-back"),
        ],
    )
    def test_detect(self, fake_probe, available, expected):
        """Should pick the first supported interpreter on PATH, else the default."""
        fake_probe.executables = available

        assert detect_python_version(fake_probe, SUPPORTED, "3.11") == expected


class TestInstallSystemPackages:
    """Tests for apt package installation."""

    def test_update_then_install(self, fake_runner):
        """Should refresh the index before installing the packages."""
        install_system_packages(fake_runner, ["python3-pip", "curl"])

        assert fake_runner.calls == [
            ["apt-get", "update"],
            ["apt-get", "install", "-y", "python3-pip", "curl"],
        ]

    def test_noninteractive_environment(self):
        """Should run apt without interactive prompts."""
        assert APT_ENV["DEBIAN_FRONTEND"] == "noninteractive"

    def test_failure_propagates(self, fake_runner):
        """Should stop on a failed apt run."""
        fake_runner.respond(["apt-get", "update"], returncode=100, stderr="no network")

        with pytest.raises(CommandFailedError, match="no network"):
            install_system_packages(fake_runner, ["curl"])
        assert len(fake_runner.calls) == 1


class TestEnsureUv:
    """Tests for the uv installer step."""

    def test_already_installed(self, fake_runner, tmp_path):
        """Should skip the download when uv is already present."""
        uv = tmp_path / ".local" / "bin" / "uv"
        uv.parent.mkdir(parents=True)
        uv.touch()

        assert ensure_uv(fake_runner, "vllm", uv) is False
        assert fake_runner.calls == []

    def test_installs_as_account(self, fake_runner, tmp_path):
        """Should run the official install script as the dedicated account."""
        uv = tmp_path / ".local" / "bin" / "uv"

        def create_uv(command):
            uv.parent.mkdir(parents=True, exist_ok=True)
            uv.touch()

        fake_runner.respond(["sudo", "-u", "vllm", "-H", "bash"], side_effect=create_uv)

        assert ensure_uv(fake_runner, "vllm", uv) is True
        assert fake_runner.calls == [
            ["sudo", "-u", "vllm", "-H", "bash", "-c", f"curl -LsSf {UV_INSTALL_URL} | sh"]
        ]

    def test_missing_after_install(self, fake_runner, tmp_path):
        """Should fail when the script ran but uv did not appear."""
        with pytest.raises(CommandFailedError, match="uv executable not found"):
            ensure_uv(fake_runner, "vllm", tmp_path / "uv")
