from pathlib import Path

import pytest

from vllminstaller.errors import InstallVerificationFailedError
from vllminstaller.provisioning.environment import (
    VERSION_QUERY,
    ensure_account,
    ensure_layout,
    ensure_venv,
    install_package,
    verify_installation,
)

SUDO = ["sudo", "-u", "vllm", "-H"]


class TestEnsureAccount:
    """Tests for dedicated account creation."""

    def test_creates_missing_account(self, fake_runner, fake_probe):
        """Should create a system account with the install root as home."""
        created = ensure_account(fake_runner, fake_probe, "vllm", Path("/opt/vllm-server"))

        assert created is True
        assert fake_runner.calls_starting_with("useradd") == [
            ["useradd", "-r", "-m", "-d", "/opt/vllm-server", "-s", "/bin/bash", "vllm"]
        ]

    def test_existing_account_is_left_alone(self, fake_runner, fake_probe):
        """Should not run useradd for an account that already exists."""
        fake_runner.accounts.add("vllm")

        created = ensure_account(fake_runner, fake_probe, "vllm", Path("/opt/vllm-server"))

        assert created is False
        assert fake_runner.calls_starting_with("useradd") == []


class TestEnsureLayout:
    """Tests for the directory layout."""

    def test_creates_directories_and_chowns(self, fake_runner, tmp_path):
        """Should create the directories and hand the tree to the account."""
        root = tmp_path / "root"
        dirs = [root / ".venv", root / "models"]

        ensure_layout(fake_runner, "vllm", root, dirs)

        assert all(d.is_dir() for d in dirs)
        assert fake_runner.calls == [["chown", "-R", "vllm:vllm", str(root)]]

    def test_reapplies_ownership(self, fake_runner, tmp_path):
        """Should chown again even when every directory already exists."""
        root = tmp_path / "root"
        dirs = [root / "models"]

        ensure_layout(fake_runner, "vllm", root, dirs)
        ensure_layout(fake_runner, "vllm", root, dirs)

        assert len(fake_runner.calls_starting_with("chown", "-R")) == 2


class TestEnsureVenv:
    """Tests for virtual environment creation."""

    def test_creates_venv_as_account(self, fake_runner, tmp_path):
        """Should run uv venv as the account from the install root."""
        uv = tmp_path / ".local" / "bin" / "uv"
        venv = tmp_path / ".venv"

        created = ensure_venv(fake_runner, "vllm", uv, venv, "3.11", tmp_path)

        assert created is True
        assert fake_runner.calls == [
            [*SUDO, str(uv), "venv", "--python", "3.11", str(venv), "--seed"]
        ]
        assert fake_runner.cwds == [tmp_path]

    def test_existing_venv_is_kept(self, fake_runner, tmp_path):
        """Should not recreate an environment that has a pyvenv.cfg."""
        venv = tmp_path / ".venv"
        venv.mkdir()
        (venv / "pyvenv.cfg").write_text("home = /usr/bin\n")

        created = ensure_venv(fake_runner, "vllm", tmp_path / "uv", venv, "3.11", tmp_path)

        assert created is False
        assert fake_runner.calls == []


def test_install_package(fake_runner, tmp_path):
    """Should install the package into the environment with uv pip."""
    uv = tmp_path / "uv"
    python = tmp_path / ".venv" / "bin" / "python"

    install_package(fake_runner, "vllm", uv, python, "vllm", "auto", tmp_path)

    assert fake_runner.calls == [
        [*SUDO, str(uv), "pip", "install", "--python", str(python), "vllm", "--torch-backend=auto"]
    ]


class TestVerifyInstallation:
    """Tests for post-install verification."""

    def test_reports_version(self, fake_runner, tmp_path):
        """Should return the version printed by the environment's interpreter."""
        python = tmp_path / "python"
        fake_runner.respond([*SUDO, str(python)], stdout="0.6.3\n")

        assert verify_installation(fake_runner, "vllm", python, tmp_path) == "0.6.3"
        assert fake_runner.calls == [[*SUDO, str(python), "-c", VERSION_QUERY]]

    def test_ignores_leading_noise(self, fake_runner, tmp_path):
        """Should take the last line when import warnings precede the version."""
        python = tmp_path / "python"
        fake_runner.respond([*SUDO, str(python)], stdout="INFO some warning\n0.6.3\n")

        assert verify_installation(fake_runner, "vllm", python, tmp_path) == "0.6.3"

    @pytest.mark.parametrize(
        "returncode,stdout",
        [
            pytest.param(1, "", id="import-error"),
            pytest.param(0, "", id="empty-output"),
            pytest.param(1, "0.6.3\n", id="non-zero-exit"),
        ],
    )
    def test_failure(self, fake_runner, tmp_path, returncode, stdout):
        """Should fail when no version can be read."""
        python = tmp_path / "python"
        fake_runner.respond([*SUDO, str(python)], returncode=returncode, stdout=stdout)

        with pytest.raises(InstallVerificationFailedError, match="Could not retrieve version"):
            verify_installation(fake_runner, "vllm", python, tmp_path)
