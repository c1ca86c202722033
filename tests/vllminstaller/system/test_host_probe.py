import pytest

from vllminstaller.errors import DriverMissingError, PrerequisiteError
from vllminstaller.system.host_probe import GpuReport, HostProbe

NVIDIA_SMI = ["nvidia-smi", "--query-gpu=name,compute_cap", "--format=csv,noheader"]


class TestHostProbe:
    """Tests for read-only host queries."""

    def test_is_root(self, mocker):
        """Should compare the effective UID with 0."""
        mocker.patch("os.geteuid", return_value=0)
        assert HostProbe.is_root() is True

        mocker.patch("os.geteuid", return_value=1000)
        assert HostProbe.is_root() is False

    def test_which(self, mocker):
        """Should delegate executable lookup to shutil.which."""
        mock_which = mocker.patch("shutil.which", return_value="/usr/bin/nvidia-smi")

        assert HostProbe.which("nvidia-smi") == "/usr/bin/nvidia-smi"
        mock_which.assert_called_once_with("nvidia-smi")

    def test_read_os_release(self, fake_runner, path_resolver):
        """Should parse key/value pairs and strip quotes."""
        path_resolver.get_os_release_path().write_text(
            '# comment\nNAME="Ubuntu"\nID=ubuntu\n\nVERSION_ID=\'24.04\'\nmalformed\n'
        )

        fields = HostProbe(fake_runner, path_resolver).read_os_release()

        assert fields == {"NAME": "Ubuntu", "ID": "ubuntu", "VERSION_ID": "24.04"}

    def test_read_os_release_missing(self, fake_runner, path_resolver):
        """Should return an empty mapping when the file is unreadable."""
        path_resolver.get_os_release_path().unlink()

        assert HostProbe(fake_runner, path_resolver).read_os_release() == {}

    def test_query_gpus(self, fake_runner, path_resolver):
        """Should split each line on its last comma."""
        fake_runner.respond(
            NVIDIA_SMI, stdout="NVIDIA GeForce RTX 4090, 8.9\nWeird, Name GPU, 7.5\n\n"
        )

        gpus = HostProbe(fake_runner, path_resolver).query_gpus()

        assert gpus == [
            GpuReport("NVIDIA GeForce RTX 4090", "8.9"),
            GpuReport("Weird, Name GPU", "7.5"),
        ]

    def test_account_exists(self, fake_runner, path_resolver):
        """Should check the account with id -u without raising."""
        probe = HostProbe(fake_runner, path_resolver)

        assert probe.account_exists("vllm") is False
        fake_runner.accounts.add("vllm")
        assert probe.account_exists("vllm") is True
        assert fake_runner.calls[-1] == ["id", "-u", "vllm"]

    def test_query_gpus_failure(self, fake_runner, path_resolver):
        """Should raise DriverMissingError with the driver's message when nvidia-smi fails."""
        fake_runner.respond(
            NVIDIA_SMI,
            returncode=9,
            stderr="Failed to initialize NVML: Driver/library version mismatch\n",
        )

        with pytest.raises(DriverMissingError) as exc_info:
            HostProbe(fake_runner, path_resolver).query_gpus()

        assert isinstance(exc_info.value, PrerequisiteError)
        assert "exit status 9" in str(exc_info.value)
        assert "Driver/library version mismatch" in str(exc_info.value)
