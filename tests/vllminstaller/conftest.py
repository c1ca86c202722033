from collections.abc import Callable
from pathlib import Path

import pytest

from vllminstaller.config.models import InstallerConfig
from vllminstaller.errors import CommandFailedError
from vllminstaller.provisioning.artifacts import TemplateRenderer
from vllminstaller.provisioning.collector import record_options
from vllminstaller.provisioning.context import ContextKey, ProvisioningContext
from vllminstaller.provisioning.orchestrator import seed_context
from vllminstaller.system.command_runner import CommandResult, CommandRunner
from vllminstaller.system.host_probe import HostProbe
from vllminstaller.system.path_resolver import PathResolver

UBUNTU_OS_RELEASE = """PRETTY_NAME="Ubuntu 22.04.4 LTS"
NAME="Ubuntu"
VERSION_ID="22.04"
ID=ubuntu
ID_LIKE=debian
"""


class FakeCommandRunner(CommandRunner):
    """Records commands instead of running them.

    Accounts are simulated: ``id -u`` succeeds for names in ``accounts`` and
    ``useradd`` adds to it. Other commands succeed with empty output unless a
    response was scripted with ``respond``; the most recent matching prefix wins.
    """

    def __init__(self) -> None:
        self.calls: list[list[str]] = []
        self.cwds: list[Path | None] = []
        self.accounts: set[str] = set()
        self._responses: list[tuple[list[str], int, str, str, Callable | None]] = []

    def respond(
        self,
        prefix: list[str],
        returncode: int = 0,
        stdout: str = "",
        stderr: str = "",
        side_effect: Callable[[list[str]], None] | None = None,
    ) -> None:
        self._responses.append((prefix, returncode, stdout, stderr, side_effect))

    def run(self, command, check=True, capture=True, env=None, cwd=None):
        command = list(command)
        self.calls.append(command)
        self.cwds.append(cwd)

        returncode, stdout, stderr = 0, "", ""
        if command[:2] == ["id", "-u"]:
            returncode = 0 if command[2] in self.accounts else 1
        elif command[:1] == ["useradd"]:
            self.accounts.add(command[-1])
        else:
            for prefix, rc, out, err, side_effect in reversed(self._responses):
                if command[: len(prefix)] == prefix:
                    if side_effect is not None:
                        side_effect(command)
                    returncode, stdout, stderr = rc, out, err
                    break

        result = CommandResult(command=command, returncode=returncode, stdout=stdout, stderr=stderr)
        if check and not result.ok:
            raise CommandFailedError(command, returncode, stderr)
        return result

    def calls_starting_with(self, *prefix: str) -> list[list[str]]:
        return [call for call in self.calls if call[: len(prefix)] == list(prefix)]


class FakeHostProbe(HostProbe):
    """HostProbe with a controllable set of executables on PATH."""

    def __init__(self, runner, path_resolver, executables=("nvidia-smi",)) -> None:
        super().__init__(runner, path_resolver)
        self.executables = set(executables)

    def which(self, executable: str) -> str | None:
        return f"/usr/bin/{executable}" if executable in self.executables else None


class ScriptedPrompter:
    """Prompter that replays canned answers and records what it was asked."""

    def __init__(self, answers=(), confirmations=()) -> None:
        self.answers = list(answers)
        self.confirmations = list(confirmations)
        self.questions: list[str] = []
        self.warnings: list[str] = []
        self.messages: list[str] = []

    def ask(self, text: str, default: str = "") -> str:
        self.questions.append(text)
        if not self.answers:
            raise AssertionError(f"Unexpected prompt: {text}")
        return self.answers.pop(0)

    def confirm(self, text: str, default: bool = False) -> bool:
        self.questions.append(text)
        return self.confirmations.pop(0) if self.confirmations else default

    def info(self, message: str) -> None:
        self.messages.append(message)

    def warn(self, message: str) -> None:
        self.warnings.append(message)


@pytest.fixture
def fake_runner() -> FakeCommandRunner:
    return FakeCommandRunner()


@pytest.fixture
def installer_config(tmp_path: Path) -> InstallerConfig:
    return InstallerConfig(install_root=tmp_path / "opt" / "vllm-server")


@pytest.fixture
def path_resolver(tmp_path: Path, installer_config: InstallerConfig) -> PathResolver:
    """Provide a PathResolver whose system locations all live under tmp_path."""
    os_release = tmp_path / "os-release"
    os_release.write_text(UBUNTU_OS_RELEASE)
    return PathResolver(
        installer_config.install_root,
        bin_dir=tmp_path / "usr" / "local" / "bin",
        systemd_dir=tmp_path / "etc" / "systemd" / "system",
        os_release_path=os_release,
    )


@pytest.fixture
def fake_probe(fake_runner: FakeCommandRunner, path_resolver: PathResolver) -> FakeHostProbe:
    return FakeHostProbe(fake_runner, path_resolver)


@pytest.fixture
def renderer(path_resolver: PathResolver) -> TemplateRenderer:
    return TemplateRenderer(path_resolver.get_templates_dir())


@pytest.fixture
def configured_context(
    installer_config: InstallerConfig, path_resolver: PathResolver
) -> ProvisioningContext:
    """Context as it stands once configuration and runtime verification are done."""
    context = seed_context(installer_config, path_resolver)
    record_options(context, installer_config.server)
    context.set(ContextKey.VLLM_VERSION, "0.6.3")
    return context


@pytest.fixture
def make_prompter() -> Callable[..., ScriptedPrompter]:
    return ScriptedPrompter
