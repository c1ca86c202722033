"""Optional systemd service registration.

Choosing the model the service serves is modelled as a small state machine whose
transitions are pure functions of (state, answer), so every branch can be tested
without a terminal. Invalid answers never fail: they keep the machine in place
and the operator is asked again.
"""

from collections.abc import Callable
from dataclasses import dataclass
from enum import Enum
from pathlib import Path

import structlog

from vllminstaller.provisioning.artifacts import Artifact, TemplateRenderer, install_artifact
from vllminstaller.provisioning.context import ContextKey, ProvisioningContext
from vllminstaller.provisioning.prompts import Prompter
from vllminstaller.system.command_runner import CommandRunner
from vllminstaller.system.file_manager import FileManager
from vllminstaller.system.path_resolver import PathResolver
from vllminstaller.system.service_strategies import ServiceManagementStrategy

logger = structlog.get_logger(__name__)

SERVICE_TEMPLATE = "vllm.service.j2"
RESTART_DELAY_SECONDS = 10
LOCAL_EXTRA_FLAGS = ("--disable-log-stats",)


class PromptState(Enum):
    AWAITING_SOURCE_TYPE = "awaiting_source_type"
    AWAITING_HF_IDENTIFIER = "awaiting_hf_identifier"
    AWAITING_LOCAL_PATH = "awaiting_local_path"
    RESOLVED = "resolved"


class SourceKind(Enum):
    HF = "hf"
    LOCAL = "local"


@dataclass(frozen=True)
class ModelSource:
    """The model a service will serve and the flags that go with it."""

    reference: str
    kind: SourceKind
    extra_flags: tuple[str, ...] = ()


@dataclass(frozen=True)
class Transition:
    state: PromptState
    source: ModelSource | None = None
    warning: str | None = None


PROMPTS = {
    PromptState.AWAITING_SOURCE_TYPE: (
        "Use a Hugging Face model ID or a local path for the service? (hf/local)"
    ),
    PromptState.AWAITING_HF_IDENTIFIER: "Enter the Hugging Face model identifier",
    PromptState.AWAITING_LOCAL_PATH: "Enter the absolute path to your local model directory",
}


def advance(state: PromptState, answer: str, is_dir: Callable[[str], bool]) -> Transition:
    """Compute the next prompt state from an operator answer.

    Args:
        state: Current state (must not be RESOLVED)
        answer: Raw operator input
        is_dir: Predicate telling whether a path names an existing directory

    Returns:
        Transition carrying the next state, a warning when the answer was rejected,
        and the resolved model source once the machine reaches RESOLVED
    """
    answer = answer.strip()

    if state is PromptState.AWAITING_SOURCE_TYPE:
        choice = answer.lower()
        if choice == SourceKind.HF.value:
            return Transition(PromptState.AWAITING_HF_IDENTIFIER)
        if choice == SourceKind.LOCAL.value:
            return Transition(PromptState.AWAITING_LOCAL_PATH)
        return Transition(state, warning="Invalid input. Please enter 'hf' or 'local'.")

    if state is PromptState.AWAITING_HF_IDENTIFIER:
        if not answer:
            return Transition(state, warning="Model identifier cannot be empty.")
        return Transition(PromptState.RESOLVED, source=ModelSource(answer, SourceKind.HF))

    if state is PromptState.AWAITING_LOCAL_PATH:
        if not answer:
            return Transition(state, warning="Path cannot be empty.")
        # The unit runs from the install root, so a relative path would point elsewhere
        if not Path(answer).is_absolute():
            return Transition(
                state, warning=f"'{answer}' is not an absolute path. Please provide one."
            )
        if not is_dir(answer):
            return Transition(
                state,
                warning=f"Directory not found at '{answer}'. Please provide a valid absolute path.",
            )
        return Transition(
            PromptState.RESOLVED,
            source=ModelSource(answer, SourceKind.LOCAL, LOCAL_EXTRA_FLAGS),
        )

    raise ValueError(f"No transitions out of {state.name}")


def _is_dir(path: str) -> bool:
    return Path(path).is_dir()


def select_model_source(
    prompter: Prompter, is_dir: Callable[[str], bool] = _is_dir
) -> ModelSource:
    """Ask the operator for a model until a valid one is given."""
    state = PromptState.AWAITING_SOURCE_TYPE
    while True:
        transition = advance(state, prompter.ask(PROMPTS[state]), is_dir)
        if transition.warning:
            prompter.warn(transition.warning)
        if transition.source is not None:
            return transition.source
        state = transition.state


def resolve_preset_source(
    kind: str, reference: str, is_dir: Callable[[str], bool] = _is_dir
) -> ModelSource:
    """Build a model source from configuration answers, applying the same rules.

    Raises:
        ValueError: If the answers would have been rejected interactively
    """
    state = PromptState.AWAITING_SOURCE_TYPE
    for answer in (kind, reference):
        transition = advance(state, answer, is_dir)
        if transition.warning:
            raise ValueError(transition.warning)
        state = transition.state
    if transition.source is None:
        raise ValueError(f"Incomplete model source answers: {kind!r}, {reference!r}")
    return transition.source


def prepare_model_source(source: ModelSource) -> None:
    """Apply the host side effects a model source needs before the service can use it.

    A local model directory is made readable by every account (recursively, with
    traversal on directories) so the dedicated account can load it. This is broad
    and is not undone.
    """
    if source.kind is SourceKind.LOCAL:
        FileManager.grant_world_read(Path(source.reference))


def systemd_quote(arg: str) -> str:
    """Quote one ExecStart argument for systemd's command-line parser."""
    escaped = arg.replace("\\", "\\\\").replace('"', '\\"')
    escaped = escaped.replace("%", "%%").replace("$", "$$")
    return f'"{escaped}"'


def render_service_unit(
    renderer: TemplateRenderer,
    context: ProvisioningContext,
    path_resolver: PathResolver,
    service_name: str,
    source: ModelSource,
) -> Artifact:
    """Render the unit file; engine defaults come from the launcher it executes."""
    exec_start = " ".join(
        [
            systemd_quote(str(path_resolver.get_run_script_path())),
            systemd_quote(source.reference),
            *source.extra_flags,
        ]
    )
    content = renderer.render(
        SERVICE_TEMPLATE,
        {
            "account": context.require(ContextKey.ACCOUNT),
            "install_root": context.require(ContextKey.INSTALL_ROOT),
            "exec_start": exec_start,
            "restart_sec": RESTART_DELAY_SECONDS,
        },
    )
    return Artifact(path=path_resolver.get_service_file_path(service_name), content=content)


def register_service(
    renderer: TemplateRenderer,
    context: ProvisioningContext,
    path_resolver: PathResolver,
    runner: CommandRunner,
    strategy: ServiceManagementStrategy,
    service_name: str,
    source: ModelSource,
) -> Path:
    """Install and enable the service without starting it.

    The first start is left to the operator so it can be watched interactively.

    Returns:
        Path of the installed unit file
    """
    prepare_model_source(source)
    unit = render_service_unit(renderer, context, path_resolver, service_name, source)
    install_artifact(unit, runner)

    unit_name = f"{service_name}.service"
    strategy.daemon_reload()
    strategy.enable_service(unit_name)

    enabled = strategy.is_enabled(unit_name)
    status = strategy.get_service_status(unit_name)
    if not enabled:
        logger.warning("systemd does not report the service as enabled", service=unit_name)
    if status == "active":
        # Left running by an earlier install; it keeps the old unit until restarted
        logger.warning("Service is already running", service=unit_name)

    context.set(ContextKey.MODEL_REFERENCE, source.reference)
    context.set(ContextKey.EXTRA_FLAGS, list(source.extra_flags))
    context.set(ContextKey.SERVICE_REGISTERED, True)
    logger.info(
        "Service created and enabled",
        service=service_name,
        model=source.reference,
        enabled=enabled,
        status=status,
    )
    return unit.path
