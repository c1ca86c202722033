"""Sequencing of the provisioning stages.

Stages run strictly in order. The first exception aborts the run; nothing that
earlier stages did is rolled back, and re-running picks up from the host state.
"""

from dataclasses import dataclass
from typing import Protocol

import structlog

from vllminstaller.config.models import InstallerConfig
from vllminstaller.errors import ConfigurationError, MissingContextValueError, StagePlanError
from vllminstaller.provisioning import (
    artifacts,
    collector,
    dependencies,
    environment,
    prerequisites,
    service,
)
from vllminstaller.provisioning.context import ContextKey, ProvisioningContext
from vllminstaller.provisioning.prompts import Prompter
from vllminstaller.provisioning.stages import Stage, verify_stage_plan
from vllminstaller.system.command_runner import CommandRunner
from vllminstaller.system.host_probe import HostProbe
from vllminstaller.system.path_resolver import PathResolver
from vllminstaller.system.service_strategies import ServiceManagementStrategy

logger = structlog.get_logger(__name__)

SEEDED_KEYS = frozenset(
    {
        ContextKey.ACCOUNT,
        ContextKey.INSTALL_ROOT,
        ContextKey.VENV_DIR,
        ContextKey.MODELS_DIR,
        ContextKey.UV_EXECUTABLE,
    }
)
SERVER_KEYS = frozenset(collector.OPTION_KEYS.values())


class Reporter(Protocol):
    def info(self, message: str) -> None: ...

    def warn(self, message: str) -> None: ...


@dataclass
class StageDependencies:
    """Collaborators injected into every stage."""

    config: InstallerConfig
    path_resolver: PathResolver
    runner: CommandRunner
    probe: HostProbe
    renderer: artifacts.TemplateRenderer
    strategy: ServiceManagementStrategy
    prompter: Prompter | None  # None for non-interactive installs
    create_service: bool | None = None  # None = ask the operator


def seed_context(config: InstallerConfig, path_resolver: PathResolver) -> ProvisioningContext:
    context = ProvisioningContext()
    context.set(ContextKey.ACCOUNT, config.account)
    context.set(ContextKey.INSTALL_ROOT, path_resolver.get_install_root())
    context.set(ContextKey.VENV_DIR, path_resolver.get_venv_dir())
    context.set(ContextKey.MODELS_DIR, path_resolver.get_models_dir())
    context.set(ContextKey.UV_EXECUTABLE, path_resolver.get_uv_executable())
    return context


class Orchestrator:
    """Runs a verified stage sequence against one provisioning context."""

    def __init__(
        self, stages: list[Stage], context: ProvisioningContext, reporter: Reporter
    ) -> None:
        verify_stage_plan(stages, context.keys())
        self.stages = stages
        self.context = context
        self.reporter = reporter

    def run(self) -> ProvisioningContext:
        """Execute every enabled stage in order.

        Raises:
            MissingContextValueError: A stage's declared reads are absent at run time
            StagePlanError: A stage wrote keys it did not declare
        """
        for index, stage in enumerate(self.stages, start=1):
            self.reporter.info(f"Step {index}: {stage.description}...")

            missing = sorted(stage.reads - self.context.keys())
            if missing:
                raise MissingContextValueError(
                    f"Stage '{stage.name}' requires {', '.join(missing)}"
                )

            if not stage.is_enabled(self.context):
                logger.info("Stage skipped", stage=stage.name)
                continue

            before = self.context.keys()
            stage.run(self.context)
            undeclared = sorted((self.context.keys() - before) - stage.writes)
            if undeclared:
                raise StagePlanError(
                    f"Stage '{stage.name}' wrote undeclared keys: {', '.join(undeclared)}"
                )
            logger.info("Stage completed", stage=stage.name)

        return self.context


def build_stages(deps: StageDependencies) -> list[Stage]:
    """Assemble the installer's stage sequence."""
    config = deps.config
    paths = deps.path_resolver

    def check_host(context: ProvisioningContext) -> None:
        capabilities = prerequisites.check_prerequisites(
            deps.probe, config.min_compute_capability
        )
        prerequisites.record_capabilities(context, capabilities)

    def configure(context: ProvisioningContext) -> None:
        options = collector.collect(config.server, deps.prompter)
        collector.record_options(context, options)

    def install_dependencies(context: ProvisioningContext) -> None:
        version = dependencies.detect_python_version(
            deps.probe, config.supported_python_versions, config.default_python_version
        )
        context.set(ContextKey.PYTHON_VERSION, version)
        dependencies.install_system_packages(deps.runner, config.system_packages)

    def create_account(context: ProvisioningContext) -> None:
        account = context.require(ContextKey.ACCOUNT)
        install_root = context.require(ContextKey.INSTALL_ROOT)
        environment.ensure_account(deps.runner, deps.probe, account, install_root)
        environment.ensure_layout(
            deps.runner,
            account,
            install_root,
            [context.require(ContextKey.VENV_DIR), context.require(ContextKey.MODELS_DIR)],
        )

    def install_uv(context: ProvisioningContext) -> None:
        dependencies.ensure_uv(
            deps.runner,
            context.require(ContextKey.ACCOUNT),
            context.require(ContextKey.UV_EXECUTABLE),
        )

    def install_runtime(context: ProvisioningContext) -> None:
        account = context.require(ContextKey.ACCOUNT)
        install_root = context.require(ContextKey.INSTALL_ROOT)
        uv = context.require(ContextKey.UV_EXECUTABLE)
        venv_python = paths.get_venv_python()
        environment.ensure_venv(
            deps.runner,
            account,
            uv,
            context.require(ContextKey.VENV_DIR),
            context.require(ContextKey.PYTHON_VERSION),
            install_root,
        )
        environment.install_package(
            deps.runner, account, uv, venv_python, config.package, config.torch_backend, install_root
        )
        version = environment.verify_installation(deps.runner, account, venv_python, install_root)
        context.set(ContextKey.VLLM_VERSION, version)

    def generate_artifacts(context: ProvisioningContext) -> None:
        launcher = artifacts.render_launcher(deps.renderer, context, paths)
        help_command = artifacts.render_help_command(
            deps.renderer, context, paths, config.help_command_name, config.service_name
        )
        artifacts.install_artifact(launcher, deps.runner)
        artifacts.install_artifact(help_command, deps.runner)

    def wants_service(context: ProvisioningContext) -> bool:
        if deps.create_service is not None:
            return deps.create_service
        if deps.prompter is None:
            return False
        return deps.prompter.confirm(
            "Do you want to create a systemd service to run the vLLM server on boot?",
            default=False,
        )

    def register(context: ProvisioningContext) -> None:
        source = choose_model_source(config, deps.prompter)
        service.register_service(
            deps.renderer,
            context,
            paths,
            deps.runner,
            deps.strategy,
            config.service_name,
            source,
        )

    return [
        Stage(
            name="prerequisites",
            description="Checking prerequisites",
            run=check_host,
            writes=frozenset(
                {ContextKey.OS_NAME, ContextKey.GPU_NAME, ContextKey.COMPUTE_CAPABILITY}
            ),
        ),
        Stage(
            name="configure",
            description="Configuring server defaults",
            run=configure,
            writes=SERVER_KEYS,
        ),
        Stage(
            name="dependencies",
            description="Detecting Python and installing system dependencies",
            run=install_dependencies,
            writes=frozenset({ContextKey.PYTHON_VERSION}),
        ),
        Stage(
            name="account",
            description="Setting up user and directories",
            run=create_account,
            reads=frozenset(
                {
                    ContextKey.ACCOUNT,
                    ContextKey.INSTALL_ROOT,
                    ContextKey.VENV_DIR,
                    ContextKey.MODELS_DIR,
                }
            ),
        ),
        Stage(
            name="uv",
            description="Installing the 'uv' Python package manager",
            run=install_uv,
            reads=frozenset({ContextKey.ACCOUNT, ContextKey.UV_EXECUTABLE}),
        ),
        Stage(
            name="runtime",
            description="Creating virtual environment and installing vLLM",
            run=install_runtime,
            reads=frozenset(
                {
                    ContextKey.ACCOUNT,
                    ContextKey.INSTALL_ROOT,
                    ContextKey.VENV_DIR,
                    ContextKey.UV_EXECUTABLE,
                    ContextKey.PYTHON_VERSION,
                }
            ),
            writes=frozenset({ContextKey.VLLM_VERSION}),
        ),
        Stage(
            name="artifacts",
            description="Creating the run script and help command",
            run=generate_artifacts,
            # Reading the verified version keeps an unverified runtime from getting a launcher
            reads=frozenset(
                {
                    ContextKey.ACCOUNT,
                    ContextKey.INSTALL_ROOT,
                    ContextKey.VENV_DIR,
                    ContextKey.MODELS_DIR,
                    ContextKey.VLLM_VERSION,
                }
            )
            | SERVER_KEYS,
        ),
        Stage(
            name="service",
            description="Optional - Setting up systemd service",
            run=register,
            reads=frozenset(
                {ContextKey.ACCOUNT, ContextKey.INSTALL_ROOT, ContextKey.VLLM_VERSION}
            ),
            writes=frozenset(
                {
                    ContextKey.MODEL_REFERENCE,
                    ContextKey.EXTRA_FLAGS,
                    ContextKey.SERVICE_REGISTERED,
                }
            ),
            enabled=wants_service,
        ),
    ]


def choose_model_source(config: InstallerConfig, prompter: Prompter | None) -> service.ModelSource:
    """Use preset answers when the configuration provides them, otherwise ask.

    Raises:
        ConfigurationError: Preset answers are invalid, or there are none to use
            and no operator to ask
    """
    preset = config.service
    if preset.model_source and preset.model:
        try:
            return service.resolve_preset_source(preset.model_source, preset.model)
        except ValueError as e:
            raise ConfigurationError(f"Invalid service model in configuration: {e}") from e
    if prompter is None:
        raise ConfigurationError(
            "A service was requested in non-interactive mode but service.model_source "
            "and service.model are not set in the configuration."
        )
    return service.select_model_source(prompter)


def render_summary(
    context: ProvisioningContext, path_resolver: PathResolver, config: InstallerConfig
) -> list[str]:
    """Lines of the closing summary shown to the operator."""
    run_script = path_resolver.get_run_script_path()
    lines = [
        "========================================================",
        "          vLLM Installation Complete!                   ",
        "========================================================",
        "",
        f"vLLM version: {context.get(ContextKey.VLLM_VERSION, 'unknown')}",
        "",
        "Key files and directories:",
        f"  - Installation Directory: {context.require(ContextKey.INSTALL_ROOT)}",
        f"  - Models Directory (for HF cache): {context.require(ContextKey.MODELS_DIR)}",
        f"  - Run Script: {run_script}",
        f"  - Help Command: {path_resolver.get_help_command_path(config.help_command_name)}",
        "",
        "Next Steps:",
        f"1. Switch to the vLLM user: sudo su - {context.require(ContextKey.ACCOUNT)}",
        f"2. Run the server manually: {run_script} meta-llama/Llama-2-7b-chat-hf",
        f"3. Show the quick reference at any time: {config.help_command_name}",
    ]
    if context.get(ContextKey.SERVICE_REGISTERED, False):
        lines += [
            "",
            f"Systemd service '{config.service_name}.service' is enabled but not started:",
            f"  - To start the service: sudo systemctl start {config.service_name}",
            f"  - To check its status: sudo systemctl status {config.service_name}",
        ]
    return lines
