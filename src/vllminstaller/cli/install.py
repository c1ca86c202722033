"""Installer entry point for the vLLM OpenAI-compatible server.

This tool must run as root. It:
- Checks prerequisites (Ubuntu, NVIDIA driver, GPU compute capability)
- Collects server launch defaults
- Installs system dependencies and the 'uv' package manager
- Creates a dedicated user, directory layout and virtual environment
- Installs and verifies vLLM
- Generates the 'run_server.sh' launcher and the 'vllm-help' command
- Optionally creates and enables (without starting) a systemd service
"""

import sys
from pathlib import Path

import click
import structlog

from vllminstaller.config.manager import ConfigManager
from vllminstaller.errors import ConfigurationError, InstallerError, PrivilegeError
from vllminstaller.provisioning.artifacts import TemplateRenderer
from vllminstaller.provisioning.context import ContextKey
from vllminstaller.provisioning.orchestrator import (
    Orchestrator,
    StageDependencies,
    build_stages,
    render_summary,
    seed_context,
)
from vllminstaller.provisioning.prompts import ClickPrompter, error, info, warn
from vllminstaller.system.command_runner import CommandRunner
from vllminstaller.system.host_probe import HostProbe
from vllminstaller.system.path_resolver import PathResolver
from vllminstaller.system.service_strategies import SystemdStrategy
from vllminstaller.system.structlog_configurator import configure_structlog

logger = structlog.get_logger(__name__)


def is_attended_install() -> bool:
    """Check if this is an attended installation.

    Returns:
        True if stdin is a TTY (interactive), False otherwise
    """
    return sys.stdin.isatty()


def run_install(
    config_path: Path | None,
    non_interactive: bool,
    create_service: bool | None,
    log_level: str | None,
    json_logs: bool,
) -> None:
    """Load configuration, assemble the pipeline and run it.

    Raises:
        InstallerError: On any fatal condition
    """
    if not HostProbe.is_root():
        raise PrivilegeError(
            "This installer must be run as root. Please use 'sudo vllm-server-installer'"
        )

    config_manager = ConfigManager(config_path)
    config = config_manager.load()
    if log_level:
        config.logging.level = log_level
    if json_logs:
        config.logging.json_logs = True
    configure_structlog(config.logging)
    if config_manager.config_path:
        logger.info("Configuration loaded", path=str(config_manager.config_path))

    if create_service is None:
        create_service = config.service.enabled

    attended = is_attended_install() and not non_interactive
    has_preset_model = bool(config.service.model_source and config.service.model)
    if create_service and not attended and not has_preset_model:
        # Fail now rather than after a long install
        raise ConfigurationError(
            "A service was requested in non-interactive mode but service.model_source "
            "and service.model are not set in the configuration."
        )

    path_resolver = PathResolver(config.install_root)
    runner = CommandRunner()
    prompter = ClickPrompter()
    deps = StageDependencies(
        config=config,
        path_resolver=path_resolver,
        runner=runner,
        probe=HostProbe(runner, path_resolver),
        renderer=TemplateRenderer(path_resolver.get_templates_dir()),
        strategy=SystemdStrategy(runner),
        prompter=prompter if attended else None,
        create_service=create_service,
    )

    context = seed_context(config, path_resolver)
    orchestrator = Orchestrator(build_stages(deps), context, prompter)
    context = orchestrator.run()

    click.echo()
    for line in render_summary(context, path_resolver, config):
        click.echo(line)
    if context.get(ContextKey.SERVICE_REGISTERED, False):
        warn(
            "The service is enabled but not started. "
            f"To start it, run: sudo systemctl start {config.service_name}"
        )


@click.command()
@click.option(
    "--config",
    "config_path",
    type=click.Path(dir_okay=False, path_type=Path),
    help="YAML answers file (defaults to $VLLM_INSTALLER_CONFIG)",
)
@click.option(
    "--non-interactive",
    is_flag=True,
    help="Run in non-interactive mode (use configured defaults, never prompt)",
)
@click.option(
    "--service/--no-service",
    "create_service",
    default=None,
    help="Create the systemd service without asking (or skip it)",
)
@click.option("--log-level", help="Log level (DEBUG, INFO, WARNING, ERROR)")
@click.option("--json-logs", is_flag=True, help="Emit log events as JSON lines")
def main(
    config_path: Path | None,
    non_interactive: bool,
    create_service: bool | None,
    log_level: str | None,
    json_logs: bool,
) -> None:
    """Install the vLLM OpenAI-compatible inference server on this host."""
    try:
        info("vLLM All-in-One Installer for Ubuntu")
        run_install(config_path, non_interactive, create_service, log_level, json_logs)
    except InstallerError as e:
        error(str(e))
        sys.exit(1)
    except (KeyboardInterrupt, click.Abort):
        error("Installation interrupted. No changes were rolled back.")
        sys.exit(1)


if __name__ == "__main__":
    main()
