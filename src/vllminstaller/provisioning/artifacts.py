"""Rendering and installation of generated files.

Templates are rendered with jinja2 in strict mode. Before rendering, the names a
template references are compared with the supplied parameters so an artifact is
never produced with a placeholder left unresolved.
"""

import shlex
from dataclasses import dataclass
from pathlib import Path
from typing import Any

import structlog
from jinja2 import Environment, FileSystemLoader, StrictUndefined, TemplateError, meta

from vllminstaller.config.models import ServerOptions
from vllminstaller.errors import TemplateRenderError
from vllminstaller.provisioning.collector import options_from_context
from vllminstaller.provisioning.context import ContextKey, ProvisioningContext
from vllminstaller.system.command_runner import CommandRunner
from vllminstaller.system.file_manager import FileManager
from vllminstaller.system.path_resolver import PathResolver

logger = structlog.get_logger(__name__)

LAUNCHER_TEMPLATE = "run_server.sh.j2"
HELP_TEMPLATE = "vllm-help.j2"
EXECUTABLE_MODE = 0o755
WILDCARD_HOSTS = ("0.0.0.0", "::", "")


@dataclass(frozen=True)
class Artifact:
    """A fully rendered file waiting to be installed.

    Attributes:
        path: Final location on the host
        content: Rendered text
        mode: Permission bits applied on install
        owner: Account that should own the file, or None to leave it owned by root
    """

    path: Path
    content: str
    mode: int = 0o644
    owner: str | None = None


class TemplateRenderer:
    """Renders the packaged templates with every placeholder checked."""

    def __init__(self, templates_dir: Path) -> None:
        self.env = Environment(
            loader=FileSystemLoader(str(templates_dir)),
            undefined=StrictUndefined,
            keep_trailing_newline=True,
            autoescape=False,
        )
        self.env.filters["shell_quote"] = lambda value: shlex.quote(str(value))

    def placeholders(self, template_name: str) -> set[str]:
        """Names a template expects to receive."""
        source, _, _ = self.env.loader.get_source(self.env, template_name)
        return meta.find_undeclared_variables(self.env.parse(source))

    def render(self, template_name: str, params: dict[str, Any]) -> str:
        """Render a template, refusing to produce partially resolved output.

        Raises:
            TemplateRenderError: If a placeholder has no value or rendering fails
        """
        try:
            missing = sorted(self.placeholders(template_name) - params.keys())
            if missing:
                raise TemplateRenderError(
                    f"Template {template_name} has unresolved placeholders: {', '.join(missing)}"
                )
            return self.env.get_template(template_name).render(**params)
        except TemplateError as e:
            raise TemplateRenderError(f"Could not render {template_name}: {e}") from e


def compose_engine_args(options: ServerOptions) -> list[str]:
    """Engine flags derived from the launch parameters, in a fixed order."""
    args = [
        "--gpu-memory-utilization",
        str(options.gpu_memory_utilization),
        "--tensor-parallel-size",
        str(options.tensor_parallel_size),
        "--dtype",
        options.dtype,
    ]
    if options.max_model_len is not None:
        args += ["--max-model-len", str(options.max_model_len)]
    return args


def render_launcher(
    renderer: TemplateRenderer, context: ProvisioningContext, path_resolver: PathResolver
) -> Artifact:
    """Render run_server.sh from the context. Same context, same bytes."""
    options = options_from_context(context)
    content = renderer.render(
        LAUNCHER_TEMPLATE,
        {
            "venv_dir": context.require(ContextKey.VENV_DIR),
            "models_dir": context.require(ContextKey.MODELS_DIR),
            "host": options.host,
            "port": options.port,
            "extra_args": " ".join(shlex.quote(arg) for arg in compose_engine_args(options)),
        },
    )
    return Artifact(
        path=path_resolver.get_run_script_path(),
        content=content,
        mode=EXECUTABLE_MODE,
        owner=context.require(ContextKey.ACCOUNT),
    )


def render_help_command(
    renderer: TemplateRenderer,
    context: ProvisioningContext,
    path_resolver: PathResolver,
    command_name: str,
    service_name: str,
) -> Artifact:
    """Render the system-wide help command with deployment values baked in."""
    host = context.require(ContextKey.HOST)
    content = renderer.render(
        HELP_TEMPLATE,
        {
            "account": context.require(ContextKey.ACCOUNT),
            "install_root": context.require(ContextKey.INSTALL_ROOT),
            "venv_dir": context.require(ContextKey.VENV_DIR),
            "models_dir": context.require(ContextKey.MODELS_DIR),
            "run_script": path_resolver.get_run_script_path(),
            "service_file": path_resolver.get_service_file_path(service_name),
            "service_name": service_name,
            "client_host": "localhost" if host in WILDCARD_HOSTS else host,
            "port": context.require(ContextKey.PORT),
        },
    )
    # System-wide helper: world-executable, left owned by root
    return Artifact(
        path=path_resolver.get_help_command_path(command_name),
        content=content,
        mode=EXECUTABLE_MODE,
    )


def install_artifact(artifact: Artifact, runner: CommandRunner) -> None:
    """Write a rendered artifact to its final path with mode and ownership applied."""
    FileManager.write_file_atomic(artifact.path, artifact.content, artifact.mode)
    if artifact.owner:
        runner.run(["chown", f"{artifact.owner}:{artifact.owner}", str(artifact.path)])
    logger.info("Installed generated file", path=str(artifact.path), mode=oct(artifact.mode))
