"""Structlog-based logging configuration for the installer.

The installer is a one-shot interactive process, so log events go to stderr
where they interleave with prompts on stdout. Human-readable console output is
the default; JSON lines can be requested for unattended installs whose output
is captured by provisioning tooling.
"""

import logging
import sys
from collections.abc import Callable
from typing import Any

import structlog

from vllminstaller import __version__
from vllminstaller.config.models import LoggingConfig


def _add_static_context(extra_fields: dict[str, str]) -> Callable:
    """Processor to add static context fields to all log entries."""

    def processor(
        logger: structlog.BoundLogger, method_name: str, event_dict: dict[str, Any]
    ) -> dict[str, Any]:
        event_dict.update(extra_fields)
        return event_dict

    return processor


def _configure_processors(config: LoggingConfig) -> list:
    """Configure structlog processors for the requested output format."""
    extra_fields = {
        "version": __version__,
        **config.extra_fields,
    }

    processors = [
        structlog.contextvars.merge_contextvars,
        structlog.processors.add_log_level,
        structlog.processors.TimeStamper(fmt="ISO"),
    ]

    if config.json_logs:
        # Static fields only matter to machines reading the log stream
        processors.insert(1, _add_static_context(extra_fields))
        processors.append(structlog.processors.JSONRenderer())
    else:
        processors.append(structlog.dev.ConsoleRenderer(colors=sys.stderr.isatty()))

    return processors


def _configure_handlers(log_level: int) -> None:
    """Route stdlib logging to stderr at the configured level."""
    root_logger = logging.getLogger()

    # Clear existing handlers
    for handler in root_logger.handlers[:]:
        root_logger.removeHandler(handler)
    root_logger.setLevel(log_level)

    console_handler = logging.StreamHandler(sys.stderr)
    console_handler.setLevel(log_level)
    console_handler.setFormatter(logging.Formatter("%(message)s"))
    root_logger.addHandler(console_handler)


def configure_structlog(config: LoggingConfig) -> None:
    """Configure structlog-based logging system.

    Args:
        config: The LoggingConfig instance containing logging settings.
    """
    log_level = getattr(logging, config.level.upper(), logging.INFO)

    structlog.configure(
        processors=_configure_processors(config),
        wrapper_class=structlog.make_filtering_bound_logger(log_level),
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )

    _configure_handlers(log_level)

    logger = structlog.get_logger(__name__)
    logger.debug(
        "Structured logging configured",
        version=__version__,
        log_level=config.level,
        json_output=config.json_logs,
    )
