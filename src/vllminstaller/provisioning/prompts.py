"""Operator interaction used by interactive stages.

Stages depend on the ``Prompter`` protocol rather than on a terminal so their
decision logic can be exercised with scripted answers.
"""

from typing import Protocol

import click


class Prompter(Protocol):
    def ask(self, text: str, default: str = "") -> str:
        """Ask a free-form question. An empty answer is returned as ``""``."""
        ...

    def confirm(self, text: str, default: bool = False) -> bool:
        """Ask a yes/no question."""
        ...

    def info(self, message: str) -> None: ...

    def warn(self, message: str) -> None: ...


def info(message: str) -> None:
    click.echo(click.style(f"[INFO] {message}", fg="green"))


def warn(message: str) -> None:
    click.echo(click.style(f"[WARN] {message}", fg="yellow"))


def error(message: str) -> None:
    click.echo(click.style(f"[ERROR] {message}", fg="red"), err=True)


class ClickPrompter:
    """Prompter backed by click's terminal prompts."""

    def ask(self, text: str, default: str = "") -> str:
        label = f"{text} [{default}]" if default else text
        return click.prompt(label, default="", show_default=False)

    def confirm(self, text: str, default: bool = False) -> bool:
        return click.confirm(text, default=default)

    def info(self, message: str) -> None:
        info(message)

    def warn(self, message: str) -> None:
        warn(message)
