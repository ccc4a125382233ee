"""Terminal output helpers shared by the workflow and the CLI."""

from importlib.metadata import PackageNotFoundError, version

import click

PACKAGE_NAME = "git-integrate"


def get_version() -> str:
    try:
        return version(PACKAGE_NAME)
    except PackageNotFoundError:
        return "0.0.0+unknown"


def log_action(text: str, new_line: bool = False) -> None:
    if new_line:
        click.echo()
    click.echo(click.style(text, fg="yellow"))


def log_success(text: str, new_line: bool = False) -> None:
    if new_line:
        click.echo()
    click.echo(click.style(text, fg="green", bold=True))


def log_error(text: str, new_line: bool = False) -> None:
    if new_line:
        click.echo()
    click.echo(click.style(text, fg="red", bold=True))


def echo_streams(stdout: str, stderr: str) -> None:
    """Pass git's output through to our own stdout and stderr unchanged."""
    if stdout:
        click.echo(stdout, nl=False)
    if stderr:
        click.echo(stderr, nl=False, err=True)
