"""git-integrate CLI entry point using Click.

Usage:
    git-integrate [--remote NAME] [--tag-prefix PREFIX] [-C PATH] [-v]
    git integrate                      — same, as a git subcommand

Merges a pushed feature branch into the checked-out branch with
``--no-ff``, after checking both are in sync with the remote and the
feature branch sits directly on top of the checked-out branch.  Then
optionally tags, deletes and pushes.

Exit status: 0 when the run completes, is declined or is aborted; 1 on any
failed check or git error.
"""

from pathlib import Path

import click

from integrate.config import DEFAULT_REMOTE, DEFAULT_TAG_PREFIX, IntegrateConfig
from integrate.fmt import get_version, log_error, log_success
from integrate.git import Git
from integrate.logging_setup import configure_logging
from integrate.prompt import AbortSignal, ClickPrompter, IntegrationAborted, interrupt_handler
from integrate.workflow import (
    IntegrationDeclined,
    IntegrationFailure,
    IntegrationState,
    WorkflowContext,
    run_integration,
)

FAREWELL = "Ok bye \\_(-_-)_/"
ALL_DONE = "All done \\(´▽`)/"


def integrate(ctx: WorkflowContext, config: IntegrateConfig, abort: AbortSignal) -> int:
    """Run the whole workflow and return the process exit code."""
    with interrupt_handler(abort):
        try:
            outcome = run_integration(ctx, IntegrationState(config=config))
        except IntegrationAborted as e:
            if abort.trigger(e.source):
                log_success(FAREWELL, new_line=True)
            return 0

    if isinstance(outcome, IntegrationFailure):
        log_error(outcome.message)
        if outcome.detail:
            click.echo(outcome.detail, err=True, nl=not outcome.detail.endswith("\n"))
        return 1

    if isinstance(outcome, IntegrationDeclined):
        log_success(outcome.message, new_line=True)
        return 0

    log_success(ALL_DONE, new_line=True)
    return 0


@click.command(context_settings={"help_option_names": ["-h", "--help"]})
@click.version_option(version=get_version(), prog_name="git-integrate")
@click.option(
    "--remote", default=DEFAULT_REMOTE, show_default=True,
    help="Remote to fetch from and push to.",
)
@click.option(
    "--tag-prefix", default=DEFAULT_TAG_PREFIX, show_default=True,
    help="Prefix of the tag marking the integrated branch.",
)
@click.option(
    "-C", "--directory", "directory",
    type=click.Path(path_type=Path, exists=True, file_okay=False),
    default=None,
    help="Run as if started in this directory.",
)
@click.option("-v", "--verbose", is_flag=True, help="Log every git command to stderr.")
def main(remote: str, tag_prefix: str, directory: Path | None, verbose: bool) -> None:
    """Integrate a feature branch into the current branch."""
    configure_logging(verbose=verbose)

    config = IntegrateConfig(
        remote=remote,
        tag_prefix=tag_prefix,
        cwd=directory if directory is not None else Path.cwd(),
    )
    abort = AbortSignal()
    ctx = WorkflowContext(git=Git(config.cwd), prompter=ClickPrompter())
    raise SystemExit(integrate(ctx, config, abort))


if __name__ == "__main__":
    main()
