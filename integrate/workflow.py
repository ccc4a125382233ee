"""The integration pipeline.

Integrating a feature branch into the checked-out branch is a straight
line of steps:

1. Check we are inside a git working tree.
2. Check the working copy has no uncommitted changes.
3. ``git fetch <remote> --tags``.
4. List local branches (at least two, one of them checked out).
5. Let the user pick the source branch; the checked-out branch is the
   target and cannot be picked.
6. Ask for confirmation (default no).  Declining ends the run cleanly.
7. Check the source branch exists on the remote.
8. Check target and source are identical to their remote-tracking refs.
9. Check the source has commits the target lacks, and that it descends
   from the target's tip (merge-base == target).
10. ``git merge <source> --no-ff --no-edit``.
11. Optionally tag the source tip as ``integrated/<source>`` and push it.
12. Optionally delete the source branch locally and on the remote.
13. Optionally push the target branch.

Each step is a function ``(WorkflowContext, IntegrationState) ->
IntegrationState | IntegrationFailure | IntegrationDeclined``.  Steps never
exit the process; :func:`run_integration` stops at the first non-state
result and hands it back to the caller, which owns the exit code.

Nothing is rolled back: if pushing the tag fails after a successful
merge, the merge stays and the user sorts it out with git.
"""

import dataclasses
import enum
import functools
import logging
from collections.abc import Callable
from dataclasses import dataclass

import click

from integrate.branches import Branch, current_branch, hint_for, parse_branch_listing
from integrate.config import IntegrateConfig
from integrate.fmt import echo_streams, log_action
from integrate.git import Git
from integrate.logging_setup import log_step
from integrate.prompt import Choice, Prompter

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Failure taxonomy
# ---------------------------------------------------------------------------

class FailureCategory(enum.Enum):
    PRECONDITION = "precondition"
    SYNCHRONIZATION = "synchronization"
    CONSISTENCY = "consistency"
    TOOL = "tool"


class FailureReason(enum.Enum):
    """Why an integration stopped.

    Each member carries a generic ``short_message`` and the ``category``
    it belongs to.  Every failure is fatal for the run.
    """

    NOT_A_REPOSITORY        = ("Not a git repository", FailureCategory.PRECONDITION)
    DIRTY_WORKING_COPY      = ("Working copy is not clean", FailureCategory.PRECONDITION)
    NO_BRANCHES             = ("No branches to integrate", FailureCategory.PRECONDITION)
    NO_CURRENT_BRANCH       = ("No branch is checked out", FailureCategory.PRECONDITION)
    BRANCH_NOT_PUSHED       = ("Branch has not been pushed", FailureCategory.SYNCHRONIZATION)
    TARGET_NOT_UP_TO_DATE   = ("Target branch is not up to date", FailureCategory.SYNCHRONIZATION)
    SOURCE_NOT_UP_TO_DATE   = ("Source branch is not up to date", FailureCategory.SYNCHRONIZATION)
    NO_COMMITS              = ("Nothing to integrate", FailureCategory.SYNCHRONIZATION)
    HISTORY_NOT_LINEAR      = ("History is not linear", FailureCategory.SYNCHRONIZATION)
    SOURCE_EQUALS_TARGET    = ("Source and target are the same branch", FailureCategory.CONSISTENCY)
    STATUS_CHECK_FAILED     = ("Could not inspect the working copy", FailureCategory.TOOL)
    FETCH_FAILED            = ("Fetch failed", FailureCategory.TOOL)
    BRANCH_LISTING_FAILED   = ("Could not list branches", FailureCategory.TOOL)
    REF_RESOLUTION_FAILED   = ("Could not resolve ref", FailureCategory.TOOL)
    MERGE_FAILED            = ("Merge failed", FailureCategory.TOOL)
    TAG_CREATION_FAILED     = ("Tag creation failed", FailureCategory.TOOL)
    TAG_PUSH_FAILED         = ("Tag push failed", FailureCategory.TOOL)
    LOCAL_DELETE_FAILED     = ("Local branch deletion failed", FailureCategory.TOOL)
    REMOTE_DELETE_FAILED    = ("Remote branch deletion failed", FailureCategory.TOOL)
    TARGET_PUSH_FAILED      = ("Target push failed", FailureCategory.TOOL)

    def __init__(self, short_message: str, category: FailureCategory):
        self.short_message = short_message
        self.category = category


@dataclass(frozen=True)
class IntegrationFailure:
    """A step refused to continue.  ``detail`` is git's raw output, if any."""

    reason: FailureReason
    message: str
    detail: str = ""


@dataclass(frozen=True)
class IntegrationDeclined:
    """The user said no at the main confirmation.  Not an error."""

    message: str


# ---------------------------------------------------------------------------
# State
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class IntegrationState:
    """Immutable state threaded through the pipeline.

    Later fields are filled in by ``dataclasses.replace`` as steps run.
    """

    config: IntegrateConfig
    branches: tuple[Branch, ...] = ()
    source: str | None = None
    target: str | None = None

    # Commit SHAs, resolved by the up-to-date and divergence checks
    target_ref: str | None = None
    target_remote_ref: str | None = None
    source_ref: str | None = None
    source_remote_ref: str | None = None
    merge_base: str | None = None

    @property
    def remote(self) -> str:
        return self.config.remote

    @property
    def source_remote(self) -> str:
        return self.config.remote_ref(self.source)

    @property
    def target_remote(self) -> str:
        return self.config.remote_ref(self.target)

    @property
    def integration_tag(self) -> str:
        return self.config.tag_for(self.source)


@dataclass
class WorkflowContext:
    git: Git
    prompter: Prompter


StepResult = IntegrationState | IntegrationFailure | IntegrationDeclined
Step = Callable[[WorkflowContext, IntegrationState], StepResult]


def _resolve(ctx: WorkflowContext, ref: str) -> str | IntegrationFailure:
    result = ctx.git.rev_parse(ref)
    if not result.ok:
        return IntegrationFailure(
            FailureReason.REF_RESOLUTION_FAILED,
            f"Could not resolve {ref}",
            result.output,
        )
    return result.stdout.strip()


# ---------------------------------------------------------------------------
# Guard steps
# ---------------------------------------------------------------------------

def check_repository(ctx: WorkflowContext, state: IntegrationState) -> StepResult:
    if not ctx.git.git_dir().ok:
        return IntegrationFailure(FailureReason.NOT_A_REPOSITORY, "Not a git repository")
    return state


def check_clean(ctx: WorkflowContext, state: IntegrationState) -> StepResult:
    result = ctx.git.diff_shortstat()
    if not result.ok:
        return IntegrationFailure(
            FailureReason.STATUS_CHECK_FAILED,
            "Could not inspect the working copy",
            result.output,
        )
    if result.stdout.strip():
        return IntegrationFailure(FailureReason.DIRTY_WORKING_COPY, "Working copy is not clean")
    return state


def fetch_remote(ctx: WorkflowContext, state: IntegrationState) -> StepResult:
    result = ctx.git.fetch(state.remote)
    if not result.ok:
        return IntegrationFailure(
            FailureReason.FETCH_FAILED,
            f"Error fetching {state.remote}",
            result.output,
        )
    return state


def list_branches(ctx: WorkflowContext, state: IntegrationState) -> StepResult:
    """Read the local branches, most recently committed first.

    Fails when there are fewer than two (nothing to choose from) or when
    HEAD is detached (no target to merge into).
    """
    result = ctx.git.list_branches()
    if not result.ok:
        return IntegrationFailure(
            FailureReason.BRANCH_LISTING_FAILED, "Error listing branches", result.output,
        )
    try:
        branches = parse_branch_listing(result.stdout)
    except ValueError as e:
        return IntegrationFailure(FailureReason.BRANCH_LISTING_FAILED, str(e))

    if len(branches) < 2:
        return IntegrationFailure(FailureReason.NO_BRANCHES, "No branches to integrate")
    if current_branch(branches) is None:
        return IntegrationFailure(
            FailureReason.NO_CURRENT_BRANCH,
            "No branch is checked out; check out the branch to integrate into",
        )
    logger.debug("Found %d branches", len(branches))
    return dataclasses.replace(state, branches=branches)


# ---------------------------------------------------------------------------
# Selection
# ---------------------------------------------------------------------------

def select_source(ctx: WorkflowContext, state: IntegrationState) -> StepResult:
    choices = [Choice(b.name, disabled=b.is_current) for b in state.branches]
    source = ctx.prompter.select(
        "Integrate branch",
        choices,
        hint=functools.partial(hint_for, state.branches),
        warn="current branch",
    )
    return dataclasses.replace(state, source=source)


def confirm_integration(ctx: WorkflowContext, state: IntegrationState) -> StepResult:
    if not ctx.prompter.confirm(f"Do you really want to integrate {state.source}?", default=False):
        return IntegrationDeclined("Ok whatever ¯\\_(ツ)_/¯")
    return state


def derive_target(ctx: WorkflowContext, state: IntegrationState) -> StepResult:
    target = current_branch(state.branches).name
    if target == state.source:
        return IntegrationFailure(
            FailureReason.SOURCE_EQUALS_TARGET,
            f"Can't merge {state.source} into itself",
        )
    return dataclasses.replace(state, target=target)


# ---------------------------------------------------------------------------
# Synchronisation checks
# ---------------------------------------------------------------------------

def check_pushed(ctx: WorkflowContext, state: IntegrationState) -> StepResult:
    result = ctx.git.ls_remote_branch(state.remote, state.source)
    if not result.ok or not result.stdout.strip():
        return IntegrationFailure(
            FailureReason.BRANCH_NOT_PUSHED,
            f"{state.source} has not been pushed to {state.remote} yet",
            result.stderr,
        )
    return state


def check_target_up_to_date(ctx: WorkflowContext, state: IntegrationState) -> StepResult:
    local = _resolve(ctx, state.target)
    if isinstance(local, IntegrationFailure):
        return local
    remote = _resolve(ctx, state.target_remote)
    if isinstance(remote, IntegrationFailure):
        return remote

    if local != remote:
        return IntegrationFailure(
            FailureReason.TARGET_NOT_UP_TO_DATE,
            f"{state.target} is not up to date with {state.target_remote}",
        )
    return dataclasses.replace(state, target_ref=local, target_remote_ref=remote)


def check_source_up_to_date(ctx: WorkflowContext, state: IntegrationState) -> StepResult:
    local = _resolve(ctx, state.source)
    if isinstance(local, IntegrationFailure):
        return local
    remote = _resolve(ctx, state.source_remote)
    if isinstance(remote, IntegrationFailure):
        return remote

    if local != remote:
        return IntegrationFailure(
            FailureReason.SOURCE_NOT_UP_TO_DATE,
            f"{state.source} is not up to date with {state.source_remote}",
        )
    return dataclasses.replace(state, source_ref=local, source_remote_ref=remote)


def check_has_commits(ctx: WorkflowContext, state: IntegrationState) -> StepResult:
    if state.source_ref == state.target_ref:
        return IntegrationFailure(
            FailureReason.NO_COMMITS,
            f"{state.source} has no commits that are not already on {state.target}",
        )
    return state


def check_linear_history(ctx: WorkflowContext, state: IntegrationState) -> StepResult:
    """The source must descend directly from the target's current tip."""
    result = ctx.git.merge_base(state.target, state.source)
    if not result.ok:
        return IntegrationFailure(
            FailureReason.REF_RESOLUTION_FAILED,
            f"Could not find a merge base of {state.target} and {state.source}",
            result.output,
        )
    merge_base = result.stdout.strip()
    if merge_base != state.target_ref:
        return IntegrationFailure(
            FailureReason.HISTORY_NOT_LINEAR,
            f"{state.source} is not in line with {state.target}; "
            f"rebase it onto {state.target} first",
        )
    return dataclasses.replace(state, merge_base=merge_base)


# ---------------------------------------------------------------------------
# Mutations
# ---------------------------------------------------------------------------

def merge_source(ctx: WorkflowContext, state: IntegrationState) -> StepResult:
    log_action(f"Merging {state.source} into {state.target}...")
    result = ctx.git.merge_no_ff(state.source)
    if not result.ok:
        return IntegrationFailure(
            FailureReason.MERGE_FAILED,
            f"Error merging {state.source} into {state.target}",
            result.output,
        )
    echo_streams(result.stdout, result.stderr)
    click.echo()
    return state


def offer_tag(ctx: WorkflowContext, state: IntegrationState) -> StepResult:
    if ctx.prompter.confirm("Create integrated tag?", default=True):
        tag = state.integration_tag

        log_action(f"Creating tag {tag}...")
        result = ctx.git.create_annotated_tag(tag, state.source)
        if not result.ok:
            return IntegrationFailure(
                FailureReason.TAG_CREATION_FAILED, f"Error creating tag {tag}", result.output,
            )
        echo_streams(result.stdout, result.stderr)

        log_action(f"Pushing tag {tag}...")
        result = ctx.git.push(state.remote, tag)
        if not result.ok:
            return IntegrationFailure(
                FailureReason.TAG_PUSH_FAILED, f"Error pushing tag {tag}", result.output,
            )
        echo_streams(result.stdout, result.stderr)

    click.echo()
    return state


def offer_delete(ctx: WorkflowContext, state: IntegrationState) -> StepResult:
    if ctx.prompter.confirm(f"Do you want to delete {state.source}?", default=True):
        log_action(f"Deleting {state.source}...")
        result = ctx.git.delete_branch(state.source)
        if not result.ok:
            return IntegrationFailure(
                FailureReason.LOCAL_DELETE_FAILED,
                f"Error deleting {state.source}",
                result.output,
            )
        echo_streams(result.stdout, result.stderr)

        log_action(f"Deleting {state.source_remote}...")
        result = ctx.git.delete_remote_branch(state.remote, state.source)
        if not result.ok:
            return IntegrationFailure(
                FailureReason.REMOTE_DELETE_FAILED,
                f"Error deleting {state.source_remote}",
                result.output,
            )
        echo_streams(result.stdout, result.stderr)

    click.echo()
    return state


def offer_push(ctx: WorkflowContext, state: IntegrationState) -> StepResult:
    if ctx.prompter.confirm(f"Do you want to push {state.target}?", default=True):
        log_action(f"Pushing {state.target}...")
        result = ctx.git.push(state.remote, state.target)
        if not result.ok:
            return IntegrationFailure(
                FailureReason.TARGET_PUSH_FAILED,
                f"Error pushing {state.target}",
                result.output,
            )
        echo_streams(result.stdout, result.stderr)
    return state


# ---------------------------------------------------------------------------
# Runner
# ---------------------------------------------------------------------------

INTEGRATION_STEPS: tuple[Step, ...] = (
    check_repository,
    check_clean,
    fetch_remote,
    list_branches,
    select_source,
    confirm_integration,
    derive_target,
    check_pushed,
    check_target_up_to_date,
    check_source_up_to_date,
    check_has_commits,
    check_linear_history,
    merge_source,
    offer_tag,
    offer_delete,
    offer_push,
)


def run_integration(
    ctx: WorkflowContext,
    state: IntegrationState,
    steps: tuple[Step, ...] = INTEGRATION_STEPS,
) -> StepResult:
    """Run *steps* in order, stopping at the first failure or decline.

    Returns the final state when every step passed.  Prompt aborts raise
    ``IntegrationAborted`` straight through.
    """
    for step in steps:
        token = log_step.set(step.__name__)
        try:
            logger.debug("Running")
            result = step(ctx, state)
        finally:
            log_step.reset(token)

        if isinstance(result, IntegrationFailure):
            logger.info("%s stopped the run: %s", step.__name__, result.reason.name)
            return result
        if isinstance(result, IntegrationDeclined):
            return result
        state = result
    return state
