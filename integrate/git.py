"""Thin wrapper around the ``git`` executable.

Every call goes through :func:`run_git`, which never raises for a failing
git command: the exit status and both output streams come back in a
:class:`GitResult` and the caller decides what a failure means.

The :class:`Git` class binds a working directory and names the handful of
commands the integration workflow needs.
"""

import logging
import subprocess
from dataclasses import dataclass
from pathlib import Path

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class GitResult:
    """Outcome of a single git invocation."""

    args: tuple[str, ...]
    returncode: int
    stdout: str
    stderr: str

    @property
    def ok(self) -> bool:
        return self.returncode == 0

    @property
    def output(self) -> str:
        """Combined output, stdout first, for error reporting."""
        return "".join(part for part in (self.stdout, self.stderr) if part)


def run_git(args: list[str], cwd: Path | str) -> GitResult:
    """Run ``git <args>`` in *cwd* and wait for it to finish.

    No timeout is applied: a hung remote stalls the caller, which is
    acceptable for an interactive, supervised tool.  A missing ``git``
    binary is reported as exit status 127, like a shell would.
    """
    try:
        proc = subprocess.run(
            ["git"] + args,
            cwd=str(cwd),
            capture_output=True,
            text=True,
        )
    except FileNotFoundError as e:
        logger.debug("git %s -> not found (%s)", " ".join(args), e)
        return GitResult(tuple(args), 127, "", f"{e}\n")

    logger.debug("git %s -> %d", " ".join(args), proc.returncode)
    return GitResult(tuple(args), proc.returncode, proc.stdout, proc.stderr)


class Git:
    """The git commands used by the integration workflow, bound to *cwd*."""

    def __init__(self, cwd: Path | str):
        self.cwd = Path(cwd)

    def run(self, args: list[str]) -> GitResult:
        return run_git(args, self.cwd)

    # --- Queries ---

    def git_dir(self) -> GitResult:
        return self.run(["rev-parse", "--git-dir"])

    def diff_shortstat(self) -> GitResult:
        """Summary of staged and unstaged changes to tracked files."""
        return self.run(["diff", "HEAD", "--shortstat"])

    def list_branches(self) -> GitResult:
        """Local branches, most recently committed first."""
        return self.run(["branch", "-v", "--sort=-committerdate"])

    def ls_remote_branch(self, remote: str, branch: str) -> GitResult:
        return self.run(["ls-remote", "--heads", remote, f"refs/heads/{branch}"])

    def rev_parse(self, ref: str) -> GitResult:
        return self.run(["rev-parse", "--verify", f"{ref}^{{commit}}"])

    def merge_base(self, a: str, b: str) -> GitResult:
        return self.run(["merge-base", a, b])

    # --- Mutations ---

    def fetch(self, remote: str) -> GitResult:
        return self.run(["fetch", remote, "--tags"])

    def merge_no_ff(self, branch: str) -> GitResult:
        return self.run(["merge", branch, "--no-ff", "--no-edit"])

    def create_annotated_tag(self, tag: str, ref: str) -> GitResult:
        return self.run(["tag", "-a", tag, "-m", "", ref])

    def push(self, remote: str, ref: str) -> GitResult:
        return self.run(["push", remote, ref])

    def delete_branch(self, branch: str) -> GitResult:
        return self.run(["branch", "-D", branch])

    def delete_remote_branch(self, remote: str, branch: str) -> GitResult:
        """Delete *branch* on *remote* by pushing an empty source to it."""
        return self.run(["push", remote, f":refs/heads/{branch}"])
