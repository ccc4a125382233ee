"""Shared test fixtures for git-integrate tests."""

import subprocess
from pathlib import Path
from unittest.mock import patch

import pytest

from integrate.config import IntegrateConfig
from integrate.git import Git, GitResult
from integrate.workflow import IntegrationState, WorkflowContext


FEATURE = "feature-x"


def git(repo: Path, *args: str) -> str:
    """Run a git command in *repo* for test setup, failing loudly."""
    proc = subprocess.run(
        ["git", *args], cwd=str(repo), capture_output=True, text=True, check=True,
    )
    return proc.stdout.strip()


def commit_file(repo: Path, filename: str, content: str, message: str) -> str:
    (repo / filename).write_text(content)
    git(repo, "add", filename)
    git(repo, "commit", "-m", message)
    return git(repo, "rev-parse", "HEAD")


def make_feature_branch(repo: Path, branch: str = FEATURE, push: bool = True) -> str:
    """Create *branch* off main with one commit, optionally push it, go back to main."""
    git(repo, "checkout", "-b", branch)
    sha = commit_file(repo, branch.replace("/", "_") + ".py", "# New feature\n", f"Add {branch}")
    if push:
        git(repo, "push", "origin", branch)
    git(repo, "checkout", "main")
    return sha


def press(*keys: str):
    """Patch the select list's key reader to return *keys* in order."""
    return patch("integrate.prompt.get_key", side_effect=list(keys))


class RecordingGit(Git):
    """Real git, plus a log of every argument list it ran."""

    def __init__(self, cwd):
        super().__init__(cwd)
        self.calls: list[tuple[str, ...]] = []

    def run(self, args: list[str]) -> GitResult:
        self.calls.append(tuple(args))
        return super().run(args)

    def ran(self, *prefix: str) -> bool:
        return any(call[:len(prefix)] == prefix for call in self.calls)


class ScriptedPrompter:
    """Answers prompts from a script instead of the terminal.

    ``selection`` is returned from ``select`` as-is; ``confirms`` are
    consumed in order by ``confirm``.
    """

    def __init__(self, selection: str = FEATURE, confirms=()):
        self.selection = selection
        self.confirms = list(confirms)
        self.selects: list[tuple] = []
        self.questions: list[tuple[str, bool]] = []

    def select(self, message, choices, hint, warn=""):
        self.selects.append((message, tuple(choices), hint, warn))
        return self.selection

    def confirm(self, message, default=False):
        self.questions.append((message, default))
        if not self.confirms:
            raise AssertionError(f"Unexpected confirmation: {message}")
        return self.confirms.pop(0)


@pytest.fixture
def repo(tmp_path):
    """A working repo on main with one commit, pushed to a bare ``origin``.

    Returns the working repo path.
    """
    work = tmp_path / "work"
    work.mkdir()
    subprocess.run(["git", "init", "-b", "main"], cwd=str(work), capture_output=True, check=True)
    git(work, "config", "user.email", "test@test.com")
    git(work, "config", "user.name", "Test")
    git(work, "config", "commit.gpgsign", "false")
    git(work, "config", "tag.gpgsign", "false")
    commit_file(work, "README.md", "# Test repo\n", "Initial commit")

    origin = tmp_path / "origin.git"
    subprocess.run(
        ["git", "clone", "--bare", str(work), str(origin)],
        capture_output=True, check=True,
    )
    git(work, "remote", "add", "origin", str(origin))
    git(work, "fetch", "origin")
    git(work, "branch", "--set-upstream-to=origin/main", "main")
    return work


@pytest.fixture
def origin(repo):
    return repo.parent / "origin.git"


@pytest.fixture
def recording_git(repo):
    return RecordingGit(repo)


def make_context(git_: Git, prompter) -> WorkflowContext:
    return WorkflowContext(git=git_, prompter=prompter)


def make_state(repo: Path, **overrides) -> IntegrationState:
    return IntegrationState(config=IntegrateConfig(cwd=repo, **overrides))
