"""Tests for the git-integrate CLI entry point."""

import signal
from unittest.mock import patch

import pytest
from click.testing import CliRunner

from conftest import FEATURE, git, make_feature_branch, press
from integrate.cli import ALL_DONE, FAREWELL, integrate, main
from integrate.prompt import AbortSignal, ClickPrompter, IntegrationAborted


@pytest.fixture
def runner():
    """Click CLI runner."""
    return CliRunner()


def _invoke(runner, repo, input, *args, keys=("enter",)):
    """Run the CLI in *repo*; *keys* drive the branch picker, *input* the confirmations."""
    with press(*keys):
        return runner.invoke(main, ["-C", str(repo), *args], input=input)


def test_merge_then_decline_everything(repo, origin, runner):
    """Select feature-x, confirm, decline tag/delete/push: merged locally only."""
    make_feature_branch(repo)
    origin_main = git(origin, "rev-parse", "main")

    result = _invoke(runner, repo, "y\nn\nn\nn\n")

    assert result.exit_code == 0, result.output
    assert f"Merging {FEATURE} into main..." in result.output
    assert ALL_DONE in result.output
    assert len(git(repo, "rev-list", "--parents", "-n", "1", "main").split()) == 3
    assert git(origin, "rev-parse", "main") == origin_main
    assert git(repo, "tag", "--list") == ""


def test_full_run_with_defaults(repo, origin, runner):
    make_feature_branch(repo)

    result = _invoke(runner, repo, "y\n\n\n\n")

    assert result.exit_code == 0, result.output
    assert f"Creating tag integrated/{FEATURE}..." in result.output
    assert f"Deleting origin/{FEATURE}..." in result.output
    assert "Pushing main..." in result.output
    assert git(origin, "rev-parse", "main") == git(repo, "rev-parse", "main")


def test_declining_exits_zero(repo, runner):
    make_feature_branch(repo)
    main_before = git(repo, "rev-parse", "main")

    result = _invoke(runner, repo, "\n")

    assert result.exit_code == 0
    assert "Ok whatever" in result.output
    assert git(repo, "rev-parse", "main") == main_before


def test_abort_at_prompt_says_goodbye(repo, runner):
    make_feature_branch(repo)

    result = _invoke(runner, repo, "")

    assert result.exit_code == 0
    assert FAREWELL in result.output


def test_escape_in_branch_picker_says_goodbye(repo, runner):
    make_feature_branch(repo)
    main_before = git(repo, "rev-parse", "main")

    result = _invoke(runner, repo, "", keys=("down", "escape"))

    assert result.exit_code == 0
    assert result.output.count(FAREWELL) == 1
    assert "Do you really want to integrate" not in result.output
    assert git(repo, "rev-parse", "main") == main_before


def test_farewell_runs_once():
    abort = AbortSignal()
    abort.trigger("signal")

    with patch("integrate.cli.run_integration", side_effect=IntegrationAborted("prompt")), \
            patch("integrate.cli.log_success") as log_success:
        code = integrate(None, None, abort)

    assert code == 0
    log_success.assert_not_called()
    assert abort.source == "signal"


def test_interrupt_during_select_says_goodbye(repo, runner):
    make_feature_branch(repo)
    main_before = git(repo, "rev-parse", "main")

    def _interrupted(*args, **kwargs):
        signal.raise_signal(signal.SIGINT)

    with patch.object(ClickPrompter, "select", side_effect=_interrupted):
        result = _invoke(runner, repo, "")

    assert result.exit_code == 0
    assert result.output.count(FAREWELL) == 1
    assert git(repo, "rev-parse", "main") == main_before
    assert git(repo, "branch", "--list", FEATURE) != ""


def test_failure_exits_one(repo, runner):
    make_feature_branch(repo)
    (repo / "README.md").write_text("dirty\n")

    result = _invoke(runner, repo, "")

    assert result.exit_code == 1
    assert "Working copy is not clean" in result.output


def test_single_branch_exits_one_without_prompting(repo, runner):
    result = _invoke(runner, repo, "")

    assert result.exit_code == 1
    assert "No branches to integrate" in result.output
    assert "Integrate branch" not in result.output


def test_unknown_remote_shows_git_error(repo, runner):
    make_feature_branch(repo)

    result = _invoke(runner, repo, "", "--remote", "nowhere")

    assert result.exit_code == 1
    assert "Error fetching nowhere" in result.output


def test_version(runner):
    result = runner.invoke(main, ["--version"])
    assert result.exit_code == 0
    assert "git-integrate" in result.output
