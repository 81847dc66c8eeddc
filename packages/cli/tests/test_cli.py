"""Tests for the CLI entry point."""

import subprocess
from unittest.mock import MagicMock

from click.testing import CliRunner

from typolens_cli.auth import resolve_github_token
from typolens_cli.cli import main
from typolens_core.config import ConfigurationError
from typolens_core.models import Finding
from typolens_core.pipeline import RunStatus, RunSummary
from typolens_core.reconciler import ReconciliationResult
from typolens_core.spellchecker import SpellcheckerError


def _make_config(**overrides):
    config = {
        "commit_suggestions": False,
        "comment_suggestions": True,
        "fail_on_misspelling": False,
        "github_token": None,
        "repository": "owner/repo",
        "run_id": "1",
        "pr_number": 3,
    }
    config.update(overrides)
    return config


def _finding():
    return Finding(path="./docs/a.md", line_number=2, line_text="See teh docs", word="teh", suggestions=("the",))


def _patch_common(mocker, summary=None, config=None, token="tok"):
    cfg = config or _make_config()
    load = mocker.patch("typolens_core.config.load_config", return_value=cfg)
    mocker.patch("typolens_cli.auth.resolve_github_token", return_value=token)
    run = mocker.patch(
        "typolens_core.pipeline.run_check",
        return_value=summary or RunSummary(RunStatus.SUCCEEDED, "No misspellings found."),
    )
    return load, run


class TestRunCommand:
    def test_success_exit_code(self, mocker):
        _, run = _patch_common(mocker)
        result = CliRunner().invoke(main, ["run"])
        assert result.exit_code == 0, result.output
        assert "succeeded" in result.output
        config = run.call_args.args[0]
        assert config["github_token"] == "tok"
        assert run.call_args.kwargs["shadow"] is False

    def test_issues_still_exit_zero(self, mocker):
        summary = RunSummary(RunStatus.SUCCEEDED_WITH_ISSUES, "Found 1 misspelling(s).", findings=[_finding()])
        _patch_common(mocker, summary=summary)
        assert CliRunner().invoke(main, ["run"]).exit_code == 0

    def test_skipped_exit_zero(self, mocker):
        _patch_common(mocker, summary=RunSummary(RunStatus.SKIPPED, "Pull request #3 is locked by 9; skipping."))
        result = CliRunner().invoke(main, ["run"])
        assert result.exit_code == 0
        assert "locked by 9" in result.output

    def test_failed_exit_one(self, mocker):
        _patch_common(mocker, summary=RunSummary(RunStatus.FAILED, "Found 2 misspelling(s)."))
        assert CliRunner().invoke(main, ["run"]).exit_code == 1

    def test_configuration_error_printed_verbatim(self, mocker):
        _, run = _patch_common(mocker)
        run.side_effect = ConfigurationError("Missing run context: run_id.")
        result = CliRunner().invoke(main, ["run"])
        assert result.exit_code == 1
        assert "Missing run context: run_id." in result.output

    def test_codespell_crash_exit_one(self, mocker):
        _, run = _patch_common(mocker)
        run.side_effect = SpellcheckerError("codespell failed with exit code 2")
        assert CliRunner().invoke(main, ["run"]).exit_code == 1

    def test_options_become_overrides(self, mocker):
        load, run = _patch_common(mocker)
        args = ["--config", "x.yml", "run", "--repo", "o/r", "--pr", "5", "--run-id", "r9"]
        CliRunner().invoke(main, args + ["--commit", "--no-comment", "-s"])
        assert load.call_args.args[0] == "x.yml"
        overrides = load.call_args.kwargs["cli_overrides"]
        assert overrides["repository"] == "o/r"
        assert overrides["pr_number"] == 5
        assert overrides["run_id"] == "r9"
        assert overrides["commit_suggestions"] is True
        assert overrides["comment_suggestions"] is False
        assert overrides["fail_on_misspelling"] is None
        assert run.call_args.kwargs["shadow"] is True

    def test_github_actions_annotations(self, mocker, monkeypatch):
        monkeypatch.setenv("GITHUB_ACTIONS", "true")
        summary = RunSummary(RunStatus.SUCCEEDED_WITH_ISSUES, "Found 1 misspelling(s).", findings=[_finding()])
        _patch_common(mocker, summary=summary)
        result = CliRunner().invoke(main, ["run"])
        assert "::warning file=docs/a.md,line=2,title=codespell::Misspelling 'teh': did you mean the?" in result.output

    def test_annotation_values_are_escaped(self, mocker, monkeypatch):
        monkeypatch.setenv("GITHUB_ACTIONS", "true")
        odd = Finding(path="./a,b:c%.md", line_number=1, line_text="teh", word="teh", suggestions=("the", "tea"))
        summary = RunSummary(RunStatus.SUCCEEDED_WITH_ISSUES, "Found 1 misspelling(s).", findings=[odd])
        _patch_common(mocker, summary=summary)
        result = CliRunner().invoke(main, ["run"])
        assert (
            "::warning file=a%2Cb%3Ac%25.md,line=1,title=codespell::Misspelling 'teh': did you mean the, tea?"
            in result.output
        )

    def test_reconciliation_details_printed(self, mocker):
        rec = ReconciliationResult(resolved_thread_ids=[1], created_thread_ids=[2, 3], commit_id="abcdef123")
        rec.committed_paths = ["docs/a.md"]
        rec.errors = ["Could not comment on docs/b.md:1: boom"]
        _patch_common(mocker, summary=RunSummary(RunStatus.SUCCEEDED, "ok", reconciliation=rec))
        result = CliRunner().invoke(main, ["run"])
        assert "resolved 1 thread(s)" in result.output
        assert "opened 2 thread(s)" in result.output
        assert "abcdef1" in result.output
        assert "boom" in result.output


class TestResolveGithubToken:
    def test_tool_specific_variable_first(self, monkeypatch):
        monkeypatch.setenv("TYPOLENS_GITHUB_TOKEN", "a")
        monkeypatch.setenv("GITHUB_TOKEN", "b")
        assert resolve_github_token() == "a"

    def test_gh_token_variable(self, monkeypatch):
        for name in ("TYPOLENS_GITHUB_TOKEN", "GITHUB_TOKEN"):
            monkeypatch.delenv(name, raising=False)
        monkeypatch.setenv("GH_TOKEN", "c")
        assert resolve_github_token() == "c"

    def test_gh_cli_fallback(self, monkeypatch, mocker):
        for name in ("TYPOLENS_GITHUB_TOKEN", "GITHUB_TOKEN", "GH_TOKEN"):
            monkeypatch.delenv(name, raising=False)
        proc = MagicMock(returncode=0, stdout="gho_x\n")
        mocker.patch("typolens_cli.auth.subprocess.run", return_value=proc)
        assert resolve_github_token() == "gho_x"

    def test_none_when_gh_missing(self, monkeypatch, mocker):
        for name in ("TYPOLENS_GITHUB_TOKEN", "GITHUB_TOKEN", "GH_TOKEN"):
            monkeypatch.delenv(name, raising=False)
        mocker.patch("typolens_cli.auth.subprocess.run", side_effect=FileNotFoundError())
        assert resolve_github_token() is None

    def test_none_when_gh_times_out(self, monkeypatch, mocker):
        for name in ("TYPOLENS_GITHUB_TOKEN", "GITHUB_TOKEN", "GH_TOKEN"):
            monkeypatch.delenv(name, raising=False)
        mocker.patch("typolens_cli.auth.subprocess.run", side_effect=subprocess.TimeoutExpired("gh", 5))
        assert resolve_github_token() is None
