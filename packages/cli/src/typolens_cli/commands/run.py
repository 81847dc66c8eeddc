"""run command: spell-check the checkout and reconcile findings with the pull request."""

from __future__ import annotations

import os

import click
from rich.console import Console

from typolens_core.pipeline import RunStatus, RunSummary

console = Console()

_STATUS_STYLE = {
    RunStatus.SUCCEEDED: "green",
    RunStatus.SUCCEEDED_WITH_ISSUES: "yellow",
    RunStatus.FAILED: "red",
    RunStatus.SKIPPED: "cyan",
}


def _escape_data(value: str) -> str:
    return value.replace("%", "%25").replace("\r", "%0D").replace("\n", "%0A")


def _escape_property(value: str) -> str:
    return _escape_data(value).replace(":", "%3A").replace(",", "%2C")


def _annotate(summary: RunSummary) -> None:
    """Emit GitHub Actions workflow commands so findings show up in the job summary."""
    for f in summary.findings:
        path = _escape_property(f.path[2:] if f.path.startswith("./") else f.path)
        message = _escape_data(f"Misspelling '{f.word}': did you mean {', '.join(f.suggestions)}?")
        click.echo(f"::warning file={path},line={f.line_number},title=codespell::{message}")


def _print_summary(summary: RunSummary) -> None:
    style = _STATUS_STYLE.get(summary.status, "white")
    console.print(f"[{style}]{summary.status.value}[/{style}]: {summary.message}")
    rec = summary.reconciliation
    if rec is None:
        return
    if rec.resolved_thread_ids:
        console.print(f"  resolved {len(rec.resolved_thread_ids)} thread(s)")
    if rec.created_thread_ids:
        console.print(f"  opened {len(rec.created_thread_ids)} thread(s)")
    if rec.commit_id:
        console.print(f"  pushed {rec.commit_id[:7]}: {', '.join(rec.committed_paths)}")
    for error in rec.errors:
        console.print(f"  [red]{error}[/red]")


@click.command("run")
@click.option("--repo", default=None, help="GitHub repository in owner/name format. Defaults to GITHUB_REPOSITORY.")
@click.option(
    "--pr",
    "pr_number",
    type=int,
    default=None,
    help="Pull request number. Defaults to the pull request in GITHUB_REF.",
)
@click.option("--run-id", default=None, help="Identifier of this run, used for the lock. Defaults to GITHUB_RUN_ID.")
@click.option(
    "--commit/--no-commit",
    "commit_suggestions",
    default=None,
    help="Push codespell's fixes and placeholders to the source branch. Overrides config file.",
)
@click.option(
    "--comment/--no-comment",
    "comment_suggestions",
    default=None,
    help="Open a suggestion thread per new misspelling. Overrides config file.",
)
@click.option(
    "--fail-on-misspelling/--no-fail-on-misspelling",
    default=None,
    help="Exit with status 1 when misspellings are found. Overrides config file.",
)
@click.option(
    "--shadow",
    "-s",
    is_flag=True,
    help="Dry-run mode: run codespell and print findings without touching files or GitHub.",
)
@click.option("--debug", is_flag=True, help="Verbose logging.")
@click.pass_context
def run_cmd(
    ctx,
    repo: str | None,
    pr_number: int | None,
    run_id: str | None,
    commit_suggestions: bool | None,
    comment_suggestions: bool | None,
    fail_on_misspelling: bool | None,
    shadow: bool,
    debug: bool,
):
    """Run codespell and turn its findings into pull request suggestions.

    \b
    Environment variables (set by GitHub Actions):
      GITHUB_TOKEN         token with pull request write access (or use gh CLI)
      GITHUB_REPOSITORY    owner/name of the repository
      GITHUB_REF           refs/pull/<n>/merge on pull request events
      GITHUB_RUN_ID        identifier of the workflow run
    """
    from typolens_cli.auth import resolve_github_token
    from typolens_cli.cli import configure_logging
    from typolens_core.config import ConfigurationError, load_config
    from typolens_core.pipeline import run_check
    from typolens_core.spellchecker import SpellcheckerError

    configure_logging(debug)
    config_path = (ctx.obj or {}).get("config_path", ".typolens.yml")
    config = load_config(
        config_path,
        cli_overrides={
            "repository": repo,
            "pr_number": pr_number,
            "run_id": run_id,
            "commit_suggestions": commit_suggestions,
            "comment_suggestions": comment_suggestions,
            "fail_on_misspelling": fail_on_misspelling,
        },
    )

    token = resolve_github_token()
    if token:
        config["github_token"] = token

    try:
        summary = run_check(config, shadow=shadow)
    except ConfigurationError as e:
        console.print(f"[red]{e}[/red]")
        ctx.exit(1)
    except SpellcheckerError as e:
        console.print(f"[red]codespell failed: {e}[/red]")
        ctx.exit(1)

    if os.environ.get("GITHUB_ACTIONS") == "true":
        _annotate(summary)
    _print_summary(summary)

    if summary.status == RunStatus.FAILED:
        ctx.exit(1)
