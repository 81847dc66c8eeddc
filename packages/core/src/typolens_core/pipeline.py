"""One task run: lock, apply reply-commands, spell-check, reconcile, unlock."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import timedelta
from enum import Enum
from pathlib import Path

from rich.console import Console

from typolens_core.commands import CommandProcessor
from typolens_core.config import codespell_config_path, require_run_context
from typolens_core.gateway.base import BaseGateway, GatewayError
from typolens_core.ignore_config import IgnoreConfiguration
from typolens_core.lock import PullRequestLock
from typolens_core.models import Finding, FixedFile
from typolens_core.reconciler import ReconciliationResult, Reconciler
from typolens_core.spellchecker import CodespellRunner

console = Console()
logger = logging.getLogger(__name__)


class RunStatus(str, Enum):
    SUCCEEDED = "succeeded"
    SUCCEEDED_WITH_ISSUES = "succeeded-with-issues"
    FAILED = "failed"
    SKIPPED = "skipped"


@dataclass
class RunSummary:
    """Outcome of run_check, detailed enough for the CLI to report and set its exit code."""

    status: RunStatus
    message: str
    findings: list[Finding] = field(default_factory=list)
    fixed_files: list[FixedFile] = field(default_factory=list)
    commands_handled: int = 0
    reconciliation: ReconciliationResult | None = None
    lock_owner: str | None = None


def _build_runner(config: dict, ignore_config: IgnoreConfiguration, workdir: Path) -> CodespellRunner:
    extra_args = list(config.get("codespell_args") or [])
    # codespell picks up ./.codespellrc by itself; any other location must be passed.
    if ignore_config.exists and ignore_config.path.name != ".codespellrc":
        extra_args = ["--config", str(ignore_config.path)] + extra_args
    return CodespellRunner(
        extra_args=extra_args,
        findings_exit_codes=config.get("findings_exit_codes") or (0, 65),
        cwd=str(workdir),
    )


def _final_status(config: dict, findings: list[Finding], fixed_files: list[FixedFile]) -> tuple[RunStatus, str]:
    for finding in findings:
        logger.warning(
            "%s:%s: %s ==> %s", finding.path, finding.line_number, finding.word, ", ".join(finding.suggestions)
        )
    for fixed in fixed_files:
        logger.info("Fixed %s", fixed.path)

    if not findings:
        return RunStatus.SUCCEEDED, "No misspellings found."
    message = f"Found {len(findings)} misspelling(s)."
    if config.get("fail_on_misspelling"):
        return RunStatus.FAILED, message
    return RunStatus.SUCCEEDED_WITH_ISSUES, message


def run_check(
    config: dict,
    gateway: BaseGateway | None = None,
    runner: CodespellRunner | None = None,
    workdir: str | Path = ".",
    shadow: bool = False,
) -> RunSummary:
    """Run the full check and return a RunSummary.

    Without a pull request in the context (or in shadow mode) only codespell
    runs: nothing is written to disk and GitHub is never called.

    ConfigurationError and SpellcheckerError propagate to the caller.
    """
    workdir = Path(workdir)
    ignore_config = IgnoreConfiguration(codespell_config_path(config, workdir))
    if not ignore_config.exists and config.get("skip_if_codespell_config_missing"):
        return RunSummary(RunStatus.SKIPPED, f"No codespell configuration at {ignore_config.path}; skipping.")

    pr_number = config.get("pr_number")
    if not pr_number or shadow:
        if not pr_number:
            console.print("[yellow]No pull request in context; running codespell only.[/yellow]")
        result = (runner or _build_runner(config, ignore_config, workdir)).run(write_changes=False)
        status, message = _final_status(config, result.findings, result.fixed_files)
        return RunSummary(status, message, findings=result.findings, fixed_files=result.fixed_files)

    require_run_context(config)
    if gateway is None:
        from typolens_core.gateway.github import GitHubGateway

        gateway = GitHubGateway.from_token(config["repository"], config["github_token"], config.get("bot_login"))

    ttl_minutes = config.get("lock_ttl_minutes")
    lock = PullRequestLock(gateway, ttl=timedelta(minutes=ttl_minutes) if ttl_minutes else None)
    acquired = lock.acquire(pr_number, str(config["run_id"]))
    if not acquired.acquired:
        owner = acquired.owner_id or "an unknown run"
        return RunSummary(
            RunStatus.SKIPPED,
            f"Pull request #{pr_number} is locked by {owner}; skipping.",
            lock_owner=acquired.owner_id,
        )

    try:
        processor = CommandProcessor(gateway, ignore_config, prefix=config["command_prefix"], workdir=workdir)
        commands_handled = 0
        try:
            commands_handled = processor.process_pull_request(pr_number, gateway.list_active_threads(pr_number))
        except GatewayError as e:
            logger.error("Could not read reply-commands on pull request #%s: %s", pr_number, e)
        if commands_handled:
            console.print(f"[cyan]Handled {commands_handled} reply-command(s).[/cyan]")

        # Built after the commands: they may have just created the codespell config.
        runner = runner or _build_runner(config, ignore_config, workdir)
        result = runner.run(write_changes=bool(config.get("commit_suggestions")))

        reconciler = Reconciler(
            gateway,
            help_text=processor.help_text,
            workdir=workdir,
            commit_message=config.get("commit_message") or "Codespell corrections",
        )
        reconciliation = reconciler.reconcile(
            pr_number,
            result.findings,
            result.fixed_files,
            commit_changes=bool(config.get("commit_suggestions")),
            comment_findings=bool(config.get("comment_suggestions")),
            extra_paths=processor.touched_paths,
            held_thread_ids=processor.held_thread_ids,
        )
        processor.like_handled(pr_number, reconciliation.pushed_paths)
    finally:
        lock.release(pr_number)

    status, message = _final_status(config, result.findings, result.fixed_files)
    return RunSummary(
        status,
        message,
        findings=result.findings,
        fixed_files=result.fixed_files,
        commands_handled=commands_handled,
        reconciliation=reconciliation,
        lock_owner=acquired.owner_id,
    )
