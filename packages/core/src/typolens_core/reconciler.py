"""Reconcile codespell findings with the suggestion threads already on a pull request.

One pass does four things, in order:

1. resolve our open threads whose finding is gone (the misspelling was fixed);
   a thread whose reply-command edit is in the commit waits for step 3;
2. in commit mode, rewrite ambiguous findings to a visible placeholder so the
   line shows up in the diff and can carry a suggestion;
3. push one commit holding fixed files and placeholder rewrites (commit
   mode) plus files edited by reply-commands (any mode);
4. in comment mode, open one suggestion thread per new finding.

Every step is safe to repeat: a run that dies half way leaves nothing that a
second run would duplicate.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass, field, replace
from pathlib import Path
from typing import Callable, Iterable

from rich.console import Console

from typolens_core.gateway.base import BaseGateway, GatewayError, StaleBaseError
from typolens_core.identity import find_thread_for_finding, is_thread_for_finding
from typolens_core.models import (
    FileEdit,
    Finding,
    FixedFile,
    NewThread,
    ReviewThread,
    ThreadAnchor,
    ThreadStatus,
)
from typolens_core.utils.paths import normalize_path

console = Console()
logger = logging.getLogger(__name__)

DEFAULT_COMMIT_MESSAGE = "Codespell corrections"


@dataclass
class ReconciliationPlan:
    stale_threads: list[ReviewThread] = field(default_factory=list)
    new_findings: list[Finding] = field(default_factory=list)
    suppressed: list[Finding] = field(default_factory=list)  # file not touched by the pull request
    already_open: list[Finding] = field(default_factory=list)
    placeholder_findings: list[Finding] = field(default_factory=list)
    paths_to_commit: list[str] = field(default_factory=list)


@dataclass
class ReconciliationResult:
    resolved_thread_ids: list = field(default_factory=list)
    created_thread_ids: list = field(default_factory=list)
    committed_paths: list[str] = field(default_factory=list)
    # Staged paths the source branch holds after this run, whether or not a new commit was needed.
    pushed_paths: list[str] = field(default_factory=list)
    commit_id: str | None = None
    skipped_findings: list[Finding] = field(default_factory=list)
    errors: list[str] = field(default_factory=list)
    plan: ReconciliationPlan | None = None


def _unique_paths(paths: Iterable[str]) -> list[str]:
    seen = set()
    unique = []
    for path in paths:
        key = normalize_path(path)
        if key and key not in seen:
            seen.add(key)
            unique.append(path)
    return unique


def plan_reconciliation(
    findings: list[Finding],
    fixed_files: list[FixedFile],
    threads: list[ReviewThread],
    changed_paths: Iterable[str],
    current_user_id: str | None,
    commit_changes: bool,
    extra_paths: Iterable[str] = (),
) -> ReconciliationPlan:
    """Decide what to resolve, comment and commit. Pure: no I/O."""
    plan = ReconciliationPlan()

    for thread in threads:
        if not thread.is_active or not thread.has_comment_from(current_user_id) or thread.finding is None:
            continue
        if not any(is_thread_for_finding(current_user_id, thread, f) for f in findings):
            plan.stale_threads.append(thread)

    changed = {normalize_path(p) for p in changed_paths}
    seen = set()
    for finding in findings:
        if finding.key in seen:
            continue
        seen.add(finding.key)
        if normalize_path(finding.path) not in changed:
            plan.suppressed.append(finding)
        elif find_thread_for_finding(current_user_id, threads, finding) is not None:
            plan.already_open.append(finding)
        else:
            plan.new_findings.append(finding)

    staged = []
    if commit_changes:
        plan.placeholder_findings = [f for f in plan.new_findings if f.has_multiple_suggestions]
        staged = [f.path for f in fixed_files] + [f.path for f in plan.placeholder_findings]
    # Edits made by reply-commands are pushed in either mode; a command counts as handled only once they land.
    plan.paths_to_commit = _unique_paths(staged + list(extra_paths))
    return plan


# ---------------------------------------------------------------------- #
# Line helpers                                                             #
# ---------------------------------------------------------------------- #


def _word_pattern(word: str) -> re.Pattern:
    return re.compile(r"(?<!\w)" + re.escape(word) + r"(?!\w)")


def find_word(line: str, word: str) -> int:
    """Return the 0-based index of ``word`` in ``line``, preferring a whole-word match, or -1."""
    match = _word_pattern(word).search(line)
    if match:
        return match.start()
    return line.find(word)


def replace_word(line: str, word: str, replacement: str) -> str:
    """Replace the first occurrence of ``word`` (whole word preferred) in ``line``."""
    index = find_word(line, word)
    if index < 0:
        return line
    return line[:index] + replacement + line[index + len(word) :]


def anchor_for(finding: Finding, line_text: str, target: str) -> ThreadAnchor:
    index = find_word(line_text, target)
    if index < 0:
        # Word not found on the context line: anchor the whole line instead.
        return ThreadAnchor(finding.path, finding.line_number, 1, finding.line_number, len(line_text) + 1)
    start = index + 1
    return ThreadAnchor(finding.path, finding.line_number, start, finding.line_number, start + len(target))


def without_placeholder(finding: Finding) -> Finding:
    """Return ``finding`` with a placeholder already on its line turned back into the word."""
    if finding.placeholder not in finding.line_text:
        return finding
    return replace(finding, line_text=finding.line_text.replace(finding.placeholder, finding.word, 1))


def suggestion_body(finding: Finding, help_text: str = "") -> str:
    lines = [f"Found misspelt word `{finding.word}`.", ""]
    for candidate in finding.suggestions:
        # GitHub applies a suggestion to the whole line, not to a span.
        suggested = replace_word(finding.line_text, finding.word, candidate) if finding.line_text else candidate
        lines += ["```suggestion", suggested, "```"]
    if help_text:
        lines += ["", help_text]
    return "\n".join(lines)


# ---------------------------------------------------------------------- #
# Executor                                                                 #
# ---------------------------------------------------------------------- #


class Reconciler:
    def __init__(
        self,
        gateway: BaseGateway,
        help_text: Callable[[Finding], str] | None = None,
        workdir: str | Path = ".",
        commit_message: str = DEFAULT_COMMIT_MESSAGE,
    ):
        self.gateway = gateway
        self.help_text = help_text
        self.workdir = Path(workdir)
        self.commit_message = commit_message

    def reconcile(
        self,
        pr_number: int,
        findings: list[Finding],
        fixed_files: list[FixedFile],
        commit_changes: bool,
        comment_findings: bool,
        extra_paths: Iterable[str] = (),
        held_thread_ids: Iterable = (),
    ) -> ReconciliationResult:
        """Run one reconciliation pass.

        ``held_thread_ids`` are threads whose reply-command edited a file in
        ``extra_paths``; when stale they are only resolved once that edit is
        pushed, so a failed push leaves the command to be applied again.
        """
        extra_paths = list(extra_paths)
        result = ReconciliationResult()
        try:
            threads = self.gateway.list_active_threads(pr_number)
            changed_paths = self.gateway.list_changed_paths(pr_number)
        except GatewayError as e:
            self._fail(result, f"Could not read the state of pull request #{pr_number}: {e}")
            return result

        plan = plan_reconciliation(
            findings,
            fixed_files,
            threads,
            changed_paths,
            self.gateway.current_user_id,
            commit_changes,
            extra_paths,
        )
        result.plan = plan
        if plan.suppressed:
            logger.info("%d finding(s) are in files this pull request does not change.", len(plan.suppressed))

        held = set(held_thread_ids)
        self._resolve_stale(pr_number, [t for t in plan.stale_threads if t.id not in held], result)

        rewritten = self._apply_placeholders(plan, result)
        pushed = self._push(pr_number, plan, result)

        deferred = [t for t in plan.stale_threads if t.id in held]
        if deferred:
            landed = {normalize_path(p) for p in result.pushed_paths}
            if all(normalize_path(p) in landed for p in extra_paths):
                self._resolve_stale(pr_number, deferred, result)
            else:
                logger.info("Leaving %d thread(s) open until their reply-command edits are pushed.", len(deferred))

        if comment_findings:
            for finding in plan.new_findings:
                if finding in result.skipped_findings:
                    continue
                if finding.key in rewritten and not pushed:
                    # The placeholder never reached the branch; next run retries.
                    result.skipped_findings.append(finding)
                    continue
                self._comment(pr_number, finding, rewritten.get(finding.key), result)
        return result

    def _fail(self, result: ReconciliationResult, message: str) -> None:
        logger.error(message)
        result.errors.append(message)

    def _resolve_stale(self, pr_number: int, threads: list[ReviewThread], result: ReconciliationResult) -> None:
        for thread in threads:
            try:
                self.gateway.update_thread_status(pr_number, thread.id, ThreadStatus.FIXED)
            except GatewayError as e:
                self._fail(result, f"Could not resolve thread {thread.id}: {e}")
                continue
            console.print(f"[green]Resolved thread {thread.id}: misspelling fixed.[/green]")
            result.resolved_thread_ids.append(thread.id)

    def _apply_placeholders(self, plan: ReconciliationPlan, result: ReconciliationResult) -> dict:
        """Rewrite ambiguous findings on disk; return finding key -> rewritten line."""
        rewritten = {}
        for finding in plan.placeholder_findings:
            try:
                rewritten[finding.key] = self._rewrite_line(finding)
            except (OSError, ValueError) as e:
                logger.error("Could not write placeholder for %s:%s: %s", finding.path, finding.line_number, e)
                result.skipped_findings.append(finding)
        return rewritten

    def _rewrite_line(self, finding: Finding) -> str:
        path = self.workdir / normalize_path(finding.path)
        with open(path, encoding="utf-8", newline="") as f:
            lines = f.read().splitlines(keepends=True)
        index = finding.line_number - 1
        if index < 0 or index >= len(lines):
            raise ValueError(f"{finding.path} has no line {finding.line_number}.")

        line = lines[index]
        if finding.placeholder in line:
            return line.rstrip("\r\n")
        updated = replace_word(line, finding.word, finding.placeholder)
        if updated == line:
            raise ValueError(f"'{finding.word}' not found on {finding.path}:{finding.line_number}.")

        lines[index] = updated
        with open(path, "w", encoding="utf-8", newline="") as f:
            f.write("".join(lines))
        return updated.rstrip("\r\n")

    def _push(self, pr_number: int, plan: ReconciliationPlan, result: ReconciliationResult) -> bool:
        edits = []
        for path in plan.paths_to_commit:
            relative = normalize_path(path)
            try:
                edits.append(FileEdit(path=relative, content=(self.workdir / relative).read_bytes()))
            except OSError as e:
                self._fail(result, f"Could not read {path} for the commit: {e}")
        if not edits:
            return False

        try:
            pull = self.gateway.get_pull_request(pr_number)
            commit_id = self.gateway.push_changes(pull, edits, self.commit_message)
        except StaleBaseError as e:
            self._fail(result, f"Not pushing corrections: {e}")
            return False
        except GatewayError as e:
            self._fail(result, f"Could not push corrections to pull request #{pr_number}: {e}")
            return False

        result.pushed_paths = [e.path for e in edits]
        if commit_id == pull.source_commit_id:
            logger.info("Source branch already contains every staged file; no commit created.")
            return True
        result.commit_id = commit_id
        result.committed_paths = [e.path for e in edits]
        console.print(f"[green]Pushed {len(edits)} corrected file(s) as {commit_id[:7]}.[/green]")
        return True

    def _comment(self, pr_number: int, finding: Finding, rewritten_line: str | None, result: ReconciliationResult):
        if rewritten_line is not None:
            anchor = anchor_for(finding, rewritten_line, finding.placeholder)
        elif finding.placeholder in finding.line_text:
            anchor = anchor_for(finding, finding.line_text, finding.placeholder)
        else:
            anchor = anchor_for(finding, finding.line_text, finding.word)
        # Suggestions and the embedded finding describe the line as the author wrote it.
        finding = without_placeholder(finding)
        help_text = self.help_text(finding) if self.help_text else ""
        thread = NewThread(anchor=anchor, body=suggestion_body(finding, help_text), finding=finding)
        try:
            thread_id = self.gateway.create_thread(pr_number, thread)
        except GatewayError as e:
            self._fail(result, f"Could not comment on {finding.path}:{finding.line_number}: {e}")
            return
        logger.info("Opened thread %s for %r at %s:%s", thread_id, finding.word, finding.path, finding.line_number)
        result.created_thread_ids.append(thread_id)
