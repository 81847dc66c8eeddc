"""Reply-commands on suggestion threads.

A reviewer answers a suggestion thread with e.g. ``@codespell ignore word``;
the next run applies the command to the checkout (inline marker or codespell
config entry) and, once that edit is on the source branch, reacts to the
comment. The reaction is the only record that a command was handled, so a
command whose edit failed or was never pushed is left unliked and retried on a
later run.
"""

from __future__ import annotations

import configparser
import logging
import os
from pathlib import Path, PurePosixPath
from typing import Iterable

from rich.console import Console

from typolens_core.gateway.base import BaseGateway, GatewayError
from typolens_core.ignore_config import IgnoreConfiguration
from typolens_core.models import Finding, ReviewThread, ThreadComment
from typolens_core.utils.comments import add_inline_ignore
from typolens_core.utils.paths import normalize_path

console = Console()
logger = logging.getLogger(__name__)

DEFAULT_PREFIX = "@codespell"


def _extension_pattern(path: str) -> str:
    suffix = PurePosixPath(normalize_path(path)).suffix
    if not suffix:
        raise ValueError(f"'{path}' has no file extension to ignore.")
    return f"*{suffix}"


def _directory_pattern(path: str) -> str:
    # Keeps any "./" prefix: skip globs are matched against paths as codespell walks them.
    posix = path.replace("\\", "/")
    parent = posix.rsplit("/", 1)[0] if "/" in posix else ""
    if parent in ("", "."):
        raise ValueError(f"'{path}' is at the repository root; ignore the file or its extension instead.")
    return f"{parent}/*"


class CommandProcessor:
    def __init__(
        self,
        gateway: BaseGateway,
        ignore_config: IgnoreConfiguration,
        prefix: str = DEFAULT_PREFIX,
        workdir: str | Path = ".",
    ):
        self.gateway = gateway
        self.ignore_config = ignore_config
        self.prefix = prefix
        self.workdir = Path(workdir)
        # Files changed by handled commands, in first-touched order.
        self.touched_paths: list[str] = []
        # (thread id, comment id, edited path or None) for commands applied but not yet liked.
        self.pending_likes: list[tuple] = []

    def help_text(self, finding: Finding) -> str:
        p = self.prefix
        try:
            ext = _extension_pattern(finding.path)
        except ValueError:
            ext = "*.<ext>"
        try:
            directory = _directory_pattern(finding.path)
        except ValueError:
            directory = "<dir>/*"
        return "\n".join(
            [
                "<details>",
                "<summary>🛠️ Codespell commands and options</summary>",
                "",
                "You can trigger Codespell actions by replying to this comment with any of the following commands:",
                f" - `{p} ignore this` will ignore this single misspelling instance using an inline code comment",
                f" - `{p} ignore word` will ignore all misspellings of `{finding.word}` by adding it to the "
                "ignored words list",
                f" - `{p} ignore line` will ignore all misspellings on line {finding.line_number} using an "
                "inline code comment",
                f" - `{p} ignore file` will add `{finding.path}` to the ignored files list",
                f" - `{p} ignore ext` will add `{ext}` to the ignored files list",
                f" - `{p} ignore dir` will add `{directory}` to the ignored files list",
                f" - `{p} ignore <pattern>` will add a custom file path pattern to the ignored files list",
                "",
                "</details>",
            ]
        )

    # ------------------------------------------------------------------ #
    # Dispatch                                                             #
    # ------------------------------------------------------------------ #

    def process_pull_request(self, pr_number: int, threads: list[ReviewThread]) -> int:
        """Apply every pending command on the pull request's suggestion threads."""
        handled = 0
        for thread in threads:
            if not thread.is_active:
                continue
            finding = thread.finding
            if finding is None:
                continue
            for comment in thread.comments:
                if self.process_commands(pr_number, thread, comment, finding):
                    handled += 1
        return handled

    def process_commands(
        self,
        pr_number: int,
        thread: ReviewThread,
        comment: ThreadComment,
        finding: Finding,
    ) -> bool:
        content = (comment.content or "").lstrip()
        if not content.startswith(self.prefix):
            return False
        if comment.is_liked_by(self.gateway.current_user_id):
            logger.debug("Comment %s in thread %s was already handled.", comment.id, thread.id)
            return False

        tokens = content[len(self.prefix) :].split()
        if not tokens:
            return False

        command = tokens[0].lower()
        console.print(
            f"[cyan]Processing '{' '.join(tokens)}' for {finding.word!r} "
            f"at {finding.path}:{finding.line_number}[/cyan]"
        )
        if command != "ignore":
            logger.warning("Unknown command '%s' in comment %s of thread %s.", tokens[0], comment.id, thread.id)
            return False

        scope = tokens[1] if len(tokens) > 1 else "this"
        try:
            edited = self._ignore(scope, finding)
        except (OSError, ValueError, configparser.Error) as e:
            logger.warning("Could not apply 'ignore %s' for %s:%s: %s", scope, finding.path, finding.line_number, e)
            return False

        if edited is not None:
            self._touch(edited)
        self.pending_likes.append((thread.id, comment.id, edited))
        return True

    @property
    def held_thread_ids(self) -> list:
        """Threads whose applied command edited a file that still has to be pushed."""
        return [thread_id for thread_id, _, edited in self.pending_likes if edited is not None]

    def like_handled(self, pr_number: int, pushed_paths: Iterable[str]) -> int:
        """React to applied commands whose edit is on the source branch.

        A command that changed nothing (its edit was already there) is liked
        right away. The rest wait for a later run, which applies them again.
        """
        pushed = {normalize_path(p) for p in pushed_paths}
        liked = 0
        for thread_id, comment_id, edited in self.pending_likes:
            if edited is not None and normalize_path(edited) not in pushed:
                logger.warning("Edit to %s for comment %s was not pushed; retrying next run.", edited, comment_id)
                continue
            try:
                self.gateway.like_comment(pr_number, thread_id, comment_id)
            except GatewayError as e:
                # Commands are idempotent; an unliked comment is simply applied again next run.
                logger.warning("Handled comment %s but could not react to it: %s", comment_id, e)
                continue
            liked += 1
        self.pending_likes = []
        return liked

    # ------------------------------------------------------------------ #
    # ignore <scope>                                                       #
    # ------------------------------------------------------------------ #

    def _ignore(self, scope: str, finding: Finding) -> str | None:
        """Apply one ignore scope; return the path it edited, or None if nothing changed."""
        name = scope.lower()
        if name == "this":
            return self._mark_line(finding, word=finding.word)
        elif name == "line":
            return self._mark_line(finding, word=None)
        elif name == "word":
            return self._add_to_config(self.ignore_config.add_ignore_word, finding.word)
        elif name == "file":
            return self._add_to_config(self.ignore_config.add_skip_pattern, finding.path)
        elif name in ("ext", "file-type"):
            return self._add_to_config(self.ignore_config.add_skip_pattern, _extension_pattern(finding.path))
        elif name == "dir":
            return self._add_to_config(self.ignore_config.add_skip_pattern, _directory_pattern(finding.path))
        else:
            # A custom glob keeps its casing; paths are case-sensitive.
            return self._add_to_config(self.ignore_config.add_skip_pattern, scope)

    def _add_to_config(self, add, value: str) -> str | None:
        if add(value):
            return os.path.relpath(self.ignore_config.path, self.workdir)
        return None

    def _mark_line(self, finding: Finding, word: str | None) -> str | None:
        path = self.workdir / normalize_path(finding.path)
        with open(path, encoding="utf-8", newline="") as f:
            lines = f.read().splitlines(keepends=True)
        index = finding.line_number - 1
        if index < 0 or index >= len(lines):
            raise ValueError(f"{finding.path} has no line {finding.line_number}.")

        line = lines[index]
        # Undo a placeholder substitution so the real word is what gets ignored.
        if finding.placeholder in line:
            line = line.replace(finding.placeholder, finding.word, 1)
        updated = add_inline_ignore(line, finding.path, word)
        if updated == lines[index]:
            return None

        lines[index] = updated
        with open(path, "w", encoding="utf-8", newline="") as f:
            f.write("".join(lines))
        logger.info("Added inline ignore marker to %s:%s", finding.path, finding.line_number)
        return finding.path

    def _touch(self, path: str) -> None:
        normalized = normalize_path(path)
        if all(normalize_path(p) != normalized for p in self.touched_paths):
            self.touched_paths.append(path)
