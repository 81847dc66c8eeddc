"""Data models shared by the parser, the reconciler and the platform gateway.

Findings and fixed files are produced fresh on every run and discarded once
reconciliation is done. Review threads belong to the hosting platform; the
models below are read-only snapshots of them, never cached across runs.
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass, field
from enum import Enum

from typolens_core.utils.paths import normalize_path

logger = logging.getLogger(__name__)

# Thread property under which the originating Finding is embedded.
SUGGESTION_PROPERTY = "typolens:suggestion"


class ThreadStatus(str, Enum):
    ACTIVE = "active"
    FIXED = "fixed"
    CLOSED = "closed"


@dataclass(frozen=True)
class Finding:
    """A single misspelling occurrence reported by codespell.

    ``path`` is kept exactly as the tool reported it so that skip patterns
    written back to the codespell config match what codespell walks. Use
    ``key`` whenever two findings (or a finding and a thread) are compared.
    """

    path: str
    line_number: int
    line_text: str
    word: str
    suggestions: tuple[str, ...]

    def __post_init__(self):
        object.__setattr__(self, "suggestions", tuple(self.suggestions))
        if not self.suggestions:
            raise ValueError(f"Finding for {self.word!r} at {self.path}:{self.line_number} has no suggestions.")

    @property
    def key(self) -> tuple[str, int, str]:
        # Coarse on purpose: re-ordered or re-derived suggestions are still the same finding.
        return (normalize_path(self.path), self.line_number, self.word)

    @property
    def has_multiple_suggestions(self) -> bool:
        return len(self.suggestions) > 1

    @property
    def placeholder(self) -> str:
        """Text substituted for the word so an ambiguous finding produces a diff."""
        return f"{self.word} --> {'|'.join(self.suggestions)}"


@dataclass
class FixedFile:
    """A file codespell already corrected in place (``--write-changes``)."""

    path: str


@dataclass
class ThreadComment:
    id: int | str | None
    author: str | None
    content: str
    liked_by: list[str] = field(default_factory=list)

    def is_liked_by(self, user_id: str | None) -> bool:
        return user_id is not None and user_id in self.liked_by


@dataclass
class ThreadAnchor:
    """File position a thread is attached to. Offsets are 1-based, end exclusive."""

    path: str
    start_line: int
    start_offset: int
    end_line: int
    end_offset: int


@dataclass
class ReviewThread:
    id: int | str | None
    status: ThreadStatus
    anchor: ThreadAnchor | None = None
    comments: list[ThreadComment] = field(default_factory=list)
    properties: dict[str, str] = field(default_factory=dict)
    is_deleted: bool = False

    @property
    def finding(self) -> Finding | None:
        return finding_from_property(self.properties.get(SUGGESTION_PROPERTY))

    @property
    def is_active(self) -> bool:
        return not self.is_deleted and self.status == ThreadStatus.ACTIVE

    def has_comment_from(self, user_id: str | None) -> bool:
        return user_id is not None and any(c.author == user_id for c in self.comments)


@dataclass
class NewThread:
    """Everything the gateway needs to open a suggestion thread."""

    anchor: ThreadAnchor
    body: str
    finding: Finding
    status: ThreadStatus = ThreadStatus.ACTIVE

    @property
    def properties(self) -> dict[str, str]:
        return {SUGGESTION_PROPERTY: finding_to_property(self.finding)}


@dataclass
class PullRequestInfo:
    number: int
    source_ref: str  # branch name, without "refs/heads/"
    source_commit_id: str  # latest commit on the source branch, used as the push base
    title: str = ""


@dataclass
class FileEdit:
    path: str
    content: bytes


def finding_to_property(finding: Finding) -> str:
    return json.dumps(
        {
            "path": finding.path,
            "line_number": finding.line_number,
            "line_text": finding.line_text,
            "word": finding.word,
            "suggestions": list(finding.suggestions),
        },
        sort_keys=True,
    )


def finding_from_property(raw: str | None) -> Finding | None:
    """Parse an embedded Finding, or return None if it is absent or unusable."""
    if not raw:
        return None
    try:
        data = json.loads(raw)
        return Finding(
            path=str(data["path"]),
            line_number=int(data["line_number"]),
            line_text=str(data.get("line_text", "")),
            word=str(data["word"]),
            suggestions=tuple(str(s) for s in data["suggestions"]),
        )
    except (json.JSONDecodeError, KeyError, TypeError, ValueError) as e:
        logger.debug("Ignoring malformed suggestion property (%s): %.200s", e, raw)
        return None
