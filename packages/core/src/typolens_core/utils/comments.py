"""Inline ``codespell:ignore`` markers.

codespell skips a word on any line carrying ``codespell:ignore <word>`` (or
every word, with a bare ``codespell:ignore``) after a comment character, so
the marker only needs to be written in a comment syntax the file accepts.
"""

from __future__ import annotations

import re
from pathlib import PurePosixPath

_HASH = ("#", "")
_SLASH = ("//", "")
_DASH = ("--", "")
_HTML = ("<!--", " -->")
_BLOCK = ("/*", " */")

COMMENT_SYNTAX = {
    ".py": _HASH,
    ".sh": _HASH,
    ".bash": _HASH,
    ".rb": _HASH,
    ".pl": _HASH,
    ".r": _HASH,
    ".yml": _HASH,
    ".yaml": _HASH,
    ".toml": _HASH,
    ".cfg": _HASH,
    ".ini": (";", ""),
    ".ps1": _HASH,
    ".dockerfile": _HASH,
    ".mk": _HASH,
    ".js": _SLASH,
    ".jsx": _SLASH,
    ".ts": _SLASH,
    ".tsx": _SLASH,
    ".java": _SLASH,
    ".kt": _SLASH,
    ".scala": _SLASH,
    ".go": _SLASH,
    ".rs": _SLASH,
    ".c": _SLASH,
    ".h": _SLASH,
    ".cpp": _SLASH,
    ".hpp": _SLASH,
    ".cs": _SLASH,
    ".swift": _SLASH,
    ".php": _SLASH,
    ".dart": _SLASH,
    ".sql": _DASH,
    ".lua": _DASH,
    ".hs": _DASH,
    ".md": _HTML,
    ".html": _HTML,
    ".htm": _HTML,
    ".xml": _HTML,
    ".svg": _HTML,
    ".vue": _HTML,
    ".css": _BLOCK,
    ".scss": _SLASH,
    ".less": _SLASH,
    ".tex": ("%", ""),
    ".erl": ("%", ""),
    ".bat": ("::", ""),
}

# Matches an existing marker: "codespell:ignore" plus its optional word list.
_MARKER_RE = re.compile(r"codespell:ignore\b(?P<words>[ \t]+[\w,]+)?")


def comment_syntax(path: str) -> tuple[str, str]:
    name = PurePosixPath(path.replace("\\", "/")).name.lower()
    if name in ("dockerfile", "makefile"):
        return _HASH
    return COMMENT_SYNTAX.get(PurePosixPath(name).suffix, _HASH)


def inline_ignore_comment(path: str, word: str | None = None) -> str:
    prefix, suffix = comment_syntax(path)
    marker = "codespell:ignore" + (f" {word}" if word else "")
    return f"{prefix} {marker}{suffix}"


def add_inline_ignore(line: str, path: str, word: str | None = None) -> str:
    """Return ``line`` with an ignore marker for ``word`` (or the whole line).

    An existing marker is extended rather than duplicated, and a line-wide
    marker is never narrowed back to a single word. The line ending, if any,
    is preserved.
    """
    body = line.rstrip("\r\n")
    ending = line[len(body) :]

    match = _MARKER_RE.search(body)
    if match is None:
        separator = "  " if body.strip() else ""
        return body + separator + inline_ignore_comment(path, word) + ending

    existing = [w for w in (match.group("words") or "").strip().split(",") if w]
    if not existing:
        return line  # already ignores the whole line
    if word is None:
        replacement = "codespell:ignore"
    elif word in existing:
        return line
    else:
        replacement = "codespell:ignore " + ",".join(existing + [word])
    return body[: match.start()] + replacement + body[match.end() :] + ending
