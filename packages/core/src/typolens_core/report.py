"""Parse codespell's text report into findings and fixed files.

codespell writes one report per misspelling to stdout::

    > The qick brown fox
    ./doc.txt:1: qick ==> quick

The ``>`` line is the context codespell prints (``--context 0``) just before
the report it belongs to. Fixed-file notices, warnings and errors go to
stderr as ``FIXED: <path>``, ``WARNING: <msg>`` and ``ERROR: <msg>``.
"""

from __future__ import annotations

import difflib
import logging
import re
from dataclasses import dataclass, field

from typolens_core.models import Finding, FixedFile

logger = logging.getLogger(__name__)

_ANSI_RE = re.compile(r"\x1b\[[0-9;]*m")
_REPORT_RE = re.compile(r"^(?P<path>.+?):(?P<line>\d+):(?P<context>.*?)\s*==>\s*(?P<candidates>.*)$")
_FIXED_RE = re.compile(r"^FIXED:\s*(?P<path>.+)$", re.IGNORECASE)
_WARNING_RE = re.compile(r"^WARNING:\s*(?P<message>.+)$", re.IGNORECASE)
_ERROR_RE = re.compile(r"^ERROR:\s*(?P<message>.+)$", re.IGNORECASE)
_TOKEN_STRIP = "\"'`.,;:!?()[]{}<>"


@dataclass
class SpellcheckReport:
    findings: list[Finding] = field(default_factory=list)
    fixed_files: list[FixedFile] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)
    errors: list[str] = field(default_factory=list)


def _split_lines(text: str) -> list[str]:
    return [_ANSI_RE.sub("", line) for line in text.splitlines()]


def _strip_context_marker(line: str) -> str:
    if line.startswith("> "):
        return line[2:]
    if line.startswith(">"):
        return line[1:]
    return line


def _parse_candidates(raw: str) -> list[str]:
    # "a, b | reason" -> ["a", "b"]
    candidates = raw.split(" | ", 1)[0]
    return [c.strip() for c in candidates.split(",") if c.strip()]


def _pick_word(context: str, candidates: list[str]) -> str | None:
    """Return the misspelled word from a report's context field.

    Normally the field is the word itself. When codespell echoes a longer
    context, the token closest to one of the candidates is taken.
    """
    tokens = [t.strip(_TOKEN_STRIP) for t in context.split()]
    tokens = [t for t in tokens if t]
    if not tokens:
        return None
    if len(tokens) == 1:
        return tokens[0]

    def similarity(token: str) -> float:
        return max(difflib.SequenceMatcher(None, token.lower(), c.lower()).ratio() for c in candidates)

    best = tokens[0]
    best_score = -1.0
    for token in tokens:
        if token in candidates:
            continue  # already spelled correctly
        score = similarity(token)
        if score > best_score:
            best, best_score = token, score
    return best


def parse_stdout(stdout: str) -> list[Finding]:
    findings: list[Finding] = []
    context_line = ""
    for line in _split_lines(stdout):
        match = _REPORT_RE.match(line)
        if not match:
            # Only non-report lines feed the lookback buffer: a second
            # misspelling on the same source line has no context of its own.
            context_line = line
            continue

        candidates = _parse_candidates(match.group("candidates"))
        word = _pick_word(match.group("context"), candidates) if candidates else None
        if not candidates or not word:
            logger.debug("Ignoring report without word or candidates: %s", line)
            continue

        findings.append(
            Finding(
                path=match.group("path").strip(),
                line_number=int(match.group("line")),
                line_text=_strip_context_marker(context_line),
                word=word,
                suggestions=tuple(candidates),
            )
        )
    return findings


def parse_report(stdout: str, stderr: str = "") -> SpellcheckReport:
    report = SpellcheckReport(findings=parse_stdout(stdout))
    for line in _split_lines(stderr):
        line = line.strip()
        fixed = _FIXED_RE.match(line)
        if fixed:
            report.fixed_files.append(FixedFile(path=fixed.group("path").strip()))
            continue
        warning = _WARNING_RE.match(line)
        if warning:
            report.warnings.append(warning.group("message").strip())
            continue
        error = _ERROR_RE.match(line)
        if error:
            report.errors.append(error.group("message").strip())
    return report
