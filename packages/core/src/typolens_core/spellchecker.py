"""Run codespell as a subprocess and collect its report."""

from __future__ import annotations

import logging
import shutil
import subprocess
import sys
from dataclasses import dataclass, field
from typing import Sequence

from typolens_core.models import Finding, FixedFile
from typolens_core.report import parse_report

logger = logging.getLogger(__name__)

# codespell exits 0 when clean and 65 (EX_DATAERR) when it found misspellings.
# Anything else is a crash or a usage error, never "zero findings".
DEFAULT_FINDINGS_EXIT_CODES = (0, 65)

# --quiet-level 2 silences binary-file notices; --context 0 prints the
# offending line right before each report, which the parser relies on.
_BASE_ARGS = ["--quiet-level", "2", "--context", "0"]


class SpellcheckerError(RuntimeError):
    """codespell could not be started or exited with an unexpected code."""


@dataclass
class SpellcheckResult:
    return_code: int
    findings: list[Finding] = field(default_factory=list)
    fixed_files: list[FixedFile] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)
    errors: list[str] = field(default_factory=list)


def _default_executable() -> list[str]:
    found = shutil.which("codespell")
    if found:
        return [found]
    # codespell is an install dependency, so the module is always importable.
    return [sys.executable, "-m", "codespell_lib"]


class CodespellRunner:
    def __init__(
        self,
        executable: Sequence[str] | None = None,
        extra_args: Sequence[str] = (),
        findings_exit_codes: Sequence[int] = DEFAULT_FINDINGS_EXIT_CODES,
        cwd: str | None = None,
        timeout: float | None = None,
    ):
        self.executable = list(executable) if executable else _default_executable()
        self.extra_args = list(extra_args)
        self.findings_exit_codes = set(findings_exit_codes)
        self.cwd = cwd
        self.timeout = timeout

    def command(self, write_changes: bool = False) -> list[str]:
        args = [*self.executable, *_BASE_ARGS]
        if write_changes:
            args.append("--write-changes")
        return args + self.extra_args

    def run(self, write_changes: bool = False) -> SpellcheckResult:
        cmd = self.command(write_changes)
        logger.debug("Running %s", " ".join(cmd))
        try:
            proc = subprocess.run(
                cmd,
                capture_output=True,
                text=True,
                cwd=self.cwd,
                timeout=self.timeout,
            )
        except FileNotFoundError as e:
            raise SpellcheckerError(f"codespell executable not found: {cmd[0]}") from e
        except subprocess.TimeoutExpired as e:
            raise SpellcheckerError(f"codespell timed out after {self.timeout}s") from e

        if proc.returncode not in self.findings_exit_codes:
            detail = (proc.stderr or "").strip().splitlines()[-1:] or ["no output"]
            raise SpellcheckerError(f"codespell failed with exit code {proc.returncode}: {detail[0]}")

        report = parse_report(proc.stdout or "", proc.stderr or "")
        for message in report.warnings:
            logger.warning("codespell: %s", message)
        for message in report.errors:
            logger.error("codespell: %s", message)

        return SpellcheckResult(
            return_code=proc.returncode,
            findings=report.findings,
            fixed_files=report.fixed_files,
            warnings=report.warnings,
            errors=report.errors,
        )
