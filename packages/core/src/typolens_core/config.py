from __future__ import annotations

import os
import re
from pathlib import Path
from typing import Optional

import yaml

from typolens_core.ignore_config import IgnoreConfiguration

DEFAULT_CONFIG: dict = {
    "commit_suggestions": False,
    "comment_suggestions": True,
    "fail_on_misspelling": False,
    "skip_if_codespell_config_missing": False,
    "codespell_config": ".codespellrc",
    "codespell_args": [],  # extra arguments appended to every codespell invocation
    "findings_exit_codes": [0, 65],
    "command_prefix": "@codespell",
    "commit_message": "Codespell corrections",
    "lock_ttl_minutes": None,  # None = a lock never expires
    "bot_login": None,  # None = ask GitHub who the token belongs to
}

_PULL_REF_RE = re.compile(r"^refs/pull/(?P<number>\d+)/")


class ConfigurationError(ValueError):
    """The run context is incomplete (missing repository, token or run id)."""


def _pr_number_from_ref(ref: str | None) -> int | None:
    match = _PULL_REF_RE.match(ref or "")
    return int(match.group("number")) if match else None


def codespell_config_path(config: dict, workdir: str | Path = ".") -> Path:
    """The codespell config file, relative to the checkout in ``workdir``."""
    return Path(workdir) / config.get("codespell_config", DEFAULT_CONFIG["codespell_config"])


def load_config(
    config_path: str = ".typolens.yml",
    cli_overrides: Optional[dict] = None,
    workdir: str | Path = ".",
) -> dict:
    """
    Load configuration by merging (in order of precedence):
      1. Built-in defaults
      2. .typolens.yml in the current directory
      3. Flags switched on in the [typolens] section of the codespell config
         (found in ``workdir``, the checkout codespell runs in)
      4. CLI argument overrides
    """
    config = {
        **DEFAULT_CONFIG,
        "codespell_args": list(DEFAULT_CONFIG["codespell_args"]),
        "findings_exit_codes": list(DEFAULT_CONFIG["findings_exit_codes"]),
    }

    path = Path(config_path)
    if path.exists():
        with open(path) as f:
            file_config = yaml.safe_load(f) or {}
        config.update(file_config)

    for key, enabled in IgnoreConfiguration(codespell_config_path(config, workdir)).task_flags().items():
        config[key] = bool(config.get(key)) or enabled

    if cli_overrides:
        for key, value in cli_overrides.items():
            if value is not None:
                config[key] = value

    # Resolve the run context from the CI environment unless already given.
    env_context = {
        "github_token": os.environ.get("GITHUB_TOKEN"),
        "repository": os.environ.get("GITHUB_REPOSITORY"),
        "run_id": os.environ.get("GITHUB_RUN_ID"),
        "pr_number": _pr_number_from_ref(os.environ.get("GITHUB_REF")),
    }
    for key, value in env_context.items():
        if config.get(key) is None:
            config[key] = value

    return config


def require_run_context(config: dict) -> None:
    """Raise ConfigurationError unless a pull request run can talk to GitHub."""
    missing = [key for key in ("repository", "github_token", "run_id") if not config.get(key)]
    if missing:
        raise ConfigurationError(
            "Missing run context: " + ", ".join(missing) + ". Set GITHUB_REPOSITORY, GITHUB_TOKEN and "
            "GITHUB_RUN_ID (GitHub Actions sets them automatically) or pass --repo / --run-id."
        )
