"""GitHub token resolution with gh CLI fallback.

In GitHub Actions the workflow token is injected as GITHUB_TOKEN. For local
runs, developers already signed in with the GitHub CLI need no extra setup.

Resolution order (stops at first success):
  1. TYPOLENS_GITHUB_TOKEN (a token with push rights, when the workflow token lacks them)
  2. GITHUB_TOKEN
  3. GH_TOKEN
  4. `gh auth token`
"""

from __future__ import annotations

import logging
import os
import subprocess

logger = logging.getLogger(__name__)

TOKEN_ENV_VARS = ("TYPOLENS_GITHUB_TOKEN", "GITHUB_TOKEN", "GH_TOKEN")


def resolve_github_token() -> str | None:
    """Return a GitHub token or None if no source is available. Never raises."""
    for name in TOKEN_ENV_VARS:
        token = os.environ.get(name)
        if token:
            logger.debug("Resolved GitHub token from %s.", name)
            return token

    try:
        result = subprocess.run(
            ["gh", "auth", "token"],
            capture_output=True,
            text=True,
            timeout=5,
        )
        if result.returncode == 0:
            gh_token = result.stdout.strip()
            if gh_token:
                logger.debug("Resolved GitHub token via gh CLI session.")
                return gh_token
    except (FileNotFoundError, subprocess.TimeoutExpired):
        # gh is not installed or timed out.
        pass

    return None
