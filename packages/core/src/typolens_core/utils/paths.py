"""Path normalization shared by the parser, the identity check and the gateway."""

from __future__ import annotations


def normalize_path(path: str) -> str:
    """Return ``path`` in repository-relative POSIX form.

    codespell reports paths the way it walked them (``./docs/a.md``, or
    ``.\\docs\\a.md`` on Windows) while GitHub reports ``docs/a.md``. Both
    sides go through this function before they are compared.

    Idempotent: ``normalize_path(normalize_path(p)) == normalize_path(p)``.
    """
    normalized = path.strip().replace("\\", "/")
    while normalized.startswith(("./", "/")):
        normalized = normalized[2:] if normalized.startswith("./") else normalized.lstrip("/")
    return normalized
