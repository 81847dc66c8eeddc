"""Read and append to codespell's own configuration file.

The ``[codespell]`` section of ``.codespellrc`` is what codespell itself reads
on startup, so every entry appended here takes effect on the very next run:

    [codespell]
    skip = ./build/*,*.min.js
    ignore-words-list = crate,te

An optional ``[typolens]`` section may switch task flags on, e.g. a bare
``commit-suggestions`` line.
"""

from __future__ import annotations

import configparser
import logging
from pathlib import Path

logger = logging.getLogger(__name__)

CODESPELL_SECTION = "codespell"
TASK_SECTION = "typolens"
SKIP_KEY = "skip"
IGNORE_WORDS_KEY = "ignore-words-list"

# [typolens] key -> config key
_TASK_FLAGS = {
    "commit-suggestions": "commit_suggestions",
    "comment-suggestions": "comment_suggestions",
    "fail-on-misspelling": "fail_on_misspelling",
}
_FALSE_VALUES = {"0", "false", "no", "off"}


def _split(value: str | None) -> list[str]:
    if not value:
        return []
    return [entry.strip() for entry in value.split(",") if entry.strip()]


class IgnoreConfiguration:
    def __init__(self, path: str | Path = ".codespellrc"):
        self.path = Path(path)

    @property
    def exists(self) -> bool:
        return self.path.exists()

    def _load(self) -> configparser.ConfigParser:
        # Interpolation off: skip globs may legitimately contain "%".
        parser = configparser.ConfigParser(interpolation=None, allow_no_value=True)
        if self.path.exists():
            with open(self.path, encoding="utf-8") as f:
                parser.read_file(f)
        return parser

    def _entries(self, key: str) -> list[str]:
        parser = self._load()
        if not parser.has_section(CODESPELL_SECTION):
            return []
        return _split(parser.get(CODESPELL_SECTION, key, fallback=""))

    @property
    def skip_patterns(self) -> list[str]:
        return self._entries(SKIP_KEY)

    @property
    def ignore_words(self) -> list[str]:
        return self._entries(IGNORE_WORDS_KEY)

    def add_skip_pattern(self, pattern: str) -> bool:
        return self._append(SKIP_KEY, pattern)

    def add_ignore_word(self, word: str) -> bool:
        return self._append(IGNORE_WORDS_KEY, word)

    def _append(self, key: str, value: str) -> bool:
        """Append ``value`` to a comma-separated entry. Returns False if already present."""
        value = value.strip()
        if not value or "," in value:
            raise ValueError(f"Cannot add {value!r} to '{key}': empty or contains a comma.")

        parser = self._load()
        if not parser.has_section(CODESPELL_SECTION):
            parser.add_section(CODESPELL_SECTION)
        entries = _split(parser.get(CODESPELL_SECTION, key, fallback=""))
        if value in entries:
            logger.debug("'%s' already lists %r; nothing to write.", key, value)
            return False

        entries.append(value)
        parser.set(CODESPELL_SECTION, key, ",".join(entries))
        with open(self.path, "w", encoding="utf-8") as f:
            parser.write(f)
        logger.info("Added %r to '%s' in %s", value, key, self.path)
        return True

    def task_flags(self) -> dict[str, bool]:
        """Return task flags switched on in the ``[typolens]`` section."""
        if not self.path.exists():
            return {}
        parser = self._load()
        if not parser.has_section(TASK_SECTION):
            return {}
        flags = {}
        for option, config_key in _TASK_FLAGS.items():
            if not parser.has_option(TASK_SECTION, option):
                continue
            raw = parser.get(TASK_SECTION, option)
            # A bare key (no value) counts as "on".
            flags[config_key] = raw is None or raw.strip().lower() not in _FALSE_VALUES
        return flags
