"""Tests for reading and appending to the codespell configuration."""

import pytest

from typolens_core.ignore_config import IgnoreConfiguration


def test_missing_file_reads_empty(tmp_path):
    cfg = IgnoreConfiguration(tmp_path / ".codespellrc")
    assert not cfg.exists
    assert cfg.skip_patterns == []
    assert cfg.ignore_words == []
    assert cfg.task_flags() == {}


def test_existing_entries_in_order(tmp_path):
    path = tmp_path / ".codespellrc"
    path.write_text("[codespell]\nskip = ./build/*, ,*.min.js\nignore-words-list = crate,te\n")
    cfg = IgnoreConfiguration(path)
    assert cfg.skip_patterns == ["./build/*", "*.min.js"]
    assert cfg.ignore_words == ["crate", "te"]


def test_append_creates_file_and_section(tmp_path):
    cfg = IgnoreConfiguration(tmp_path / ".codespellrc")
    assert cfg.add_skip_pattern("./docs/a.md")
    assert cfg.exists
    assert cfg.skip_patterns == ["./docs/a.md"]


def test_append_is_deduplicated(tmp_path):
    path = tmp_path / ".codespellrc"
    path.write_text("[codespell]\nskip = ./a.md\n")
    cfg = IgnoreConfiguration(path)
    assert cfg.add_skip_pattern("./b.md")
    assert not cfg.add_skip_pattern("./b.md")
    assert not cfg.add_skip_pattern("./a.md")
    assert cfg.skip_patterns == ["./a.md", "./b.md"]


def test_other_sections_preserved(tmp_path):
    path = tmp_path / ".codespellrc"
    path.write_text("[codespell]\ncount =\n\n[other]\nkey = 50%\n")
    cfg = IgnoreConfiguration(path)
    cfg.add_ignore_word("teh")
    text = path.read_text()
    assert "[other]" in text
    assert "50%" in text
    assert cfg.ignore_words == ["teh"]


@pytest.mark.parametrize("value", ["", "  ", "a,b"])
def test_invalid_values_rejected(tmp_path, value):
    with pytest.raises(ValueError):
        IgnoreConfiguration(tmp_path / ".codespellrc").add_ignore_word(value)


def test_task_flags(tmp_path):
    path = tmp_path / ".codespellrc"
    path.write_text("[codespell]\n\n[typolens]\ncommit-suggestions\nfail-on-misspelling = false\n")
    assert IgnoreConfiguration(path).task_flags() == {"commit_suggestions": True, "fail_on_misspelling": False}
