"""Tests for reply-command handling."""

import pytest

from fakes import BOT, make_finding, make_thread
from typolens_core.commands import CommandProcessor
from typolens_core.ignore_config import IgnoreConfiguration
from typolens_core.models import ThreadComment


@pytest.fixture
def workdir(tmp_path):
    (tmp_path / "docs").mkdir()
    (tmp_path / "docs" / "a.md").write_text("intro\nSee teh docs\n")
    return tmp_path


@pytest.fixture
def processor(gateway, workdir):
    return CommandProcessor(gateway, IgnoreConfiguration(workdir / ".codespellrc"), workdir=workdir)


def _reply(text, comment_id=55, liked_by=None):
    return ThreadComment(id=comment_id, author="reviewer", content=text, liked_by=list(liked_by or []))


def _run(processor, gateway, text, finding=None):
    finding = finding or make_finding(path="./docs/a.md", line_number=2, line_text="See teh docs")
    comment = _reply(text)
    thread = make_thread(finding, replies=[comment])
    gateway.threads.append(thread)
    return processor.process_commands(1, thread, comment, finding)


class TestHelpText:
    def test_lists_every_scope_with_concrete_values(self, processor):
        text = processor.help_text(make_finding(path="./docs/a.md", line_number=2))
        assert text.startswith("<details>")
        assert "`@codespell ignore this`" in text
        assert "all misspellings of `teh`" in text
        assert "on line 2" in text
        assert "`./docs/a.md`" in text
        assert "`*.md`" in text
        assert "`./docs/*`" in text
        assert "`@codespell ignore <pattern>`" in text

    def test_custom_prefix(self, gateway, workdir):
        p = CommandProcessor(gateway, IgnoreConfiguration(workdir / ".codespellrc"), prefix="/spell")
        assert "`/spell ignore word`" in p.help_text(make_finding())


class TestProcessCommands:
    def test_ignore_this_adds_inline_marker(self, processor, gateway, workdir):
        assert _run(processor, gateway, "@codespell ignore this")
        assert (workdir / "docs" / "a.md").read_text() == "intro\nSee teh docs  <!-- codespell:ignore teh -->\n"
        assert processor.touched_paths == ["./docs/a.md"]
        assert processor.pending_likes == [(1, 55, "./docs/a.md")]
        # Nothing is liked until the edit is on the branch.
        assert gateway.likes == []

    def test_default_scope_is_this(self, processor, gateway, workdir):
        assert _run(processor, gateway, "@codespell ignore")
        assert "codespell:ignore teh" in (workdir / "docs" / "a.md").read_text()

    def test_ignore_this_restores_placeholder(self, processor, gateway, workdir):
        path = workdir / "docs" / "a.md"
        path.write_text("intro\nSee teh --> the|tea docs\n")
        finding = make_finding(path="docs/a.md", line_number=2, suggestions=("the", "tea"))
        assert _run(processor, gateway, "@codespell ignore this", finding)
        assert path.read_text() == "intro\nSee teh docs  <!-- codespell:ignore teh -->\n"

    def test_ignore_line(self, processor, gateway, workdir):
        assert _run(processor, gateway, "@codespell ignore line")
        assert (workdir / "docs" / "a.md").read_text().endswith("See teh docs  <!-- codespell:ignore -->\n")

    def test_ignore_word(self, processor, gateway, workdir):
        assert _run(processor, gateway, "@codespell IGNORE Word")
        assert IgnoreConfiguration(workdir / ".codespellrc").ignore_words == ["teh"]
        assert processor.touched_paths == [".codespellrc"]

    def test_ignore_file_repeated_never_duplicates(self, processor, gateway, workdir):
        assert _run(processor, gateway, "@codespell ignore file")
        assert _run(processor, gateway, "@codespell ignore file")
        assert IgnoreConfiguration(workdir / ".codespellrc").skip_patterns == ["./docs/a.md"]

    @pytest.mark.parametrize(
        "command, pattern",
        [
            ("ext", "*.md"),
            ("file-type", "*.md"),
            ("dir", "./docs/*"),
            ("vendor/**", "vendor/**"),
            ("Build/*", "Build/*"),
        ],
    )
    def test_skip_scopes(self, processor, gateway, workdir, command, pattern):
        assert _run(processor, gateway, f"@codespell ignore {command}")
        assert IgnoreConfiguration(workdir / ".codespellrc").skip_patterns == [pattern]

    def test_dir_at_root_is_not_handled(self, processor, gateway, workdir):
        (workdir / "README").write_text("teh\n")
        finding = make_finding(path="./README", line_number=1)
        assert not _run(processor, gateway, "@codespell ignore dir", finding)
        assert not _run(processor, gateway, "@codespell ignore ext", finding)
        assert processor.pending_likes == []

    def test_line_out_of_range_is_not_handled(self, processor, gateway):
        assert not _run(processor, gateway, "@codespell ignore this", make_finding(path="docs/a.md", line_number=9))
        assert processor.pending_likes == []

    def test_missing_file_is_not_handled(self, processor, gateway):
        assert not _run(processor, gateway, "@codespell ignore line", make_finding(path="gone.md"))

    def test_unknown_command(self, processor, gateway):
        assert not _run(processor, gateway, "@codespell shout")
        assert processor.pending_likes == []

    def test_no_prefix_or_no_tokens(self, processor, gateway):
        assert not _run(processor, gateway, "thanks!")
        assert not _run(processor, gateway, "@codespell   ")

    def test_already_liked_comment_skipped(self, processor, gateway, workdir):
        finding = make_finding(path="docs/a.md", line_number=2)
        comment = _reply("@codespell ignore word", liked_by=[BOT])
        thread = make_thread(finding, replies=[comment])
        assert not processor.process_commands(1, thread, comment, finding)
        assert not (workdir / ".codespellrc").exists()

    def test_held_threads_are_those_with_edits(self, processor, gateway, workdir):
        assert _run(processor, gateway, "@codespell ignore word")
        (workdir / "docs" / "b.md").write_text("teh\n")
        gateway.threads.clear()
        finding = make_finding(path="./docs/b.md", line_number=1)
        thread = make_thread(finding, thread_id=2, replies=[_reply("@codespell ignore word", comment_id=66)])
        # Same word again: nothing left to edit.
        assert processor.process_commands(1, thread, thread.comments[1], finding)
        assert processor.held_thread_ids == [1]


class TestLikeHandled:
    def test_likes_once_edit_is_pushed(self, processor, gateway):
        _run(processor, gateway, "@codespell ignore word")
        assert processor.like_handled(1, ["./.codespellrc"]) == 1
        assert gateway.likes == [(1, 55)]
        assert processor.pending_likes == []

    def test_unpushed_edit_is_not_liked(self, processor, gateway):
        _run(processor, gateway, "@codespell ignore this")
        assert processor.like_handled(1, []) == 0
        assert gateway.likes == []

    def test_command_without_edit_liked_without_push(self, processor, gateway, workdir):
        (workdir / ".codespellrc").write_text("[codespell]\nignore-words-list = teh\n")
        _run(processor, gateway, "@codespell ignore word")
        assert processor.touched_paths == []
        assert processor.like_handled(1, []) == 1

    def test_like_failure_is_not_counted(self, processor, gateway):
        gateway.fail_on.add("like_comment")
        assert _run(processor, gateway, "@codespell ignore word")
        assert processor.like_handled(1, [".codespellrc"]) == 0


def test_process_pull_request_handles_each_command_once(processor, gateway, workdir):
    finding = make_finding(path="./docs/a.md", line_number=2)
    thread = make_thread(finding, replies=[_reply("@codespell ignore word", comment_id=1), _reply("ok", comment_id=2)])
    gateway.threads.append(thread)

    assert processor.process_pull_request(1, gateway.list_active_threads(1)) == 1
    processor.like_handled(1, processor.touched_paths)
    # The reaction marks it handled.
    assert processor.process_pull_request(1, gateway.list_active_threads(1)) == 0
    assert IgnoreConfiguration(workdir / ".codespellrc").ignore_words == ["teh"]
