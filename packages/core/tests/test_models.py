"""Tests for the shared data models."""

import pytest

from fakes import make_finding
from typolens_core.models import (
    Finding,
    NewThread,
    SUGGESTION_PROPERTY,
    ThreadAnchor,
    ThreadComment,
    finding_from_property,
    finding_to_property,
)


def test_finding_requires_a_suggestion():
    with pytest.raises(ValueError):
        Finding(path="a.txt", line_number=1, line_text="", word="teh", suggestions=())


def test_suggestions_coerced_to_tuple():
    f = Finding(path="a.txt", line_number=1, line_text="", word="teh", suggestions=["the"])
    assert f.suggestions == ("the",)


def test_placeholder_lists_all_candidates():
    f = make_finding(word="clera", suggestions=("clear", "sclera"))
    assert f.placeholder == "clera --> clear|sclera"


def test_property_keeps_the_finding():
    f = make_finding(path="./docs/a.md", line_text="uses --> arrows")
    assert finding_from_property(finding_to_property(f)) == f


@pytest.mark.parametrize("raw", [None, "", "[]", "{}", '{"path": "a"}', '{"path":"a","line_number":"x","word":"w"}'])
def test_unusable_property_is_none(raw):
    assert finding_from_property(raw) is None


def test_new_thread_embeds_finding():
    f = make_finding()
    thread = NewThread(anchor=ThreadAnchor(f.path, 1, 5, 1, 8), body="b", finding=f)
    assert finding_from_property(thread.properties[SUGGESTION_PROPERTY]) == f


def test_comment_liked_by():
    c = ThreadComment(id=1, author="a", content="x", liked_by=["bot"])
    assert c.is_liked_by("bot")
    assert not c.is_liked_by("other")
    assert not c.is_liked_by(None)
