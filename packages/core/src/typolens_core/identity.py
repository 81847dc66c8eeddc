"""Matching findings against existing review threads.

This predicate is the only de-duplication mechanism: there is no local
database. Identity is recomputed from live platform state on every run, so a
run that crashed half way is simply repeated.
"""

from __future__ import annotations

from typing import Iterable

from typolens_core.models import Finding, ReviewThread, ThreadStatus


def is_thread_for_finding(current_user_id: str | None, thread: ReviewThread, finding: Finding) -> bool:
    """Return True if ``thread`` is our open thread for ``finding``.

    All of the following must hold: the thread is not deleted, it is active,
    the current user authored at least one of its comments, it embeds a
    Finding, and the embedded (path, line, word) triple equals the
    candidate's. Paths are normalized on both sides.
    """
    if thread.is_deleted or thread.status != ThreadStatus.ACTIVE:
        return False
    if not thread.has_comment_from(current_user_id):
        return False
    embedded = thread.finding
    if embedded is None:
        return False
    return embedded.key == finding.key


def find_thread_for_finding(
    current_user_id: str | None,
    threads: Iterable[ReviewThread],
    finding: Finding,
) -> ReviewThread | None:
    for thread in threads:
        if is_thread_for_finding(current_user_id, thread, finding):
            return thread
    return None
