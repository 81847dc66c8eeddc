from __future__ import annotations

from github import Github

# GitHub file statuses that count as "added or edited" by a pull request.
_CHANGED_STATUSES = ("added", "modified")


def get_github(token: str) -> Github:
    return Github(token)


def get_pull(repo, pr_number: int):
    return repo.get_pull(pr_number)


def get_changed_files(pr):
    """Return PR files whose content changed; removed and pure renames are excluded."""
    changed = []
    for f in pr.get_files():
        if f.status in _CHANGED_STATUSES or (f.status == "renamed" and f.changes):
            changed.append(f)
    return changed


def get_review_threads(pr) -> list[tuple]:
    """Group review comments into (root, replies) pairs in creation order."""
    roots = []
    replies: dict[int, list] = {}
    for comment in pr.get_review_comments():
        parent = getattr(comment, "in_reply_to_id", None)
        if parent is None:
            roots.append(comment)
        else:
            replies.setdefault(parent, []).append(comment)
    return [(root, replies.get(root.id, [])) for root in roots]
