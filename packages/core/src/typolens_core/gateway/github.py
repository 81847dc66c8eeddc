"""GitHub implementation of the platform gateway, on top of PyGithub.

How the platform concepts map onto GitHub:

- review thread     -> a root review comment plus its replies
- thread status     -> hidden marker on the root comment (REST has no status)
- thread properties -> same hidden marker
- like              -> a "+1" reaction
- PR property store -> one issue comment per key, authored by us, with a hidden marker
- push              -> git data API: blobs, tree, commit, non-forced ref update
"""

from __future__ import annotations

import base64
import hashlib
import logging
from contextlib import contextmanager

from github import GithubException, InputGitTreeElement

from typolens_core.gateway.base import BaseGateway, GatewayError, StaleBaseError
from typolens_core.gh import markers
from typolens_core.gh.pull_request import get_changed_files, get_github, get_pull, get_review_threads
from typolens_core.models import (
    FileEdit,
    NewThread,
    PullRequestInfo,
    ReviewThread,
    ThreadAnchor,
    ThreadComment,
    ThreadStatus,
)
from typolens_core.utils.paths import normalize_path

logger = logging.getLogger(__name__)

# Identity used by the Actions-provided GITHUB_TOKEN, which cannot call GET /user.
ACTIONS_BOT_LOGIN = "github-actions[bot]"
LIKE_REACTION = "+1"

_RESOLVED_NOTE = "_Resolved: codespell no longer reports this misspelling._"
_LOCK_NOTE = "_typolens bookkeeping for this pull request. Please do not edit._"


def git_blob_sha(content: bytes) -> str:
    """Object id git assigns to ``content`` as a blob."""
    return hashlib.sha1(b"blob %d\0" % len(content) + content).hexdigest()


@contextmanager
def _api_call(action: str):
    try:
        yield
    except GithubException as e:
        raise GatewayError(f"GitHub API call failed while trying to {action}: {e}") from e


class GitHubGateway(BaseGateway):
    def __init__(self, repo, github=None, bot_login: str | None = None):
        self._repo = repo
        self._github = github
        self._bot_login = bot_login
        self._pulls: dict[int, object] = {}

    @classmethod
    def from_token(cls, repo_name: str, token: str, bot_login: str | None = None) -> GitHubGateway:
        github = get_github(token)
        with _api_call(f"open repository {repo_name}"):
            repo = github.get_repo(repo_name)
        return cls(repo, github=github, bot_login=bot_login)

    def _resolve_current_user_id(self) -> str:
        if self._bot_login:
            return self._bot_login
        if self._github is not None:
            try:
                return self._github.get_user().login
            except GithubException as e:
                logger.debug("Could not resolve the authenticated user (%s); assuming %s.", e, ACTIONS_BOT_LOGIN)
        return ACTIONS_BOT_LOGIN

    def _pull(self, pr_number: int, refresh: bool = False):
        if refresh or pr_number not in self._pulls:
            with _api_call(f"fetch pull request #{pr_number}"):
                self._pulls[pr_number] = get_pull(self._repo, pr_number)
        return self._pulls[pr_number]

    # ------------------------------------------------------------------ #
    # Pull requests and threads                                            #
    # ------------------------------------------------------------------ #

    def get_pull_request(self, pr_number: int) -> PullRequestInfo:
        pr = self._pull(pr_number, refresh=True)
        return PullRequestInfo(
            number=pr_number,
            source_ref=pr.head.ref,
            source_commit_id=pr.head.sha,
            title=pr.title or "",
        )

    def list_threads(self, pr_number: int) -> list[ReviewThread]:
        pr = self._pull(pr_number)
        with _api_call(f"list review comments of pull request #{pr_number}"):
            grouped = get_review_threads(pr)
            return [self._to_thread(root, replies) for root, replies in grouped]

    def _to_thread(self, root, replies) -> ReviewThread:
        state = markers.find_marker(root.body, markers.THREAD_MARKER) or {}
        try:
            status = ThreadStatus(state.get("status", ThreadStatus.ACTIVE.value))
        except ValueError:
            status = ThreadStatus.ACTIVE
        line = root.line if root.line is not None else getattr(root, "original_line", None)
        anchor = None
        if line is not None:
            anchor = ThreadAnchor(path=root.path, start_line=line, start_offset=1, end_line=line, end_offset=1)
        properties = state.get("properties") or {}
        return ReviewThread(
            id=root.id,
            status=status,
            anchor=anchor,
            comments=[self._to_comment(c) for c in [root, *replies]],
            properties={str(k): str(v) for k, v in properties.items()},
        )

    def _to_comment(self, comment) -> ThreadComment:
        author = comment.user.login if comment.user is not None else None
        liked_by = []
        # Our own comments never carry reply-commands, so their reactions are never needed.
        if author != self.current_user_id:
            liked_by = [r.user.login for r in comment.get_reactions() if r.content == LIKE_REACTION and r.user]
        return ThreadComment(
            id=comment.id,
            author=author,
            content=markers.strip_markers(comment.body),
            liked_by=liked_by,
        )

    def create_thread(self, pr_number: int, thread: NewThread) -> int:
        pr = self._pull(pr_number)
        payload = {"status": thread.status.value, "properties": thread.properties}
        body = markers.with_marker(thread.body, markers.THREAD_MARKER, payload)
        # GitHub anchors review comments to whole lines; character offsets stay in our own model.
        with _api_call(f"create a review thread on {thread.anchor.path}:{thread.anchor.start_line}"):
            commit = self._repo.get_commit(pr.head.sha)
            comment = pr.create_review_comment(
                body=body,
                commit=commit,
                path=normalize_path(thread.anchor.path),
                line=thread.anchor.end_line,
                side="RIGHT",
            )
        return comment.id

    def update_thread_status(self, pr_number: int, thread_id: int | str, status: ThreadStatus) -> None:
        pr = self._pull(pr_number)
        with _api_call(f"update the status of review thread {thread_id}"):
            root = pr.get_review_comment(int(thread_id))
            state = markers.find_marker(root.body, markers.THREAD_MARKER) or {}
            state["status"] = status.value
            body = markers.strip_markers(root.body).replace(_RESOLVED_NOTE, "").rstrip()
            if status != ThreadStatus.ACTIVE:
                body += "\n\n" + _RESOLVED_NOTE
            root.edit(markers.with_marker(body, markers.THREAD_MARKER, state))

    def like_comment(self, pr_number: int, thread_id: int | str, comment_id: int | str) -> None:
        pr = self._pull(pr_number)
        with _api_call(f"react to comment {comment_id} in thread {thread_id}"):
            pr.get_review_comment(int(comment_id)).create_reaction(LIKE_REACTION)

    def list_changed_paths(self, pr_number: int) -> list[str]:
        pr = self._pull(pr_number)
        with _api_call(f"list changed files of pull request #{pr_number}"):
            paths = [normalize_path(f.filename) for f in get_changed_files(pr)]
        return list(dict.fromkeys(paths))

    def push_changes(self, pull: PullRequestInfo, edits: list[FileEdit], message: str) -> str:
        current = self._pull(pull.number, refresh=True)
        if current.head.sha != pull.source_commit_id:
            raise StaleBaseError(
                f"Branch '{pull.source_ref}' moved from {pull.source_commit_id[:7]} to "
                f"{current.head.sha[:7]}; refusing to push over it."
            )

        # Pull requests from forks push to the fork.
        repo = current.head.repo or self._repo
        with _api_call(f"push {len(edits)} file(s) to '{pull.source_ref}'"):
            base_commit = repo.get_git_commit(pull.source_commit_id)
            base_tree = repo.get_git_tree(pull.source_commit_id, recursive=True)
            existing = {e.path: e for e in base_tree.tree if e.type == "blob"}

            elements = []
            for edit in edits:
                path = normalize_path(edit.path)
                entry = existing.get(path)
                if entry is not None and entry.sha == git_blob_sha(edit.content):
                    logger.debug("%s is unchanged on '%s'; leaving it out of the commit.", path, pull.source_ref)
                    continue
                blob = repo.create_git_blob(base64.b64encode(edit.content).decode("ascii"), "base64")
                mode = entry.mode if entry is not None else "100644"
                elements.append(InputGitTreeElement(path, mode, "blob", sha=blob.sha))

            if not elements:
                logger.info("Nothing to push: '%s' already has these contents.", pull.source_ref)
                return pull.source_commit_id

            tree = repo.create_git_tree(elements, base_commit.tree)
            commit = repo.create_git_commit(message, tree, [base_commit])
            try:
                # Not forced: GitHub rejects the update if the branch is no longer our parent.
                repo.get_git_ref(f"heads/{pull.source_ref}").edit(commit.sha, force=False)
            except GithubException as e:
                if e.status == 422:
                    raise StaleBaseError(f"Branch '{pull.source_ref}' moved during the push: {e}") from e
                raise

        self._pulls.pop(pull.number, None)
        return commit.sha

    # ------------------------------------------------------------------ #
    # Pull request property store                                          #
    # ------------------------------------------------------------------ #

    def _property_comments(self, pr_number: int) -> dict[str, tuple]:
        """Map property key -> (issue comment, value) for our bookkeeping comments."""
        pr = self._pull(pr_number)
        found = {}
        with _api_call(f"list issue comments of pull request #{pr_number}"):
            for comment in pr.get_issue_comments():
                if comment.user is None or comment.user.login != self.current_user_id:
                    continue
                payload = markers.find_marker(comment.body, markers.PR_PROPERTY_MARKER)
                if payload and "key" in payload:
                    found[payload["key"]] = (comment, payload.get("value"))
        return found

    def get_pull_request_property(self, pr_number: int, key: str) -> str | None:
        entry = self._property_comments(pr_number).get(key)
        return entry[1] if entry else None

    def set_pull_request_property(self, pr_number: int, key: str, value: str) -> None:
        body = _LOCK_NOTE + "\n\n" + markers.render_marker(markers.PR_PROPERTY_MARKER, {"key": key, "value": value})
        entry = self._property_comments(pr_number).get(key)
        with _api_call(f"set property '{key}' on pull request #{pr_number}"):
            if entry:
                entry[0].edit(body)
            else:
                self._pull(pr_number).create_issue_comment(body)

    def delete_pull_request_property(self, pr_number: int, key: str) -> None:
        entry = self._property_comments(pr_number).get(key)
        if entry is None:
            return
        with _api_call(f"delete property '{key}' from pull request #{pr_number}"):
            entry[0].delete()
