"""Abstract hosting-platform interface.

The reconciler, the command processor and the lock depend on BaseGateway,
not on a concrete platform, so everything above this layer is testable with
an in-memory gateway and the GitHub implementation stays a thin adapter.

Implementations raise GatewayError for every platform failure; callers catch
it at each operation boundary and carry on with the rest of the run.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from functools import cached_property
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from typolens_core.models import FileEdit, NewThread, PullRequestInfo, ReviewThread, ThreadStatus


class GatewayError(Exception):
    """A hosting-platform API call failed."""


class StaleBaseError(GatewayError):
    """A push was based on a commit that is no longer the head of the source branch."""


class BaseGateway(ABC):
    # ------------------------------------------------------------------ #
    # Identity                                                             #
    # ------------------------------------------------------------------ #

    @cached_property
    def current_user_id(self) -> str:
        """Identity of the authenticated caller, resolved once per gateway."""
        return self._resolve_current_user_id()

    @abstractmethod
    def _resolve_current_user_id(self) -> str:
        """Ask the platform who we are."""

    # ------------------------------------------------------------------ #
    # Pull requests and threads                                            #
    # ------------------------------------------------------------------ #

    @abstractmethod
    def get_pull_request(self, pr_number: int) -> PullRequestInfo:
        """Return source branch and latest source commit of a pull request."""

    @abstractmethod
    def list_threads(self, pr_number: int) -> list[ReviewThread]:
        """Return every review thread on the pull request."""

    def list_active_threads(self, pr_number: int) -> list[ReviewThread]:
        return [t for t in self.list_threads(pr_number) if t.is_active]

    @abstractmethod
    def create_thread(self, pr_number: int, thread: NewThread) -> int | str:
        """Open a thread and return its id."""

    @abstractmethod
    def update_thread_status(self, pr_number: int, thread_id: int | str, status: ThreadStatus) -> None:
        """Move a thread to another lifecycle state."""

    @abstractmethod
    def like_comment(self, pr_number: int, thread_id: int | str, comment_id: int | str) -> None:
        """React to a comment on behalf of the current user."""

    @abstractmethod
    def list_changed_paths(self, pr_number: int) -> list[str]:
        """Return normalized paths of files added or edited by the pull request."""

    @abstractmethod
    def push_changes(self, pull: PullRequestInfo, edits: list[FileEdit], message: str) -> str:
        """Create one commit on the source branch and return its id.

        The commit must be based on ``pull.source_commit_id``; if the branch
        moved since, raise StaleBaseError instead of overwriting.
        """

    # ------------------------------------------------------------------ #
    # Pull request property store                                          #
    # ------------------------------------------------------------------ #

    @abstractmethod
    def get_pull_request_property(self, pr_number: int, key: str) -> str | None:
        """Return a property value, or None when it is not set."""

    @abstractmethod
    def set_pull_request_property(self, pr_number: int, key: str, value: str) -> None:
        """Create or overwrite a property."""

    @abstractmethod
    def delete_pull_request_property(self, pr_number: int, key: str) -> None:
        """Remove a property. Removing an absent property is not an error."""
