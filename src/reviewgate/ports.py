from __future__ import annotations

from typing import Protocol

from reviewgate.models import (
    MergeMethod,
    OperationLogEntry,
    PullRequestComment,
    RepoFile,
    RepoPermission,
)


class ReviewHost(Protocol):
    """Remote operations the review core needs from the code host.

    Every call is a fresh, blocking read or write; implementations raise on
    transport failure and never cache across events.
    """

    def add_pr_label(self, org: str, repo: str, number: int, label: str) -> None: ...

    def remove_pr_labels(
        self, org: str, repo: str, number: int, labels: tuple[str, ...]
    ) -> None: ...

    def create_pr_comment(self, org: str, repo: str, number: int, body: str) -> None: ...

    def get_user_permission(self, org: str, repo: str, login: str) -> RepoPermission: ...

    def get_path_content(self, org: str, repo: str, path: str, ref: str) -> RepoFile: ...

    def list_pr_files(self, org: str, repo: str, number: int) -> tuple[str, ...]: ...

    def list_repo_labels(self, org: str, repo: str) -> tuple[str, ...]: ...

    def create_repo_label(self, org: str, repo: str, label: str, color: str) -> None: ...

    def list_operation_logs(
        self, org: str, repo: str, number: int
    ) -> tuple[OperationLogEntry, ...]: ...

    def list_pr_labels(self, org: str, repo: str, number: int) -> frozenset[str]: ...

    def merge_pr(
        self, org: str, repo: str, number: int, *, method: MergeMethod, description: str
    ) -> None: ...

    def reset_pr_reviewers_and_testers(self, org: str, repo: str, number: int) -> None: ...

    def list_pr_comments(
        self, org: str, repo: str, number: int
    ) -> tuple[PullRequestComment, ...]: ...
