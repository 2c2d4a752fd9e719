"""In-memory ReviewHost for tests and dry runs.

State lives in plain dicts keyed by ``(org, repo)`` or ``(org, repo, number)``.
Every mutating call is recorded in ``calls`` and applied to that state, and any
method can be made to fail by registering an exception in ``failures``.
"""

from __future__ import annotations

import base64
from dataclasses import dataclass, field

from reviewgate.models import (
    MergeMethod,
    OperationLogEntry,
    PullRequestComment,
    RepoFile,
    RepoPermission,
)


RepoKey = tuple[str, str]
PrKey = tuple[str, str, int]


@dataclass(frozen=True)
class RecordedCall:
    method: str
    args: tuple[object, ...]


@dataclass(frozen=True)
class MergeRecord:
    org: str
    repo: str
    number: int
    method: MergeMethod
    description: str


@dataclass
class InMemoryReviewHost:
    permissions: dict[tuple[str, str, str], RepoPermission] = field(default_factory=dict)
    files: dict[tuple[str, str, str, str], str] = field(default_factory=dict)
    repo_labels: dict[RepoKey, set[str]] = field(default_factory=dict)
    pr_labels: dict[PrKey, set[str]] = field(default_factory=dict)
    pr_files: dict[PrKey, tuple[str, ...]] = field(default_factory=dict)
    operation_logs: dict[PrKey, list[OperationLogEntry]] = field(default_factory=dict)
    comments: dict[PrKey, list[PullRequestComment]] = field(default_factory=dict)
    posted_comments: list[tuple[PrKey, str]] = field(default_factory=list)
    merges: list[MergeRecord] = field(default_factory=list)
    counter_resets: list[PrKey] = field(default_factory=list)
    failures: dict[str, Exception] = field(default_factory=dict)
    calls: list[RecordedCall] = field(default_factory=list)

    def put_file(self, org: str, repo: str, path: str, ref: str, text: str) -> None:
        encoded = base64.b64encode(text.encode("utf-8")).decode("ascii")
        self.files[(org, repo, path, ref)] = encoded

    def log_label_added(
        self, org: str, repo: str, number: int, label: str, *, by: str, at: str
    ) -> None:
        self.operation_logs.setdefault((org, repo, number), []).append(
            OperationLogEntry(
                action_type="add_label",
                content=f"add label {label}",
                created_at=at,
                user_login=by,
            )
        )

    def comments_on(self, org: str, repo: str, number: int) -> list[str]:
        return [body for key, body in self.posted_comments if key == (org, repo, number)]

    def calls_to(self, method: str) -> list[RecordedCall]:
        return [call for call in self.calls if call.method == method]

    def _record(self, method: str, *args: object) -> None:
        self.calls.append(RecordedCall(method=method, args=args))
        failure = self.failures.get(method)
        if failure is not None:
            raise failure

    def add_pr_label(self, org: str, repo: str, number: int, label: str) -> None:
        self._record("add_pr_label", org, repo, number, label)
        self.pr_labels.setdefault((org, repo, number), set()).add(label)

    def remove_pr_labels(self, org: str, repo: str, number: int, labels: tuple[str, ...]) -> None:
        self._record("remove_pr_labels", org, repo, number, labels)
        self.pr_labels.setdefault((org, repo, number), set()).difference_update(labels)

    def create_pr_comment(self, org: str, repo: str, number: int, body: str) -> None:
        self._record("create_pr_comment", org, repo, number, body)
        self.posted_comments.append(((org, repo, number), body))

    def get_user_permission(self, org: str, repo: str, login: str) -> RepoPermission:
        self._record("get_user_permission", org, repo, login)
        return self.permissions.get((org, repo, login), "read")

    def get_path_content(self, org: str, repo: str, path: str, ref: str) -> RepoFile:
        self._record("get_path_content", org, repo, path, ref)
        content = self.files.get((org, repo, path, ref))
        if content is None:
            raise FileNotFoundError(f"{org}/{repo}/{ref}:{path}")
        return RepoFile(path=path, content=content)

    def list_pr_files(self, org: str, repo: str, number: int) -> tuple[str, ...]:
        self._record("list_pr_files", org, repo, number)
        return self.pr_files.get((org, repo, number), ())

    def list_repo_labels(self, org: str, repo: str) -> tuple[str, ...]:
        self._record("list_repo_labels", org, repo)
        return tuple(sorted(self.repo_labels.get((org, repo), set())))

    def create_repo_label(self, org: str, repo: str, label: str, color: str) -> None:
        self._record("create_repo_label", org, repo, label, color)
        self.repo_labels.setdefault((org, repo), set()).add(label)

    def list_operation_logs(
        self, org: str, repo: str, number: int
    ) -> tuple[OperationLogEntry, ...]:
        self._record("list_operation_logs", org, repo, number)
        return tuple(self.operation_logs.get((org, repo, number), []))

    def list_pr_labels(self, org: str, repo: str, number: int) -> frozenset[str]:
        self._record("list_pr_labels", org, repo, number)
        return frozenset(self.pr_labels.get((org, repo, number), set()))

    def merge_pr(
        self, org: str, repo: str, number: int, *, method: MergeMethod, description: str
    ) -> None:
        self._record("merge_pr", org, repo, number, method, description)
        self.merges.append(
            MergeRecord(org=org, repo=repo, number=number, method=method, description=description)
        )

    def reset_pr_reviewers_and_testers(self, org: str, repo: str, number: int) -> None:
        self._record("reset_pr_reviewers_and_testers", org, repo, number)
        self.counter_resets.append((org, repo, number))

    def list_pr_comments(
        self, org: str, repo: str, number: int
    ) -> tuple[PullRequestComment, ...]:
        self._record("list_pr_comments", org, repo, number)
        return tuple(self.comments.get((org, repo, number), []))
