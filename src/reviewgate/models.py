from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Literal


MergeMethod = Literal["merge", "squash", "rebase"]
PullRequestAction = Literal["opened", "source_branch_changed", "label_updated", "other"]
RepoPermission = Literal["admin", "write", "read", "none"]
ReviewCommand = Literal["add_lgtm", "remove_lgtm", "add_approve", "remove_approve", "check_pr"]

ACTION_ADD_LABEL = "add_label"


@dataclass(frozen=True)
class PullRequest:
    org: str
    repo: str
    number: int
    author: str
    base_ref: str
    labels: frozenset[str]
    mergeable: bool
    need_review: bool = False
    need_test: bool = False
    assignees: tuple[str, ...] = ()
    body: str = ""
    html_url: str = ""
    state: str = "open"

    @property
    def full_name(self) -> str:
        return f"{self.org}/{self.repo}"

    @property
    def is_open(self) -> bool:
        return self.state == "open"


@dataclass(frozen=True)
class PullRequestComment:
    comment_id: int
    body: str
    user_login: str
    created_at: str
    updated_at: str

    @property
    def edited(self) -> bool:
        return self.created_at != self.updated_at


@dataclass(frozen=True)
class OperationLogEntry:
    action_type: str
    content: str
    created_at: str
    user_login: str


@dataclass(frozen=True)
class RepoFile:
    path: str
    content: str


@dataclass(frozen=True)
class FreezeDeclaration:
    org: str
    branch: str
    owners: tuple[str, ...]
    start: datetime | None
    end: datetime | None

    def covers(self, instant: datetime) -> bool:
        if self.start is not None and instant < self.start:
            return False
        if self.end is not None and instant > self.end:
            return False
        return True

    def is_owner(self, login: str) -> bool:
        # Case-sensitive, unlike OWNERS lookups.
        return login in self.owners


@dataclass(frozen=True)
class PullRequestEvent:
    action: PullRequestAction
    pull_request: PullRequest


@dataclass(frozen=True)
class NoteEvent:
    is_creation: bool
    is_pull_request: bool
    commenter: str
    body: str
    pull_request: PullRequest


@dataclass(frozen=True)
class Allowed:
    @property
    def allowed(self) -> bool:
        return True

    @property
    def reasons(self) -> tuple[str, ...]:
        return ()


@dataclass(frozen=True)
class DeniedSilently:
    @property
    def allowed(self) -> bool:
        return False

    @property
    def reasons(self) -> tuple[str, ...]:
        return ()


@dataclass(frozen=True)
class DeniedWithReasons:
    reasons: tuple[str, ...]

    def __post_init__(self) -> None:
        if not self.reasons:
            raise ValueError("DeniedWithReasons requires at least one reason")

    @property
    def allowed(self) -> bool:
        return False


MergeVerdict = Allowed | DeniedSilently | DeniedWithReasons
