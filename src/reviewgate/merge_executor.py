from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass
import logging
from typing import Protocol

from reviewgate.commands import is_review_comment, is_signoff_comment
from reviewgate.config import FileLocation, RepoConfig
from reviewgate.manifests import parse_sig_info
from reviewgate.models import PullRequest, PullRequestComment
from reviewgate.observability import log_event
from reviewgate.ports import ReviewHost


LOGGER = logging.getLogger("reviewgate.merge_executor")


@dataclass(frozen=True)
class Attribution:
    reviewers: tuple[str, ...]
    signers: tuple[str, ...]

    @property
    def empty(self) -> bool:
        return not self.reviewers and not self.signers


def collect_attribution(
    comments: Iterable[PullRequestComment], *, pr_author: str, accept_edited: bool
) -> Attribution:
    reviewers: set[str] = set()
    signers: set[str] = set()
    for comment in comments:
        if comment.user_login == pr_author:
            continue
        if comment.edited and not accept_edited:
            continue
        if is_review_comment(comment.body):
            reviewers.add(comment.user_login)
        if is_signoff_comment(comment.body):
            signers.add(comment.user_login)
    return Attribution(reviewers=tuple(sorted(reviewers)), signers=tuple(sorted(signers)))


class MergeDescriptionPolicy(Protocol):
    @property
    def accepts_edited_comments(self) -> bool: ...

    def render(self, pr: PullRequest, attribution: Attribution) -> str: ...


class HandleAttribution:
    """``From:``/``Reviewed-by:``/``Signed-off-by:`` lines built from handles."""

    @property
    def accepts_edited_comments(self) -> bool:
        return False

    def render(self, pr: PullRequest, attribution: Attribution) -> str:
        lines = [f"From: @{pr.author}"]
        if attribution.reviewers:
            lines.append("Reviewed-by: " + ", ".join(f"@{h}" for h in attribution.reviewers))
        if attribution.signers:
            lines.append("Signed-off-by: " + ", ".join(f"@{h}" for h in attribution.signers))
        return "\n".join(lines) + "\n"


class SigInfoAttribution:
    """Resolve handles to ``Name <email>`` through a sig-info manifest.

    Handles missing from the manifest are dropped. Any failure to read the
    manifest yields an empty description.
    """

    def __init__(self, host: ReviewHost, location: FileLocation) -> None:
        self._host = host
        self._location = location

    @property
    def accepts_edited_comments(self) -> bool:
        return True

    def render(self, pr: PullRequest, attribution: Attribution) -> str:
        identities = self._load_identities(pr)
        reviewed = sorted({identities[h] for h in attribution.reviewers if h in identities})
        signed = sorted({identities[h] for h in attribution.signers if h in identities})
        lines = [f"Reviewed-by: {who}" for who in reviewed]
        lines.extend(f"Signed-off-by: {who}" for who in signed)
        if not lines:
            return ""
        return "\n".join(lines) + "\n"

    def _load_identities(self, pr: PullRequest) -> dict[str, str]:
        location = self._location
        try:
            manifest = self._host.get_path_content(
                location.owner, location.repo, location.path, location.branch
            )
            return parse_sig_info(manifest.content)
        except Exception as exc:  # noqa: BLE001
            log_event(
                LOGGER,
                "sig_info_unavailable",
                repo_full_name=pr.full_name,
                pr_number=pr.number,
                location=location.describe(),
                error_type=type(exc).__name__,
                error=str(exc),
            )
            return {}


def description_policy_for(cfg: RepoConfig, host: ReviewHost) -> MergeDescriptionPolicy:
    description = cfg.merge_description
    if description.attribution == "sig_info" and description.sig_info is not None:
        return SigInfoAttribution(host, description.sig_info)
    return HandleAttribution()


class MergeExecutor:
    def __init__(
        self,
        host: ReviewHost,
        cfg: RepoConfig,
        *,
        policy: MergeDescriptionPolicy | None = None,
    ) -> None:
        self._host = host
        self._cfg = cfg
        self._policy = policy or description_policy_for(cfg, host)

    def merge(self, pr: PullRequest) -> None:
        if pr.need_review or pr.need_test:
            self._host.reset_pr_reviewers_and_testers(pr.org, pr.repo, pr.number)

        description = self.merge_description(pr)
        self._host.merge_pr(
            pr.org,
            pr.repo,
            pr.number,
            method=self._cfg.merge_method,
            description=description,
        )
        log_event(
            LOGGER,
            "pull_request_merged",
            repo_full_name=pr.full_name,
            pr_number=pr.number,
            method=self._cfg.merge_method,
        )

    def merge_description(self, pr: PullRequest) -> str:
        computed = self.attribution_description(pr)
        if self._cfg.merge_description.include_origin:
            return (
                f"\nMerge Pull Request from: @{pr.author}\n\n{pr.body}\n\n"
                f"Link:{pr.html_url}\n{computed}"
            )
        return f"\n{computed}"

    def attribution_description(self, pr: PullRequest) -> str:
        try:
            comments = self._host.list_pr_comments(pr.org, pr.repo, pr.number)
        except Exception as exc:  # noqa: BLE001
            log_event(
                LOGGER,
                "pr_comments_read_failed",
                repo_full_name=pr.full_name,
                pr_number=pr.number,
                error_type=type(exc).__name__,
            )
            return ""

        attribution = collect_attribution(
            comments,
            pr_author=pr.author,
            accept_edited=self._policy.accepts_edited_comments,
        )
        if attribution.empty:
            return ""
        return self._policy.render(pr, attribution)
