from __future__ import annotations

import logging

from reviewgate.commands import RETEST_COMMAND
from reviewgate.config import RepoConfig
from reviewgate.labels import APPROVED_LABEL, labels_to_clear, lgtm_label_for, lgtm_labels_on
from reviewgate.merge_decision import MergeDecisionEngine
from reviewgate.merge_executor import MergeExecutor
from reviewgate.models import MergeVerdict, NoteEvent, PullRequest, PullRequestEvent
from reviewgate.observability import log_event
from reviewgate.permissions import has_permission
from reviewgate.ports import ReviewHost


LOGGER = logging.getLogger("reviewgate.label_manager")

COMMENT_ADD_LGTM_BY_SELF = (
    "***lgtm*** can not be added in your self-own pull request. :astonished:"
)
COMMENT_CLEAR_LABEL = (
    "New code changes of pr are detected and remove these labels ***{labels}***. :flushed: "
)
COMMENT_NO_PERMISSION_FOR_LABEL = (
    "\n***@{commenter}*** has no permission to {action} ***{label}*** label in this pull "
    "request. :astonished:\nPlease contact to the collaborators in this repository."
)
COMMENT_ADD_LABEL = (
    "***{label}*** was added to this pull request by: ***{commenter}***. :wave: \n"
    '**NOTE:** If this pull request is not merged while all conditions are met, comment '
    '"/check-pr" to try again. :smile: '
)
COMMENT_REMOVED_LABEL = (
    "***{label}*** was removed in this pull request by: ***{commenter}***. :flushed: "
)
COMMENT_NOT_MERGEABLE = (
    "@{commenter} , this pr is not mergeable and the reasons are below:\n{reasons}"
)
COMMENT_REVIEWER_NOT_SET = (
    "**@{author}** Thank you for submitting a PullRequest. It is detected that you have "
    "not set a reviewer, please set a one."
)


class LabelStateManager:
    def __init__(self, host: ReviewHost, cfg: RepoConfig, *, trusted_login: str) -> None:
        self._host = host
        self._cfg = cfg
        self._trusted_login = trusted_login

    def add_lgtm(self, event: NoteEvent) -> None:
        pr = event.pull_request
        commenter = event.commenter
        if commenter == pr.author:
            self._comment(pr, COMMENT_ADD_LGTM_BY_SELF)
            return

        label = lgtm_label_for(commenter, self._cfg.lgtm_counts_required)
        if not self._permitted(
            pr,
            commenter,
            action="add",
            label=label,
            require_owners_check=self._cfg.check_permission_based_on_sig_owners,
        ):
            return

        self._ensure_repo_label(pr, label)
        self._add_label(pr, label, commenter)
        self.try_merge(pr, trigger=commenter, add_comment=False)

    def remove_lgtm(self, event: NoteEvent) -> None:
        pr = event.pull_request
        commenter = event.commenter
        if commenter == pr.author:
            # Authors may drop every lgtm label on their own pull request.
            present = lgtm_labels_on(pr.labels)
            if present:
                self._host.remove_pr_labels(pr.org, pr.repo, pr.number, present)
                log_event(
                    LOGGER,
                    "label_removed",
                    repo_full_name=pr.full_name,
                    pr_number=pr.number,
                    labels=present,
                    by=commenter,
                )
            return

        label = lgtm_label_for(commenter, self._cfg.lgtm_counts_required)
        if not self._permitted(
            pr,
            commenter,
            action="remove",
            label=label,
            require_owners_check=self._cfg.check_permission_based_on_sig_owners,
        ):
            return
        self._remove_label(pr, label, commenter)

    def add_approve(self, event: NoteEvent) -> None:
        pr = event.pull_request
        if not self._permitted(
            pr, event.commenter, action="add", label=APPROVED_LABEL, require_owners_check=True
        ):
            return
        self._add_label(pr, APPROVED_LABEL, event.commenter)
        self.try_merge(pr, trigger=event.commenter, add_comment=False)

    def remove_approve(self, event: NoteEvent) -> None:
        pr = event.pull_request
        if not self._permitted(
            pr, event.commenter, action="remove", label=APPROVED_LABEL, require_owners_check=True
        ):
            return
        self._remove_label(pr, APPROVED_LABEL, event.commenter)

    def check_pr(self, event: NoteEvent) -> None:
        self.try_merge(event.pull_request, trigger=event.commenter, add_comment=True)

    def try_merge(self, pr: PullRequest, *, trigger: str | None, add_comment: bool) -> MergeVerdict:
        engine = MergeDecisionEngine(
            self._host,
            self._cfg,
            pr,
            trusted_login=self._trusted_login,
            trigger=trigger,
        )
        verdict = engine.can_merge()
        if verdict.allowed:
            MergeExecutor(self._host, self._cfg).merge(pr)
            return verdict

        log_event(
            LOGGER,
            "merge_denied",
            repo_full_name=pr.full_name,
            pr_number=pr.number,
            trigger=trigger,
            silent=not verdict.reasons,
        )
        if verdict.reasons and add_comment and trigger:
            self._host.create_pr_comment(
                pr.org,
                pr.repo,
                pr.number,
                COMMENT_NOT_MERGEABLE.format(
                    commenter=trigger, reasons="\n".join(verdict.reasons)
                ),
            )
        return verdict

    def handle_label_update(self, event: PullRequestEvent) -> None:
        if event.action != "label_updated":
            return
        self.try_merge(event.pull_request, trigger=None, add_comment=False)

    def clear_labels(self, event: PullRequestEvent) -> None:
        if event.action != "source_branch_changed":
            return
        pr = event.pull_request
        cleared = labels_to_clear(pr.labels)
        if not cleared:
            return
        self._host.remove_pr_labels(pr.org, pr.repo, pr.number, cleared)
        log_event(
            LOGGER,
            "labels_cleared",
            repo_full_name=pr.full_name,
            pr_number=pr.number,
            labels=cleared,
        )
        self._host.create_pr_comment(
            pr.org, pr.repo, pr.number, COMMENT_CLEAR_LABEL.format(labels=", ".join(cleared))
        )

    def request_retest(self, event: PullRequestEvent) -> None:
        if event.action != "source_branch_changed":
            return
        pr = event.pull_request
        self._host.create_pr_comment(pr.org, pr.repo, pr.number, RETEST_COMMAND)

    def remind_reviewer(self, event: PullRequestEvent) -> None:
        if self._cfg.disable_reviewer_check or event.action != "opened":
            return
        pr = event.pull_request
        if pr.assignees:
            return
        self._host.create_pr_comment(
            pr.org, pr.repo, pr.number, COMMENT_REVIEWER_NOT_SET.format(author=pr.author)
        )

    def _permitted(
        self,
        pr: PullRequest,
        commenter: str,
        *,
        action: str,
        label: str,
        require_owners_check: bool,
    ) -> bool:
        if has_permission(self._host, commenter, pr, require_owners_check=require_owners_check):
            return True
        log_event(
            LOGGER,
            "permission_denied",
            repo_full_name=pr.full_name,
            pr_number=pr.number,
            commenter=commenter,
            action=action,
            label=label,
        )
        self._comment(
            pr,
            COMMENT_NO_PERMISSION_FOR_LABEL.format(commenter=commenter, action=action, label=label),
        )
        return False

    def _ensure_repo_label(self, pr: PullRequest, label: str) -> None:
        try:
            if label in self._host.list_repo_labels(pr.org, pr.repo):
                return
            self._host.create_repo_label(pr.org, pr.repo, label, "")
        except Exception as exc:  # noqa: BLE001
            log_event(
                LOGGER,
                "repo_label_create_failed",
                repo_full_name=pr.full_name,
                label=label,
                error_type=type(exc).__name__,
                error=str(exc),
            )

    def _add_label(self, pr: PullRequest, label: str, commenter: str) -> None:
        self._host.add_pr_label(pr.org, pr.repo, pr.number, label)
        log_event(
            LOGGER,
            "label_added",
            repo_full_name=pr.full_name,
            pr_number=pr.number,
            label=label,
            by=commenter,
        )
        try:
            self._comment(pr, COMMENT_ADD_LABEL.format(label=label, commenter=commenter))
        except Exception as exc:  # noqa: BLE001
            log_event(
                LOGGER,
                "attribution_comment_failed",
                repo_full_name=pr.full_name,
                pr_number=pr.number,
                label=label,
                error_type=type(exc).__name__,
            )

    def _remove_label(self, pr: PullRequest, label: str, commenter: str) -> None:
        self._host.remove_pr_labels(pr.org, pr.repo, pr.number, (label,))
        log_event(
            LOGGER,
            "label_removed",
            repo_full_name=pr.full_name,
            pr_number=pr.number,
            labels=(label,),
            by=commenter,
        )
        self._comment(pr, COMMENT_REMOVED_LABEL.format(label=label, commenter=commenter))

    def _comment(self, pr: PullRequest, body: str) -> None:
        self._host.create_pr_comment(pr.org, pr.repo, pr.number, body)
