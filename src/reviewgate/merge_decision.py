from __future__ import annotations

import logging

from reviewgate.config import RepoConfig
from reviewgate.freeze import FreezeGate
from reviewgate.labels import LGTM_LABEL, join_sorted, lgtm_labels_on
from reviewgate.models import (
    DeniedSilently,
    DeniedWithReasons,
    MergeVerdict,
    OperationLogEntry,
    PullRequest,
)
from reviewgate.observability import log_event
from reviewgate.ports import ReviewHost
from reviewgate.provenance import check_label_provenance


LOGGER = logging.getLogger("reviewgate.merge_decision")

MSG_PR_CONFLICTS = "PR conflicts to the target branch."
MSG_MISSING_LABELS = "PR does not have these lables: {labels}"
MSG_INVALID_LABELS = "PR should remove these labels: {labels}"
MSG_NOT_ENOUGH_LGTM = "needs {required} lgtm labels and now gets {actual}"


def label_reasons(
    labels: frozenset[str],
    cfg: RepoConfig,
    logs: tuple[OperationLogEntry, ...],
    *,
    trusted_login: str,
) -> list[str]:
    """Collect every label-related reason that blocks a merge.

    All checks run; none short-circuits another.
    """
    reasons: list[str] = []
    required = set(cfg.required_labels())

    if cfg.lgtm_counts_required <= 1:
        required.add(LGTM_LABEL)
    else:
        actual = len(lgtm_labels_on(labels))
        if actual < cfg.lgtm_counts_required:
            reasons.append(
                MSG_NOT_ENOUGH_LGTM.format(required=cfg.lgtm_counts_required, actual=actual)
            )

    provenance = check_label_provenance(labels, required, logs, trusted_login=trusted_login)
    if provenance is not None:
        reasons.append(provenance)

    missing = required - labels
    if missing:
        reasons.append(MSG_MISSING_LABELS.format(labels=join_sorted(missing)))

    invalid = cfg.missing_labels_for_merge & labels
    if invalid:
        reasons.append(MSG_INVALID_LABELS.format(labels=join_sorted(invalid)))

    return reasons


class MergeDecisionEngine:
    def __init__(
        self,
        host: ReviewHost,
        cfg: RepoConfig,
        pr: PullRequest,
        *,
        trusted_login: str,
        trigger: str | None = None,
        freeze_gate: FreezeGate | None = None,
    ) -> None:
        self._host = host
        self._cfg = cfg
        self._pr = pr
        self._trusted_login = trusted_login
        self._trigger = trigger or None
        self._freeze_gate = freeze_gate or FreezeGate(host, cfg.freeze_files)

    @property
    def trigger(self) -> str | None:
        return self._trigger

    def can_merge(self) -> MergeVerdict:
        verdict = self._evaluate()
        log_event(
            LOGGER,
            "merge_decision",
            repo_full_name=self._pr.full_name,
            pr_number=self._pr.number,
            trigger=self._trigger,
            allowed=verdict.allowed,
            reason_count=len(verdict.reasons),
        )
        return verdict

    def current_labels(self) -> frozenset[str]:
        if self._trigger is None:
            return self._pr.labels
        try:
            return self._host.list_pr_labels(self._pr.org, self._pr.repo, self._pr.number)
        except Exception as exc:  # noqa: BLE001
            log_event(
                LOGGER,
                "pr_labels_read_failed",
                repo_full_name=self._pr.full_name,
                pr_number=self._pr.number,
                error_type=type(exc).__name__,
            )
            return self._pr.labels

    def _evaluate(self) -> MergeVerdict:
        pr = self._pr
        if not pr.mergeable:
            return DeniedWithReasons((MSG_PR_CONFLICTS,))

        try:
            logs = self._host.list_operation_logs(pr.org, pr.repo, pr.number)
        except Exception as exc:  # noqa: BLE001
            log_event(
                LOGGER,
                "operation_logs_read_failed",
                repo_full_name=pr.full_name,
                pr_number=pr.number,
                error_type=type(exc).__name__,
                error=str(exc),
            )
            return DeniedSilently()

        labels = self.current_labels()
        if labels & self._cfg.labels_not_allow_merge:
            return DeniedSilently()

        reasons = label_reasons(labels, self._cfg, logs, trusted_login=self._trusted_login)
        if reasons:
            return DeniedWithReasons(tuple(reasons))

        return self._freeze_gate.evaluate(pr.org, pr.base_ref, self._trigger)
