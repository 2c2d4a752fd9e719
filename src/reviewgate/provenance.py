from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass
from datetime import datetime, timezone
import logging

from reviewgate.labels import is_lgtm_label
from reviewgate.models import ACTION_ADD_LABEL, OperationLogEntry
from reviewgate.observability import log_warning


LOGGER = logging.getLogger("reviewgate.provenance")
CLA_LABEL_PREFIX = "openeuler-cla/"

MSG_LOG_MISSING = (
    "The corresponding operation log is missing. you should delete "
    "the label and add it again by correct way"
)


@dataclass(frozen=True)
class LabelAddition:
    label: str
    added_by: str
    added_at: datetime


def latest_label_addition(
    logs: Iterable[OperationLogEntry], label: str
) -> LabelAddition | None:
    latest: OperationLogEntry | None = None
    latest_at: datetime | None = None
    for entry in logs:
        if entry.action_type != ACTION_ADD_LABEL or label not in entry.content:
            continue
        try:
            created_at = datetime.fromisoformat(entry.created_at)
        except ValueError:
            log_warning(
                LOGGER,
                "operation_log_time_unparsable",
                label=label,
                created_at=entry.created_at,
            )
            continue
        if created_at.tzinfo is None:
            created_at = created_at.replace(tzinfo=timezone.utc)
        if latest_at is None or created_at > latest_at:
            latest = entry
            latest_at = created_at

    if latest is None or latest_at is None or not latest.user_login:
        return None
    return LabelAddition(label=label, added_by=latest.user_login, added_at=latest_at)


def check_label_provenance(
    labels: Iterable[str],
    required: Iterable[str],
    logs: Iterable[OperationLogEntry],
    *,
    trusted_login: str,
) -> str | None:
    """Audit who attached each required or lgtm-family label.

    Returns one combined, human-readable block describing every label that was
    not added by ``trusted_login``, or None when all labels check out.
    """
    required_set = set(required)
    log_entries = tuple(logs)
    findings: list[str] = []
    for label in sorted(set(labels)):
        if label not in required_set and not is_lgtm_label(label):
            continue
        problem = _label_problem(label, log_entries, trusted_login=trusted_login)
        if problem is not None:
            findings.append(f"{label}: {problem}")

    if not findings:
        return None
    noun = "labels are" if len(findings) > 1 else "label is"
    return f"**The following {noun} not ready**.\n\n" + "\n\n".join(findings)


def _label_problem(
    label: str, logs: tuple[OperationLogEntry, ...], *, trusted_login: str
) -> str | None:
    addition = latest_label_addition(logs, label)
    if addition is None:
        return MSG_LOG_MISSING
    if addition.added_by == trusted_login:
        return None
    if label.startswith(CLA_LABEL_PREFIX):
        return (
            f"{addition.added_by} You can't add {label} by yourself, "
            "please remove it and use /check-cla to add it"
        )
    return f"{addition.added_by} You can't add {label} by yourself, please contact the maintainers"
