from __future__ import annotations

from collections.abc import Iterable
from typing import Final


# Gitee rejects label names longer than this.
LABEL_LENGTH_LIMIT: Final[int] = 20
LGTM_LABEL: Final[str] = "lgtm"
APPROVED_LABEL: Final[str] = "approved"


def lgtm_label_for(commenter: str, lgtm_counts_required: int) -> str:
    if lgtm_counts_required <= 1:
        return LGTM_LABEL
    label = f"{LGTM_LABEL}-{commenter.lower()}"
    return label[:LABEL_LENGTH_LIMIT]


def is_lgtm_label(label: str) -> bool:
    return label.startswith(LGTM_LABEL)


def lgtm_labels_on(labels: Iterable[str]) -> tuple[str, ...]:
    return tuple(sorted({label for label in labels if is_lgtm_label(label)}))


def labels_to_clear(labels: Iterable[str]) -> tuple[str, ...]:
    present = set(labels)
    cleared = list(lgtm_labels_on(present))
    if APPROVED_LABEL in present:
        cleared.append(APPROVED_LABEL)
    return tuple(cleared)


def join_sorted(items: Iterable[str], separator: str = ", ") -> str:
    return separator.join(sorted(set(items)))
