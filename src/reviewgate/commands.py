from __future__ import annotations

import re
from typing import Final

from reviewgate.models import NoteEvent, ReviewCommand


ADD_LGTM_PATTERN: Final[re.Pattern[str]] = re.compile(r"(?mi)^/lgtm\s*$")
REMOVE_LGTM_PATTERN: Final[re.Pattern[str]] = re.compile(r"(?mi)^/lgtm cancel\s*$")
ADD_APPROVE_PATTERN: Final[re.Pattern[str]] = re.compile(r"(?mi)^/approve\s*$")
REMOVE_APPROVE_PATTERN: Final[re.Pattern[str]] = re.compile(r"(?mi)^/approve cancel\s*$")
CHECK_PR_PATTERN: Final[re.Pattern[str]] = re.compile(r"(?mi)^/check-pr\s*$")

RETEST_COMMAND: Final[str] = "/retest"

# Add wins over cancel when a comment carries both, matching handler order.
_COMMAND_PATTERNS: Final[tuple[tuple[tuple[ReviewCommand, re.Pattern[str]], ...], ...]] = (
    (("add_lgtm", ADD_LGTM_PATTERN), ("remove_lgtm", REMOVE_LGTM_PATTERN)),
    (("add_approve", ADD_APPROVE_PATTERN), ("remove_approve", REMOVE_APPROVE_PATTERN)),
    (("check_pr", CHECK_PR_PATTERN),),
)


def parse_review_commands(text: str) -> tuple[ReviewCommand, ...]:
    """Return the review commands carried by a comment body.

    At most one command per family (lgtm, approve, check-pr) is returned, in
    that family order.
    """
    found: list[ReviewCommand] = []
    for family in _COMMAND_PATTERNS:
        for command, pattern in family:
            if pattern.search(text) is not None:
                found.append(command)
                break
    return tuple(found)


def is_actionable_note(event: NoteEvent) -> bool:
    return event.is_pull_request and event.pull_request.is_open and event.is_creation


def is_review_comment(text: str) -> bool:
    return ADD_LGTM_PATTERN.search(text) is not None


def is_signoff_comment(text: str) -> bool:
    return ADD_APPROVE_PATTERN.search(text) is not None
