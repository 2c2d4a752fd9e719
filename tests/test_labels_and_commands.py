from __future__ import annotations

from hypothesis import given, strategies as st
import pytest

from reviewgate.commands import (
    is_actionable_note,
    is_review_comment,
    is_signoff_comment,
    parse_review_commands,
)
from reviewgate.labels import (
    LABEL_LENGTH_LIMIT,
    join_sorted,
    labels_to_clear,
    lgtm_label_for,
    lgtm_labels_on,
)
from reviewgate.models import NoteEvent, PullRequest


_logins = st.text(
    alphabet="abcdefghijklmnopqrstuvwxyzABCDEFGHIJKLMNOPQRSTUVWXYZ0123456789-_",
    min_size=1,
    max_size=40,
)


@given(_logins, st.integers(min_value=0, max_value=1))
def test_single_approval_always_uses_plain_lgtm(commenter: str, count: int) -> None:
    assert lgtm_label_for(commenter, count) == "lgtm"


@given(_logins, st.integers(min_value=2, max_value=9))
def test_multi_approval_label_is_lowercased_and_truncated(commenter: str, count: int) -> None:
    label = lgtm_label_for(commenter, count)
    assert len(label) <= LABEL_LENGTH_LIMIT
    assert label == f"lgtm-{commenter.lower()}"[:LABEL_LENGTH_LIMIT]
    assert label.startswith("lgtm-")


def test_lgtm_label_examples() -> None:
    assert lgtm_label_for("Alice", 2) == "lgtm-alice"
    assert lgtm_label_for("a-very-long-reviewer-name", 3) == "lgtm-a-very-long-rev"


def test_lgtm_family_and_clear_sets_are_sorted() -> None:
    labels = {"lgtm-zed", "approved", "lgtm", "ci_successful", "lgtm-amy"}
    assert lgtm_labels_on(labels) == ("lgtm", "lgtm-amy", "lgtm-zed")
    assert labels_to_clear(labels) == ("lgtm", "lgtm-amy", "lgtm-zed", "approved")
    assert labels_to_clear({"ci_successful"}) == ()
    assert join_sorted(["b", "a", "b"]) == "a, b"


@pytest.mark.parametrize(
    ("text", "expected"),
    [
        ("/lgtm", ("add_lgtm",)),
        ("/LGTM   ", ("add_lgtm",)),
        ("/lgtm cancel", ("remove_lgtm",)),
        ("/approve", ("add_approve",)),
        ("/Approve Cancel", ("remove_approve",)),
        ("/check-pr", ("check_pr",)),
        ("thanks!\n/lgtm\n/approve", ("add_lgtm", "add_approve")),
        ("/lgtm please", ()),
        ("  /lgtm", ()),
        ("looks fine /approve", ()),
        ("", ()),
    ],
)
def test_parse_review_commands(text: str, expected: tuple[str, ...]) -> None:
    assert parse_review_commands(text) == expected


def test_attribution_patterns_match_whole_lines_only() -> None:
    assert is_review_comment("great work\n/lgtm")
    assert not is_review_comment("/lgtm cancel")
    assert is_signoff_comment("/approve ")
    assert not is_signoff_comment("/approve cancel")


def _pr(state: str = "open") -> PullRequest:
    return PullRequest(
        org="o",
        repo="r",
        number=1,
        author="alice",
        base_ref="master",
        labels=frozenset(),
        mergeable=True,
        state=state,
    )


def test_only_new_comments_on_open_pull_requests_are_actionable() -> None:
    def note(*, creation: bool = True, is_pr: bool = True, state: str = "open") -> NoteEvent:
        return NoteEvent(
            is_creation=creation,
            is_pull_request=is_pr,
            commenter="bob",
            body="/lgtm",
            pull_request=_pr(state),
        )

    assert is_actionable_note(note())
    assert not is_actionable_note(note(creation=False))
    assert not is_actionable_note(note(is_pr=False))
    assert not is_actionable_note(note(state="closed"))
