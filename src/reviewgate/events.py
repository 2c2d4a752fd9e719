from __future__ import annotations

import json
from typing import cast

from reviewgate.models import NoteEvent, PullRequest, PullRequestAction, PullRequestEvent
from reviewgate.payloads import as_int, as_object_dict, as_string


PULL_REQUEST_HOOK = "Merge Request Hook"
NOTE_HOOK = "Note Hook"


class EventParseError(ValueError):
    pass


def parse_event(event_type: str, body: str | bytes) -> PullRequestEvent | NoteEvent | None:
    """Turn a Gitee webhook delivery into a typed event.

    Returns None for hook types the bot does not handle.
    """
    try:
        payload = json.loads(body)
    except json.JSONDecodeError as exc:
        raise EventParseError(f"Webhook body is not valid JSON: {exc}") from exc
    payload_obj = _require_object(payload, field="payload")

    if event_type == PULL_REQUEST_HOOK:
        return parse_pull_request_event(payload_obj)
    if event_type == NOTE_HOOK:
        return parse_note_event(payload_obj)
    return None


def parse_pull_request_event(payload: dict[str, object]) -> PullRequestEvent:
    pr = _parse_pull_request(payload)
    return PullRequestEvent(action=_pull_request_action(payload), pull_request=pr)


def parse_note_event(payload: dict[str, object]) -> NoteEvent | None:
    # Comments on issues and commits carry no pull request to act on.
    if as_string(payload.get("noteable_type")) != "PullRequest" or "pull_request" not in payload:
        return None
    comment = _require_object(payload.get("comment"), field="comment")
    user = as_object_dict(comment.get("user"))
    return NoteEvent(
        is_creation=as_string(payload.get("action")).lower() == "comment",
        is_pull_request=True,
        commenter=as_string(user.get("login") if user else None),
        body=as_string(comment.get("body")),
        pull_request=_parse_pull_request(payload),
    )


def _pull_request_action(payload: dict[str, object]) -> PullRequestAction:
    action = as_string(payload.get("action")).lower()
    if action == "open":
        return "opened"
    if action == "update":
        desc = as_string(payload.get("action_desc")).lower()
        if desc == "source_branch_changed":
            return "source_branch_changed"
        if desc == "update_label":
            return "label_updated"
    return "other"


def _parse_pull_request(payload: dict[str, object]) -> PullRequest:
    pr = _require_object(payload.get("pull_request"), field="pull_request")
    org, repo = _org_repo(payload, pr)
    user = as_object_dict(pr.get("user"))
    base = as_object_dict(pr.get("base"))

    labels: set[str] = set()
    raw_labels = pr.get("labels")
    if isinstance(raw_labels, list):
        for entry in raw_labels:
            entry_obj = as_object_dict(entry)
            if entry_obj is not None and isinstance(entry_obj.get("name"), str):
                labels.add(cast(str, entry_obj["name"]))

    assignees: list[str] = []
    raw_assignees = pr.get("assignees")
    if isinstance(raw_assignees, list):
        for entry in raw_assignees:
            entry_obj = as_object_dict(entry)
            if entry_obj is not None and isinstance(entry_obj.get("login"), str):
                assignees.append(cast(str, entry_obj["login"]))

    return PullRequest(
        org=org,
        repo=repo,
        number=as_int(pr.get("number"), field="pull_request.number", error=EventParseError),
        author=as_string(user.get("login") if user else None),
        base_ref=as_string(base.get("ref") if base else None),
        labels=frozenset(labels),
        mergeable=pr.get("mergeable") is True,
        need_review=pr.get("need_review") is True,
        need_test=pr.get("need_test") is True,
        assignees=tuple(assignees),
        body=as_string(pr.get("body")),
        html_url=as_string(pr.get("html_url")),
        state=as_string(pr.get("state")) or "open",
    )


def _org_repo(payload: dict[str, object], pr: dict[str, object]) -> tuple[str, str]:
    repository = as_object_dict(payload.get("repository"))
    if repository is None:
        base = as_object_dict(pr.get("base"))
        repository = as_object_dict(base.get("repo")) if base else None
    if repository is None:
        raise EventParseError("Webhook payload is missing repository")
    org = as_string(repository.get("namespace"))
    repo = as_string(repository.get("path"))
    if not org or not repo:
        full_name = as_string(repository.get("full_name"))
        if "/" in full_name:
            org, repo = full_name.split("/", 1)
    if not org or not repo:
        raise EventParseError("Webhook payload repository has no namespace/path")
    return org, repo


def _require_object(value: object, *, field: str) -> dict[str, object]:
    obj = as_object_dict(value)
    if obj is None:
        raise EventParseError(f"Webhook payload field {field} must be an object")
    return obj
