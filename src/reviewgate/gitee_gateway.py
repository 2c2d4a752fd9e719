from __future__ import annotations

import logging
from typing import cast
from urllib.parse import quote

import httpx

from reviewgate.models import (
    MergeMethod,
    OperationLogEntry,
    PullRequestComment,
    RepoFile,
    RepoPermission,
)
from reviewgate.observability import log_event
from reviewgate.payloads import as_int, as_object_dict, as_string


LOGGER = logging.getLogger("reviewgate.gitee_gateway")
_PAGE_SIZE = 100
_KNOWN_PERMISSIONS: frozenset[str] = frozenset({"admin", "write", "read"})


class GiteeApiError(RuntimeError):
    def __init__(self, message: str, *, status_code: int | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code


class GiteeGateway:
    """ReviewHost implementation backed by the Gitee REST v5 API."""

    def __init__(
        self,
        token: str,
        *,
        base_url: str = "https://gitee.com/api/v5",
        timeout_seconds: float = 30.0,
        client: httpx.Client | None = None,
    ) -> None:
        self._token = token
        self._client = client or httpx.Client(base_url=base_url, timeout=timeout_seconds)

    def close(self) -> None:
        self._client.close()

    def __enter__(self) -> GiteeGateway:
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()

    def add_pr_label(self, org: str, repo: str, number: int, label: str) -> None:
        self._api_json("POST", f"{_repo_path(org, repo)}/pulls/{number}/labels", payload=[label])
        log_event(LOGGER, "gitee_write", endpoint="pr_labels_add", pr_number=number, label=label)

    def remove_pr_labels(self, org: str, repo: str, number: int, labels: tuple[str, ...]) -> None:
        if not labels:
            return
        joined = quote(",".join(labels), safe="")
        self._api_json("DELETE", f"{_repo_path(org, repo)}/pulls/{number}/labels/{joined}")
        log_event(
            LOGGER, "gitee_write", endpoint="pr_labels_remove", pr_number=number, labels=labels
        )

    def create_pr_comment(self, org: str, repo: str, number: int, body: str) -> None:
        path = f"{_repo_path(org, repo)}/pulls/{number}/comments"
        try:
            self._api_json("POST", path, payload={"body": body})
        except GiteeApiError as exc:
            log_event(
                LOGGER,
                "gitee_comment_failed",
                repo_full_name=f"{org}/{repo}",
                pr_number=number,
                status_code=exc.status_code,
            )
            raise
        log_event(LOGGER, "gitee_write", endpoint="pr_comment", pr_number=number)

    def get_user_permission(self, org: str, repo: str, login: str) -> RepoPermission:
        path = f"{_repo_path(org, repo)}/collaborators/{quote(login, safe='')}/permission"
        payload_obj = _require_object(self._api_json("GET", path), what="permission")
        permission = as_string(payload_obj.get("permission")).strip().lower()
        log_event(LOGGER, "gitee_read", endpoint="permission", login=login, permission=permission)
        if permission in _KNOWN_PERMISSIONS:
            return cast(RepoPermission, permission)
        return "none"

    def get_path_content(self, org: str, repo: str, path: str, ref: str) -> RepoFile:
        api_path = f"{_repo_path(org, repo)}/contents/{quote(path)}"
        payload_obj = _require_object(
            self._api_json("GET", api_path, params={"ref": ref}), what="file content"
        )
        content = payload_obj.get("content")
        if not isinstance(content, str):
            raise GiteeApiError(f"Unexpected Gitee response: no content for {path}@{ref}")
        log_event(LOGGER, "gitee_read", endpoint="contents", path=path, ref=ref)
        return RepoFile(path=as_string(payload_obj.get("path")) or path, content=content)

    def list_pr_files(self, org: str, repo: str, number: int) -> tuple[str, ...]:
        payload = self._api_json("GET", f"{_repo_path(org, repo)}/pulls/{number}/files")
        files: list[str] = []
        for item in _require_list(payload, what="pull request files"):
            item_obj = as_object_dict(item)
            if item_obj is None:
                continue
            filename = item_obj.get("filename")
            if isinstance(filename, str) and filename:
                files.append(filename)
        log_event(LOGGER, "gitee_read", endpoint="pr_files", pr_number=number, count=len(files))
        return tuple(files)

    def list_repo_labels(self, org: str, repo: str) -> tuple[str, ...]:
        payload = self._api_json("GET", f"{_repo_path(org, repo)}/labels")
        names = _label_names(_require_list(payload, what="repository labels"))
        log_event(LOGGER, "gitee_read", endpoint="repo_labels", count=len(names))
        return tuple(sorted(names))

    def create_repo_label(self, org: str, repo: str, label: str, color: str) -> None:
        self._api_json(
            "POST", f"{_repo_path(org, repo)}/labels", payload={"name": label, "color": color}
        )
        log_event(LOGGER, "gitee_write", endpoint="repo_label_create", label=label)

    def list_operation_logs(
        self, org: str, repo: str, number: int
    ) -> tuple[OperationLogEntry, ...]:
        payload = self._api_json(
            "GET",
            f"{_repo_path(org, repo)}/pulls/{number}/operate_logs",
            params={"sort": "desc"},
        )
        entries: list[OperationLogEntry] = []
        for item in _require_list(payload, what="operation logs"):
            item_obj = as_object_dict(item)
            if item_obj is None:
                continue
            user_obj = as_object_dict(item_obj.get("user"))
            entries.append(
                OperationLogEntry(
                    action_type=as_string(item_obj.get("action_type")),
                    content=as_string(item_obj.get("content")),
                    created_at=as_string(item_obj.get("created_at")),
                    user_login=as_string(user_obj.get("login") if user_obj else None),
                )
            )
        log_event(
            LOGGER, "gitee_read", endpoint="operate_logs", pr_number=number, count=len(entries)
        )
        return tuple(entries)

    def list_pr_labels(self, org: str, repo: str, number: int) -> frozenset[str]:
        payload = self._api_json("GET", f"{_repo_path(org, repo)}/pulls/{number}/labels")
        names = _label_names(_require_list(payload, what="pull request labels"))
        log_event(LOGGER, "gitee_read", endpoint="pr_labels", pr_number=number, count=len(names))
        return frozenset(names)

    def merge_pr(
        self, org: str, repo: str, number: int, *, method: MergeMethod, description: str
    ) -> None:
        self._api_json(
            "PUT",
            f"{_repo_path(org, repo)}/pulls/{number}/merge",
            payload={"merge_method": method, "description": description},
        )
        log_event(LOGGER, "gitee_write", endpoint="pr_merge", pr_number=number, method=method)

    def reset_pr_reviewers_and_testers(self, org: str, repo: str, number: int) -> None:
        self._api_json(
            "PATCH",
            f"{_repo_path(org, repo)}/pulls/{number}",
            payload={"assignees_number": 0, "testers_number": 0},
        )
        log_event(LOGGER, "gitee_write", endpoint="pr_update_counters", pr_number=number)

    def list_pr_comments(
        self, org: str, repo: str, number: int
    ) -> tuple[PullRequestComment, ...]:
        comments: list[PullRequestComment] = []
        page = 1
        while True:
            payload = self._api_json(
                "GET",
                f"{_repo_path(org, repo)}/pulls/{number}/comments",
                params={"page": page, "per_page": _PAGE_SIZE},
            )
            items = _require_list(payload, what="pull request comments")
            for item in items:
                item_obj = as_object_dict(item)
                if item_obj is None:
                    continue
                user_obj = as_object_dict(item_obj.get("user"))
                comments.append(
                    PullRequestComment(
                        comment_id=as_int(item_obj.get("id"), field="comment id", error=GiteeApiError),
                        body=as_string(item_obj.get("body")),
                        user_login=as_string(user_obj.get("login") if user_obj else None),
                        created_at=as_string(item_obj.get("created_at")),
                        updated_at=as_string(item_obj.get("updated_at")),
                    )
                )
            if len(items) < _PAGE_SIZE:
                break
            page += 1
        log_event(
            LOGGER, "gitee_read", endpoint="pr_comments", pr_number=number, count=len(comments)
        )
        return tuple(comments)

    def _api_json(
        self,
        method: str,
        path: str,
        *,
        params: dict[str, object] | None = None,
        payload: object = None,
    ) -> object:
        query: dict[str, object] = {"access_token": self._token}
        if params:
            query.update(params)
        try:
            response = self._client.request(
                method.upper(),
                path,
                params=cast(dict[str, str | int], query),
                json=payload,
            )
        except httpx.HTTPError as exc:
            log_event(
                LOGGER,
                "gitee_request_failed",
                method=method.upper(),
                path=path,
                error_type=type(exc).__name__,
                error=str(exc),
            )
            raise GiteeApiError(f"Gitee {method.upper()} {path} failed: {exc}") from exc

        if response.status_code < 200 or response.status_code >= 300:
            message = response.text.strip() or "<empty>"
            log_event(
                LOGGER,
                "gitee_request_failed",
                method=method.upper(),
                path=path,
                status_code=response.status_code,
                error=message,
            )
            raise GiteeApiError(
                f"Gitee {method.upper()} {path} failed with status {response.status_code}: "
                f"{message}",
                status_code=response.status_code,
            )

        if not response.content.strip():
            return None
        try:
            return response.json()
        except ValueError as exc:
            raise GiteeApiError(f"Gitee {method.upper()} {path} returned invalid JSON") from exc


def _repo_path(org: str, repo: str) -> str:
    return f"/repos/{quote(org, safe='')}/{quote(repo, safe='')}"


def _label_names(items: list[object]) -> set[str]:
    names: set[str] = set()
    for item in items:
        item_obj = as_object_dict(item)
        if item_obj is None:
            continue
        name = item_obj.get("name")
        if isinstance(name, str) and name:
            names.add(name)
    return names


def _require_list(value: object, *, what: str) -> list[object]:
    if not isinstance(value, list):
        raise GiteeApiError(f"Unexpected Gitee response: expected list for {what}")
    return cast(list[object], value)


def _require_object(value: object, *, what: str) -> dict[str, object]:
    obj = as_object_dict(value)
    if obj is None:
        raise GiteeApiError(f"Unexpected Gitee response: expected object for {what}")
    return obj
