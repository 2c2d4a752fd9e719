from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
import tomllib
from typing import Literal, cast

from reviewgate.labels import APPROVED_LABEL
from reviewgate.models import MergeMethod


AttributionStyle = Literal["handles", "sig_info"]

_MERGE_METHODS: tuple[MergeMethod, ...] = ("merge", "squash", "rebase")
_ATTRIBUTION_STYLES: tuple[AttributionStyle, ...] = ("handles", "sig_info")


@dataclass(frozen=True)
class BotConfig:
    trusted_login: str = "openeuler-ci-bot"
    api_base_url: str = "https://gitee.com/api/v5"
    token_env: str = "GITEE_TOKEN"
    request_timeout_seconds: int = 30
    log_dir: Path | None = None


@dataclass(frozen=True)
class FileLocation:
    owner: str
    repo: str
    path: str
    branch: str

    def describe(self) -> str:
        return f"{self.owner}/{self.repo}/{self.branch}:{self.path}"


@dataclass(frozen=True)
class MergeDescriptionConfig:
    attribution: AttributionStyle = "handles"
    include_origin: bool = False
    sig_info: FileLocation | None = None


@dataclass(frozen=True)
class RepoConfig:
    repo_id: str
    org: str
    name: str | None
    lgtm_counts_required: int = 1
    merge_method: MergeMethod = "merge"
    labels_for_merge: frozenset[str] = frozenset()
    labels_not_allow_merge: frozenset[str] = frozenset()
    missing_labels_for_merge: frozenset[str] = frozenset()
    freeze_files: tuple[FileLocation, ...] = ()
    check_permission_based_on_sig_owners: bool = False
    disable_reviewer_check: bool = False
    merge_description: MergeDescriptionConfig = field(default_factory=MergeDescriptionConfig)

    @property
    def scope(self) -> str:
        if self.name is None:
            return self.org
        return f"{self.org}/{self.name}"

    def required_labels(self) -> frozenset[str]:
        return frozenset({APPROVED_LABEL}) | self.labels_for_merge


@dataclass(frozen=True)
class AppConfig:
    bot: BotConfig
    repos: tuple[RepoConfig, ...]

    def config_for(self, org: str, repo: str) -> RepoConfig:
        org_wide: RepoConfig | None = None
        for candidate in self.repos:
            if candidate.org != org:
                continue
            if candidate.name == repo:
                return candidate
            if candidate.name is None and org_wide is None:
                org_wide = candidate
        if org_wide is not None:
            return org_wide
        raise ConfigError(f"No configuration for repository {org}/{repo}")


class ConfigError(ValueError):
    pass


def load_config(path: Path) -> AppConfig:
    with path.open("rb") as fh:
        data = tomllib.load(fh)
    return parse_config(cast(dict[str, object], data))


def parse_config(data: dict[str, object]) -> AppConfig:
    bot_data = _optional_table(data, "bot") or {}
    repo_data = _require_table(data, "repo")

    bot = BotConfig(
        trusted_login=_str_with_default(bot_data, "trusted_login", "openeuler-ci-bot"),
        api_base_url=_str_with_default(bot_data, "api_base_url", "https://gitee.com/api/v5"),
        token_env=_str_with_default(bot_data, "token_env", "GITEE_TOKEN"),
        request_timeout_seconds=_int_with_default(bot_data, "request_timeout_seconds", 30),
        log_dir=_optional_path(bot_data, "log_dir"),
    )
    if bot.request_timeout_seconds < 1:
        raise ConfigError("bot.request_timeout_seconds must be >= 1")

    repos = _load_repo_configs(repo_data)
    return AppConfig(bot=bot, repos=repos)


def _load_repo_configs(repo_data: dict[str, object]) -> tuple[RepoConfig, ...]:
    if not repo_data:
        raise ConfigError("[repo] must define at least one [repo.<id>] table")

    repos: list[RepoConfig] = []
    for repo_id, raw_value in sorted(repo_data.items()):
        table = _require_nested_table(raw_value, table_name=f"[repo.{repo_id}]")
        repos.append(_parse_repo_config(repo_id=repo_id, repo_data=table))
    _ensure_unique_scopes(repos)
    return tuple(repos)


def _parse_repo_config(*, repo_id: str, repo_data: dict[str, object]) -> RepoConfig:
    lgtm_counts_required = _int_with_default(repo_data, "lgtm_counts_required", 1)
    if lgtm_counts_required < 0:
        raise ConfigError(f"[repo.{repo_id}] lgtm_counts_required must be >= 0")

    freeze_raw = repo_data.get("freeze_file", [])
    if not isinstance(freeze_raw, list):
        raise ConfigError(f"[[repo.{repo_id}.freeze_file]] must be an array of tables")
    freeze_files = tuple(
        _parse_file_location(item, table_name=f"[[repo.{repo_id}.freeze_file]]")
        for item in freeze_raw
    )

    description_data = repo_data.get("merge_description", {})
    description = _parse_merge_description(
        _require_nested_table(description_data, table_name=f"[repo.{repo_id}.merge_description]"),
        repo_id=repo_id,
    )

    return RepoConfig(
        repo_id=repo_id,
        org=_require_str(repo_data, "org"),
        name=_optional_str(repo_data, "name"),
        lgtm_counts_required=lgtm_counts_required,
        merge_method=_merge_method_with_default(repo_data, "merge_method", "merge"),
        labels_for_merge=_frozenset_of_str(repo_data, "labels_for_merge"),
        labels_not_allow_merge=_frozenset_of_str(repo_data, "labels_not_allow_merge"),
        missing_labels_for_merge=_frozenset_of_str(repo_data, "missing_labels_for_merge"),
        freeze_files=freeze_files,
        check_permission_based_on_sig_owners=_bool_with_default(
            repo_data, "check_permission_based_on_sig_owners", False
        ),
        disable_reviewer_check=_bool_with_default(repo_data, "disable_reviewer_check", False),
        merge_description=description,
    )


def _parse_merge_description(data: dict[str, object], *, repo_id: str) -> MergeDescriptionConfig:
    attribution_raw = _str_with_default(data, "attribution", "handles").strip().lower()
    if attribution_raw not in _ATTRIBUTION_STYLES:
        raise ConfigError(
            f"[repo.{repo_id}.merge_description] attribution must be one of: "
            f"{', '.join(_ATTRIBUTION_STYLES)}"
        )
    attribution = cast(AttributionStyle, attribution_raw)

    sig_info_raw = data.get("sig_info")
    sig_info = (
        None
        if sig_info_raw is None
        else _parse_file_location(
            sig_info_raw, table_name=f"[repo.{repo_id}.merge_description.sig_info]"
        )
    )
    if attribution == "sig_info" and sig_info is None:
        raise ConfigError(
            f"[repo.{repo_id}.merge_description] attribution = 'sig_info' requires sig_info"
        )

    return MergeDescriptionConfig(
        attribution=attribution,
        include_origin=_bool_with_default(data, "include_origin", False),
        sig_info=sig_info,
    )


def _parse_file_location(value: object, *, table_name: str) -> FileLocation:
    table = _require_nested_table(value, table_name=table_name)
    return FileLocation(
        owner=_require_str(table, "owner"),
        repo=_require_str(table, "repo"),
        path=_require_str(table, "path"),
        branch=_str_with_default(table, "branch", "master"),
    )


def _require_table(data: dict[str, object], key: str) -> dict[str, object]:
    value = data.get(key)
    if not isinstance(value, dict):
        raise ConfigError(f"[{key}] is required and must be a TOML table")
    if not all(isinstance(item, str) for item in value.keys()):
        raise ConfigError(f"[{key}] must have string keys")
    return cast(dict[str, object], value)


def _optional_table(data: dict[str, object], key: str) -> dict[str, object] | None:
    value = data.get(key)
    if value is None:
        return None
    if not isinstance(value, dict):
        raise ConfigError(f"[{key}] must be a TOML table when provided")
    if not all(isinstance(item, str) for item in value.keys()):
        raise ConfigError(f"[{key}] must have string keys")
    return cast(dict[str, object], value)


def _require_nested_table(value: object, *, table_name: str) -> dict[str, object]:
    if not isinstance(value, dict):
        raise ConfigError(f"{table_name} must be a TOML table")
    if not all(isinstance(item, str) for item in value.keys()):
        raise ConfigError(f"{table_name} must have string keys")
    return cast(dict[str, object], value)


def _require_str(data: dict[str, object], key: str) -> str:
    value = data.get(key)
    if not isinstance(value, str) or not value:
        raise ConfigError(f"{key} is required and must be a non-empty string")
    return value


def _optional_str(data: dict[str, object], key: str) -> str | None:
    value = data.get(key)
    if value is None:
        return None
    if not isinstance(value, str) or not value:
        raise ConfigError(f"{key} must be a non-empty string if provided")
    return value


def _str_with_default(data: dict[str, object], key: str, default: str) -> str:
    value = data.get(key, default)
    if not isinstance(value, str) or not value:
        raise ConfigError(f"{key} must be a non-empty string")
    return value


def _int_with_default(data: dict[str, object], key: str, default: int) -> int:
    value = data.get(key, default)
    if isinstance(value, bool) or not isinstance(value, int):
        raise ConfigError(f"{key} must be an integer")
    return value


def _bool_with_default(data: dict[str, object], key: str, default: bool) -> bool:
    value = data.get(key, default)
    if not isinstance(value, bool):
        raise ConfigError(f"{key} must be a boolean")
    return value


def _frozenset_of_str(data: dict[str, object], key: str) -> frozenset[str]:
    value = data.get(key, [])
    if not isinstance(value, list):
        raise ConfigError(f"{key} must be a list of strings")
    out: set[str] = set()
    for item in value:
        if not isinstance(item, str) or not item:
            raise ConfigError(f"{key} must be a list of non-empty strings")
        out.add(item)
    return frozenset(out)


def _optional_path(data: dict[str, object], key: str) -> Path | None:
    value = _optional_str(data, key)
    if value is None:
        return None
    return Path(value).expanduser()


def _merge_method_with_default(
    data: dict[str, object], key: str, default: MergeMethod
) -> MergeMethod:
    value = data.get(key, default)
    if not isinstance(value, str):
        raise ConfigError(f"{key} must be one of: {', '.join(_MERGE_METHODS)}")
    normalized = value.strip().lower()
    if normalized not in _MERGE_METHODS:
        raise ConfigError(f"{key} must be one of: {', '.join(_MERGE_METHODS)}")
    return cast(MergeMethod, normalized)


def _ensure_unique_scopes(repos: list[RepoConfig]) -> None:
    seen: dict[str, str] = {}
    for repo in repos:
        existing_id = seen.get(repo.scope)
        if existing_id is not None:
            raise ConfigError(
                f"Duplicate repo scope {repo.scope!r} across repo ids "
                f"{existing_id!r} and {repo.repo_id!r}"
            )
        seen[repo.scope] = repo.repo_id
