from __future__ import annotations

from pathlib import Path

import pytest

from reviewgate import config
from reviewgate.config import AppConfig, ConfigError, FileLocation


def _write(path: Path, content: str) -> Path:
    path.write_text(content, encoding="utf-8")
    return path


def test_load_config_parses_bot_and_repo_tables(tmp_path: Path) -> None:
    cfg_path = _write(
        tmp_path / "reviewgate.toml",
        """
[bot]
trusted_login = "ci-bot"
api_base_url = "https://gitee.example/api/v5"
token_env = "REVIEW_TOKEN"
request_timeout_seconds = 10
log_dir = "~/logs/reviewgate"

[repo.kernel]
org = "openeuler"
name = "kernel"
lgtm_counts_required = 2
merge_method = "Squash"
labels_for_merge = ["ci_successful"]
labels_not_allow_merge = ["do-not-merge"]
missing_labels_for_merge = ["ci_failed"]
check_permission_based_on_sig_owners = true
disable_reviewer_check = true

[repo.kernel.merge_description]
attribution = "sig_info"
include_origin = true
sig_info = { owner = "openeuler", repo = "community", path = "sig/Kernel/sig-info.yaml" }

[[repo.kernel.freeze_file]]
owner = "openeuler"
repo = "release-management"
path = "freeze.yaml"
branch = "main"

[repo.everything]
org = "openeuler"
""".strip(),
    )

    loaded = config.load_config(cfg_path)

    assert isinstance(loaded, AppConfig)
    assert loaded.bot.trusted_login == "ci-bot"
    assert loaded.bot.token_env == "REVIEW_TOKEN"
    assert loaded.bot.request_timeout_seconds == 10
    assert loaded.bot.log_dir is not None
    assert loaded.bot.log_dir.as_posix().endswith("/logs/reviewgate")

    kernel = loaded.config_for("openeuler", "kernel")
    assert kernel.repo_id == "kernel"
    assert kernel.lgtm_counts_required == 2
    assert kernel.merge_method == "squash"
    assert kernel.required_labels() == frozenset({"approved", "ci_successful"})
    assert kernel.labels_not_allow_merge == frozenset({"do-not-merge"})
    assert kernel.missing_labels_for_merge == frozenset({"ci_failed"})
    assert kernel.check_permission_based_on_sig_owners is True
    assert kernel.disable_reviewer_check is True
    assert kernel.freeze_files == (
        FileLocation(owner="openeuler", repo="release-management", path="freeze.yaml", branch="main"),
    )
    assert kernel.merge_description.attribution == "sig_info"
    assert kernel.merge_description.include_origin is True
    assert kernel.merge_description.sig_info == FileLocation(
        owner="openeuler", repo="community", path="sig/Kernel/sig-info.yaml", branch="master"
    )

    other = loaded.config_for("openeuler", "docs")
    assert other.repo_id == "everything"
    assert other.scope == "openeuler"
    assert other.lgtm_counts_required == 1
    assert other.merge_method == "merge"
    assert other.merge_description.attribution == "handles"


def test_bot_table_is_optional_with_defaults() -> None:
    loaded = config.parse_config({"repo": {"a": {"org": "o", "name": "r"}}})
    assert loaded.bot.trusted_login == "openeuler-ci-bot"
    assert loaded.bot.api_base_url == "https://gitee.com/api/v5"
    assert loaded.bot.token_env == "GITEE_TOKEN"
    assert loaded.bot.log_dir is None


def test_config_for_unknown_repository_raises() -> None:
    loaded = config.parse_config({"repo": {"a": {"org": "o", "name": "r"}}})
    with pytest.raises(ConfigError, match="No configuration for repository o/other"):
        loaded.config_for("o", "other")
    with pytest.raises(ConfigError, match="x/r"):
        loaded.config_for("x", "r")


@pytest.mark.parametrize(
    ("data", "message"),
    [
        ({}, r"\[repo\] is required"),
        ({"repo": {}}, "at least one"),
        ({"repo": {"a": "nope"}}, r"\[repo.a\] must be a TOML table"),
        ({"repo": {"a": {"name": "r"}}}, "org is required"),
        ({"repo": {"a": {"org": "o", "lgtm_counts_required": -1}}}, "must be >= 0"),
        ({"repo": {"a": {"org": "o", "lgtm_counts_required": True}}}, "must be an integer"),
        ({"repo": {"a": {"org": "o", "merge_method": "octopus"}}}, "merge_method must be one of"),
        ({"repo": {"a": {"org": "o", "labels_for_merge": "x"}}}, "list of strings"),
        ({"repo": {"a": {"org": "o", "freeze_file": {"owner": "x"}}}}, "array of tables"),
        (
            {"repo": {"a": {"org": "o", "freeze_file": [{"owner": "x", "repo": "y"}]}}},
            "path is required",
        ),
        (
            {"repo": {"a": {"org": "o", "merge_description": {"attribution": "emails"}}}},
            "attribution must be one of",
        ),
        (
            {"repo": {"a": {"org": "o", "merge_description": {"attribution": "sig_info"}}}},
            "requires sig_info",
        ),
        (
            {"repo": {"a": {"org": "o", "name": "r"}, "b": {"org": "o", "name": "r"}}},
            "Duplicate repo scope 'o/r'",
        ),
        ({"bot": {"request_timeout_seconds": 0}, "repo": {"a": {"org": "o"}}}, ">= 1"),
        ({"bot": "x", "repo": {"a": {"org": "o"}}}, r"\[bot\] must be a TOML table"),
    ],
)
def test_parse_config_rejects_invalid_values(data: dict[str, object], message: str) -> None:
    with pytest.raises(ConfigError, match=message):
        config.parse_config(data)


def test_repo_specific_entry_wins_over_org_wide_entry() -> None:
    loaded = config.parse_config(
        {
            "repo": {
                "a_org": {"org": "o", "lgtm_counts_required": 3},
                "b_repo": {"org": "o", "name": "r", "lgtm_counts_required": 2},
            }
        }
    )
    assert loaded.config_for("o", "r").lgtm_counts_required == 2
    assert loaded.config_for("o", "s").lgtm_counts_required == 3
