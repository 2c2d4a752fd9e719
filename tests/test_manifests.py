from __future__ import annotations

import base64
from datetime import datetime, timezone

import pytest

from reviewgate.manifests import (
    ManifestDecodeError,
    decode_yaml_content,
    parse_freeze_declarations,
    parse_owners,
    parse_sig_info,
)


def _b64(text: str) -> str:
    return base64.b64encode(text.encode("utf-8")).decode("ascii")


def test_parse_owners_lowercases_maintainers_and_committers() -> None:
    content = _b64("maintainers:\n  - Alice\ncommitters:\n  - BOB\n  - carol\n")
    assert parse_owners(content) == frozenset({"alice", "bob", "carol"})


def test_parse_owners_tolerates_missing_sections() -> None:
    assert parse_owners(_b64("maintainers:\n  - alice\n")) == frozenset({"alice"})
    assert parse_owners(_b64("")) == frozenset()


def test_decode_rejects_bad_base64_and_bad_yaml() -> None:
    with pytest.raises(ManifestDecodeError, match="base64"):
        decode_yaml_content("***")
    with pytest.raises(ManifestDecodeError, match="YAML"):
        decode_yaml_content(_b64("key: [unterminated"))


def test_parse_owners_rejects_wrong_shape() -> None:
    with pytest.raises(ManifestDecodeError, match="mapping"):
        parse_owners(_b64("- alice\n"))
    with pytest.raises(ManifestDecodeError, match="list"):
        parse_owners(_b64("maintainers: alice\n"))


def test_parse_freeze_declarations_reads_windows() -> None:
    content = _b64(
        """
- organization: openeuler
  branch: openEuler-24.03-LTS
  owners: [Alice, bob]
  start: "2024-05-01T00:00:00+08:00"
  end: 2024-06-01T00:00:00Z
- organization: src-openeuler
  branch: master
  owners: []
  start: 2024-05-01
"""
    )
    first, second = parse_freeze_declarations(content)

    assert first.org == "openeuler"
    assert first.branch == "openEuler-24.03-LTS"
    assert first.owners == ("Alice", "bob")
    assert first.start == datetime(2024, 4, 30, 16, 0, tzinfo=timezone.utc)
    assert first.end == datetime(2024, 6, 1, tzinfo=timezone.utc)
    assert second.start == datetime(2024, 5, 1, tzinfo=timezone.utc)
    assert second.end is None


def test_parse_freeze_declarations_rejects_non_list_and_bad_times() -> None:
    assert parse_freeze_declarations(_b64("")) == ()
    with pytest.raises(ManifestDecodeError, match="list of declarations"):
        parse_freeze_declarations(_b64("organization: o\n"))
    with pytest.raises(ManifestDecodeError, match="ISO-8601"):
        parse_freeze_declarations(
            _b64("- organization: o\n  branch: b\n  owners: []\n  start: soon\n")
        )


def test_parse_sig_info_maps_handles_to_name_and_email() -> None:
    content = _b64(
        """
maintainers:
  - gitee_id: alice
    name: Alice A
    email: alice@example.com
repositories:
  - repo: [openeuler/kernel]
    committers:
      - handle: bob
        name: Bob B
        email: bob@example.com
      - gitee_id: alice
        name: Alice Committer
        email: alice@work.example.com
"""
    )
    assert parse_sig_info(content) == {
        "alice": "Alice Committer <alice@work.example.com>",
        "bob": "Bob B <bob@example.com>",
    }


def test_parse_sig_info_skips_incomplete_entries() -> None:
    content = _b64(
        """
maintainers:
  - gitee_id: carol
    name: Carol C
    email: carol@example.com
  - gitee_id: dave
    name: Dave D
  - name: Nobody
    email: nobody@example.com
  - gitee_id: erin
    name: Erin E
    email: 42
"""
    )
    assert parse_sig_info(content) == {"carol": "Carol C <carol@example.com>"}
