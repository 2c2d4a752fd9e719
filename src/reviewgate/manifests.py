from __future__ import annotations

import base64
import binascii
from datetime import date, datetime, timezone
from typing import cast

import yaml

from reviewgate.models import FreezeDeclaration


class ManifestDecodeError(ValueError):
    pass


def decode_yaml_content(content: str) -> object:
    try:
        raw = base64.b64decode("".join(content.split()), validate=True)
    except (binascii.Error, ValueError) as exc:
        raise ManifestDecodeError(f"Invalid base64 content: {exc}") from exc
    try:
        return yaml.safe_load(raw.decode("utf-8"))
    except (yaml.YAMLError, UnicodeDecodeError) as exc:
        raise ManifestDecodeError(f"Invalid YAML content: {exc}") from exc


def parse_owners(content: str) -> frozenset[str]:
    data = _as_mapping(decode_yaml_content(content), what="OWNERS")
    owners: set[str] = set()
    for key in ("maintainers", "committers"):
        for login in _as_str_list(data.get(key), what=f"OWNERS {key}"):
            owners.add(login.lower())
    return frozenset(owners)


def parse_freeze_declarations(content: str) -> tuple[FreezeDeclaration, ...]:
    data = decode_yaml_content(content)
    if data is None:
        return ()
    if not isinstance(data, list):
        raise ManifestDecodeError("Freeze manifest must be a list of declarations")

    declarations: list[FreezeDeclaration] = []
    for item in data:
        entry = _as_mapping(item, what="freeze declaration")
        declarations.append(
            FreezeDeclaration(
                org=_as_str(entry.get("organization"), what="freeze organization"),
                branch=_as_str(entry.get("branch"), what="freeze branch"),
                owners=tuple(_as_str_list(entry.get("owners"), what="freeze owners")),
                start=_as_optional_instant(entry.get("start"), what="freeze start"),
                end=_as_optional_instant(entry.get("end"), what="freeze end"),
            )
        )
    return tuple(declarations)


def parse_sig_info(content: str) -> dict[str, str]:
    """Map each handle in a sig-info manifest to ``Name <email>``.

    Maintainers are read first, then committers of every listed repository,
    so a committer entry overrides a maintainer entry for the same handle.
    Entries without a handle, name or email are skipped.
    """
    data = _as_mapping(decode_yaml_content(content), what="sig-info")
    people: list[object] = list(_as_list(data.get("maintainers"), what="sig-info maintainers"))
    for repository in _as_list(data.get("repositories"), what="sig-info repositories"):
        repository_obj = _as_mapping(repository, what="sig-info repository")
        people.extend(_as_list(repository_obj.get("committers"), what="sig-info committers"))

    identities: dict[str, str] = {}
    for person in people:
        person_obj = _as_mapping(person, what="sig-info person")
        handle = person_obj.get("handle", person_obj.get("gitee_id"))
        if not isinstance(handle, str) or not handle:
            continue
        name = person_obj.get("name")
        email = person_obj.get("email")
        if not isinstance(name, str) or not isinstance(email, str):
            continue
        identities[handle] = f"{name} <{email}>"
    return identities


def _as_mapping(value: object, *, what: str) -> dict[str, object]:
    if value is None:
        return {}
    if not isinstance(value, dict):
        raise ManifestDecodeError(f"{what} must be a mapping")
    return cast(dict[str, object], value)


def _as_list(value: object, *, what: str) -> list[object]:
    if value is None:
        return []
    if not isinstance(value, list):
        raise ManifestDecodeError(f"{what} must be a list")
    return cast(list[object], value)


def _as_str_list(value: object, *, what: str) -> list[str]:
    out: list[str] = []
    for item in _as_list(value, what=what):
        out.append(_as_str(item, what=what))
    return out


def _as_str(value: object, *, what: str) -> str:
    if isinstance(value, bool) or value is None:
        raise ManifestDecodeError(f"{what} must be a string")
    if isinstance(value, str):
        return value
    if isinstance(value, int):
        return str(value)
    raise ManifestDecodeError(f"{what} must be a string")


def _as_optional_instant(value: object, *, what: str) -> datetime | None:
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        instant = value
    elif isinstance(value, date):
        instant = datetime(value.year, value.month, value.day)
    elif isinstance(value, str):
        try:
            instant = datetime.fromisoformat(value.strip())
        except ValueError as exc:
            raise ManifestDecodeError(f"{what} is not an ISO-8601 timestamp: {value!r}") from exc
    else:
        raise ManifestDecodeError(f"{what} must be a timestamp")
    if instant.tzinfo is None:
        instant = instant.replace(tzinfo=timezone.utc)
    return instant
