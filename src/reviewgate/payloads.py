from __future__ import annotations

from collections.abc import Callable
from typing import cast


def as_object_dict(value: object) -> dict[str, object] | None:
    if not isinstance(value, dict):
        return None
    if not all(isinstance(key, str) for key in value.keys()):
        return None
    return cast(dict[str, object], value)


def as_string(value: object) -> str:
    if value is None:
        return ""
    if isinstance(value, str):
        return value
    return str(value)


def as_int(value: object, *, field: str, error: Callable[[str], Exception]) -> int:
    """Coerce a JSON integer (or numeric string), raising ``error`` otherwise."""
    if isinstance(value, bool):
        raise error(f"{field} must be an integer")
    if isinstance(value, int):
        return value
    if isinstance(value, str):
        try:
            return int(value)
        except ValueError as exc:
            raise error(f"{field} must be an integer, got {value!r}") from exc
    raise error(f"{field} must be an integer")
