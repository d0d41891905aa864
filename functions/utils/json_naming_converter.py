"""
functions/utils/json_naming_converter.py

WHAT THIS FILE IS FOR
---------------------
Recursive snake_case -> camelCase key conversion applied at the HTTP
boundary, so response models can stay snake_case in Python while the
dashboard front-end always receives camelCase JSON.

PRESERVED CONTAINERS
--------------------
Some payloads carry rows read straight from the store (notification
history, recent users). Their column names are part of the public contract
as-is (`sent_at`, `triggered_at`, `created_at`).

For a key listed in `preserve_container_keys`:
- the container key itself is still converted
- its value (dict, list of rows, anything) is copied through untouched

Example:
    preserve_container_keys = {"data"}

    {"success": True, "data": [{"sent_at": "..."}], "total": 1}
    -> {"success": True, "data": [{"sent_at": "..."}], "total": 1}

    {"push_sent": True} -> {"pushSent": True}

Maps keyed by project id (`/api/projects/status`, the maintenance map) are
NOT passed through here as a whole: project ids such as "prj_abc" would be
rewritten. The handlers convert each value separately instead.

Pure function, no I/O, the input object is never mutated.
"""

from __future__ import annotations

from typing import Any, Iterable, Optional


def snake_to_camel(s: str) -> str:
    """
    "response_time" -> "responseTime"

    Strings without '_' are returned unchanged; leading/trailing underscores
    are kept.
    """
    if "_" not in s:
        return s

    core = s.strip("_")
    if not core:
        return s

    leading = s[: len(s) - len(s.lstrip("_"))]
    trailing = s[len(s.rstrip("_")):]

    first, *rest = [p for p in core.split("_") if p]
    return leading + first + "".join(p[:1].upper() + p[1:] for p in rest) + trailing


def convert_keys_snake_to_camel(
    obj: Any,
    *,
    preserve_container_keys: Optional[Iterable[str]] = None,
) -> Any:
    """
    Return a copy of `obj` with every dict key camelCased.

    `preserve_container_keys` may list keys in either naming style; their
    values are relayed verbatim.
    """
    preserve = frozenset(preserve_container_keys or ())
    return _convert(obj, preserve)


def _convert(obj: Any, preserve: frozenset) -> Any:
    if isinstance(obj, list):
        return [_convert(x, preserve) for x in obj]

    if not isinstance(obj, dict):
        return obj

    out: dict[Any, Any] = {}
    for key, value in obj.items():
        if not isinstance(key, str):
            out[key] = value
            continue

        camel_key = snake_to_camel(key)
        if key in preserve or camel_key in preserve:
            out[camel_key] = value
        else:
            out[camel_key] = _convert(value, preserve)
    return out
