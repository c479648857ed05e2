"""Typed accessors over raw Kubernetes/ArgoCD JSON objects.

Raw objects arrive as nested dicts in API (camelCase) form. Every accessor
takes a dotted path, never raises on missing or mistyped data, and returns
the documented default instead. Malformed payloads therefore degrade to
``"Unknown"`` strings, ``None`` timestamps and zero counts rather than
propagating errors.
"""

from __future__ import annotations

from datetime import UTC, datetime
from typing import Any

UNKNOWN = "Unknown"


def _walk(obj: Any, path: str) -> Any:
    node = obj
    for key in path.split("."):
        if not isinstance(node, dict):
            return None
        node = node.get(key)
        if node is None:
            return None
    return node


def get_str(obj: Any, path: str) -> str | None:
    """String at *path*, or None when absent/empty or not a string."""
    value = _walk(obj, path)
    if isinstance(value, str) and value:
        return value
    return None


def get_str_or(obj: Any, path: str, default: str) -> str:
    value = get_str(obj, path)
    return value if value is not None else default


def get_int(obj: Any, path: str, default: int = 0) -> int:
    value = _walk(obj, path)
    if isinstance(value, bool):
        return default
    if isinstance(value, int):
        return value
    return default


def get_bool(obj: Any, path: str, default: bool = False) -> bool:
    value = _walk(obj, path)
    return value if isinstance(value, bool) else default


def get_list(obj: Any, path: str) -> list[Any]:
    value = _walk(obj, path)
    return value if isinstance(value, list) else []


def get_dicts(obj: Any, path: str) -> list[dict[str, Any]]:
    """List of dict entries at *path*; non-dict entries are skipped."""
    return [item for item in get_list(obj, path) if isinstance(item, dict)]


def get_map(obj: Any, path: str) -> dict[str, str]:
    """String-to-string map at *path* (labels, capacity, ...)."""
    value = _walk(obj, path)
    if not isinstance(value, dict):
        return {}
    return {str(k): str(v) for k, v in value.items() if v is not None}


def parse_timestamp(value: str | None) -> datetime | None:
    """Parse an RFC 3339 timestamp into an aware UTC datetime.

    Accepts the ``Z`` suffix. Returns None for anything unparseable.
    """
    if not value:
        return None
    try:
        parsed = datetime.fromisoformat(value.replace("Z", "+00:00"))
    except ValueError:
        return None
    if parsed.tzinfo is None:
        return None
    return parsed.astimezone(UTC)


def format_timestamp(value: datetime | str | None) -> str | None:
    """Render a timestamp as RFC 3339 UTC, passing strings through."""
    if value is None:
        return None
    if isinstance(value, str):
        return value
    if value.tzinfo is None:
        value = value.replace(tzinfo=UTC)
    return value.astimezone(UTC).isoformat()
