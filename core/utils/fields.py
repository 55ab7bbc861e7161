"""
Payload Field Helpers

Exchange payloads are loosely typed: numbers arrive as strings, keys go
missing, empty strings stand in for null. These helpers read a field and
coerce it, returning a default instead of raising when the field is absent
or malformed.

Usage:
    from core.utils.fields import safe_float, safe_string

    price = safe_float(raw, "rate")
    order_id = safe_string2(raw, "orderNumber", "id")
"""

from typing import Any, Iterable, List, Optional, Sequence, TypeVar

T = TypeVar("T")


def safe_value(obj: Any, key: Any, default: Any = None) -> Any:
    """Return obj[key], or default when obj is not indexable or the value is None or ""."""
    try:
        value = obj[key]
    except (KeyError, IndexError, TypeError):
        return default
    if value is None or value == "":
        return default
    return value


def safe_float(obj: Any, key: Any, default: Optional[float] = None) -> Optional[float]:
    value = safe_value(obj, key)
    if value is None:
        return default
    try:
        return float(value)
    except (TypeError, ValueError):
        return default


def safe_integer(obj: Any, key: Any, default: Optional[int] = None) -> Optional[int]:
    value = safe_value(obj, key)
    if value is None:
        return default
    try:
        return int(float(value))
    except (TypeError, ValueError):
        return default


def safe_string(obj: Any, key: Any, default: Optional[str] = None) -> Optional[str]:
    value = safe_value(obj, key)
    if value is None:
        return default
    return str(value)


def safe_float2(obj: Any, key1: Any, key2: Any, default: Optional[float] = None) -> Optional[float]:
    value = safe_float(obj, key1)
    return value if value is not None else safe_float(obj, key2, default)


def safe_integer2(obj: Any, key1: Any, key2: Any, default: Optional[int] = None) -> Optional[int]:
    value = safe_integer(obj, key1)
    return value if value is not None else safe_integer(obj, key2, default)


def safe_string2(obj: Any, key1: Any, key2: Any, default: Optional[str] = None) -> Optional[str]:
    value = safe_string(obj, key1)
    return value if value is not None else safe_string(obj, key2, default)


def filter_by_since_limit(
    items: Iterable[T],
    since: Optional[int] = None,
    limit: Optional[int] = None
) -> List[T]:
    """
    Keep items whose ``timestamp`` is at or after ``since``, then the first ``limit``.

    Items without a timestamp are dropped when ``since`` is given.
    """
    result = list(items)
    if since is not None:
        result = [
            item for item in result
            if getattr(item, "timestamp", None) is not None and item.timestamp >= since
        ]
    if limit is not None:
        result = result[:limit]
    return result


def sort_by_timestamp(items: Sequence[T], descending: bool = False) -> List[T]:
    """Stable sort on ``timestamp``; items without one sort first."""
    return sorted(
        items,
        key=lambda item: getattr(item, "timestamp", None) or 0,
        reverse=descending
    )
