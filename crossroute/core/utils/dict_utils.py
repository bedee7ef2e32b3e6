from __future__ import annotations

from decimal import Decimal, InvalidOperation
from typing import Mapping, Optional, Sequence, Union

_MISSING = object()


def _read_path(node: object, path: Sequence[Union[str, int]]) -> Optional[object]:
    """
    Walk provider JSON (nested mappings and lists) along ``path``.

    Integer parts index lists, string parts index mappings. Any miss yields None,
    so callers can chain optional lookups without guarding each level.
    """
    current: object = node
    for part in path:
        if isinstance(part, int):
            if not isinstance(current, list) or not 0 <= part < len(current):
                return None
            current = current[part]
        else:
            if not isinstance(current, Mapping):
                return None
            current = current.get(part, _MISSING)
            if current is _MISSING:
                return None
    return current


def _read_str_field(mapping: Mapping[str, object], key: str) -> Optional[str]:
    value = mapping.get(key)
    return value if isinstance(value, str) and value else None


def _read_int_like_field(mapping: Mapping[str, object], key: str) -> Optional[int]:
    """Integer field given as an int, a float, a decimal string or a '0x' hex string."""
    raw = mapping.get(key)
    if raw is None or isinstance(raw, bool):
        return None
    if isinstance(raw, (int, float)):
        return int(raw)
    if not isinstance(raw, str):
        return None
    text = raw.strip()
    try:
        return int(text, 16) if text.lower().startswith("0x") else int(text)
    except ValueError:
        return None


def _read_decimal_field(mapping: Mapping[str, object], key: str) -> Optional[Decimal]:
    raw = mapping.get(key)
    if raw is None or isinstance(raw, bool):
        return None
    try:
        return Decimal(str(raw))
    except InvalidOperation:
        return None
