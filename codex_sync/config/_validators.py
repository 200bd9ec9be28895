from __future__ import annotations

from typing import Any


def _parse_positive_int(value: Any, *, name: str, default: int, allow_zero: bool = False) -> int:
    if value in (None, ""):
        return default
    try:
        parsed = int(str(value).strip())
    except ValueError as exc:
        msg = f"{name} must be a valid integer"
        raise ValueError(msg) from exc
    if parsed < 0 or (parsed == 0 and not allow_zero):
        msg = f"{name} must be positive"
        raise ValueError(msg)
    return parsed


def _parse_optional_limit(value: Any, *, name: str, default: int | None) -> int | None:
    """Parse a quota limit where ``0``/``none``/``unlimited`` disables the limit."""
    if value is None:
        return default
    if isinstance(value, str) and value.strip().lower() in {"", "none", "unlimited"}:
        return None if value.strip() else default
    parsed = _parse_positive_int(value, name=name, default=0, allow_zero=True)
    return parsed or None
