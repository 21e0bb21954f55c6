"""
Utility helpers.
"""

from __future__ import annotations

from typing import Any, Optional

from ladderbot.core.errors import ProtocolError


def fmt_num(value: float) -> str:
    """Render a number the way the venue expects it in a query string (no trailing zeros)."""
    if float(value).is_integer():
        return str(int(value))
    s = f"{value:.10f}".rstrip("0")
    return s.rstrip(".")


def to_float(raw: Any, name: str) -> float:
    if raw is None or raw == "":
        raise ProtocolError(f"missing numeric field {name!r}")
    try:
        return float(raw)
    except (TypeError, ValueError) as exc:
        raise ProtocolError(f"field {name!r} is not numeric: {raw!r}") from exc


def to_int(raw: Any, name: str) -> int:
    # venue sends unix timestamps as strings, sometimes with a fractional part
    return int(to_float(raw, name))


def opt_float(raw: Any, name: str) -> Optional[float]:
    if raw is None or raw == "":
        return None
    return to_float(raw, name)
