"""Numeric helpers for before/after comparisons.

Every function here is pure and total: absent operands yield ``None``
(or the insufficient-data sentinel for display strings), never zero and
never an exception.
"""

from __future__ import annotations

import math
from typing import Any

from hrv_report.constants import INSUFFICIENT_DATA, SCORE_MAX, SCORE_MIN

Number = int | float


def to_number(value: Any) -> Number | None:
    """Coerce *value* to a finite real number, or ``None``.

    Accepts ints, floats and numeric-looking strings (``"20"``,
    ``" 35.5 "``).  Booleans, NaN and infinities are rejected.
    Integral values parsed from strings come back as ``int``.
    """
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value
    if isinstance(value, float):
        return value if math.isfinite(value) else None
    if isinstance(value, str):
        text = value.strip()
        if not text:
            return None
        try:
            parsed = float(text)
        except ValueError:
            return None
        if not math.isfinite(parsed):
            return None
        return int(parsed) if parsed.is_integer() else parsed
    return None


def to_score(value: Any) -> Number | None:
    """Coerce a 0-10 self-report score; out-of-range values are absent."""
    number = to_number(value)
    if number is None or not SCORE_MIN <= number <= SCORE_MAX:
        return None
    return number


def to_bool(value: Any) -> bool | None:
    """Strict boolean: only real booleans pass, everything else is absent."""
    return value if isinstance(value, bool) else None


def delta(before: Any, after: Any) -> Number | None:
    """``after - before`` when both operands are present."""
    b = to_number(before)
    a = to_number(after)
    if b is None or a is None:
        return None
    return a - b


def _round_half_up(value: float) -> int:
    return math.floor(value + 0.5)


def percent_delta(before: Any, after: Any) -> int | None:
    """Whole-number percentage change from *before* to *after*.

    Absent when either operand is missing or *before* is zero.  Halves
    round upwards (``12.5 -> 13``, ``-12.5 -> -12``).
    """
    b = to_number(before)
    a = to_number(after)
    if b is None or a is None or b == 0:
        return None
    return _round_half_up(100 * (a - b) / b)


def format_number(value: Number) -> str:
    """Compact display form: ``20.0 -> "20"``, ``15.099999 -> "15.1"``."""
    return f"{value:g}"


def format_delta(before: Any, after: Any) -> str:
    """Human string ``"B → A（±D / ±P%）"`` or the insufficient-data sentinel."""
    b = to_number(before)
    a = to_number(after)
    if b is None or a is None:
        return INSUFFICIENT_DATA

    d = a - b
    p = percent_delta(b, a)
    sign = "+" if d >= 0 else ""
    text = f"{format_number(b)} → {format_number(a)}（{sign}{format_number(d)}"
    if p is not None:
        p_sign = "+" if p >= 0 else ""
        text += f" / {p_sign}{p}%"
    return text + "）"
