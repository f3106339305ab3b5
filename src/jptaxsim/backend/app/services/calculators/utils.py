"""Utility helpers for calculator modules."""

from __future__ import annotations

import math
from collections.abc import Sequence
from typing import TypeVar

_Row = TypeVar("_Row")


def round_yen(value: float) -> int:
    """Round half up to a whole yen amount.

    Python's ``round`` uses banker's rounding, which would turn ``0.5`` into
    ``0``; premiums are rounded half up instead.
    """

    return int(math.floor(value + 0.5))


def floor_yen(value: float) -> int:
    """Truncate ``value`` down to a whole yen amount."""

    return int(math.floor(value))


def floor_thousand(value: float) -> int:
    """Drop fractions below 1,000 yen."""

    return int(math.floor(value / 1000)) * 1000


def prorate(annual: float, months: int) -> int:
    """Return the rounded share of ``annual`` covering ``months`` of the year."""

    return round_yen(annual * months / 12)


def select_bracket(amount: float, brackets: Sequence[_Row]) -> _Row | None:
    """Return the first bracket whose upper bound covers ``amount``."""

    for bracket in brackets:
        upper = getattr(bracket, "upper_bound")
        if upper is None or amount <= upper:
            return bracket
    return None


def format_percentage(value: float) -> str:
    """Return a human-readable percentage label for ``value``."""

    percentage = value * 100
    if float(int(percentage)) == percentage:
        return f"{int(percentage)}%"
    return f"{percentage:.2f}%"


def format_yen(value: float) -> str:
    """Return ``value`` as a signed, comma-grouped yen string."""

    sign = "-" if value < 0 else ""
    return f"{sign}￥{abs(math.trunc(value)):,}"


def format_rate(value: float, digits: int = 2) -> str:
    """Return the percentage followed by the raw coefficient, e.g. ``10.00%(0.1)``."""

    return f"{value * 100:.{digits}f}%({value})"


__all__ = [
    "floor_thousand",
    "floor_yen",
    "format_percentage",
    "format_rate",
    "format_yen",
    "prorate",
    "round_yen",
    "select_bracket",
]
