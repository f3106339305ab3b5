"""Append-only recorder for the line-by-line calculation trace.

Every derived figure is recorded as a :class:`CalcLine` carrying a section tag,
a localized title and formula description, the operands it was computed from
and, optionally, a ``result_key`` other lines can refer to. A recorder lives for
exactly one calculation so line ids restart at ``line-1`` on every call.
"""

from __future__ import annotations

from collections.abc import Iterable
from typing import Any

from jptaxsim.backend.app.localization import Translator
from jptaxsim.backend.app.models import CalcLine, Term

from .calculators.utils import format_rate, format_yen


class TraceRecorder:
    """Collect calc lines for a single calculation."""

    def __init__(self, translator: Translator) -> None:
        self._translator = translator
        self._lines: list[CalcLine] = []
        self._counter = 0

    @property
    def locale(self) -> str:
        return self._translator.locale

    @property
    def lines(self) -> list[CalcLine]:
        return list(self._lines)

    def text(self, key: str, **values: Any) -> str:
        return self._translator(key, **values)

    def add(
        self,
        section: str,
        key: str,
        terms: Iterable[Term] = (),
        *,
        title: str | None = None,
        expression: str | None = None,
        display: str = "calc",
        result: int | float | None = None,
        result_key: str | None = None,
        notes: Iterable[str] = (),
        warnings: Iterable[str] = (),
        **params: Any,
    ) -> CalcLine:
        """Append a line whose title and expression come from ``key``.

        ``params`` fill placeholders in both catalogue messages; ``title`` and
        ``expression`` replace the catalogue text when given.
        """

        self._counter += 1
        line = CalcLine(
            id=f"line-{self._counter}",
            section=section,
            title=title if title is not None else self.text(f"{key}.title", **params),
            expression=(
                expression
                if expression is not None
                else self.text(f"{key}.expression", **params)
            ),
            terms=list(terms),
            display=display,
            result=result,
            result_key=result_key,
            notes=list(notes),
            warnings=list(warnings),
        )
        self._lines.append(line)
        return line

    def find(self, result_key: str) -> CalcLine | None:
        """Return the first line recorded under ``result_key``."""

        return next(
            (line for line in self._lines if line.result_key == result_key), None
        )

    # Term helpers -----------------------------------------------------------------

    def _name(self, name_key: str, label: str | None) -> str:
        return label if label is not None else self.text(f"terms.{name_key}")

    def yen(
        self,
        name_key: str,
        value: float,
        *,
        label: str | None = None,
        key: str | None = None,
        display: str | None = None,
    ) -> Term:
        return Term(
            key=key,
            name=self._name(name_key, label),
            value=value,
            unit="yen",
            display_value=display if display is not None else format_yen(value),
        )

    def rate(
        self,
        name_key: str,
        value: float,
        *,
        digits: int = 2,
        display: str | None = None,
    ) -> Term:
        return Term(
            name=self._name(name_key, None),
            value=value,
            unit="pct",
            display_value=display if display is not None else format_rate(value, digits),
        )

    def count(self, name_key: str, value: int) -> Term:
        return Term(
            name=self._name(name_key, None),
            value=value,
            unit="count",
            display_value=self.text("units.count", value=value),
        )

    def months(self, name_key: str, value: int) -> Term:
        return Term(
            name=self._name(name_key, None),
            value=value,
            unit="month",
            display_value=self.text("units.month", value=value),
        )

    def label(self, name_key: str, value: Any, *, display: str | None = None) -> Term:
        return Term(
            name=self._name(name_key, None),
            value=value,
            unit="text",
            display_value=display,
        )


__all__ = ["TraceRecorder"]
