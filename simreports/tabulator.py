"""Counting people by combinations of property values."""

from __future__ import annotations

import math
from collections import Counter
from decimal import Decimal
from typing import Any, Hashable, Iterable, Iterator, Mapping

from .report import _format_value


def _format_time(t: float) -> str:
    """Render a simulation time the way report rows show it: 0 -> "0", 1.2 -> "1.2"."""
    value = float(t)
    if math.isnan(value):
        return "NaN"
    if math.isinf(value):
        return "inf" if value > 0 else "-inf"
    text = format(Decimal(repr(value)), "f")
    if "." in text:
        text = text.rstrip("0").rstrip(".")
    return text


def _column(spec: Any) -> tuple[Hashable, str]:
    if isinstance(spec, str):
        return spec, spec
    if isinstance(spec, tuple) and len(spec) == 2 and isinstance(spec[1], str):
        return spec[0], spec[1]
    name = getattr(spec, "__name__", None)
    if isinstance(name, str):
        return spec, name
    raise TypeError(
        "a tabulator column must be a property name, a (key, name) pair "
        f"or a named property, not {spec!r}"
    )


class Tabulator:
    """A list of person properties whose value combinations are counted.

    Each argument is a property name, a ``(key, name)`` pair, or a named
    object (such as a class) whose ``__name__`` is used as the column name.
    """

    def __init__(self, *args: Any) -> None:
        self._columns = [_column(spec) for spec in args]

    def columns(self) -> list[str]:
        """Return the column names, in order."""
        return [name for _, name in self._columns]

    def keys(self) -> list[Hashable]:
        """Return the keys used to look properties up on a person, in order."""
        return [key for key, _ in self._columns]

    def _value(self, person: Any, key: Hashable, name: str) -> str:
        if isinstance(person, Mapping):
            try:
                return _format_value(person[key])
            except KeyError:
                raise KeyError(f"person has no property {name}") from None
        try:
            return _format_value(getattr(person, name))
        except AttributeError:
            raise KeyError(f"person has no property {name}") from None

    def tabulate(self, people: Iterable[Any]) -> Counter[tuple[str, ...]]:
        """Count people by the formatted values of the tabulated properties.

        A person is either a mapping from property key to value or an object
        whose attributes are named after the columns.
        """
        return Counter(
            tuple(self._value(person, key, name) for key, name in self._columns)
            for person in people
        )

    def rows(self, time: float, people: Iterable[Any]) -> Iterator[tuple[Any, ...]]:
        """Yield report rows ``(t, *values, count)`` for each value combination."""
        time_text = _format_time(time)
        for values, count in self.tabulate(people).items():
            yield (time_text, *values, count)