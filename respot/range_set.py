"""Sets of byte ranges, kept sorted, disjoint and non-touching."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Iterator


@dataclass(frozen=True)
class Range:
    """A half-open interval ``[start, start + length)``."""

    start: int
    length: int

    def end(self) -> int:
        """Return the first position past the range."""
        return self.start + self.length

    def __str__(self) -> str:
        return f"[{self.start}, {self.start + self.length - 1}]"


class RangeSet:
    """An ordered set of disjoint, non-touching ranges."""

    def __init__(self) -> None:
        self._ranges: list[Range] = []

    def __str__(self) -> str:
        return "(" + "".join(str(r) for r in self._ranges) + ")"

    def __repr__(self) -> str:
        return f"RangeSet({self._ranges!r})"

    def is_empty(self) -> bool:
        return not self._ranges

    def __len__(self) -> int:
        """Total number of positions covered by the set."""
        return sum(r.length for r in self._ranges)

    def get_range(self, index: int) -> Range:
        return self._ranges[index]

    def __iter__(self) -> Iterator[Range]:
        return iter(list(self._ranges))

    def copy(self) -> RangeSet:
        result = RangeSet()
        result._ranges = list(self._ranges)
        return result

    def contains(self, value: int) -> bool:
        for r in self._ranges:
            if value < r.start:
                return False
            if value < r.end():
                return True
        return False

    def contained_length_from_value(self, value: int) -> int:
        """Length of the covered run that starts at ``value``, or 0."""
        for r in self._ranges:
            if value < r.start:
                return 0
            if value < r.end():
                return r.end() - value
        return 0

    def contains_range_set(self, other: RangeSet) -> bool:
        return all(
            self.contained_length_from_value(r.start) >= r.length for r in other._ranges
        )

    def add_range(self, range: Range) -> None:
        if range.length == 0:
            return
        before = [r for r in self._ranges if r.end() < range.start]
        after = [r for r in self._ranges if r.start > range.end()]
        touching = [
            r
            for r in self._ranges
            if range.start <= r.end() and r.start <= range.end()
        ]
        start = min([range.start, *(r.start for r in touching)])
        end = max([range.end(), *(r.end() for r in touching)])
        self._ranges = [*before, Range(start, end - start), *after]

    def add_range_set(self, other: RangeSet) -> None:
        for r in other._ranges:
            self.add_range(r)

    def union(self, other: RangeSet) -> RangeSet:
        result = self.copy()
        result.add_range_set(other)
        return result

    def subtract_range(self, range: Range) -> None:
        if range.length == 0:
            return
        remaining: list[Range] = []
        for r in self._ranges:
            if r.end() <= range.start or r.start >= range.end():
                remaining.append(r)
                continue
            if r.start < range.start:
                remaining.append(Range(r.start, range.start - r.start))
            if range.end() < r.end():
                remaining.append(Range(range.end(), r.end() - range.end()))
        self._ranges = remaining

    def subtract_range_set(self, other: RangeSet) -> None:
        for r in other._ranges:
            self.subtract_range(r)

    def minus(self, other: RangeSet) -> RangeSet:
        result = self.copy()
        result.subtract_range_set(other)
        return result

    def intersection(self, other: RangeSet) -> RangeSet:
        result = RangeSet()
        for a in self._ranges:
            for b in other._ranges:
                start = max(a.start, b.start)
                end = min(a.end(), b.end())
                if start < end:
                    result.add_range(Range(start, end - start))
        return result