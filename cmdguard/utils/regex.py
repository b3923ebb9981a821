"""Linear-time regex helpers.

All pack and override patterns are compiled with RE2, whose matching cost
grows linearly with the input. Command text is attacker-influenced, so a
backtracking engine is not an option here.

RE2 has no lookaround. A pattern that would need a negative lookahead is
expressed as a positive regex plus an ``exclude`` regex: a candidate match
only counts when the exclusion is not found inside the matched region.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Iterator, Optional

import re2

from cmdguard.core.errors import PatternCompileError


PREVIEW_LIMIT = 80


@dataclass(frozen=True)
class MatchSpan:
    """Half-open ``[start, end)`` character range into a command string."""

    start: int
    end: int

    def __post_init__(self) -> None:
        if self.start < 0 or self.end < self.start:
            raise ValueError(f"invalid span ({self.start}, {self.end})")

    def __len__(self) -> int:
        return self.end - self.start

    def slice(self, text: str) -> str:
        return text[self.start : self.end]

    def shift(self, offset: int) -> "MatchSpan":
        return MatchSpan(self.start + offset, self.end + offset)

    def as_tuple(self) -> tuple[int, int]:
        return (self.start, self.end)


def preview_text(text: str, limit: int = PREVIEW_LIMIT) -> str:
    """Shorten matched text for display, appending ``...`` when truncated."""
    if len(text) <= limit:
        return text
    return text[:limit] + "..."


def compile_pattern(pattern: str):
    """Compile ``pattern`` with RE2, raising :class:`PatternCompileError` on failure."""
    try:
        return re2.compile(pattern)
    except re2.error as exc:
        raise PatternCompileError(pattern, str(exc)) from exc


class GuardRegex:
    """A compiled positive pattern with an optional exclusion pattern."""

    __slots__ = ("pattern", "exclude", "_regex", "_exclude")

    def __init__(self, pattern: str, exclude: Optional[str] = None):
        self.pattern = pattern
        self.exclude = exclude
        self._regex = compile_pattern(pattern)
        self._exclude = compile_pattern(exclude) if exclude else None

    def __repr__(self) -> str:
        if self.exclude:
            return f"GuardRegex({self.pattern!r}, exclude={self.exclude!r})"
        return f"GuardRegex({self.pattern!r})"

    def _candidates(self, text: str) -> Iterator[MatchSpan]:
        for match in self._regex.finditer(text):
            start, end = match.span()
            if self._exclude is not None and self._exclude.search(text[start:end]):
                continue
            yield MatchSpan(start, end)

    def find(self, text: str) -> Optional[MatchSpan]:
        """Return the span of the first accepted match, or ``None``."""
        for span in self._candidates(text):
            return span
        return None

    def is_match(self, text: str) -> bool:
        return self.find(text) is not None


__all__ = [
    "GuardRegex",
    "MatchSpan",
    "PREVIEW_LIMIT",
    "compile_pattern",
    "preview_text",
]
