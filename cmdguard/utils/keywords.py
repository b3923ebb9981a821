"""Keyword quick-reject filter.

Most commands an agent runs (``ls``, ``cat``, ``pytest``) contain none of
the keywords any enabled pack cares about. Scanning for all keywords at once
lets those commands be allowed without evaluating a single pack regex.
"""

from __future__ import annotations

from functools import lru_cache
from typing import Iterable, Optional, Sequence

import re2


class KeywordIndex:
    """All enabled keywords folded into one RE2 alternation of literals."""

    __slots__ = ("keywords", "_regex")

    def __init__(self, keywords: Iterable[str]):
        seen: list[str] = []
        for keyword in keywords:
            if keyword and keyword not in seen:
                seen.append(keyword)
        self.keywords: tuple[str, ...] = tuple(seen)
        # Longest first so the reported hit is the most specific literal.
        ordered = sorted(self.keywords, key=len, reverse=True)
        self._regex = (
            re2.compile("(?i)" + "|".join(re2.escape(k) for k in ordered)) if ordered else None
        )

    def __len__(self) -> int:
        return len(self.keywords)

    def __repr__(self) -> str:
        return f"KeywordIndex({list(self.keywords)!r})"

    def first_hit(self, command: str) -> Optional[str]:
        """Return the first keyword found in ``command``, if any."""
        if self._regex is None:
            return None
        match = self._regex.search(command)
        return match.group() if match else None

    def contains_any(self, command: str) -> bool:
        return self.first_hit(command) is not None

    def quick_reject(self, command: str) -> bool:
        """True when no keyword occurs in ``command``."""
        return not self.contains_any(command)


@lru_cache(maxsize=64)
def _cached_index(keywords: tuple[str, ...]) -> KeywordIndex:
    return KeywordIndex(keywords)


def quick_reject(command: str, enabled_keywords: "Sequence[str] | KeywordIndex") -> bool:
    """Return True when none of ``enabled_keywords`` occurs in ``command``.

    Keywords match case-insensitively, so ``DROP`` also covers ``drop``.

    A True result means the command cannot match any enabled pack and may be
    allowed without running pattern matching. An empty keyword set rejects
    everything, since there is nothing to look for.
    """
    if isinstance(enabled_keywords, KeywordIndex):
        return enabled_keywords.quick_reject(command)
    return _cached_index(tuple(enabled_keywords)).quick_reject(command)


__all__ = ["KeywordIndex", "quick_reject"]
