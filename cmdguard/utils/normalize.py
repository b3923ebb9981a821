"""Command normalization.

Rewrites absolute invocations of known binaries (``/usr/bin/git``,
``/bin/rm``) into their bare names so pack patterns only have to match
``git`` and ``rm``.
"""

from __future__ import annotations

from dataclasses import dataclass

import re2

from cmdguard.utils.regex import MatchSpan


KNOWN_BINARIES = (
    "rm",
    "git",
    "docker",
    "kubectl",
    "terraform",
    "psql",
    "dropdb",
    "pg_dump",
)

# Group 1: command position (start, separator or "$("). Group 2: blanks.
# Group 3: the directory prefix to drop. Group 4: binary name.
_PATH_PREFIX = re2.compile(
    r"(^|[;&|(`\n]|\$\()([ \t]*)(/(?:[^\s/;&|()`]*/)*s?bin/)("
    + "|".join(re2.escape(name) for name in KNOWN_BINARIES)
    + r")(?:\s|$)"
)


@dataclass(frozen=True)
class NormalizedCommand:
    """Normalized text plus a map from its positions back to the raw command."""

    raw: str
    text: str
    offsets: tuple[int, ...]

    @property
    def changed(self) -> bool:
        return self.text != self.raw

    def to_raw_span(self, span: MatchSpan) -> MatchSpan:
        """Translate a span over :attr:`text` into a span over :attr:`raw`."""
        if not self.changed:
            return span
        if span.start >= len(self.text):
            return MatchSpan(len(self.raw), len(self.raw))
        start = self.offsets[span.start]
        if span.end == span.start:
            return MatchSpan(start, start)
        end = self.offsets[span.end - 1] + 1
        return MatchSpan(start, end)


def normalize_with_offsets(command: str) -> NormalizedCommand:
    """Normalize ``command`` and keep track of where each character came from."""
    removed: list[tuple[int, int]] = []
    pos = 0
    while pos <= len(command):
        match = _PATH_PREFIX.search(command, pos)
        if match is None:
            break
        removed.append((match.start(3), match.end(3)))
        # Resume at the binary name so "a;/bin/rm;/bin/git" strips both.
        pos = match.end(4)

    if not removed:
        return NormalizedCommand(command, command, tuple(range(len(command))))

    pieces: list[str] = []
    offsets: list[int] = []
    cursor = 0
    for start, end in removed:
        pieces.append(command[cursor:start])
        offsets.extend(range(cursor, start))
        cursor = end
    pieces.append(command[cursor:])
    offsets.extend(range(cursor, len(command)))
    return NormalizedCommand(command, "".join(pieces), tuple(offsets))


def normalize(command: str) -> str:
    """Return ``command`` with absolute paths to known binaries reduced to bare names."""
    if "/" not in command:
        return command
    return normalize_with_offsets(command).text


__all__ = [
    "KNOWN_BINARIES",
    "NormalizedCommand",
    "normalize",
    "normalize_with_offsets",
]
