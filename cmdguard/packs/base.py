"""Pack data model.

A pack bundles the safe and destructive patterns for one external tool.
Packs are plain frozen values: they are built once when the registry is
constructed and never change afterwards.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Iterable, Optional

from cmdguard.utils.regex import GuardRegex, MatchSpan


class Severity(str, Enum):
    """Criticality of a destructive pattern.

    Ordering: critical > high > medium > low.
    """

    CRITICAL = "critical"
    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"

    @property
    def label(self) -> str:
        return self.value.capitalize()


class DecisionMode(str, Enum):
    """Graduated outcome of an evaluation.

    - allow: nothing matched, or a match was deliberately let through
    - warn: a match that does not block but should be surfaced
    - deny: blocks execution
    - bypass: a match skipped because an allowlist entry covers its rule
    """

    ALLOW = "allow"
    WARN = "warn"
    DENY = "deny"
    BYPASS = "bypass"

    @property
    def blocks(self) -> bool:
        return self is DecisionMode.DENY


@dataclass(frozen=True)
class SafePattern:
    """A whitelist pattern; a match ends evaluation as not blocked."""

    name: str
    regex: GuardRegex

    def find(self, command: str) -> Optional[MatchSpan]:
        return self.regex.find(command)


@dataclass(frozen=True)
class DestructivePattern:
    """A blacklist pattern with the metadata reported when it matches."""

    name: Optional[str]
    regex: GuardRegex
    reason: str
    severity: Severity = Severity.HIGH
    explanation: Optional[str] = None

    def find(self, command: str) -> Optional[MatchSpan]:
        return self.regex.find(command)


def safe_pattern(name: str, pattern: str, *, exclude: Optional[str] = None) -> SafePattern:
    return SafePattern(name=name, regex=GuardRegex(pattern, exclude))


_CHAINING = r"[;&|`\n]|\$\("


def safe_command(name: str, pattern: str, *, exclude: Optional[str] = None) -> SafePattern:
    """Safe pattern that only applies when it covers the whole command.

    A safe match allows the command outright, so it must not fire on a line
    that chains further commands after (or before) the harmless part.
    """
    whole = r"^\s*(?:" + pattern + r").*$"
    exclusion = _CHAINING if exclude is None else f"(?:{exclude})|{_CHAINING}"
    return SafePattern(name=name, regex=GuardRegex(whole, exclusion))


def destructive_pattern(
    name: Optional[str],
    pattern: str,
    reason: str,
    severity: Severity = Severity.HIGH,
    *,
    explanation: Optional[str] = None,
    exclude: Optional[str] = None,
) -> DestructivePattern:
    return DestructivePattern(
        name=name,
        regex=GuardRegex(pattern, exclude),
        reason=reason,
        severity=severity,
        explanation=explanation,
    )


@dataclass(frozen=True)
class DestructiveHit:
    """A destructive pattern together with where it matched."""

    pattern: DestructivePattern
    span: MatchSpan


@dataclass(frozen=True)
class Pack:
    """A named bundle of patterns for one tool, e.g. ``core.git``.

    An empty ``keywords`` tuple means the pack cannot be skipped by keyword
    and is always evaluated.
    """

    id: str
    name: str
    description: str
    keywords: tuple[str, ...]
    safe_patterns: tuple[SafePattern, ...] = ()
    destructive_patterns: tuple[DestructivePattern, ...] = ()

    def __post_init__(self) -> None:
        names = [p.name for p in self.destructive_patterns if p.name]
        duplicates = {n for n in names if names.count(n) > 1}
        if duplicates:
            raise ValueError(f"pack {self.id} has duplicate pattern names: {sorted(duplicates)}")

    @property
    def category(self) -> str:
        return self.id.split(".", 1)[0]

    def might_match(self, command: str) -> bool:
        """Cheap keyword pre-check; False means no pattern can match."""
        if not self.keywords:
            return True
        lowered = command.lower()
        return any(keyword.lower() in lowered for keyword in self.keywords)

    def match_safe(self, command: str) -> Optional[SafePattern]:
        for pattern in self.safe_patterns:
            if pattern.find(command) is not None:
                return pattern
        return None

    def iter_destructive(self, command: str) -> Iterable[DestructiveHit]:
        """Yield destructive matches in declaration order."""
        for pattern in self.destructive_patterns:
            span = pattern.find(command)
            if span is not None:
                yield DestructiveHit(pattern, span)

    def match_destructive(self, command: str) -> Optional[DestructiveHit]:
        for hit in self.iter_destructive(command):
            return hit
        return None

    def get_pattern(self, name: str) -> Optional[DestructivePattern]:
        for pattern in self.destructive_patterns:
            if pattern.name == name:
                return pattern
        return None


__all__ = [
    "DecisionMode",
    "DestructiveHit",
    "DestructivePattern",
    "Pack",
    "SafePattern",
    "Severity",
    "destructive_pattern",
    "safe_command",
    "safe_pattern",
]
