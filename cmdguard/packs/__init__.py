"""Pattern registry.

The registry owns every known pack and answers one question: given a
normalized command and the ordered list of enabled packs, which single
pattern (if any) decides it?

Registries are built by :func:`build_default_registry` and never modified
afterwards, so one instance can be shared across concurrent evaluations.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Callable, Iterable, Optional, Protocol, Sequence

from cmdguard.core.errors import UnknownPackError
from cmdguard.packs.base import (
    DecisionMode,
    DestructiveHit,
    DestructivePattern,
    Pack,
    SafePattern,
    Severity,
)
from cmdguard.utils.keywords import KeywordIndex
from cmdguard.utils.log import get_logger
from cmdguard.utils.regex import MatchSpan


logger = get_logger()


class RuleAllowlist(Protocol):
    """Anything that can say whether a ``pack:pattern`` rule is allowlisted."""

    def match_rule(self, pack_id: str, pattern_name: str) -> Optional[object]: ...


@dataclass(frozen=True)
class BypassedRule:
    """A destructive hit that was skipped because its rule is allowlisted."""

    pack_id: str
    pattern: DestructivePattern
    span: MatchSpan
    allowlist_hit: object


@dataclass(frozen=True)
class CheckResult:
    """Outcome of :meth:`PackRegistry.check_command`."""

    blocked: bool
    pack_id: Optional[str] = None
    pattern_name: Optional[str] = None
    reason: Optional[str] = None
    severity: Optional[Severity] = None
    explanation: Optional[str] = None
    matched_span: Optional[MatchSpan] = None
    safe_pattern: Optional[str] = None
    bypassed: tuple[BypassedRule, ...] = field(default_factory=tuple)

    @classmethod
    def not_blocked(cls, bypassed: Sequence[BypassedRule] = ()) -> "CheckResult":
        return cls(blocked=False, bypassed=tuple(bypassed))

    @classmethod
    def allowed_by_safe(
        cls, pack_id: str, pattern: SafePattern, bypassed: Sequence[BypassedRule] = ()
    ) -> "CheckResult":
        return cls(
            blocked=False,
            pack_id=pack_id,
            safe_pattern=pattern.name,
            bypassed=tuple(bypassed),
        )

    @classmethod
    def blocked_by(
        cls, pack_id: str, hit: DestructiveHit, bypassed: Sequence[BypassedRule] = ()
    ) -> "CheckResult":
        return cls(
            blocked=True,
            pack_id=pack_id,
            pattern_name=hit.pattern.name,
            reason=hit.pattern.reason,
            severity=hit.pattern.severity,
            explanation=hit.pattern.explanation,
            matched_span=hit.span,
            bypassed=tuple(bypassed),
        )


@dataclass(frozen=True)
class PackInfo:
    """Summary of a pack for listings."""

    id: str
    name: str
    description: str
    category: str
    keywords: tuple[str, ...]
    safe_pattern_count: int
    destructive_pattern_count: int
    enabled: bool


class PackRegistry:
    """Ordered, read-only collection of packs keyed by id."""

    def __init__(self, packs: Iterable[Pack]):
        self._packs: dict[str, Pack] = {}
        for pack in packs:
            if pack.id in self._packs:
                raise ValueError(f"Duplicate pack id: {pack.id}")
            self._packs[pack.id] = pack

    def __len__(self) -> int:
        return len(self._packs)

    def __contains__(self, pack_id: object) -> bool:
        return pack_id in self._packs

    def get(self, pack_id: str) -> Optional[Pack]:
        return self._packs.get(pack_id)

    def require(self, pack_id: str) -> Pack:
        pack = self._packs.get(pack_id)
        if pack is None:
            raise UnknownPackError(pack_id)
        return pack

    @property
    def pack_ids(self) -> list[str]:
        return list(self._packs)

    @property
    def categories(self) -> list[str]:
        seen: list[str] = []
        for pack in self._packs.values():
            if pack.category not in seen:
                seen.append(pack.category)
        return seen

    def is_known(self, pack_id: str) -> bool:
        """True for a pack id or a category id."""
        return pack_id in self._packs or pack_id in self.categories

    def expand_enabled(
        self, enabled: Sequence[str], disabled: Sequence[str] = ()
    ) -> list[str]:
        """Resolve enabled pack and category ids into an ordered list of pack ids.

        Order follows ``enabled``; a category expands to its packs sorted by
        id. Duplicates keep their first position. Anything listed in
        ``disabled`` (pack or category) is removed afterwards.
        """
        ordered: list[str] = []
        for entry in enabled:
            for pack_id in self._expand_one(entry):
                if pack_id not in ordered:
                    ordered.append(pack_id)

        removed = {pack_id for entry in disabled for pack_id in self._expand_one(entry)}
        return [pack_id for pack_id in ordered if pack_id not in removed]

    def _expand_one(self, entry: str) -> list[str]:
        if entry in self._packs:
            return [entry]
        members = sorted(p.id for p in self._packs.values() if p.category == entry)
        if not members:
            logger.debug("[registry] Ignoring unknown pack id", extra={"pack_id": entry})
        return members

    def enabled_packs(self, enabled_pack_ids: Sequence[str]) -> list[Pack]:
        return [self._packs[pack_id] for pack_id in enabled_pack_ids if pack_id in self._packs]

    def collect_keywords(self, enabled_pack_ids: Sequence[str]) -> list[str]:
        keywords: list[str] = []
        for pack in self.enabled_packs(enabled_pack_ids):
            for keyword in pack.keywords:
                if keyword not in keywords:
                    keywords.append(keyword)
        return keywords

    def keyword_index(self, enabled_pack_ids: Sequence[str]) -> Optional[KeywordIndex]:
        """Build the quick-reject index for the enabled packs.

        Returns ``None`` when an enabled pack declares no keywords: such a pack
        has to see every command, so quick-reject must not be used.
        """
        packs = self.enabled_packs(enabled_pack_ids)
        if any(not pack.keywords for pack in packs):
            return None
        return KeywordIndex(self.collect_keywords(enabled_pack_ids))

    def check_command(
        self,
        normalized_command: str,
        enabled_pack_ids: Sequence[str],
        allowlist: Optional[RuleAllowlist] = None,
    ) -> CheckResult:
        """Scan enabled packs in order; the first safe or destructive hit decides."""
        bypassed: list[BypassedRule] = []
        for pack in self.enabled_packs(enabled_pack_ids):
            if not pack.might_match(normalized_command):
                continue

            safe = pack.match_safe(normalized_command)
            if safe is not None:
                return CheckResult.allowed_by_safe(pack.id, safe, bypassed)

            for hit in pack.iter_destructive(normalized_command):
                allowlist_hit = self._allowlisted(allowlist, pack.id, hit.pattern)
                if allowlist_hit is not None:
                    bypassed.append(BypassedRule(pack.id, hit.pattern, hit.span, allowlist_hit))
                    continue
                return CheckResult.blocked_by(pack.id, hit, bypassed)

        return CheckResult.not_blocked(bypassed)

    @staticmethod
    def _allowlisted(
        allowlist: Optional[RuleAllowlist], pack_id: str, pattern: DestructivePattern
    ) -> Optional[object]:
        if allowlist is None or not pattern.name:
            return None
        return allowlist.match_rule(pack_id, pattern.name)

    def list_packs(self, enabled_pack_ids: Sequence[str] = ()) -> list[PackInfo]:
        enabled = set(enabled_pack_ids)
        return [
            PackInfo(
                id=pack.id,
                name=pack.name,
                description=pack.description,
                category=pack.category,
                keywords=pack.keywords,
                safe_pattern_count=len(pack.safe_patterns),
                destructive_pattern_count=len(pack.destructive_patterns),
                enabled=pack.id in enabled,
            )
            for pack in self._packs.values()
        ]


def _default_pack_factories() -> list[Callable[[], Pack]]:
    from cmdguard.packs.containers import docker
    from cmdguard.packs.core import filesystem, git
    from cmdguard.packs.database import postgresql
    from cmdguard.packs.infrastructure import terraform
    from cmdguard.packs.kubernetes import kubectl

    return [
        filesystem.create_pack,
        git.create_pack,
        terraform.create_pack,
        kubectl.create_pack,
        docker.create_pack,
        postgresql.create_pack,
    ]


def build_default_registry() -> PackRegistry:
    """Build a registry holding every shipped pack."""
    return PackRegistry(factory() for factory in _default_pack_factories())


__all__ = [
    "BypassedRule",
    "CheckResult",
    "DecisionMode",
    "Pack",
    "PackInfo",
    "PackRegistry",
    "Severity",
    "build_default_registry",
]
