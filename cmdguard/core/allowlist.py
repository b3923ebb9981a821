"""Layered rule allowlists.

An allowlist entry names a rule (``core.git:reset-hard``) or every rule in a
pack (``core.git:*``). A command that only trips allowlisted rules is let
through with a Bypass mode instead of being denied. Layers are consulted in
precedence order: project, then user, then system.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Iterable, Optional, Sequence


class AllowlistLayer(str, Enum):
    PROJECT = "project"
    USER = "user"
    SYSTEM = "system"


LAYER_PRECEDENCE = (AllowlistLayer.PROJECT, AllowlistLayer.USER, AllowlistLayer.SYSTEM)

WILDCARD = "*"


@dataclass(frozen=True)
class RuleSelector:
    pack_id: str
    pattern_name: str

    @classmethod
    def parse(cls, rule: str) -> "RuleSelector":
        """Parse ``pack_id:pattern_name``; raises ``ValueError`` when malformed."""
        pack_id, sep, pattern_name = rule.strip().partition(":")
        if not sep or not pack_id or not pattern_name:
            raise ValueError(f"Invalid rule id {rule!r}; expected 'pack_id:pattern_name'")
        return cls(pack_id, pattern_name)

    def matches(self, pack_id: str, pattern_name: str) -> bool:
        if self.pack_id != pack_id:
            return False
        return self.pattern_name == WILDCARD or self.pattern_name == pattern_name

    def __str__(self) -> str:
        return f"{self.pack_id}:{self.pattern_name}"


@dataclass(frozen=True)
class AllowlistEntry:
    selector: RuleSelector
    reason: str = ""


@dataclass(frozen=True)
class AllowlistHit:
    """The layer and entry that allowlisted a rule."""

    layer: AllowlistLayer
    entry: AllowlistEntry

    @property
    def reason(self) -> str:
        return self.entry.reason or f"Allowlisted by {self.layer.value} rule {self.entry.selector}"


class LayeredAllowlist:
    """Read-only allowlist entries grouped by layer."""

    def __init__(self, layers: Optional[dict[AllowlistLayer, Sequence[AllowlistEntry]]] = None):
        layers = layers or {}
        self._layers: tuple[tuple[AllowlistLayer, tuple[AllowlistEntry, ...]], ...] = tuple(
            (layer, tuple(layers.get(layer, ()))) for layer in LAYER_PRECEDENCE
        )

    def __bool__(self) -> bool:
        return any(entries for _, entries in self._layers)

    def __len__(self) -> int:
        return sum(len(entries) for _, entries in self._layers)

    def entries(self) -> Iterable[tuple[AllowlistLayer, AllowlistEntry]]:
        for layer, entries in self._layers:
            for entry in entries:
                yield layer, entry

    def match_rule(self, pack_id: str, pattern_name: str) -> Optional[AllowlistHit]:
        for layer, entry in self.entries():
            if entry.selector.matches(pack_id, pattern_name):
                return AllowlistHit(layer, entry)
        return None


__all__ = [
    "AllowlistEntry",
    "AllowlistHit",
    "AllowlistLayer",
    "LayeredAllowlist",
    "RuleSelector",
]
