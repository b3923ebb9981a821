"""Compiled configuration overrides.

Allow-overrides let a command through before any pack is consulted;
block-overrides deny it. Both are user-supplied regexes, so a pattern that
fails to compile is logged and skipped rather than failing evaluation.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Iterable, Optional, Sequence

from cmdguard.core.errors import PatternCompileError
from cmdguard.utils.log import get_logger
from cmdguard.utils.regex import GuardRegex, MatchSpan


logger = get_logger()


@dataclass(frozen=True)
class CompiledAllowOverride:
    regex: GuardRegex
    when: Optional[GuardRegex] = None
    reason: Optional[str] = None

    def matches(self, command: str) -> bool:
        if self.when is not None and not self.when.is_match(command):
            return False
        return self.regex.is_match(command)


@dataclass(frozen=True)
class CompiledBlockOverride:
    regex: GuardRegex
    reason: str

    def find(self, command: str) -> Optional[MatchSpan]:
        return self.regex.find(command)


@dataclass(frozen=True)
class BlockOverrideHit:
    override: CompiledBlockOverride
    span: MatchSpan

    @property
    def reason(self) -> str:
        return self.override.reason


def _compile(pattern: str, kind: str) -> Optional[GuardRegex]:
    try:
        return GuardRegex(pattern)
    except PatternCompileError as exc:
        logger.warning(
            "[overrides] Ignoring %s override with invalid pattern: %s",
            kind,
            exc,
            extra={"pattern": pattern, "kind": kind},
        )
        return None


class CompiledOverrides:
    """Allow and block overrides, compiled once at startup."""

    def __init__(
        self,
        allow: Sequence[CompiledAllowOverride] = (),
        block: Sequence[CompiledBlockOverride] = (),
    ):
        self.allow: tuple[CompiledAllowOverride, ...] = tuple(allow)
        self.block: tuple[CompiledBlockOverride, ...] = tuple(block)

    @classmethod
    def empty(cls) -> "CompiledOverrides":
        return cls()

    @classmethod
    def compile(
        cls,
        allow: Iterable[tuple[str, Optional[str], Optional[str]]] = (),
        block: Iterable[tuple[str, str]] = (),
    ) -> "CompiledOverrides":
        """Compile ``(pattern, when, reason)`` allow and ``(pattern, reason)`` block entries.

        An entry whose pattern (or precondition) does not compile is dropped
        with a warning; the remaining entries still apply.
        """
        compiled_allow: list[CompiledAllowOverride] = []
        for pattern, when, reason in allow:
            regex = _compile(pattern, "allow")
            if regex is None:
                continue
            when_regex = None
            if when:
                when_regex = _compile(when, "allow precondition")
                if when_regex is None:
                    continue
            compiled_allow.append(CompiledAllowOverride(regex, when_regex, reason))

        compiled_block: list[CompiledBlockOverride] = []
        for pattern, reason in block:
            regex = _compile(pattern, "block")
            if regex is not None:
                compiled_block.append(CompiledBlockOverride(regex, reason))

        return cls(compiled_allow, compiled_block)

    def check_allow(self, command: str) -> Optional[CompiledAllowOverride]:
        for override in self.allow:
            if override.matches(command):
                return override
        return None

    def check_block(self, command: str) -> Optional[BlockOverrideHit]:
        for override in self.block:
            span = override.find(command)
            if span is not None:
                return BlockOverrideHit(override, span)
        return None


__all__ = [
    "BlockOverrideHit",
    "CompiledAllowOverride",
    "CompiledBlockOverride",
    "CompiledOverrides",
]
