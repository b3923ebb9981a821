"""Command evaluation pipeline.

:func:`evaluate_command` decides a single command. The steps run in a
fixed order and return at the first one that decides:

1. empty command: allow
2. allow-overrides from configuration
3. block-overrides from configuration
4. keyword quick-reject
5. normalization of absolute binary paths
6. caller-supplied legacy whitelist and blacklist
7. pack registry scan, with allowlist bypass and severity policy
8. confidence scoring of a denial, which may soften it to a warning

Every input is read-only and nothing is cached between calls, so the same
inputs always produce the same result and concurrent calls need no locking.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import (
    Any,
    Callable,
    List,
    Optional,
    Protocol,
    Sequence,
    Union,
    runtime_checkable,
)

from cmdguard.core.allowlist import LayeredAllowlist
from cmdguard.core.confidence import apply_confidence_scoring
from cmdguard.core.config import GuardConfig
from cmdguard.core.overrides import CompiledOverrides
from cmdguard.core.results import EvaluationResult, MatchSource, PatternMatch
from cmdguard.packs import CheckResult, PackRegistry
from cmdguard.packs.base import DecisionMode, DestructiveHit
from cmdguard.utils.keywords import KeywordIndex, quick_reject
from cmdguard.utils.log import get_logger, match_extra
from cmdguard.utils.normalize import NormalizedCommand, normalize_with_offsets
from cmdguard.utils.regex import MatchSpan


logger = get_logger()


@runtime_checkable
class LegacySafePattern(Protocol):
    """Whitelist entry supplied by an embedding application."""

    def is_match(self, command: str) -> bool: ...


@runtime_checkable
class LegacyDestructivePattern(Protocol):
    """Blacklist entry supplied by an embedding application.

    Implementations may also provide ``find_span(command)`` returning a
    ``(start, end)`` tuple or :class:`MatchSpan` for richer reporting.
    """

    def is_match(self, command: str) -> bool: ...

    def reason(self) -> str: ...


@dataclass(frozen=True)
class TraceStep:
    """One pipeline step recorded for ``cmdguard explain``."""

    step: str
    outcome: str
    detail: Optional[str] = None


KeywordInput = Union[KeywordIndex, Sequence[str], None]


def _note(trace: Optional[List[TraceStep]], step: str, outcome: str, detail: Any = None) -> None:
    if trace is not None:
        trace.append(TraceStep(step, outcome, None if detail is None else str(detail)))


def _legacy_span(
    pattern: LegacyDestructivePattern, normalized: NormalizedCommand
) -> Optional[MatchSpan]:
    find_span = getattr(pattern, "find_span", None)
    if find_span is None:
        return None
    found = find_span(normalized.text)
    if found is None:
        return None
    span = found if isinstance(found, MatchSpan) else MatchSpan(*found)
    return normalized.to_raw_span(span)


def _pack_match(command: str, normalized: NormalizedCommand, check: CheckResult) -> PatternMatch:
    span = normalized.to_raw_span(check.matched_span) if check.matched_span else None
    return PatternMatch(
        reason=check.reason or "Matched a destructive pattern",
        source=MatchSource.PACK,
        pack_id=check.pack_id,
        pattern_name=check.pattern_name,
        severity=check.severity,
        matched_span=span,
        matched_text_preview=PatternMatch.preview_for(command, span),
        explanation=check.explanation,
    )


def evaluate_command(
    command: str,
    config: GuardConfig,
    enabled_keywords: KeywordInput,
    registry: PackRegistry,
    overrides: CompiledOverrides,
    *,
    enabled_pack_ids: Optional[Sequence[str]] = None,
    sanitized_command: Optional[str] = None,
    sanitizer: Optional[Callable[[str], str]] = None,
    allowlist: Optional[LayeredAllowlist] = None,
    legacy_safe_patterns: Optional[Sequence[LegacySafePattern]] = None,
    legacy_destructive_patterns: Optional[Sequence[LegacyDestructivePattern]] = None,
    trace: Optional[List[TraceStep]] = None,
) -> EvaluationResult:
    """Decide whether ``command`` may run.

    Args:
        command: Raw command text exactly as it would be executed.
        config: Effective configuration (confidence settings and policy).
        enabled_keywords: Keywords of the enabled packs, or a prebuilt
            :class:`KeywordIndex`. ``None`` disables quick-reject, which is
            required when an enabled pack declares no keywords.
        registry: Pack registry to scan.
        overrides: Compiled allow and block overrides.
        enabled_pack_ids: Ordered pack ids to scan. Defaults to expanding
            ``config.packs``.
        sanitized_command: Same-length copy of ``command`` with non-executed
            regions masked. When omitted, ``sanitizer`` (if any) produces it
            on demand.
        sanitizer: Callable producing the sanitized command.
        allowlist: Rule allowlist; allowlisted rules are bypassed.
        legacy_safe_patterns: Extra whitelist entries checked before packs.
        legacy_destructive_patterns: Extra blacklist entries checked before packs.
        trace: When given, each step appends a :class:`TraceStep`.
    """
    if not command:
        _note(trace, "empty", "allow")
        return EvaluationResult.allowed()

    allow_override = overrides.check_allow(command)
    if allow_override is not None:
        logger.debug(
            "[evaluator] Command allowed by override",
            extra={"pattern": allow_override.regex.pattern},
        )
        _note(trace, "allow-override", "allow", allow_override.regex.pattern)
        return EvaluationResult.allowed()
    _note(trace, "allow-override", "no match")

    block_hit = overrides.check_block(command)
    if block_hit is not None:
        logger.debug(
            "[evaluator] Command blocked by override",
            extra={"pattern": block_hit.override.regex.pattern},
        )
        _note(trace, "block-override", "deny", block_hit.override.regex.pattern)
        return EvaluationResult.denied_by_config(block_hit.reason, command, block_hit.span)
    _note(trace, "block-override", "no match")

    if enabled_keywords is None:
        _note(trace, "quick-reject", "skipped", "an enabled pack has no keywords")
    elif quick_reject(command, enabled_keywords):
        _note(trace, "quick-reject", "allow", "no enabled keyword present")
        return EvaluationResult.allowed()
    else:
        _note(trace, "quick-reject", "keyword present")

    normalized = normalize_with_offsets(command)
    _note(trace, "normalize", "changed" if normalized.changed else "unchanged", normalized.text)

    for safe in legacy_safe_patterns or ():
        if safe.is_match(normalized.text):
            _note(trace, "legacy-whitelist", "allow")
            return EvaluationResult.allowed()
    for destructive in legacy_destructive_patterns or ():
        if destructive.is_match(normalized.text):
            _note(trace, "legacy-blacklist", "deny", destructive.reason())
            return EvaluationResult.denied_by_legacy(
                destructive.reason(), command, _legacy_span(destructive, normalized)
            )

    if enabled_pack_ids is None:
        enabled_pack_ids = registry.expand_enabled(config.packs.enabled, config.packs.disabled)
    check = registry.check_command(normalized.text, enabled_pack_ids, allowlist)

    if not check.blocked:
        if check.bypassed:
            bypassed = check.bypassed[0]
            matched = _pack_match(
                command,
                normalized,
                CheckResult.blocked_by(
                    bypassed.pack_id, DestructiveHit(bypassed.pattern, bypassed.span)
                ),
            )
            allowlist_hit = bypassed.allowlist_hit
            _note(trace, "allowlist", "bypass", matched.rule_id)
            return EvaluationResult.allowed_by_allowlist(
                matched, allowlist_hit.layer, allowlist_hit.reason
            )
        if check.safe_pattern:
            _note(trace, "packs", "safe", f"{check.pack_id}:{check.safe_pattern}")
        else:
            _note(trace, "packs", "no match")
        return EvaluationResult.allowed()

    matched = _pack_match(command, normalized, check)
    _note(trace, "packs", "match", matched.rule_id or matched.reason)

    base_mode = config.policy.resolve(check.pack_id, check.pattern_name, check.severity)
    if base_mode is not DecisionMode.DENY:
        _note(trace, "policy", base_mode.value)
        return EvaluationResult.not_blocking(matched, base_mode)

    if sanitized_command is None and sanitizer is not None and config.confidence.enabled:
        sanitized_command = sanitizer(command)
    scored = apply_confidence_scoring(
        command, sanitized_command, matched, base_mode, config.confidence
    )
    if scored.score is not None:
        _note(trace, "confidence", f"{scored.score.value:.2f}", scored.mode.value)

    if scored.downgraded:
        logger.debug(
            "[evaluator] Low-confidence match downgraded to warning",
            extra=match_extra(matched, score=scored.score.value if scored.score else None),
        )
        return EvaluationResult.not_blocking(matched, DecisionMode.WARN, scored.score)

    logger.debug("[evaluator] Command denied", extra=match_extra(matched))
    return EvaluationResult.denied(matched, scored.score)


__all__ = [
    "LegacyDestructivePattern",
    "LegacySafePattern",
    "TraceStep",
    "evaluate_command",
]
