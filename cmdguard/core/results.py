"""Result types produced by command evaluation."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import TYPE_CHECKING, Any, Dict, Optional

from cmdguard.packs.base import DecisionMode, Severity
from cmdguard.utils.regex import MatchSpan, preview_text

if TYPE_CHECKING:
    from cmdguard.core.allowlist import AllowlistLayer
    from cmdguard.core.confidence import ConfidenceScore


class EvaluationDecision(str, Enum):
    """Binary outcome: only DENY stops the command."""

    ALLOW = "allow"
    DENY = "deny"


class MatchSource(str, Enum):
    """Which layer produced a match."""

    CONFIG_OVERRIDE = "config_override"
    LEGACY_PATTERN = "legacy_pattern"
    PACK = "pack"


@dataclass(frozen=True)
class PatternMatch:
    """Details about the pattern that matched a command."""

    reason: str
    source: MatchSource
    pack_id: Optional[str] = None
    pattern_name: Optional[str] = None
    severity: Optional[Severity] = None
    matched_span: Optional[MatchSpan] = None
    matched_text_preview: Optional[str] = None
    explanation: Optional[str] = None

    @property
    def rule_id(self) -> Optional[str]:
        if self.pack_id and self.pattern_name:
            return f"{self.pack_id}:{self.pattern_name}"
        return None

    @staticmethod
    def preview_for(command: str, span: Optional[MatchSpan]) -> Optional[str]:
        if span is None:
            return None
        return preview_text(span.slice(command))

    def to_dict(self) -> Dict[str, Any]:
        return {
            "reason": self.reason,
            "source": self.source.value,
            "pack_id": self.pack_id,
            "pattern_name": self.pattern_name,
            "rule_id": self.rule_id,
            "severity": self.severity.value if self.severity else None,
            "matched_span": list(self.matched_span.as_tuple()) if self.matched_span else None,
            "matched_text_preview": self.matched_text_preview,
            "explanation": self.explanation,
        }


@dataclass(frozen=True)
class AllowlistOverride:
    """A match that an allowlist entry let through."""

    layer: "AllowlistLayer"
    reason: str
    matched: PatternMatch

    def to_dict(self) -> Dict[str, Any]:
        return {
            "layer": self.layer.value,
            "reason": self.reason,
            "matched": self.matched.to_dict(),
        }


@dataclass(frozen=True)
class EvaluationResult:
    """The decision for one command.

    Invariant: a DENY decision always carries ``pattern_info``.
    """

    decision: EvaluationDecision
    pattern_info: Optional[PatternMatch] = None
    allowlist_override: Optional[AllowlistOverride] = None
    effective_mode: DecisionMode = DecisionMode.ALLOW
    confidence: Optional["ConfidenceScore"] = None
    skipped_due_to_budget: bool = False

    def __post_init__(self) -> None:
        if self.decision is EvaluationDecision.DENY and self.pattern_info is None:
            raise ValueError("a deny decision requires pattern_info")

    @classmethod
    def allowed(cls) -> "EvaluationResult":
        return cls(decision=EvaluationDecision.ALLOW)

    @classmethod
    def denied(
        cls, pattern_info: PatternMatch, confidence: Optional["ConfidenceScore"] = None
    ) -> "EvaluationResult":
        return cls(
            decision=EvaluationDecision.DENY,
            pattern_info=pattern_info,
            effective_mode=DecisionMode.DENY,
            confidence=confidence,
        )

    @classmethod
    def denied_by_config(
        cls, reason: str, command: str, span: Optional[MatchSpan] = None
    ) -> "EvaluationResult":
        return cls.denied(
            PatternMatch(
                reason=reason,
                source=MatchSource.CONFIG_OVERRIDE,
                matched_span=span,
                matched_text_preview=PatternMatch.preview_for(command, span),
            )
        )

    @classmethod
    def denied_by_legacy(
        cls, reason: str, command: str, span: Optional[MatchSpan] = None
    ) -> "EvaluationResult":
        return cls.denied(
            PatternMatch(
                reason=reason,
                source=MatchSource.LEGACY_PATTERN,
                matched_span=span,
                matched_text_preview=PatternMatch.preview_for(command, span),
            )
        )

    @classmethod
    def not_blocking(
        cls,
        pattern_info: PatternMatch,
        mode: DecisionMode,
        confidence: Optional["ConfidenceScore"] = None,
    ) -> "EvaluationResult":
        """A pack match that is surfaced but does not block (warn or logged allow)."""
        return cls(
            decision=EvaluationDecision.ALLOW,
            pattern_info=pattern_info,
            effective_mode=mode,
            confidence=confidence,
        )

    @classmethod
    def allowed_by_allowlist(
        cls, matched: PatternMatch, layer: "AllowlistLayer", reason: str
    ) -> "EvaluationResult":
        return cls(
            decision=EvaluationDecision.ALLOW,
            pattern_info=matched,
            allowlist_override=AllowlistOverride(layer=layer, reason=reason, matched=matched),
            effective_mode=DecisionMode.BYPASS,
        )

    @property
    def is_allowed(self) -> bool:
        return self.decision is EvaluationDecision.ALLOW

    @property
    def is_denied(self) -> bool:
        return self.decision is EvaluationDecision.DENY

    @property
    def reason(self) -> Optional[str]:
        return self.pattern_info.reason if self.pattern_info else None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "decision": self.decision.value,
            "effective_mode": self.effective_mode.value,
            "pattern_info": self.pattern_info.to_dict() if self.pattern_info else None,
            "allowlist_override": (
                self.allowlist_override.to_dict() if self.allowlist_override else None
            ),
            "confidence": self.confidence.value if self.confidence else None,
            "skipped_due_to_budget": self.skipped_due_to_budget,
        }


__all__ = [
    "AllowlistOverride",
    "EvaluationDecision",
    "EvaluationResult",
    "MatchSource",
    "PatternMatch",
]
