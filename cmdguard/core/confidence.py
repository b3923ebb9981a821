"""Confidence scoring for pack matches.

A large share of false denials come from dangerous-looking text that the
shell never runs: a commit message mentioning ``rm -rf``, a grep pattern, a
heredoc fed to ``cat``. Given the sanitized command (same length as the raw
command, with non-executed regions blanked), this module estimates how
likely a match is to be executed, and downgrades DENY to WARN when that
likelihood is low.

Score, in ``[0, 1]``::

    0.1 + 0.4 * head_intact + 0.3 * intact_fraction + 0.2 * at_command_start

``head_intact`` is whether the first non-blank character of the match
survived sanitizing. ``intact_fraction`` is the share of non-blank matched
characters that survived. ``at_command_start`` is whether the match begins
where a new command begins. A fully masked match in the middle of an
argument scores 0.1; an untouched match at the start of a command scores 1.0.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

from cmdguard.core.config import ConfidenceConfig
from cmdguard.core.results import PatternMatch
from cmdguard.packs.base import DecisionMode, Severity
from cmdguard.utils.regex import MatchSpan


BASE_WEIGHT = 0.1
HEAD_WEIGHT = 0.4
INTACT_WEIGHT = 0.3
COMMAND_START_WEIGHT = 0.2

_COMMAND_SEPARATOR_ENDINGS = (";", "&", "|", "(", "`", "\n", "$(")


@dataclass(frozen=True)
class ConfidenceScore:
    value: float
    head_intact: bool
    intact_fraction: float
    at_command_start: bool

    def is_low(self, threshold: float) -> bool:
        return self.value < threshold


@dataclass(frozen=True)
class ConfidenceResult:
    mode: DecisionMode
    score: Optional[ConfidenceScore] = None
    downgraded: bool = False


def is_command_start(command: str, offset: int) -> bool:
    """True when ``offset`` is where a new simple command begins."""
    preceding = command[:offset].rstrip(" \t")
    if not preceding:
        return True
    return preceding.endswith(_COMMAND_SEPARATOR_ENDINGS)


def compute_match_confidence(
    raw_command: str, sanitized_command: Optional[str], span: MatchSpan
) -> ConfidenceScore:
    """Score how likely the text at ``span`` is executed rather than data.

    Without a usable sanitized command the match is treated as intact.
    """
    head_intact = True
    intact_fraction = 1.0
    if sanitized_command is not None and len(sanitized_command) == len(raw_command):
        end = min(span.end, len(raw_command))
        positions = [i for i in range(span.start, end) if not raw_command[i].isspace()]
        if positions:
            intact = [raw_command[i] == sanitized_command[i] for i in positions]
            head_intact = intact[0]
            intact_fraction = sum(intact) / len(intact)

    at_start = is_command_start(raw_command, span.start)
    value = (
        BASE_WEIGHT
        + HEAD_WEIGHT * float(head_intact)
        + INTACT_WEIGHT * intact_fraction
        + COMMAND_START_WEIGHT * float(at_start)
    )
    return ConfidenceScore(
        value=round(min(max(value, 0.0), 1.0), 4),
        head_intact=head_intact,
        intact_fraction=round(intact_fraction, 4),
        at_command_start=at_start,
    )


def apply_confidence_scoring(
    raw_command: str,
    sanitized_command: Optional[str],
    match: PatternMatch,
    base_mode: DecisionMode,
    config: ConfidenceConfig,
) -> ConfidenceResult:
    """Possibly downgrade a DENY to WARN when the match is probably not executed.

    Only DENY is ever changed, and only to WARN. Matches without a span and
    critical matches under ``protect_critical`` keep their mode.
    """
    if not config.enabled:
        return ConfidenceResult(mode=base_mode)
    if match.matched_span is None:
        return ConfidenceResult(mode=base_mode)
    if base_mode is not DecisionMode.DENY:
        return ConfidenceResult(mode=base_mode)

    score = compute_match_confidence(raw_command, sanitized_command, match.matched_span)
    if not score.is_low(config.warn_threshold):
        return ConfidenceResult(mode=DecisionMode.DENY, score=score)
    if config.protect_critical and match.severity is Severity.CRITICAL:
        return ConfidenceResult(mode=DecisionMode.DENY, score=score)
    return ConfidenceResult(mode=DecisionMode.WARN, score=score, downgraded=True)


__all__ = [
    "ConfidenceResult",
    "ConfidenceScore",
    "apply_confidence_scoring",
    "compute_match_confidence",
    "is_command_start",
]
