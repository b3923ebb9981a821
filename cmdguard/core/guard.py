"""Process-wide evaluation state.

:class:`Guard` builds everything the evaluator needs exactly once (pack
registry, enabled pack order, keyword index, compiled overrides, allowlist)
and then evaluates any number of commands against it. None of that state
changes after construction, so a single guard can serve concurrent callers.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Callable, List, Optional, Sequence

from cmdguard.core.config import GuardConfig, config_manager
from cmdguard.core.evaluator import (
    LegacyDestructivePattern,
    LegacySafePattern,
    TraceStep,
    evaluate_command,
)
from cmdguard.core.results import EvaluationResult
from cmdguard.packs import PackRegistry, build_default_registry
from cmdguard.utils.context import sanitize_for_pattern_matching
from cmdguard.utils.log import get_logger


logger = get_logger()


@dataclass
class EvaluationTrace:
    """Step-by-step record of one evaluation."""

    command: str
    result: EvaluationResult
    steps: List[TraceStep] = field(default_factory=list)


class Guard:
    """Evaluates commands against a fixed configuration and registry."""

    def __init__(
        self,
        config: Optional[GuardConfig] = None,
        registry: Optional[PackRegistry] = None,
        sanitizer: Optional[Callable[[str], str]] = sanitize_for_pattern_matching,
    ) -> None:
        self.config = config or GuardConfig()
        self.registry = registry or build_default_registry()
        self.sanitizer = sanitizer

        self.enabled_pack_ids: tuple[str, ...] = tuple(
            self.registry.expand_enabled(self.config.packs.enabled, self.config.packs.disabled)
        )
        self.keyword_index = self.registry.keyword_index(self.enabled_pack_ids)
        self.overrides = self.config.overrides.compile()
        self.allowlist = self.config.allowlist.build()

        logger.debug(
            "[guard] Initialized",
            extra={
                "enabled_packs": list(self.enabled_pack_ids),
                "keywords": len(self.keyword_index) if self.keyword_index is not None else None,
                "allow_overrides": len(self.overrides.allow),
                "block_overrides": len(self.overrides.block),
                "allowlist_entries": len(self.allowlist),
            },
        )

    @classmethod
    def from_config_files(
        cls,
        project_path: Optional[Path] = None,
        config_path: Optional[Path] = None,
        strict: bool = False,
    ) -> "Guard":
        """Build a guard from the user/project configuration files."""
        config = config_manager.get_config(
            project_path=project_path, config_path=config_path, strict=strict
        )
        return cls(config=config)

    def with_packs(self, pack_ids: Sequence[str]) -> "Guard":
        """Return a new guard that enables exactly ``pack_ids``."""
        packs = self.config.packs.model_copy(update={"enabled": list(pack_ids), "disabled": []})
        config = self.config.model_copy(update={"packs": packs})
        return Guard(config=config, registry=self.registry, sanitizer=self.sanitizer)

    def evaluate(
        self,
        command: str,
        sanitized_command: Optional[str] = None,
        legacy_safe_patterns: Optional[Sequence[LegacySafePattern]] = None,
        legacy_destructive_patterns: Optional[Sequence[LegacyDestructivePattern]] = None,
        trace: Optional[List[TraceStep]] = None,
    ) -> EvaluationResult:
        return evaluate_command(
            command,
            self.config,
            self.keyword_index,
            self.registry,
            self.overrides,
            enabled_pack_ids=self.enabled_pack_ids,
            sanitized_command=sanitized_command,
            sanitizer=self.sanitizer,
            allowlist=self.allowlist,
            legacy_safe_patterns=legacy_safe_patterns,
            legacy_destructive_patterns=legacy_destructive_patterns,
            trace=trace,
        )

    def explain(self, command: str) -> EvaluationTrace:
        steps: List[TraceStep] = []
        result = self.evaluate(command, trace=steps)
        return EvaluationTrace(command=command, result=result, steps=steps)


__all__ = ["EvaluationTrace", "Guard"]
