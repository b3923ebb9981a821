"""Configuration management for cmdguard.

Configuration lives in JSON files: a user file
(``~/.config/cmdguard/config.json``, or the path in ``CMDGUARD_CONFIG``) and
an optional project file (``<project>/.cmdguard/config.json``). Project
values are layered over user values section by section.

Loading is forgiving: a missing, unreadable or invalid file logs a warning
and falls back to defaults, unless strict loading is requested.
"""

from __future__ import annotations

import json
import os
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple

from pydantic import BaseModel, Field, ValidationError, field_validator

from cmdguard.core.allowlist import (
    AllowlistEntry,
    AllowlistLayer,
    LayeredAllowlist,
    RuleSelector,
)
from cmdguard.core.errors import ConfigError
from cmdguard.core.overrides import CompiledOverrides
from cmdguard.packs.base import DecisionMode, Severity
from cmdguard.utils.log import get_logger


logger = get_logger()

CONFIG_ENV = "CMDGUARD_CONFIG"
PROJECT_CONFIG_DIR = ".cmdguard"
CONFIG_FILENAME = "config.json"

_CONFIGURABLE_MODES = (DecisionMode.ALLOW, DecisionMode.WARN, DecisionMode.DENY)

# Critical and high are left out, so they fall through to deny.
DEFAULT_SEVERITY_MODES: Dict[Severity, DecisionMode] = {
    Severity.MEDIUM: DecisionMode.WARN,
    Severity.LOW: DecisionMode.ALLOW,
}


def _check_modes(modes: Dict[Any, DecisionMode]) -> Dict[Any, DecisionMode]:
    for key, mode in modes.items():
        if mode not in _CONFIGURABLE_MODES:
            raise ValueError(f"mode for {key!s} must be one of allow, warn, deny (got {mode.value})")
    return modes


class PacksConfig(BaseModel):
    """Which packs (or whole categories) are evaluated, in order."""

    enabled: List[str] = Field(default_factory=lambda: ["core"])
    disabled: List[str] = Field(default_factory=list)


class AllowOverrideConfig(BaseModel):
    pattern: str
    when: Optional[str] = None
    reason: Optional[str] = None


class BlockOverrideConfig(BaseModel):
    pattern: str
    reason: str = "Blocked by configuration"


class OverridesConfig(BaseModel):
    allow: List[AllowOverrideConfig] = Field(default_factory=list)
    block: List[BlockOverrideConfig] = Field(default_factory=list)

    def compile(self) -> CompiledOverrides:
        return CompiledOverrides.compile(
            allow=[(o.pattern, o.when, o.reason) for o in self.allow],
            block=[(o.pattern, o.reason) for o in self.block],
        )


class ConfidenceConfig(BaseModel):
    """Settings for downgrading low-confidence denials to warnings."""

    enabled: bool = True
    warn_threshold: float = Field(default=0.5, ge=0.0, le=1.0)
    protect_critical: bool = True


class PolicyConfig(BaseModel):
    """Maps matched rules to decision modes.

    Lookup order: ``rule_modes["pack:pattern"]``, then ``pack_modes[pack]``,
    then ``severity_modes[severity]``. Anything unmapped is denied.

    Configured ``severity_modes`` are layered over ``DEFAULT_SEVERITY_MODES``,
    so setting one severity keeps the defaults for the others.
    """

    severity_modes: Dict[Severity, DecisionMode] = Field(
        default_factory=lambda: dict(DEFAULT_SEVERITY_MODES)
    )
    pack_modes: Dict[str, DecisionMode] = Field(default_factory=dict)
    rule_modes: Dict[str, DecisionMode] = Field(default_factory=dict)

    @field_validator("severity_modes", "pack_modes", "rule_modes")
    @classmethod
    def validate_modes(cls, value: Dict[Any, DecisionMode]) -> Dict[Any, DecisionMode]:
        return _check_modes(value)

    @field_validator("severity_modes")
    @classmethod
    def layer_severity_defaults(
        cls, value: Dict[Severity, DecisionMode]
    ) -> Dict[Severity, DecisionMode]:
        return {**DEFAULT_SEVERITY_MODES, **value}

    def resolve(
        self, pack_id: Optional[str], pattern_name: Optional[str], severity: Optional[Severity]
    ) -> DecisionMode:
        if pack_id and pattern_name:
            mode = self.rule_modes.get(f"{pack_id}:{pattern_name}")
            if mode is not None:
                return mode
        if pack_id and pack_id in self.pack_modes:
            return self.pack_modes[pack_id]
        if severity is not None and severity in self.severity_modes:
            return self.severity_modes[severity]
        return DecisionMode.DENY


class AllowlistEntryConfig(BaseModel):
    rule: str
    reason: str = ""

    @field_validator("rule")
    @classmethod
    def validate_rule(cls, value: str) -> str:
        RuleSelector.parse(value)
        return value.strip()


class AllowlistConfig(BaseModel):
    project: List[AllowlistEntryConfig] = Field(default_factory=list)
    user: List[AllowlistEntryConfig] = Field(default_factory=list)
    system: List[AllowlistEntryConfig] = Field(default_factory=list)

    def build(self) -> LayeredAllowlist:
        def entries(items: List[AllowlistEntryConfig]) -> List[AllowlistEntry]:
            return [AllowlistEntry(RuleSelector.parse(item.rule), item.reason) for item in items]

        return LayeredAllowlist(
            {
                AllowlistLayer.PROJECT: entries(self.project),
                AllowlistLayer.USER: entries(self.user),
                AllowlistLayer.SYSTEM: entries(self.system),
            }
        )


class GuardConfig(BaseModel):
    """Complete cmdguard configuration."""

    packs: PacksConfig = Field(default_factory=PacksConfig)
    overrides: OverridesConfig = Field(default_factory=OverridesConfig)
    confidence: ConfidenceConfig = Field(default_factory=ConfidenceConfig)
    policy: PolicyConfig = Field(default_factory=PolicyConfig)
    allowlist: AllowlistConfig = Field(default_factory=AllowlistConfig)


def merge_config_data(base: Dict[str, Any], overlay: Dict[str, Any]) -> Dict[str, Any]:
    """Layer ``overlay`` over ``base``; dict sections are merged key by key."""
    merged = dict(base)
    for section, value in overlay.items():
        if isinstance(value, dict) and isinstance(merged.get(section), dict):
            merged[section] = {**merged[section], **value}
        else:
            merged[section] = value
    return merged


def user_config_path() -> Path:
    override = os.getenv(CONFIG_ENV)
    if override:
        return Path(override).expanduser()
    return Path.home() / ".config" / "cmdguard" / CONFIG_FILENAME


def project_config_path(project_path: Path) -> Path:
    return project_path / PROJECT_CONFIG_DIR / CONFIG_FILENAME


class ConfigManager:
    """Loads and caches user and project configuration."""

    def __init__(self, user_path: Optional[Path] = None) -> None:
        self.user_path = user_path
        self._cache: Dict[Tuple[Optional[Path], Optional[Path], Path], GuardConfig] = {}

    def _read(self, path: Path, label: str, strict: bool) -> Dict[str, Any]:
        if not path.exists():
            if strict and label == "explicit":
                raise ConfigError(f"Config file not found: {path}", details={"path": str(path)})
            logger.debug(
                f"[config] {label.capitalize()} config not found; using defaults",
                extra={"path": str(path)},
            )
            return {}
        try:
            data = json.loads(path.read_text(encoding="utf-8"))
            if not isinstance(data, dict):
                raise ValueError("top-level JSON value must be an object")
        except (json.JSONDecodeError, OSError, UnicodeDecodeError, ValueError) as e:
            if strict:
                raise ConfigError(
                    f"Error loading {label} config {path}: {e}", details={"path": str(path)}
                ) from e
            logger.warning(
                "Error loading %s config: %s: %s",
                label,
                type(e).__name__,
                e,
                extra={"error": str(e), "path": str(path)},
            )
            return {}
        logger.debug(f"[config] Loaded {label} config", extra={"path": str(path)})
        return data

    def get_config(
        self,
        project_path: Optional[Path] = None,
        config_path: Optional[Path] = None,
        strict: bool = False,
    ) -> GuardConfig:
        """Return the effective configuration.

        ``config_path`` replaces the user config file for this call.
        """
        user_path = self.user_path or user_config_path()
        key = (project_path, config_path, user_path)
        cached = self._cache.get(key)
        if cached is not None:
            return cached

        if config_path is not None:
            data = self._read(config_path, "explicit", strict)
        else:
            data = self._read(user_path, "user", strict)
        if project_path is not None:
            project_data = self._read(project_config_path(project_path), "project", strict)
            data = merge_config_data(data, project_data)

        try:
            config = GuardConfig(**data)
        except ValidationError as e:
            if strict:
                raise ConfigError(f"Invalid configuration: {e}") from e
            logger.warning(
                "Invalid configuration; using defaults: %s",
                e,
                extra={"error": str(e)},
            )
            config = GuardConfig()

        self._cache[key] = config
        return config

    def clear_cache(self) -> None:
        self._cache.clear()


# Global instance
config_manager = ConfigManager()


def get_config(
    project_path: Optional[Path] = None, config_path: Optional[Path] = None
) -> GuardConfig:
    """Get the effective configuration."""
    return config_manager.get_config(project_path=project_path, config_path=config_path)


__all__ = [
    "AllowOverrideConfig",
    "AllowlistConfig",
    "AllowlistEntryConfig",
    "BlockOverrideConfig",
    "ConfidenceConfig",
    "ConfigManager",
    "DEFAULT_SEVERITY_MODES",
    "GuardConfig",
    "OverridesConfig",
    "PacksConfig",
    "PolicyConfig",
    "config_manager",
    "get_config",
    "merge_config_data",
]
