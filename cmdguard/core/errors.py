"""Error types for cmdguard.

Evaluation itself never raises. These exceptions surface from the edges:
building pattern packs, strict configuration loading, hook payload parsing
and CLI argument handling.
"""

from typing import Any, Dict, Optional


class CmdGuardError(Exception):
    """Base exception for all cmdguard errors."""

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}

    def __str__(self) -> str:
        return self.message


class PatternCompileError(CmdGuardError, ValueError):
    """Raised when a pack pattern is not a valid linear-time regex."""

    def __init__(self, pattern: str, reason: str):
        super().__init__(
            f"Invalid pattern {pattern!r}: {reason}",
            details={"pattern": pattern, "reason": reason},
        )
        self.pattern = pattern


class ConfigError(CmdGuardError):
    """Raised when strict configuration loading fails."""


class HookInputError(CmdGuardError):
    """Raised when a hook payload is not valid JSON or has the wrong shape."""


class UnknownPackError(CmdGuardError, KeyError):
    """Raised when a pack id is not present in the registry."""

    def __init__(self, pack_id: str):
        super().__init__(f"Unknown pack: {pack_id}", details={"pack_id": pack_id})
        self.pack_id = pack_id

    def __str__(self) -> str:
        return self.message


__all__ = [
    "CmdGuardError",
    "PatternCompileError",
    "ConfigError",
    "HookInputError",
    "UnknownPackError",
]
