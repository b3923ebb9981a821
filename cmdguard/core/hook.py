"""PreToolUse hook adapter.

The agent runs ``cmdguard hook`` before each tool call and writes the tool
invocation to stdin as JSON. Only ``Bash`` invocations are evaluated. A
denied command produces a ``hookSpecificOutput`` document on stdout; in
every other case the hook prints nothing and exits 0, which lets the tool
call proceed.
"""

from __future__ import annotations

import json
from typing import IO, Any, Dict, Optional

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, ValidationError

from cmdguard.core.errors import HookInputError
from cmdguard.core.guard import Guard
from cmdguard.core.results import EvaluationResult
from cmdguard.utils.log import get_logger, match_extra


logger = get_logger()

BASH_TOOL_NAME = "Bash"
MAX_HOOK_INPUT_BYTES = 256 * 1024

_EXPLANATION_INDENT = " " * len("Explanation: ")


class HookInput(BaseModel):
    """Tool invocation sent by the agent."""

    session_id: Optional[str] = None
    cwd: Optional[str] = None
    hook_event_name: str = "PreToolUse"
    tool_name: Optional[str] = Field(
        default=None, validation_alias=AliasChoices("tool_name", "toolName")
    )
    tool_input: Dict[str, Any] = Field(
        default_factory=dict, validation_alias=AliasChoices("tool_input", "toolInput")
    )

    model_config = ConfigDict(populate_by_name=True)


class PreToolUseHookOutput(BaseModel):
    """Hook-specific output for a denied command."""

    hook_event_name: str = Field(default="PreToolUse", alias="hookEventName")
    permission_decision: str = Field(default="deny", alias="permissionDecision")
    permission_decision_reason: str = Field(default="", alias="permissionDecisionReason")
    rule_id: Optional[str] = Field(default=None, alias="ruleId")
    pack_id: Optional[str] = Field(default=None, alias="packId")
    severity: Optional[str] = None
    confidence: Optional[float] = None

    model_config = ConfigDict(populate_by_name=True)


class HookResponse(BaseModel):
    hook_specific_output: PreToolUseHookOutput = Field(alias="hookSpecificOutput")

    model_config = ConfigDict(populate_by_name=True)

    def to_payload(self) -> Dict[str, Any]:
        return self.model_dump(by_alias=True, exclude_none=True)


def parse_hook_input(raw: str) -> HookInput:
    """Parse a hook payload, raising :class:`HookInputError` when malformed."""
    if len(raw.encode("utf-8")) > MAX_HOOK_INPUT_BYTES:
        raise HookInputError(
            f"Hook input exceeds {MAX_HOOK_INPUT_BYTES} bytes",
            details={"size": len(raw)},
        )
    try:
        data = json.loads(raw)
    except json.JSONDecodeError as e:
        raise HookInputError(f"Invalid hook JSON: {e}") from e
    if not isinstance(data, dict):
        raise HookInputError("Hook input must be a JSON object")
    try:
        return HookInput.model_validate(data)
    except ValidationError as e:
        raise HookInputError(f"Invalid hook input: {e}") from e


def extract_command(hook_input: HookInput) -> Optional[str]:
    """Return the Bash command to evaluate, or None when there is nothing to check."""
    if hook_input.tool_name != BASH_TOOL_NAME:
        return None
    command = hook_input.tool_input.get("command")
    if isinstance(command, str) and command:
        return command
    return None


def _explanation_text(explanation: Optional[str], rule_id: Optional[str], pack_id: Optional[str]) -> str:
    if explanation and explanation.strip():
        return explanation.strip()
    suffix = "No additional explanation is available yet. See pack documentation for details."
    if rule_id:
        return f"Matched destructive pattern {rule_id}. {suffix}"
    if pack_id:
        return f"Matched destructive pack {pack_id}. {suffix}"
    return f"Matched a destructive pattern. {suffix}"


def format_denial_reason(result: EvaluationResult, command: str) -> str:
    """Build the plain-text message shown to the agent for a denied command."""
    info = result.pattern_info
    reason = info.reason if info else "Matched a destructive pattern"
    rule_id = info.rule_id if info else None
    pack_id = info.pack_id if info else None

    lines = _explanation_text(info.explanation if info else None, rule_id, pack_id).splitlines()
    explanation = "Explanation: " + ("\n" + _EXPLANATION_INDENT).join(lines)

    hint = command.replace('"', '\\"')
    parts = [
        "BLOCKED by cmdguard",
        f'Tip: cmdguard explain "{hint}"',
        f"Reason: {reason}",
        explanation,
    ]
    if rule_id:
        parts.append(f"Rule: {rule_id}")
    elif pack_id:
        parts.append(f"Pack: {pack_id}")
    parts.append(f"Command: {command}")
    parts.append(
        "If this operation is truly needed, ask the user for explicit permission "
        "and have them run the command manually."
    )
    return "\n\n".join(parts)


def build_denial_output(result: EvaluationResult, command: str) -> Dict[str, Any]:
    info = result.pattern_info
    output = PreToolUseHookOutput(
        permission_decision_reason=format_denial_reason(result, command),
        rule_id=info.rule_id if info else None,
        pack_id=info.pack_id if info else None,
        severity=info.severity.value if info and info.severity else None,
        confidence=result.confidence.value if result.confidence else None,
    )
    return HookResponse(hook_specific_output=output).to_payload()


def evaluate_hook_payload(raw_json: str, guard: Guard) -> Optional[Dict[str, Any]]:
    """Evaluate one hook payload.

    Returns the JSON document to print for a denied command, or None when
    the command may run. Raises :class:`HookInputError` for malformed input.
    """
    hook_input = parse_hook_input(raw_json)
    command = extract_command(hook_input)
    if command is None:
        return None

    result = guard.evaluate(command)
    if not result.is_denied:
        if result.pattern_info is not None:
            logger.info(
                "[hook] Command allowed with %s: %s",
                result.effective_mode.value,
                result.reason,
                extra=match_extra(result.pattern_info),
            )
        return None

    logger.debug(
        "[hook] Denying command",
        extra=match_extra(result.pattern_info),
    )
    return build_denial_output(result, command)


def run_hook(stdin: IO[str], stdout: IO[str], guard: Guard) -> int:
    """Read one payload from ``stdin`` and write the decision to ``stdout``.

    Always returns 0. Malformed input is logged and treated as allow so a
    broken payload never wedges the agent.
    """
    try:
        payload = evaluate_hook_payload(stdin.read(), guard)
    except HookInputError as e:
        logger.warning(
            "[hook] Ignoring malformed hook input: %s",
            e,
            extra={"details": e.details},
        )
        return 0

    if payload is not None:
        stdout.write(json.dumps(payload))
        stdout.write("\n")
        stdout.flush()
    return 0


__all__ = [
    "HookInput",
    "HookResponse",
    "PreToolUseHookOutput",
    "build_denial_output",
    "evaluate_hook_payload",
    "extract_command",
    "format_denial_reason",
    "parse_hook_input",
    "run_hook",
]
