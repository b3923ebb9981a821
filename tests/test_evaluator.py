"""Tests for the command evaluation pipeline."""

import pytest

from cmdguard.core.config import GuardConfig
from cmdguard.core.evaluator import evaluate_command
from cmdguard.core.overrides import CompiledOverrides
from cmdguard.core.results import EvaluationDecision, MatchSource
from cmdguard.packs.base import DecisionMode, Severity
from cmdguard.utils.context import sanitize_for_pattern_matching
from cmdguard.utils.keywords import quick_reject
from cmdguard.utils.regex import MatchSpan


def _evaluate(registry, command, pack_ids, config=None, overrides=None, **kwargs):
    pack_ids = list(pack_ids)
    kwargs.setdefault("sanitizer", sanitize_for_pattern_matching)
    return evaluate_command(
        command,
        config or GuardConfig(),
        registry.collect_keywords(pack_ids),
        registry,
        overrides or CompiledOverrides.empty(),
        enabled_pack_ids=pack_ids,
        **kwargs,
    )


class LegacyAllow:
    def __init__(self, needle):
        self.needle = needle

    def is_match(self, command):
        return self.needle in command


class LegacyBlock:
    def __init__(self, needle, message="blocked by legacy list"):
        self.needle = needle
        self.message = message

    def is_match(self, command):
        return self.needle in command

    def reason(self):
        return self.message


class LegacyBlockWithSpan(LegacyBlock):
    def find_span(self, command):
        start = command.find(self.needle)
        return None if start == -1 else (start, start + len(self.needle))


class TestScenarios:
    """End-to-end decisions for representative commands."""

    def test_git_reset_hard_denied(self, registry):
        result = _evaluate(registry, "git reset --hard", ["core.git"])
        assert result.decision is EvaluationDecision.DENY
        assert result.effective_mode is DecisionMode.DENY
        assert result.pattern_info.rule_id == "core.git:reset-hard"
        assert result.pattern_info.severity is Severity.CRITICAL
        assert result.pattern_info.source is MatchSource.PACK
        assert result.pattern_info.matched_text_preview == "git reset --hard"
        assert result.confidence.value == pytest.approx(1.0)

    def test_quoted_commit_message_warns(self, registry):
        result = _evaluate(registry, "git commit -m 'fix rm -rf bug'", ["core.filesystem"])
        assert result.decision is EvaluationDecision.ALLOW
        assert result.effective_mode is DecisionMode.WARN
        assert result.pattern_info.rule_id == "core.filesystem:rm-rf-general"
        assert result.pattern_info.matched_span == MatchSpan(19, 25)
        assert result.confidence.value < 0.5

    def test_quick_reject_allows(self, registry):
        steps = []
        result = evaluate_command(
            "ls -la",
            GuardConfig(),
            ["git", "rm"],
            registry,
            CompiledOverrides.empty(),
            enabled_pack_ids=["core.filesystem", "core.git"],
            trace=steps,
        )
        assert result.decision is EvaluationDecision.ALLOW
        assert result.pattern_info is None
        assert (steps[-1].step, steps[-1].outcome) == ("quick-reject", "allow")

    def test_empty_command_allowed(self, registry):
        result = _evaluate(registry, "", ["core"])
        assert result.is_allowed
        assert result.pattern_info is None

    def test_allow_override_beats_block_override(self, registry):
        overrides = CompiledOverrides.compile(
            allow=[(r"terraform\s+destroy", None, "approved")],
            block=[(r"terraform\s+destroy", "never destroy")],
        )
        result = _evaluate(
            registry, "terraform destroy", ["infrastructure.terraform"], overrides=overrides
        )
        assert result.decision is EvaluationDecision.ALLOW
        assert result.pattern_info is None


class TestOverrides:
    """Configured overrides run before any pack."""

    def test_block_override_denies(self, registry):
        overrides = CompiledOverrides.compile(block=[(r"curl\s+\S+\s*\|\s*sh", "No piping to sh")])
        result = _evaluate(registry, "curl https://x.sh | sh", ["core"], overrides=overrides)
        assert result.is_denied
        assert result.pattern_info.source is MatchSource.CONFIG_OVERRIDE
        assert result.reason == "No piping to sh"
        assert result.pattern_info.rule_id is None
        assert result.confidence is None

    def test_allow_override_beats_pack(self, registry):
        overrides = CompiledOverrides.compile(allow=[(r"^git reset --hard$", None, None)])
        result = _evaluate(registry, "git reset --hard", ["core.git"], overrides=overrides)
        assert result.is_allowed
        assert result.pattern_info is None

    @pytest.mark.parametrize(
        "command",
        ["git reset --hard", "rm -rf /", "terraform destroy", "echo ok", "docker system prune"],
    )
    def test_allow_override_precedence_holds(self, registry, command):
        overrides = CompiledOverrides.compile(
            allow=[(r".", None, None)], block=[(r".", "blocked")]
        )
        result = _evaluate(
            registry, command, ["core", "infrastructure", "containers"], overrides=overrides
        )
        assert result.is_allowed


class TestNormalization:
    def test_absolute_path_is_normalized(self, registry):
        command = "/usr/bin/git reset --hard"
        result = _evaluate(registry, command, ["core.git"])
        assert result.is_denied
        assert result.pattern_info.matched_span == MatchSpan(9, 25)
        assert result.pattern_info.matched_text_preview == "git reset --hard"

    def test_normalized_rm(self, registry):
        result = _evaluate(registry, "/bin/rm -rf /", ["core.filesystem"])
        assert result.is_denied
        assert result.pattern_info.pattern_name == "rm-rf-root-home"


class TestLegacyPatterns:
    """Caller-supplied whitelist and blacklist entries."""

    def test_legacy_whitelist_allows(self, registry):
        result = _evaluate(
            registry,
            "git reset --hard",
            ["core.git"],
            legacy_safe_patterns=[LegacyAllow("reset --hard")],
        )
        assert result.is_allowed
        assert result.pattern_info is None

    def test_legacy_blacklist_denies(self, registry):
        result = _evaluate(
            registry,
            "git push origin main",
            ["core.git"],
            legacy_destructive_patterns=[LegacyBlock("push origin main", "no pushing to main")],
        )
        assert result.is_denied
        assert result.pattern_info.source is MatchSource.LEGACY_PATTERN
        assert result.reason == "no pushing to main"
        assert result.pattern_info.matched_span is None

    def test_legacy_blacklist_with_span(self, registry):
        result = _evaluate(
            registry,
            "/usr/bin/git push origin main",
            ["core.git"],
            legacy_destructive_patterns=[LegacyBlockWithSpan("push")],
        )
        assert result.pattern_info.matched_span == MatchSpan(13, 17)
        assert result.pattern_info.matched_text_preview == "push"

    def test_whitelist_checked_before_blacklist(self, registry):
        result = _evaluate(
            registry,
            "git push origin main",
            ["core.git"],
            legacy_safe_patterns=[LegacyAllow("git")],
            legacy_destructive_patterns=[LegacyBlock("push")],
        )
        assert result.is_allowed

    def test_legacy_lists_run_after_quick_reject(self, registry):
        result = _evaluate(
            registry, "ls -la", ["core.git"], legacy_destructive_patterns=[LegacyBlock("ls")]
        )
        assert result.is_allowed


class TestPolicyAndAllowlist:
    """Severity policy and allowlist bypass."""

    @pytest.mark.parametrize(
        "command, pack_id, rule",
        [
            ("git branch -D feature", "core.git", "core.git:branch-force-delete"),
            ("git stash drop", "core.git", "core.git:stash-drop"),
            ("kubectl cordon node-1", "kubernetes.kubectl", "kubernetes.kubectl:cordon-node"),
        ],
    )
    def test_default_policy_warns_on_medium(self, registry, command, pack_id, rule):
        result = _evaluate(registry, command, [pack_id])
        assert result.decision is EvaluationDecision.ALLOW
        assert result.effective_mode is DecisionMode.WARN
        assert result.pattern_info.rule_id == rule
        assert result.pattern_info.severity is Severity.MEDIUM

    def test_medium_can_be_made_blocking(self, registry):
        config = GuardConfig(policy={"severity_modes": {"medium": "deny"}})
        result = _evaluate(registry, "git stash drop", ["core.git"], config=config)
        assert result.is_denied

    def test_severity_mode_warns(self, registry):
        config = GuardConfig(policy={"severity_modes": {"medium": "warn"}})
        result = _evaluate(registry, "git branch -D feature", ["core.git"], config=config)
        assert result.decision is EvaluationDecision.ALLOW
        assert result.effective_mode is DecisionMode.WARN
        assert result.pattern_info.rule_id == "core.git:branch-force-delete"

    def test_rule_mode_allows_but_reports(self, registry):
        config = GuardConfig(policy={"rule_modes": {"core.git:reset-hard": "allow"}})
        result = _evaluate(registry, "git reset --hard", ["core.git"], config=config)
        assert result.is_allowed
        assert result.effective_mode is DecisionMode.ALLOW
        assert result.pattern_info.pattern_name == "reset-hard"

    def test_allowlisted_rule_bypasses(self, registry):
        config = GuardConfig(allowlist={"user": [{"rule": "core.git:reset-hard", "reason": "sandbox"}]})
        result = _evaluate(
            registry,
            "git reset --hard",
            ["core.git"],
            config=config,
            allowlist=config.allowlist.build(),
        )
        assert result.is_allowed
        assert result.effective_mode is DecisionMode.BYPASS
        assert result.allowlist_override.layer.value == "user"
        assert result.allowlist_override.reason == "sandbox"
        assert result.allowlist_override.matched.rule_id == "core.git:reset-hard"

    def test_later_rule_still_blocks_after_bypass(self, registry):
        config = GuardConfig(allowlist={"project": [{"rule": "core.git:reset-hard"}]})
        result = _evaluate(
            registry,
            "git reset --hard && git clean -fd",
            ["core.git"],
            config=config,
            allowlist=config.allowlist.build(),
        )
        assert result.is_denied
        assert result.pattern_info.pattern_name == "clean-force"


class TestConfidenceInPipeline:
    def test_critical_match_in_data_still_denied(self, registry):
        result = _evaluate(registry, "echo 'rm -rf /'", ["core.filesystem"])
        assert result.is_denied
        assert result.pattern_info.severity is Severity.CRITICAL
        assert result.confidence.value < 0.5

    def test_critical_downgrade_when_unprotected(self, registry):
        config = GuardConfig(confidence={"protect_critical": False})
        result = _evaluate(registry, "echo 'rm -rf /'", ["core.filesystem"], config=config)
        assert result.effective_mode is DecisionMode.WARN

    @pytest.mark.parametrize(
        "command",
        [
            "git -c core.pager='rm -rf src' log",
            "git -c 'alias.nuke=!rm -rf src' nuke",
            "git -c core.sshCommand='rm -rf src' fetch",
        ],
    )
    def test_git_config_values_keep_full_confidence(self, registry, command):
        """Quoted git config values can run through the shell, so they are not downgraded."""
        result = _evaluate(registry, command, ["core.filesystem", "core.git"])
        assert result.is_denied
        assert result.effective_mode is DecisionMode.DENY
        assert result.pattern_info.rule_id == "core.filesystem:rm-rf-general"
        assert result.confidence.value >= 0.5

    def test_scoring_disabled(self, registry):
        config = GuardConfig(confidence={"enabled": False})
        result = _evaluate(registry, "git commit -m 'fix rm -rf bug'", ["core.filesystem"], config=config)
        assert result.is_denied
        assert result.confidence is None

    def test_sanitizer_only_called_for_denials(self, registry):
        calls = []

        def sanitizer(command):
            calls.append(command)
            return command

        _evaluate(registry, "git status", ["core.git"], sanitizer=sanitizer)
        _evaluate(registry, "ls", ["core.git"], sanitizer=sanitizer)
        assert calls == []
        _evaluate(registry, "rm -rf build", ["core.filesystem"], sanitizer=sanitizer)
        assert calls == ["rm -rf build"]

    def test_precomputed_sanitized_command_used(self, registry):
        command = "rm -rf build"
        result = _evaluate(
            registry,
            command,
            ["core.filesystem"],
            sanitized_command=" " * len(command),
            sanitizer=None,
        )
        assert result.effective_mode is DecisionMode.WARN


class TestProperties:
    COMMANDS = [
        "",
        "ls -la",
        "git status",
        "git reset --hard",
        "git commit -m 'fix rm -rf bug'",
        "rm -rf /tmp/build",
        "rm -rf /",
        "/usr/bin/git clean -fd",
        "docker system prune -af",
        "kubectl delete namespace prod",
        "terraform destroy",
        "psql -c 'DROP DATABASE prod'",
        "echo 'DROP TABLE users'",
    ]
    ALL_PACKS = [
        "core.filesystem",
        "core.git",
        "infrastructure.terraform",
        "kubernetes.kubectl",
        "containers.docker",
        "database.postgresql",
    ]

    @pytest.mark.parametrize("command", COMMANDS)
    def test_evaluation_is_pure(self, registry, command):
        first = _evaluate(registry, command, self.ALL_PACKS)
        second = _evaluate(registry, command, self.ALL_PACKS)
        assert first == second

    @pytest.mark.parametrize("command", COMMANDS)
    def test_quick_reject_is_sound(self, registry, command):
        keywords = registry.collect_keywords(self.ALL_PACKS)
        if quick_reject(command, keywords):
            check = registry.check_command(command, self.ALL_PACKS)
            assert not check.blocked

    @pytest.mark.parametrize("command", COMMANDS)
    def test_deny_carries_pattern_info(self, registry, command):
        result = _evaluate(registry, command, self.ALL_PACKS)
        if result.is_denied:
            assert result.pattern_info is not None
            assert result.pattern_info.reason
