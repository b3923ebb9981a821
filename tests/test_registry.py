"""Tests for the pack registry and rule allowlists."""

import pytest

from cmdguard.core.allowlist import (
    AllowlistEntry,
    AllowlistLayer,
    LayeredAllowlist,
    RuleSelector,
)
from cmdguard.core.errors import UnknownPackError
from cmdguard.packs import PackRegistry
from cmdguard.packs.base import Pack, Severity, destructive_pattern


def _allowlist(**layers):
    return LayeredAllowlist(
        {
            AllowlistLayer(name): [AllowlistEntry(RuleSelector.parse(rule), reason) for rule, reason in entries]
            for name, entries in layers.items()
        }
    )


class TestRegistryLookup:
    """Tests for pack lookup and enabled-pack expansion."""

    def test_default_pack_order(self, registry):
        assert registry.pack_ids == [
            "core.filesystem",
            "core.git",
            "infrastructure.terraform",
            "kubernetes.kubectl",
            "containers.docker",
            "database.postgresql",
        ]
        assert registry.categories == [
            "core",
            "infrastructure",
            "kubernetes",
            "containers",
            "database",
        ]

    def test_category_expands_sorted(self, registry):
        assert registry.expand_enabled(["core"]) == ["core.filesystem", "core.git"]

    def test_enabled_order_is_kept_and_deduplicated(self, registry):
        assert registry.expand_enabled(["core.git", "core"]) == ["core.git", "core.filesystem"]

    def test_disabled_removes_packs(self, registry):
        assert registry.expand_enabled(["core", "containers"], ["core.git"]) == [
            "core.filesystem",
            "containers.docker",
        ]

    def test_unknown_ids_ignored(self, registry):
        assert registry.expand_enabled(["nope", "core.git"]) == ["core.git"]
        assert not registry.is_known("nope")
        assert registry.is_known("core")
        assert registry.is_known("core.git")

    def test_require_unknown_pack(self, registry):
        with pytest.raises(UnknownPackError) as exc_info:
            registry.require("nope")
        assert isinstance(exc_info.value, KeyError)
        assert str(exc_info.value) == "Unknown pack: nope"

    def test_duplicate_pack_ids_rejected(self, registry):
        pack = registry.require("core.git")
        with pytest.raises(ValueError):
            PackRegistry([pack, pack])

    def test_list_packs_marks_enabled(self, registry):
        infos = {info.id: info for info in registry.list_packs(["core.git"])}
        assert infos["core.git"].enabled
        assert not infos["containers.docker"].enabled
        assert infos["core.git"].destructive_pattern_count > 0


class TestKeywordIndex:
    """Tests for building the quick-reject index from enabled packs."""

    def test_collects_keywords_of_enabled_packs(self, registry):
        index = registry.keyword_index(["core.filesystem", "core.git"])
        assert index is not None
        assert set(index.keywords) == {"rm", "git"}

    def test_pack_without_keywords_disables_index(self):
        always = Pack(
            id="custom.always",
            name="Always",
            description="",
            keywords=(),
            destructive_patterns=(destructive_pattern("shutdown", r"\bshutdown\b", "no"),),
        )
        registry = PackRegistry([always])
        assert registry.keyword_index(["custom.always"]) is None
        assert registry.check_command("sudo shutdown now", ["custom.always"]).blocked


class TestCheckCommand:
    """Tests for scanning enabled packs."""

    def test_first_destructive_match_blocks(self, registry):
        result = registry.check_command("git reset --hard", ["core.filesystem", "core.git"])
        assert result.blocked
        assert result.pack_id == "core.git"
        assert result.pattern_name == "reset-hard"
        assert result.severity is Severity.CRITICAL
        assert result.matched_span.as_tuple() == (0, 16)

    def test_safe_pattern_allows(self, registry):
        result = registry.check_command("git checkout -b feature", ["core.git"])
        assert not result.blocked
        assert result.safe_pattern == "checkout-new-branch"

    def test_disabled_pack_not_scanned(self, registry):
        assert not registry.check_command("docker system prune", ["core.git"]).blocked

    def test_allowlisted_rule_is_bypassed_and_scanning_continues(self, registry):
        allowlist = _allowlist(user=[("core.git:reset-hard", "")])
        result = registry.check_command(
            "git reset --hard && git clean -fd", ["core.git"], allowlist
        )
        assert result.blocked
        assert result.pattern_name == "clean-force"
        assert [b.pattern.name for b in result.bypassed] == ["reset-hard"]

    def test_only_allowlisted_rules_is_not_blocked(self, registry):
        allowlist = _allowlist(project=[("core.git:*", "trusted repo")])
        result = registry.check_command("git reset --hard", ["core.git"], allowlist)
        assert not result.blocked
        assert len(result.bypassed) == 1
        assert result.bypassed[0].allowlist_hit.layer is AllowlistLayer.PROJECT


class TestAllowlist:
    """Tests for rule selectors and layered allowlists."""

    def test_parse_selector(self):
        selector = RuleSelector.parse(" core.git:reset-hard ")
        assert selector.pack_id == "core.git"
        assert selector.pattern_name == "reset-hard"
        assert str(selector) == "core.git:reset-hard"

    @pytest.mark.parametrize("rule", ["core.git", ":reset-hard", "core.git:", ""])
    def test_invalid_selector(self, rule):
        with pytest.raises(ValueError):
            RuleSelector.parse(rule)

    def test_wildcard(self):
        selector = RuleSelector.parse("core.git:*")
        assert selector.matches("core.git", "reset-hard")
        assert not selector.matches("core.filesystem", "rm-rf-general")

    def test_project_layer_wins(self):
        allowlist = _allowlist(
            user=[("core.git:reset-hard", "user reason")],
            project=[("core.git:*", "project reason")],
        )
        hit = allowlist.match_rule("core.git", "reset-hard")
        assert hit.layer is AllowlistLayer.PROJECT
        assert hit.reason == "project reason"

    def test_default_reason(self):
        allowlist = _allowlist(system=[("core.git:*", "")])
        hit = allowlist.match_rule("core.git", "stash-clear")
        assert hit.reason == "Allowlisted by system rule core.git:*"

    def test_empty_allowlist(self):
        allowlist = LayeredAllowlist()
        assert not allowlist
        assert len(allowlist) == 0
        assert allowlist.match_rule("core.git", "reset-hard") is None
