"""Tests for the shipped pattern packs.

Each pack lists commands it must allow through a safe pattern, commands it
must block with a specific rule, and commands it must leave alone.
"""

import pytest

from cmdguard.packs import build_default_registry
from cmdguard.packs.base import Pack, Severity, destructive_pattern, safe_command


PACK_CASES = {
    "core.filesystem": {
        "safe": [
            "rm -rf /tmp/build",
            "rm -rf /var/tmp/cache /tmp/x",
            "rm -fr $TMPDIR/work",
        ],
        "destructive": [
            ("rm -rf /", "rm-rf-root-home"),
            ("rm -fr /", "rm-rf-root-home"),
            ("rm -rf ~/projects", "rm-rf-root-home"),
            ("rm -rf /tmp/x; rm -rf /home", "rm-rf-root-home"),
            ("rm -rf build", "rm-rf-general"),
            ("rm -Rf node_modules", "rm-rf-general"),
            ("rm -rf /tmp/../etc", "rm-rf-general"),
            ("rm -r -f build", "rm-r-f-separate"),
            ("rm --recursive --force build", "rm-recursive-force-long"),
        ],
        "untouched": ["rm file.txt", "rm -f file.txt", "rm -i notes.md"],
    },
    "core.git": {
        "safe": [
            "git checkout -b feature/new",
            "git checkout --orphan gh-pages",
            "git restore --staged README.md",
            "git clean -n",
            "git clean --dry-run",
        ],
        "destructive": [
            ("git reset --hard", "reset-hard"),
            ("git reset --hard HEAD~1", "reset-hard"),
            ("git -C repo reset --hard", "reset-hard"),
            ("git reset --merge", "reset-merge"),
            ("git checkout -- src/app.py", "checkout-discard"),
            ("git checkout main -- src/app.py", "checkout-ref-discard"),
            ("git restore src/app.py", "restore-worktree"),
            ("git restore --staged --worktree app.py", "restore-worktree-explicit"),
            ("git clean -fd", "clean-force"),
            ("git push --force origin main", "push-force-long"),
            ("git push -f origin main", "push-force-short"),
            ("git branch -D feature", "branch-force-delete"),
            ("git stash drop", "stash-drop"),
            ("git stash clear", "stash-clear"),
            ("git checkout -b tmp && git reset --hard", "reset-hard"),
        ],
        "untouched": [
            "git status",
            "git log --oneline",
            "git push origin main",
            "git push --force-with-lease origin main",
            "git branch -d merged-feature",
        ],
    },
    "containers.docker": {
        "safe": ["docker ps -a", "docker images", "docker logs web"],
        "destructive": [
            ("docker system prune -af", "system-prune"),
            ("docker volume prune", "volume-prune"),
            ("docker network prune", "network-prune"),
            ("docker image prune", "image-prune"),
            ("docker container prune", "container-prune"),
            ("docker rm -f web", "rm-force"),
            ("docker rmi -f nginx", "rmi-force"),
            ("docker volume rm data", "volume-rm"),
            ("docker stop $(docker ps -q)", "stop-all"),
            ("docker ps; docker system prune -f", "system-prune"),
        ],
        "untouched": ["docker run -it ubuntu bash", "docker compose up"],
    },
    "kubernetes.kubectl": {
        "safe": [
            "kubectl get pods",
            "kubectl describe pod web",
            "kubectl delete deployment web --dry-run=client",
        ],
        "destructive": [
            ("kubectl delete namespace prod", "delete-namespace"),
            ("kubectl delete pods --all", "delete-all"),
            ("kubectl drain node-1", "drain-node"),
            ("kubectl cordon node-1", "cordon-node"),
            ("kubectl taint nodes node-1 key=value:NoExecute", "taint-noexecute"),
            ("kubectl delete deployment web", "delete-workload"),
            ("kubectl delete pvc data-0", "delete-pvc"),
            ("kubectl delete pv vol-1", "delete-pv"),
            ("kubectl scale deployment web --replicas=0", "scale-to-zero"),
        ],
        "untouched": ["kubectl apply -f deploy.yaml"],
    },
    "infrastructure.terraform": {
        "safe": ["terraform plan", "terraform init", "terraform state list"],
        "destructive": [
            ("terraform destroy", "destroy"),
            ("terraform destroy -auto-approve", "destroy"),
            ("terraform plan -destroy", "plan-destroy"),
            ("terraform apply -auto-approve", "apply-auto-approve"),
            ("terraform taint aws_instance.web", "taint"),
            ("terraform state rm aws_instance.web", "state-rm"),
            ("terraform state mv a b", "state-mv"),
            ("terraform force-unlock 1234", "force-unlock"),
            ("terraform workspace delete staging", "workspace-delete"),
        ],
        "untouched": ["terraform apply"],
    },
    "database.postgresql": {
        "safe": ["pg_dump mydb > backup.sql", "pg_dump --schema-only mydb"],
        "destructive": [
            ("psql -c 'DROP DATABASE prod'", "drop-database"),
            ("psql -c 'drop table users'", "drop-table"),
            ("psql -c 'DROP SCHEMA app CASCADE'", "drop-schema"),
            ("psql -c 'TRUNCATE users'", "truncate-table"),
            ("psql -c 'DELETE FROM users;'", "delete-without-where"),
            ("dropdb prod", "dropdb-cli"),
            ("pg_dump --clean mydb", "pg-dump-clean"),
        ],
        "untouched": ["psql -c \"DELETE FROM users WHERE id = 1\"", "psql -l"],
    },
}


def _cases(kind):
    for pack_id, cases in PACK_CASES.items():
        for case in cases[kind]:
            yield pytest.param(pack_id, case, id=f"{pack_id}:{case if isinstance(case, str) else case[0]}")


@pytest.fixture(scope="module")
def packs():
    registry = build_default_registry()
    return {pack_id: registry.require(pack_id) for pack_id in registry.pack_ids}


class TestPackExamples:
    """Every pack behaves as declared on its example commands."""

    def test_every_shipped_pack_has_cases(self, packs):
        assert set(packs) == set(PACK_CASES)

    @pytest.mark.parametrize("pack_id, command", list(_cases("safe")))
    def test_safe_examples(self, packs, pack_id, command):
        pack = packs[pack_id]
        assert pack.match_safe(command) is not None, command

    @pytest.mark.parametrize("pack_id, case", list(_cases("destructive")))
    def test_destructive_examples(self, packs, pack_id, case):
        command, expected = case
        pack = packs[pack_id]
        assert pack.match_safe(command) is None, command
        hit = pack.match_destructive(command)
        assert hit is not None, command
        assert hit.pattern.name == expected

    @pytest.mark.parametrize("pack_id, case", list(_cases("destructive")))
    def test_destructive_examples_contain_a_keyword(self, packs, pack_id, case):
        """Quick-reject can never skip a command that one of its packs would block."""
        command, _ = case
        assert packs[pack_id].might_match(command), command

    @pytest.mark.parametrize("pack_id, command", list(_cases("untouched")))
    def test_untouched_examples(self, packs, pack_id, command):
        pack = packs[pack_id]
        assert pack.match_safe(command) is None
        assert pack.match_destructive(command) is None


class TestPackStructure:
    """Tests for Pack construction and metadata."""

    def test_every_destructive_pattern_is_named_and_unique(self, packs):
        for pack in packs.values():
            names = [p.name for p in pack.destructive_patterns]
            assert all(names), pack.id
            assert len(names) == len(set(names)), pack.id

    def test_critical_rules(self, packs):
        git = packs["core.git"]
        assert git.get_pattern("reset-hard").severity is Severity.CRITICAL
        assert git.get_pattern("stash-drop").severity is Severity.MEDIUM
        assert git.get_pattern("no-such-rule") is None

    def test_duplicate_pattern_names_rejected(self):
        with pytest.raises(ValueError):
            Pack(
                id="test.dup",
                name="Dup",
                description="",
                keywords=("x",),
                destructive_patterns=(
                    destructive_pattern("same", r"x", "first"),
                    destructive_pattern("same", r"y", "second"),
                ),
            )

    def test_category_and_keyword_check(self, packs):
        git = packs["core.git"]
        assert git.category == "core"
        assert git.might_match("GIT RESET --HARD")
        assert not git.might_match("ls -la")

    def test_pack_without_keywords_always_might_match(self):
        pack = Pack(id="test.any", name="Any", description="", keywords=())
        assert pack.might_match("anything at all")


class TestSafeCommand:
    """Safe patterns only apply to the whole command."""

    def test_chained_command_is_not_safe(self):
        safe = safe_command("ls", r"ls\b")
        assert safe.find("ls -la") is not None
        for command in ["ls; rm -rf /", "ls && rm -rf /", "ls | sh", "ls $(rm -rf /)", "ls\nrm -rf /"]:
            assert safe.find(command) is None, command

    def test_must_start_at_command_start(self):
        safe = safe_command("ls", r"ls\b")
        assert safe.find("echo ls") is None
        assert safe.find("  ls") is not None
