"""Git pack: commands that lose uncommitted work, rewrite shared history or drop stashes."""

from cmdguard.packs.base import Pack, Severity, destructive_pattern, safe_command

# "git" followed by any global options (-C dir, -c key=value, --no-pager ...).
_GIT = r"git\s+(?:\S+\s+)*"


def create_pack() -> Pack:
    return Pack(
        id="core.git",
        name="Core Git",
        description=(
            "Protects against destructive git commands that can lose uncommitted work, "
            "rewrite history, or destroy stashes"
        ),
        keywords=("git",),
        safe_patterns=(
            safe_command("checkout-new-branch", _GIT + r"checkout\s+-b\s+"),
            safe_command("checkout-orphan", _GIT + r"checkout\s+--orphan\s+"),
            safe_command(
                "restore-staged-long",
                _GIT + r"restore\s+--staged\s+",
                exclude=r"--worktree|\s-W\b",
            ),
            safe_command(
                "restore-staged-short",
                _GIT + r"restore\s+-S\s+",
                exclude=r"--worktree|\s-W\b",
            ),
            safe_command("clean-dry-run-short", _GIT + r"clean\s+-[a-z]*n[a-z]*"),
            safe_command("clean-dry-run-long", _GIT + r"clean\s+--dry-run"),
        ),
        destructive_patterns=(
            destructive_pattern(
                "checkout-discard",
                _GIT + r"checkout\s+--\s+",
                "git checkout -- discards uncommitted changes permanently. Use 'git stash' first.",
                Severity.HIGH,
                explanation=(
                    "git checkout -- <path> discards all uncommitted changes to the specified "
                    "files. Those changes were never committed and cannot be recovered.\n\n"
                    "Safer alternatives:\n"
                    "- git stash: save changes temporarily, restore with 'git stash pop'\n"
                    "- git diff -- <path>: review what would be lost"
                ),
            ),
            destructive_pattern(
                "checkout-ref-discard",
                _GIT + r"checkout\s+\S+\s+--\s+",
                "git checkout <ref> -- <path> overwrites working tree. Use 'git stash' first.",
                Severity.HIGH,
                exclude=r"checkout\s+(?:-b|--orphan)\s",
            ),
            destructive_pattern(
                "restore-worktree",
                _GIT + r"restore\s+\S+",
                "git restore discards uncommitted changes. Use 'git stash' or 'git diff' first.",
                Severity.HIGH,
                exclude=r"restore\s+(?:--staged|-S)\b",
            ),
            destructive_pattern(
                "restore-worktree-explicit",
                _GIT + r"restore\s+.*(?:--worktree|-W\b)",
                "git restore --worktree/-W discards uncommitted changes permanently.",
                Severity.HIGH,
            ),
            destructive_pattern(
                "reset-hard",
                _GIT + r"reset\s+--hard",
                "git reset --hard destroys uncommitted changes. Use 'git stash' first.",
                Severity.CRITICAL,
                explanation=(
                    "git reset --hard discards ALL uncommitted changes in the working directory "
                    "and the staging area. Changes that were never committed cannot be "
                    "recovered by any means.\n\n"
                    "Safer alternatives:\n"
                    "- git reset --soft <ref>: move HEAD but keep changes staged\n"
                    "- git stash: save changes before resetting\n\n"
                    "Preview what would be lost:\n  git status && git diff"
                ),
            ),
            destructive_pattern(
                "reset-merge",
                _GIT + r"reset\s+--merge",
                "git reset --merge can lose uncommitted changes.",
                Severity.HIGH,
            ),
            destructive_pattern(
                "clean-force",
                _GIT + r"clean\s+(?:-[a-z]*f|--force\b)",
                "git clean -f/--force removes untracked files permanently. "
                "Review with 'git clean -n' first.",
                Severity.CRITICAL,
                explanation=(
                    "git clean -f permanently deletes untracked files. They were never "
                    "committed, so git history cannot bring them back.\n\n"
                    "Preview first:\n  git clean -n -d"
                ),
            ),
            destructive_pattern(
                "push-force-long",
                # --force, but not --force-with-lease or --force-if-includes
                _GIT + r"push\s+.*--force(?:[^-a-z]|$)",
                "Force push can destroy remote history. Use --force-with-lease if necessary.",
                Severity.CRITICAL,
                explanation=(
                    "git push --force overwrites remote history with local history and can "
                    "delete commits that collaborators already pulled.\n\n"
                    "Safer alternative:\n"
                    "- git push --force-with-lease: only forces if the remote matches your "
                    "last fetch"
                ),
            ),
            destructive_pattern(
                "push-force-short",
                _GIT + r"push\s+.*-f\b",
                "Force push (-f) can destroy remote history. Use --force-with-lease if necessary.",
                Severity.CRITICAL,
            ),
            destructive_pattern(
                "branch-force-delete",
                _GIT + r"branch\s+.*(?:-D\b|--force\b|-f\b)",
                "git branch -D/--force deletes branches without checks. "
                "Recoverable via 'git reflog'.",
                Severity.MEDIUM,
            ),
            destructive_pattern(
                "stash-drop",
                _GIT + r"stash\s+drop",
                "git stash drop deletes a single stash. "
                "Recoverable via `git fsck` (unreachable objects).",
                Severity.MEDIUM,
            ),
            destructive_pattern(
                "stash-clear",
                _GIT + r"stash\s+clear",
                "git stash clear permanently deletes ALL stashed changes.",
                Severity.CRITICAL,
            ),
        ),
    )
