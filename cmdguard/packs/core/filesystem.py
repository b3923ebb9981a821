"""Filesystem pack: recursive forced deletion with ``rm``."""

from cmdguard.packs.base import Pack, Severity, destructive_pattern, safe_command

# rm flag spellings that combine recursive and force.
_RF_COMBINED = r"-[a-zA-Z]*[rR][a-zA-Z]*f[a-zA-Z]*"
_FR_COMBINED = r"-[a-zA-Z]*f[a-zA-Z]*[rR][a-zA-Z]*"
_RF_SEPARATE = r"(?:-[a-zA-Z]+\s+)*-[rR]\s+(?:-[a-zA-Z]+\s+)*-f"
_FR_SEPARATE = r"(?:-[a-zA-Z]+\s+)*-f\s+(?:-[a-zA-Z]+\s+)*-[rR]"
_LONG = r"(?:-\S+\s+)*--recursive\s+(?:-\S+\s+)*--force|(?:-\S+\s+)*--force\s+(?:-\S+\s+)*--recursive"

_ANY_RECURSIVE_FORCE = "|".join([_RF_COMBINED, _FR_COMBINED, _RF_SEPARATE, _FR_SEPARATE, _LONG])

# A single argument inside a scratch directory.
_TEMP_ARG = r'"?(?:/tmp/|/var/tmp/|\$TMPDIR/|\$\{TMPDIR\}/)[^\s;&|]*'

# Any ".." path component.
_TRAVERSAL = r'/\.\.(?:/|\s|"|$)'


def create_pack() -> Pack:
    return Pack(
        id="core.filesystem",
        name="Core Filesystem",
        description="Protects against recursive forced deletion outside scratch directories",
        keywords=("rm",),
        safe_patterns=(
            safe_command(
                "rm-rf-temp",
                r"rm\s+(?:" + _ANY_RECURSIVE_FORCE + r")(?:\s+" + _TEMP_ARG + r")+\s*$",
                exclude=_TRAVERSAL,
            ),
        ),
        destructive_patterns=(
            destructive_pattern(
                "rm-rf-root-home",
                r"\brm\s+(?:" + _RF_COMBINED + "|" + _FR_COMBINED + r")\s+[/~]\S*",
                "rm -rf on root or home paths is EXTREMELY DANGEROUS. This command will NOT be "
                "executed. Ask the user to run it manually if truly needed.",
                Severity.CRITICAL,
                explanation=(
                    "Recursive forced deletion of an absolute or home-relative path removes "
                    "everything beneath it without prompting. Nothing deleted this way can be "
                    "recovered from the shell.\n\n"
                    "Safer alternatives:\n"
                    "- rm -ri <path>: confirm each deletion\n"
                    "- ls -la <path>: review what would be removed first"
                ),
                exclude=r'\s"?/(?:var/)?tmp/\S',
            ),
            destructive_pattern(
                "rm-rf-general",
                r"\brm\s+-[a-zA-Z]*[rR][a-zA-Z]*f|\brm\s+-[a-zA-Z]*f[a-zA-Z]*[rR]",
                "rm -rf is destructive and requires human approval. Explain what you want to "
                "delete and why, then ask the user to run the command manually.",
                Severity.HIGH,
            ),
            destructive_pattern(
                "rm-r-f-separate",
                r"\brm\s+" + _RF_SEPARATE + r"|\brm\s+" + _FR_SEPARATE,
                "rm with separate -r -f flags is destructive and requires human approval.",
                Severity.HIGH,
            ),
            destructive_pattern(
                "rm-recursive-force-long",
                r"\brm\s+.*--recursive.*--force|\brm\s+.*--force.*--recursive",
                "rm --recursive --force is destructive and requires human approval.",
                Severity.HIGH,
            ),
        ),
    )
