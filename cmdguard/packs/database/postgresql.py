"""PostgreSQL pack: dropping databases, schemas and tables, and unbounded deletes."""

from cmdguard.packs.base import Pack, Severity, destructive_pattern, safe_command

_IDENT = r'(?:[a-zA-Z_][a-zA-Z0-9_]*|"[^"]+")'


def create_pack() -> Pack:
    return Pack(
        id="database.postgresql",
        name="PostgreSQL",
        description=(
            "Protects against destructive PostgreSQL operations like DROP DATABASE, "
            "TRUNCATE, and dropdb"
        ),
        keywords=("psql", "dropdb", "drop", "truncate", "pg_dump", "postgres", "delete"),
        safe_patterns=(
            safe_command("pg-dump-no-clean", r"pg_dump\s+", exclude=r"--clean|\s-c\b"),
            safe_command("select-query", r"(?i:SELECT)\s+"),
        ),
        destructive_patterns=(
            destructive_pattern(
                "drop-database",
                r"(?i)\bDROP\s+DATABASE\b",
                "DROP DATABASE permanently deletes the entire database (even with IF EXISTS). "
                "Verify and back up first.",
                Severity.CRITICAL,
                explanation=(
                    "DROP DATABASE removes the database and every object in it. There is no "
                    "undo short of restoring a backup.\n\n"
                    "Back up first:\n  pg_dump dbname > backup.sql"
                ),
            ),
            destructive_pattern(
                "drop-table",
                r"(?i)\bDROP\s+TABLE\b",
                "DROP TABLE permanently deletes the table (even with IF EXISTS). "
                "Verify and back up first.",
                Severity.HIGH,
            ),
            destructive_pattern(
                "drop-schema",
                r"(?i)\bDROP\s+SCHEMA\b",
                "DROP SCHEMA permanently deletes the schema and all its objects (even with IF EXISTS).",
                Severity.CRITICAL,
            ),
            destructive_pattern(
                "truncate-table",
                r"(?i)\bTRUNCATE\s+(?:TABLE\s+)?[a-zA-Z_]",
                "TRUNCATE permanently deletes all rows without logging individual deletions.",
                Severity.HIGH,
            ),
            destructive_pattern(
                "delete-without-where",
                r"(?i)\bDELETE\s+FROM\s+" + _IDENT + r"(?:\." + _IDENT + r""")?\s*(?:;|'|"|$)""",
                "DELETE without WHERE clause deletes ALL rows. "
                "Add a WHERE clause or use TRUNCATE intentionally.",
                Severity.HIGH,
            ),
            destructive_pattern(
                "dropdb-cli",
                r"\bdropdb\s+",
                "dropdb permanently deletes the entire database. Verify the database name carefully.",
                Severity.CRITICAL,
            ),
            destructive_pattern(
                "pg-dump-clean",
                r"pg_dump\s+.*(?:--clean|-c\b)",
                "pg_dump --clean drops objects before creating them. "
                "This can be destructive on restore.",
                Severity.MEDIUM,
            ),
        ),
    )
