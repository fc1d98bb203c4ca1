"""File-based SQLite schema migrations."""

from __future__ import annotations

import logging
import os
import re
import sqlite3
from dataclasses import dataclass
from pathlib import Path

logger = logging.getLogger(__name__)

_VERSION_RE = re.compile(r"[+-]?[0-9]+")


class MigrationError(Exception):
    """Raised when migrations cannot be discovered or applied."""


@dataclass(frozen=True)
class Migration:
    """A migration file with its version and descriptive name."""

    version: int
    name: str
    path: str


def parse_migration_file_name(file_name: str, path: str) -> Migration:
    """Parse names such as ``001_initial_schema.sql`` into a Migration.

    Raises ValueError for names without a numeric version prefix.
    """
    stem = file_name[: -len(".sql")] if file_name.endswith(".sql") else file_name
    version_str, sep, name = stem.partition("_")
    if not sep:
        raise ValueError(f"invalid migration file format: {file_name}")
    if not _VERSION_RE.fullmatch(version_str):
        raise ValueError(f"invalid version number in {file_name}: {version_str!r}")
    return Migration(version=int(version_str), name=name, path=path)


class MigrationRunner:
    """Applies pending migration files to an SQLite connection."""

    def __init__(self, conn: sqlite3.Connection) -> None:
        self._conn = conn

    def run(self, migrations_path: str | os.PathLike) -> None:
        """Apply every migration newer than the recorded schema version."""
        logger.info("Running migrations from %s", migrations_path)
        try:
            self.create_migrations_table()
        except sqlite3.Error as exc:
            raise MigrationError(f"failed to create migrations table: {exc}") from exc

        try:
            current = self.current_version()
        except sqlite3.Error as exc:
            raise MigrationError(f"failed to get current version: {exc}") from exc
        logger.info("Current database version: %d", current)

        try:
            migrations = self.find_migrations(migrations_path)
        except OSError as exc:
            raise MigrationError(f"failed to find migrations: {exc}") from exc

        pending = [m for m in migrations if m.version > current]
        if not pending:
            logger.info("No pending migrations")
            return

        logger.info("Found %d pending migrations", len(pending))
        for migration in pending:
            try:
                self.apply_migration(migration)
            except MigrationError as exc:
                raise MigrationError(
                    f"failed to apply migration {migration.version}: {exc}"
                ) from exc
            logger.info("Applied migration %d: %s", migration.version, migration.name)
        logger.info("All migrations completed successfully")

    def create_migrations_table(self) -> None:
        """Create the schema_migrations table if it does not exist."""
        self._conn.execute(
            """
            CREATE TABLE IF NOT EXISTS schema_migrations (
                version INTEGER PRIMARY KEY,
                applied_at TIMESTAMP NOT NULL DEFAULT CURRENT_TIMESTAMP
            )"""
        )
        self._conn.commit()

    def current_version(self) -> int:
        """Return the highest applied version, or 0 when none is recorded."""
        row = self._conn.execute(
            "SELECT COALESCE(MAX(version), 0) FROM schema_migrations"
        ).fetchone()
        return int(row[0])

    def find_migrations(self, migrations_path: str | os.PathLike) -> list[Migration]:
        """Return all well-named ``.sql`` files under a directory, by version.

        Raises OSError when the directory cannot be walked.
        """
        migrations = []
        walk_errors: list[OSError] = []
        for dirpath, dirnames, filenames in os.walk(
            migrations_path, onerror=walk_errors.append
        ):
            if walk_errors:
                break
            dirnames.sort()
            for file_name in sorted(filenames):
                path = os.path.join(dirpath, file_name)
                if not path.endswith(".sql"):
                    continue
                try:
                    migrations.append(parse_migration_file_name(file_name, path))
                except ValueError as exc:
                    logger.warning("Skipping invalid migration file %s: %s", file_name, exc)
        if walk_errors:
            raise walk_errors[0]
        migrations.sort(key=lambda m: m.version)
        return migrations

    def apply_migration(self, migration: Migration) -> None:
        """Run one migration file and record it, all in one transaction."""
        try:
            content = Path(migration.path).read_text(encoding="utf-8")
        except OSError as exc:
            raise MigrationError(f"failed to read migration file: {exc}") from exc

        script = (
            "BEGIN;\n"
            f"{content}\n;\n"
            "INSERT INTO schema_migrations (version) "
            f"VALUES ({int(migration.version)}) ON CONFLICT DO NOTHING;\n"
            "COMMIT;\n"
        )
        try:
            self._conn.executescript(script)
        except sqlite3.Error as exc:
            if self._conn.in_transaction:
                self._conn.rollback()
            raise MigrationError(f"failed to execute migration SQL: {exc}") from exc

    def status(self, migrations_path: str | os.PathLike) -> None:
        """Print the current version and the state of each migration."""
        try:
            current = self.current_version()
        except sqlite3.Error as exc:
            raise MigrationError(f"failed to get current version: {exc}") from exc
        try:
            migrations = self.find_migrations(migrations_path)
        except OSError as exc:
            raise MigrationError(f"failed to find migrations: {exc}") from exc

        print(f"Current database version: {current}")
        print("Available migrations:")
        for migration in migrations:
            state = "applied" if migration.version <= current else "pending"
            print(f"  {migration.version:03d} {migration.name} [{state}]")