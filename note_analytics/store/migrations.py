"""SQLite schema migrations for the analytics store."""

import sqlite3
from dataclasses import dataclass
from datetime import UTC, datetime

import structlog

from note_analytics.store.errors import MigrationError


logger = structlog.get_logger()

# Current schema version
CURRENT_VERSION = 3


@dataclass(frozen=True)
class Migration:
    """A database migration.

    Attributes:
        version: Target version after applying this migration.
        description: Human-readable description.
        up_sql: SQL to apply the migration.
        down_sql: SQL to rollback the migration.
    """

    version: int
    description: str
    up_sql: str
    down_sql: str


# All migrations in order
MIGRATIONS: list[Migration] = [
    Migration(
        version=1,
        description="Articles master and daily metric tables",
        up_sql="""
-- Articles: one row per upstream article, unique by external key
CREATE TABLE IF NOT EXISTS articles (
    internal_id INTEGER PRIMARY KEY AUTOINCREMENT,
    external_key TEXT NOT NULL UNIQUE,
    title TEXT NOT NULL,
    url TEXT,
    status TEXT NOT NULL DEFAULT 'published'
        CHECK (status IN ('draft', 'published')),
    created_at TEXT NOT NULL,
    updated_at TEXT NOT NULL,
    published_at TEXT
);
CREATE INDEX IF NOT EXISTS idx_articles_title ON articles(title);
CREATE INDEX IF NOT EXISTS idx_articles_status ON articles(status);

-- Daily metrics: exactly one row per article per day
CREATE TABLE IF NOT EXISTS daily_metrics (
    article_id INTEGER NOT NULL REFERENCES articles(internal_id) ON DELETE CASCADE,
    date TEXT NOT NULL,
    pv INTEGER NOT NULL DEFAULT 0 CHECK (pv >= 0),
    likes INTEGER NOT NULL DEFAULT 0 CHECK (likes >= 0),
    comments INTEGER NOT NULL DEFAULT 0 CHECK (comments >= 0),
    source TEXT NOT NULL CHECK (source IN ('snapshot', 'delta')),
    updated_at TEXT NOT NULL,
    PRIMARY KEY (article_id, date)
);
CREATE INDEX IF NOT EXISTS idx_daily_metrics_date ON daily_metrics(date);
""",
        down_sql="""
DROP INDEX IF EXISTS idx_daily_metrics_date;
DROP TABLE IF EXISTS daily_metrics;
DROP INDEX IF EXISTS idx_articles_status;
DROP INDEX IF EXISTS idx_articles_title;
DROP TABLE IF EXISTS articles;
""",
    ),
    Migration(
        version=2,
        description="Operation run ledger",
        up_sql="""
CREATE TABLE IF NOT EXISTS runs (
    run_id TEXT PRIMARY KEY,
    kind TEXT NOT NULL CHECK (kind IN ('sync', 'import')),
    started_at TEXT NOT NULL,
    finished_at TEXT,
    success INTEGER,
    error_summary TEXT
);
CREATE INDEX IF NOT EXISTS idx_runs_kind_finished ON runs(kind, finished_at);
""",
        down_sql="""
DROP INDEX IF EXISTS idx_runs_kind_finished;
DROP TABLE IF EXISTS runs;
""",
    ),
    Migration(
        version=3,
        description="Per-day account stats",
        up_sql="""
-- Account-level figures entered by hand; NULL means not recorded
CREATE TABLE IF NOT EXISTS daily_stats (
    date TEXT PRIMARY KEY,
    followers INTEGER CHECK (followers IS NULL OR followers >= 0),
    revenue INTEGER CHECK (revenue IS NULL OR revenue >= 0),
    updated_at TEXT NOT NULL
);
""",
        down_sql="""
DROP TABLE IF EXISTS daily_stats;
""",
    ),
]


def get_migrations_to_apply(current_version: int) -> list[Migration]:
    """Get migrations that need to be applied.

    Args:
        current_version: The current schema version.

    Returns:
        List of migrations to apply in order.
    """
    return [m for m in MIGRATIONS if m.version > current_version]


class MigrationManager:
    """Manages SQLite schema migrations."""

    VERSION_TABLE_SQL = """
CREATE TABLE IF NOT EXISTS schema_version (
    version INTEGER PRIMARY KEY,
    applied_at TEXT NOT NULL,
    description TEXT
);
"""

    def __init__(self, connection: sqlite3.Connection) -> None:
        """Initialize the migration manager.

        Args:
            connection: SQLite connection to manage.
        """
        self._conn = connection
        self._log = logger.bind(component="store", operation="migration")

    def ensure_version_table(self) -> None:
        """Ensure the schema_version table exists."""
        self._conn.execute(self.VERSION_TABLE_SQL)
        self._conn.commit()

    def get_current_version(self) -> int:
        """Get the current schema version.

        Returns:
            Current version number, or 0 if no migrations applied.
        """
        self.ensure_version_table()
        row = self._conn.execute("SELECT MAX(version) FROM schema_version").fetchone()
        return row[0] if row[0] is not None else 0

    def apply_migrations(self) -> list[int]:
        """Apply all pending migrations.

        Returns:
            List of version numbers that were applied.

        Raises:
            MigrationError: If a migration fails.
        """
        current = self.get_current_version()
        pending = get_migrations_to_apply(current)

        if not pending:
            self._log.debug("no_migrations_pending", current_version=current)
            return []

        applied: list[int] = []
        for migration in pending:
            self._log.info(
                "applying_migration",
                version=migration.version,
                description=migration.description,
            )
            try:
                self._conn.executescript(migration.up_sql)
                self._conn.execute(
                    """
                    INSERT INTO schema_version (version, applied_at, description)
                    VALUES (?, ?, ?)
                    """,
                    (
                        migration.version,
                        datetime.now(UTC).isoformat(),
                        migration.description,
                    ),
                )
                self._conn.commit()
            except sqlite3.Error as e:
                self._conn.rollback()
                self._log.error(
                    "migration_failed", version=migration.version, error=str(e)
                )
                raise MigrationError(migration.version, str(e)) from e

            applied.append(migration.version)
            self._log.info("migration_applied", version=migration.version)

        return applied

    def rollback_to(self, target_version: int) -> list[int]:
        """Rollback to a specific version.

        Args:
            target_version: The version to rollback to.

        Returns:
            List of version numbers that were rolled back.

        Raises:
            ValueError: If target version is invalid.
            MigrationError: If a rollback fails.
        """
        if target_version < 0:
            msg = f"Invalid target version: {target_version}"
            raise ValueError(msg)

        by_version = {m.version: m for m in MIGRATIONS}
        rolled_back: list[int] = []

        while (current := self.get_current_version()) > target_version:
            migration = by_version.get(current)
            if migration is None:
                break

            self._log.info(
                "rolling_back_migration",
                version=migration.version,
                description=migration.description,
            )
            try:
                self._conn.executescript(migration.down_sql)
                self._conn.execute(
                    "DELETE FROM schema_version WHERE version = ?",
                    (migration.version,),
                )
                self._conn.commit()
            except sqlite3.Error as e:
                self._conn.rollback()
                self._log.error(
                    "rollback_failed", version=migration.version, error=str(e)
                )
                raise MigrationError(migration.version, str(e)) from e

            rolled_back.append(migration.version)

        return rolled_back
