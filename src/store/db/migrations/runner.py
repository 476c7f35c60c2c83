"""Migration runner for database schema updates."""

from collections import Counter
from dataclasses import dataclass
from typing import TYPE_CHECKING

from common.logger import get_logger

from ..types import MigrationError
from .versions import MIGRATIONS, Migration

if TYPE_CHECKING:
    from store.db.interface import DatabaseAdapter

logger = get_logger(__name__)


@dataclass
class MigrationStatus:
    """One registered migration and when it was applied."""

    version: int
    name: str
    applied_at: str | None

    @property
    def applied(self) -> bool:
        return self.applied_at is not None


class MigrationRunner:
    """Runs registered migrations and tracks schema versions."""

    def __init__(self, adapter: "DatabaseAdapter", migrations: list[Migration] | None = None):
        """Initialize migration runner.

        Args:
            adapter: Connected database adapter
            migrations: Migrations to manage (defaults to the registered set)
        """
        self.adapter = adapter
        self.migrations = sorted(
            MIGRATIONS if migrations is None else migrations, key=lambda m: m.version
        )

    def ensure_migration_table(self) -> None:
        """Create schema_version table if it doesn't exist."""
        self.adapter.execute(
            """
            CREATE TABLE IF NOT EXISTS schema_version (
                version INTEGER PRIMARY KEY,
                name TEXT NOT NULL,
                applied_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
            )
            """
        )

    def get_current_version(self) -> int:
        """Get current schema version.

        Returns:
            Highest applied version, or 0 if none is recorded
        """
        self.ensure_migration_table()
        version = self.adapter.fetchscalar("SELECT MAX(version) FROM schema_version")
        return version or 0

    @property
    def latest_version(self) -> int:
        return self.migrations[-1].version if self.migrations else 0

    def get_pending_migrations(self) -> list[Migration]:
        """Get migrations newer than the recorded version, oldest first."""
        current_version = self.get_current_version()
        return [m for m in self.migrations if m.version > current_version]

    def _violations(self) -> Counter:
        return Counter(
            (row["table"], row["parent"]) for row in self.adapter.foreign_key_violations()
        )

    def apply_migration(self, migration: Migration) -> None:
        """Apply a single migration atomically.

        Foreign keys are off while the step runs so tables can be rebuilt.
        Before committing, the step must not have introduced any
        foreign-key violation; otherwise everything it did is rolled back.

        Raises:
            MigrationError: If the step fails or breaks referential integrity
        """
        logger.info("Applying migration %d: %s", migration.version, migration.name)
        self.ensure_migration_table()
        before = self._violations()

        try:
            with self.adapter.foreign_keys_disabled(), self.adapter.transaction():
                migration.apply(self.adapter)

                introduced = self._violations() - before
                if introduced:
                    raise MigrationError(
                        f"Migration {migration.version} left dangling references: "
                        + ", ".join(f"{table}->{parent}" for table, parent in introduced)
                    )

                self.adapter.execute(
                    "INSERT INTO schema_version (version, name) VALUES (?, ?)",
                    (migration.version, migration.name),
                )
        except Exception as e:
            logger.error("Failed to apply migration %d: %s", migration.version, e)
            if isinstance(e, MigrationError):
                raise
            raise MigrationError(
                f"Migration {migration.version} ({migration.name}) failed: {e}"
            ) from e

        logger.info("Applied migration %d: %s", migration.version, migration.name)

    def run_migrations(self) -> int:
        """Run all pending migrations.

        Returns:
            Number of migrations applied
        """
        pending = self.get_pending_migrations()

        if not pending:
            logger.debug("No pending migrations")
            return 0

        logger.info("Found %d pending migration(s)", len(pending))
        for migration in pending:
            self.apply_migration(migration)

        return len(pending)

    def mark_all_applied(self) -> None:
        """Record every migration as applied without running it.

        Used right after a fresh store was created from the current schema.
        """
        with self.adapter.transaction():
            self.ensure_migration_table()
            for migration in self.migrations:
                self.adapter.execute(
                    "INSERT OR IGNORE INTO schema_version (version, name) VALUES (?, ?)",
                    (migration.version, migration.name),
                )

    def status(self) -> list[MigrationStatus]:
        """Report every registered migration with its applied timestamp."""
        self.ensure_migration_table()
        applied = {
            row["version"]: row["applied_at"]
            for row in self.adapter.fetchall("SELECT version, applied_at FROM schema_version")
        }
        return [
            MigrationStatus(version=m.version, name=m.name, applied_at=applied.get(m.version))
            for m in self.migrations
        ]
