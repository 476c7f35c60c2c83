"""Store handle: one open database plus the repositories that use it."""

from pathlib import Path

from common.logger import get_logger

from .annotations import AnnotationRepository
from .books import BookRepository
from .cards import CardRepository
from .connections import ConnectionRepository
from .db import (
    DatabaseAdapter,
    DatabaseConfig,
    DatabaseError,
    MigrationError,
    create_database,
    get_adapter,
)
from .db.migrations import MigrationRunner

logger = get_logger(__name__)


class Store:
    """Explicit handle on the marginalia store.

    Example:
        >>> with Store("data/books.db") as store:
        ...     books = store.books.get_all()

    The repositories share the store's adapter, so everything done through
    one ``Store`` sees the same connection and transactions.
    """

    def __init__(self, db_path: str | Path | None = None, adapter: DatabaseAdapter | None = None):
        """Initialize the store handle.

        Args:
            db_path: SQLite file (or ``":memory:"``); defaults to MARGINALIA_DB_PATH
            adapter: Prebuilt adapter, used instead of ``db_path``
        """
        if adapter is None:
            if db_path is None:
                adapter = get_adapter()
            else:
                adapter = create_database(DatabaseConfig(db_path=db_path))
        self.adapter = adapter
        self.books = BookRepository(adapter)
        self.annotations = AnnotationRepository(adapter)
        self.cards = CardRepository(adapter)
        self.connections = ConnectionRepository(adapter)

    @property
    def is_open(self) -> bool:
        return self.adapter.is_connected

    def open(self) -> "Store":
        """Connect and bring the schema up to date.

        Raises:
            MigrationError: If the schema could not be brought up to date
        """
        self.adapter.connect()
        try:
            self.initialize()
        except Exception:
            self.adapter.close()
            raise
        return self

    def initialize(self) -> int:
        """Create or upgrade the schema without touching existing data.

        A fresh store gets the current schema and every migration is recorded
        as applied. An existing store has its pending migrations applied
        first, then any table or index still missing is created.

        Returns:
            Number of migrations applied

        Raises:
            MigrationError: If any step fails; the store must not be used
        """
        runner = MigrationRunner(self.adapter)
        try:
            existing = [t for t in self.adapter.get_tables() if t != "schema_version"]
            if not existing:
                logger.info("Creating new store at %s", getattr(self.adapter, "db_path", "?"))
                self.adapter.create_schema()
                runner.mark_all_applied()
                return 0

            applied = runner.run_migrations()
            self.adapter.create_schema()
        except MigrationError:
            raise
        except DatabaseError as e:
            logger.error("Store initialization failed: %s", e)
            raise MigrationError(f"Store initialization failed: {e}") from e

        if applied:
            logger.info("Store upgraded to schema version %d", runner.latest_version)
        return applied

    def close(self) -> None:
        self.adapter.close()

    def __enter__(self) -> "Store":
        return self.open()

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()
        return False

    def __repr__(self) -> str:
        return f"Store({self.adapter!r})"
