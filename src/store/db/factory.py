"""Database factory for creating database adapters."""

from dataclasses import dataclass
from pathlib import Path

from .interface import DatabaseAdapter
from .sqlite_adapter import MEMORY, SQLiteAdapter


@dataclass
class DatabaseConfig:
    """Database configuration container.

    Attributes:
        db_path: Path to the SQLite database file, or ``":memory:"``
    """

    db_path: Path | str

    def __post_init__(self):
        """Normalize the configured path."""
        if self.db_path is None or str(self.db_path) == "":
            raise ValueError("db_path is required")
        if isinstance(self.db_path, str) and self.db_path != MEMORY:
            self.db_path = Path(self.db_path).expanduser()


def create_database(config: DatabaseConfig) -> DatabaseAdapter:
    """Create the adapter described by ``config``.

    Example:
        >>> adapter = create_database(DatabaseConfig(db_path="./data/books.db"))
        >>> adapter.connect()
    """
    return SQLiteAdapter(config.db_path)


def get_adapter() -> DatabaseAdapter:
    """Get database adapter using environment configuration.

    Example:
        >>> # Uses MARGINALIA_DB_PATH
        >>> adapter = get_adapter()
    """
    from common.env import env

    return create_database(DatabaseConfig(db_path=env.database_path()))
