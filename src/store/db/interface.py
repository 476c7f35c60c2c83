"""Abstract database adapter interface.

Repositories and the migration runner talk to the store only through this
interface, so the engine behind it can be swapped in tests.
"""

from abc import ABC, abstractmethod
from contextlib import AbstractContextManager
from pathlib import Path
from typing import Any

from .types import Row


class DatabaseAdapter(ABC):
    """Abstract database adapter interface."""

    @abstractmethod
    def connect(self) -> None:
        """Open the store and enable foreign-key enforcement.

        Raises:
            ConnectionError: If the store cannot be opened
        """
        pass

    @abstractmethod
    def close(self) -> None:
        """Close the store handle."""
        pass

    @property
    @abstractmethod
    def is_connected(self) -> bool:
        """Whether a handle is currently open."""
        pass

    @abstractmethod
    def commit(self) -> None:
        """Commit the current transaction, if any."""
        pass

    @abstractmethod
    def rollback(self) -> None:
        """Roll back the current transaction, if any."""
        pass

    @abstractmethod
    def transaction(self) -> AbstractContextManager[None]:
        """Run a block atomically.

        The outermost call opens a write transaction; nested calls open a
        savepoint, so a failing inner block can be rolled back without
        discarding the work of the outer one.
        """
        pass

    @abstractmethod
    def foreign_keys_disabled(self) -> AbstractContextManager[None]:
        """Switch foreign-key enforcement off for the duration of a block.

        Must be entered outside of any transaction.
        """
        pass

    @abstractmethod
    def create_schema(self) -> None:
        """Create all tables and indexes of the current schema.

        Raises:
            SchemaError: If schema creation fails
        """
        pass

    @abstractmethod
    def get_tables(self) -> list[str]:
        """Get list of all tables in the store."""
        pass

    @abstractmethod
    def get_columns(self, table_name: str) -> set[str]:
        """Get the column names of a table (empty if the table is missing)."""
        pass

    @abstractmethod
    def get_indexes(self, table_name: str) -> set[str]:
        """Get the index names of a table."""
        pass

    @abstractmethod
    def foreign_key_violations(self) -> list[Row]:
        """Rows that currently violate a foreign-key constraint."""
        pass

    @abstractmethod
    def execute(self, query: str, params: tuple | list | None = None) -> Any:
        """Execute a query and return the cursor.

        Raises:
            DatabaseError: If execution fails
            IntegrityError: If an integrity constraint is violated
        """
        pass

    @abstractmethod
    def fetchone(self, query: str, params: tuple | list | None = None) -> Row | None:
        """Execute query and fetch one result as dictionary."""
        pass

    @abstractmethod
    def fetchall(self, query: str, params: tuple | list | None = None) -> list[Row]:
        """Execute query and fetch all results as list of dictionaries."""
        pass

    @abstractmethod
    def fetchscalar(self, query: str, params: tuple | list | None = None) -> Any:
        """Execute query and return first column of first row."""
        pass

    @abstractmethod
    def backup(self, destination: str | Path) -> None:
        """Write a consistent copy of the store to ``destination``."""
        pass

    @abstractmethod
    def vacuum(self) -> None:
        """Compact the store file."""
        pass

    @abstractmethod
    def exists(self) -> bool:
        """Check if the store exists on disk."""
        pass

    def table_exists(self, table_name: str) -> bool:
        """Check if a table exists."""
        return table_name in self.get_tables()

    def __enter__(self):
        """Context manager entry."""
        self.connect()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        """Context manager exit."""
        if exc_type is not None:
            self.rollback()
        else:
            self.commit()
        self.close()
        return False
