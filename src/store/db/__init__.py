"""Database abstraction layer for marginalia.

Example:
    >>> from store.db import DatabaseConfig, create_database
    >>>
    >>> adapter = create_database(DatabaseConfig(db_path="data/books.db"))
    >>> adapter.connect()
    >>> adapter.create_schema()
    >>> adapter.close()
"""

from .factory import DatabaseConfig, create_database, get_adapter
from .interface import DatabaseAdapter
from .sqlite_adapter import SQLiteAdapter
from .types import (
    ConnectionError,
    DatabaseError,
    DuplicateBookError,
    IntegrityError,
    MigrationError,
    ReferentialIntegrityError,
    Row,
    SchemaError,
)

__all__ = [
    # Factory
    "DatabaseConfig",
    "create_database",
    "get_adapter",
    # Adapters
    "DatabaseAdapter",
    "SQLiteAdapter",
    # Types and exceptions
    "ConnectionError",
    "DatabaseError",
    "DuplicateBookError",
    "IntegrityError",
    "MigrationError",
    "ReferentialIntegrityError",
    "Row",
    "SchemaError",
]
