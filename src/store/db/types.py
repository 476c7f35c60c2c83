"""Shared types and exceptions for the storage layer."""

from typing import Any


class DatabaseError(Exception):
    """Base exception for storage operations."""

    pass


class ConnectionError(DatabaseError):
    """Error opening the store."""

    pass


class SchemaError(DatabaseError):
    """Error with the store schema."""

    pass


class MigrationError(SchemaError):
    """A schema migration failed; the store cannot be trusted."""

    pass


class IntegrityError(DatabaseError):
    """Database integrity constraint violation."""

    pass


class DuplicateBookError(IntegrityError):
    """A book with the same file path is already stored."""

    def __init__(self, file_path: str):
        super().__init__(f"A book for {file_path!r} already exists")
        self.file_path = file_path


class ReferentialIntegrityError(DatabaseError):
    """A row references a parent row that does not exist."""

    pass


# Type alias for database rows
Row = dict[str, Any]
