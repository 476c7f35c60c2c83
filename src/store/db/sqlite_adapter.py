"""SQLite database adapter implementation.

The connection runs in autocommit mode and every multi-statement write goes
through ``transaction()``, which issues an explicit ``BEGIN IMMEDIATE`` (or a
``SAVEPOINT`` when nested). That keeps DDL inside transactions too, which the
migration runner relies on.
"""

import itertools
import sqlite3
from collections.abc import Iterator
from contextlib import contextmanager
from pathlib import Path
from typing import Any

from common.logger import get_logger

from .interface import DatabaseAdapter
from .types import ConnectionError as DBConnectionError
from .types import DatabaseError, Row, SchemaError
from .types import IntegrityError as DBIntegrityError

logger = get_logger(__name__)

MEMORY = ":memory:"


def split_statements(script: str) -> list[str]:
    """Split an SQL script into complete statements.

    Args:
        script: SQL text containing one or more ``;``-terminated statements

    Returns:
        Statements in order, without surrounding whitespace
    """
    statements = []
    buffer = ""
    for line in script.splitlines(keepends=True):
        buffer += line
        if sqlite3.complete_statement(buffer):
            statement = buffer.strip()
            if statement:
                statements.append(statement)
            buffer = ""
    leftover = "\n".join(
        line for line in buffer.splitlines() if line.strip() and not line.strip().startswith("--")
    )
    if leftover:
        raise SchemaError(f"Incomplete SQL statement: {leftover[:80]}")
    return statements


class SQLiteAdapter(DatabaseAdapter):
    """SQLite database adapter."""

    def __init__(self, db_path: str | Path):
        """Initialize SQLite adapter.

        Args:
            db_path: Path to SQLite database file, or ``":memory:"``
        """
        self.db_path = db_path if str(db_path) == MEMORY else Path(db_path)
        self._conn: sqlite3.Connection | None = None
        self._schema_file = Path(__file__).parent / "schema_sqlite.sql"
        self._savepoints = itertools.count(1)

    @property
    def is_connected(self) -> bool:
        return self._conn is not None

    def _require(self) -> sqlite3.Connection:
        if not self._conn:
            raise DatabaseError("No active connection")
        return self._conn

    def connect(self) -> None:
        """Establish database connection with foreign keys enforced."""
        if self._conn:
            return
        try:
            if isinstance(self.db_path, Path):
                self.db_path.parent.mkdir(parents=True, exist_ok=True)
            self._conn = sqlite3.connect(str(self.db_path), isolation_level=None)
            self._conn.row_factory = sqlite3.Row
            self._conn.execute("PRAGMA foreign_keys = ON")
        except (sqlite3.Error, OSError) as e:
            self._conn = None
            raise DBConnectionError(f"Failed to open SQLite database {self.db_path}: {e}") from e
        logger.debug("Opened SQLite store at %s", self.db_path)

    def close(self) -> None:
        """Close database connection."""
        if self._conn:
            self._conn.close()
            self._conn = None

    def commit(self) -> None:
        """Commit the open transaction, if any."""
        conn = self._require()
        try:
            if conn.in_transaction:
                conn.execute("COMMIT")
        except sqlite3.Error as e:
            raise DatabaseError(f"Failed to commit transaction: {e}") from e

    def rollback(self) -> None:
        """Roll back the open transaction, if any."""
        conn = self._require()
        try:
            if conn.in_transaction:
                conn.execute("ROLLBACK")
        except sqlite3.Error as e:
            raise DatabaseError(f"Failed to rollback transaction: {e}") from e

    @contextmanager
    def transaction(self) -> Iterator[None]:
        conn = self._require()
        if conn.in_transaction:
            name = f"sp_{next(self._savepoints)}"
            conn.execute(f"SAVEPOINT {name}")
            try:
                yield
            except BaseException:
                conn.execute(f"ROLLBACK TO SAVEPOINT {name}")
                conn.execute(f"RELEASE SAVEPOINT {name}")
                raise
            conn.execute(f"RELEASE SAVEPOINT {name}")
            return

        try:
            conn.execute("BEGIN IMMEDIATE")
        except sqlite3.Error as e:
            raise DatabaseError(f"Failed to begin transaction: {e}") from e
        try:
            yield
        except BaseException:
            if conn.in_transaction:
                conn.execute("ROLLBACK")
            raise
        try:
            conn.execute("COMMIT")
        except sqlite3.Error as e:
            if conn.in_transaction:
                conn.execute("ROLLBACK")
            raise DatabaseError(f"Failed to commit transaction: {e}") from e

    @contextmanager
    def foreign_keys_disabled(self) -> Iterator[None]:
        conn = self._require()
        if conn.in_transaction:
            raise DatabaseError("Foreign keys cannot be toggled inside a transaction")
        conn.execute("PRAGMA foreign_keys = OFF")
        try:
            yield
        finally:
            if conn.in_transaction:
                conn.execute("ROLLBACK")
            conn.execute("PRAGMA foreign_keys = ON")

    def create_schema(self) -> None:
        """Create all tables and indexes from the schema file."""
        self._require()
        try:
            schema_sql = self._schema_file.read_text()
        except OSError as e:
            raise SchemaError(f"Failed to read schema file {self._schema_file}: {e}") from e

        try:
            with self.transaction():
                for statement in split_statements(schema_sql):
                    self.execute(statement)
        except DatabaseError as e:
            raise SchemaError(f"Failed to create schema: {e}") from e

    def get_tables(self) -> list[str]:
        """Get list of all user tables."""
        rows = self.fetchall(
            "SELECT name FROM sqlite_master WHERE type = 'table' "
            "AND name NOT LIKE 'sqlite_%' ORDER BY name"
        )
        return [row["name"] for row in rows]

    def get_columns(self, table_name: str) -> set[str]:
        """Get column names of a table."""
        rows = self.fetchall(f"PRAGMA table_info({table_name})")
        return {row["name"] for row in rows}

    def get_indexes(self, table_name: str) -> set[str]:
        """Get index names of a table."""
        rows = self.fetchall(f"PRAGMA index_list({table_name})")
        return {row["name"] for row in rows}

    def foreign_key_violations(self) -> list[Row]:
        return self.fetchall("PRAGMA foreign_key_check")

    def execute(self, query: str, params: tuple | list | None = None) -> Any:
        """Execute a query and return cursor."""
        conn = self._require()
        try:
            if params:
                return conn.execute(query, params)
            return conn.execute(query)
        except sqlite3.IntegrityError as e:
            raise DBIntegrityError(f"Integrity constraint violation: {e}") from e
        except sqlite3.Error as e:
            raise DatabaseError(f"Query execution failed: {e}") from e

    def fetchone(self, query: str, params: tuple | list | None = None) -> Row | None:
        """Execute query and fetch one result as dictionary."""
        row = self.execute(query, params).fetchone()
        if row is None:
            return None
        return dict(row)

    def fetchall(self, query: str, params: tuple | list | None = None) -> list[Row]:
        """Execute query and fetch all results as list of dictionaries."""
        return [dict(row) for row in self.execute(query, params).fetchall()]

    def fetchscalar(self, query: str, params: tuple | list | None = None) -> Any:
        """Execute query and return first column of first row."""
        row = self.execute(query, params).fetchone()
        if row is None:
            return None
        return row[0]

    def backup(self, destination: str | Path) -> None:
        """Copy the live store into ``destination`` using SQLite's backup API."""
        conn = self._require()
        destination = Path(destination)
        destination.parent.mkdir(parents=True, exist_ok=True)
        target = sqlite3.connect(str(destination))
        try:
            conn.backup(target)
        except sqlite3.Error as e:
            raise DatabaseError(f"Backup to {destination} failed: {e}") from e
        finally:
            target.close()

    def vacuum(self) -> None:
        """Rebuild the database file, reclaiming free pages."""
        conn = self._require()
        if conn.in_transaction:
            raise DatabaseError("VACUUM cannot run inside a transaction")
        self.execute("VACUUM")

    def exists(self) -> bool:
        """Check if SQLite database file exists."""
        if not isinstance(self.db_path, Path):
            return self._conn is not None
        return self.db_path.exists()

    def __repr__(self) -> str:
        """String representation."""
        status = "connected" if self._conn else "disconnected"
        return f"SQLiteAdapter(db_path={self.db_path}, status={status})"
