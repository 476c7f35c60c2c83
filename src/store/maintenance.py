"""Housekeeping operations on an open store."""

from dataclasses import asdict, dataclass
from pathlib import Path

from common.logger import get_logger

from .db import DatabaseAdapter

logger = get_logger(__name__)


@dataclass
class DatabaseStats:
    """Row counts of the user-facing tables."""

    books: int = 0
    annotations: int = 0
    cards: int = 0
    connections: int = 0

    def to_dict(self) -> dict[str, int]:
        return asdict(self)


def database_stats(adapter: DatabaseAdapter) -> DatabaseStats:
    """Count books, annotations, cards and connections."""
    tables = {
        "books": "books",
        "annotations": "annotations",
        "cards": "cards",
        "connections": "note_connections",
    }
    counts = {
        field: adapter.fetchscalar(f"SELECT COUNT(*) FROM {table}") or 0
        for field, table in tables.items()
    }
    return DatabaseStats(**counts)


def backup_database(adapter: DatabaseAdapter, destination: str | Path) -> Path:
    """Write a consistent copy of the live store to ``destination``.

    Returns:
        The backup path
    """
    destination = Path(destination)
    adapter.backup(destination)
    logger.info("Backed up store to %s", destination)
    return destination


def vacuum_database(adapter: DatabaseAdapter) -> None:
    adapter.vacuum()
    logger.info("Vacuumed store")
