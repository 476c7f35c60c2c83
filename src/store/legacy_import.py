"""Import of the pre-SQLite ``books.json`` library.

Before the SQLite store existed, the reader kept its whole library in one JSON
file: an array of books, each carrying its highlights inline::

    [{"id": "...", "title": "...", "filePath": "...", "coverPath": "...",
      "author": "...", "description": "...",
      "annotations": [{"id": "...", "cfiRange": "...", "text": "...",
                       "note": "...", "createdAt": "2024-01-01T10:00:00Z"}]}]

Old ids are not kept; books and highlights get fresh ids on import.
"""

import json
import shutil
from dataclasses import dataclass
from pathlib import Path

from common.logger import get_logger

from .db import DatabaseError
from .ids import to_millis
from .maintenance import database_stats
from .models import AnnotationDraft, BookDraft
from .store import Store

logger = get_logger(__name__)

BACKUP_SUFFIX = ".backup"


@dataclass
class LegacyImportResult:
    """Outcome of a JSON import."""

    success: bool
    message: str
    books: int = 0
    annotations: int = 0


@dataclass
class MigrationInfo:
    """What a legacy JSON file holds, read without importing it."""

    has_json_file: bool
    json_file_size: int = 0
    book_count: int = 0


def needs_migration(json_path: str | Path) -> bool:
    return Path(json_path).exists()


def migration_info(json_path: str | Path) -> MigrationInfo:
    """Describe the legacy file at ``json_path``.

    An unreadable file is reported as present but empty.
    """
    json_path = Path(json_path)
    if not json_path.exists():
        return MigrationInfo(has_json_file=False)

    try:
        size = json_path.stat().st_size
        books = json.loads(json_path.read_text(encoding="utf-8"))
    except (OSError, ValueError) as e:
        logger.warning("Could not read %s: %s", json_path, e)
        return MigrationInfo(has_json_file=True)

    return MigrationInfo(
        has_json_file=True,
        json_file_size=size,
        book_count=len(books) if isinstance(books, list) else 0,
    )


def _book_draft(entry: dict) -> BookDraft:
    return BookDraft(
        title=entry.get("title") or Path(entry["filePath"]).stem,
        file_path=entry["filePath"],
        cover_path=entry.get("coverPath"),
        author=entry.get("author"),
        description=entry.get("description"),
    )


def _import_books(store: Store, books: list) -> tuple[int, int]:
    imported_books = 0
    imported_annotations = 0

    with store.adapter.transaction():
        for entry in books:
            if not isinstance(entry, dict) or not entry.get("filePath"):
                logger.warning("Skipping malformed book entry: %r", entry)
                continue
            if store.books.get_by_file_path(entry["filePath"]):
                logger.debug("Skipping already stored %s", entry["filePath"])
                continue

            book = store.books.create(_book_draft(entry))
            imported_books += 1

            for note in entry.get("annotations") or []:
                if not isinstance(note, dict) or not note.get("cfiRange"):
                    logger.warning("Skipping highlight without a range in %s", book.title)
                    continue
                store.annotations.create(
                    book.id,
                    AnnotationDraft(
                        cfi_range=note["cfiRange"],
                        text=note.get("text") or "",
                        note=note.get("note") or "",
                    ),
                    created_at=to_millis(note.get("createdAt")) or None,
                )
                imported_annotations += 1

    return imported_books, imported_annotations


def migrate_from_json(store: Store, json_path: str | Path) -> LegacyImportResult:
    """Copy the legacy JSON library into ``store``.

    Books whose file path is already stored are skipped, so running the
    import twice is harmless. The JSON file is left in place and copied to
    ``<json_path>.backup``. All books are imported in one transaction.
    """
    json_path = Path(json_path)
    if not json_path.exists():
        return LegacyImportResult(
            success=True, message="No JSON file found. Starting with empty database."
        )

    try:
        books = json.loads(json_path.read_text(encoding="utf-8"))
    except (OSError, ValueError) as e:
        logger.error("Failed to read %s: %s", json_path, e)
        return LegacyImportResult(success=False, message=f"Migration failed: {e}")

    if not isinstance(books, list):
        return LegacyImportResult(
            success=False, message="Invalid JSON format. Expected an array of books."
        )

    backup_path = json_path.with_name(json_path.name + BACKUP_SUFFIX)
    try:
        # Backed up first so a failed copy leaves the store untouched
        shutil.copyfile(json_path, backup_path)
        imported_books, imported_annotations = _import_books(store, books)
    except (DatabaseError, OSError) as e:
        logger.error("Migration from %s failed: %s", json_path, e)
        return LegacyImportResult(success=False, message=f"Migration failed: {e}")

    stats = database_stats(store.adapter)
    message = (
        f"Imported {imported_books} book(s) and {imported_annotations} annotation(s); "
        f"store now holds {stats.books} book(s) and {stats.annotations} annotation(s). "
        f"JSON file backed up to {backup_path}"
    )
    logger.info(message)
    return LegacyImportResult(
        success=True,
        message=message,
        books=imported_books,
        annotations=imported_annotations,
    )
