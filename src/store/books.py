"""Book repository."""

from common.logger import get_logger

from .db import DatabaseAdapter, DuplicateBookError, IntegrityError
from .ids import new_book_id
from .models import Book, BookDraft

logger = get_logger(__name__)

BOOK_COLUMNS = "id, title, cover_path, file_path, author, description, topic, reading_progress"

# Fields a sparse update may touch, mapped to their columns
UPDATABLE_FIELDS = {
    "title": "title",
    "cover_path": "cover_path",
    "file_path": "file_path",
    "author": "author",
    "description": "description",
    "topic": "topic",
    "reading_progress": "reading_progress",
}


class BookRepository:
    """CRUD over book records."""

    def __init__(self, adapter: DatabaseAdapter):
        self.adapter = adapter

    def get_all(self) -> list[Book]:
        """All books, most recently added first."""
        rows = self.adapter.fetchall(
            f"SELECT {BOOK_COLUMNS} FROM books ORDER BY created_at DESC, rowid DESC"
        )
        return [Book.from_row(row) for row in rows]

    def get_by_id(self, book_id: str) -> Book | None:
        row = self.adapter.fetchone(f"SELECT {BOOK_COLUMNS} FROM books WHERE id = ?", (book_id,))
        return Book.from_row(row) if row else None

    def get_by_file_path(self, file_path: str) -> Book | None:
        row = self.adapter.fetchone(
            f"SELECT {BOOK_COLUMNS} FROM books WHERE file_path = ?", (file_path,)
        )
        return Book.from_row(row) if row else None

    def create(self, draft: BookDraft) -> Book:
        """Store a new book under a freshly generated id.

        Args:
            draft: Book fields; any id the caller had in mind is ignored

        Returns:
            The stored book

        Raises:
            DuplicateBookError: If a book with the same file path exists
        """
        book_id = new_book_id(draft.file_path)
        try:
            self.adapter.execute(
                f"""
                INSERT INTO books ({BOOK_COLUMNS})
                VALUES (?, ?, ?, ?, ?, ?, ?, ?)
                """,
                (
                    book_id,
                    draft.title,
                    draft.cover_path,
                    draft.file_path,
                    draft.author,
                    draft.description,
                    draft.topic,
                    draft.reading_progress,
                ),
            )
        except IntegrityError as e:
            if "books.file_path" in str(e):
                raise DuplicateBookError(draft.file_path) from e
            raise

        logger.debug("Created book %s", book_id)
        return Book(
            id=book_id,
            title=draft.title,
            file_path=draft.file_path,
            cover_path=draft.cover_path,
            author=draft.author,
            description=draft.description,
            topic=draft.topic,
            reading_progress=draft.reading_progress,
        )

    def import_books(self, drafts: list[BookDraft]) -> list[Book]:
        """Create every draft whose file is not on the shelf yet.

        Returns:
            Books that were actually created, in input order
        """
        created = []
        seen: set[str] = set()
        for draft in drafts:
            if draft.file_path in seen or self.get_by_file_path(draft.file_path):
                logger.debug("Skipping already imported %s", draft.file_path)
                continue
            seen.add(draft.file_path)
            created.append(self.create(draft))
        if created:
            logger.info("Imported %d new book(s)", len(created))
        return created

    def update(self, book_id: str, **fields) -> bool:
        """Write only the supplied fields.

        Args:
            book_id: Book to patch
            **fields: Any of title, cover_path, file_path, author,
                description, topic, reading_progress

        Returns:
            True if a row was changed, False if nothing was supplied or the
            book does not exist

        Raises:
            ValueError: If an unknown field is supplied
            DuplicateBookError: If ``file_path`` collides with another book
        """
        unknown = set(fields) - set(UPDATABLE_FIELDS)
        if unknown:
            raise ValueError(f"Unknown book field(s): {', '.join(sorted(unknown))}")
        if not fields:
            return False

        assignments = [f"{UPDATABLE_FIELDS[name]} = ?" for name in fields]
        assignments.append("updated_at = CURRENT_TIMESTAMP")
        try:
            cursor = self.adapter.execute(
                f"UPDATE books SET {', '.join(assignments)} WHERE id = ?",
                (*fields.values(), book_id),
            )
        except IntegrityError as e:
            if "file_path" in fields and "books.file_path" in str(e):
                raise DuplicateBookError(fields["file_path"]) from e
            raise
        return cursor.rowcount > 0

    def delete(self, book_id: str) -> bool:
        """Delete a book; annotations, cards and connections cascade."""
        cursor = self.adapter.execute("DELETE FROM books WHERE id = ?", (book_id,))
        return cursor.rowcount > 0

    def update_reading_progress(self, book_id: str, progress: str) -> bool:
        """Persist the reader position. Single-row write, no read first."""
        cursor = self.adapter.execute(
            "UPDATE books SET reading_progress = ?, updated_at = CURRENT_TIMESTAMP WHERE id = ?",
            (progress, book_id),
        )
        return cursor.rowcount > 0
