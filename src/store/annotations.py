"""Annotation repository."""

from common.logger import get_logger

from .db import DatabaseAdapter, IntegrityError, ReferentialIntegrityError
from .ids import new_id, now_ms
from .models import Annotation, AnnotationDraft, Color

logger = get_logger(__name__)

ANNOTATION_COLUMNS = (
    "id, book_id, cfi_range, text, title, note, color_rgba, color_category, created_at, updated_at"
)


class AnnotationRepository:
    """CRUD over highlights."""

    def __init__(self, adapter: DatabaseAdapter):
        self.adapter = adapter

    def get_by_book_id(self, book_id: str) -> list[Annotation]:
        """Annotations of a book, oldest first (the canonical display order)."""
        rows = self.adapter.fetchall(
            f"""
            SELECT {ANNOTATION_COLUMNS}
            FROM annotations
            WHERE book_id = ?
            ORDER BY created_at ASC, id ASC
            """,
            (book_id,),
        )
        return [Annotation.from_row(row) for row in rows]

    def get_by_id(self, annotation_id: str) -> Annotation | None:
        row = self.adapter.fetchone(
            f"SELECT {ANNOTATION_COLUMNS} FROM annotations WHERE id = ?", (annotation_id,)
        )
        return Annotation.from_row(row) if row else None

    def exists(self, annotation_id: str) -> bool:
        return (
            self.adapter.fetchscalar("SELECT 1 FROM annotations WHERE id = ?", (annotation_id,))
            is not None
        )

    def create(
        self, book_id: str, draft: AnnotationDraft, created_at: int | None = None
    ) -> Annotation:
        """Store a highlight for ``book_id``.

        Args:
            book_id: Owning book
            draft: Highlight fields
            created_at: Epoch ms to record instead of now, for imported highlights

        Raises:
            ReferentialIntegrityError: If the book does not exist
        """
        annotation_id = new_id()
        now = now_ms() if created_at is None else created_at
        try:
            self.adapter.execute(
                f"""
                INSERT INTO annotations ({ANNOTATION_COLUMNS})
                VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
                """,
                (
                    annotation_id,
                    book_id,
                    draft.cfi_range,
                    draft.text,
                    draft.title,
                    draft.note,
                    draft.color.rgba,
                    draft.color.category,
                    now,
                    now,
                ),
            )
        except IntegrityError as e:
            if "FOREIGN KEY" in str(e):
                raise ReferentialIntegrityError(f"Book {book_id} does not exist") from e
            raise

        return Annotation(
            id=annotation_id,
            book_id=book_id,
            cfi_range=draft.cfi_range,
            text=draft.text,
            title=draft.title,
            note=draft.note,
            color=draft.color,
            created_at=now,
            updated_at=now,
        )

    def update(
        self,
        annotation_id: str,
        note: str | None = None,
        title: str | None = None,
        color: Color | None = None,
    ) -> bool:
        """Change the mutable fields that were supplied.

        Returns:
            False if the annotation does not exist
        """
        assignments = []
        params: list = []
        if note is not None:
            assignments.append("note = ?")
            params.append(note)
        if title is not None:
            assignments.append("title = ?")
            params.append(title)
        if color is not None:
            assignments.extend(["color_rgba = ?", "color_category = ?"])
            params.extend([color.rgba, color.category])

        assignments.append("updated_at = ?")
        params.extend([now_ms(), annotation_id])
        cursor = self.adapter.execute(
            f"UPDATE annotations SET {', '.join(assignments)} WHERE id = ?", params
        )
        return cursor.rowcount > 0

    def delete(self, annotation_id: str) -> bool:
        """Delete an annotation together with its card and that card's connections.

        The foreign keys cascade already; the explicit deletes keep the
        guarantee on stores opened without foreign-key enforcement.

        Returns:
            False if the annotation does not exist
        """
        with self.adapter.transaction():
            self.adapter.execute(
                """
                DELETE FROM note_connections
                WHERE from_card_id IN (SELECT id FROM cards WHERE annotation_id = ?)
                   OR to_card_id IN (SELECT id FROM cards WHERE annotation_id = ?)
                """,
                (annotation_id, annotation_id),
            )
            self.adapter.execute("DELETE FROM cards WHERE annotation_id = ?", (annotation_id,))
            cursor = self.adapter.execute("DELETE FROM annotations WHERE id = ?", (annotation_id,))
            deleted = cursor.rowcount > 0

        if not deleted:
            logger.debug("Annotation %s not found for delete", annotation_id)
        return deleted
