"""Card repository."""

from common.constants import (
    DEFAULT_CARD_HEIGHT,
    DEFAULT_CARD_ORIGIN,
    DEFAULT_CARD_WIDTH,
)
from common.logger import get_logger

from .db import DatabaseAdapter, DatabaseError, ReferentialIntegrityError
from .ids import new_id, now_ms
from .models import BatchFailure, BatchResult, Card, CardDraft, Position

logger = get_logger(__name__)

CARD_COLUMNS = "id, annotation_id, position_x, position_y, width, height"


def _placeholders(values: list) -> str:
    return ", ".join("?" for _ in values)


class CardRepository:
    """CRUD over the canvas placement of annotations."""

    def __init__(self, adapter: DatabaseAdapter):
        self.adapter = adapter

    def get_by_annotation_ids(self, annotation_ids: list[str]) -> list[Card]:
        """Cards owned by any of ``annotation_ids``. No query for empty input."""
        if not annotation_ids:
            return []
        ids = list(dict.fromkeys(annotation_ids))
        rows = self.adapter.fetchall(
            f"SELECT {CARD_COLUMNS} FROM cards WHERE annotation_id IN ({_placeholders(ids)})",
            ids,
        )
        return [Card.from_row(row) for row in rows]

    def get_by_book_id(self, book_id: str) -> list[Card]:
        rows = self.adapter.fetchall(
            """
            SELECT c.id, c.annotation_id, c.position_x, c.position_y, c.width, c.height
            FROM cards c
            JOIN annotations a ON a.id = c.annotation_id
            WHERE a.book_id = ?
            ORDER BY a.created_at ASC, a.id ASC
            """,
            (book_id,),
        )
        return [Card.from_row(row) for row in rows]

    def get_by_id(self, card_id: str) -> Card | None:
        row = self.adapter.fetchone(f"SELECT {CARD_COLUMNS} FROM cards WHERE id = ?", (card_id,))
        return Card.from_row(row) if row else None

    def _find_id_for_annotation(self, annotation_id: str) -> str | None:
        return self.adapter.fetchscalar(
            "SELECT id FROM cards WHERE annotation_id = ?", (annotation_id,)
        )

    def _annotation_exists(self, annotation_id: str) -> bool:
        return (
            self.adapter.fetchscalar("SELECT 1 FROM annotations WHERE id = ?", (annotation_id,))
            is not None
        )

    def _insert(self, annotation_id: str, draft: CardDraft) -> Card:
        position = draft.position or Position(*DEFAULT_CARD_ORIGIN)
        width = draft.width if draft.width is not None else DEFAULT_CARD_WIDTH
        height = draft.height if draft.height is not None else DEFAULT_CARD_HEIGHT
        card_id = new_id()
        now = now_ms()
        self.adapter.execute(
            f"""
            INSERT INTO cards ({CARD_COLUMNS}, created_at, updated_at)
            VALUES (?, ?, ?, ?, ?, ?, ?, ?)
            """,
            (card_id, annotation_id, position.x, position.y, width, height, now, now),
        )
        return Card(
            id=card_id, annotation_id=annotation_id, position=position, width=width, height=height
        )

    def create(self, annotation_id: str, draft: CardDraft | None = None) -> Card:
        """Place an annotation on the canvas.

        Missing geometry defaults to a 200x120 card at (50, 50). An annotation
        has at most one card, so if it already has one that card is returned
        unchanged.

        Raises:
            ReferentialIntegrityError: If the annotation does not exist
        """
        draft = draft or CardDraft(annotation_id=annotation_id)
        with self.adapter.transaction():
            if not self._annotation_exists(annotation_id):
                raise ReferentialIntegrityError(f"Annotation {annotation_id} does not exist")
            existing = self._find_id_for_annotation(annotation_id)
            if existing:
                logger.debug("Annotation %s already has card %s", annotation_id, existing)
                return self.get_by_id(existing)
            return self._insert(annotation_id, draft)

    def update(
        self,
        card_id: str,
        position: Position | None = None,
        width: float | None = None,
        height: float | None = None,
    ) -> bool:
        """Change the supplied geometry of a card.

        Returns:
            False if nothing was supplied or the card does not exist
        """
        assignments = []
        params: list = []
        if position is not None:
            assignments.extend(["position_x = ?", "position_y = ?"])
            params.extend([position.x, position.y])
        if width is not None:
            assignments.append("width = ?")
            params.append(width)
        if height is not None:
            assignments.append("height = ?")
            params.append(height)
        if not assignments:
            return False

        assignments.append("updated_at = ?")
        params.extend([now_ms(), card_id])
        cursor = self.adapter.execute(
            f"UPDATE cards SET {', '.join(assignments)} WHERE id = ?", params
        )
        return cursor.rowcount > 0

    def _upsert(self, draft: CardDraft) -> str:
        existing = self._find_id_for_annotation(draft.annotation_id)
        if existing is None:
            return self._insert(draft.annotation_id, draft).id

        self.adapter.execute(
            """
            UPDATE cards
            SET position_x = COALESCE(?, position_x),
                position_y = COALESCE(?, position_y),
                width = COALESCE(?, width),
                height = COALESCE(?, height),
                updated_at = ?
            WHERE id = ?
            """,
            (
                draft.position.x if draft.position else None,
                draft.position.y if draft.position else None,
                draft.width,
                draft.height,
                now_ms(),
                existing,
            ),
        )
        return existing

    def batch_update(self, cards: list[CardDraft]) -> BatchResult:
        """Upsert many cards by their owning annotation in one transaction.

        Entries whose annotation no longer exists are skipped with a warning.
        Each entry runs in its own savepoint: a failing entry is reported in
        the result and does not undo the entries around it. Repeating the
        call with the same payload leaves the same rows behind.
        """
        result = BatchResult()
        if not cards:
            return result

        with self.adapter.transaction():
            for draft in cards:
                if not self._annotation_exists(draft.annotation_id):
                    logger.warning(
                        "Skipping card for missing annotation %s", draft.annotation_id
                    )
                    result.failed.append(
                        BatchFailure(id=draft.annotation_id, reason="annotation not found")
                    )
                    continue
                try:
                    with self.adapter.transaction():
                        card_id = self._upsert(draft)
                except DatabaseError as e:
                    logger.warning("Failed to save card for %s: %s", draft.annotation_id, e)
                    result.failed.append(BatchFailure(id=draft.annotation_id, reason=str(e)))
                    continue
                result.succeeded.append(card_id)

        logger.debug(
            "Card batch: %d saved, %d skipped", len(result.succeeded), len(result.failed)
        )
        return result

    def delete_by_annotation_id(self, annotation_id: str) -> bool:
        """Remove the card of an annotation and the connections touching it."""
        with self.adapter.transaction():
            self.adapter.execute(
                """
                DELETE FROM note_connections
                WHERE from_card_id IN (SELECT id FROM cards WHERE annotation_id = ?)
                   OR to_card_id IN (SELECT id FROM cards WHERE annotation_id = ?)
                """,
                (annotation_id, annotation_id),
            )
            cursor = self.adapter.execute(
                "DELETE FROM cards WHERE annotation_id = ?", (annotation_id,)
            )
        return cursor.rowcount > 0

    def delete_many(self, card_ids: list[str]) -> int:
        """Remove cards by id and the connections touching them.

        Returns:
            Number of cards removed
        """
        if not card_ids:
            return 0
        ids = list(dict.fromkeys(card_ids))
        marks = _placeholders(ids)
        with self.adapter.transaction():
            self.adapter.execute(
                f"""
                DELETE FROM note_connections
                WHERE from_card_id IN ({marks}) OR to_card_id IN ({marks})
                """,
                ids + ids,
            )
            cursor = self.adapter.execute(f"DELETE FROM cards WHERE id IN ({marks})", ids)
        return cursor.rowcount
