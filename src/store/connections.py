"""Connection repository."""

from common.logger import get_logger

from .db import DatabaseAdapter, DatabaseError, ReferentialIntegrityError
from .ids import new_id, now_ms
from .models import BatchFailure, BatchResult, ConnectionDraft, Direction, NoteConnection

logger = get_logger(__name__)

CONNECTION_COLUMNS = "id, book_id, from_card_id, to_card_id, direction, description"

BOOK_CARD_IDS = """
    SELECT c.id
    FROM cards c
    JOIN annotations a ON a.id = c.annotation_id
    WHERE a.book_id = ?
"""


class ConnectionRepository:
    """CRUD over edges between cards of one book."""

    def __init__(self, adapter: DatabaseAdapter):
        self.adapter = adapter

    def get_by_book_id(self, book_id: str) -> list[NoteConnection]:
        rows = self.adapter.fetchall(
            f"""
            SELECT {CONNECTION_COLUMNS}
            FROM note_connections
            WHERE book_id = ?
            ORDER BY created_at ASC, id ASC
            """,
            (book_id,),
        )
        return [NoteConnection.from_row(row) for row in rows]

    def get_by_id(self, connection_id: str) -> NoteConnection | None:
        row = self.adapter.fetchone(
            f"SELECT {CONNECTION_COLUMNS} FROM note_connections WHERE id = ?", (connection_id,)
        )
        return NoteConnection.from_row(row) if row else None

    def _card_ids_of_book(self, book_id: str) -> set[str]:
        return {row["id"] for row in self.adapter.fetchall(BOOK_CARD_IDS, (book_id,))}

    def _find(self, book_id: str, from_card_id: str, to_card_id: str) -> NoteConnection | None:
        row = self.adapter.fetchone(
            f"""
            SELECT {CONNECTION_COLUMNS}
            FROM note_connections
            WHERE book_id = ? AND from_card_id = ? AND to_card_id = ?
            """,
            (book_id, from_card_id, to_card_id),
        )
        return NoteConnection.from_row(row) if row else None

    def _insert(self, connection_id: str, book_id: str, draft: ConnectionDraft) -> NoteConnection:
        direction = Direction.parse(draft.direction)
        now = now_ms()
        self.adapter.execute(
            f"""
            INSERT INTO note_connections ({CONNECTION_COLUMNS}, created_at, updated_at)
            VALUES (?, ?, ?, ?, ?, ?, ?, ?)
            """,
            (
                connection_id,
                book_id,
                draft.from_card_id,
                draft.to_card_id,
                direction.value,
                draft.description,
                now,
                now,
            ),
        )
        return NoteConnection(
            id=connection_id,
            book_id=book_id,
            from_card_id=draft.from_card_id,
            to_card_id=draft.to_card_id,
            direction=direction,
            description=draft.description,
        )

    def create(self, draft: ConnectionDraft) -> NoteConnection:
        """Connect two cards, or return the connection that already does.

        At most one connection exists per ordered ``(book, from, to)`` triple;
        asking for it again returns the stored row untouched.

        Raises:
            ValueError: If both endpoints are the same card
            ReferentialIntegrityError: If an endpoint is not a card of the book
        """
        if draft.from_card_id == draft.to_card_id:
            raise ValueError(f"Cannot connect card {draft.from_card_id} to itself")

        with self.adapter.transaction():
            cards = self._card_ids_of_book(draft.book_id)
            missing = [c for c in (draft.from_card_id, draft.to_card_id) if c not in cards]
            if missing:
                raise ReferentialIntegrityError(
                    f"Card(s) {', '.join(missing)} not found in book {draft.book_id}"
                )

            existing = self._find(draft.book_id, draft.from_card_id, draft.to_card_id)
            if existing:
                logger.debug("Connection %s already links these cards", existing.id)
                return existing
            return self._insert(new_id(), draft.book_id, draft)

    def update(
        self,
        connection_id: str,
        direction: Direction | str | None = None,
        description: str | None = None,
    ) -> bool:
        """Change the supplied fields of a connection.

        Returns:
            False if nothing was supplied or the connection does not exist
        """
        assignments = []
        params: list = []
        if direction is not None:
            assignments.append("direction = ?")
            params.append(Direction.parse(direction).value)
        if description is not None:
            assignments.append("description = ?")
            params.append(description)
        if not assignments:
            return False

        assignments.append("updated_at = ?")
        params.extend([now_ms(), connection_id])
        cursor = self.adapter.execute(
            f"UPDATE note_connections SET {', '.join(assignments)} WHERE id = ?", params
        )
        return cursor.rowcount > 0

    def delete(self, connection_id: str) -> bool:
        cursor = self.adapter.execute("DELETE FROM note_connections WHERE id = ?", (connection_id,))
        return cursor.rowcount > 0

    def delete_by_book_id(self, book_id: str) -> int:
        cursor = self.adapter.execute("DELETE FROM note_connections WHERE book_id = ?", (book_id,))
        return cursor.rowcount

    def batch_replace(self, book_id: str, connections: list[ConnectionDraft]) -> BatchResult:
        """Replace every connection of a book with ``connections``.

        Deleting the old set and inserting the new one happen in one
        transaction. This is full replacement: an empty list removes every
        connection of the book. Entries that are self-loops, point at cards
        outside the book, or repeat an earlier triple are skipped and
        reported.
        """
        result = BatchResult()

        with self.adapter.transaction():
            removed = self.delete_by_book_id(book_id)
            cards = self._card_ids_of_book(book_id)
            seen: set[tuple[str, str]] = set()

            for draft in connections:
                connection_id = draft.id or new_id()
                endpoints = (draft.from_card_id, draft.to_card_id)
                if draft.from_card_id == draft.to_card_id:
                    reason = "self-loop"
                elif not set(endpoints) <= cards:
                    reason = "dangling endpoint"
                elif endpoints in seen:
                    reason = "duplicate"
                else:
                    reason = None

                if reason:
                    logger.warning("Skipping connection %s: %s", connection_id, reason)
                    result.failed.append(BatchFailure(id=connection_id, reason=reason))
                    continue

                try:
                    with self.adapter.transaction():
                        self._insert(connection_id, book_id, draft)
                except DatabaseError as e:
                    logger.warning("Failed to save connection %s: %s", connection_id, e)
                    result.failed.append(BatchFailure(id=connection_id, reason=str(e)))
                    continue
                seen.add(endpoints)
                result.succeeded.append(connection_id)

        logger.debug(
            "Replaced %d connection(s) of %s with %d", removed, book_id, len(result.succeeded)
        )
        return result

    def prune_dangling(self, book_id: str) -> int:
        """Remove connections of a book whose endpoints are no longer its cards.

        Returns:
            Number of connections removed
        """
        cursor = self.adapter.execute(
            f"""
            DELETE FROM note_connections
            WHERE book_id = ?
              AND (from_card_id NOT IN ({BOOK_CARD_IDS})
                   OR to_card_id NOT IN ({BOOK_CARD_IDS}))
            """,
            (book_id, book_id, book_id),
        )
        if cursor.rowcount:
            logger.info("Pruned %d dangling connection(s) of %s", cursor.rowcount, book_id)
        return cursor.rowcount
