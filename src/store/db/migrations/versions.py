"""Registered schema migrations.

Each step brings one historical shape of the store forward. Steps run inside
a transaction with foreign keys off (see ``MigrationRunner``) and inspect the
store before acting, so they are safe on stores that predate version tracking
and on stores that already have the change.
"""

from collections.abc import Callable
from dataclasses import dataclass

from common.constants import (
    DEFAULT_CARD_HEIGHT,
    DEFAULT_CARD_ORIGIN,
    DEFAULT_CARD_WIDTH,
    DEFAULT_COLOR_CATEGORY,
    DEFAULT_COLOR_RGBA,
)
from common.logger import get_logger
from store.ids import new_id, now_ms, to_millis

from ..interface import DatabaseAdapter

logger = get_logger(__name__)

GEOMETRY_COLUMNS = ("position_x", "position_y", "width", "height")
LEGACY_ENDPOINT_COLUMNS = ("from_annotation_id", "to_annotation_id")


@dataclass(frozen=True)
class Migration:
    """A numbered schema change."""

    version: int
    name: str
    apply: Callable[[DatabaseAdapter], None]


MIGRATIONS: list[Migration] = []


def migration(version: int, name: str):
    """Register the decorated function as migration ``version``."""

    def decorator(func: Callable[[DatabaseAdapter], None]) -> Callable[[DatabaseAdapter], None]:
        if any(m.version == version for m in MIGRATIONS):
            raise ValueError(f"Duplicate migration version {version}")
        MIGRATIONS.append(Migration(version=version, name=name, apply=func))
        return func

    return decorator


ANNOTATIONS_DDL = """
CREATE TABLE {name} (
    id TEXT PRIMARY KEY,
    book_id TEXT NOT NULL,
    cfi_range TEXT NOT NULL,
    text TEXT NOT NULL,
    title TEXT NOT NULL DEFAULT '',
    note TEXT NOT NULL DEFAULT '',
    color_rgba TEXT NOT NULL DEFAULT 'rgba(255, 255, 0, 0.4)',
    color_category TEXT NOT NULL DEFAULT 'default',
    created_at INTEGER NOT NULL,
    updated_at INTEGER NOT NULL,
    FOREIGN KEY (book_id) REFERENCES books(id) ON DELETE CASCADE
)
"""

CARDS_DDL = """
CREATE TABLE IF NOT EXISTS cards (
    id TEXT PRIMARY KEY,
    annotation_id TEXT NOT NULL,
    position_x REAL,
    position_y REAL,
    width REAL,
    height REAL,
    created_at INTEGER NOT NULL,
    updated_at INTEGER NOT NULL,
    FOREIGN KEY (annotation_id) REFERENCES annotations(id) ON DELETE CASCADE
)
"""

CONNECTIONS_DDL = """
CREATE TABLE {name} (
    id TEXT PRIMARY KEY,
    book_id TEXT NOT NULL,
    from_card_id TEXT NOT NULL,
    to_card_id TEXT NOT NULL,
    direction TEXT NOT NULL DEFAULT 'none',
    description TEXT,
    created_at INTEGER NOT NULL,
    updated_at INTEGER NOT NULL,
    FOREIGN KEY (book_id) REFERENCES books(id) ON DELETE CASCADE,
    FOREIGN KEY (from_card_id) REFERENCES cards(id) ON DELETE CASCADE,
    FOREIGN KEY (to_card_id) REFERENCES cards(id) ON DELETE CASCADE
)
"""

CONNECTION_INDEXES = (
    "CREATE INDEX IF NOT EXISTS idx_note_connections_book_id ON note_connections(book_id)",
    "CREATE INDEX IF NOT EXISTS idx_note_connections_from_card ON note_connections(from_card_id)",
    "CREATE INDEX IF NOT EXISTS idx_note_connections_to_card ON note_connections(to_card_id)",
    "CREATE UNIQUE INDEX IF NOT EXISTS idx_note_connections_endpoints "
    "ON note_connections(book_id, from_card_id, to_card_id)",
)


def _add_column(adapter: DatabaseAdapter, table: str, column: str, definition: str) -> bool:
    """Add ``column`` to ``table`` unless the table is missing or already has it."""
    columns = adapter.get_columns(table)
    if not columns or column in columns:
        return False
    adapter.execute(f"ALTER TABLE {table} ADD COLUMN {column} {definition}")
    logger.info("Added column %s.%s", table, column)
    return True


def _swap_table(adapter: DatabaseAdapter, table: str) -> None:
    """Replace ``table`` with the freshly filled ``<table>_new``."""
    adapter.execute(f"DROP TABLE {table}")
    adapter.execute(f"ALTER TABLE {table}_new RENAME TO {table}")


@migration(1, "book_metadata_columns")
def add_book_metadata_columns(adapter: DatabaseAdapter) -> None:
    _add_column(adapter, "books", "topic", "TEXT")
    _add_column(adapter, "books", "reading_progress", "TEXT")


@migration(2, "annotation_display_columns")
def add_annotation_display_columns(adapter: DatabaseAdapter) -> None:
    """Add title and color columns; normalize text timestamps to epoch ms."""
    if not adapter.table_exists("annotations"):
        return
    _add_column(adapter, "annotations", "title", "TEXT NOT NULL DEFAULT ''")
    _add_column(
        adapter, "annotations", "color_rgba", f"TEXT NOT NULL DEFAULT '{DEFAULT_COLOR_RGBA}'"
    )
    _add_column(
        adapter,
        "annotations",
        "color_category",
        f"TEXT NOT NULL DEFAULT '{DEFAULT_COLOR_CATEGORY}'",
    )

    # Early stores wrote CURRENT_TIMESTAMP text here
    for column in ("created_at", "updated_at"):
        adapter.execute(
            f"""
            UPDATE annotations
            SET {column} = COALESCE(CAST(strftime('%s', {column}) AS INTEGER) * 1000, 0)
            WHERE typeof({column}) = 'text'
            """
        )


@migration(3, "card_geometry_table")
def move_card_geometry_out_of_annotations(adapter: DatabaseAdapter) -> None:
    """Create ``cards`` and move canvas geometry out of ``annotations``."""
    adapter.execute(CARDS_DDL)

    columns = adapter.get_columns("annotations")
    legacy = [c for c in GEOMETRY_COLUMNS if c in columns]
    if not legacy:
        return

    def column(name: str) -> str:
        return name if name in legacy else "NULL"

    rows = adapter.fetchall(
        f"""
        SELECT a.id, {column('position_x')} AS x, {column('position_y')} AS y,
               {column('width')} AS width, {column('height')} AS height
        FROM annotations a
        WHERE NOT EXISTS (SELECT 1 FROM cards c WHERE c.annotation_id = a.id)
        """
    )
    now = now_ms()
    moved = 0
    for row in rows:
        if all(row[key] is None for key in ("x", "y", "width", "height")):
            continue
        adapter.execute(
            """
            INSERT INTO cards (id, annotation_id, position_x, position_y, width, height,
                               created_at, updated_at)
            VALUES (?, ?, ?, ?, ?, ?, ?, ?)
            """,
            (
                new_id(),
                row["id"],
                row["x"] if row["x"] is not None else DEFAULT_CARD_ORIGIN[0],
                row["y"] if row["y"] is not None else DEFAULT_CARD_ORIGIN[1],
                row["width"] if row["width"] is not None else DEFAULT_CARD_WIDTH,
                row["height"] if row["height"] is not None else DEFAULT_CARD_HEIGHT,
                now,
                now,
            ),
        )
        moved += 1

    adapter.execute(ANNOTATIONS_DDL.format(name="annotations_new"))
    adapter.execute(
        f"""
        INSERT INTO annotations_new (id, book_id, cfi_range, text, title, note,
                                     color_rgba, color_category, created_at, updated_at)
        SELECT id, book_id, cfi_range, text,
               COALESCE(title, ''), COALESCE(note, ''),
               COALESCE(color_rgba, '{DEFAULT_COLOR_RGBA}'),
               COALESCE(color_category, '{DEFAULT_COLOR_CATEGORY}'),
               COALESCE(created_at, 0), COALESCE(updated_at, created_at, 0)
        FROM annotations
        """
    )
    _swap_table(adapter, "annotations")
    adapter.execute("CREATE INDEX IF NOT EXISTS idx_annotations_book_id ON annotations(book_id)")
    logger.info("Moved geometry of %d annotation(s) into cards", moved)


@migration(4, "connection_metadata_columns")
def add_connection_metadata_columns(adapter: DatabaseAdapter) -> None:
    _add_column(adapter, "note_connections", "direction", "TEXT NOT NULL DEFAULT 'none'")
    _add_column(adapter, "note_connections", "description", "TEXT")


def _endpoint_columns(adapter: DatabaseAdapter) -> tuple[str, str] | None:
    columns = adapter.get_columns("note_connections")
    if {"from_card_id", "to_card_id"} <= columns:
        return ("from_card_id", "to_card_id")
    if set(LEGACY_ENDPOINT_COLUMNS) <= columns:
        return LEGACY_ENDPOINT_COLUMNS
    return None


@migration(5, "unique_card_per_annotation")
def collapse_duplicate_cards(adapter: DatabaseAdapter) -> None:
    """Keep one card per annotation, repointing connections at the survivor."""
    if not adapter.table_exists("cards"):
        return

    endpoints = _endpoint_columns(adapter)
    duplicated = adapter.fetchall(
        "SELECT annotation_id FROM cards GROUP BY annotation_id HAVING COUNT(*) > 1"
    )
    for group in duplicated:
        cards = adapter.fetchall(
            "SELECT id FROM cards WHERE annotation_id = ? ORDER BY updated_at DESC, id DESC",
            (group["annotation_id"],),
        )
        keep = cards[0]["id"]
        for card in cards[1:]:
            if endpoints:
                for column in endpoints:
                    adapter.execute(
                        f"UPDATE note_connections SET {column} = ? WHERE {column} = ?",
                        (keep, card["id"]),
                    )
            adapter.execute("DELETE FROM cards WHERE id = ?", (card["id"],))
        logger.warning(
            "Collapsed %d duplicate card(s) of annotation %s",
            len(cards) - 1,
            group["annotation_id"],
        )

    adapter.execute(
        "CREATE UNIQUE INDEX IF NOT EXISTS idx_cards_annotation_id ON cards(annotation_id)"
    )


@migration(6, "connections_reference_cards")
def point_connections_at_cards(adapter: DatabaseAdapter) -> None:
    """Rebuild ``note_connections`` so both endpoints are card ids.

    Older stores kept annotation ids (and sometimes card ids) in
    ``from_annotation_id``/``to_annotation_id``. Annotation ids are mapped to
    the annotation's card, creating a default card when it has none. Rows
    with an endpoint that is neither, or that belongs to another book, are
    dropped, as are self-loops and repeated endpoint triples.
    """
    endpoints = _endpoint_columns(adapter)
    if endpoints is None:
        return

    columns = adapter.get_columns("note_connections")
    annotation_book = {
        row["id"]: row["book_id"] for row in adapter.fetchall("SELECT id, book_id FROM annotations")
    }
    card_book = {}
    card_by_annotation = {}
    for row in adapter.fetchall("SELECT id, annotation_id FROM cards"):
        card_book[row["id"]] = annotation_book.get(row["annotation_id"])
        card_by_annotation[row["annotation_id"]] = row["id"]
    book_ids = {row["id"] for row in adapter.fetchall("SELECT id FROM books")}

    def book_of(endpoint: str | None) -> str | None:
        if endpoint in card_book:
            return card_book[endpoint]
        return annotation_book.get(endpoint)

    def resolve(endpoint: str) -> str:
        """Card id for an endpoint already known to be a card or an annotation."""
        if endpoint in card_book:
            return endpoint
        if endpoint not in card_by_annotation:
            now = now_ms()
            card_id = new_id()
            adapter.execute(
                """
                INSERT INTO cards (id, annotation_id, position_x, position_y, width, height,
                                   created_at, updated_at)
                VALUES (?, ?, ?, ?, ?, ?, ?, ?)
                """,
                (
                    card_id,
                    endpoint,
                    DEFAULT_CARD_ORIGIN[0],
                    DEFAULT_CARD_ORIGIN[1],
                    DEFAULT_CARD_WIDTH,
                    DEFAULT_CARD_HEIGHT,
                    now,
                    now,
                ),
            )
            card_book[card_id] = annotation_book[endpoint]
            card_by_annotation[endpoint] = card_id
        return card_by_annotation[endpoint]

    direction = "direction" if "direction" in columns else "'none'"
    description = "description" if "description" in columns else "NULL"
    rows = adapter.fetchall(
        f"""
        SELECT id, book_id, {endpoints[0]} AS source, {endpoints[1]} AS target,
               {direction} AS direction, {description} AS description,
               created_at, updated_at
        FROM note_connections
        ORDER BY created_at, rowid
        """
    )

    adapter.execute(CONNECTIONS_DDL.format(name="note_connections_new"))
    seen: set[tuple[str, str, str]] = set()
    dropped = 0
    for row in rows:
        book_id = row["book_id"]
        if book_id not in book_ids or not (
            book_of(row["source"]) == book_id == book_of(row["target"])
        ):
            # Checked before resolving so no card is created for a dropped row
            logger.warning(
                "Dropping connection %s: endpoint missing or outside book %s", row["id"], book_id
            )
            dropped += 1
            continue

        source, target = resolve(row["source"]), resolve(row["target"])
        triple = (book_id, source, target)
        if source == target or triple in seen:
            dropped += 1
            continue
        seen.add(triple)
        created = to_millis(row["created_at"])
        adapter.execute(
            """
            INSERT INTO note_connections_new (id, book_id, from_card_id, to_card_id, direction,
                                              description, created_at, updated_at)
            VALUES (?, ?, ?, ?, ?, ?, ?, ?)
            """,
            (
                row["id"],
                row["book_id"],
                source,
                target,
                row["direction"] or "none",
                row["description"],
                created,
                to_millis(row["updated_at"]) or created,
            ),
        )

    _swap_table(adapter, "note_connections")
    for statement in CONNECTION_INDEXES:
        adapter.execute(statement)
    if dropped:
        logger.warning("Dropped %d connection(s) with unresolvable or repeated endpoints", dropped)
